from __future__ import annotations
from datetime import datetime, timedelta
from sqlalchemy import delete
from sqlalchemy.orm import Session

from .models import AnalysisRecord


def purge_analysis_history(db: Session, days: int) -> int:
	threshold = datetime.utcnow() - timedelta(days=days)
	# Only per-message analysis rows expire; user_levels rows hold the learner's XP and are kept
	res = db.execute(delete(AnalysisRecord).where(AnalysisRecord.created_at < threshold))
	db.commit()
	return res.rowcount or 0
