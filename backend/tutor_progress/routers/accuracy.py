from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import get_db
from ..engine import analyze, apply_xp
from ..engine.numeric import round_half_up
from ..engine.schemas import TurnOutcome
from ..models import AnalysisRecord, UserLevel
from ..sessions import SessionRegistry, get_registry


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/accuracy", tags=["accuracy"])


class AnalyzeRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)
	user_message: Optional[str] = Field(default=None, alias="userMessage")
	ai_response: Optional[str] = Field(default=None, alias="aiResponse")


class TurnRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)
	session_id: str = Field(alias="sessionId", min_length=1, max_length=64)
	user_message: Optional[str] = Field(default=None, alias="userMessage")
	ai_response: Optional[str] = Field(default=None, alias="aiResponse")
	# When set, the turn's XP and scores are also written to the learner's level row
	user_id: Optional[str] = Field(default=None, alias="userId")


def _ok(data: Any) -> Dict[str, Any]:
	return {"success": True, "data": data}


def _now_iso() -> str:
	return datetime.now(timezone.utc).isoformat()


def _running_mean(previous: int, count: int, value: int) -> int:
	return round_half_up((previous * count + value) / (count + 1))


def _persist_turn(db: Session, row: UserLevel, session_id: str, outcome: TurnOutcome, message_length: int) -> None:
	result = outcome.accuracy
	count = row.messages_count or 0
	applied = apply_xp(row.total_xp or 0, outcome.xp_gained)
	row.total_xp = applied.new_total_xp
	row.accuracy = _running_mean(row.accuracy or 0, count, result.overall)
	row.grammar = _running_mean(row.grammar or 0, count, result.grammar)
	row.vocabulary = _running_mean(row.vocabulary or 0, count, result.vocabulary)
	row.spelling = _running_mean(row.spelling or 0, count, result.spelling)
	row.fluency = _running_mean(row.fluency or 0, count, result.fluency)
	row.messages_count = count + 1
	db.add(row)
	db.add(AnalysisRecord(
		user_id=row.user_id,
		session_id=session_id,
		overall=result.overall,
		grammar=result.grammar,
		vocabulary=result.vocabulary,
		spelling=result.spelling,
		fluency=result.fluency,
		message_length=message_length,
		xp_gained=outcome.xp_gained,
	))
	try:
		db.commit()
	except SQLAlchemyError:
		db.rollback()
		raise
	if applied.leveled_up:
		logger.info("%s reached level %s", row.user_id, applied.new_level)


@router.post("/analyze")
async def analyze_message(req: AnalyzeRequest):
	if not req.user_message:
		raise HTTPException(status_code=400, detail="User message is required")
	result = analyze(req.user_message, req.ai_response)
	return _ok({**result.model_dump(), "timestamp": _now_iso()})


@router.post("/turn")
async def process_turn(
	req: TurnRequest,
	db: Session = Depends(get_db),
	sessions: SessionRegistry = Depends(get_registry),
):
	message = req.user_message or ""
	if not message:
		raise HTTPException(status_code=400, detail="User message is required")

	row: Optional[UserLevel] = None
	if req.user_id:
		row = db.get(UserLevel, req.user_id)
		if row is None:
			raise HTTPException(status_code=404, detail="User level not found")
	persisted_xp = row.total_xp if row is not None else None

	# Order is fixed here, before any analysis work starts
	seq = sessions.reserve(req.session_id, total_xp=persisted_xp or 0)
	try:
		result = analyze(message, req.ai_response)
	except Exception:
		await sessions.abandon(req.session_id, seq)
		raise
	outcome = await sessions.submit(req.session_id, seq, result, len(message), total_xp=persisted_xp)

	payload = outcome.model_dump(by_alias=True)
	payload["sequence"] = seq
	if row is not None:
		_persist_turn(db, row, req.session_id, outcome, len(message))
		payload["userLevel"] = row.to_payload()
	logger.info(
		"Session %s turn %s: %s%% accuracy, +%s XP",
		req.session_id, seq, result.overall, outcome.xp_gained,
	)
	return _ok(payload)


@router.get("/session/{session_id}")
async def session_state(session_id: str, sessions: SessionRegistry = Depends(get_registry)):
	tracker = sessions.get(session_id)
	if tracker is None:
		raise HTTPException(status_code=404, detail="Session not found")
	data = tracker.state().model_dump(by_alias=True)
	data["skillBreakdown"] = tracker.skill_breakdown()
	data["recentTrend"] = tracker.recent_trend()
	return _ok(data)


@router.post("/session/{session_id}/reset")
async def reset_session(session_id: str, sessions: SessionRegistry = Depends(get_registry)):
	if not sessions.reset(session_id):
		raise HTTPException(status_code=404, detail="Session not found")
	return _ok(sessions.get(session_id).state().model_dump(by_alias=True))


@router.delete("/session/{session_id}")
async def end_session(session_id: str, sessions: SessionRegistry = Depends(get_registry)):
	tracker = sessions.drop(session_id)
	if tracker is None:
		raise HTTPException(status_code=404, detail="Session not found")
	# Final figures for the conversation that just ended
	return _ok(tracker.state().model_dump(by_alias=True))


@router.get("/history/{user_id}")
async def analysis_history(
	user_id: str,
	limit: int = Query(default=20, ge=1, le=200),
	db: Session = Depends(get_db),
):
	rows = (
		db.query(AnalysisRecord)
		.filter(AnalysisRecord.user_id == user_id)
		.order_by(AnalysisRecord.created_at.desc(), AnalysisRecord.id.desc())
		.limit(limit)
		.all()
	)
	return _ok([r.to_payload() for r in rows])
