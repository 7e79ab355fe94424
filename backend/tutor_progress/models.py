from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Index
from .db import Base
from .engine import level_info


class UserLevel(Base):
	__tablename__ = "user_levels"
	user_id = Column(String(128), primary_key=True, index=True)
	user_name = Column(String(256), default="User", nullable=False)
	user_email = Column(String(256), default="", nullable=False)
	# Level, current-level XP and XP-to-next are always projected from total_xp
	total_xp = Column(Integer, default=0, nullable=False)
	accuracy = Column(Integer, default=0, nullable=False)
	grammar = Column(Integer, default=0, nullable=False)
	vocabulary = Column(Integer, default=0, nullable=False)
	spelling = Column(Integer, default=0, nullable=False)
	fluency = Column(Integer, default=0, nullable=False)
	total_sessions = Column(Integer, default=0, nullable=False)
	messages_count = Column(Integer, default=0, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	__table_args__ = (Index("ix_user_levels_total_xp", "total_xp"),)

	def skills(self) -> dict:
		return {
			"accuracy": self.accuracy or 0,
			"vocabulary": self.vocabulary or 0,
			"grammar": self.grammar or 0,
			"spelling": self.spelling or 0,
			"fluency": self.fluency or 0,
		}

	def to_payload(self) -> dict:
		info = level_info(self.total_xp or 0)
		return {
			"userId": self.user_id,
			"userName": self.user_name,
			"userEmail": self.user_email,
			**info.model_dump(by_alias=True),
			**self.skills(),
			"totalSessions": self.total_sessions or 0,
			"messagesCount": self.messages_count or 0,
			"createdAt": self.created_at.isoformat() if self.created_at else None,
			"updatedAt": self.updated_at.isoformat() if self.updated_at else None,
		}


class AnalysisRecord(Base):
	__tablename__ = "analysis_records"
	id = Column(Integer, primary_key=True, autoincrement=True)
	user_id = Column(String(128), index=True, nullable=False)
	session_id = Column(String(64), nullable=True)
	overall = Column(Integer, nullable=False)
	grammar = Column(Integer, nullable=False)
	vocabulary = Column(Integer, nullable=False)
	spelling = Column(Integer, nullable=False)
	fluency = Column(Integer, nullable=False)
	message_length = Column(Integer, default=0, nullable=False)
	xp_gained = Column(Integer, default=0, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

	def to_payload(self) -> dict:
		return {
			"id": self.id,
			"sessionId": self.session_id,
			"overall": self.overall,
			"grammar": self.grammar,
			"vocabulary": self.vocabulary,
			"spelling": self.spelling,
			"fluency": self.fluency,
			"messageLength": self.message_length,
			"xpGained": self.xp_gained,
			"timestamp": self.created_at.isoformat() if self.created_at else None,
		}
