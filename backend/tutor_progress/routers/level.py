from __future__ import annotations
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import get_db
from ..engine import apply_xp, level_info, progress_summary, total_xp_for_level, xp_for_level, xp_reward
from ..engine.progression import MAX_LEVEL
from ..models import UserLevel
from ..settings import settings


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/level", tags=["level"])


# Leaderboard sort keys; level is a step function of total XP so both share a column
_SORT_COLUMNS = {
	"totalXP": UserLevel.total_xp,
	"level": UserLevel.total_xp,
	"totalSessions": UserLevel.total_sessions,
}


class LevelInfoRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)
	total_xp: Optional[int] = Field(default=None, alias="totalXP")
	level: Optional[int] = None


class InitializeRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)
	user_id: str = Field(alias="userId", min_length=1, max_length=128)
	user_name: Optional[str] = Field(default=None, alias="userName")
	user_email: Optional[str] = Field(default=None, alias="userEmail")


class AddXpRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)
	user_id: str = Field(alias="userId", min_length=1, max_length=128)
	xp_amount: Optional[int] = Field(default=None, alias="xpAmount")
	# Named activity from XP_REWARDS, used when xpAmount is absent
	action: Optional[str] = Field(default=None, max_length=64)
	multiplier: float = Field(default=1.0, ge=0, le=10)
	reason: Optional[str] = None


class SkillsRequest(BaseModel):
	accuracy: Optional[int] = None
	vocabulary: Optional[int] = None
	grammar: Optional[int] = None
	spelling: Optional[int] = None
	fluency: Optional[int] = None


def _ok(data: Any, message: Optional[str] = None) -> Dict[str, Any]:
	body: Dict[str, Any] = {"success": True, "data": data}
	if message:
		body["message"] = message
	return body


def _get_level_row(db: Session, user_id: str) -> UserLevel:
	row = db.get(UserLevel, user_id)
	if row is None:
		raise HTTPException(status_code=404, detail="User level not found")
	return row


def _commit(db: Session) -> None:
	try:
		db.commit()
	except SQLAlchemyError:
		db.rollback()
		raise


@router.post("/info")
async def get_level_info(req: LevelInfoRequest):
	if req.total_xp is not None:
		return _ok(level_info(req.total_xp).model_dump(by_alias=True))
	if req.level is not None:
		level = max(1, min(MAX_LEVEL, req.level))
		return _ok({
			"level": level,
			"xpRequired": xp_for_level(level),
			"totalXpRequired": total_xp_for_level(level),
		})
	raise HTTPException(status_code=400, detail="totalXP or level is required")


@router.post("/initialize")
async def initialize_user_level(req: InitializeRequest, db: Session = Depends(get_db)):
	row = db.get(UserLevel, req.user_id)
	if row is not None:
		if req.user_name:
			row.user_name = req.user_name
		if req.user_email:
			row.user_email = req.user_email
		db.add(row)
		_commit(db)
		return _ok(row.to_payload(), "User level already exists")
	row = UserLevel(
		user_id=req.user_id,
		user_name=req.user_name or "User",
		user_email=req.user_email or "",
		total_xp=0,
	)
	db.add(row)
	_commit(db)
	logger.info("Initialized level for %s", req.user_id)
	return _ok(row.to_payload(), "User level initialized successfully")


@router.post("/xp")
async def add_xp(req: AddXpRequest, db: Session = Depends(get_db)):
	amount = req.xp_amount
	default_reason = "Activity completed"
	if amount is None:
		if not req.action:
			raise HTTPException(status_code=400, detail="xpAmount or action is required")
		reward = xp_reward(req.action, req.multiplier)
		amount, default_reason = reward.total_xp, reward.reason
	if amount <= 0 or amount > settings.max_xp_award:
		raise HTTPException(status_code=400, detail=f"XP amount must be between 1 and {settings.max_xp_award}")
	row = _get_level_row(db, req.user_id)
	applied = apply_xp(row.total_xp or 0, amount)
	row.total_xp = applied.new_total_xp
	db.add(row)
	_commit(db)
	reason = req.reason or default_reason
	logger.info("+%s XP awarded to %s for: %s", applied.xp_added, req.user_id, reason)
	return _ok({
		"userLevel": row.to_payload(),
		"xpAdded": applied.xp_added,
		"leveledUp": applied.leveled_up,
		"previousLevel": applied.old_level,
		"newLevel": applied.new_level,
		"reason": reason,
	})


@router.get("/leaderboard")
async def leaderboard(
	limit: Optional[int] = Query(default=None, ge=1, le=100),
	sort_by: str = Query(default="totalXP", alias="sortBy"),
	db: Session = Depends(get_db),
):
	column = _SORT_COLUMNS.get(sort_by, UserLevel.total_xp)
	rows = (
		db.query(UserLevel)
		.order_by(column.desc(), UserLevel.user_id)
		.limit(limit or settings.leaderboard_limit)
		.all()
	)
	board = []
	for row in rows:
		info = level_info(row.total_xp or 0)
		board.append({
			"userId": row.user_id,
			"userName": row.user_name,
			"level": info.level,
			"totalXP": info.total_xp,
			"totalSessions": row.total_sessions or 0,
		})
	return _ok(board)


@router.get("/{user_id}")
async def get_user_level(user_id: str, db: Session = Depends(get_db)):
	return _ok(_get_level_row(db, user_id).to_payload())


@router.post("/{user_id}/session")
async def update_session(user_id: str, db: Session = Depends(get_db)):
	row = _get_level_row(db, user_id)
	row.total_sessions = (row.total_sessions or 0) + 1
	db.add(row)
	_commit(db)
	return _ok({"totalSessions": row.total_sessions})


@router.put("/{user_id}/skills")
async def update_skills(user_id: str, req: SkillsRequest, db: Session = Depends(get_db)):
	row = _get_level_row(db, user_id)
	# Only provided skills change
	for name, value in req.model_dump(exclude_none=True).items():
		setattr(row, name, max(0, min(100, value)))
	db.add(row)
	_commit(db)
	return _ok(row.to_payload())


@router.get("/{user_id}/stats")
async def get_stats(user_id: str, db: Session = Depends(get_db)):
	row = _get_level_row(db, user_id)
	summary = progress_summary(row.total_xp or 0, row.skills())
	summary["totalSessions"] = row.total_sessions or 0
	summary["activity"] = {"messagesCount": row.messages_count or 0}
	return _ok(summary)
