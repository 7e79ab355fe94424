from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	# Database (SQLite file by default; any SQLAlchemy URL works)
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")
	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# Session accuracy tracking
	accuracy_window: int = Field(default=20, ge=1, validation_alias="ACCURACY_WINDOW")
	quality_threshold: int = Field(default=80, ge=0, le=100, validation_alias="QUALITY_THRESHOLD")
	# Sessions with no activity for this long are dropped when a new one opens
	session_idle_seconds: float = Field(default=3600, gt=0, validation_alias="SESSION_IDLE_SECONDS")

	# Largest single XP award accepted by POST /api/level/xp
	max_xp_award: int = Field(default=1000, ge=1, validation_alias="MAX_XP_AWARD")

	# Analysis records older than this are purged at startup
	history_retention_days: int = Field(default=30, ge=1, validation_alias="HISTORY_RETENTION_DAYS")
	leaderboard_limit: int = Field(default=10, ge=1, validation_alias="LEADERBOARD_LIMIT")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
