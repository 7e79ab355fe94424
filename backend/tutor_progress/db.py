from __future__ import annotations
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from .settings import settings


DATABASE_URL = settings.database_url or "sqlite:///./tutor_progress.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
_engine_kwargs = {}
if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
	# One shared connection, otherwise every session sees its own empty database
	_engine_kwargs["poolclass"] = StaticPool

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True, **_engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Columns added after the first release of user_levels
_USER_LEVEL_COLUMNS = {
	"total_sessions": "INTEGER DEFAULT 0 NOT NULL",
	"messages_count": "INTEGER DEFAULT 0 NOT NULL",
	"spelling": "INTEGER DEFAULT 0 NOT NULL",
}


# Best-effort lightweight migrations for development (SQLite-friendly)
def ensure_schema() -> list[str]:
	inspector = inspect(engine)
	if "user_levels" not in set(inspector.get_table_names()):
		return []
	cols = {c["name"] for c in inspector.get_columns("user_levels")}
	added: list[str] = []
	with engine.begin() as conn:
		for name, ddl in _USER_LEVEL_COLUMNS.items():
			if name not in cols:
				conn.exec_driver_sql(f"ALTER TABLE user_levels ADD COLUMN {name} {ddl}")
				added.append(name)
	return added
