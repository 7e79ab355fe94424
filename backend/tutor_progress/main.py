import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .db import Base, engine, SessionLocal, ensure_schema
from .cleanup import purge_analysis_history
from .settings import settings
from .routers import accuracy
from .routers import level

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

app = FastAPI(title="Tutor Progress API")
app.include_router(accuracy.router)
app.include_router(level.router)


@app.exception_handler(StarletteHTTPException)
async def http_error_envelope(request: Request, exc: StarletteHTTPException):
	return JSONResponse(status_code=exc.status_code, content={"success": False, "message": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def validation_error_envelope(request: Request, exc: RequestValidationError):
	first = exc.errors()[0] if exc.errors() else {}
	field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
	message = f"{field}: {first.get('msg', 'invalid request')}" if field else first.get("msg", "invalid request")
	return JSONResponse(status_code=400, content={"success": False, "message": message})


@app.get("/info")
def root():
	return {"status": "ok", "database": engine.url.get_backend_name()}


@app.on_event("startup")
async def startup_event():
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	# Apply lightweight dev migrations
	added = ensure_schema()
	if added:
		logger.info("Added columns to user_levels: %s", ", ".join(added))
	db = SessionLocal()
	try:
		removed = purge_analysis_history(db, settings.history_retention_days)
	finally:
		db.close()
	if removed:
		logger.info("Purged %s analysis records older than %s days", removed, settings.history_retention_days)
