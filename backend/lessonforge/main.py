import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .db import Base, SessionLocal, engine, ensure_schema
from .cleanup import purge_stale_rows
from .gemini_client import AIProviderError
from .settings import settings
from .routers import health, auth, templates, ai, documents
from .routers.ai import describe_provider_error
from .routers.auth import ensure_seed_user

logging.basicConfig(level=settings.log_level, format="%(asctime)s  %(levelname)s  %(name)s  %(message)s")
logging.getLogger("passlib").setLevel(logging.ERROR)
log = logging.getLogger(__name__)

app = FastAPI(title="LessonForge API")
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(templates.router)
app.include_router(ai.router)
app.include_router(documents.router)


@app.exception_handler(AIProviderError)
async def ai_provider_error_handler(request: Request, exc: AIProviderError):
	log.error("AI provider failure on %s: %s", request.url.path, exc)
	return JSONResponse(
		status_code=502,
		content={"success": False, "message": describe_provider_error(exc), "error": str(exc)},
	)


@app.get("/info")
def root():
	return {"status": "ok", "gemini_configured": bool(settings.gemini_api_key), "model": settings.gemini_model}


def _run_cleanup() -> None:
	db = SessionLocal()
	try:
		removed = purge_stale_rows(db)
		log.info("housekeeping removed %d stale rows", removed)
	except Exception:
		db.rollback()
		log.exception("housekeeping failed")
	finally:
		db.close()


async def _cleanup_watcher():
	while True:
		await asyncio.sleep(24 * 60 * 60)
		_run_cleanup()


@app.on_event("startup")
async def startup_event():
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	# Apply lightweight dev migrations
	applied = ensure_schema()
	if applied:
		log.info("added columns: %s", ", ".join(applied))
	db = SessionLocal()
	try:
		ensure_seed_user(db)
	finally:
		db.close()
	# Best-effort cleanup at startup, then daily
	_run_cleanup()
	asyncio.create_task(_cleanup_watcher())
