"""
Constituent Bot - Main FastAPI Application
"""
import asyncio
import contextlib
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from constituent_bot.core.config import settings
from constituent_bot.core.logging import setup_logging, get_logger
from constituent_bot.core.middleware import setup_middleware, setup_exception_handlers
from constituent_bot.api.routes import router as api_router
from constituent_bot.api.webhooks.whatsapp_cloud import router as whatsapp_cloud_router
from constituent_bot.db.database import AsyncSessionLocal, engine, init_db
from constituent_bot.domain.services import RecordStore, ReverseGeocoder
from constituent_bot.state_machine import DialogueEngine, SessionStore

# Setup logging before anything else
setup_logging(
    level="DEBUG" if settings.DEBUG else "INFO",
    json_format=not settings.DEBUG,
    app_name=settings.APP_NAME
)

logger = get_logger(__name__)


def _parse_allowed_origins(raw: str) -> list[str]:
    """Parse comma-separated CORS origins string into a clean list."""
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


_OPENAPI_TAGS = [
    {"name": "Webhooks", "description": "Incoming messages from the WhatsApp Cloud API."},
    {"name": "Chat", "description": "Conversation simulator for testing the bot without WhatsApp."},
    {"name": "Status", "description": "Public lookup of a submission by reference code."},
    {
        "name": "Admin",
        "description": "Grievances, suggestions, volunteers, subscribers, voter roll and notifications.",
    },
    {"name": "Health", "description": "Liveness and readiness probes."},
]


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description=(
        "WhatsApp bot for constituent engagement: voter verification, issue "
        "reporting, ideas, volunteering and campaign updates."
    ),
    openapi_tags=_OPENAPI_TAGS,
    openapi_url="/openapi.json",
)

# Setup middleware (rate limit, request logging, correlation ID, security headers)
setup_middleware(app)
setup_exception_handlers(app)

allowed_origins = _parse_allowed_origins(settings.ALLOWED_ORIGINS)

# Safe dev default to support local frontend development without opening CORS in production.
if not allowed_origins and settings.DEBUG:
    allowed_origins = [
        "http://localhost",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

if allowed_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "X-Admin-API-Key", "X-Correlation-ID"],
    )

app.include_router(api_router, prefix="/api")

# Short path registered in the Meta app dashboard
app.include_router(whatsapp_cloud_router, prefix="/webhook", include_in_schema=False)

# Welcome banner and other public media
_ASSETS_DIR = Path(__file__).resolve().parent.parent / "assets"
if _ASSETS_DIR.exists():
    app.mount("/assets", StaticFiles(directory=_ASSETS_DIR), name="assets")
else:
    logger.warning("assets directory not found, welcome image will not be served", extra_data={"path": str(_ASSETS_DIR)})


def build_dialogue_engine(session_factory=AsyncSessionLocal) -> DialogueEngine:
    """Wire the engine with its session store, record store and geocoder"""
    return DialogueEngine(
        record_store=RecordStore(session_factory),
        geocoder=ReverseGeocoder(),
        sessions=SessionStore(idle_timeout_seconds=settings.SESSION_IDLE_TIMEOUT_SECONDS),
    )


async def _sweep_sessions(sessions: SessionStore, interval_seconds: int) -> None:
    """Periodically drop idle sessions that nobody read again"""
    while True:
        await asyncio.sleep(interval_seconds)
        sessions.purge_expired()


@app.on_event("startup")
async def startup() -> None:
    """Initialize database tables and the conversation engine on startup"""
    logger.info("Starting application", extra_data={"app_name": settings.APP_NAME})
    await init_db()
    logger.info("Database tables initialized")

    dialogue_engine = build_dialogue_engine()
    app.state.dialogue_engine = dialogue_engine
    app.state.record_store = dialogue_engine.record_store
    app.state.session_sweeper = None

    if settings.SESSION_SWEEP_INTERVAL_SECONDS > 0:
        app.state.session_sweeper = asyncio.create_task(
            _sweep_sessions(dialogue_engine.sessions, settings.SESSION_SWEEP_INTERVAL_SECONDS)
        )
        logger.info(
            "Session sweeper started",
            extra_data={"interval_seconds": settings.SESSION_SWEEP_INTERVAL_SECONDS},
        )


@app.on_event("shutdown")
async def shutdown() -> None:
    """Cleanup on shutdown"""
    logger.info("Shutting down application")
    sweeper = getattr(app.state, "session_sweeper", None)
    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
    # Release pooled connections
    await engine.dispose()
    logger.info("Database connections disposed")


@app.get(
    "/health",
    summary="Liveness Probe",
    description=(
        "Lightweight check that the process is up and responding. "
        "Does not check external dependencies."
    ),
    tags=["Health"],
)
async def health_check() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "healthy"}


@app.get(
    "/health/ready",
    summary="Readiness Probe",
    description=(
        "Checks the database and the outbound circuits. Returns status=healthy "
        "when everything is ok, or status=degraded with the failing check."
    ),
    responses={
        200: {
            "description": "All dependencies ok",
            "content": {
                "application/json": {
                    "example": {"status": "healthy", "db": "ok", "whatsapp": "ok", "geocoder": "ok"}
                }
            },
        },
        503: {"description": "At least one dependency unavailable"},
    },
    tags=["Health"],
)
async def readiness_check() -> JSONResponse:
    """Readiness probe."""
    from constituent_bot.domain.services.health_service import check_readiness

    result = await check_readiness()
    status_code = 200 if result["status"] == "healthy" else 503
    return JSONResponse(content=result, status_code=status_code)


if __name__ == "__main__":
    import uvicorn

    # log_config=None keeps the JSON handler installed by setup_logging
    uvicorn.run(
        "constituent_bot.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_config=None,
    )
