from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.routing import APIRouter
from loguru import logger

from workhive.server.db.engine import create_engine, create_session_factory
from workhive.server.errors import install_error_handlers
from workhive.server.log import setup_logging
from workhive.server.notify import build_notifier
from workhive.server.ratelimit import build_rate_limiter
from workhive.server.settings import get_settings
from workhive.server.storage import LocalBlobStore


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # -- Startup ---------------------------------------------------------------
    settings = get_settings()
    setup_logging(settings.log_level, log_sql=settings.log_sql)

    if settings.jwt_secret is None:
        settings.resolve_jwt_secret()
        logger.warning("No WORKHIVE_JWT_SECRET set -- generated a per-process secret, tokens will not survive restarts")

    logger.info("Workhive starting (host={}, port={})", settings.host, settings.port)
    logger.info("Data root: {}", settings.data_root)

    # -- Initialise state fields (always present, possibly None) ----------------
    _app.state.db_engine = None
    _app.state.db_session_factory = None

    # -- Database --------------------------------------------------------------
    if settings.database_url:
        engine = create_engine(settings.database_url)
        _app.state.db_engine = engine
        _app.state.db_session_factory = create_session_factory(engine)
        logger.info("PostgreSQL: connected (pool_size=5, max_overflow=10)")
    else:
        logger.warning("WORKHIVE_DATABASE_URL not set -- database features disabled")

    # -- Attachments, notifications, rate limits -------------------------------
    _app.state.blob_store = LocalBlobStore(settings.data_root)
    _app.state.notifier = build_notifier(settings)
    _app.state.rate_limiter = build_rate_limiter(settings)
    if settings.smtp_host:
        logger.info("Notifications: SMTP via {}:{}", settings.smtp_host, settings.smtp_port)
    else:
        logger.info("Notifications: log only (WORKHIVE_SMTP_HOST unset)")

    yield

    # -- Shutdown --------------------------------------------------------------
    logger.info("Workhive shutting down")

    # Dispose DB engine (closes all pooled connections).
    if _app.state.db_engine is not None:
        await _app.state.db_engine.dispose()
        logger.info("PostgreSQL: disposed")


app = FastAPI(title="Workhive", lifespan=lifespan)
install_error_handlers(app)

# ---------------------------------------------------------------------------
# API router -- all backend endpoints live under /api
# ---------------------------------------------------------------------------
api = APIRouter(prefix="/api")


@api.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


# -- Routers -----------------------------------------------------------------
from workhive.server.routers.activity import router as activity_router  # noqa: E402
from workhive.server.routers.attachments import router as attachments_router  # noqa: E402
from workhive.server.routers.comments import router as comments_router  # noqa: E402
from workhive.server.routers.labels import router as labels_router  # noqa: E402
from workhive.server.routers.members import router as members_router  # noqa: E402
from workhive.server.routers.projects import router as projects_router  # noqa: E402
from workhive.server.routers.tasks import router as tasks_router  # noqa: E402
from workhive.server.routers.users import router as users_router  # noqa: E402
from workhive.server.routers.workspaces import router as workspaces_router  # noqa: E402

api.include_router(users_router)
api.include_router(workspaces_router)
api.include_router(members_router)
api.include_router(labels_router)
api.include_router(projects_router)
api.include_router(tasks_router)
api.include_router(comments_router)
api.include_router(attachments_router)
api.include_router(activity_router)

app.include_router(api)
