import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.api.v1.api import router as api_router
from app.config import Settings, settings as default_settings
from app.core.clock import Clock, utcnow
from app.database import build_engine, build_session_factory, run_migrations
from app.services.cost import CostTable
from app.services.notifier import Notifier

logger = logging.getLogger(__name__)


def create_app(
    app_settings: Settings | None = None,
    *,
    http_client: httpx.Client | None = None,
    notifier: Notifier | None = None,
    clock: Clock = utcnow,
) -> FastAPI:
    """
    Build the LoopGate application.

    The engine, upstream HTTP client, notifier and clock are created here
    and kept on app.state. Tests pass their own client, notifier and clock.
    """
    app_settings = app_settings or default_settings
    engine = build_engine(app_settings.database_url)
    owns_client = http_client is None
    owns_notifier = notifier is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app_settings.AUTO_MIGRATE:
            run_migrations(engine)
            logger.info("Database schema up to date")
        if app_settings.COST_CONFIG_PATH:
            db = app.state.session_factory()
            try:
                CostTable(db).load_yaml(app_settings.COST_CONFIG_PATH)
            finally:
                db.close()
        yield
        if owns_notifier:
            app.state.notifier.shutdown()
        if owns_client:
            app.state.http_client.close()
        engine.dispose()

    app = FastAPI(title="LoopGate API", version="1.0.0", lifespan=lifespan)

    app.state.settings = app_settings
    app.state.clock = clock
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.http_client = http_client or httpx.Client(
        timeout=app_settings.UPSTREAM_TIMEOUT_SECONDS,
        follow_redirects=False,
    )
    app.state.notifier = notifier or Notifier(
        max_workers=app_settings.NOTIFY_MAX_WORKERS,
        timeout=app_settings.NOTIFY_TIMEOUT_SECONDS,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        # The per-request DB session is rolled back when get_db closes it
        logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    # Health check route
    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    # Include v1 routers
    app.include_router(api_router, prefix="/api/v1")
    return app


app = create_app()
