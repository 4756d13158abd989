from __future__ import annotations
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
import structlog
from motoverse.config import Settings, settings as default_settings
from motoverse.db import Database
from motoverse.logging_setup import configure_logging
from motoverse.routes.system import router as system_router
from motoverse.routes.auth import router as auth_router
from motoverse.routes.feed import router as feed_router
from motoverse.routes.simracing import router as simracing_router
from motoverse.routes.follows import router as follows_router

log = structlog.get_logger()

def create_app(cfg: Settings | None = None) -> FastAPI:
    cfg = cfg or default_settings
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        log.info("startup", env=cfg.environment, version=cfg.app_version, git_sha=cfg.git_sha)
        if cfg.db_create_all:
            await app.state.db.create_all()
        yield
        # Shutdown
        await app.state.db.dispose()
        log.info("shutdown")

    app = FastAPI(
        title=f"{cfg.app_display_name} API",
        version=cfg.app_version,
        lifespan=lifespan,
        description=f"{cfg.app_display_name} API: activity feed, sim-racing leaderboards and the car catalog",
    )
    app.state.settings = cfg
    app.state.db = Database(cfg.database_url, echo=cfg.db_echo)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if cfg.environment == "dev" else cfg.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(system_router)
    app.include_router(auth_router)
    app.include_router(feed_router)
    app.include_router(simracing_router)
    app.include_router(follows_router)

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        rid = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = rid
        structlog.contextvars.bind_contextvars(request_id=rid)
        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        structlog.contextvars.clear_contextvars()
        return response

    return app

app = create_app()
