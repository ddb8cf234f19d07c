from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from preflight.config import settings
from preflight.middleware.bootstrap import BootstrapMiddleware
from preflight.routes.health import router as health_router
from preflight.routes.info import router as info_router
from preflight.runtime import Runtime, create_runtime

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.PrintLoggerFactory(),
)

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    if getattr(app.state, "runtime", None) is None:
        app.state.runtime = create_runtime(settings)
    log.info("starting", env=settings.app_env, config=settings.config_file)
    yield
    for handler in list(app.state.runtime.log.handlers):
        handler.close()
    log.info("shutdown")


def create_app(runtime: Runtime | None = None) -> FastAPI:
    app = FastAPI(title="Preflight", version="0.1.0", lifespan=lifespan)
    app.state.runtime = runtime

    app.add_middleware(BootstrapMiddleware)

    app.include_router(health_router)
    app.include_router(info_router)
    return app


app = create_app()
