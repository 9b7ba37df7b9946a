"""Inbox routing service — FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.adapters.persistence.database import engine
from app.config import settings
from app.domain.exceptions import RoutingError
from app.domain.value_objects.enums import ErrorKind
from app.infrastructure.api.routes_agents import router as agents_router
from app.infrastructure.api.routes_analytics import router as analytics_router
from app.infrastructure.api.routes_conversations import router as conversations_router
from app.infrastructure.api.routes_health import router as health_router

logger = logging.getLogger(__name__)

# "No agent available" and "you can't do that" must stay distinguishable.
ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.INVALID_STATE_TRANSITION: 409,
    ErrorKind.CAPACITY_EXCEEDED: 409,
    ErrorKind.NO_ELIGIBLE_AGENT: 422,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    try:
        async with engine.begin():
            pass  # Connection pool warmed up
        logger.info("Database connection established")
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Database not available on startup: %s", e)
    yield
    await engine.dispose()


async def routing_error_handler(request: Request, exc: RoutingError) -> JSONResponse:
    status = ERROR_STATUS.get(exc.error_kind, 400)
    logger.info("%s %s → %d %s: %s", request.method, request.url.path, status, exc.error_kind.value, exc)
    return JSONResponse(
        status_code=status,
        content={"detail": str(exc), "error_kind": exc.error_kind.value},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="Inbox Routing Engine",
        description="Capacity-aware agent assignment and conversation routing for the support inbox",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RoutingError, routing_error_handler)

    # Register routers
    app.include_router(health_router, prefix="/api")
    app.include_router(conversations_router, prefix="/api")
    app.include_router(agents_router, prefix="/api")
    app.include_router(analytics_router, prefix="/api")

    return app


app = create_app()
