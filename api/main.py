"""
Talent exchange API.

The app sits behind the platform gateway, which authenticates callers and
forwards their identity in headers (see ``api.dependencies``).
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import health
from api.routes.v1 import applications, candidates, companies, jobs, placements, proposals
from core.config import settings
from core.middleware import (
    ErrorHandlingMiddleware,
    StructuredLoggingMiddleware,
    setup_error_handlers,
    setup_logging,
)
from database.engine import close_db, init_db

setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)

logger = logging.getLogger(__name__)

# (module, path under the v1 prefix, OpenAPI tag)
V1_ROUTERS = (
    (jobs, "jobs", "Jobs"),
    (companies, "companies", "Companies"),
    (candidates, "candidates", "Candidates"),
    (applications, "applications", "Applications"),
    (proposals, "proposals", "Proposals"),
    (placements, "placements", "Placements"),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        f"{settings.app_name} starting ({settings.app_env})",
        extra={"events_enabled": settings.events_enabled},
    )
    await init_db()
    try:
        yield
    finally:
        await close_db()
        logger.info(f"{settings.app_name} stopped")


def create_app() -> FastAPI:
    """
    Build the API application.

    Exception handlers render domain and store errors; the outer
    ErrorHandlingMiddleware only sees what escapes them. Starlette runs
    middleware in reverse registration order, so CORS is outermost.
    """
    app = FastAPI(
        title=settings.app_name,
        description="Recruiting marketplace: sourcing, proposals, placements and fee splits",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    setup_error_handlers(app)

    app.add_middleware(ErrorHandlingMiddleware, debug=settings.debug)
    app.add_middleware(
        StructuredLoggingMiddleware,
        log_request_body=settings.log_request_body,
        max_body_size=settings.log_max_body_size,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*", settings.caller_header, settings.organization_header],
    )

    app.include_router(health.router, tags=["Health"])
    for module, path, tag in V1_ROUTERS:
        app.include_router(
            module.router, prefix=f"{settings.api_v1_prefix}/{path}", tags=[tag]
        )
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
