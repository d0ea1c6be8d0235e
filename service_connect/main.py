from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from time import perf_counter

from fastapi import FastAPI, Request
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response

from service_connect import __version__
from service_connect.api.v1.router import api_router
from service_connect.core.errors import add_exception_handlers, success_response
from service_connect.core.logging import configure_logging
from service_connect.core.settings import get_settings
from service_connect.db.session import init_db

settings = get_settings()
configure_logging(debug=settings.debug)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup started")
    init_db()
    logger.info("Application startup completed")
    yield
    logger.info("Application shutdown completed")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=settings.cors_origins,
                allow_credentials=True,
                allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
                allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
            )
        ],
    )
    logger.debug("CORS configured for origins: %s", settings.cors_origins)

    if settings.debug:
        @app.middleware("http")
        async def request_debug_logger(request: Request, call_next) -> Response:
            start = perf_counter()
            response = await call_next(request)
            duration_ms = (perf_counter() - start) * 1000
            logger.debug(
                "HTTP request completed method=%s path=%s status=%s duration_ms=%.2f",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
            )
            return response

    add_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_v1_prefix)

    @app.get("/health")
    def health_check():
        return success_response(
            {"status": "ok", "version": __version__, "timestamp": datetime.now(UTC).isoformat()}
        )

    return app


app = create_app()
