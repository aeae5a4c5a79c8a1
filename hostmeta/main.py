from typing import Callable, Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from hostmeta.utils.logging_config import configure_logging, get_logger

# Configure logging first so all later imports use it
configure_logging()
logger = get_logger("hostmeta.api")

# Import settings AFTER logging is configured
from hostmeta.config.settings import Settings, settings  # noqa: E402
from hostmeta.routers import backend, core, frontend  # noqa: E402
from hostmeta.services.backend_client import BackendClient  # noqa: E402
from hostmeta.services.metadata_source import MetadataSource  # noqa: E402
from hostmeta.utils.meta import (  # noqa: E402
    REQUEST_ID_HEADER,
    assign_request_id,
    error_response,
    request_id_of,
)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and log it as a JSON line."""

    async def dispatch(self, request: Request, call_next):
        request_id = assign_request_id(request)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id

        logger.info(
            "API call",
            extra={
                "event_type": "api_call",
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "request_id": request_id,
            },
        )
        return response


def create_app(
    config: Settings,
    metadata_source_factory: Optional[Callable[[], MetadataSource]] = None,
    backend_transport: Optional[httpx.BaseTransport] = None,
) -> FastAPI:
    """Build the FastAPI app for the role named in ``config``.

    ``metadata_source_factory`` and ``backend_transport`` replace the real
    metadata server lookups and backend network calls (tests, local runs).
    """
    app = FastAPI(title=f"hostmeta-{config.role}", version=config.version)

    if metadata_source_factory is None:

        def metadata_source_factory() -> MetadataSource:
            return MetadataSource(host=config.metadata_host, timeout=config.metadata_timeout)

    app.state.settings = config
    app.state.metadata_source_factory = metadata_source_factory
    app.state.backend_client = None

    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(core.router)

    if config.role == "frontend":
        app.state.backend_client = BackendClient(
            base_url=config.backend_service_url,
            timeout=config.request_timeout,
            transport=backend_transport,
        )
        app.include_router(frontend.router)
    else:
        app.include_router(backend.router)

    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info(
            "hostmeta startup complete",
            extra={
                "event_type": "startup",
                "role": config.role,
                "version": config.version,
                "backend_url": config.backend_service_url if config.role == "frontend" else None,
            },
        )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        if app.state.backend_client is not None:
            app.state.backend_client.close()
        logger.info("hostmeta shutdown", extra={"event_type": "shutdown", "role": config.role})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Ensures all HTTP errors use the standard ErrorResponse wrapper."""
        logger.error(
            "HTTP error",
            extra={
                "event_type": "http_error",
                "status_code": exc.status_code,
                "path": request.url.path,
                "reason": exc.detail,
            },
        )
        return error_response(
            config,
            status_code=exc.status_code,
            code=f"http_{exc.status_code}",
            message=exc.detail or "HTTP error",
            request_id=request_id_of(request),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        """Catch-all handler for unexpected exceptions.

        Prevents raw stack traces from leaking to clients and keeps error
        responses consistent.
        """
        logger.error(
            "Unhandled exception",
            exc_info=True,
            extra={
                "event_type": "unhandled_exception",
                "path": request.url.path,
                "request_id": request_id_of(request),
            },
        )
        return error_response(
            config,
            status_code=500,
            code="internal_error",
            message="An unexpected error occurred.",
            request_id=request_id_of(request),
        )

    return app


app = create_app(settings)


def run() -> None:
    """Serve the app configured from the environment."""
    uvicorn.run(app, host="0.0.0.0", port=settings.listen_port, log_config=None)


if __name__ == "__main__":
    run()
