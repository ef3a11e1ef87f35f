"""FastAPI application entry point."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from .api.routes import health, orders, permissions, riders, voids
from .config import settings
from .errors import DispatchError


def _cors_headers(origin: str | None) -> dict[str, str]:
    """CORS headers for a request; a disallowed origin gets no Allow-Origin."""
    headers = {"Access-Control-Allow-Headers": ", ".join(settings.cors_allowed_headers)}
    allowed = settings.cors_allowed_origins
    if not allowed or "*" in allowed:
        headers["Access-Control-Allow-Origin"] = "*"
    elif origin in allowed:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Vary"] = "Origin"
    return headers


def _error_response(message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": message},
        headers=headers,
    )


def create_app() -> FastAPI:
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(
        title=settings.app_name,
        root_path="",
    )

    @app.middleware("http")
    async def cors(request: Request, call_next):
        # Every OPTIONS request is treated as a preflight.
        headers = _cors_headers(request.headers.get("origin"))
        if request.method == "OPTIONS":
            return Response(status_code=status.HTTP_200_OK, headers=headers)
        response = await call_next(request)
        response.headers.update(headers)
        return response

    @app.exception_handler(DispatchError)
    async def handle_dispatch_error(request: Request, exc: DispatchError) -> JSONResponse:
        logging.warning(f"{request.method} {request.url.path} failed ({type(exc).__name__}): {exc}")
        return _error_response(str(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
            for error in exc.errors()
        )
        logging.warning(f"{request.method} {request.url.path} rejected invalid request: {details}")
        return _error_response(f"Invalid request: {details}")

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        # Runs outside the CORS middleware, so the headers are added here.
        logging.exception(f"{request.method} {request.url.path} raised an unexpected error: {exc}")
        return _error_response(str(exc), headers=_cors_headers(request.headers.get("origin")))

    @app.get("/")
    def root():
        return {
            "service": settings.app_name,
            "status": "running",
            "api_prefix": settings.api_prefix,
            "health": f"{settings.api_prefix}/health",
            "docs": "/docs",
        }

    app.include_router(health.router, prefix=settings.api_prefix)
    app.include_router(orders.router, prefix=settings.api_prefix)
    app.include_router(riders.router, prefix=settings.api_prefix)
    app.include_router(permissions.router, prefix=settings.api_prefix)
    app.include_router(voids.router, prefix=settings.api_prefix)
    return app


app = create_app()
