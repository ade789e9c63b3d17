"""Middleware and exception handlers for the FastAPI application"""
import logging
import time

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.security import (
    SESSION_COOKIE, check_rate_limit, get_client_identifier, rate_limit_group, security_logger,
)

logger = logging.getLogger(__name__)
api_logger = logging.getLogger("api")


def get_allowed_origins():
    """Get list of allowed CORS origins"""
    allowed_origins = [settings.FRONTEND_URL]
    if settings.ENVIRONMENT == "development":
        allowed_origins.extend([
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173"
        ])
    return allowed_origins


def setup_cors_middleware(app: FastAPI):
    """Setup CORS middleware for FastAPI app"""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_allowed_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


async def request_logging_middleware(request: Request, call_next):
    """Log every API call with its status and duration"""
    start = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        path = request.url.path
        if path.startswith("/api/"):
            duration_ms = (time.perf_counter() - start) * 1000
            api_logger.info(
                f"{request.method} {path} -> {status_code} ({duration_ms:.0f}ms)",
                extra={"method": request.method, "path": path, "status_code": status_code}
            )


def error_envelope(status_code: int, message: str, error: str = None) -> JSONResponse:
    """Every error response has the shape {success: false, message, error}"""
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "error": error or message},
    )


async def rate_limit_middleware(request: Request, call_next):
    """429 once a client spends its budget on the auth, tts or images routes"""
    path = request.url.path
    group = rate_limit_group(path)
    if group is None or request.method == "OPTIONS":
        return await call_next(request)

    identifier = get_client_identifier(request, request.cookies.get(SESSION_COOKIE))
    if not check_rate_limit(identifier, group):
        security_logger.warning(f"Rate limit exceeded - Identifier: {identifier}, Path: {path}")
        response = error_envelope(429, "Too many requests. Please try again later.", "Rate limit exceeded")
        response.headers["Retry-After"] = str(settings.RATE_LIMIT_WINDOW_SECONDS)
        return response
    return await call_next(request)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Routes pass either a message string or {"message": ..., "error": ...}
    if isinstance(exc.detail, dict):
        response = error_envelope(exc.status_code, exc.detail.get("message", "Request failed"),
                                  exc.detail.get("error"))
    else:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        response = error_envelope(exc.status_code, message)
    if getattr(exc, "headers", None):
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    return error_envelope(400, message, "Validation failed")


async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return error_envelope(500, "Internal server error")


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
