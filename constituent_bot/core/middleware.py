"""
FastAPI Middleware

Request/response middleware for:
- Correlation ID injection
- Request logging (with phone numbers masked)
- Global error handling
- Security headers
- Rate limiting for the public message entry points
"""
import re
import time
from collections import deque
from typing import Callable, Iterable
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from constituent_bot.core.logging import (
    get_logger,
    set_correlation_id,
    get_correlation_id
)
from constituent_bot.core.exceptions import AppException, ErrorCode

logger = get_logger(__name__)

# Phone numbers in URL paths (10-12 digits, optional plus)
_PHONE_IN_PATH_RE = re.compile(r"(\+?\d{3})\d{4,6}(\d{3})")

# Caller-supplied IDs are echoed in headers and logs
_CORRELATION_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

# Probe traffic stays out of INFO logs
_QUIET_PATHS = frozenset({"/health", "/health/ready"})

# Inbound voter messages: the Meta webhook and the chat simulator
DEFAULT_LIMITED_PREFIXES = ("/webhook", "/api/webhook", "/api/chat")


def error_response(
    status_code: int,
    code: ErrorCode,
    message: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """JSON error envelope shared with ``AppException.to_dict``"""
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code.value, "message": message, "details": {}}},
        headers={"X-Correlation-ID": get_correlation_id(), **(headers or {})},
    )


def _mask_path_pii(path: str) -> str:
    """Mask the middle digits of phone numbers appearing in a URL path"""
    return _PHONE_IN_PATH_RE.sub(r"\1****\2", path)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Adds a correlation ID to every request and response"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        incoming = request.headers.get("X-Correlation-ID")
        if incoming and not _CORRELATION_ID_RE.match(incoming):
            incoming = None
        correlation_id = set_correlation_id(incoming)
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One line per request on completion, with phone numbers masked"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        safe_path = _mask_path_pii(request.url.path)
        base = {"method": request.method, "path": safe_path}

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {request.method} {safe_path}",
                extra_data={
                    **base,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                    "error": str(e),
                },
                exc_info=True
            )
            raise

        if response.status_code >= 400:
            log = logger.warning
        elif request.url.path in _QUIET_PATHS:
            log = logger.debug
        else:
            log = logger.info
        log(
            f"{request.method} {safe_path} -> {response.status_code}",
            extra_data={
                **base,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                "client_host": request.client.host if request.client else None,
            }
        )
        return response


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    logger.warning(
        f"Application exception: {exc.error_code.value}",
        extra_data={
            "error_code": exc.error_code.value,
            "message": exc.message,
            "details": exc.details,
            "path": _mask_path_pii(request.url.path),
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers={"X-Correlation-ID": get_correlation_id()}
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unexpected errors: full detail in the log, a generic envelope to the caller"""
    logger.error(
        f"Unhandled exception: {type(exc).__name__}",
        extra_data={
            "exception_type": type(exc).__name__,
            "message": str(exc),
            "path": _mask_path_pii(request.url.path),
        },
        exc_info=True
    )
    return error_response(500, ErrorCode.INTERNAL_ERROR, "An unexpected error occurred")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to every response.

    HSTS and CSP upgrade-insecure-requests are skipped in DEBUG so local
    development over plain HTTP keeps working.
    """

    def __init__(self, app: FastAPI, *, debug: bool = False) -> None:
        super().__init__(app)
        self._debug = debug

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        if not self._debug:
            response.headers["Content-Security-Policy"] = "upgrade-insecure-requests"
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


class WebhookRateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding-window limit per client IP on the message entry points.

    Once ``max_requests`` requests from one IP fall inside ``window_seconds``,
    further requests get 429 with Retry-After until the window slides.
    """

    def __init__(
        self,
        app: FastAPI,
        *,
        max_requests: int = 100,
        window_seconds: int = 60,
        limited_prefixes: Iterable[str] = DEFAULT_LIMITED_PREFIXES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(app)
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._limited_prefixes = tuple(limited_prefixes)
        self._clock = clock
        self._requests: dict[str, deque[float]] = {}

    def _cleanup_window(self, ip: str, now: float) -> None:
        """Drop timestamps outside the window, and the IP entry once empty"""
        cutoff = now - self._window_seconds
        recent = deque(ts for ts in self._requests.get(ip, ()) if ts >= cutoff)
        if recent:
            self._requests[ip] = recent
        else:
            self._requests.pop(ip, None)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if not path.startswith(self._limited_prefixes):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = self._clock()
        self._cleanup_window(client_ip, now)

        hits = self._requests.setdefault(client_ip, deque())
        if len(hits) >= self._max_requests:
            logger.warning(
                "Rate limit exceeded",
                extra_data={
                    "client_ip": client_ip,
                    "path": _mask_path_pii(path),
                    "limit": self._max_requests,
                    "window_seconds": self._window_seconds,
                },
            )
            return error_response(
                429,
                ErrorCode.RATE_LIMITED,
                "Too many requests. Please try again later.",
                headers={"Retry-After": str(self._window_seconds)},
            )

        hits.append(now)
        return await call_next(request)


def setup_middleware(app: FastAPI) -> None:
    """Register middleware; the last one added is the outermost.

    Request order: SecurityHeaders -> CorrelationId -> RequestLogging -> RateLimit -> app
    """
    from constituent_bot.core.config import settings

    app.add_middleware(
        WebhookRateLimitMiddleware,
        max_requests=settings.WEBHOOK_RATE_LIMIT_MAX_REQUESTS,
        window_seconds=settings.WEBHOOK_RATE_LIMIT_WINDOW_SECONDS,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, debug=settings.DEBUG)


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
