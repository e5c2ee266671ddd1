"""Application middleware and exception handlers."""

import time

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from tally.core.exceptions import LOGIN_URL

logger = structlog.get_logger()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log each incoming request with timing information."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        return response


def _wants_html(request: Request) -> bool:
    accept = request.headers.get("accept", "")
    return "text/html" in accept and "application/json" not in accept


async def http_exception_handler(request: Request, exc: HTTPException):
    """Render HTTP errors as JSON; send browsers with no session to the login redirect."""
    if exc.status_code == 401:
        if _wants_html(request):
            return RedirectResponse(LOGIN_URL, status_code=302)
        logger.info("Unauthenticated request", path=request.url.path)
        return JSONResponse(
            status_code=401,
            content={"detail": exc.detail, "login_url": LOGIN_URL},
            headers=exc.headers,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )
