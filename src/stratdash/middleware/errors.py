"""Unhandled-exception middleware.

Learn: Starlette runs handlers registered for plain `Exception` in
ServerErrorMiddleware, outside every middleware added with
add_middleware. A 500 produced there skips the request-ID and
security-header middleware. Catching here, innermost, turns the
exception into an ordinary response that the rest of the stack
decorates and logs like any other.
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = structlog.get_logger()

INTERNAL_ERROR = "Internal server error"


class UnhandledErrorMiddleware(BaseHTTPMiddleware):
    """Map any exception escaping a route to a generic 500."""

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.exception(
                "http.unhandled_error",
                method=request.method,
                path=request.url.path,
                error=str(e),
            )
            return JSONResponse(status_code=500, content={"detail": INTERNAL_ERROR})
