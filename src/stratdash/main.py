"""FastAPI application factory.

Learn: App factory pattern: create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (logging, rate limiter,
database engine). Middleware, CORS, exception handlers and routers are
all registered here.

Error mapping (anything a route doesn't turn into an HTTPException
itself):
- request validation (missing/empty fields) → 400
- any other unhandled exception → 500, generic body, full detail logged
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stratdash import __version__
from stratdash.api import api_router
from stratdash.config import settings
from stratdash.logs import configure_logging
from stratdash.middleware.errors import INTERNAL_ERROR, UnhandledErrorMiddleware
from stratdash.middleware.rate_limit import LoginRateLimitMiddleware, build_rate_limiter
from stratdash.middleware.request_id import RequestIdMiddleware
from stratdash.middleware.security import SecurityHeadersMiddleware

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` at
    shutdown. The rate limiter is built in create_app (not here) so
    that test clients that skip lifespan still have one.
    """
    logger.info(
        "stratdash.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
        rate_limit_backend=settings.rate_limit_backend,
    )

    yield

    logger.info("stratdash.shutdown")
    await app.state.login_limiter.close()

    from stratdash.db.engine import engine
    await engine.dispose()


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        err for err in exc.errors()
        if err.get("loc") and err.get("type") in ("missing", "string_too_short")
    ]
    # loc ("body",) means the whole body is absent, not a field
    if any(tuple(err["loc"]) == ("body",) for err in errors):
        return JSONResponse(status_code=400, content={"detail": "Missing request body"})

    missing = sorted({str(err["loc"][-1]) for err in errors})
    if missing:
        detail = f"Missing required fields: {', '.join(missing)}"
    else:
        detail = "Invalid request body"
    return JSONResponse(status_code=400, content={"detail": detail})


async def unhandled_error_handler(request: Request, exc: Exception):
    """Last resort for exceptions raised by the middleware stack itself."""
    logger.exception(
        "http.unhandled_error",
        method=request.method,
        path=request.url.path,
        error=str(exc),
    )
    return JSONResponse(status_code=500, content={"detail": INTERNAL_ERROR})


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    configure_logging(json_logs=settings.log_json, debug=settings.debug)

    app = FastAPI(
        title="stratdash",
        description="Business-intelligence dashboard API: operator auth and sessions",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.login_limiter = build_rate_limiter(settings)

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → LoginRateLimit → CORS → UnhandledError → handler
    app.add_middleware(UnhandledErrorMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoginRateLimitMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: stratdash.main:app)
app = create_app()
