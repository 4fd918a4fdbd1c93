"""structlog configuration.

Learn: Every module does `logger = structlog.get_logger()` and logs
events as dotted names with keyword context:

    logger.info("auth.login_succeeded", account_id=7)

configure_logging() runs once at startup. Context bound by the request
ID middleware (request_id) is merged into every line. Production gets
one JSON object per line; development gets the colored console view.
Tokens and passwords are never passed to the logger.
"""

import logging

import structlog


def configure_logging(json_logs: bool = False, debug: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
