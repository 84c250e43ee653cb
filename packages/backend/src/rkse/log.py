"""Logging setup — structlog on top of stdlib logging.

Learn: Our own modules log through structlog with dotted event names
(relay.started, session.lagged, ...). Third-party libraries (uvicorn,
redis) log through stdlib logging, so we configure both with the same
level. Context bound with structlog.contextvars (e.g. session_id) is
merged into every event logged from that task.
"""

import logging
import sys

import structlog


def configure_logging(level: str = "info", json: bool = False) -> None:
    """Configure stdlib logging and structlog. Call once at process start."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if json:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        # ConsoleRenderer formats exceptions itself
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
