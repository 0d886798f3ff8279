import logging
import sys

import structlog

from app.config import settings

QUIET_LOGGERS = {
    # slack_sdk logs every request body at DEBUG, tokens included
    "slack_sdk": logging.WARNING,
    "asyncio": logging.WARNING,
}


def setup_logging() -> None:
    log_level = logging.DEBUG if settings.debug else logging.INFO

    logging.root.handlers = []

    renderer = (
        structlog.processors.JSONRenderer()
        if not settings.debug
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
        ],
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)

    for logger_name in ["_granian", "granian.access", "fastapi", "slack_sdk"]:
        logger = logging.getLogger(logger_name)
        logger.propagate = False
        logger.handlers = []
        logger.addHandler(handler)
        logger.setLevel(log_level)

    for logger_name, level in QUIET_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(level)
