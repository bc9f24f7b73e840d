import logging
import sys
from typing import Optional

import structlog

SERVICE_NAME = "sheetsync"

# chatty at INFO; their own warnings still come through
QUIET_LOGGERS = ("celery", "kombu", "amqp", "openpyxl", "multipart")


def _add_service(logger, method_name, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(env: str = "dev", level: Optional[str] = None) -> None:
    """Set up structlog for the API and the worker.

    Values bound with ``job_context`` are merged into every event.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        _add_service,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if env == "prod":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=env == "dev")

    structlog.configure(
        processors=shared_processors + [renderer],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if level is None:
        level = "DEBUG" if env == "test" else "INFO"
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level.upper())
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def job_context(**values):
    """Bind job identifiers (``job_id``, ``template_id``) to every log event inside the block."""
    return structlog.contextvars.bound_contextvars(**values)


logger = structlog.get_logger()
