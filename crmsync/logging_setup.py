"""
Structured JSON logging with structlog.
Every remote call and resolution step logs one JSON line with its own event name.
Emails are the contact key and end up in event fields and remote error bodies,
so a processor masks them before rendering.
"""

import logging
import structlog
from crmsync.config import settings
from crmsync.utils import maybe_redact_pii

_configured = False


def redact_pii(logger, method_name, event_dict):
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = maybe_redact_pii(value)
    return event_dict


def configure_logging(level: int | None = None):
    global _configured
    if _configured:
        return
    if level is None:
        level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_pii,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )
    _configured = True


def get_logger(component: str | None = None):
    # Initial values keep the proxy lazy, so module-level loggers pick up configure_logging().
    if component:
        return structlog.get_logger(settings.SERVICE_NAME, component=component)
    return structlog.get_logger(settings.SERVICE_NAME)
