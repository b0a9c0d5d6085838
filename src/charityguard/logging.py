"""ABOUTME: Structured logging setup shared by the web app and the CLI
ABOUTME: Routes stdlib logging through structlog, masking one-time codes and tokens before rendering"""

import logging.config
from typing import Any

import structlog

from charityguard import config

# event_dict keys whose values must never reach a log handler
SECRET_KEYS = frozenset({"code", "otp", "token", "authorization", "session_id"})


def mask_secret(value: Any) -> str:
    """Keep the first four characters of a secret so log lines can still be correlated."""
    text = str(value)
    if len(text) <= 8:
        return "***"
    return f"{text[:4]}***"


def redact_secrets(_logger: Any, _method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in SECRET_KEYS.intersection(event_dict):
        if event_dict[key] is not None:
            event_dict[key] = mask_secret(event_dict[key])
    return event_dict


timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)
pre_chain = [
    structlog.stdlib.add_log_level,
    timestamper,
    redact_secrets,
]

handler_to_use = "console" if config.is_development() else "json"

logging.config.dictConfig({
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "console": {
            "()": structlog.stdlib.ProcessorFormatter,
            "processor": structlog.dev.ConsoleRenderer(colors=False),
            "foreign_pre_chain": pre_chain,
        },
        "json": {
            "()": structlog.stdlib.ProcessorFormatter,
            "processor": structlog.processors.JSONRenderer(ensure_ascii=False),
            "foreign_pre_chain": pre_chain,
        },
    },
    "handlers": {
        "json": {
            "level": "INFO",
            "class": "logging.StreamHandler",
            "formatter": "json",
        },
        "console": {
            "level": "DEBUG",
            "class": "logging.StreamHandler",
            "formatter": "console",
        },
    },
    "loggers": {
        "": {
            "handlers": [handler_to_use],
            "level": "INFO",
            "propagate": True,
        },
    },
})

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        timestamper,
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)


def logging_setup(log_level: int = logging.INFO) -> None:
    """Apply the configured level; LOG_ALL_REQUESTS also turns on werkzeug and SQL statement logging."""
    handler = logging.getHandlerByName(handler_to_use)
    assert handler is not None
    handler.setLevel(log_level)
    logging.getLogger().setLevel(log_level)

    if config.should_log_all_requests():
        logging.getLogger().setLevel(logging.DEBUG)
        logging.getLogger("werkzeug").setLevel(logging.DEBUG)
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
