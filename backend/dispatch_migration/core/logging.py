from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone

import structlog
from pythonjsonlogger import jsonlogger


class MigrationJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that lifts the structlog ``event`` into ``message``."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        if log_record.get("level"):
            log_record["level"] = log_record["level"].upper()
        else:
            log_record["level"] = record.levelname
        if log_record.get("event"):
            log_record["message"] = log_record.pop("event")


_SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
]


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Route structlog through stdlib logging with a single stderr handler.

    The last structlog processor MUST be ``wrap_for_formatter`` so the stdlib
    handler receives the event dict.
    """
    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.dev.set_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    if json_logs:
        handler.setFormatter(
            MigrationJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
        )
    else:
        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                foreign_pre_chain=_SHARED_PROCESSORS,
                processors=[
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    structlog.dev.ConsoleRenderer(colors=False),
                ],
            )
        )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())
    # sqlalchemy.engine is noisy at INFO; SQL_ECHO controls it separately
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
