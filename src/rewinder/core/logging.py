# src/rewinder/core/logging.py
"""Structured logging for Rewinder.

Version writes, rewinds and prune runs log through structlog. Host
applications that log with the stdlib ``logging`` module get the same
rendering, because configure_logging installs a ProcessorFormatter on the
root handler.

Log lines about one tracked instance carry ``record_type``, ``record_id``
and ``record_id_kind`` fields. Use instance_logger to bind them once
instead of repeating them at every call site.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

from rewinder.contracts.identity import RecordIdentity

# Statement echo from the host's engine would drown out history events
_SQLALCHEMY_LOGGERS: tuple[str, ...] = (
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
)


def _drop_formatter_bookkeeping(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Strip the _record / _from_structlog keys ProcessorFormatter adds."""
    event_dict.pop("_record", None)
    event_dict.pop("_from_structlog", None)
    return event_dict


def _pre_chain() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]


def _renderers(json_output: bool) -> list[Any]:
    if json_output:
        return [
            _drop_formatter_bookkeeping,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [_drop_formatter_bookkeeping, structlog.dev.ConsoleRenderer(colors=True)]


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
) -> None:
    """Route structlog and stdlib logging to stderr in one format.

    Args:
        json_output: One JSON object per line instead of console output
        level: Root log level (DEBUG, INFO, WARNING, ERROR)
    """
    log_level = getattr(logging, level.upper())
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfigurable at runtime (CLI flags, tests)
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ProcessorFormatter(processors=_renderers(json_output), foreign_pre_chain=pre_chain))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    for name in _SQLALCHEMY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Module logger (pass __name__)."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


def instance_logger(
    logger: structlog.stdlib.BoundLogger,
    record_type: str,
    identity: RecordIdentity,
) -> structlog.stdlib.BoundLogger:
    """Bind the instance a history operation works on.

    Example:
        log = instance_logger(logger, "invoice", RecordIdentity.from_key(42))
        log.info("Moved record to version", version=3)
    """
    return logger.bind(record_type=record_type, record_id=identity.value, record_id_kind=identity.kind.value)
