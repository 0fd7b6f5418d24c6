# backend/services/audit_sink.py
import logging
from typing import Protocol

from services.log_models import LogEntry

AUDIT_LOGGER_NAME = "activity.audit"

_LEVEL_MAP = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class AuditSink(Protocol):
    """Last-resort trail written before any store is attempted."""

    def emit(self, entry: LogEntry) -> None:
        ...


class LoggerAuditSink:
    """Writes every recorded entry to the process log (console/stderr)."""

    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger(AUDIT_LOGGER_NAME)

    def emit(self, entry: LogEntry) -> None:
        self.logger.log(
            _LEVEL_MAP.get(entry.level, logging.INFO),
            f"[{entry.level.upper()}] {entry.source}: {entry.message}",
            extra={
                "log_id": entry.id,
                "log_source": entry.source,
                "user_email": entry.user_email,
                "details": entry.details,
            }
        )
