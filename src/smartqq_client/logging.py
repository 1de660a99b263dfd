"""Logging setup and the error record kept for poll and send failures."""

import logging
import sys
import traceback
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type

from .exceptions import (
    ConnectionError,
    InvalidResponseError,
    PreconditionError,
    ProtocolError,
    SendFailedError,
    SessionDesyncError,
    TransportError,
)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class LogLevel(str, Enum):
    """Logging level enumeration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# First match wins; SessionDesyncError must precede its base ProtocolError
_SEVERITY_BY_TYPE: Tuple[Tuple[Tuple[Type[BaseException], ...], LogLevel], ...] = (
    ((SessionDesyncError,), LogLevel.CRITICAL),
    ((PreconditionError, SendFailedError), LogLevel.WARNING),
    ((ConnectionError, TransportError, ProtocolError, InvalidResponseError), LogLevel.ERROR),
)


def severity_of(exception: BaseException) -> LogLevel:
    """Severity a reported error is logged and recorded with."""
    for types, level in _SEVERITY_BY_TYPE:
        if isinstance(exception, types):
            return level
    # Anything outside the client's own taxonomy is a bug
    return LogLevel.CRITICAL


class ErrorHandler:
    """
    Owns the ``smartqq_client`` logger and remembers reported errors.

    Errors arrive from the poll loop (context is the ``ExceptionOrigin`` value)
    and from rejected sends (context ``"send"``).
    """

    _instance: Optional["ErrorHandler"] = None

    def __new__(cls) -> "ErrorHandler":
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._initialized = True
        self.logger = logging.getLogger("smartqq_client")
        self.error_history: List[Dict[str, Any]] = []
        self.max_history = 1000
        self.log_level = LogLevel.INFO

        if not self.logger.handlers:
            console = logging.StreamHandler(sys.stdout)
            console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
            console.setLevel(logging.INFO)
            self.logger.addHandler(console)
        self.logger.setLevel(logging.DEBUG)

    def set_log_level(self, level: LogLevel) -> None:
        """Apply ``level`` to every handler; the logger itself stays at DEBUG."""
        self.log_level = LogLevel(level)
        for handler in self.logger.handlers:
            handler.setLevel(getattr(logging, self.log_level.value))

    def add_file_handler(self, log_file: str) -> None:
        """Also write everything, DEBUG included, to ``log_file`` (UTF-8)."""
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        self.logger.addHandler(file_handler)

    def handle_exception(self, exception: BaseException, context: Optional[str] = None) -> None:
        """
        Log ``exception`` at the severity of its category and record it.

        Args:
            exception: The reported error
            context: Where it was raised, e.g. ``"poll_io"`` or ``"send"``
        """
        severity = severity_of(exception)
        name = type(exception).__name__

        self.error_history.append(
            {
                "timestamp": datetime.now().isoformat(),
                "type": name,
                "message": str(exception),
                "context": context,
                "severity": severity.value,
                "traceback": "".join(
                    traceback.format_exception(type(exception), exception, exception.__traceback__)
                ),
            }
        )
        if len(self.error_history) > self.max_history:
            del self.error_history[0]

        if severity == LogLevel.CRITICAL and not isinstance(exception, SessionDesyncError):
            message = f"[{context}] Unexpected error: {name}: {exception}"
        else:
            message = f"[{context}] {name}: {exception}"
        self.logger.log(getattr(logging, severity.value), message)

    def get_error_history(
        self,
        count: int = 10,
        context: Optional[str] = None,
        severity: Optional[LogLevel] = None,
    ) -> List[Dict[str, Any]]:
        """
        Most recent recorded errors, oldest first.

        Args:
            count: Maximum number of entries (0 for all)
            context: Only errors reported from this context
            severity: Only errors of this severity
        """
        history = self.error_history
        if context is not None:
            history = [e for e in history if e["context"] == context]
        if severity is not None:
            history = [e for e in history if e["severity"] == LogLevel(severity).value]
        return history[-count:] if count else list(history)

    def clear_error_history(self) -> None:
        self.error_history.clear()


_error_handler = ErrorHandler()


def get_error_handler() -> ErrorHandler:
    """Get global error handler instance."""
    return _error_handler


def configure_logging(
    log_level: LogLevel = LogLevel.INFO, log_file: Optional[str] = None
) -> None:
    """
    Configure the ``smartqq_client`` logger.

    Args:
        log_level: Level for the console (and any existing) handlers
        log_file: Optional log file path
    """
    _error_handler.set_log_level(log_level)
    if log_file:
        _error_handler.add_file_handler(log_file)


def handle_exception(exception: BaseException, context: Optional[str] = None) -> None:
    """Log and record ``exception`` on the global error handler."""
    _error_handler.handle_exception(exception, context)
