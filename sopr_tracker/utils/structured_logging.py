"""
Structured logging with correlation IDs.

Each token search runs under its own correlation ID so the log lines of
concurrent provider calls can be traced back to the search that issued them.
"""

import asyncio
import functools
import json
import logging
import logging.handlers
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

# Context variable for correlation ID
correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

RESERVED_RECORD_FIELDS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'correlation_id', 'taskName'
}


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id.get() or "-"
        return True


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs one JSON object per log record.

    Extra fields passed through ``extra=`` are included under "extra".
    """

    def __init__(
        self,
        include_extra_fields: bool = True,
        timestamp_format: str = "%Y-%m-%dT%H:%M:%S.%fZ"
    ):
        super().__init__()
        self.include_extra_fields = include_extra_fields
        self.timestamp_format = timestamp_format

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).strftime(self.timestamp_format),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "correlation_id": getattr(record, 'correlation_id', '-')
        }

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        if self.include_extra_fields:
            extra_fields = {}
            for key, value in record.__dict__.items():
                if key in RESERVED_RECORD_FIELDS:
                    continue
                try:
                    json.dumps(value)
                    extra_fields[key] = value
                except (TypeError, ValueError):
                    extra_fields[key] = str(value)

            if extra_fields:
                log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class LoggingManager:
    """
    Centralized logging configuration.

    Sets up console and optional rotating file output, in plain text or
    structured JSON, with correlation IDs on every record.
    """

    def __init__(self):
        self._configured = False
        self._log_handlers: Dict[str, logging.Handler] = {}

    @property
    def is_configured(self) -> bool:
        return self._configured

    def setup_logging(
        self,
        log_level: str = "INFO",
        log_file: Optional[str] = None,
        max_file_size: int = 10 * 1024 * 1024,  # 10MB
        backup_count: int = 5,
        console_output: bool = True,
        structured_format: bool = False,
        force: bool = False
    ) -> None:
        """
        Set up logging configuration.

        Args:
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_file: Path to log file (optional)
            max_file_size: Maximum size of log file before rotation
            backup_count: Number of backup files to keep
            console_output: Whether to output logs to the console (stderr)
            structured_format: Whether to use structured JSON format
            force: Reconfigure even if logging was already set up
        """
        if self._configured and not force:
            return

        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, log_level.upper()))

        for handler in self._log_handlers.values():
            root_logger.removeHandler(handler)
        self._log_handlers.clear()

        if structured_format:
            formatter: logging.Formatter = StructuredFormatter()
        else:
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] %(message)s'
            )

        if console_output:
            # stdout carries the report itself
            console_handler = logging.StreamHandler(sys.stderr)
            self._install_handler('console', console_handler, formatter)

        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=max_file_size,
                backupCount=backup_count,
                encoding='utf-8'
            )
            self._install_handler('file', file_handler, formatter)

        self._configure_logger_levels()
        self._configured = True

        logging.getLogger(__name__).debug(
            "Logging configuration completed",
            extra={
                "log_level": log_level,
                "log_file": log_file,
                "structured_format": structured_format
            }
        )

    def shutdown(self) -> None:
        """Remove and close the handlers installed by setup_logging."""
        if not self.is_configured:
            return

        root_logger = logging.getLogger()
        for handler in self._log_handlers.values():
            root_logger.removeHandler(handler)
            handler.close()
        self._log_handlers.clear()
        self._configured = False

    def _install_handler(self, name: str, handler: logging.Handler, formatter: logging.Formatter) -> None:
        handler.setFormatter(formatter)
        handler.addFilter(CorrelationIdFilter())
        logging.getLogger().addHandler(handler)
        self._log_handlers[name] = handler

    def _configure_logger_levels(self) -> None:
        """Reduce noise from third-party libraries."""
        logging.getLogger('aiohttp').setLevel(logging.WARNING)
        logging.getLogger('asyncio').setLevel(logging.WARNING)
        logging.getLogger('urllib3').setLevel(logging.WARNING)

    def create_correlation_id(self) -> str:
        return uuid.uuid4().hex[:12]

    def set_correlation_id(self, corr_id: Optional[str] = None) -> str:
        """
        Set correlation ID for current context.

        Args:
            corr_id: Correlation ID to set, or None to generate new one

        Returns:
            The correlation ID that was set
        """
        if corr_id is None:
            corr_id = self.create_correlation_id()
        correlation_id.set(corr_id)
        return corr_id

    def get_correlation_id(self) -> Optional[str]:
        return correlation_id.get()

    def get_log_stats(self) -> Dict[str, Any]:
        """Get logging configuration details."""
        return {
            "configured": self._configured,
            "handlers": list(self._log_handlers.keys()),
            "root_level": logging.getLogger().level,
            "correlation_id": self.get_correlation_id()
        }


# Global logging manager instance
logging_manager = LoggingManager()


def with_correlation_id(corr_id: Optional[str] = None):
    """
    Decorator to run a function under its own correlation ID.

    Args:
        corr_id: Correlation ID to use, or None to generate new one per call
    """
    def decorator(func):
        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                token = correlation_id.set(corr_id or logging_manager.create_correlation_id())
                try:
                    return await func(*args, **kwargs)
                finally:
                    correlation_id.reset(token)
            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            token = correlation_id.set(corr_id or logging_manager.create_correlation_id())
            try:
                return func(*args, **kwargs)
            finally:
                correlation_id.reset(token)
        return sync_wrapper
    return decorator
