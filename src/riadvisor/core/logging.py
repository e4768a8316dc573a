"""Logging configuration: structured output, secret redaction and per-account context"""

import logging
import logging.handlers
import json
import re
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional
from contextlib import contextmanager
import threading


CONTEXT_FIELDS = ("account_id", "region", "report_window", "job")

_context = threading.local()


def current_context() -> Dict[str, Any]:
    """Return the logging context bound to the current thread"""
    return dict(getattr(_context, "fields", {}))


@contextmanager
def account_context(**fields):
    """Bind account/region/window fields to every record logged in this block

    Contexts nest; inner values override outer ones and are restored on exit.
    """
    previous = current_context()
    merged = dict(previous)
    merged.update({k: v for k, v in fields.items() if v is not None})
    _context.fields = merged
    try:
        yield merged
    finally:
        _context.fields = previous


class ContextFilter(logging.Filter):
    """Copy the thread's account context onto log records"""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in current_context().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class StructuredFormatter(logging.Formatter):
    """JSON structured logging formatter"""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread_name": record.threadName,
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        if hasattr(record, 'duration'):
            log_data['duration'] = record.duration

        # Add exception info if present
        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        return json.dumps(log_data, default=str)


class SecurityFilter(logging.Filter):
    """Filter to redact sensitive information from logs"""

    SENSITIVE_PATTERNS = [
        'password', 'secret', 'token', 'api_key', 'external_id',
        'access_key', 'credential',
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact sensitive information from log records"""
        message = record.getMessage()
        lowered = message.lower()

        redacted = message
        for pattern in self.SENSITIVE_PATTERNS:
            if pattern in lowered:
                redacted = self._redact_message(redacted, pattern)

        if redacted != message:
            record.msg = redacted
            record.args = None

        return True

    def _redact_message(self, message: str, pattern: str) -> str:
        """Redact sensitive values in message"""
        patterns = [
            rf'"{pattern}"\s*:\s*"[^"]+"',
            rf'{pattern}["\']?\s*[:=]\s*["\']?[^"\'\s,}}]+',
        ]

        for p in patterns:
            message = re.sub(p, f'{pattern}=***REDACTED***', message, flags=re.IGNORECASE)

        return message


class PerformanceLogger:
    """Logger for operation timings"""

    def __init__(self):
        self.logger = logging.getLogger('riadvisor.performance')

    @contextmanager
    def timer(self, operation: str, **kwargs):
        """Context manager to time operations"""
        start_time = datetime.now(timezone.utc)
        try:
            yield
        finally:
            duration = (datetime.now(timezone.utc) - start_time).total_seconds()
            self.logger.info(
                f"Performance: {operation} completed in {duration:.3f}s",
                extra={'operation': operation, 'duration': duration, **kwargs}
            )


class LoggerManager:
    """Centralized logger management"""

    def __init__(self):
        self.performance_logger = PerformanceLogger()

    def _build_handler(self, handler: logging.Handler, structured: bool, fmt: str) -> logging.Handler:
        if structured:
            handler.setFormatter(StructuredFormatter())
        else:
            handler.setFormatter(logging.Formatter(fmt))
        handler.addFilter(ContextFilter())
        handler.addFilter(SecurityFilter())
        return handler

    def setup_logging(self,
                      level: str = "INFO",
                      log_file: Optional[Path] = None,
                      structured: bool = False,
                      console: bool = True,
                      fmt: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                      max_bytes: int = 10485760,
                      backup_count: int = 5,
                      console_handler: Optional[logging.Handler] = None):
        """Setup application-wide logging configuration

        Args:
            level: Root log level name
            log_file: Optional rotating log file
            structured: Emit JSON records instead of plain text
            console: Attach a console handler
            fmt: Plain-text format string
            max_bytes: Rotation size of the log file
            backup_count: Rotated files to keep
            console_handler: Handler to use instead of a stdout stream handler
        """
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, level.upper()))

        # Remove existing handlers
        root_logger.handlers = []

        if console:
            handler = console_handler or logging.StreamHandler(sys.stdout)
            root_logger.addHandler(self._build_handler(handler, structured, fmt))

        if log_file:
            log_file = Path(log_file)
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count
            )
            root_logger.addHandler(self._build_handler(file_handler, structured, fmt))

        # Configure third-party loggers
        logging.getLogger('boto3').setLevel(logging.WARNING)
        logging.getLogger('botocore').setLevel(logging.WARNING)
        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('httpx').setLevel(logging.WARNING)


# Global logger manager instance
logger_manager = LoggerManager()


def setup_logging(**kwargs):
    """Setup logging for the application"""
    logger_manager.setup_logging(**kwargs)


def get_performance_logger() -> PerformanceLogger:
    """Get performance logger instance"""
    return logger_manager.performance_logger
