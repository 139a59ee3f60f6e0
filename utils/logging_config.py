"""
Structured logging configuration and utilities
"""

import logging
import logging.handlers
import json
from collections import Counter, defaultdict, deque
from datetime import datetime
from pathlib import Path
from typing import Deque, Dict, Any, Optional
from contextlib import contextmanager
import streamlit as st

from config.app_config import AppConfig, get_config


# Attributes every LogRecord carries; anything else was passed through ``extra``
_RESERVED_RECORD_ATTRS = frozenset({
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'taskName', 'message', 'asctime'
})

_CORRELATION_FIELDS = ("event_type", "conversation_id", "interaction_type", "operation")


class StructuredFormatter(logging.Formatter):
    """
    One compact JSON object per line

    Correlation fields such as ``conversation_id`` sit at the top level;
    other ``extra`` values go under ``fields``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": int(record.created * 1000),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "src": f"{record.module}:{record.lineno}",
        }

        fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_ATTRS
        }
        for key in _CORRELATION_FIELDS:
            if key in fields:
                entry[key] = fields.pop(key)
        if fields:
            entry["fields"] = fields

        if record.exc_info and record.exc_info[0] is not None:
            entry["error"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "trace": self.formatException(record.exc_info),
            }

        return json.dumps(entry, ensure_ascii=False, separators=(",", ":"), default=str)


class StreamlitLogHandler(logging.Handler):
    """
    Log handler that surfaces warnings and errors in the Streamlit page
    """

    def emit(self, record: logging.LogRecord):
        try:
            if record.levelno >= logging.ERROR:
                st.error(f"🚨 {record.getMessage()}")
            elif record.levelno >= logging.WARNING:
                st.warning(f"⚠️ {record.getMessage()}")
            else:
                st.caption(record.getMessage())
        except Exception:
            self.handleError(record)


def setup_logging(config: Optional[AppConfig] = None) -> logging.Logger:
    """
    Set up structured logging for the application

    Args:
        config: Configuration to use, defaults to the global configuration

    Returns:
        logging.Logger: Configured root logger
    """
    config = config or get_config()
    level = getattr(logging, config.logging.level.upper(), logging.INFO)

    if config.logging.enable_file_logging:
        Path(config.logging.log_file).parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    if config.debug:
        # Human-readable format for development
        console_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s [%(filename)s:%(lineno)d]'
        )
    else:
        console_formatter = StructuredFormatter()

    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if config.logging.enable_file_logging:
        file_handler = logging.handlers.RotatingFileHandler(
            config.logging.log_file,
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5,
            encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)  # Always debug level for files
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    if config.debug and config.environment == "development":
        streamlit_handler = StreamlitLogHandler()
        streamlit_handler.setLevel(logging.ERROR)
        streamlit_handler.setFormatter(logging.Formatter('%(message)s'))
        root_logger.addHandler(streamlit_handler)

    # Provider SDKs are chatty at DEBUG
    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(max(level, logging.INFO))

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the specified name

    Args:
        name: Logger name (typically __name__)

    Returns:
        logging.Logger: Configured logger
    """
    return logging.getLogger(name)


@contextmanager
def log_execution_time(logger: logging.Logger, operation: str, **extra_fields):
    """
    Context manager to log execution time of operations

    Args:
        logger: Logger instance
        operation: Description of the operation
        **extra_fields: Additional fields to include in log
    """
    start_time = datetime.now()

    try:
        logger.debug(f"Starting {operation}", extra={
            "operation": operation,
            "start_time": start_time.isoformat(),
            **extra_fields
        })

        yield

        duration = (datetime.now() - start_time).total_seconds()

        logger.info(f"Completed {operation}", extra={
            "operation": operation,
            "duration_seconds": duration,
            "status": "success",
            **extra_fields
        })

    except Exception as e:
        duration = (datetime.now() - start_time).total_seconds()

        logger.error(f"Failed {operation}: {str(e)}", extra={
            "operation": operation,
            "duration_seconds": duration,
            "status": "error",
            "error_type": type(e).__name__,
            **extra_fields
        }, exc_info=True)

        raise


def log_user_interaction(logger: logging.Logger, interaction_type: str, **details):
    """
    Log user interactions for analytics

    Args:
        logger: Logger instance
        interaction_type: Type of interaction (e.g., "message_sent", "turn_cancelled")
        **details: Additional interaction details
    """
    logger.info("User interaction", extra={
        "event_type": "user_interaction",
        "interaction_type": interaction_type,
        **details
    })


def log_conversation_event(logger: logging.Logger, event_type: str, conversation_id: str, **details):
    """
    Log conversation-related events

    Args:
        logger: Logger instance
        event_type: Type of event (e.g., "created", "message_added", "cleared")
        conversation_id: Conversation identifier
        **details: Additional event details
    """
    logger.debug("Conversation event", extra={
        "event_type": "conversation_event",
        "conversation_event_type": event_type,
        "conversation_id": conversation_id,
        **details
    })


class ErrorTracker:
    """
    Counts tracked errors per context and keeps the latest few

    A context names where a failure surfaced, e.g. ``generation``,
    ``persistence_decode`` or ``state_save``.
    """

    def __init__(self, logger: logging.Logger, history_size: int = 20):
        self.logger = logger
        self._by_context: Dict[str, Counter] = defaultdict(Counter)
        self._recent: Deque[Dict[str, Any]] = deque(maxlen=history_size)

    def track_error(self, error: Exception, context: str = "", **extra_info):
        """
        Count and log an error

        Args:
            error: Exception that occurred
            context: Where it surfaced
            **extra_info: Extra log fields (conversation_id, blob_length...)
        """
        context = context or "unknown"
        error_type = type(error).__name__
        counts = self._by_context[context]
        counts[error_type] += 1

        self._recent.append({
            "context": context,
            "type": error_type,
            "message": str(error),
            "at": datetime.now().isoformat(timespec="seconds"),
        })

        self.logger.error(f"Error in {context}: {error}", extra={
            "event_type": "error",
            "context": context,
            "error_type": error_type,
            "occurrences": counts[error_type],
            **extra_info
        }, exc_info=(type(error), error, error.__traceback__))

    def last_error(self, context: str) -> Optional[Dict[str, Any]]:
        for entry in reversed(self._recent):
            if entry["context"] == context:
                return entry
        return None

    def reset(self) -> None:
        self._by_context.clear()
        self._recent.clear()

    def get_error_summary(self) -> Dict[str, Any]:
        """
        Error counts for the debug panel

        Returns:
            Dict with the total, counts per context and error type, and the
            most recent errors oldest first
        """
        return {
            "total": sum(sum(counts.values()) for counts in self._by_context.values()),
            "by_context": {
                context: dict(counts) for context, counts in sorted(self._by_context.items())
            },
            "recent": list(self._recent),
        }


# Global instances
_logger_setup = False
_error_tracker: Optional[ErrorTracker] = None


def initialize_logging(config: Optional[AppConfig] = None) -> ErrorTracker:
    """
    Initialize logging system and return error tracker

    Returns:
        ErrorTracker: Global error tracker instance
    """
    global _logger_setup, _error_tracker

    if not _logger_setup:
        setup_logging(config)
        _logger_setup = True

    if _error_tracker is None:
        _error_tracker = ErrorTracker(logging.getLogger("streamchat.errors"))

    return _error_tracker


def get_error_tracker() -> ErrorTracker:
    """
    Get the global error tracker instance without touching handler setup

    Returns:
        ErrorTracker: Global error tracker
    """
    global _error_tracker
    if _error_tracker is None:
        _error_tracker = ErrorTracker(logging.getLogger("streamchat.errors"))
    return _error_tracker
