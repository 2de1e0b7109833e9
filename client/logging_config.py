"""
Structured logging configuration for the buzzer client.

Provides:
- JSONFormatter for production (machine-readable logs)
- Human-readable formatter for development
- Contextual logging (room_id, player_name)
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

# Context variables for session-scoped data
room_id_var: ContextVar[Optional[str]] = ContextVar("room_id", default=None)
player_name_var: ContextVar[Optional[str]] = ContextVar("player_name", default=None)


class JSONFormatter(logging.Formatter):
    """
    Format logs as JSON for production log aggregation.

    Output format is compatible with common log aggregation systems
    (ELK, CloudWatch, Datadog, etc.).
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON.

        Args:
            record: Log record to format.

        Returns:
            JSON-formatted log string.
        """
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        room_id = room_id_var.get() or getattr(record, "room_id", None)
        if room_id:
            log_data["room_id"] = room_id

        player_name = player_name_var.get() or getattr(record, "player_name", None)
        if player_name:
            log_data["player_name"] = player_name

        if hasattr(record, "event_type") and record.event_type:
            log_data["event_type"] = record.event_type
        if hasattr(record, "reason") and record.reason:
            log_data["reason"] = record.reason

        # Add source location for errors
        if record.levelno >= logging.ERROR:
            log_data["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """
    Human-readable formatter for development.

    Includes colors and context for easy debugging.
    """

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""

        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        context_parts = []
        room_id = room_id_var.get() or getattr(record, "room_id", None)
        if room_id:
            context_parts.append(f"room={room_id}")

        player_name = player_name_var.get() or getattr(record, "player_name", None)
        if player_name:
            context_parts.append(f"name={player_name}")

        context = f" [{', '.join(context_parts)}]" if context_parts else ""

        message = record.getMessage()
        output = f"{timestamp} {color}{record.levelname:8}{reset} {record.name}{context} - {message}"

        if record.exc_info:
            output += "\n" + self.formatException(record.exc_info)

        return output


def setup_logging(
    level: str = "INFO",
    environment: str = "development",
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        environment: Environment name (production uses JSON, else human-readable).
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)

    if environment == "production":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(DevelopmentFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(log_level)

    # Reduce noise from libraries
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(
        f"Logging configured: level={level}, environment={environment}",
        extra={"level": level, "environment": environment},
    )


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that automatically includes context.

    Usage:
        logger = ContextLogger(logging.getLogger(__name__))
        logger.with_context(room_id="abc123", player_name="Alice").info("Joined")
    """

    def __init__(self, logger: logging.Logger, extra: Optional[dict] = None):
        super().__init__(logger, extra or {})

    def with_context(self, **kwargs) -> "ContextLogger":
        """Create a new logger with additional context."""
        new_extra = {**self.extra, **kwargs}
        return ContextLogger(self.logger, new_extra)

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    """
    Get a context-aware logger.

    Args:
        name: Logger name (typically __name__).

    Returns:
        ContextLogger instance.
    """
    return ContextLogger(logging.getLogger(name))
