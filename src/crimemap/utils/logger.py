"""
Structured logging configuration using loguru.
Provides consistent logging across the application.
"""
import sys
import json
import traceback
from loguru import logger
from typing import Any, Dict

from crimemap.config import settings


def serialize_record(record: Dict[str, Any]) -> str:
    """Serialize log record to JSON format."""
    subset = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    # Add extra fields if present
    extra = {k: v for k, v in record["extra"].items() if k != "serialized"}
    if extra:
        subset["extra"] = extra

    # Add exception if present
    exception = record.get("exception")
    if exception:
        subset["exception"] = "".join(
            traceback.format_exception(exception.type, exception.value, exception.traceback)
        )

    return json.dumps(subset, default=str)


def _json_format(record: Dict[str, Any]) -> str:
    record["extra"]["serialized"] = serialize_record(record)
    return "{extra[serialized]}\n"


TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def setup_logger() -> None:
    """Configure loguru logger with structured output."""

    # Remove default handler
    logger.remove()

    log_format = _json_format if settings.LOG_FORMAT == "json" else TEXT_FORMAT

    logger.add(sys.stderr, level=settings.LOG_LEVEL, format=log_format)

    if settings.LOG_TO_FILE:
        settings.LOG_DIR.mkdir(parents=True, exist_ok=True)
        logger.add(
            settings.LOG_DIR / "crimemap_{time}.log",
            rotation="100 MB",
            retention="10 days",
            level=settings.LOG_LEVEL,
            format=log_format,
        )

    logger.info("Logger initialized", log_level=settings.LOG_LEVEL, format=settings.LOG_FORMAT)


# Initialize logger on import
setup_logger()

# Export configured logger
__all__ = ["logger"]
