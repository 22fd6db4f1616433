"""Structured logging for Colloquy services."""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Union


class JSONFormatter(logging.Formatter):
    """Format log records as JSON for structured logging."""

    def format(self, record):
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": getattr(record, "service_name", record.name),
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0]:
            log_data["exception"] = self.formatException(record.exc_info)
        # Add any extra fields
        for key in ("session_id", "endpoint", "duration_ms"):
            if hasattr(record, key):
                log_data[key] = getattr(record, key)
        return json.dumps(log_data)


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    return level


def _formatter(service_name: str, json_output: bool) -> logging.Formatter:
    if json_output:
        return JSONFormatter()
    return logging.Formatter(
        f"%(asctime)s [{service_name}] %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )


def setup_logging(
    service_name: str,
    level: Union[int, str] = logging.INFO,
    json_output: bool = False,
) -> logging.Logger:
    """Set up logging for a service.

    Args:
        service_name: Name of the service (e.g., "chat", "agent")
        level: Logging level, as an int or a name such as "DEBUG"
        json_output: If True, use JSON format. If False, use human-readable format.

    Returns:
        Configured logger
    """
    level = _resolve_level(level)
    logger = logging.getLogger(f"colloquy.{service_name}")
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        handler.setFormatter(_formatter(service_name, json_output))
        logger.addHandler(handler)

    return logger


def apply_logging_config(level: Union[int, str] = logging.INFO, json_output: bool = False):
    """Re-apply level and output format to every logger made by setup_logging.

    Module loggers are created at import time with defaults; services call
    this once their config is loaded.
    """
    level = _resolve_level(level)
    for name, logger in list(logging.Logger.manager.loggerDict.items()):
        if not name.startswith("colloquy.") or not isinstance(logger, logging.Logger):
            continue
        service_name = name[len("colloquy."):]
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
            handler.setFormatter(_formatter(service_name, json_output))
