"""
Logging configuration for LicitaDesk.

- Console output is coloured and written directly.
- File output goes through a QueueHandler; a QueueListener thread does the
  file I/O so log writes never block the event loop.
- ``workflow.*`` loggers additionally land in workflow.log, the audit trail
  of every state transition.
"""

import atexit
import logging
import logging.handlers
import queue
import sys
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel

_queue_listener: Optional[logging.handlers.QueueListener] = None


class LogConfig(BaseModel):
    """Logging configuration settings."""

    level: str = "INFO"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    enable_file_logging: bool = True
    log_dir: str = "logs"
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5
    enable_console: bool = True


class ColoredFormatter(logging.Formatter):
    """Formatter with colored level names for console output."""

    grey = "\x1b[38;21m"
    yellow = "\x1b[33;21m"
    red = "\x1b[31;21m"
    bold_red = "\x1b[31;1m"
    blue = "\x1b[34;21m"
    reset = "\x1b[0m"

    COLORS = {
        logging.DEBUG: grey,
        logging.INFO: blue,
        logging.WARNING: yellow,
        logging.ERROR: red,
        logging.CRITICAL: bold_red,
    }

    def format(self, record):
        original = record.levelname
        color = self.COLORS.get(record.levelno, self.grey)
        record.levelname = f"{color}{original}{self.reset}"
        try:
            return f"{super().format(record)}{self.reset}"
        finally:
            record.levelname = original


class _WorkflowFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.name.startswith("workflow.")


def _rotating_handler(config: LogConfig, filename: str, formatter: logging.Formatter):
    handler = logging.handlers.RotatingFileHandler(
        Path(config.log_dir) / filename,
        maxBytes=config.max_file_size,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    handler.setLevel(getattr(logging, config.level.upper()))
    handler.setFormatter(formatter)
    return handler


def setup_logging(config: Optional[LogConfig] = None) -> None:
    """Configure the root logger once at application start."""
    global _queue_listener

    if config is None:
        config = LogConfig()

    if _queue_listener:
        _queue_listener.stop()
        _queue_listener = None

    level = getattr(logging, config.level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if config.enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(
            ColoredFormatter(
                fmt="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
                datefmt=config.date_format,
            )
        )
        root_logger.addHandler(console_handler)

    if config.enable_file_logging:
        Path(config.log_dir).mkdir(parents=True, exist_ok=True)
        file_formatter = logging.Formatter(
            fmt="%(asctime)s | %(name)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s",
            datefmt=config.date_format,
        )

        app_handler = _rotating_handler(config, "app.log", file_formatter)
        workflow_handler = _rotating_handler(config, "workflow.log", file_formatter)
        workflow_handler.addFilter(_WorkflowFilter())

        log_queue: "queue.Queue[Any]" = queue.Queue(-1)
        root_logger.addHandler(logging.handlers.QueueHandler(log_queue))

        _queue_listener = logging.handlers.QueueListener(
            log_queue,
            app_handler,
            workflow_handler,
            respect_handler_level=True,
        )
        _queue_listener.start()
        atexit.register(stop_queue_listener)

    from .config import settings

    logging.getLogger("sqlalchemy.engine").setLevel(
        level if settings.logging.enable_query_logging else logging.WARNING
    )


def stop_queue_listener() -> None:
    """Stop the queue listener; safe to call more than once."""
    global _queue_listener

    if _queue_listener:
        _queue_listener.stop()
        _queue_listener = None


class WorkflowLogger:
    """Structured logger for opportunity and ticket transitions."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(f"workflow.{name}")

    def transition(
        self,
        entity_id: Any,
        old_status: Optional[str],
        new_status: str,
        actor_id: Any = None,
        reason: Optional[str] = None,
    ) -> None:
        reason_str = f" | Reason: {reason}" if reason else ""
        self.logger.info(
            f"Transition | ID: {entity_id} | {old_status} -> {new_status} | "
            f"Actor: {actor_id}{reason_str}"
        )

    def rejected(
        self,
        entity_id: Any,
        current: Optional[str],
        requested: Optional[str],
        actor_id: Any = None,
        reason: str = "",
    ) -> None:
        self.logger.warning(
            f"Transition refused | ID: {entity_id} | {current} -> {requested} | "
            f"Actor: {actor_id} | Reason: {reason}"
        )

    def audit(self, entity_id: Any, event: str, actor_id: Any = None, **details: Any) -> None:
        detail_str = " | ".join(f"{k}: {v}" for k, v in details.items())
        self.logger.info(
            f"Audit | ID: {entity_id} | Event: {event} | Actor: {actor_id}"
            + (f" | {detail_str}" if detail_str else "")
        )
