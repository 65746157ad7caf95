"""
Logger Service Module
Root logging setup for the simulator: coloured console output, rotating
app/error files and optional JSON lines.

Every handler stamps records with `timeline_ms`, the time on the session
timeline. On a virtual clock this differs from `asctime`, so log formats can
show both.
"""

import json
import logging
import os
import sys
from collections.abc import Callable
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import colorlog

# Attributes every LogRecord has; anything else was passed through `extra`
_STANDARD_RECORD_KEYS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


class TimelineFilter(logging.Filter):
    """Adds `timeline_ms` to each record ("-" until a clock is attached)"""

    def __init__(self, clock: Callable[[], int] | None = None):
        super().__init__()
        self.clock = clock

    def filter(self, record: logging.LogRecord) -> bool:
        record.timeline_ms = self.clock() if self.clock is not None else "-"
        return True


class LoggerService:
    """
    Owns the root logger's handlers

    Config keys (all optional): log_dir, log_level, console_level, file_level,
    max_bytes, backup_count, format, date_format, colored_output, json_logs,
    file_output.
    """

    def __init__(self, config: dict[str, Any] | None = None):
        self.config = {
            "log_dir": "./logs",
            "log_level": "INFO",
            "file_level": "DEBUG",
            "max_bytes": 5 * 1024 * 1024,
            "backup_count": 3,
            "format": "%(asctime)s [t=%(timeline_ms)s] - %(name)s - %(levelname)s - %(message)s",
            "date_format": "%Y-%m-%d %H:%M:%S",
            "colored_output": True,
            "json_logs": False,
            "file_output": True,
        }
        if config:
            self.config.update({k: v for k, v in config.items() if v is not None})

        self.timeline = TimelineFilter()
        self.handlers: list[logging.Handler] = []

        self.log_dir = Path(self.config["log_dir"])
        if self.config["file_output"]:
            self._ensure_log_dir()

        root_logger = logging.getLogger()
        root_logger.setLevel(logging.DEBUG)  # Filter at handler level
        root_logger.handlers = []

        self._add_handler(self._create_console_handler())
        if self.config["file_output"]:
            self._add_handler(self._create_file_handler("app.log", self._level("file_level")))
            self._add_handler(self._create_file_handler("errors.log", logging.ERROR))

    def _ensure_log_dir(self):
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            if not os.access(self.log_dir, os.W_OK):
                raise PermissionError(f"Log directory not writable: {self.log_dir}")
        except OSError:
            self.log_dir = Path("./logs")
            self.log_dir.mkdir(parents=True, exist_ok=True)

    def _level(self, key: str) -> int:
        level = self.config.get(key) or self.config["log_level"]
        return getattr(logging, str(level).upper())

    def _add_handler(self, handler: logging.Handler):
        handler.addFilter(self.timeline)
        logging.getLogger().addHandler(handler)
        self.handlers.append(handler)

    def _plain_formatter(self) -> logging.Formatter:
        if self.config["json_logs"]:
            return JsonFormatter()
        return logging.Formatter(self.config["format"], datefmt=self.config["date_format"])

    def _create_console_handler(self) -> logging.Handler:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(self._level("console_level"))

        if self.config["colored_output"] and not self.config["json_logs"]:
            handler.setFormatter(
                colorlog.ColoredFormatter(
                    "%(log_color)s" + self.config["format"],
                    datefmt=self.config["date_format"],
                    log_colors=LOG_COLORS,
                )
            )
        else:
            handler.setFormatter(self._plain_formatter())
        return handler

    def _create_file_handler(self, filename: str, level: int) -> logging.Handler:
        try:
            handler: logging.Handler = RotatingFileHandler(
                self.log_dir / filename,
                maxBytes=self.config["max_bytes"],
                backupCount=self.config["backup_count"],
            )
        except OSError:
            # Unwritable filesystem: keep the records on stderr
            handler = logging.StreamHandler(sys.stderr)

        handler.setLevel(level)
        handler.setFormatter(self._plain_formatter())
        return handler

    def attach_clock(self, clock: Callable[[], int] | None):
        """Stamp records with this clock's time (None detaches)"""
        self.timeline.clock = clock

    def cleanup(self):
        """Close and detach the handlers this service added"""
        root_logger = logging.getLogger()
        for handler in self.handlers:
            handler.close()
            root_logger.removeHandler(handler)
        self.handlers.clear()


class JsonFormatter(logging.Formatter):
    """One JSON object per record, `extra` fields included"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "line": record.lineno,
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_KEYS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


# Global logger service instance
_logger_service: LoggerService | None = None


def setup_logging(config: dict | None = None) -> logging.Logger:
    """
    Configure root logging from config.LOGGING (once) and return the root logger

    Args:
        config: Optional overrides of the LOGGING section
    """
    global _logger_service

    if _logger_service is not None:
        return logging.getLogger()

    from config import config as app_config

    log_config = {
        "log_dir": str(app_config.FILES.get("log_dir", "./logs")),
        "log_level": app_config.LOGGING.get("level", "INFO"),
        "max_bytes": app_config.LOGGING.get("max_bytes"),
        "backup_count": app_config.LOGGING.get("backup_count"),
        "format": app_config.LOGGING.get("format"),
        "date_format": app_config.LOGGING.get("date_format"),
        "colored_output": app_config.LOGGING.get("colored_output"),
        "json_logs": app_config.LOGGING.get("json_logs"),
        "file_output": app_config.LOGGING.get("file_output"),
    }
    if config:
        log_config.update(config)

    _logger_service = LoggerService(log_config)
    return logging.getLogger()


def attach_timeline(clock: Callable[[], int] | None):
    """Stamp log records with a session timeline clock, e.g. `timers.now_ms`"""
    if _logger_service is not None:
        _logger_service.attach_clock(clock)


def cleanup_logging():
    """Remove the handlers installed by setup_logging()"""
    global _logger_service

    if _logger_service is not None:
        _logger_service.cleanup()
        _logger_service = None
