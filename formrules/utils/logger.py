"""
FormRules Logger
================

Structured logging with multiple handlers.

Used for validation tracing: enable it with ``set_debug(True)`` or
``FORMRULES_VALIDATION_DEBUG=true`` to see every field, rule, value
and outcome.
"""

from __future__ import annotations

import logging
import sys
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import orjson


class LogLevel(IntEnum):
    """Log levels."""

    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @classmethod
    def parse(cls, value: Union[str, int, "LogLevel"]) -> "LogLevel":
        """Parse a level name or number."""
        if isinstance(value, str):
            return cls[value.upper()]
        return cls(value)


@dataclass
class LogRecord:
    """One event with its key=value context."""

    level: LogLevel
    message: str
    timestamp: datetime = field(default_factory=datetime.now)
    context: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[BaseException] = None
    logger_name: str = "formrules"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.name,
            "message": self.message,
            "logger": self.logger_name,
        }

        if self.context:
            data["context"] = {k: _plain(v) for k, v in self.context.items()}

        if self.exception:
            data["exception"] = {
                "type": type(self.exception).__name__,
                "message": str(self.exception),
                "traceback": traceback.format_exception(
                    type(self.exception),
                    self.exception,
                    self.exception.__traceback__,
                ),
            }

        return data

    def to_json(self) -> str:
        """Convert to JSON string."""
        return orjson.dumps(self.to_dict()).decode()


def _plain(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return repr(value)


class LogFormatter:
    """Base log formatter."""

    def format(self, record: LogRecord) -> str:
        raise NotImplementedError


_LEVEL_COLORS = {
    LogLevel.DEBUG: "\033[36m",
    LogLevel.WARNING: "\033[33m",
    LogLevel.ERROR: "\033[31m",
}


class TextFormatter(LogFormatter):
    """
    Plain text formatter.

    Example output:
        2024-01-15 10:30:45 [DEBUG] Rule evaluated field=email rule=email valid=True
    """

    date_format = "%Y-%m-%d %H:%M:%S"

    def __init__(self, colors: bool = True):
        self.colors = colors and sys.stderr.isatty()

    def format(self, record: LogRecord) -> str:
        timestamp = record.timestamp.strftime(self.date_format)
        level = record.level.name

        if self.colors:
            level = f"{_LEVEL_COLORS.get(record.level, '')}{level}\033[0m"

        message = record.message
        if record.context:
            context_str = " ".join(f"{k}={v!r}" if isinstance(v, str) else f"{k}={v}"
                                   for k, v in record.context.items())
            message = f"{message} {context_str}"

        output = f"{timestamp} [{level}] {message}"

        if record.exception:
            output += "\n" + "".join(
                traceback.format_exception(
                    type(record.exception),
                    record.exception,
                    record.exception.__traceback__,
                )
            )

        return output


class JsonFormatter(LogFormatter):
    """One JSON object per line."""

    def format(self, record: LogRecord) -> str:
        return record.to_json()


class LogHandler:
    """Base log handler."""

    def __init__(
        self,
        formatter: Optional[LogFormatter] = None,
        level: LogLevel = LogLevel.DEBUG,
    ):
        self.formatter = formatter or TextFormatter()
        self.level = level

    def handle(self, record: LogRecord) -> None:
        if record.level >= self.level:
            self.emit(record)

    def emit(self, record: LogRecord) -> None:
        raise NotImplementedError


class StreamHandler(LogHandler):
    """Stream output handler."""

    def __init__(
        self,
        stream: Any = None,
        formatter: Optional[LogFormatter] = None,
        level: LogLevel = LogLevel.DEBUG,
    ):
        super().__init__(formatter, level)
        self.stream = stream

    def emit(self, record: LogRecord) -> None:
        stream = self.stream or sys.stderr
        stream.write(self.formatter.format(record) + "\n")
        stream.flush()


class FileHandler(LogHandler):
    """
    Append records to a file.

    Once the file would grow past ``max_size`` bytes it is renamed to
    ``<name>.1`` (older copies shift up to ``<name>.<backups>``).
    """

    def __init__(
        self,
        path: Union[str, Path],
        formatter: Optional[LogFormatter] = None,
        level: LogLevel = LogLevel.DEBUG,
        max_size: int = 10 * 1024 * 1024,
        backups: int = 3,
    ):
        super().__init__(formatter or JsonFormatter(), level)
        self.path = Path(path)
        self.max_size = max_size
        self.backups = max(backups, 1)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, record: LogRecord) -> None:
        line = self.formatter.format(record) + "\n"
        if self.path.exists() and self.path.stat().st_size + len(line) > self.max_size:
            self._roll()

        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line)

    def backup_path(self, index: int) -> Path:
        return self.path.with_name(f"{self.path.name}.{index}")

    def _roll(self) -> None:
        for index in range(self.backups, 0, -1):
            older = self.backup_path(index - 1) if index > 1 else self.path
            if older.exists():
                older.replace(self.backup_path(index))


class Logger:
    """
    Structured logger.

    Example:
        logger = get_logger("formrules.validation")

        logger.debug("Rule evaluated", field="email", rule="email", valid=True)
        logger.error("Rule raised", exception=e, rule="regex")

        scoped = logger.with_context(run="a1b2")
    """

    def __init__(
        self,
        name: str = "formrules",
        level: LogLevel = LogLevel.INFO,
        handlers: Optional[List[LogHandler]] = None,
    ):
        self.name = name
        self.level = level
        self._handlers = handlers if handlers is not None else []
        self._context: Dict[str, Any] = {}

    def add_handler(self, handler: LogHandler) -> "Logger":
        self._handlers.append(handler)
        return self

    def set_level(self, level: Union[str, int, LogLevel]) -> "Logger":
        self.level = LogLevel.parse(level)
        return self

    def with_context(self, **context: Any) -> "Logger":
        """
        Copy this logger with extra context.

        The copy writes to the same handlers but keeps its own level.
        """
        scoped = Logger(name=self.name, level=self.level, handlers=self._handlers)
        scoped._context = {**self._context, **context}
        return scoped

    def _log(
        self,
        level: LogLevel,
        message: str,
        exception: Optional[BaseException] = None,
        **context: Any,
    ) -> None:
        if level < self.level:
            return

        record = LogRecord(
            level=level,
            message=message,
            context={**self._context, **context},
            exception=exception,
            logger_name=self.name,
        )

        for handler in self._handlers:
            try:
                handler.handle(record)
            except (OSError, ValueError):
                # Broken sinks are skipped
                continue

    def debug(self, message: str, **context: Any) -> None:
        self._log(LogLevel.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._log(LogLevel.INFO, message, **context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(LogLevel.WARNING, message, **context)

    def error(
        self,
        message: str,
        exception: Optional[BaseException] = None,
        **context: Any,
    ) -> None:
        self._log(LogLevel.ERROR, message, exception, **context)


# Global logger registry
_loggers: Dict[str, Logger] = {}


def get_logger(
    name: str = "formrules",
    level: Optional[LogLevel] = None,
) -> Logger:
    """
    Get or create logger.

    New loggers write text to stderr at WARNING unless a level is given.
    """
    if name not in _loggers:
        _loggers[name] = Logger(name=name, level=level or LogLevel.WARNING)
        _loggers[name].add_handler(StreamHandler())
    elif level is not None:
        _loggers[name].set_level(level)

    return _loggers[name]


def configure_logging(
    level: Union[str, LogLevel] = LogLevel.INFO,
    format: str = "text",
    log_file: Optional[str] = None,
    colors: bool = True,
    stream: Any = None,
) -> Logger:
    """
    Configure the ``formrules`` loggers.

    Args:
        level: Log level
        format: Output format ("text" or "json")
        log_file: Optional log file path
        colors: Enable colored output
        stream: Output stream (stderr by default)

    Returns:
        The root ``formrules`` logger
    """
    level = LogLevel.parse(level)
    formatter = JsonFormatter() if format == "json" else TextFormatter(colors=colors)

    handlers: List[LogHandler] = [StreamHandler(stream=stream, formatter=formatter, level=level)]
    if log_file:
        file_formatter = JsonFormatter() if format == "json" else TextFormatter(colors=False)
        handlers.append(FileHandler(log_file, formatter=file_formatter, level=level))

    root = Logger(name="formrules", level=level, handlers=handlers)
    _loggers["formrules"] = root

    # Existing child loggers pick up the new handlers
    for name, logger in _loggers.items():
        if name.startswith("formrules."):
            logger._handlers = root._handlers
            logger.level = level

    return root
