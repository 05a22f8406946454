"""
Structured JSON Logging Module.

Every engine logger lives under the ``condoguard`` namespace.  Handlers
(stdout plus a rotating file) are attached once, to the namespace root;
named loggers such as ``condoguard.session_store`` only propagate to it,
so the log file is opened a single time per process however many
components ask for a logger.
"""

import json
import logging
import sys
import threading
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional, TextIO

ROOT_LOGGER_NAME: str = "condoguard"

# Context keys promoted to top-level fields of the JSON line.
_PROMOTED_KEYS: tuple[str, ...] = ("user_id", "tenant_id", "event")

_setup_lock: threading.Lock = threading.Lock()


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    Fields: ``timestamp`` (UTC), ``level``, ``logger_name``, ``message``,
    the promoted context keys when present, remaining caller context
    under ``extra``, and ``exception`` when exc_info is set.
    """

    _STANDARD_ATTRS: frozenset[str] = frozenset(
        logging.LogRecord(
            name="", level=0, pathname="", lineno=0, msg="", args=(), exc_info=None
        ).__dict__.keys()
    ) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.getMessage(),
        }

        context = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self._STANDARD_ATTRS
        }
        for key in _PROMOTED_KEYS:
            if key in context:
                entry[key] = str(context.pop(key))
        if context:
            entry["extra"] = {key: str(value) for key, value in context.items()}

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            entry["exception"] = record.exc_text

        return json.dumps(entry, ensure_ascii=False)


def configure_logging(
    level: int = logging.INFO,
    stream: Optional[TextIO] = None,
    log_file: Optional[str] = None,
    max_bytes: Optional[int] = None,
    backup_count: Optional[int] = None,
) -> logging.Logger:
    """Attach the JSON handlers to the ``condoguard`` root once.

    Unset file options come from :class:`~condoguard.config.AppConfig`.
    A log file that cannot be opened leaves console logging in place.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    with _setup_lock:
        if root.handlers:
            return root

        # Deferred: config emits its own warnings through logging.
        from condoguard.config import get_config
        cfg = get_config()

        root.setLevel(level)
        root.propagate = False
        formatter = JSONFormatter()

        console = logging.StreamHandler(stream or sys.stdout)
        console.setFormatter(formatter)
        root.addHandler(console)

        path = Path(log_file or cfg.LOG_FILE)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                filename=str(path),
                maxBytes=max_bytes if max_bytes is not None else cfg.LOG_MAX_BYTES,
                backupCount=backup_count if backup_count is not None else cfg.LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        except OSError as exc:
            root.warning("Log file %s unavailable (%s); console only.", path, exc)
        else:
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
    return root


class StructuredLogger:
    """Injectable wrapper around a ``condoguard.*`` logger.

    Usage::

        log = StructuredLogger(name="session_store")
        log.info("Profile resolved", extra={"user_id": "abc-123"})
    """

    def __init__(self, name: str = ROOT_LOGGER_NAME, level: Optional[int] = None) -> None:
        configure_logging()
        if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
            name = f"{ROOT_LOGGER_NAME}.{name}"
        self._logger: logging.Logger = logging.getLogger(name)
        if level is not None:
            self._logger.setLevel(level)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def debug(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.error(msg, *args, **kwargs)

    def exception(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.exception(msg, *args, **kwargs)


def get_logger(name: str = ROOT_LOGGER_NAME) -> StructuredLogger:
    return StructuredLogger(name=name)
