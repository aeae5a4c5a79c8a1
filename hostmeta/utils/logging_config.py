"""
Logging setup for hostmeta.

Every record is one JSON object per line. Context passed through
``extra=`` (event_type, path, request_id, error_kind, ...) lands in the
line as top-level keys. Output goes to stderr and, unless disabled, to a
rotating file:

- HOSTMETA_LOG_LEVEL: level name, default INFO
- HOSTMETA_LOG_FILE:  log file path; "-" or empty means console only.
  Default ./logs/hostmeta.log, or /var/log/hostmeta/hostmeta.log when
  HOSTMETA_ENV=prod.
"""

import json
import logging
import logging.config
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional


# Attributes every LogRecord carries; anything else came in through extra=
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

LOGGER_NAMES = (
    "hostmeta.api",
    "hostmeta.metadata",
    "hostmeta.backend_client",
    "hostmeta.frontend",
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and not key.startswith("_"):
                entry[key] = value

        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


def resolve_log_file(environ: Mapping[str, str]) -> Optional[Path]:
    """Where the rotating file handler writes, or None for console only."""
    configured = environ.get("HOSTMETA_LOG_FILE")
    if configured is not None:
        configured = configured.strip()
        if configured in ("", "-"):
            return None
        return Path(configured)

    if environ.get("HOSTMETA_ENV", "dev").lower() == "prod":
        return Path("/var/log/hostmeta/hostmeta.log")
    return Path.cwd() / "logs" / "hostmeta.log"


def build_logging_config(level: str, log_file: Optional[Path]) -> Dict[str, Any]:
    """dictConfig schema: JSON to stderr, plus a 5 MB x 5 rotating file."""
    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
        },
    }
    if log_file is not None:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "json",
            "filename": str(log_file),
            "maxBytes": 5 * 1024 * 1024,
            "backupCount": 5,
            "encoding": "utf-8",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": JsonFormatter}},
        "handlers": handlers,
        "root": {"level": level, "handlers": list(handlers)},
        # uvicorn's loggers feed the same handlers through root
        "loggers": {
            name: {"level": level}
            for name in LOGGER_NAMES + ("uvicorn", "uvicorn.error", "uvicorn.access")
        },
    }


def configure_logging(environ: Optional[Mapping[str, str]] = None) -> None:
    """Install the hostmeta logging configuration on the root logger."""
    if environ is None:
        environ = os.environ

    level = environ.get("HOSTMETA_LOG_LEVEL", "INFO").strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        level = "INFO"

    log_file = resolve_log_file(environ)
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(build_logging_config(level, log_file))


def get_logger(name: str = "hostmeta") -> logging.Logger:
    return logging.getLogger(name)
