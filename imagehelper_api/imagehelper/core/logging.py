import logging
import logging.config
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit

from .config import Settings, settings as default_settings

ROOT_LOGGER = "imagehelper"

# Extra attributes copied into structured log records
EXTRA_FIELDS = ("operation", "url", "duration", "file_name", "error_code")


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for field in EXTRA_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        return json.dumps(log_data, ensure_ascii=False)


def setup_logging(settings: Optional[Settings] = None):
    """Setup library logging configuration"""
    settings = settings or default_settings

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json" if settings.is_production else "standard",
            "stream": "ext://sys.stdout",
        }
    }
    app_handlers = ["console"]

    if settings.log_file:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "json",
            "filename": settings.log_file,
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5,
        }
        app_handlers.append("file")

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": JSONFormatter,
            },
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
            },
        },
        "handlers": handlers,
        "loggers": {
            ROOT_LOGGER: {
                "handlers": app_handlers,
                "level": settings.log_level,
                "propagate": False,
            },
            "httpx": {
                "handlers": ["console"],
                "level": "WARNING",
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(config)


def get_logger(name: str) -> logging.Logger:
    """Get logger instance under the library namespace"""
    if name == ROOT_LOGGER or name.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def redact_url(url: str) -> str:
    """Drop credentials, query string and fragment from a URL before logging it"""
    try:
        parts = urlsplit(url)
    except ValueError:
        return "<invalid url>"
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, "", ""))


def log_error(logger: logging.Logger, error: Exception, context: Dict[str, Any] = None):
    """Log error with context information"""
    extra = dict(context or {})
    error_code = getattr(error, "error_code", None)
    if error_code:
        extra["error_code"] = error_code
    logger.warning(f"{type(error).__name__}: {error}", extra=extra)
