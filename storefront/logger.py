"""
Name: Structured Logger Configuration

Responsibilities:
  - Configure JSON-structured logging
  - Automatically include session context (session_id, user_id, operation)
  - Include stack traces for exceptions

Collaborators:
  - context.py: Session-scoped context vars
  - config.py: log level and format
  - Python logging module (stdlib)

Constraints:
  - JSON format for log aggregation compatibility
  - Never log secrets (tokens, passwords, credentials)

Notes:
  - Import as: from storefront.logger import logger
  - Levels: DEBUG, INFO, WARNING, ERROR, CRITICAL
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from typing import Any

# R: LogRecord attributes that are not user-supplied extras
_INTERNAL_KEYS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "message",
}


class JSONFormatter(logging.Formatter):
    """
    R: Format logs as JSON with automatic context enrichment.

    Includes:
      - timestamp (ISO 8601)
      - level, message, logger
      - module, function, line
      - session_id, user_id, operation (from context)
      - exception stack trace (if present)
      - extra fields from log call
    """

    # R: Fields that should never be logged (security)
    SENSITIVE_KEYS = {
        "password",
        "secret",
        "token",
        "auth_token",
        "authorization",
        "credentials",
        "jwt_secret",
    }

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # R: Add session context (imported lazily to avoid circular imports)
        try:
            from .context import get_context_dict

            ctx = get_context_dict()
            if ctx:
                log_obj.update(ctx)
        except ImportError:
            pass

        for key, value in record.__dict__.items():
            if key in _INTERNAL_KEYS:
                continue
            if key.lower() in self.SENSITIVE_KEYS:
                continue
            log_obj[key] = value

        if record.exc_info:
            log_obj["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "stacktrace": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_obj, default=str)


def setup_logger(name: str = "storefront") -> logging.Logger:
    """
    R: Configure and return structured logger.

    Respects log_level / log_json from Settings when they can be loaded;
    falls back to INFO + JSON so importing never fails on bad env.
    """
    log = logging.getLogger(name)

    level = "INFO"
    use_json = True
    try:
        from .config import get_settings

        settings = get_settings()
        level = (settings.log_level or "INFO").upper()
        use_json = settings.log_json
    except Exception:
        pass

    log.setLevel(getattr(logging, level, logging.INFO))

    # R: Avoid duplicate handlers on reimport
    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            JSONFormatter()
            if use_json
            else logging.Formatter("%(levelname)s %(message)s")
        )
        log.addHandler(handler)

    return log


# R: Global logger instance
logger = setup_logger()
