"""
Logging configuration for the session store.

Session keys are bearer tokens, so every handler runs through a filter that
masks token-shaped strings before a record is formatted. Output is either
plain text or one JSON object per line.
"""

import json
import logging
import logging.config
import re
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

# Base64 and URL-safe base64 runs long enough to be a session key or secret
_TOKEN_RE = re.compile(r'[A-Za-z0-9+/_-]{20,}={0,2}')
# Table, trigger and function names are lowercase words joined by underscores
_IDENTIFIER_RE = re.compile(r'[a-z_]+')
_ASSIGNMENT_RE = re.compile(r'(password|secret|key|token)[\s]*[=:][\s]*[^\s]+', re.IGNORECASE)


def _mask_token(match: "re.Match") -> str:
    token = match.group(0)
    if _IDENTIFIER_RE.fullmatch(token):
        return token
    return '****'


class TokenMaskingFilter(logging.Filter):
    """
    Filter that masks session keys and other secrets in log records.

    Arguments are interpolated first so that a key passed as ``%s`` is
    masked as well.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self._sanitize_message(record.getMessage())
        record.args = None
        return True

    def _sanitize_message(self, message: str) -> str:
        message = _TOKEN_RE.sub(_mask_token, message)
        message = _ASSIGNMENT_RE.sub(r'\1=****', message)
        return message


class StructuredFormatter(logging.Formatter):
    """Structured JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        for attr in ('event_type', 'database_id', 'table'):
            if hasattr(record, attr):
                log_entry[attr] = getattr(record, attr)

        if record.exc_info:
            log_entry['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
                'traceback': traceback.format_exception(*record.exc_info)
            }

        return json.dumps(log_entry, default=str)


def build_logging_config(
    structured: bool = False,
    log_dir: Optional[str] = "logs",
    level: str = 'INFO',
) -> Dict[str, Any]:
    """
    Build a ``dictConfig`` mapping.

    Args:
        structured: Emit JSON lines instead of plain text
        log_dir: Directory for the rotating log file; ``None`` logs to console only
        level: Root logger level
    """
    formatter = 'structured' if structured else 'standard'
    handlers: Dict[str, Any] = {
        'console': {
            'class': 'logging.StreamHandler',
            'level': level,
            'formatter': formatter,
            'filters': ['token_filter'],
        },
    }
    if log_dir:
        handlers['file'] = {
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': str(Path(log_dir) / 'websession.log'),
            'maxBytes': 10485760,  # 10MB
            'backupCount': 10,
            'level': 'DEBUG',
            'formatter': formatter,
            'filters': ['token_filter'],
        }

    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'structured': {
                '()': StructuredFormatter,
            },
            'standard': {
                'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            }
        },
        'filters': {
            'token_filter': {
                '()': TokenMaskingFilter,
            }
        },
        'handlers': handlers,
        'loggers': {
            '': {  # Root logger
                'level': level,
                'handlers': list(handlers),
            },
            'sqlalchemy.engine': {
                'level': 'WARNING',
                'propagate': True,
            },
        }
    }


def setup_logging(structured: Optional[bool] = None, log_dir: Optional[str] = None) -> None:
    """
    Apply logging configuration from arguments or application settings.

    Args:
        structured: Override ``settings.structured_logging``
        log_dir: Override ``settings.log_dir``
    """
    from websession.core.config import settings

    if structured is None:
        structured = settings.structured_logging
    if log_dir is None:
        log_dir = settings.log_dir

    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)

    level = 'DEBUG' if settings.debug else 'INFO'
    logging.config.dictConfig(build_logging_config(structured, log_dir, level))
    logging.getLogger(__name__).info(
        "Logging configured (%s)", "structured" if structured else "plain"
    )


def log_session_event(
    event_type: str,
    message: str,
    database_id: Optional[str] = None,
    table: Optional[str] = None,
    level: int = logging.DEBUG,
) -> None:
    """
    Log a session lifecycle event with structured context.

    Never pass the session key here; events are identified by type and scope.

    Args:
        event_type: Type of event (e.g. 'session_created', 'session_deleted')
        message: Human-readable message
        database_id: Database the session table lives in
        table: Session table name
        level: Logging level
    """
    logger = logging.getLogger('websession.events')
    logger.log(level, message, extra={
        'event_type': event_type,
        'database_id': database_id or 'default',
        'table': table,
    })
