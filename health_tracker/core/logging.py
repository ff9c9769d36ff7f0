"""
Secure Logging Utility
Log helpers for the health analytics services

Measurements, goals and reminders are personal health data. Free-text log
messages are scrubbed of contact details and credentials before they reach
a handler, and state changes are written as one-line JSON audit entries.
"""

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from health_tracker.core.config import settings

# Configure root logger
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)],
)

AUDIT_LOGGER_NAME = "audit"


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class SecureLogger:
    """
    Scrubs personal data from messages before logging them.

    A message is only rewritten when it mentions one of SENSITIVE_PATTERNS;
    rewritten messages are prefixed with [SANITIZED].
    """

    SENSITIVE_PATTERNS = [
        r'password',
        r'secret',
        r'token',
        r'api[_-]?key',
        r'credential',
        r'authorization',
        r'bearer',
        r'session',
        r'email',
        r'phone',
        r'@',
        r'date[_-]?of[_-]?birth',
    ]

    # Applied in order; each match is replaced by its placeholder
    REDACTIONS = [
        (re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'), '[email]'),
        (re.compile(r'\b\d{1,3}(?:\.\d{1,3}){3}\b'), '[ip]'),
        (re.compile(r'\+?\b\d{1,3}[\s.-]\d{3}[\s.-]\d{3,4}[\s.-]?\d{0,4}\b'), '[phone]'),
        (re.compile(r'\b[A-Za-z0-9]{32,}\b'), '[token]'),
    ]

    @classmethod
    def sanitize_message(cls, message: str) -> str:
        """
        Replace emails, IP addresses, phone numbers and long tokens with
        placeholders, and drop everything after the first line.
        """
        for pattern, placeholder in cls.REDACTIONS:
            message = pattern.sub(placeholder, message)

        first_line, newline, _rest = message.partition('\n')
        return f"{first_line} [truncated]" if newline else first_line

    @classmethod
    def should_sanitize(cls, message: str) -> bool:
        lowered = message.lower()
        return any(re.search(pattern, lowered) for pattern in cls.SENSITIVE_PATTERNS)

    @classmethod
    def log(cls, logger: logging.Logger, level: int, message: str, *args, **kwargs):
        if cls.should_sanitize(message):
            message = f"[SANITIZED] {cls.sanitize_message(message)}"
        logger.log(level, message, *args, **kwargs)


def log_info(message: str, logger_name: Optional[str] = None, **kwargs):
    SecureLogger.log(get_logger(logger_name or __name__), logging.INFO, message, **kwargs)


def log_warning(message: str, logger_name: Optional[str] = None, **kwargs):
    SecureLogger.log(get_logger(logger_name or __name__), logging.WARNING, message, **kwargs)


def log_error(message: str, logger_name: Optional[str] = None, exc_info: bool = False, **kwargs):
    """Log an error through the sanitizer, optionally with the active traceback"""
    SecureLogger.log(get_logger(logger_name or __name__), logging.ERROR, message, exc_info=exc_info, **kwargs)


def log_audit(event_type: str, user_id: Optional[str], details: Dict[str, Any]):
    """
    Write a structured audit entry for a state change.

    Args:
        event_type: What happened, e.g. "health_goal_created"
        user_id: Owner of the changed data, if known
        details: JSON-serializable context; non-serializable values are
            stringified
    """
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": event_type,
        "user_id": user_id,
        "details": details,
    }
    get_logger(AUDIT_LOGGER_NAME).info(f"[AUDIT] {json.dumps(entry, default=str)}")
