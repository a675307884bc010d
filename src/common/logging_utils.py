"""Centralized logging helpers.

``configure_logging`` installs handlers once per process; the remaining helpers
keep DEBUG traces structured and free of credentials.
"""

from __future__ import annotations

import logging
import os
import re
import time
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from constants import Constants

LOG_LEVEL_ENV = "OCTPKG_LOG_LEVEL"
LOG_FILE_ENV = "OCTPKG_LOG_FILE"
CONTEXT_ATTR = "octpkg_context"

_SENSITIVE_KEYS = ("token", "password", "passwd", "secret", "key", "signature", "auth")
_SECRET_PATTERN = re.compile(
    r"(?i)\b(token|password|passwd|secret|api[_-]?key|signature)=([^&\s]+)"
)
_BEARER_PATTERN = re.compile(r"(?i)(authorization:\s*bearer\s+)(\S+)")


class _ContextFormatter(logging.Formatter):
    """Formatter that appends structured context to DEBUG records."""

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        ctx = getattr(record, CONTEXT_ATTR, None)
        if ctx:
            pairs = " ".join(f"{k}={v}" for k, v in ctx.items())
            text = f"{text} [{pairs}]"
        return text


def _is_ours(handler: logging.Handler) -> bool:
    return getattr(handler, "_octpkg_handler", False)


def configure_logging(level: Optional[str] = None, logfile: Optional[str] = None) -> None:
    """Configure the root logger from arguments or environment.

    Args:
        level: Level name; defaults to ``$OCTPKG_LOG_LEVEL`` or INFO.
        logfile: Optional log file; defaults to ``$OCTPKG_LOG_FILE``.
    """
    level_name = (level or os.environ.get(LOG_LEVEL_ENV) or "INFO").upper()
    level_value = getattr(logging, level_name, logging.INFO)
    logfile = logfile or os.environ.get(LOG_FILE_ENV)

    root = logging.getLogger()
    for handler in list(root.handlers):
        if _is_ours(handler):
            root.removeHandler(handler)
            handler.close()

    stream = logging.StreamHandler()
    stream.setFormatter(_ContextFormatter(Constants.LOG_FORMAT))
    stream._octpkg_handler = True  # type: ignore[attr-defined]
    root.addHandler(stream)

    if logfile:
        file_handler = logging.FileHandler(logfile, encoding="utf-8")
        file_handler.setFormatter(_ContextFormatter(Constants.LOG_FILE_FORMAT))
        file_handler._octpkg_handler = True  # type: ignore[attr-defined]
        root.addHandler(file_handler)

    root.setLevel(level_value)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records of ``logger`` would be emitted."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build the ``extra`` mapping for a structured log call.

    None values are dropped so traces only show what is known.
    """
    return {CONTEXT_ATTR: {k: v for k, v in fields.items() if v is not None}}


class Timer:
    """Context manager measuring wall-clock duration."""

    def __init__(self) -> None:
        self._start: Optional[float] = None
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        """Elapsed milliseconds; usable both inside and after the block."""
        if self._start is None:
            return 0
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)


def safe_url(url: str) -> str:
    """Strip userinfo and secret query values from ``url`` for logging."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return redact(url)
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    if not parts.scheme:
        netloc = parts.netloc
    query = parts.query
    if query:
        cleaned = []
        for key, value in parse_qsl(query, keep_blank_values=True):
            if any(s in key.lower() for s in _SENSITIVE_KEYS):
                value = "***"
            cleaned.append((key, value))
        query = urlencode(cleaned, safe="*")
    return urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


def redact(text: str) -> str:
    """Mask credentials embedded in free text."""
    if not text:
        return text
    text = _SECRET_PATTERN.sub(lambda m: f"{m.group(1)}=***", text)
    return _BEARER_PATTERN.sub(lambda m: f"{m.group(1)}***", text)
