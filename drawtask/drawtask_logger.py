"""
Drawtask logging.

All modules log under the ``drawtask`` logger (``drawtask.store``,
``drawtask.dispatcher``, ...). Provider traffic is logged through
``log_request`` / ``log_response`` / ``log_error``: Authorization headers
are masked and inline ``data:`` images are summarized so a request body
carrying a 10MB reference image stays one readable line.
"""

import logging
import re
import time
from typing import Any, Dict, Optional

logger = logging.getLogger("drawtask")

LOG_FORMAT = "[%(name)s] %(levelname)s - %(message)s"
TIMESTAMP_LOG_FORMAT = "%(asctime)s " + LOG_FORMAT
TEXT_LIMIT = 500

_DATA_URI = re.compile(r"data:(?P<mime>[\w/+.-]+);base64,(?P<body>[A-Za-z0-9+/=]+)")

if not logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(_handler)
    logger.setLevel(logging.INFO)


def configure_logging(level: str = "INFO", include_timestamp: bool = False):
    """
    Set the drawtask log level and message format.

    Args:
        level: DEBUG, INFO, WARNING or ERROR; unknown names mean INFO
        include_timestamp: Prefix messages with the local time (server mode)
    """
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    fmt = TIMESTAMP_LOG_FORMAT if include_timestamp else LOG_FORMAT
    for handler in logger.handlers:
        handler.setFormatter(logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))


class RequestTimer:
    """Context manager that measures one provider call"""

    def __init__(self, operation: str):
        self.operation = operation
        self.elapsed = 0.0
        self._started = 0.0

    def __enter__(self):
        self._started = time.perf_counter()
        return self

    def __exit__(self, *exc_info):
        self.elapsed = time.perf_counter() - self._started
        logger.debug(f"⏱️ {self.operation} took {self.elapsed:.2f}s")


# ==========================================
# Redaction helpers
# ==========================================

def summarize_data_uris(text: str) -> str:
    """Replace inline base64 images with their mime type and size"""
    return _DATA_URI.sub(
        lambda m: f"<{m.group('mime')} {len(m.group('body')) * 3 // 4} bytes>", text
    )


def _clip(text: str, limit: int = TEXT_LIMIT) -> str:
    text = summarize_data_uris(text)
    return text if len(text) <= limit else text[:limit] + "..."


def safe_headers(headers: Optional[Dict[str, str]]) -> Dict[str, str]:
    """Copy of ``headers`` with credentials cut down to their scheme and a hint"""
    masked = {}
    for name, value in (headers or {}).items():
        if name.lower() in ("authorization", "x-api-key"):
            scheme, _, token = str(value).partition(" ")
            if not token:
                scheme, token = "", scheme
            hint = token[:4] + "****" if len(token) > 8 else "****"
            masked[name] = f"{scheme} {hint}".strip()
        else:
            masked[name] = value
    return masked


# ==========================================
# Provider traffic
# ==========================================

def log_request(method: str, url: str, headers: Optional[Dict[str, str]] = None,
                payload: Optional[Any] = None):
    logger.info(f"➡️ {method} {url}")
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"   Headers: {safe_headers(headers)}")
        if payload is not None:
            logger.debug(f"   Payload: {_clip(str(payload))}")


def log_response(status_code: int, elapsed: float,
                 response_text: Optional[str] = None, success: bool = True):
    icon = "✅" if success else "❌"
    logger.info(f"⬅️ {icon} HTTP {status_code} ({elapsed:.2f}s)")
    if response_text and (not success or logger.isEnabledFor(logging.DEBUG)):
        # Vendor error bodies log at INFO
        log = logger.info if not success else logger.debug
        log(f"   Response: {_clip(response_text)}")


def log_error(message: str, exception: Optional[BaseException] = None):
    if exception is None:
        logger.error(f"❌ {message}")
    else:
        logger.error(f"❌ {message}: {type(exception).__name__} - {exception}")
