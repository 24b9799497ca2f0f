import logging
import re
from typing import Optional

from app.core.config import settings

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"

# Longest body snippet we ever put in a log line
MAX_BODY_CHARS = 500

_REDACTIONS = [
    # key=XXXXX in URLs / query strings
    (re.compile(r"((?:api_?)?key=)([^&\s]+)", re.IGNORECASE), r"\1REDACTED"),
    # Awin style path keys: /apikey/abc123/
    (re.compile(r"(/apikey/)([^/\s]+)", re.IGNORECASE), r"\1REDACTED"),
    # AWS SigV4 Authorization header parts
    (re.compile(r"(Credential=)([^/,\s]+)"), r"\1REDACTED"),
    (re.compile(r"(Signature=)([0-9a-fA-F]+)"), r"\1REDACTED"),
    # Bearer tokens
    (re.compile(r"(Bearer\s+)([A-Za-z0-9\-._~+/]+=*)", re.IGNORECASE), r"\1REDACTED"),
    # Access key ids (AKIA..., AKPA...)
    (re.compile(r"\bAK[A-Z]{2}[A-Z0-9]{12,}\b"), "AK**REDACTED"),
    # E-mail addresses
    (re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+"), "[email]"),
]


def redact(text: str) -> str:
    """
    Mask keys, tokens and e-mail addresses so they never end up in log files.
    """
    if not text:
        return text
    for pattern, repl in _REDACTIONS:
        text = pattern.sub(repl, text)
    return text


def truncate_body(body: Optional[str], limit: int = MAX_BODY_CHARS) -> Optional[str]:
    if body is None:
        return None
    return redact(body[:limit])


class RedactingFilter(logging.Filter):
    """
    Applies `redact` to the fully formatted message of every record.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        record.msg = redact(message)
        record.args = None
        return True


_configured = False


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger once (handler, format, level, redaction).
    """
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    if settings.LOG_REDACT:
        handler.addFilter(RedactingFilter())

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel((level or settings.LOG_LEVEL).upper())

    # httpx logs every request URL at INFO, which may carry keys
    logging.getLogger("httpx").setLevel(logging.WARNING)

    _configured = True
