import hashlib
import logging
from typing import Any

# Create the library logger
logger = logging.getLogger("petlodge")

# Add NullHandler to prevent "No handlers could be found" warnings
# if the application doesn't configure logging.
logger.addHandler(logging.NullHandler())


def redact(value: dict[str, Any] | str | None) -> str:
    """
    Redacts owner names, storage keys and page tokens for logging.
    Values are hashed so log lines can still be correlated without revealing PII.
    """
    if value is None:
        return "<none>"
    try:
        if isinstance(value, dict):
            redacted = {}
            for k, v in value.items():
                redacted[k] = hashlib.sha256(str(v).encode("utf-8")).hexdigest()[:8]
            return str(redacted)
        return hashlib.sha256(str(value).encode("utf-8")).hexdigest()[:8]
    except Exception:
        return "<redaction_failed>"
