"""Payload redaction before data leaves the process or reaches a log."""
import re
from typing import Any

# Internal identifiers the external shop must never see
INTERNAL_FIELDS = frozenset({
    "user_id", "userId", "internal_id", "design_id", "designId",
    "auth_token", "session_id", "private_key", "secret",
})

SENSITIVE_KEY_PATTERN = re.compile(
    r"password|secret|token|credential|private|session|api_?key|auth",
    re.IGNORECASE,
)

MASK = "***MASKED***"


def is_sensitive_key(key: str) -> bool:
    return key in INTERNAL_FIELDS or bool(SENSITIVE_KEY_PATTERN.search(key))


def redact_for_external(data: Any) -> Any:
    """Recursively drop internal and sensitive keys."""
    if isinstance(data, dict):
        return {
            k: redact_for_external(v)
            for k, v in data.items()
            if not is_sensitive_key(str(k))
        }
    if isinstance(data, list):
        return [redact_for_external(v) for v in data]
    return data


def mask_sensitive_data(data: Any) -> Any:
    """Recursively mask sensitive values for logging, keeping the shape."""
    if isinstance(data, dict):
        return {
            k: MASK if is_sensitive_key(str(k)) else mask_sensitive_data(v)
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [mask_sensitive_data(v) for v in data]
    return data
