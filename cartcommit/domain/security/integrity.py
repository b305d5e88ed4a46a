import hashlib
import hmac
import json
from typing import Any

from pydantic import BaseModel


def canonicalize(obj: Any) -> Any:
    """
    Reduce a JSON-like value to a canonical form.

    Rules:
    1. Object keys are stringified and sorted (applied at serialization).
    2. Floats that are integers become ints (1.0 -> 1).
    3. Arrays are canonicalized element-wise, then ordered by each element's
       canonical JSON text, so element order never affects the result.
    4. Pydantic models are dumped to plain data first.
    """
    if isinstance(obj, BaseModel):
        obj = obj.model_dump(mode="json")
    if isinstance(obj, dict):
        return {str(k): canonicalize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        items = [canonicalize(i) for i in obj]
        return sorted(items, key=_dumps)
    if isinstance(obj, float) and obj.is_integer():
        return int(obj)
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    raise TypeError(f"Cannot canonicalize value of type {type(obj).__name__}")


def _dumps(obj: Any) -> str:
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False
    )


def canonical_json_bytes(obj: Any) -> bytes:
    """Canonical UTF-8 JSON bytes for hashing and signing."""
    return _dumps(canonicalize(obj)).encode("utf-8")


class IntegrityHasher:
    """SHA-256 over canonical JSON; detects any change to a scalar value."""

    def digest(self, value: Any) -> str:
        return hashlib.sha256(canonical_json_bytes(value)).hexdigest()

    def verify(self, value: Any, expected_digest: str) -> bool:
        if not isinstance(expected_digest, str):
            return False
        try:
            actual = self.digest(value)
        except (TypeError, ValueError):
            return False
        return hmac.compare_digest(actual, expected_digest.lower())
