"""Session-bound CSRF tokens.

Format: ``"<ms timestamp>.<hex HMAC-SHA256(key, {sessionId, timestamp})>"``.
The token is not secret; it only has to be unforgeable.
"""
import hashlib
import hmac
import time
from typing import Callable

from cartcommit.domain.security.integrity import canonical_json_bytes

DEFAULT_CSRF_MAX_AGE_MS = 3_600_000


class CSRFTokenizer:
    def __init__(self, key: bytes, clock: Callable[[], float] = time.time):
        self._key = key
        self._clock = clock

    def _sign(self, session_id: str, timestamp: int) -> str:
        message = canonical_json_bytes({"sessionId": session_id, "timestamp": timestamp})
        return hmac.new(self._key, message, hashlib.sha256).hexdigest()

    def issue(self, session_id: str) -> str:
        timestamp = int(self._clock() * 1000)
        return f"{timestamp}.{self._sign(session_id, timestamp)}"

    def verify(self, token: str, session_id: str, max_age_ms: int = DEFAULT_CSRF_MAX_AGE_MS) -> bool:
        if not isinstance(token, str) or not isinstance(session_id, str) or not session_id:
            return False

        timestamp_str, sep, signature = token.partition(".")
        if not sep or not timestamp_str.isdigit() or not signature:
            return False

        timestamp = int(timestamp_str)
        age = int(self._clock() * 1000) - timestamp
        if age < 0 or age >= max_age_ms:
            return False

        expected = self._sign(session_id, timestamp)
        return hmac.compare_digest(signature.lower(), expected)
