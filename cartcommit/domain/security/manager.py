"""Security facade: one managed secret behind every crypto concern."""
import logging
import os
import time
from typing import Any, Callable, Mapping, Optional, Union

from cartcommit.domain.security.codec import CryptoCodec, parse_hex_key
from cartcommit.domain.security.csrf import DEFAULT_CSRF_MAX_AGE_MS, CSRFTokenizer
from cartcommit.domain.security.integrity import IntegrityHasher
from cartcommit.domain.security.models import AuthTokenClaims, CartIdClaims, EncryptedPayload
from cartcommit.domain.security.tokens import DEFAULT_AUTH_TOKEN_TTL_SECONDS, OpaqueTokenCodec
from cartcommit.errors import CryptoError

logger = logging.getLogger(__name__)

CSRF_KEY_INFO = b"cartcommit.csrf.v1"


class SecurityManager:
    """Aggregates the AEAD codec, opaque tokens, integrity hashing and CSRF.

    Built once by the process bootstrap and passed explicitly to whatever
    needs it.
    """

    def __init__(
        self,
        secret_key: Optional[bytes] = None,
        *,
        production: bool = False,
        auth_token_ttl_seconds: int = DEFAULT_AUTH_TOKEN_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.codec = CryptoCodec(secret_key, production=production)
        self.tokens = OpaqueTokenCodec(self.codec, clock=clock)
        self.hasher = IntegrityHasher()
        self.csrf = CSRFTokenizer(self.codec.derive_key(CSRF_KEY_INFO), clock=clock)
        self.auth_token_ttl_seconds = auth_token_ttl_seconds

    @classmethod
    def from_settings(cls, settings) -> "SecurityManager":
        key = parse_hex_key(settings.CART_ENCRYPTION_KEY) if settings.CART_ENCRYPTION_KEY else None
        return cls(
            key,
            production=settings.is_production,
            auth_token_ttl_seconds=settings.AUTH_TOKEN_TTL_SECONDS,
        )

    # --- AEAD ---

    def encrypt(self, plaintext: bytes) -> EncryptedPayload:
        return self.codec.encrypt(plaintext)

    def decrypt(self, payload: Union[EncryptedPayload, Mapping[str, Any]]) -> bytes:
        return self.codec.decrypt(payload)

    # --- Opaque tokens ---

    def encode_cart_id(self, user_id: str, design_id: str, timestamp: Optional[int] = None) -> str:
        return self.tokens.encode_cart_id(user_id, design_id, timestamp)

    def decode_cart_id(self, token: str) -> CartIdClaims:
        return self.tokens.decode_cart_id(token)

    def issue_auth_token(self, user_id: str, cart_id: str, expires_in_seconds: Optional[int] = None) -> str:
        if expires_in_seconds is None:
            expires_in_seconds = self.auth_token_ttl_seconds
        return self.tokens.encode_auth_token(user_id, cart_id, expires_in_seconds)

    def verify_auth_token(self, token: str) -> AuthTokenClaims:
        return self.tokens.decode_auth_token(token)

    # --- Integrity ---

    def digest(self, value: Any) -> str:
        return self.hasher.digest(value)

    def verify_integrity(self, value: Any, expected_digest: str) -> bool:
        return self.hasher.verify(value, expected_digest)

    # --- CSRF ---

    def issue_csrf_token(self, session_id: str) -> str:
        return self.csrf.issue(session_id)

    def verify_csrf_token(self, token: str, session_id: str, max_age_ms: int = DEFAULT_CSRF_MAX_AGE_MS) -> bool:
        return self.csrf.verify(token, session_id, max_age_ms)

    # --- Readiness ---

    def self_test(self) -> bool:
        """Seal and reopen a throwaway payload and cart ID with the live key."""
        sample = os.urandom(16)
        try:
            if self.decrypt(self.encrypt(sample)) != sample:
                return False
        except CryptoError as e:
            logger.error(f"Security self-test failed: {e}")
            return False
        return self.decode_cart_id(self.encode_cart_id("health", "health", 0)).is_valid
