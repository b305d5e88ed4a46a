"""Opaque identifiers sealed with the process AEAD key.

Cart IDs and auth tokens are ``base64url(JSON(EncryptedPayload))``; clients can
carry them around but cannot read or forge them. Decoding never raises: any
parse, decrypt or shape failure yields an invalid result.
"""
import base64
import binascii
import json
import logging
import secrets
import time
from typing import Any, Callable, Dict, Optional

from cartcommit.domain.security.codec import CryptoCodec
from cartcommit.domain.security.models import AuthTokenClaims, CartIdClaims
from cartcommit.errors import CryptoError

logger = logging.getLogger(__name__)

CART_ID_PREFIX = "cart_"
DEFAULT_AUTH_TOKEN_TTL_SECONDS = 3600
# Issued tokens stay under 2 KiB; longer input is rejected before parsing
MAX_TOKEN_LENGTH = 4096

# Distinct associated data per token kind
CART_ID_AAD = b"cart-id"
AUTH_TOKEN_AAD = b"auth-token"


def b64u_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64u_decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.b64decode(text + padding, altchars=b"-_", validate=True)


def _now_ms(clock: Callable[[], float]) -> int:
    return int(clock() * 1000)


class OpaqueTokenCodec:
    def __init__(self, codec: CryptoCodec, clock: Callable[[], float] = time.time):
        self._codec = codec
        self._clock = clock

    def _seal(self, claims: Dict[str, Any], aad: bytes) -> str:
        plaintext = json.dumps(claims, separators=(",", ":")).encode("utf-8")
        payload = self._codec.encrypt(plaintext, aad)
        return b64u_encode(payload.model_dump_json().encode("utf-8"))

    def _open(self, token: str, aad: bytes) -> Dict[str, Any]:
        if len(token) > MAX_TOKEN_LENGTH:
            raise ValueError("Token too long")
        envelope = json.loads(b64u_decode(token).decode("utf-8"))
        claims = json.loads(self._codec.decrypt(envelope, aad).decode("utf-8"))
        if not isinstance(claims, dict):
            raise ValueError("Token claims must be an object")
        return claims

    def encode_cart_id(self, user_id: str, design_id: str, timestamp: Optional[int] = None) -> str:
        claims = {
            "userId": user_id,
            "designId": design_id,
            "timestamp": timestamp if timestamp is not None else _now_ms(self._clock),
            "nonce": secrets.token_hex(8),
        }
        return CART_ID_PREFIX + self._seal(claims, CART_ID_AAD)

    def decode_cart_id(self, token: str) -> CartIdClaims:
        try:
            if not isinstance(token, str) or not token.startswith(CART_ID_PREFIX):
                raise ValueError("Invalid cart ID format")
            claims = self._open(token[len(CART_ID_PREFIX):], CART_ID_AAD)

            user_id = claims["userId"]
            design_id = claims["designId"]
            timestamp = claims["timestamp"]
            if not isinstance(user_id, str) or not isinstance(design_id, str):
                raise ValueError("Cart ID identifiers must be strings")
            if not isinstance(timestamp, int) or isinstance(timestamp, bool):
                raise ValueError("Cart ID timestamp must be an integer")
        except (CryptoError, ValueError, KeyError, TypeError, RecursionError, binascii.Error) as e:
            logger.debug(f"Rejected cart ID: {type(e).__name__}")
            return CartIdClaims.invalid()

        return CartIdClaims(user_id=user_id, design_id=design_id, timestamp=timestamp, is_valid=True)

    def encode_auth_token(
        self,
        user_id: str,
        cart_id: str,
        expires_in_seconds: Optional[int] = None
    ) -> str:
        ttl = DEFAULT_AUTH_TOKEN_TTL_SECONDS if expires_in_seconds is None else expires_in_seconds
        now = _now_ms(self._clock)
        claims = {
            "userId": user_id,
            "cartId": cart_id,
            "expiresAt": now + ttl * 1000,
            "issuedAt": now,
        }
        return self._seal(claims, AUTH_TOKEN_AAD)

    def decode_auth_token(self, token: str) -> AuthTokenClaims:
        try:
            if not isinstance(token, str) or not token:
                raise ValueError("Empty auth token")
            claims = self._open(token, AUTH_TOKEN_AAD)

            user_id = claims["userId"]
            cart_id = claims["cartId"]
            expires_at = claims["expiresAt"]
            if not isinstance(expires_at, (int, float)) or isinstance(expires_at, bool):
                raise ValueError("expiresAt must be numeric")
        except (CryptoError, ValueError, KeyError, TypeError, RecursionError, binascii.Error) as e:
            logger.debug(f"Rejected auth token: {type(e).__name__}")
            return AuthTokenClaims(is_valid=False)

        # Expiry is judged at verification time, not issuance
        is_expired = _now_ms(self._clock) > expires_at
        return AuthTokenClaims(
            is_valid=not is_expired,
            user_id=user_id,
            cart_id=cart_id,
            is_expired=is_expired,
            expires_at=int(expires_at),
        )
