"""Authenticated symmetric encryption primitive.

AES-256-GCM with a fresh random nonce per message. Any corruption of the
ciphertext, nonce or tag surfaces as ``DecryptionError``; the AEAD tag check
is the only failure path, so callers never see partially decrypted data.
"""
import binascii
import logging
import os
from typing import Any, Mapping, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from pydantic import ValidationError as SchemaError

from cartcommit.domain.security.models import EncryptedPayload
from cartcommit.errors import DecryptionError, InvalidKeyError, MissingKeyError

logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16


def parse_hex_key(hex_key: str) -> bytes:
    """Decode a 64 hex character secret into 32 raw bytes."""
    try:
        key = binascii.unhexlify(hex_key.strip())
    except (binascii.Error, ValueError) as e:
        raise InvalidKeyError("Secret key must be hex encoded") from e
    if len(key) != KEY_SIZE:
        raise InvalidKeyError(
            f"Invalid secret key length. Must be {KEY_SIZE} bytes ({KEY_SIZE * 2} hex characters)"
        )
    return key


class CryptoCodec:
    """AES-256-GCM codec bound to one process-wide key."""

    def __init__(self, key: Optional[bytes], *, production: bool = False):
        if key is None:
            if production:
                raise MissingKeyError("Secret key must be provided in production environment")
            logger.warning("No secret key configured; generated an ephemeral development key")
            key = os.urandom(KEY_SIZE)

        if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
            raise InvalidKeyError(f"Invalid secret key length. Must be {KEY_SIZE} bytes")

        self._key = bytes(key)
        self._aesgcm = AESGCM(self._key)

    def encrypt(self, plaintext: bytes, aad: Optional[bytes] = None) -> EncryptedPayload:
        iv = os.urandom(NONCE_SIZE)
        ct_and_tag = self._aesgcm.encrypt(iv, plaintext, aad)

        return EncryptedPayload(
            ciphertext=ct_and_tag[:-TAG_SIZE].hex(),
            iv=iv.hex(),
            tag=ct_and_tag[-TAG_SIZE:].hex(),
        )

    def decrypt(
        self,
        payload: Union[EncryptedPayload, Mapping[str, Any]],
        aad: Optional[bytes] = None
    ) -> bytes:
        try:
            if not isinstance(payload, EncryptedPayload):
                payload = EncryptedPayload.model_validate(payload)
            iv = bytes.fromhex(payload.iv)
            tag = bytes.fromhex(payload.tag)
            ciphertext = bytes.fromhex(payload.ciphertext)
        except (SchemaError, ValueError, TypeError) as e:
            raise DecryptionError("Malformed encrypted payload") from e

        try:
            return self._aesgcm.decrypt(iv, ciphertext + tag, aad)
        except InvalidTag as e:
            raise DecryptionError("Decryption failed") from e

    def derive_key(self, info: bytes, length: int = KEY_SIZE) -> bytes:
        """Derive a purpose-bound sub-key from the managed secret."""
        return HKDF(
            algorithm=hashes.SHA256(),
            length=length,
            salt=None,
            info=info,
        ).derive(self._key)
