"""Security Domain Models."""
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EncryptedPayload(BaseModel):
    """
    AES-256-GCM output as it crosses the process boundary.

    All binary fields are lowercase hex strings. The nonce may be 96 or 128
    bits; the authentication tag is always 128 bits.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    ciphertext: str = Field(..., pattern=r"^[0-9a-f]*$")
    iv: str = Field(..., pattern=r"^(?:[0-9a-f]{24}|[0-9a-f]{32})$")
    tag: str = Field(..., pattern=r"^[0-9a-f]{32}$")


@dataclass(frozen=True)
class CartIdClaims:
    user_id: str
    design_id: str
    timestamp: int
    is_valid: bool

    @classmethod
    def invalid(cls) -> "CartIdClaims":
        return cls(user_id="", design_id="", timestamp=0, is_valid=False)


@dataclass(frozen=True)
class AuthTokenClaims:
    is_valid: bool
    user_id: Optional[str] = None
    cart_id: Optional[str] = None
    is_expired: Optional[bool] = None
    expires_at: Optional[int] = None
