"""Error taxonomy for the cart commit pipeline."""
from typing import Any, Dict, Optional

from fastapi import HTTPException


class CartServiceError(Exception):
    """Base error carrying a stable machine-readable code."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details


class ValidationError(CartServiceError):
    """Bad input shape or range."""
    code = "VALIDATION_ERROR"


class NotFoundError(CartServiceError):
    """Design or audit record absent, or not owned by the caller."""
    code = "NOT_FOUND"


class PriceMismatchError(CartServiceError):
    code = "PRICE_MISMATCH"


class ConflictError(CartServiceError):
    """The design's current state forbids the operation."""
    code = "CONFLICT"


class IntegrityCheckError(CartServiceError):
    code = "INTEGRITY_ERROR"


class CryptoError(CartServiceError):
    code = "CRYPTO_ERROR"


class InvalidKeyError(CryptoError):
    code = "INVALID_SECRET_KEY"


class MissingKeyError(CryptoError):
    code = "MISSING_SECRET_KEY"


class DecryptionError(CryptoError):
    code = "DECRYPTION_ERROR"


class ConfigurationError(CartServiceError):
    code = "CONFIG_MISSING"


class InternalError(CartServiceError):
    code = "INTERNAL_ERROR"


class ExternalApiError(CartServiceError):
    """Failure talking to the external shopping mall.

    ``retryable`` drives the client's retry predicate; ``error_code`` is the
    vendor's classification when one was returned.
    """

    code = "EXTERNAL_API_ERROR"

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = True,
        error_code: Optional[str] = None,
        status_code: Optional[int] = None,
        response: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details={"error_code": error_code, "status_code": status_code})
        self.retryable = retryable
        self.error_code = error_code
        self.status_code = status_code
        self.response = response


class ExternalTimeoutError(ExternalApiError):
    code = "TIMEOUT_ERROR"


# Resolved locally into typed outcomes; never retried, never sent externally
LOCAL_FAILURES = (ValidationError, NotFoundError, PriceMismatchError, ConflictError, IntegrityCheckError)


def raise_cart_error(
    code: str,
    status_code: int,
    message: str,
    details: Optional[Dict[str, Any]] = None
) -> None:
    """Raise a standardized HTTPException.

    Args:
        code: Error code (UNAUTHORIZED, CSRF_TOKEN_INVALID, etc.)
        status_code: HTTP Status Code (401, 403, etc.)
        message: Human readable message
        details: Optional extra details
    """
    error_body: Dict[str, Any] = {
        "code": code,
        "message": message
    }
    if details:
        error_body["details"] = details

    raise HTTPException(status_code=status_code, detail={"error": error_body})
