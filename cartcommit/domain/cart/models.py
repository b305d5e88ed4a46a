"""Cart Domain Models."""
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from cartcommit.errors import CartServiceError


class CartStatus(str, Enum):
    SAVED = "saved"
    IN_CART = "in_cart"
    PURCHASED = "purchased"
    CANCELLED = "cancelled"


class PurchaseStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class PriceBreakdown(BaseModel):
    model_config = ConfigDict(extra="allow")

    base_price: float
    material_modifier: float
    volume_m3: float
    total: float
    subtotal: Optional[float] = None
    tax: Optional[float] = None
    currency: str = "KRW"


class Customizations(BaseModel):
    width_cm: float
    depth_cm: float
    height_cm: float
    material: str
    calculated_price: float
    price_breakdown: PriceBreakdown
    name: str
    color: Optional[str] = None


class CartItemData(BaseModel):
    """A priced, user-customized item as submitted by the configurator UI."""
    model_config = ConfigDict(populate_by_name=True)

    design_id: str = Field(..., alias="designId")
    quantity: int = 1
    customizations: Customizations


class CustomOptions(BaseModel):
    dimensions: str
    material: str
    specifications: str


class ExternalCartItem(BaseModel):
    """Vendor-facing projection of a cart item."""
    product_id: str = "custom_desk"
    product_name: str
    quantity: int
    unit_price: float
    custom_options: CustomOptions
    total_price: float


class OutcomeError(BaseModel):
    code: str
    details: Any = None


class CartOutcome(BaseModel):
    """Result of a commit or retry, serialized camelCase for the UI."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    message: str
    cart_id: Optional[str] = None
    redirect_url: Optional[str] = None
    checkout_url: Optional[str] = None
    fallback: bool = False
    retry_url: Optional[str] = None
    audit_id: Optional[str] = None
    error: Optional[OutcomeError] = None

    @classmethod
    def failure(cls, code: str, message: str, details: Any = None, **extra) -> "CartOutcome":
        return cls(success=False, message=message, error=OutcomeError(code=code, details=details), **extra)

    @classmethod
    def from_error(cls, error: CartServiceError) -> "CartOutcome":
        return cls.failure(error.code, error.message, error.details)

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
