"""Domain interfaces for persistence stores and collaborators."""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, TypedDict

from cartcommit.domain.cart.models import CartStatus

# price(width_cm, depth_cm, height_cm, material) -> {"total": ..., ...}
PricingFunction = Callable[[float, float, float, str], Mapping[str, Any]]


class PurchaseAuditRecord(TypedDict):
    id: str
    user_id: str
    design_id: str
    outbound_request: Optional[Dict[str, Any]]
    outbound_response: Optional[Dict[str, Any]]
    request_digest: Optional[str]
    status: str
    error_message: Optional[str]
    external_cart_id: Optional[str]
    redirect_url: Optional[str]
    attempts: int
    created_at: datetime
    updated_at: datetime


class DesignStore(ABC):
    @abstractmethod
    def find_owned_design(self, design_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """Return the design if it exists and belongs to ``user_id``."""
        ...


class ItemStatusStore(ABC):
    @abstractmethod
    def set_cart_status(self, design_id: str, status: CartStatus, external_cart_id: Optional[str] = None) -> None: pass


class PurchaseAuditStore(ABC):
    @abstractmethod
    def insert_audit_record(self, record: Dict[str, Any]) -> PurchaseAuditRecord:
        """Persist a new record, assigning ``id`` and timestamps."""
        ...

    @abstractmethod
    def update_audit_record(self, audit_id: str, patch: Dict[str, Any]) -> None: pass

    @abstractmethod
    def get_audit_record(self, audit_id: str, user_id: str) -> Optional[PurchaseAuditRecord]:
        """Return the record only when owned by ``user_id``."""
        ...

    @abstractmethod
    def find_latest_success(self, user_id: str, design_id: str) -> Optional[PurchaseAuditRecord]: pass


@dataclass
class CallResult:
    """Outcome of one add-to-cart call, including every retry it spent."""
    success: bool
    raw_request: Dict[str, Any]
    raw_response: Optional[Dict[str, Any]] = None
    external_cart_id: Optional[str] = None
    redirect_url: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    attempts: int = 0


class CheckoutClient(ABC):
    """Port to the external shopping/checkout system."""

    @abstractmethod
    async def add_to_cart(self, item: Mapping[str, Any]) -> CallResult:
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        ...
