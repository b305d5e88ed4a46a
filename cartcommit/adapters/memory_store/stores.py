"""Memory Store Implementations."""
import copy
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from cartcommit.domain.cart.models import CartStatus, PurchaseStatus
from cartcommit.domain.interfaces import DesignStore, ItemStatusStore, PurchaseAuditRecord, PurchaseAuditStore
from cartcommit.utils.id import new_audit_id

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryDesignStore(DesignStore, ItemStatusStore):
    def __init__(self):
        self._designs: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def add_design(
        self,
        design_id: str,
        user_id: str,
        name: str = "Custom desk",
        cart_status: CartStatus = CartStatus.SAVED,
        **extra: Any,
    ) -> Dict[str, Any]:
        design = {
            "id": design_id,
            "user_id": user_id,
            "name": name,
            "cart_status": CartStatus(cart_status).value,
            "external_cart_id": None,
            "created_at": _now(),
            "updated_at": _now(),
            **extra,
        }
        with self._lock:
            self._designs[design_id] = design
        return copy.deepcopy(design)

    def find_owned_design(self, design_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        design = self._designs.get(design_id)
        if not design or design["user_id"] != user_id:
            return None
        return copy.deepcopy(design)

    def set_cart_status(self, design_id: str, status: CartStatus, external_cart_id: Optional[str] = None) -> None:
        with self._lock:
            design = self._designs.get(design_id)
            if not design:
                raise KeyError(f"Design {design_id} not found")
            design["cart_status"] = CartStatus(status).value
            if external_cart_id is not None:
                design["external_cart_id"] = external_cart_id
            design["updated_at"] = _now()


class MemoryPurchaseAuditStore(PurchaseAuditStore):
    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def insert_audit_record(self, record: Dict[str, Any]) -> PurchaseAuditRecord:
        now = _now()
        row = {
            "id": new_audit_id(),
            "outbound_request": None,
            "outbound_response": None,
            "request_digest": None,
            "error_message": None,
            "external_cart_id": None,
            "redirect_url": None,
            "attempts": 0,
            **copy.deepcopy(record),
            "created_at": now,
            "updated_at": now,
        }
        with self._lock:
            self._records[row["id"]] = row
        return copy.deepcopy(row)

    def update_audit_record(self, audit_id: str, patch: Dict[str, Any]) -> None:
        with self._lock:
            row = self._records.get(audit_id)
            if not row:
                raise KeyError(f"Audit record {audit_id} not found")
            row.update(copy.deepcopy(patch))
            row["updated_at"] = _now()

    def get_audit_record(self, audit_id: str, user_id: str) -> Optional[PurchaseAuditRecord]:
        row = self._records.get(audit_id)
        if not row or row["user_id"] != user_id:
            return None
        return copy.deepcopy(row)

    def find_latest_success(self, user_id: str, design_id: str) -> Optional[PurchaseAuditRecord]:
        matches: List[Dict[str, Any]] = [
            r for r in self._records.values()
            if r["user_id"] == user_id
            and r["design_id"] == design_id
            and r["status"] == PurchaseStatus.SUCCESS.value
        ]
        if not matches:
            return None
        return copy.deepcopy(max(matches, key=lambda r: (r["updated_at"], r["id"])))

    def all_records(self) -> List[Dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._records.values()]
