from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cartcommit.adapters.postgres.models import PurchaseRequest, SavedDesign
from cartcommit.domain.cart.models import CartStatus, PurchaseStatus
from cartcommit.domain.interfaces import DesignStore, ItemStatusStore, PurchaseAuditRecord, PurchaseAuditStore
from cartcommit.utils.id import new_audit_id


def to_dict(obj):
    if not obj:
        return None
    d = {c.name: getattr(obj, c.name) for c in obj.__table__.columns}
    return d


class PostgresDesignStore(DesignStore, ItemStatusStore):
    def __init__(self, db: Session):
        self.db = db

    def find_owned_design(self, design_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        # Ownership enforced in the query
        obj = self.db.query(SavedDesign).filter(
            SavedDesign.id == design_id,
            SavedDesign.user_id == user_id
        ).first()
        return to_dict(obj)

    def set_cart_status(self, design_id: str, status: CartStatus, external_cart_id: Optional[str] = None) -> None:
        updates = {
            "cart_status": CartStatus(status).value,
            "updated_at": datetime.now(timezone.utc)
        }
        if external_cart_id is not None:
            updates["external_cart_id"] = external_cart_id

        try:
            row_count = self.db.query(SavedDesign).filter(SavedDesign.id == design_id).update(updates)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        if row_count == 0:
            raise KeyError(f"Design {design_id} not found")


class PostgresPurchaseAuditStore(PurchaseAuditStore):
    def __init__(self, db: Session):
        self.db = db

    def insert_audit_record(self, record: Dict[str, Any]) -> PurchaseAuditRecord:
        data = {"attempts": 0, **record}
        data.setdefault("id", new_audit_id())
        obj = PurchaseRequest(**data)
        try:
            self.db.add(obj)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(obj)
        return to_dict(obj)

    def update_audit_record(self, audit_id: str, patch: Dict[str, Any]) -> None:
        updates = {**patch, "updated_at": datetime.now(timezone.utc)}
        try:
            row_count = self.db.query(PurchaseRequest).filter(PurchaseRequest.id == audit_id).update(updates)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        if row_count == 0:
            raise KeyError(f"Audit record {audit_id} not found")

    def get_audit_record(self, audit_id: str, user_id: str) -> Optional[PurchaseAuditRecord]:
        obj = self.db.query(PurchaseRequest).filter(
            PurchaseRequest.id == audit_id,
            PurchaseRequest.user_id == user_id
        ).first()
        return to_dict(obj)

    def find_latest_success(self, user_id: str, design_id: str) -> Optional[PurchaseAuditRecord]:
        obj = (
            self.db.query(PurchaseRequest)
            .filter(
                PurchaseRequest.user_id == user_id,
                PurchaseRequest.design_id == design_id,
                PurchaseRequest.status == PurchaseStatus.SUCCESS.value,
            )
            .order_by(PurchaseRequest.updated_at.desc(), PurchaseRequest.id.desc())
            .first()
        )
        return to_dict(obj)
