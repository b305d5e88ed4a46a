"""SQLAlchemy Models for saved designs and purchase audit."""
from datetime import datetime, timezone

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import DeclarativeBase

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(postgresql.JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


class SavedDesign(Base):
    """A configurator design saved by a user."""
    __tablename__ = "saved_designs"
    id = Column(String(255), primary_key=True)
    user_id = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    customizations = Column(JSONType, nullable=True)
    cart_status = Column(String(32), nullable=False, default="saved")
    external_cart_id = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint(
            "cart_status IN ('saved','in_cart','purchased','cancelled')",
            name="check_saved_design_cart_status",
        ),
    )


class PurchaseRequest(Base):
    """Audit row for every outbound add-to-cart, success or failure."""
    __tablename__ = "purchase_requests"
    id = Column(String(64), primary_key=True)
    user_id = Column(String(255), nullable=False)
    design_id = Column(String(255), ForeignKey("saved_designs.id"), nullable=False)
    outbound_request = Column(JSONType, nullable=True)
    outbound_response = Column(JSONType, nullable=True)
    request_digest = Column(String(64), nullable=True)
    status = Column(String(16), nullable=False)
    error_message = Column(Text, nullable=True)
    external_cart_id = Column(String(255), nullable=True)
    redirect_url = Column(Text, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), index=True)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint("status IN ('success','failed')", name="check_purchase_status_enum"),
    )


Index("idx_purchase_requests_user_design", PurchaseRequest.user_id, PurchaseRequest.design_id)
