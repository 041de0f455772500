from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    ForeignKey,
    Enum,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, declared_attr

from medstock.app.db.base import Base
from medstock.app.db.models.core_types import MedicineType, Role

DEFAULT_DESCRIPTION = "Default description"
DESCRIPTION_MAX_LENGTH = 255
# quantities are stored in 32-bit INTEGER columns
MAX_QUANTITY = 2**31 - 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- AUTH ----------
class Operator(Base):
    __tablename__ = "operators"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[Role] = mapped_column(Enum(Role, name="role"), default=Role.user, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )


# ---------- CATALOG ----------
class Medicine(Base):
    __tablename__ = "medicines"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(
        String(DESCRIPTION_MAX_LENGTH),
        default=DEFAULT_DESCRIPTION,
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    type: Mapped[MedicineType] = mapped_column(Enum(MedicineType, name="medicine_type"), nullable=False)

    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_medicine_quantity_nonneg"),)


# ---------- MOVEMENTS ----------
class MovementMixin:
    """
    Columns shared by inbound and outbound movements.

    Rows are append-only: quantity snapshots are written once, at commit.
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    @declared_attr
    def medicine_id(cls) -> Mapped[int]:
        return mapped_column(ForeignKey("medicines.id", ondelete="RESTRICT"), nullable=False, index=True)

    @declared_attr
    def operator_id(cls) -> Mapped[int]:
        return mapped_column(ForeignKey("operators.id", ondelete="RESTRICT"), nullable=False, index=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    original_medicine_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    update_transaction_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    supplier: Mapped[str] = mapped_column(String(255), nullable=False)


class InboundMovement(MovementMixin, Base):
    __tablename__ = "inbound_movement"
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_inbound_movement_qty_pos"),
        Index("ix_inbound_movement_operator_time", "operator_id", "received_at"),
    )


class OutboundMovement(MovementMixin, Base):
    __tablename__ = "outbound_movement"
    dispatched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_outbound_movement_qty_pos"),
        Index("ix_outbound_movement_operator_time", "operator_id", "dispatched_at"),
    )
