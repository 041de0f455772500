from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from medstock.app.db.models.models_v1 import MAX_QUANTITY

from medstock.app.schemas.base import CamelModel


class MovementCreate(CamelModel):
    medicine_id: int = Field(ge=1)
    quantity: int = Field(ge=1, le=MAX_QUANTITY)
    supplier: str = Field(min_length=1, max_length=255)

    @field_validator("supplier")
    @classmethod
    def supplier_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Supplier name is required")
        return v


class MovementRead(CamelModel):
    id: int
    medicine_id: int
    operator_id: int
    quantity: int
    original_medicine_quantity: int
    update_transaction_quantity: int
    supplier: str


class InboundMovementRead(MovementRead):
    received_at: datetime


class OutboundMovementRead(MovementRead):
    dispatched_at: datetime
