from __future__ import annotations

from pydantic import Field, field_validator

from medstock.app.db.models.core_types import MedicineType
from medstock.app.db.models.models_v1 import DESCRIPTION_MAX_LENGTH, MAX_QUANTITY
from medstock.app.schemas.base import CamelModel


class MedicineCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    quantity: int | None = Field(default=None, ge=0, le=MAX_QUANTITY)
    type: MedicineType

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name must not be blank")
        return v


class MedicineUpdate(CamelModel):
    """
    Partial update. Fields left out of the body, or sent as null, keep
    their stored value.
    """

    name: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    quantity: int | None = Field(default=None, ge=0, le=MAX_QUANTITY)
    type: MedicineType | None = None


class MedicineRead(CamelModel):
    id: int
    name: str
    description: str
    quantity: int
    type: MedicineType
