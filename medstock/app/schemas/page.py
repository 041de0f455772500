from __future__ import annotations

from typing import Generic, TypeVar

from medstock.app.schemas.base import CamelModel

T = TypeVar("T")


class Page(CamelModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    size: int
