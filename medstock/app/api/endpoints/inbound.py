from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from medstock.app.api.deps import get_current_operator, get_pageable, get_store
from medstock.app.db.models.core_types import MovementKind
from medstock.app.db.models.models_v1 import Operator
from medstock.app.db.store import Store, Pageable
from medstock.app.schemas.movement import InboundMovementRead, MovementCreate
from medstock.app.schemas.page import Page
from medstock.services import movements

router = APIRouter(prefix="/inbound/transactions")


@router.post("", response_model=list[InboundMovementRead])
def add_inbound_transactions(
    batch: list[MovementCreate],
    operator: Operator = Depends(get_current_operator),
    store: Store = Depends(get_store),
):
    return movements.apply_inbound(operator, batch, store=store)


@router.get("", response_model=Page[InboundMovementRead])
def list_inbound_transactions(
    operator: Operator = Depends(get_current_operator),
    pageable: Pageable = Depends(get_pageable),
    store: Store = Depends(get_store),
):
    items, total = movements.list_movements(operator, MovementKind.inbound, pageable, store=store)
    return {"items": items, "total": total, "page": pageable.page, "size": pageable.size}


@router.get("/{movement_id}", response_model=InboundMovementRead)
def get_inbound_transaction(
    operator: Operator = Depends(get_current_operator),
    movement_id: int = Path(ge=1),
    store: Store = Depends(get_store),
):
    return movements.get_movement(operator, movement_id, MovementKind.inbound, store=store)
