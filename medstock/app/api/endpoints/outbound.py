from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from medstock.app.api.deps import get_current_operator, get_pageable, get_store
from medstock.app.db.models.core_types import MovementKind
from medstock.app.db.models.models_v1 import Operator
from medstock.app.db.store import Store, Pageable
from medstock.app.schemas.movement import OutboundMovementRead, MovementCreate
from medstock.app.schemas.page import Page
from medstock.services import movements

router = APIRouter(prefix="/outbound/transactions")


@router.post("", response_model=list[OutboundMovementRead])
def add_outbound_transactions(
    batch: list[MovementCreate],
    operator: Operator = Depends(get_current_operator),
    store: Store = Depends(get_store),
):
    return movements.apply_outbound(operator, batch, store=store)


@router.get("", response_model=Page[OutboundMovementRead])
def list_outbound_transactions(
    operator: Operator = Depends(get_current_operator),
    pageable: Pageable = Depends(get_pageable),
    store: Store = Depends(get_store),
):
    items, total = movements.list_movements(operator, MovementKind.outbound, pageable, store=store)
    return {"items": items, "total": total, "page": pageable.page, "size": pageable.size}


@router.get("/{movement_id}", response_model=OutboundMovementRead)
def get_outbound_transaction(
    operator: Operator = Depends(get_current_operator),
    movement_id: int = Path(ge=1),
    store: Store = Depends(get_store),
):
    return movements.get_movement(operator, movement_id, MovementKind.outbound, store=store)
