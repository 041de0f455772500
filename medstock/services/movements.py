"""
Movement engine.

Applies a batch of inbound or outbound movements against the catalog in one
Store transaction:

    1. collect the distinct medicine ids of the batch
    2. load them FOR UPDATE (ascending id), fail with NotFound on any gap
    3. plan each request in submission order, chaining before/after snapshots
    4. save medicines + insert movements
    5. commit

Any error before the commit rolls the whole batch back. Lock conflicts are
not retried: they surface as Conflict.

Reconciliation rule:
    medicine.quantity == SUM(inbound.quantity) - SUM(outbound.quantity)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from medstock.app.db.models.core_types import MovementKind
from medstock.app.db.models.models_v1 import (
    MAX_QUANTITY,
    Medicine,
    Operator,
    InboundMovement,
    OutboundMovement,
)
from medstock.app.db.store import Store, Pageable, Movement, MOVEMENT_MODELS, check_sort
from medstock.app.errors import InsufficientStock, NotFound, ServiceError, ValidationError
from medstock.app.schemas.movement import MovementCreate
from medstock.app.utils.logging import get_logger

logger = get_logger(__name__)

TIMESTAMP_FIELDS = {
    MovementKind.inbound: "received_at",
    MovementKind.outbound: "dispatched_at",
}


def movement_sort_columns(kind: MovementKind) -> dict[str, object]:
    model = MOVEMENT_MODELS[kind]
    ts = getattr(model, TIMESTAMP_FIELDS[kind])
    return {
        "id": model.id,
        "medicineId": model.medicine_id,
        "quantity": model.quantity,
        "supplier": model.supplier,
        "timestamp": ts,
        "receivedAt" if kind is MovementKind.inbound else "dispatchedAt": ts,
    }


def plan_movements(
    kind: MovementKind,
    batch: Sequence[MovementCreate],
    medicines: dict[int, Medicine],
    *,
    operator_id: int,
    at: datetime,
) -> list[Movement]:
    """
    Apply `batch` to the loaded `medicines` in submission order and stage one
    movement per request. Mutates `medicine.quantity`; raises
    InsufficientStock on the first outbound request that would go below zero,
    and ValidationError on an inbound one that would overflow the column.
    """
    model = MOVEMENT_MODELS[kind]
    ts_field = TIMESTAMP_FIELDS[kind]
    staged: list[Movement] = []

    for req in batch:
        medicine = medicines[req.medicine_id]
        before = medicine.quantity
        if kind is MovementKind.inbound:
            after = before + req.quantity
            if after > MAX_QUANTITY:
                raise ValidationError(
                    {"quantity": f"Stock of medicine ID {medicine.id} would exceed {MAX_QUANTITY}"}
                )
        else:
            after = before - req.quantity
            if after < 0:
                raise InsufficientStock(medicine_id=medicine.id, available=before, requested=req.quantity)

        medicine.quantity = after
        staged.append(
            model(
                medicine_id=medicine.id,
                operator_id=operator_id,
                quantity=req.quantity,
                original_medicine_quantity=before,
                update_transaction_quantity=after,
                supplier=req.supplier,
                **{ts_field: at},
            )
        )

    return staged


def apply_batch(
    operator: Operator,
    batch: Sequence[MovementCreate],
    kind: MovementKind,
    *,
    store: Store,
) -> list[Movement]:
    if not batch:
        raise ValidationError({"body": "At least one transaction is required"})

    operator_id = int(operator.id)
    medicine_ids = {int(req.medicine_id) for req in batch}

    try:
        with store.begin():
            medicines = store.get_medicines(medicine_ids, for_update=True)
            missing = medicine_ids - medicines.keys()
            if missing:
                raise NotFound("Medicines not found", missing_ids=missing)

            staged = plan_movements(
                kind,
                batch,
                medicines,
                operator_id=operator_id,
                at=datetime.now(timezone.utc),
            )
            store.save_medicines(medicines.values())
            store.insert_movements(staged)
    except ServiceError as e:
        logger.info(
            "batch_rejected",
            kind=kind.value,
            operator_id=operator_id,
            size=len(batch),
            error=type(e).__name__,
            detail=e.message,
        )
        raise

    logger.info(
        "batch_applied",
        kind=kind.value,
        operator_id=operator_id,
        size=len(batch),
        medicine_ids=sorted(medicine_ids),
    )
    return staged


def apply_inbound(operator: Operator, batch: Sequence[MovementCreate], *, store: Store) -> list[InboundMovement]:
    return apply_batch(operator, batch, MovementKind.inbound, store=store)


def apply_outbound(operator: Operator, batch: Sequence[MovementCreate], *, store: Store) -> list[OutboundMovement]:
    return apply_batch(operator, batch, MovementKind.outbound, store=store)


# ---------- reads (scoped to the caller) ----------
def list_movements(
    operator: Operator,
    kind: MovementKind,
    pageable: Pageable,
    *,
    store: Store,
) -> tuple[list[Movement], int]:
    columns = movement_sort_columns(kind)
    check_sort(pageable, columns)
    return store.list_movements_by_operator(int(operator.id), kind, pageable, columns)


def get_movement(operator: Operator, movement_id: int, kind: MovementKind, *, store: Store) -> Movement:
    movement = store.get_movement_by_id_and_operator(movement_id, int(operator.id), kind)
    if movement is None:
        raise NotFound(f"{kind.value.capitalize()} transaction not found with ID: {movement_id}")
    return movement
