"""
Catalog service.

CRUD over medicines. `quantity` is owned by the movement engine: a starting
quantity given at creation is booked as an opening inbound movement by the
creating operator, and an update never changes it.
"""

from __future__ import annotations

from datetime import datetime, timezone

from medstock.app.db.models.core_types import MovementKind
from medstock.app.db.models.models_v1 import Medicine, Operator, DEFAULT_DESCRIPTION, DESCRIPTION_MAX_LENGTH
from medstock.app.db.store import Store, Pageable, check_sort
from medstock.app.errors import NotFound, ValidationError
from medstock.app.schemas.medicine import MedicineCreate, MedicineUpdate
from medstock.app.schemas.movement import MovementCreate
from medstock.app.utils.logging import get_logger
from medstock.services.enrichment import Enricher, NullEnricher
from medstock.services.movements import plan_movements

logger = get_logger(__name__)

OPENING_STOCK_SUPPLIER = "Opening stock"

MEDICINE_SORT_COLUMNS = {
    "id": Medicine.id,
    "name": Medicine.name,
    "description": Medicine.description,
    "quantity": Medicine.quantity,
    "type": Medicine.type,
}


def create_medicine(
    store: Store,
    payload: MedicineCreate,
    *,
    operator: Operator,
    enricher: Enricher | None = None,
) -> Medicine:
    draft = Medicine(
        name=payload.name,
        description=payload.description or DEFAULT_DESCRIPTION,
        quantity=0,
        type=payload.type,
    )
    opening = payload.quantity or 0

    # enrichment runs before the transaction opens: it is network I/O
    enriched = (enricher or NullEnricher()).describe(payload.name)
    if enriched:
        draft.description = enriched[:DESCRIPTION_MAX_LENGTH]

    with store.begin():
        store.insert_medicine(draft)
        if opening:
            staged = plan_movements(
                MovementKind.inbound,
                [MovementCreate(medicine_id=draft.id, quantity=opening, supplier=OPENING_STOCK_SUPPLIER)],
                {draft.id: draft},
                operator_id=int(operator.id),
                at=datetime.now(timezone.utc),
            )
            store.save_medicines([draft])
            store.insert_movements(staged)

    logger.info(
        "medicine_created",
        medicine_id=draft.id,
        name=draft.name,
        opening_quantity=opening,
        enriched=bool(enriched),
    )
    return draft


def get_medicine(store: Store, medicine_id: int) -> Medicine:
    medicine = store.get_medicine(medicine_id)
    if medicine is None:
        raise NotFound(f"Medicine not found with ID: {medicine_id}", missing_ids=[medicine_id])
    return medicine


def list_medicines(store: Store, pageable: Pageable) -> tuple[list[Medicine], int]:
    check_sort(pageable, MEDICINE_SORT_COLUMNS)
    return store.list_medicines_page(pageable, MEDICINE_SORT_COLUMNS)


def update_medicine(store: Store, medicine_id: int, patch: MedicineUpdate) -> Medicine:
    with store.begin():
        medicine = store.get_medicines([medicine_id], for_update=True).get(medicine_id)
        if medicine is None:
            raise NotFound(f"Medicine not found with ID: {medicine_id}", missing_ids=[medicine_id])

        changes = {k: v for k, v in patch.model_dump(exclude_unset=True).items() if v is not None}

        errors: dict[str, str] = {}
        if "name" in changes and changes["name"] != medicine.name:
            errors["name"] = "Name cannot be changed"
        if "quantity" in changes and changes["quantity"] != medicine.quantity:
            errors["quantity"] = "Quantity can only change through inbound/outbound transactions"
        if errors:
            raise ValidationError(errors)

        if "description" in changes:
            medicine.description = changes["description"]
        if "type" in changes:
            medicine.type = changes["type"]
        store.save_medicines([medicine])

    logger.info("medicine_updated", medicine_id=medicine_id, fields=sorted(changes))
    return medicine


def delete_medicine(store: Store, medicine_id: int) -> None:
    with store.begin():
        if store.get_medicines([medicine_id], for_update=True).get(medicine_id) is None:
            raise NotFound(f"Medicine not found with ID: {medicine_id}", missing_ids=[medicine_id])
        store.delete_medicine(medicine_id)

    logger.info("medicine_deleted", medicine_id=medicine_id)
