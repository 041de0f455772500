import threading

import pytest
from sqlalchemy import select, func
from pydantic import ValidationError as PydanticValidationError

from medstock.app.db.models.core_types import MedicineType, MovementKind
from medstock.app.db.models.models_v1 import Medicine, InboundMovement, DEFAULT_DESCRIPTION, MAX_QUANTITY
from medstock.app.db.store import Pageable, SortOrder, Store
from medstock.app.errors import AlreadyExists, InUse, NotFound, ValidationError
from medstock.app.schemas.medicine import MedicineCreate, MedicineUpdate
from medstock.app.schemas.movement import MovementCreate
from medstock.services import catalog, movements


def test_create_defaults_quantity_and_description(store, enricher, make_operator):
    op = make_operator()

    med = catalog.create_medicine(
        store, MedicineCreate(name="Aspirin", type=MedicineType.otc), operator=op, enricher=enricher
    )

    assert med.id is not None
    assert med.quantity == 0
    assert med.description == DEFAULT_DESCRIPTION
    assert enricher.calls == ["Aspirin"]
    assert movements.list_movements(op, MovementKind.inbound, Pageable(), store=store) == ([], 0)


def test_create_keeps_given_description_when_enrichment_is_empty(store, enricher, make_operator):
    enricher.description = ""
    payload = MedicineCreate(name="Aspirin", description="Pain relief", quantity=12, type=MedicineType.otc)

    med = catalog.create_medicine(store, payload, operator=make_operator(), enricher=enricher)

    assert (med.description, med.quantity) == ("Pain relief", 12)


def test_enriched_description_wins_and_is_truncated(store, enricher, make_operator):
    enricher.description = "x" * 400
    payload = MedicineCreate(name="Aspirin", description="Pain relief", type=MedicineType.otc)

    med = catalog.create_medicine(store, payload, operator=make_operator(), enricher=enricher)

    assert med.description == "x" * 255


def test_opening_quantity_is_booked_as_inbound(store, make_operator, fetch):
    op = make_operator()
    payload = MedicineCreate(name="Aspirin", quantity=50, type=MedicineType.otc)

    med = catalog.create_medicine(store, payload, operator=op)

    [opening], total = movements.list_movements(op, MovementKind.inbound, Pageable(), store=store)
    assert total == 1
    assert (opening.medicine_id, opening.quantity, opening.supplier) == (med.id, 50, catalog.OPENING_STOCK_SUPPLIER)
    assert (opening.original_medicine_quantity, opening.update_transaction_quantity) == (0, 50)
    assert fetch(Medicine, med.id).quantity == 50

    # the opening movement is part of the ledger: later movements chain from it
    movements.apply_outbound(op, [MovementCreate(medicine_id=med.id, quantity=20, supplier="ClinicA")], store=store)
    assert fetch(Medicine, med.id).quantity == 30


def test_opening_quantity_fails_with_the_medicine(store, make_operator, make_medicine, fetch):
    op = make_operator()
    make_medicine("Aspirin")

    with pytest.raises(AlreadyExists):
        catalog.create_medicine(store, MedicineCreate(name="Aspirin", quantity=9, type=MedicineType.otc), operator=op)

    store.db.commit()
    assert store.db.execute(select(func.count()).select_from(InboundMovement)).scalar_one() == 0
    store.db.commit()


def test_quantity_above_column_range_is_rejected():
    with pytest.raises(PydanticValidationError):
        MedicineCreate(name="Aspirin", quantity=MAX_QUANTITY + 1, type=MedicineType.otc)
    with pytest.raises(PydanticValidationError):
        MovementCreate(medicine_id=1, quantity=3_000_000_000, supplier="SupA")


def test_duplicate_name_is_a_conflict(store, make_operator, make_medicine):
    make_medicine("Aspirin")

    with pytest.raises(AlreadyExists):
        catalog.create_medicine(
            store, MedicineCreate(name="Aspirin", type=MedicineType.pres), operator=make_operator("b@example.com")
        )


def test_concurrent_creates_of_the_same_name(session_factory, make_operator):
    op = make_operator()
    barrier = threading.Barrier(2)
    outcomes = []
    lock = threading.Lock()

    def worker():
        with session_factory() as session:
            barrier.wait()
            try:
                catalog.create_medicine(
                    Store(session), MedicineCreate(name="X", type=MedicineType.other, quantity=3), operator=op
                )
                result = "ok"
            except AlreadyExists:
                result = "conflict"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(outcomes) == ["conflict", "ok"]


def test_get_missing_medicine(store):
    with pytest.raises(NotFound) as exc:
        catalog.get_medicine(store, 42)

    assert exc.value.missing_ids == [42]


# ---------- update ----------
def test_update_changes_description_and_type_only(store, make_medicine, fetch):
    med = make_medicine("Aspirin", quantity=7)

    catalog.update_medicine(store, med.id, MedicineUpdate(description="Updated", type=MedicineType.pres))

    stored = fetch(Medicine, med.id)
    assert (stored.name, stored.description, stored.quantity, stored.type) == (
        "Aspirin",
        "Updated",
        7,
        MedicineType.pres,
    )


def test_update_absent_and_null_fields_are_left_alone(store, make_medicine, fetch):
    med = make_medicine("Aspirin")

    catalog.update_medicine(store, med.id, MedicineUpdate.model_validate({"description": None}))

    assert fetch(Medicine, med.id).description == DEFAULT_DESCRIPTION


def test_update_rejects_name_and_quantity_changes_together(store, make_medicine, fetch):
    med = make_medicine("Aspirin", quantity=3)

    with pytest.raises(ValidationError) as exc:
        catalog.update_medicine(store, med.id, MedicineUpdate(name="Other", quantity=99, description="d"))

    assert set(exc.value.fields) == {"name", "quantity"}
    stored = fetch(Medicine, med.id)
    assert (stored.name, stored.quantity, stored.description) == ("Aspirin", 3, DEFAULT_DESCRIPTION)


def test_update_with_unchanged_name_is_accepted(store, make_medicine):
    med = make_medicine("Aspirin")

    updated = catalog.update_medicine(store, med.id, MedicineUpdate(name="Aspirin", description="Same name"))

    assert updated.description == "Same name"


def test_update_missing_medicine(store):
    with pytest.raises(NotFound):
        catalog.update_medicine(store, 5, MedicineUpdate(description="d"))


# ---------- delete ----------
def test_delete_medicine(store, make_medicine, fetch):
    med = make_medicine("Aspirin")

    catalog.delete_medicine(store, med.id)

    assert fetch(Medicine, med.id) is None
    with pytest.raises(NotFound):
        catalog.delete_medicine(store, med.id)


def test_delete_medicine_with_movements_is_refused(store, make_operator, make_medicine, fetch):
    op = make_operator()
    med = make_medicine("Aspirin")
    movements.apply_inbound(op, [MovementCreate(medicine_id=med.id, quantity=1, supplier="SupA")], store=store)

    with pytest.raises(InUse):
        catalog.delete_medicine(store, med.id)

    assert fetch(Medicine, med.id) is not None


# ---------- listing ----------
def test_list_medicines_sorted_and_paged(store, make_medicine):
    for name, qty in (("Cetirizine", 5), ("Aspirin", 9), ("Bisoprolol", 1)):
        make_medicine(name, quantity=qty)

    items, total = catalog.list_medicines(store, Pageable(page=0, size=2, sort=(SortOrder("name"),)))
    assert total == 3
    assert [m.name for m in items] == ["Aspirin", "Bisoprolol"]

    items, _ = catalog.list_medicines(store, Pageable(sort=(SortOrder("quantity", descending=True),)))
    assert [m.quantity for m in items] == [9, 5, 1]


def test_list_medicines_rejects_unknown_sort_field(store):
    with pytest.raises(ValidationError) as exc:
        catalog.list_medicines(store, Pageable(sort=(SortOrder("secret"),)))

    assert "secret" in exc.value.fields["sort"]
