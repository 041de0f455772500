"""
Store: transactional persistence for medicines, movements and operators.

Every method runs inside the caller's Session. `begin()` scopes a unit of
work: commit on success, rollback on any exception.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

from sqlalchemy import select, func, exists
from sqlalchemy.exc import IntegrityError, DBAPIError
from sqlalchemy.orm import Session

from medstock.app.db.models.models_v1 import (
    Medicine,
    Operator,
    InboundMovement,
    OutboundMovement,
)
from medstock.app.db.models.core_types import MovementKind
from medstock.app.errors import AlreadyExists, Conflict, InUse, ValidationError

Movement = InboundMovement | OutboundMovement

MOVEMENT_MODELS: dict[MovementKind, type] = {
    MovementKind.inbound: InboundMovement,
    MovementKind.outbound: OutboundMovement,
}

# SQLSTATEs PostgreSQL uses for serialization failure, deadlock and lock_not_available
_PG_LOCK_CONFLICT_CODES = {"40001", "40P01", "55P03"}


@dataclass(frozen=True)
class SortOrder:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class Pageable:
    page: int = 0
    size: int = 20
    sort: tuple[SortOrder, ...] = ()

    @property
    def offset(self) -> int:
        return self.page * self.size


def check_sort(pageable: Pageable, sort_columns: dict[str, object]) -> None:
    unknown = [o.field for o in pageable.sort if o.field not in sort_columns]
    if unknown:
        allowed = ", ".join(sorted(sort_columns))
        raise ValidationError({"sort": f"Unknown sort field '{unknown[0]}' (allowed: {allowed})"})


def is_lock_conflict(exc: DBAPIError) -> bool:
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code in _PG_LOCK_CONFLICT_CODES:
        return True
    return "database is locked" in str(orig or exc).lower()


class Store:
    def __init__(self, db: Session) -> None:
        self.db = db

    # ---------- transaction ----------
    @contextmanager
    def begin(self) -> Iterator["Store"]:
        try:
            yield self
            self.db.commit()
        except DBAPIError as e:
            self.db.rollback()
            if is_lock_conflict(e):
                raise Conflict("Concurrent update conflict, please retry") from e
            raise
        except BaseException:
            self.db.rollback()
            raise

    # ---------- medicines ----------
    def get_medicines(self, ids: Iterable[int], *, for_update: bool = False) -> dict[int, Medicine]:
        """Load medicines by id. Rows are locked in ascending id order when `for_update`."""
        wanted = sorted({int(i) for i in ids})
        if not wanted:
            return {}
        stmt = select(Medicine).where(Medicine.id.in_(wanted)).order_by(Medicine.id.asc())
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        try:
            rows = self.db.execute(stmt).scalars().all()
        except DBAPIError as e:
            if is_lock_conflict(e):
                raise Conflict("Concurrent update conflict, please retry") from e
            raise
        return {int(m.id): m for m in rows}

    def get_medicine(self, medicine_id: int) -> Medicine | None:
        return self.db.get(Medicine, medicine_id)

    def save_medicines(self, medicines: Iterable[Medicine]) -> None:
        self.db.add_all(list(medicines))
        self.db.flush()

    def insert_medicine(self, medicine: Medicine) -> int:
        exists_ = self.db.execute(select(Medicine.id).where(Medicine.name == medicine.name)).first()
        if exists_:
            raise AlreadyExists(f"Medicine '{medicine.name}' already exists")
        try:
            with self.db.begin_nested():
                self.db.add(medicine)
                self.db.flush()
        except IntegrityError as e:
            raise AlreadyExists(f"Medicine '{medicine.name}' already exists") from e
        return int(medicine.id)

    def delete_medicine(self, medicine_id: int) -> None:
        if self.movements_exist_for_medicine(medicine_id):
            raise InUse(f"Medicine {medicine_id} is referenced by stock movements")
        medicine = self.db.get(Medicine, medicine_id)
        if medicine is not None:
            self.db.delete(medicine)
            self.db.flush()

    def list_medicines_page(self, pageable: Pageable, sort_columns: dict[str, object]) -> tuple[list[Medicine], int]:
        total = self.db.execute(select(func.count()).select_from(Medicine)).scalar_one()
        stmt = _apply_sort(select(Medicine), pageable, sort_columns, Medicine.id)
        rows = self.db.execute(stmt.offset(pageable.offset).limit(pageable.size)).scalars().all()
        return list(rows), int(total)

    # ---------- movements ----------
    def insert_movements(self, movements: Sequence[Movement]) -> None:
        self.db.add_all(list(movements))
        self.db.flush()

    def list_movements_by_operator(
        self,
        operator_id: int,
        kind: MovementKind,
        pageable: Pageable,
        sort_columns: dict[str, object],
    ) -> tuple[list[Movement], int]:
        model = MOVEMENT_MODELS[kind]
        total = self.db.execute(
            select(func.count()).select_from(model).where(model.operator_id == operator_id)
        ).scalar_one()
        stmt = select(model).where(model.operator_id == operator_id)
        stmt = _apply_sort(stmt, pageable, sort_columns, model.id)
        rows = self.db.execute(stmt.offset(pageable.offset).limit(pageable.size)).scalars().all()
        return list(rows), int(total)

    def get_movement_by_id_and_operator(self, movement_id: int, operator_id: int, kind: MovementKind) -> Movement | None:
        model = MOVEMENT_MODELS[kind]
        return self.db.execute(
            select(model).where(model.id == movement_id).where(model.operator_id == operator_id)
        ).scalar_one_or_none()

    def movements_exist_for_medicine(self, medicine_id: int) -> bool:
        return bool(
            self.db.execute(
                select(
                    exists().where(InboundMovement.medicine_id == medicine_id)
                    | exists().where(OutboundMovement.medicine_id == medicine_id)
                )
            ).scalar()
        )

    def movements_exist_for_operator(self, operator_id: int) -> bool:
        return bool(
            self.db.execute(
                select(
                    exists().where(InboundMovement.operator_id == operator_id)
                    | exists().where(OutboundMovement.operator_id == operator_id)
                )
            ).scalar()
        )

    # ---------- operators ----------
    def get_operator(self, operator_id: int) -> Operator | None:
        return self.db.get(Operator, operator_id)

    def get_operator_by_email(self, email: str) -> Operator | None:
        return self.db.execute(select(Operator).where(Operator.email == email)).scalar_one_or_none()

    def list_operators(self) -> list[Operator]:
        return list(self.db.execute(select(Operator).order_by(Operator.id.asc())).scalars().all())

    def insert_operator(self, operator: Operator) -> int:
        if self.get_operator_by_email(operator.email) is not None:
            raise AlreadyExists("Email already exists.")
        try:
            with self.db.begin_nested():
                self.db.add(operator)
                self.db.flush()
        except IntegrityError as e:
            raise AlreadyExists("Email already exists.") from e
        return int(operator.id)

    def delete_operator(self, operator: Operator) -> None:
        if self.movements_exist_for_operator(operator.id):
            raise InUse(f"Operator {operator.id} is referenced by stock movements")
        self.db.delete(operator)
        self.db.flush()


def _apply_sort(stmt, pageable: Pageable, sort_columns: dict[str, object], id_column):
    order_by = []
    for order in pageable.sort:
        column = sort_columns[order.field]
        order_by.append(column.desc() if order.descending else column.asc())
    # stable pages: id is always the final tie-breaker
    order_by.append(id_column.asc())
    return stmt.order_by(*order_by)
