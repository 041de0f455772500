from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from medstock.app.api.deps import get_current_operator, get_enricher, get_pageable, get_store
from medstock.app.db.models.models_v1 import Operator
from medstock.app.db.store import Store, Pageable
from medstock.app.schemas.medicine import MedicineCreate, MedicineRead, MedicineUpdate
from medstock.app.schemas.page import Page
from medstock.services import catalog
from medstock.services.enrichment import Enricher

router = APIRouter(prefix="/medicines")


@router.post("", response_model=MedicineRead)
def create_medicine(
    payload: MedicineCreate,
    operator: Operator = Depends(get_current_operator),
    store: Store = Depends(get_store),
    enricher: Enricher = Depends(get_enricher),
):
    return catalog.create_medicine(store, payload, operator=operator, enricher=enricher)


@router.get("/{medicine_id}", response_model=MedicineRead)
def get_medicine(
    operator: Operator = Depends(get_current_operator),
    medicine_id: int = Path(ge=1),
    store: Store = Depends(get_store),
):
    return catalog.get_medicine(store, medicine_id)


@router.get("", response_model=Page[MedicineRead])
def list_medicines(
    operator: Operator = Depends(get_current_operator),
    pageable: Pageable = Depends(get_pageable),
    store: Store = Depends(get_store),
):
    """
    Catalog page. The catalog is shared: every operator sees every medicine.
    """
    items, total = catalog.list_medicines(store, pageable)
    return {"items": items, "total": total, "page": pageable.page, "size": pageable.size}


@router.put("/{medicine_id}", response_model=MedicineRead)
def update_medicine(
    payload: MedicineUpdate,
    operator: Operator = Depends(get_current_operator),
    medicine_id: int = Path(ge=1),
    store: Store = Depends(get_store),
):
    return catalog.update_medicine(store, medicine_id, payload)


@router.delete("/{medicine_id}")
def delete_medicine(
    operator: Operator = Depends(get_current_operator),
    medicine_id: int = Path(ge=1),
    store: Store = Depends(get_store),
):
    catalog.delete_medicine(store, medicine_id)
    return {"message": "Medicine deleted successfully."}
