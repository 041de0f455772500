from __future__ import annotations

from fastapi import APIRouter, Depends, Path

from medstock.app.api.deps import get_current_operator, get_store, require_admin, require_self
from medstock.app.db.models.models_v1 import Operator
from medstock.app.db.store import Store
from medstock.app.schemas.user import LoginRequest, SignupRequest, TokenResponse, UserRead, UserUpdate
from medstock.services import identity

router = APIRouter(prefix="/users")


@router.post("/signup", response_model=TokenResponse)
def signup(payload: SignupRequest, store: Store = Depends(get_store)):
    return {"token": identity.signup(store, payload)}


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, store: Store = Depends(get_store)):
    return {"token": identity.login(store, payload)}


@router.get("", response_model=list[UserRead])
def list_users(
    operator: Operator = Depends(get_current_operator),
    store: Store = Depends(get_store),
):
    return identity.list_operators(store)


@router.get("/{user_id}", response_model=UserRead)
def get_user(
    operator: Operator = Depends(get_current_operator),
    user_id: int = Path(ge=1),
    store: Store = Depends(get_store),
):
    return identity.get_operator(store, user_id)


@router.put("/{user_id}", response_model=UserRead)
def update_user(
    payload: UserUpdate,
    operator: Operator = Depends(require_self),
    user_id: int = Path(ge=1),
    store: Store = Depends(get_store),
):
    return identity.update_operator(store, operator, user_id, payload)


@router.delete("/{user_id}")
def delete_user(
    operator: Operator = Depends(require_admin),
    user_id: int = Path(ge=1),
    store: Store = Depends(get_store),
) -> bool:
    return identity.delete_operator(store, operator, user_id)
