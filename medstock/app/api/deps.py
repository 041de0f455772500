from __future__ import annotations

from typing import Any, Generator, Iterator

from fastapi import Depends, Path, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from fastapi.security.utils import get_authorization_scheme_param
from sqlalchemy.orm import Session

from medstock.app.config import get_settings
from medstock.app.db.models.core_types import Role
from medstock.app.db.models.models_v1 import Operator
from medstock.app.db.session import SessionLocal
from medstock.app.db.store import Store, Pageable, SortOrder
from medstock.app.errors import Forbidden, Unauthenticated, ValidationError
from medstock.services.enrichment import Enricher, build_enricher
from medstock.services.identity import decode_token, resolve_operator

bearer_scheme = HTTPBearer(auto_error=False)

MAX_PAGE_SIZE = 2000


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_store(db: Session = Depends(get_db)) -> Store:
    return Store(db)


def get_enricher() -> Enricher:
    return build_enricher(get_settings())


def get_current_operator(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    store: Store = Depends(get_store),
) -> Operator:
    email = decode_token(credentials.credentials) if credentials else None
    operator = resolve_operator(store, email)
    request.state.operator_email = operator.email
    # end the read so the service opens its own write transaction
    store.db.commit()
    return operator


def _dependency_calls(dependant: Any) -> Iterator[Any]:
    for sub in dependant.dependencies:
        yield sub.call
        yield from _dependency_calls(sub)


def route_requires_operator(route: Any) -> bool:
    dependant = getattr(route, "dependant", None)
    return dependant is not None and get_current_operator in _dependency_calls(dependant)


def authenticate_before_validation(request: Request) -> None:
    """
    Token check for a protected route whose request failed validation before
    its dependencies ran (FastAPI parses the body first). Only the token is
    verified here; the operator lookup happens once the request is valid.
    """
    route = request.scope.get("route")
    if route is None or not route_requires_operator(route):
        return
    scheme, token = get_authorization_scheme_param(request.headers.get("Authorization"))
    if scheme.lower() != "bearer" or not token:
        raise Unauthenticated("You need to log in to access this resource")
    decode_token(token)


def parse_sort(values: list[str]) -> tuple[SortOrder, ...]:
    """
    Parse `sort=field,dir` values (dir is `asc` or `desc`, default asc).
    """
    orders: list[SortOrder] = []
    for raw in values:
        parts = [p.strip() for p in raw.split(",") if p.strip()]
        if not parts:
            continue
        if len(parts) > 2:
            raise ValidationError({"sort": f"Invalid sort '{raw}', expected field,dir"})
        direction = parts[1].lower() if len(parts) == 2 else "asc"
        if direction not in {"asc", "desc"}:
            raise ValidationError({"sort": f"Invalid sort direction '{parts[1]}'"})
        orders.append(SortOrder(field=parts[0], descending=direction == "desc"))
    return tuple(orders)


def get_pageable(
    page: int = Query(default=0, ge=0),
    size: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE),
    sort: list[str] = Query(default=[]),
) -> Pageable:
    return Pageable(page=page, size=size, sort=parse_sort(sort))


def require_admin(operator: Operator = Depends(get_current_operator)) -> Operator:
    if operator.role is not Role.admin:
        raise Forbidden("Access denied")
    return operator


def require_self(
    user_id: int = Path(ge=1),
    operator: Operator = Depends(get_current_operator),
) -> Operator:
    if operator.id != user_id:
        raise Forbidden("You can only update your own account")
    return operator
