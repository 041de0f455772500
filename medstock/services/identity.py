"""
Operators: signup/login, tokens, and resolving the caller of a request.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from medstock.app.config import Settings, get_settings
from medstock.app.db.models.core_types import Role
from medstock.app.db.models.models_v1 import Operator
from medstock.app.db.store import Store
from medstock.app.errors import Forbidden, NotFound, Unauthenticated
from medstock.app.schemas.user import SignupRequest, LoginRequest, UserUpdate
from medstock.app.utils.logging import get_logger

logger = get_logger(__name__)


# ---------- passwords ----------
def hash_password(password: str, *, rounds: int | None = None) -> str:
    rounds = rounds or get_settings().bcrypt_rounds
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


# ---------- tokens ----------
def issue_token(email: str, *, settings: Settings | None = None, now: datetime | None = None) -> str:
    settings = settings or get_settings()
    now = now or datetime.now(timezone.utc)
    claims = {
        "sub": email,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_expire_minutes),
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, *, settings: Settings | None = None) -> str:
    """Verify signature and expiry; return the subject (operator email)."""
    settings = settings or get_settings()
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise Unauthenticated("Token has expired") from e
    except jwt.InvalidTokenError as e:
        raise Unauthenticated("Invalid token") from e

    subject = claims.get("sub")
    if not isinstance(subject, str) or not subject:
        raise Unauthenticated("Invalid token")
    return subject


def resolve_operator(store: Store, email: str | None) -> Operator:
    if not email:
        raise Unauthenticated("You need to log in to access this resource")
    operator = store.get_operator_by_email(email)
    if operator is None:
        raise Unauthenticated("You need to log in to access this resource")
    return operator


# ---------- accounts ----------
def signup(store: Store, payload: SignupRequest) -> str:
    operator = Operator(
        name=payload.name,
        email=payload.email,
        password_hash=hash_password(payload.password),
        role=payload.role,
    )
    with store.begin():
        store.insert_operator(operator)
    logger.info("operator_registered", operator_id=operator.id, role=operator.role.value)
    return issue_token(operator.email)


def login(store: Store, payload: LoginRequest) -> str:
    operator = store.get_operator_by_email(payload.email)
    if operator is None:
        raise NotFound(f"User not found with email: {payload.email}")
    if not verify_password(payload.password, operator.password_hash):
        raise Unauthenticated("Incorrect password")
    return issue_token(operator.email)


def list_operators(store: Store) -> list[Operator]:
    return store.list_operators()


def get_operator(store: Store, operator_id: int) -> Operator:
    operator = store.get_operator(operator_id)
    if operator is None:
        raise NotFound(f"User not found with ID: {operator_id}")
    return operator


def update_operator(store: Store, caller: Operator, operator_id: int, patch: UserUpdate) -> Operator:
    if caller.id != operator_id:
        raise Forbidden("You can only update your own account")

    with store.begin():
        operator = get_operator(store, operator_id)
        if patch.name is not None and patch.name.strip():
            operator.name = patch.name
        if patch.password:
            operator.password_hash = hash_password(patch.password)
        store.db.flush()

    logger.info("operator_updated", operator_id=operator_id)
    return operator


def delete_operator(store: Store, caller: Operator, operator_id: int) -> bool:
    if caller.role is not Role.admin:
        raise Forbidden("Access denied")

    with store.begin():
        operator = get_operator(store, operator_id)
        store.delete_operator(operator)

    logger.info("operator_deleted", operator_id=operator_id, by=caller.id)
    return True
