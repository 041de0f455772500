from __future__ import annotations

import os

from sqlalchemy import select, func

from medstock.app.db.base import Base
from medstock.app.db.session import SessionLocal, engine
from medstock.app.db.models.models_v1 import Operator
from medstock.app.db.models.core_types import Role
from medstock.services.identity import hash_password

DEFAULT_OPERATORS = [
    ("Léa Seydoux", "lea.seydoux@gmail.com", Role.admin),
    ("Angela Sarafyan", "angela.sarafyan@gmail.com", Role.user),
    ("Talulah Riley", "talulah.riley@gmail.com", Role.user),
]


def run_seed(db=None) -> int:
    """
    Create missing tables and insert the default operators when the
    operator table is empty. Returns how many operators were inserted.
    """
    own_session = db is None
    if own_session:
        Base.metadata.create_all(bind=engine)
        db = SessionLocal()
    try:
        count = db.scalar(select(func.count()).select_from(Operator))
        if count:
            return 0

        password = os.getenv("SEED_PASSWORD", "123")
        for name, email, role in DEFAULT_OPERATORS:
            db.add(Operator(name=name, email=email, password_hash=hash_password(password), role=role))
        db.commit()
        return len(DEFAULT_OPERATORS)
    finally:
        if own_session:
            db.close()


if __name__ == "__main__":
    inserted = run_seed()
    print(f"SEED OK: {inserted} operator(s) inserted")
