import os

# must be set before the app modules read their settings
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite:///./.medstock-test.db"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["OPENFDA_ENABLED"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from medstock.app.api.deps import get_db, get_enricher  # noqa: E402
from medstock.app.db.base import Base  # noqa: E402
from medstock.app.db.models.core_types import MedicineType, Role  # noqa: E402
from medstock.app.db.models.models_v1 import Operator  # noqa: E402
from medstock.app.db.session import build_engine, build_sessionmaker  # noqa: E402
from medstock.app.db.store import Store  # noqa: E402
from medstock.app.schemas.medicine import MedicineCreate  # noqa: E402
from medstock.app.main import app as fastapi_app  # noqa: E402
from medstock.services.audit import AuditSink  # noqa: E402
from medstock.services import catalog  # noqa: E402
from medstock.services.identity import hash_password  # noqa: E402


class FakeEnricher:
    def __init__(self, description=None):
        self.description = description
        self.calls = []

    def describe(self, name):
        self.calls.append(name)
        return self.description


class RecordingPublisher:
    def __init__(self):
        self.records = []

    def publish(self, record):
        self.records.append(record)


@pytest.fixture(scope="function")
def engine(tmp_path):
    """
    Fresh SQLite file per test.

    A file (not :memory:) so that several sessions/threads share one database.
    """
    eng = build_engine(f"sqlite:///{tmp_path / 'medstock.db'}")
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def store(db_session) -> Store:
    return Store(db_session)


@pytest.fixture(scope="function")
def enricher():
    return FakeEnricher()


@pytest.fixture(scope="function")
def audit_publisher():
    return RecordingPublisher()


@pytest.fixture(scope="function")
def app(session_factory, enricher, audit_publisher):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    previous_sink = fastapi_app.state.audit_sink
    fastapi_app.state.audit_sink = AuditSink(audit_publisher, capacity=100)
    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_enricher] = lambda: enricher
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.clear()
        fastapi_app.state.audit_sink = previous_sink


@pytest.fixture(scope="function")
def client(app):
    return TestClient(app)


@pytest.fixture(scope="function")
def fetch(db_session):
    """
    Read the latest committed row.

    The read transaction is closed right away: on SQLite an open transaction
    holds the write lock other sessions wait on.
    """

    def _fetch(model, pk):
        db_session.commit()
        obj = db_session.get(model, pk, populate_existing=True)
        db_session.commit()
        return obj

    return _fetch


@pytest.fixture(scope="function")
def make_operator(store):
    def _make(email="op@example.com", *, name="Operator", role=Role.user, password="secret"):
        op = Operator(name=name, email=email, password_hash=hash_password(password), role=role)
        with store.begin():
            store.insert_operator(op)
        return op

    return _make


@pytest.fixture(scope="function")
def make_medicine(store, make_operator):
    """
    Create a medicine through the catalog. A starting quantity is booked as
    opening stock by a dedicated stock keeper, so it never shows up in the
    movement listings of the operators a test creates.
    """
    keeper = []

    def _make(name="Aspirin", *, quantity=0, type=MedicineType.otc):
        if not keeper:
            keeper.append(make_operator("stockkeeper@example.com", name="Stock keeper"))
        payload = MedicineCreate(name=name, quantity=quantity, type=type)
        return catalog.create_medicine(store, payload, operator=keeper[0])

    return _make


@pytest.fixture(scope="function")
def signup(client):
    """Register an operator over HTTP and return its Authorization header."""

    def _signup(email="alice@example.com", *, name="Alice", password="secret", role="USER"):
        response = client.post(
            "/users/signup",
            json={"name": name, "email": email, "password": password, "role": role},
        )
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['token']}"}

    return _signup
