from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from medstock.app.config import get_settings


def build_engine(database_url: str) -> Engine:
    """
    Engine for the Store.

    SQLite has no row locks, so every transaction starts with BEGIN IMMEDIATE:
    writers are serialized for the whole read-modify-write span.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    eng = create_engine(database_url, connect_args={"check_same_thread": False, "timeout": 15})

    @event.listens_for(eng, "connect")
    def _sqlite_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(eng, "begin")
    def _sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return eng


def build_sessionmaker(eng: Engine) -> sessionmaker:
    # committed rows stay readable for response serialization
    return sessionmaker(bind=eng, autoflush=False, autocommit=False, expire_on_commit=False)


engine = build_engine(get_settings().database_url)
SessionLocal = build_sessionmaker(engine)
