import os
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from spectra.db import Base, get_db
from spectra.models import customer, network  # noqa: F401
from spectra.models.network import CableType, NodeType
from spectra.schemas.network import CableCreate, ConnectionCreate, NodeCreate
from spectra.services.network import cables as cable_service
from spectra.services.network import connections as connection_service
from spectra.services.network import nodes as node_service
from tests.helpers import core_at


@pytest.fixture(scope="session")
def engine():
    database_url = os.getenv("TEST_DATABASE_URL")
    if database_url:
        # Use PostgreSQL for tests (exercises row locks and native enums)
        engine = create_engine(database_url)
    else:
        engine = create_engine(
            "sqlite+pysqlite://",
            connect_args={
                "check_same_thread": False,
            },
            poolclass=StaticPool,
        )

        @event.listens_for(engine, "connect")
        def _configure_sqlite(dbapi_connection, _connection_record):
            # pysqlite's implicit transactions break SAVEPOINT; emit BEGIN ourselves.
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _begin_sqlite(conn):
            conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)

    return engine


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    # Service commits and rollbacks stay inside a SAVEPOINT of the test transaction.
    SessionLocal = sessionmaker(
        bind=connection,
        autoflush=False,
        autocommit=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def client(db_session):
    from spectra.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
def make_node(db_session):
    def _make(node_type=NodeType.CLOSURE, latitude=-6.2000, longitude=106.8166, **kwargs):
        kwargs.setdefault("name", f"{node_type.value}-{uuid.uuid4().hex[:6]}")
        return node_service.create(
            db_session,
            NodeCreate(type=node_type, latitude=latitude, longitude=longitude, **kwargs),
        )

    return _make


@pytest.fixture()
def closure(make_node):
    """Splice closure used as the default splice location."""
    return make_node(NodeType.CLOSURE, name="JC-01")


@pytest.fixture()
def make_cable(db_session):
    def _make(core_count=24, cable_type=CableType.ADSS, **kwargs):
        kwargs.setdefault("name", f"FO-{uuid.uuid4().hex[:6]}")
        return cable_service.create(
            db_session,
            CableCreate(type=cable_type, core_count=core_count, **kwargs),
        )

    return _make


@pytest.fixture()
def splice(db_session):
    """Splice ``input_cable[input_index]`` into ``output_cable[output_index]``."""

    def _splice(input_cable, input_index, output_cable, output_index, location=None, **kwargs):
        return connection_service.create(
            db_session,
            ConnectionCreate(
                location_node_id=location.id if location is not None else None,
                input_cable_id=input_cable.id,
                input_core_id=core_at(input_cable, input_index).id,
                output_cable_id=output_cable.id,
                output_core_id=core_at(output_cable, output_index).id,
                **kwargs,
            ),
        )

    return _splice
