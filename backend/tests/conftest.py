import os

# point the app at an in-memory database before it is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from protocol_app.database.base import Base
from protocol_app.database.models import Location, User, UserRole
from protocol_app.database.session import get_db
from protocol_app.main import app


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _add(db, obj):
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


@pytest.fixture
def requestee(db):
    return _add(db, User(username="requestee", email="requestee@example.com", role=UserRole.REQUESTEE))


@pytest.fixture
def incharge(db):
    return _add(db, User(username="incharge", email="incharge@example.com", role=UserRole.PROTOCOL_INCHARGE))


@pytest.fixture
def locations(db):
    return {
        "bhopal": _add(db, Location(name="Bhopal High Court", city="Bhopal", state="MP")),
        "chennai": _add(db, Location(name="Madras Bench", city="Chennai", state="TN")),
    }


@pytest.fixture
def officers(db, locations):
    """Two officers stationed at Bhopal and one at Chennai"""
    return {
        "bhopal": _add(db, User(
            username="bhopal_officer", email="bhopal@example.com",
            role=UserRole.PROTOCOL_OFFICER, location_id=locations["bhopal"].id,
        )),
        "bhopal_2": _add(db, User(
            username="bhopal_officer_2", email="bhopal2@example.com",
            role=UserRole.PROTOCOL_OFFICER, location_id=locations["bhopal"].id,
        )),
        "chennai": _add(db, User(
            username="chennai_officer", email="chennai@example.com",
            role=UserRole.PROTOCOL_OFFICER, location_id=locations["chennai"].id,
        )),
    }


@pytest.fixture
def roving_officer(db):
    return _add(db, User(username="roving_officer", email="roving@example.com", role=UserRole.PROTOCOL_OFFICER))
