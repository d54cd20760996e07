import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import accounts
from db import get_session
from main import app
from models import ASSET_AVAILABLE, ROLE_LENDER, ROLE_STAFF, ROLE_STUDENT, Asset, User


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(session):
    def override_get_session():
        return session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def _make_user(session, username, role, password="pw1"):
    user = User(username=username, password_hash=accounts.hash_password(password), role=role)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def student(session):
    return accounts.to_principal(_make_user(session, "alice", ROLE_STUDENT))


@pytest.fixture
def other_student(session):
    return accounts.to_principal(_make_user(session, "bob", ROLE_STUDENT))


@pytest.fixture
def lender(session):
    return accounts.to_principal(_make_user(session, "lena", ROLE_LENDER))


@pytest.fixture
def staff(session):
    return accounts.to_principal(_make_user(session, "stan", ROLE_STAFF))


@pytest.fixture
def make_asset(session):
    def _make(name="Projector", status=ASSET_AVAILABLE):
        asset = Asset(asset_name=name, status=status)
        session.add(asset)
        session.commit()
        session.refresh(asset)
        return asset

    return _make
