import os

# Must be set before pos_terminals.database is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_temp.db")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from pos_terminals.main import app as fastapi_app
from pos_terminals.database import Base
from pos_terminals.auth import get_current_user

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_temp.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={
                       "check_same_thread": False})
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=engine)

TEST_USER_ID = "user-1"


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db():
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def client(monkeypatch):
    # Route every request session to the test database
    monkeypatch.setattr("pos_terminals.database.SessionLocal", TestingSessionLocal)
    # Bypass JWT verification for tests
    fastapi_app.dependency_overrides[get_current_user] = lambda: TEST_USER_ID
    with TestClient(fastapi_app) as c:
        yield c
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(monkeypatch):
    monkeypatch.setattr("pos_terminals.database.SessionLocal", TestingSessionLocal)
    with TestClient(fastapi_app) as c:
        yield c


@pytest.fixture
def mp_configured(monkeypatch):
    monkeypatch.setattr("pos_terminals.config.MERCADOPAGO_CLIENT_ID", "mp-client-id")
    monkeypatch.setattr("pos_terminals.config.MERCADOPAGO_CLIENT_SECRET", "mp-client-secret")
    monkeypatch.setattr("pos_terminals.config.MERCADOPAGO_REDIRECT_URI", None)
    monkeypatch.setattr("pos_terminals.config.APP_URL", None)

