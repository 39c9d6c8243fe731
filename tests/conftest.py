import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from taskmanager.config import Settings, get_settings
from taskmanager.database import get_db
from taskmanager.main import app
from taskmanager.security import PasswordHasher, TokenService

TEST_SETTINGS = Settings(
    database_url="sqlite://",
    jwt_secret="test-secret",
    jwt_expires_in=timedelta(days=7),
    bcrypt_rounds=4,
)


@pytest.fixture()
def settings() -> Settings:
    return TEST_SETTINGS


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def hasher(settings) -> PasswordHasher:
    return PasswordHasher(rounds=settings.bcrypt_rounds)


@pytest.fixture()
def tokens(settings) -> TokenService:
    return TokenService(settings.jwt_secret, expires_in=settings.jwt_expires_in)


@pytest.fixture()
def client(engine, settings):
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, username, email=None, password="secret1", **extra):
    """Register a user through the API and return ``(user, auth_headers)``."""
    body = {
        "username": username,
        "email": email or f"{username}@example.com",
        "password": password,
        "confirmPassword": password,
        "firstName": username.capitalize(),
        "lastName": "Tester",
    }
    body.update(extra)
    response = client.post("/api/auth/register", json=body)
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    return data["user"], {"Authorization": f"Bearer {data['token']}"}


@pytest.fixture()
def alice(client):
    return register(client, "alice", email="a@x.com")


@pytest.fixture()
def bob(client):
    return register(client, "bob")


@pytest.fixture()
def carol(client):
    return register(client, "carol")
