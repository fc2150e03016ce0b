import os
from typing import Generator

# Keep the import-time create_all away from the working directory
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from plantshop.db import Base, enable_sqlite_foreign_keys
from plantshop.main import app, build_catalog, get_db

PNG = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="


@pytest.fixture(scope="function")
def session_factory():
    # Use in-memory SQLite with a single connection
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(db_session, session_factory):
    # Override dependency to use the same session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    # fresh product cache per test
    app.state.catalog = build_catalog(session_factory=session_factory)
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client, email: str, password: str = "secret123", role: str = "user", username: str | None = None) -> dict:
    """Sign up and log in; returns the login body. Cookies are dropped so callers pick identity via headers."""
    r = client.post("/signup", json={"username": username or email.split("@")[0], "email": email, "password": password, "role": role})
    assert r.status_code == 201, r.text
    r = client.post("/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    client.cookies.clear()
    return r.json()


@pytest.fixture
def admin_headers(client) -> dict:
    return bearer(register(client, "admin@example.com", "adminpass", role="admin")["token"])


@pytest.fixture
def make_product(client, admin_headers):
    def _make(name="Fern", price="75", description="Boston fern, easy care"):
        r = client.post("/products", json={"name": name, "description": description, "price": price, "image": PNG}, headers=admin_headers)
        assert r.status_code == 201, r.text
        return r.json()
    return _make
