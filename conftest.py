"""
Pytest configuration.

Configura una base de datos SQLite en memoria antes de importar la app.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SEED_SCENARIOS_ON_STARTUP", "false")
os.environ.setdefault("SCENARIO_STORE_FALLBACK", "static")

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.database.database import Base, SessionLocal, engine, get_db
from app.main import app
from app.modules.auth.utils import create_access_token
from app.modules.scenarios.seed_data import populate_scenario_mappings


@pytest.fixture
def db_session():
    """Sesión sobre una base de datos vacía con las tablas creadas."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def seeded_session(db_session):
    """Sesión con scenario_mappings poblada desde el catálogo."""
    populate_scenario_mappings(db_session)
    return db_session


@pytest.fixture
def client(seeded_session):
    def override_get_db():
        yield seeded_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_token():
    return create_access_token({"sub": str(uuid4()), "user_role": "viewer"})


@pytest.fixture
def auth_headers(auth_token):
    return {"Authorization": f"Bearer {auth_token}"}
