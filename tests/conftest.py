"""
Shared pytest fixtures.

Provides:
- Settings tuned for tests (SQLite file database, cheap bcrypt)
- Database / session fixtures with all tables created
- A seeded org chart:

      admin (SUPER_ADMIN)
      ├── sm (SM_ADMIN)
      │   └── rm (RM)
      │       └── field (FIELD_USER)
      └── accounts (ACCOUNTS)

  plus an inactive FIELD_USER ``ghost`` reporting to rm.
- Token service and an HTTP client wired to the same database
"""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from fieldforce.core.config import Settings
from fieldforce.core.security import TokenService, hash_password
from fieldforce.db.session import Database
from fieldforce.db.seeds.seed_roles import seed_roles
from fieldforce.db.seeds.seed_super_admin import seed_default_entity
from fieldforce.main import create_app
from fieldforce.models.user import User

PASSWORD = "password123"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'fieldforce.db'}",
        ENVIRONMENT="test",
        JWT_SECRET="test-secret-key-that-is-long-enough-123",
        BCRYPT_ROUNDS=4,
        SUPER_ADMIN_EMAIL="admin@test.local",
        SUPER_ADMIN_PASSWORD=PASSWORD,
    )


@pytest.fixture
def database(settings):
    database = Database.from_settings(settings)
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def db(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def tokens(settings) -> TokenService:
    return TokenService(settings)


def make_user(db, email, role_id, reports_to=None, entity_id=None, active=True) -> User:
    user = User(
        email=email,
        hashed_password=hash_password(PASSWORD, rounds=4),
        full_name=email.split("@")[0].title(),
        role_id=role_id,
        entity_id=entity_id,
        reports_to_id=reports_to.id if reports_to else None,
        is_active=active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def org(db, settings):
    """Seeded roles, permissions, and the org chart described above."""
    roles = seed_roles(db)
    entity = seed_default_entity(db, settings)

    admin = make_user(db, "admin@test.local", roles["SUPER_ADMIN"], entity_id=entity.id)
    sm = make_user(db, "sm@test.local", roles["SM_ADMIN"], admin, entity.id)
    rm = make_user(db, "rm@test.local", roles["RM"], sm, entity.id)
    field = make_user(db, "field@test.local", roles["FIELD_USER"], rm, entity.id)
    accounts = make_user(db, "accounts@test.local", roles["ACCOUNTS"], admin, entity.id)
    ghost = make_user(db, "ghost@test.local", roles["FIELD_USER"], rm, entity.id, active=False)

    return SimpleNamespace(
        roles=roles,
        entity=entity,
        admin=admin,
        sm=sm,
        rm=rm,
        field=field,
        accounts=accounts,
        ghost=ghost,
    )


@pytest.fixture
def app(settings, database, tokens):
    return create_app(settings, database=database, tokens=tokens)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def login(client):
    """Log in through the API and return ``{"Authorization": ...}`` headers."""

    def _login(email: str, password: str = PASSWORD) -> dict:
        resp = client.post("/api/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}

    return _login
