import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from portal.app import create_app
from portal.config import Settings
from portal.database import Database
from portal.services.registration import RegistrationForm, register


class Clock:
    def __init__(self):
        self.now = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kw):
        self.now += timedelta(**kw)


@pytest.fixture()
def clock() -> Clock:
    return Clock()


@pytest.fixture()
def roles_file(tmp_path: Path) -> Path:
    p = tmp_path / "roles.yml"
    p.write_text("version: 1\nroles:\n  root: admin\n", encoding="utf-8")
    return p


@pytest.fixture()
def settings(tmp_path: Path, roles_file: Path) -> Settings:
    """Settings pointing at a throwaway SQLite file and the packaged templates."""
    return Settings(
        env_name="test",
        instance_name="Portal Test",
        database_url=f"sqlite:///{tmp_path / 'portal.db'}",
        session_secret="test-secret",
        session_backend="sql",
        roles_path=roles_file,
    )


@pytest.fixture()
def database(settings: Settings):
    db = Database.from_settings(settings)
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture()
def app(settings: Settings, database: Database):
    return create_app(settings, database=database)


@pytest.fixture()
def client(app):
    return TestClient(app, raise_server_exceptions=False)


def make_form(**overrides) -> RegistrationForm:
    values = {
        "first_name": "Alice",
        "last_name": "Liddell",
        "email": "alice@example.com",
        "username": "alice",
        "password": "abc123ab",
        "confirm_password": "abc123ab",
        "agree_terms": "on",
    }
    values.update(overrides)
    return RegistrationForm(**values)


@pytest.fixture()
def alice(database: Database):
    return register(database, make_form())


@pytest.fixture()
def root(database: Database):
    return register(
        database,
        make_form(first_name="Root", last_name="Admin", email="root@example.com", username="root"),
    )
