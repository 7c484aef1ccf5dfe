import pytest
from fastapi.testclient import TestClient

from setu.auth import create_jwt, create_user
from setu.db import Database
from setu.db.migrations import migrate
from setu.server import create_app
from setu.uploads import LocalObjectStore


@pytest.fixture
def db(tmp_path):
    database = Database(path=tmp_path / "setu_test.db")
    migrate(database)
    yield database
    database.close()


@pytest.fixture
def store(tmp_path):
    return LocalObjectStore(tmp_path / "uploads", base_url="http://testserver")


@pytest.fixture
def client(db, store):
    return TestClient(create_app(db=db, object_store=store))


@pytest.fixture
def users(db):
    return {
        "user": create_user(db, "asha", "pw-asha", "user", display_name="Asha"),
        "admin": create_user(db, "ravi", "pw-ravi", "admin", display_name="Ravi Kumar"),
        "mainadmin": create_user(db, "meera", "pw-meera", "mainadmin"),
    }


@pytest.fixture
def auth(users):
    """auth("admin") -> headers carrying a bearer token for that seeded user."""
    def headers(role):
        return {"Authorization": f"Bearer {create_jwt(users[role])}"}
    return headers
