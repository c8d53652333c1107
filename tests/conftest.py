import os
import tempfile
from pathlib import Path

_tmpdir = Path(tempfile.mkdtemp(prefix="workcafe_test_"))
_db_path = _tmpdir / "test.db"

os.environ["DATABASE_URL"] = f"sqlite:///{_db_path.as_posix()}"
os.environ["JWT_SECRET"] = "test-secret-key"
os.environ["MEDIA_DIR"] = str(_tmpdir / "media")
os.environ["LOG_DIR"] = str(_tmpdir / "logs")

import pytest
from fastapi.testclient import TestClient

from workcafe.core.rate_limit import limiter
from workcafe.db.base import Base
from workcafe.db.session import SessionLocal, engine
from workcafe.main import create_app
from workcafe.models.enums import UserRole
from workcafe.models.users import UserAuth


@pytest.fixture()
def clean_db():
    limiter.reset()

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db(clean_db):
    session = SessionLocal()
    try:
        yield session
        session.commit()
    finally:
        session.close()


@pytest.fixture()
def client(clean_db):
    app = create_app()
    with TestClient(app) as c:
        yield c


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def register(client, username: str, password: str = "password123") -> dict:
    """Create a user through the API; returns {"id", "token", "headers"}."""
    r = client.post(
        "/api/users/register",
        json={"username": username, "email": f"{username}@example.com", "password": password},
    )
    assert r.status_code == 201, r.text
    body = r.json()
    return {"id": body["user"]["id"], "token": body["access_token"], "headers": auth_header(body["access_token"])}


def make_admin(client, db, username: str = "admin") -> dict:
    user = register(client, username)
    row = db.get(UserAuth, user["id"])
    row.role = UserRole.admin.value
    db.commit()

    # the role is baked into the token, so log in again
    r = client.post("/api/users/login", json={"email": f"{username}@example.com", "password": "password123"})
    assert r.status_code == 200, r.text
    token = r.json()["access_token"]
    return {"id": user["id"], "token": token, "headers": auth_header(token)}


def venue_payload(**overrides) -> dict:
    body = {
        "name": "Bean There",
        "description": "Quiet corner cafe with long tables",
        "address": "1 Main St",
        "city": "Portland",
        "country": "USA",
        "latitude": 45.52,
        "longitude": -122.68,
        "occupancy_limit": 8,
        "hours": [
            {"day_of_week": d, "open_time": "08:00:00", "close_time": "18:00:00"} for d in range(5)
        ],
        "amenities": {"has_wifi": True, "wifi_speed": 100, "power_outlets": "Abundant", "noise_level": "Quiet"},
        "dietary": {"has_vegan": True},
        "photos": [{"url": "https://img.example.com/a.jpg"}, {"url": "https://img.example.com/b.jpg"}],
        "categories": ["Coffee", "coworking"],
    }
    body.update(overrides)
    return body


def create_cafe(client, admin: dict, **overrides) -> int:
    """Approved cafe created through the admin endpoint."""
    r = client.post("/api/cafes", json=venue_payload(**overrides), headers=admin["headers"])
    assert r.status_code == 201, r.text
    return r.json()["id"]
