"""
Pytest configuration and fixtures for the workshops backend tests.
"""

import os
import shutil
import tempfile
from io import BytesIO
from pathlib import Path

import pytest

# Set test environment variables before importing the app
_TMP_ROOT = Path(tempfile.mkdtemp(prefix="workshops_test_"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_ROOT / 'test.db'}"
os.environ["UPLOAD_DIR"] = str(_TMP_ROOT / "uploads")
os.environ["LOG_DIR"] = str(_TMP_ROOT / "logs")
os.environ["JWT_SECRET"] = "test-secret-key"
os.environ["SITE_VERSION"] = "test"

from fastapi.testclient import TestClient
from PIL import Image

from app.main import app
from app.database import Base, SessionLocal, engine
from app.models.admin import Admin
from app.models.user import User
from app.utils.assets import asset_store
from app.utils.auth import issue_token


@pytest.fixture(scope="session", autouse=True)
def test_dirs():
    """Cleanup temp directories after the session."""
    yield _TMP_ROOT
    engine.dispose()
    shutil.rmtree(_TMP_ROOT, ignore_errors=True)


@pytest.fixture(autouse=True)
def fresh_state():
    """Every test starts with empty tables and an empty upload root."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    shutil.rmtree(asset_store.root, ignore_errors=True)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    return TestClient(app)


def _admin_headers(db, username: str, role: str) -> dict:
    admin = Admin(username=username, role=role)
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return {"Authorization": f"Bearer {issue_token(db, admin)}"}


@pytest.fixture
def admin_headers(db):
    """Superadmin: every action allowed."""
    return _admin_headers(db, "root", "superadmin")


@pytest.fixture
def editor_headers(db):
    """Admin role: everything but deletes."""
    return _admin_headers(db, "editor", "admin")


@pytest.fixture
def viewer_headers(db):
    return _admin_headers(db, "viewer", "viewer")


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(full_name: str = "Sara Ahmadi") -> User:
        counter["n"] += 1
        u = User(full_name=full_name, email=f"user{counter['n']}@example.com")
        db.add(u)
        db.commit()
        db.refresh(u)
        return u

    return _make


@pytest.fixture
def user_headers(db, make_user):
    u = make_user("Reza Karimi")
    return u, {"Authorization": f"Bearer {issue_token(db, u)}"}


@pytest.fixture
def make_teacher(client, admin_headers):
    def _make(full_name: str = "Ali Rezaei", **extra) -> dict:
        response = client.post("/teachers", json={"fullName": full_name, **extra}, headers=admin_headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _make


@pytest.fixture
def make_workshop(client, admin_headers):
    def _make(**fields) -> dict:
        body = {
            "capacity": 10,
            "title": "Linux Kernel 101",
            "price": 150000,
            "isRegOpen": True,
            "description": "Intro to kernel modules",
            "times": [{"start": "2026-11-01T10:00:00", "end": "2026-11-01T12:00:00"}],
            "teachers": [],
        }
        body.update(fields)
        response = client.post("/workshops", json=body, headers=admin_headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _make


def _image_bytes(fmt: str, size=(640, 480), color=(200, 30, 30)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def png_bytes():
    return _image_bytes("PNG")


@pytest.fixture
def jpeg_bytes():
    return _image_bytes("JPEG", size=(300, 900))
