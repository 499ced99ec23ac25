import os
import tempfile
import uuid
from pathlib import Path

import pytest

# Point the app at a throwaway SQLite file before `campus` is imported.
_DB_DIR = Path(tempfile.mkdtemp(prefix="campus-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'test.db'}"
os.environ.setdefault("LOGIN_RATE_LIMIT_PER_MIN", "1000")

from fastapi.testclient import TestClient  # noqa: E402

from campus.main import app  # noqa: E402


@pytest.fixture(scope="session")
def client():
    return TestClient(app)


@pytest.fixture
def register_user(client):
    """Return a factory that signs up a fresh user and returns its auth headers."""
    def _register(domain: str = "st.habib.edu.pk", first_name: str = "Test", last_name: str = "User",
                  password: str = "secret123", **extra):
        email = f"u{uuid.uuid4().hex[:10]}@{domain}"
        body = {"first_name": first_name, "last_name": last_name, "email": email, "password": password}
        body.update(extra)
        r = client.post("/auth/register", json=body)
        assert r.status_code == 201, r.text
        headers = {"Authorization": f"Bearer {r.json()['access_token']}"}
        me = client.get("/auth/me", headers=headers).json()
        return {"headers": headers, "email": email, "id": me["id"], "password": password}
    return _register
