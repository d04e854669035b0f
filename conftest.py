"""Pytest configuration and fixtures for the Lumiere backend tests

Provides:
- client: FastAPI TestClient over a fresh temporary SQLite database
- fake_text / fake_image: generation backends that never touch the network
- auth_headers: factory that signs up a user and returns bearer headers
- store: DesignSessionStore bound to the test database
"""

import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="lumiere-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["MEDIA_ROOT"] = os.path.join(_TMP_DIR, "media")
os.environ["PUBLIC_BASE_URL"] = "http://testserver"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.pop("CRON_SECRET", None)
os.environ.pop("ANTHROPIC_API_KEY", None)
os.environ.pop("OPENAI_API_KEY", None)

import itertools  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from backend.database import Base, SessionLocal, engine  # noqa: E402
from backend.errors import UpstreamFailure  # noqa: E402

# PNG signature followed by padding; never decoded
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32

BRIEF = {
    "category": "ring",
    "metal_type": "gold",
    "style": "modern",
    "diamond_type": "none",
    "description": "A simple modern gold band, 10+ chars",
}

_emails = itertools.count(1)


class FakeTextGenerator:
    def __init__(self, reply: str = "Here is a sleek band with a brushed finish.", error: Exception = None):
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, list[dict]]] = []

    async def generate(self, system, messages):
        self.calls.append((system, messages))
        if self.error is not None:
            raise self.error
        return self.reply


class FakeImageGenerator:
    def __init__(self, data: bytes = PNG_BYTES, error: Exception = None):
        self.data = data
        self.error = error
        self.prompts: list[str] = []

    async def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return "https://images.example/transient.png"

    async def fetch(self, url):
        return self.data


@pytest.fixture
def brief():
    return dict(BRIEF)


@pytest.fixture
def reset_db():
    import backend.models_db  # noqa: F401
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def fake_text():
    return FakeTextGenerator()


@pytest.fixture
def fake_image():
    return FakeImageGenerator()


@pytest.fixture
def client(reset_db, fake_text, fake_image):
    from backend.main import app

    with TestClient(app) as test_client:
        app.state.text_generator = fake_text
        app.state.image_generator = fake_image
        yield test_client


@pytest.fixture
def auth_headers(client):
    """Sign up a fresh user; returns a function producing (user_id, headers)."""

    def _make(name: str = "Ada"):
        email = f"customer{next(_emails)}@lumiere.test"
        resp = client.post("/api/auth/signup", json={"email": email, "password": "diamonds-4ever", "name": name})
        assert resp.status_code == 201, resp.text
        body = resp.json()
        return body["user"]["id"], {"Authorization": f"Bearer {body['token']}"}

    return _make


@pytest.fixture
def store(reset_db):
    from backend.designer.session_store import DesignSessionStore
    return DesignSessionStore(SessionLocal)


@pytest.fixture
def user_id(reset_db):
    """A user row created directly in the database."""
    from backend.models_db import User

    db = SessionLocal()
    try:
        user = User(email=f"direct{next(_emails)}@lumiere.test", password_hash="x", name="Direct")
        db.add(user)
        db.commit()
        return user.id
    finally:
        db.close()


@pytest.fixture
def upstream_failure():
    return UpstreamFailure("backend down")
