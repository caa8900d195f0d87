import json
import uuid

import httpx
import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from recipe_share.app.api.deps import get_db_session, get_storage_provider
from recipe_share.app.core.config import get_settings
from recipe_share.app.db import models  # noqa: F401
from recipe_share.app.db.base import Base
from recipe_share.app.main import create_app
from recipe_share.app.storage.local import LocalStorageProvider

USER_ID = "11111111-1111-4111-8111-111111111111"
OTHER_USER_ID = "22222222-2222-4222-8222-222222222222"

REAL_ASYNC_CLIENT = httpx.AsyncClient


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def settings(monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "auth_demo_mode", False)
    monkeypatch.setattr(settings, "llm_api_key", "test-llm-key")
    monkeypatch.setattr(settings, "llm_base_url", "https://llm.test")
    monkeypatch.setattr(settings, "transcribe_stream_word_delay_ms", 0)
    return settings


@pytest.fixture
def storage_root(tmp_path):
    return tmp_path / "media"


@pytest.fixture
def app(session_factory, storage_root, settings):
    app = create_app()

    def override_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    def override_storage():
        return LocalStorageProvider(storage_root)

    app.dependency_overrides[get_db_session] = override_db
    app.dependency_overrides[get_storage_provider] = override_storage
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def make_token(user_id: str, email: str, settings, **claims) -> str:
    payload = {"sub": user_id, "email": email, "aud": "authenticated", "role": "authenticated"}
    payload.update(claims)
    return jwt.encode(payload, settings.auth_jwt_secret, algorithm=settings.auth_jwt_algorithm)


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_token(settings):
    return make_token(USER_ID, "user1@example.com", settings)


@pytest.fixture
def other_user_token(settings):
    return make_token(OTHER_USER_ID, "user2@example.com", settings)


@pytest.fixture
def auth_headers(user_token):
    return bearer(user_token)


@pytest.fixture
def other_auth_headers(other_user_token):
    return bearer(other_user_token)


@pytest.fixture
def mock_httpx(monkeypatch):
    """Route every httpx.AsyncClient created by app code through a MockTransport handler."""

    def install(handler):
        transport = httpx.MockTransport(handler)

        def client_factory(*args, **kwargs):
            kwargs["transport"] = transport
            return REAL_ASYNC_CLIENT(*args, **kwargs)

        monkeypatch.setattr(httpx, "AsyncClient", client_factory)
        return transport

    return install


def parse_sse(body: str) -> list:
    events = []
    for frame in body.split("\n\n"):
        frame = frame.strip()
        if frame.startswith("data:"):
            events.append(json.loads(frame[len("data:"):].strip()))
    return events


def new_id() -> str:
    return str(uuid.uuid4())
