from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from evote.core.settings import Settings
from evote.db_models import User
from evote.main import create_app
from evote.notifications import EventBus
from evote.ratelimit import limiter
from evote.security.tokens import create_access_token

ADMIN_EMAIL = "admin@example.com"


class RecordingBus(EventBus):
    """EventBus that also remembers everything published, in order."""

    def __init__(self):
        super().__init__()
        self.events = []

    def publish(self, event, payload=None):
        self.events.append((event, dict(payload or {})))
        super().publish(event, payload)

    def names(self):
        return [name for name, _ in self.events]


def iso(delta: timedelta) -> str:
    return (datetime.now(timezone.utc) + delta).isoformat()


@pytest.fixture(autouse=True)
def _reset_limits():
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def settings(tmp_path):
    uploads = tmp_path / "uploads"
    uploads.mkdir()
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'evote-test.db'}",
        jwt_secret="test-secret",
        admin_emails=[ADMIN_EMAIL],
        uploads_dir=str(uploads),
        password_pepper="pepper",
    )


@pytest.fixture
def bus():
    return RecordingBus()


@pytest.fixture
def client(settings, bus):
    with TestClient(create_app(settings, bus)) as test_client:
        yield test_client


@pytest.fixture
def database(client):
    return client.app.state.database


@pytest.fixture
def make_user(database, settings):
    def _make(username, email=None, is_admin=False):
        email = email or f"{username}@example.com"
        with database.session() as db:
            user = User(full_name=username.title(), username=username, email=email, password_hash="!")
            db.add(user)
            db.commit()
            user_id = user.id
        token = create_access_token(
            settings, user_id=user_id, email=email, username=username, is_admin=is_admin
        )
        return user_id, {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def admin_headers(make_user):
    # admin through the email allow-list, not the token flag
    _, headers = make_user("admin", email=ADMIN_EMAIL)
    return headers


@pytest.fixture
def stage(client, admin_headers):
    def _stage(name, lga="Ikeja", photo_url=None):
        r = client.post(
            "/admin/candidates",
            json={"name": name, "lga": lga, "photoUrl": photo_url},
            headers=admin_headers,
        )
        assert r.status_code == 201, r.text
        return r.json()["id"]

    return _stage


@pytest.fixture
def start(client, admin_headers):
    def _start(begin=timedelta(hours=-1), end=timedelta(hours=1)):
        r = client.post(
            "/period/start",
            json={"startTime": iso(begin), "endTime": iso(end)},
            headers=admin_headers,
        )
        assert r.status_code == 200, r.text
        return r.json()["periodId"]

    return _start
