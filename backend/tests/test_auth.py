from datetime import timedelta

from evote.core.settings import Settings
from evote.main import create_app
from evote.security.tokens import create_access_token

from fastapi.testclient import TestClient


def _register(client, **overrides):
    payload = {
        "fullName": "Ada Obi",
        "username": "ada",
        "email": "ada@example.com",
        "password": "correct horse",
    }
    payload.update(overrides)
    return client.post("/auth/register", json=payload)


def test_register_login_me(client):
    r = _register(client)
    assert r.status_code == 201
    assert r.json() == {"message": "User registered successfully"}

    r = client.post("/auth/login", json={"email": "ada@example.com", "password": "correct horse"})
    assert r.status_code == 200
    body = r.json()
    assert body["isAdmin"] is False

    r = client.get("/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert r.status_code == 200
    me = r.json()
    assert me["username"] == "ada"
    assert me["fullName"] == "Ada Obi"
    assert me["hasVoted"] is False
    assert me["isAdmin"] is False


def test_login_by_username(client):
    _register(client)
    r = client.post("/auth/login", json={"email": "ada", "password": "correct horse"})
    assert r.status_code == 200


def test_allow_listed_email_logs_in_as_admin(client):
    _register(client, username="boss", email="admin@example.com")
    r = client.post("/auth/login", json={"email": "admin@example.com", "password": "correct horse"})
    assert r.json()["isAdmin"] is True


def test_duplicate_registration(client):
    _register(client)
    r = _register(client, username="someone-else")
    assert r.status_code == 409
    assert r.json() == {"error": "A user with that email already exists"}

    r = _register(client, email="other@example.com")
    assert r.status_code == 409
    assert r.json() == {"error": "A user with that username already exists"}


def test_register_requires_all_fields(client):
    r = _register(client, fullName="  ")
    assert r.status_code == 400
    assert r.json() == {"error": "fullName, username, email and password are required"}


def test_register_rejects_malformed_email(client):
    r = _register(client, email="not-an-email")
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid request"


def test_bad_credentials(client):
    _register(client)
    for creds in (
        {"email": "ada@example.com", "password": "wrong"},
        {"email": "nobody@example.com", "password": "correct horse"},
    ):
        r = client.post("/auth/login", json=creds)
        assert r.status_code == 401
        assert r.json() == {"error": "Invalid credentials"}

    r = client.post("/auth/login", json={"email": "ada@example.com"})
    assert r.status_code == 400


def test_expired_token_rejected(client, settings, make_user):
    user_id, _ = make_user("voter")
    token = create_access_token(
        settings,
        user_id=user_id,
        email="voter@example.com",
        username="voter",
        is_admin=False,
        expires_delta=timedelta(seconds=-1),
    )
    r = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid token"}


def test_token_signed_with_other_secret_rejected(client, settings, make_user):
    user_id, _ = make_user("voter")
    forged = create_access_token(
        settings.model_copy(update={"jwt_secret": "someone-else"}),
        user_id=user_id,
        email="admin@example.com",
        username="voter",
        is_admin=True,
    )
    r = client.get("/admin/candidates", headers={"Authorization": f"Bearer {forged}"})
    assert r.status_code == 401


def test_missing_jwt_secret_is_server_error(tmp_path, bus):
    settings = Settings(database_url=f"sqlite:///{tmp_path / 'nosecret.db'}", jwt_secret=None)
    with TestClient(create_app(settings, bus)) as client:
        r = client.get("/auth/me", headers={"Authorization": "Bearer anything"})
    assert r.status_code == 500
    assert r.json() == {"error": "JWT secret not configured"}


def test_login_is_rate_limited(client):
    statuses = [
        client.post("/auth/login", json={"email": "x@example.com", "password": "nope"}).status_code
        for _ in range(11)
    ]
    assert statuses[:10] == [401] * 10
    assert statuses[10] == 429


def test_login_rate_limit_follows_app_settings(settings, bus):
    strict = settings.model_copy(update={"login_rate_limit": "1/minute"})
    with TestClient(create_app(strict, bus)) as client:
        statuses = [
            client.post("/auth/login", json={"email": "x@example.com", "password": "nope"}).status_code
            for _ in range(2)
        ]
    assert statuses == [401, 429]
