import json

import pytest
from django.core.cache import cache

from api import auth
from api.firebase_service import firestore_service
from api.push_service import PushResult, push_service
from api.rate_limit import rate_limiter
from api.storage_service import storage_service
from api.views import calls
from tests.fakes import FakeFirestore, FakeStorage

USERS = {
    "alice-token": {"uid": "alice", "email": "alice@example.com"},
    "bob-token": {"uid": "bob", "email": "bob@example.com"},
    "carol-token": {"uid": "carol", "email": "carol@example.com"},
}

STORAGE_METHODS = (
    "create_signed_url",
    "create_signed_upload_url",
    "get_public_url",
    "upload_bytes",
    "delete",
    "exists",
    "is_available",
)


@pytest.fixture(autouse=True)
def clean_state(monkeypatch):
    rate_limiter.reset()
    cache.clear()
    monkeypatch.setenv("FIREBASE_STORAGE_BUCKET", "foundernet-test.appspot.com")
    monkeypatch.delenv("RECAPTCHA_SECRET_KEY", raising=False)
    monkeypatch.delenv("CALL_SWEEP_SECRET", raising=False)
    yield
    with calls._missed_timers_lock:
        for timer in calls._missed_timers.values():
            timer.cancel()
        calls._missed_timers.clear()


@pytest.fixture(autouse=True)
def fake_auth(monkeypatch):
    monkeypatch.setattr(auth, "verify_token", lambda token: USERS.get(token))


@pytest.fixture(autouse=True)
def db(monkeypatch):
    fake = FakeFirestore()
    fake.add("profiles", "alice", {
        "id": "alice",
        "username": "alice",
        "full_name": "Alice Founder",
        "avatar_url": "user-media:alice/avatar.png",
        "email": "alice@example.com",
        "fcm_token": "alice-fcm",
    })
    fake.add("profiles", "bob", {
        "id": "bob",
        "username": "bob",
        "full_name": "Bob Builder",
        "email": "bob@example.com",
        "fcm_token": "bob-fcm",
    })
    fake.add("profiles", "carol", {
        "id": "carol",
        "username": "carol",
        "full_name": "Carol Investor",
    })
    monkeypatch.setattr(firestore_service, "_db", fake)
    return fake


@pytest.fixture
def no_firestore(monkeypatch):
    monkeypatch.setattr(firestore_service, "_db", None)
    monkeypatch.setattr("api.firebase_service.get_firestore", lambda: None)


@pytest.fixture(autouse=True)
def storage(monkeypatch):
    fake = FakeStorage()
    for name in STORAGE_METHODS:
        monkeypatch.setattr(storage_service, name, getattr(fake, name))
    return fake


@pytest.fixture(autouse=True)
def pushes(monkeypatch):
    sent = []

    def incoming(fcm_token, call, caller_name):
        if not fcm_token:
            return PushResult(success=False, error="No FCM token", error_code="missing_token")
        sent.append(("incoming_call", fcm_token, call["id"], caller_name))
        return PushResult(success=True, message_id=f"msg-{len(sent)}")

    def cancelled(fcm_token, call):
        if not fcm_token:
            return PushResult(success=False, error="No FCM token", error_code="missing_token")
        sent.append(("call_cancelled", fcm_token, call["id"]))
        return PushResult(success=True, message_id=f"msg-{len(sent)}")

    monkeypatch.setattr(push_service, "send_incoming_call_push", incoming)
    monkeypatch.setattr(push_service, "send_call_cancelled_push", cancelled)
    return sent


class ApiClient:
    """Django test client that speaks JSON and authenticates as a test user."""

    def __init__(self, client):
        self.client = client

    @staticmethod
    def _headers(user):
        if user is None:
            return {}
        return {"HTTP_AUTHORIZATION": f"Bearer {user}-token"}

    def get(self, path, user="alice", **params):
        return self.client.get(f"/api/{path}", params, **self._headers(user))

    def post(self, path, payload=None, user="alice", raw=None, **extra):
        body = raw if raw is not None else json.dumps(payload or {})
        return self.client.post(
            f"/api/{path}",
            data=body,
            content_type="application/json",
            **self._headers(user),
            **extra,
        )


@pytest.fixture
def api(client):
    return ApiClient(client)
