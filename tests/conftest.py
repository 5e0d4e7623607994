"""
Pytest configuration and fixtures.
"""
import json
import os

os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_fake_key_for_testing")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("RESEND_API_KEY", "")

import httpx
import pytest
from fastapi.testclient import TestClient

from app.core.auth import get_current_caller
from app.core.firebase import get_db
from app.models.user_model import Caller
from app.services.notification_service import NotificationDispatcher, get_push_client
from app.services.push_relay import ExpoPushClient
from fakes import FakeClient

PUSH_URL = "https://push.test/--/api/v2/push/send"


class PushRelay:
    """Records every push request and answers according to `mode`."""

    def __init__(self):
        self.requests = []
        self.mode = "ok"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        if self.mode == "down":
            raise httpx.ConnectError("relay down", request=request)
        if self.mode == "dead":
            return httpx.Response(200, json={"data": {
                "status": "error",
                "message": "not a registered push token",
                "details": {"error": "DeviceNotRegistered"},
            }})
        if self.mode == "error":
            return httpx.Response(500, json={"errors": [{"code": "INTERNAL", "message": "boom"}]})
        return httpx.Response(200, json={"data": {"status": "ok", "id": f"ticket-{len(self.requests)}"}})

    @property
    def sent_to(self):
        return [message["to"] for message in self.requests]


@pytest.fixture
def db() -> FakeClient:
    return FakeClient()


@pytest.fixture
def relay() -> PushRelay:
    return PushRelay()


@pytest.fixture
def push_client(relay) -> ExpoPushClient:
    return ExpoPushClient(url=PUSH_URL, transport=httpx.MockTransport(relay.handler))


@pytest.fixture
def dispatcher(db, push_client) -> NotificationDispatcher:
    return NotificationDispatcher(db, push_client)


@pytest.fixture
def caller_holder() -> dict:
    return {"caller": Caller(uid="buyer-1", email="buyer@example.com")}


@pytest.fixture
def as_admin(db, caller_holder):
    """Make the current caller an admin listed in the `admins` collection."""
    db.seed("admins/admin-1", {"email": "ops@airrands.com"})
    caller_holder["caller"] = Caller(uid="admin-1", email="ops@airrands.com")
    return caller_holder["caller"]


@pytest.fixture
def client(db, push_client, caller_holder):
    """HTTP client over the app with the store, push relay and auth swapped out."""
    from main import app

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_push_client] = lambda: push_client
    app.dependency_overrides[get_current_caller] = lambda: caller_holder["caller"]
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(db, push_client):
    from main import app

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_push_client] = lambda: push_client
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def seed_user(db):
    def _seed(uid, **fields):
        data = {"email": f"{uid}@example.com", "expoPushToken": f"ExponentPushToken[{uid}]"}
        data.update(fields)
        db.seed(f"users/{uid}", data)
        return data
    return _seed
