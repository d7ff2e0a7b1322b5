from __future__ import annotations

from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest
from deenx.api.deps import client_ip
from deenx.api.routes import push as push_routes
from deenx.config import get_settings
from deenx.main import app
from deenx.notifications.contracts import InvalidPushSubscriptionError, TransientPushProviderError
from fastapi.testclient import TestClient

from tests.fakes import VALID_AUTH, VALID_ENDPOINT, VALID_P256DH, make_subscription


class _RepoStub:
  def __init__(self) -> None:
    self.upsert = AsyncMock()
    self.deactivate = AsyncMock()
    self.get_active = AsyncMock(return_value=None)


def _subscription(endpoint: str = VALID_ENDPOINT) -> dict:
  return {"endpoint": endpoint, "expirationTime": None, "keys": {"p256dh": VALID_P256DH, "auth": VALID_AUTH}}


def _subscribe_payload(**overrides) -> dict:
  payload = {"subscription": _subscription(), "lat": 23.8103, "lng": 90.4125, "method": 1, "locationName": " Dhaka ", "timezone": "Asia/Dhaka", "language": "en"}
  payload.update(overrides)
  return payload


@pytest.fixture(autouse=True)
def _reset_limiters():
  for limiter in (push_routes.subscribe_limiter, push_routes.unsubscribe_limiter, push_routes.test_push_limiter):
    limiter.reset()
  yield
  app.dependency_overrides.clear()


@pytest.fixture
def repo(monkeypatch):
  repo = _RepoStub()
  monkeypatch.setattr("deenx.api.routes.push.PushSubscriptionRepository", lambda: repo)
  return repo


@pytest.fixture
def client(configured_settings):
  app.dependency_overrides[get_settings] = lambda: configured_settings
  return TestClient(app)


def test_public_key_is_exposed(client):
  response = client.get("/api/push/public-key")

  assert response.status_code == 200
  assert response.json() == {"publicKey": "BPublicKey"}


def test_public_key_unavailable_without_vapid(configured_settings):
  app.dependency_overrides[get_settings] = lambda: replace(configured_settings, push_vapid_public_key=None)

  response = TestClient(app).get("/api/push/public-key")

  assert response.status_code == 503


@pytest.mark.parametrize(
  "overrides",
  [
    {"subscription": _subscription("http://fcm.googleapis.com/fcm/send/abc")},
    {"subscription": _subscription("https://example.com/push/abc")},
    {"subscription": {**_subscription(), "keys": {"p256dh": "not-valid-***", "auth": VALID_AUTH}}},
    {"lat": 91},
    {"lng": -181},
    {"method": 0},
    {"locationName": ""},
    {"timezone": "Mars/Olympus_Mons"},
    {"unexpected": True},
  ],
)
def test_subscribe_rejects_invalid_payload(client, repo, overrides):
  response = client.post("/api/push/subscribe", json=_subscribe_payload(**overrides))

  assert response.status_code == 422
  repo.upsert.assert_not_awaited()


def test_subscribe_accepts_windows_and_apple_hosts(client, repo):
  for endpoint in ("https://wns2-par02p.notify.windows.com/w/?token=abc", "https://web.push.apple.com/QGx"):
    response = client.post("/api/push/subscribe", json=_subscribe_payload(subscription=_subscription(endpoint)))
    assert response.status_code == 200

  assert repo.upsert.await_count == 2


def test_subscribe_upserts_registration(client, repo):
  response = client.post("/api/push/subscribe", json=_subscribe_payload())

  assert response.status_code == 200
  assert response.json() == {"success": True}
  repo.upsert.assert_awaited_once()
  registration = repo.upsert.await_args.args[0]
  assert registration.endpoint == VALID_ENDPOINT
  assert registration.p256dh == VALID_P256DH
  assert registration.location_name == "Dhaka"
  assert registration.timezone == "Asia/Dhaka"
  assert registration.method == 1
  assert registration.language == "en"


def test_subscribe_requires_push_configuration(configured_settings, repo):
  app.dependency_overrides[get_settings] = lambda: replace(configured_settings, push_vapid_subject=None)

  response = TestClient(app).post("/api/push/subscribe", json=_subscribe_payload())

  assert response.status_code == 503
  repo.upsert.assert_not_awaited()


def test_subscribe_requires_database_configuration(configured_settings, repo):
  app.dependency_overrides[get_settings] = lambda: replace(configured_settings, pg_dsn=None)

  response = TestClient(app).post("/api/push/subscribe", json=_subscribe_payload())

  assert response.status_code == 503
  assert response.json()["detail"] == "Database is not configured"


def test_subscribe_persistence_failure_returns_500(client, repo):
  repo.upsert.side_effect = RuntimeError("db down")

  response = client.post("/api/push/subscribe", json=_subscribe_payload())

  assert response.status_code == 500
  assert response.json()["detail"] == "Internal Server Error"


def test_subscribe_is_rate_limited_per_client(client, repo):
  for _ in range(20):
    assert client.post("/api/push/subscribe", json=_subscribe_payload(), headers={"x-forwarded-for": "203.0.113.7"}).status_code == 200

  limited = client.post("/api/push/subscribe", json=_subscribe_payload(), headers={"x-forwarded-for": "203.0.113.7"})
  other_client = client.post("/api/push/subscribe", json=_subscribe_payload(), headers={"x-forwarded-for": "198.51.100.2"})

  assert limited.status_code == 429
  assert other_client.status_code == 200


def test_rate_limit_ignores_client_supplied_forwarded_hops(client, repo):
  # The fronting proxy appends the real peer as the last hop; earlier hops are spoofable.
  for attempt in range(20):
    headers = {"x-forwarded-for": f"10.0.0.{attempt}, 203.0.113.7"}
    assert client.post("/api/push/subscribe", json=_subscribe_payload(), headers=headers).status_code == 200

  limited = client.post("/api/push/subscribe", json=_subscribe_payload(), headers={"x-forwarded-for": "10.9.9.9, 203.0.113.7"})

  assert limited.status_code == 429


def test_client_ip_uses_last_forwarded_hop():
  request = MagicMock()
  request.headers = {"x-forwarded-for": "198.51.100.1, 10.0.0.2 , 203.0.113.7"}

  assert client_ip(request) == "203.0.113.7"


def test_client_ip_falls_back_to_peer_address():
  request = MagicMock()
  request.headers = {}
  request.client.host = "192.0.2.10"

  assert client_ip(request) == "192.0.2.10"


def test_unsubscribe_deactivates_endpoint(client, repo):
  response = client.post("/api/push/unsubscribe", json={"endpoint": VALID_ENDPOINT})

  assert response.status_code == 200
  assert response.json() == {"success": True}
  repo.deactivate.assert_awaited_once_with(endpoint=VALID_ENDPOINT)


def test_unsubscribe_rejects_foreign_endpoint(client, repo):
  response = client.post("/api/push/unsubscribe", json={"endpoint": "https://example.com/push/abc"})

  assert response.status_code == 422
  repo.deactivate.assert_not_awaited()


def test_test_push_requires_a_target(client, repo):
  response = client.post("/api/push/test", json={})

  assert response.status_code == 422


def test_test_push_requires_push_configuration(configured_settings, repo):
  app.dependency_overrides[get_settings] = lambda: replace(configured_settings, push_vapid_public_key=None)

  response = TestClient(app).post("/api/push/test", json={"subscription": _subscription()})

  assert response.status_code == 503


def test_test_push_sends_to_provided_subscription(client, repo, monkeypatch):
  sender = MagicMock()
  monkeypatch.setattr("deenx.api.routes.push.build_push_sender", lambda settings: sender)

  response = client.post("/api/push/test", json={"subscription": _subscription()})

  assert response.status_code == 200
  assert response.json() == {"success": True, "source": "request"}
  notification = sender.send.call_args.args[0]
  assert notification.endpoint == VALID_ENDPOINT
  assert notification.title == "Deen X Zikr"
  assert notification.tag == "push-test"
  repo.get_active.assert_not_awaited()


def test_test_push_uses_stored_subscription(client, repo, monkeypatch):
  sender = MagicMock()
  monkeypatch.setattr("deenx.api.routes.push.build_push_sender", lambda settings: sender)
  repo.get_active.return_value = make_subscription()

  response = client.post("/api/push/test", json={"endpoint": VALID_ENDPOINT})

  assert response.status_code == 200
  assert response.json() == {"success": True, "source": "database"}
  repo.get_active.assert_awaited_once_with(endpoint=VALID_ENDPOINT)


def test_test_push_unknown_endpoint_returns_404(client, repo, monkeypatch):
  monkeypatch.setattr("deenx.api.routes.push.build_push_sender", lambda settings: MagicMock())

  response = client.post("/api/push/test", json={"endpoint": VALID_ENDPOINT})

  assert response.status_code == 404
  assert response.json()["detail"] == "Subscription not found"


def test_test_push_endpoint_without_database_returns_404(configured_settings, repo, monkeypatch):
  monkeypatch.setattr("deenx.api.routes.push.build_push_sender", lambda settings: MagicMock())
  app.dependency_overrides[get_settings] = lambda: replace(configured_settings, pg_dsn=None)

  response = TestClient(app).post("/api/push/test", json={"endpoint": VALID_ENDPOINT})

  assert response.status_code == 404
  assert response.json()["detail"] == "Subscription not found and database is unavailable"
  repo.get_active.assert_not_awaited()


def test_test_push_gone_endpoint_is_deactivated(client, repo, monkeypatch):
  sender = MagicMock()
  sender.send.side_effect = InvalidPushSubscriptionError("Push subscription is invalid (status=410)", status_code=410)
  monkeypatch.setattr("deenx.api.routes.push.build_push_sender", lambda settings: sender)

  response = client.post("/api/push/test", json={"subscription": _subscription()})

  assert response.status_code == 500
  assert response.json() == {"detail": "Push subscription is invalid (status=410)", "statusCode": 410}
  repo.deactivate.assert_awaited_once_with(endpoint=VALID_ENDPOINT)


def test_test_push_transient_failure_keeps_subscription(client, repo, monkeypatch):
  sender = MagicMock()
  sender.send.side_effect = TransientPushProviderError("Push delivery failed (status=400)", status_code=400)
  monkeypatch.setattr("deenx.api.routes.push.build_push_sender", lambda settings: sender)

  response = client.post("/api/push/test", json={"subscription": _subscription()})

  assert response.status_code == 500
  assert response.json()["statusCode"] == 400
  repo.deactivate.assert_not_awaited()


def test_health_reports_version(client):
  response = client.get("/health")

  assert response.status_code == 200
  assert response.json()["status"] == "ok"
  assert "x-request-id" in response.headers
