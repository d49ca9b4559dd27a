"""HTTP surface: health, push registration, dispatch trigger, delivery listing."""
import pytest
from fastapi.testclient import TestClient

from clinic_notify.api.deps import get_dispatcher
from clinic_notify.db.session import get_db
from clinic_notify.main import app


@pytest.fixture
def client(session_factory, dispatcher):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    # No context manager: lifespan (real dispatcher + scheduler) is not started
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_register_push_token(client, seed):
    user = seed.user(push_token=None)

    r = client.post("/push/register", json={"user_id": user, "device_token": "  new-fcm-token  "})

    assert r.status_code == 200
    assert r.json()["ok"] is True
    assert seed.push_token(user) == "new-fcm-token"


def test_register_replaces_previous_token(client, seed):
    user = seed.user(push_token="old-token")
    client.post("/push/register", json={"user_id": user, "device_token": "new-token"})
    assert seed.push_token(user) == "new-token"


def test_register_unknown_user_is_404(client):
    r = client.post("/push/register", json={"user_id": 404, "device_token": "tok"})
    assert r.status_code == 404


def test_dispatch_single_recipient_returns_outcome(client, seed):
    user = seed.user()

    r = client.post(
        "/notifications/dispatch",
        json={"type": "RESERVATION_CANCELLED", "recipient_ids": [user], "payload": {"reservation_id": 3}},
    )

    body = r.json()
    assert r.status_code == 200
    assert body["ok"] is True
    assert body["outcome"]["push"]["result"] == "PUSH"
    assert body["outcome"]["message"] is None


def test_dispatch_many_returns_counts(client, seed):
    hospital = seed.hospital()
    staff = [seed.user(hospital_id=hospital), seed.user(hospital_id=hospital, push_token=None)]

    r = client.post(
        "/notifications/dispatch",
        json={"type": "NEW_REVIEW", "recipient_ids": staff, "payload": {"hospital_id": hospital}},
    )

    assert r.json() == {"ok": False, "success": 1, "failed": 1}


def test_dispatch_rejects_unknown_type(client):
    r = client.post("/notifications/dispatch", json={"type": "BIRTHDAY", "recipient_ids": [1]})
    assert r.status_code == 422


def test_list_deliveries(client, seed, dispatcher):
    user = seed.user()
    dispatcher.notify(user, "RESERVATION_CANCELLED", {"reservation_id": "3"})
    dispatcher.notify(user, "RESERVATION_REMINDER", {"reservation_id": "4", "hospital_name": "강남뷰티의원"})

    r = client.get("/notifications/deliveries", params={"recipient_id": user})
    deliveries = r.json()["deliveries"]
    assert [d["type"] for d in deliveries] == ["RESERVATION_REMINDER", "RESERVATION_CANCELLED"]
    assert deliveries[0]["status"] == "SENT"

    r = client.get("/notifications/deliveries", params={"correlation_key": "3"})
    assert [d["type"] for d in r.json()["deliveries"]] == ["RESERVATION_CANCELLED"]


def test_list_deliveries_requires_a_filter(client):
    assert client.get("/notifications/deliveries").status_code == 400
