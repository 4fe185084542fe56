import pytest
from fastapi.testclient import TestClient

from intellect.core.dependencies import get_usage_gate
from intellect.features.usage.service import AnonymousPolicy
from intellect.main import app
from intellect.models.usage import ActionType


@pytest.fixture
def client(usage_gate):
    app.dependency_overrides[get_usage_gate] = lambda: usage_gate
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_fresh_identity_has_full_allowance(client):
    resp = client.get("/api/user-usage", params={"walletAddress": "0xabc"})

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data == {"action": "image_generation", "remaining": 2, "limit": 2, "retryAt": None}


def test_lookup_does_not_consume(client):
    for _ in range(3):
        assert client.get("/api/user-usage", params={"email": "a@b.com"}).json()["data"]["remaining"] == 2


def test_lookup_reflects_enforcement_usage(client, usage_gate):
    usage_gate.record_usage("0xABC", ActionType.ENFORCEMENT_SEARCH, anonymous=AnonymousPolicy.BYPASS)

    resp = client.get("/api/user-usage", params={"walletAddress": "0xabc", "action": "enforcement_search"})

    assert resp.json()["data"]["remaining"] == 1


def test_lookup_reports_block(client, usage_gate, clock):
    for _ in range(2):
        usage_gate.check_and_consume("0xabc", ActionType.IMAGE_GENERATION, anonymous=AnonymousPolicy.REJECT)

    data = client.get("/api/user-usage", params={"walletAddress": "0xabc"}).json()["data"]

    assert data["remaining"] == 0
    assert data["retryAt"].startswith("2025-01-02T12:00:00")


def test_identity_required(client):
    resp = client.get("/api/user-usage")
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"


def test_unknown_action_rejected(client):
    resp = client.get("/api/user-usage", params={"walletAddress": "0xabc", "action": "minting"})
    assert resp.status_code == 400
