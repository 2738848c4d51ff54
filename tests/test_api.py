"""Tests for the FastAPI API endpoints."""

import pytest
from fastapi.testclient import TestClient

from trust_kernel.api.app import create_app
from trust_kernel.config import Settings
from trust_kernel.stores.memory import (
    InMemoryTransferStore,
    InMemoryTrustStore,
    InMemoryWalletStore,
)
from trust_kernel.wallet.policy import RecordingTransferExecutor

ALICE = {"X-Wallet-Id": "1"}
BOB = {"X-Wallet-Id": "2"}
CAROL = {"X-Wallet-Id": "3"}


def _make_app(settings: Settings):
    app = create_app(
        wallet_store=InMemoryWalletStore(),
        trust_store=InMemoryTrustStore(),
        transfer_store=InMemoryTransferStore(),
        executor=RecordingTransferExecutor(),
        settings=settings,
    )
    service = app.state.wallet_service
    service.create_wallet("alice", "alice-pw")
    service.create_wallet("bob", "bob-pw")
    service.create_wallet("carol", "carol-pw")
    return app


@pytest.fixture
def client():
    """Create a test client with fresh in-memory stores and three wallets."""
    return TestClient(_make_app(Settings(api_key=None)))


class TestAuthEndpoint:
    def test_login(self, client):
        response = client.post("/auth", json={"wallet": "bob", "password": "bob-pw"})
        assert response.status_code == 200
        assert response.json() == {"id": 2}

    def test_wrong_password(self, client):
        response = client.post("/auth", json={"wallet": "bob", "password": "nope"})
        assert response.status_code == 401
        assert response.json()["code"] == 401

    def test_empty_password(self, client):
        response = client.post("/auth", json={"wallet": "bob", "password": ""})
        assert response.status_code == 400


class TestTrustEndpoints:
    def test_request_and_accept(self, client):
        response = client.post(
            "/trust_relationships",
            json={"trust_request_type": "send", "wallet": "bob"},
            headers=ALICE,
        )
        assert response.status_code == 201
        rel = response.json()
        assert rel["state"] == "requested"
        assert rel["originator_entity_id"] == 1
        assert rel["target_entity_id"] == 2

        response = client.post(f"/trust_relationships/{rel['id']}/accept", headers=BOB)
        assert response.status_code == 200
        assert response.json()["state"] == "trusted"

    def test_duplicate_request_forbidden(self, client):
        body = {"trust_request_type": "send", "wallet": "bob"}
        client.post("/trust_relationships", json=body, headers=ALICE)
        response = client.post("/trust_relationships", json=body, headers=ALICE)
        assert response.status_code == 403
        assert response.json()["message"] == "The trust requested has existed"

    def test_invalid_type(self, client):
        response = client.post(
            "/trust_relationships",
            json={"trust_request_type": "teleport", "wallet": "bob"},
            headers=ALICE,
        )
        assert response.status_code == 400

    def test_unknown_target(self, client):
        response = client.post(
            "/trust_relationships",
            json={"trust_request_type": "send", "wallet": "mallory"},
            headers=ALICE,
        )
        assert response.status_code == 404

    def test_decline_not_targeted(self, client):
        rel = client.post(
            "/trust_relationships",
            json={"trust_request_type": "send", "wallet": "bob"},
            headers=ALICE,
        ).json()
        response = client.post(f"/trust_relationships/{rel['id']}/decline", headers=CAROL)
        assert response.status_code == 403

    def test_cancel(self, client):
        rel = client.post(
            "/trust_relationships",
            json={"trust_request_type": "send", "wallet": "bob"},
            headers=ALICE,
        ).json()
        assert client.delete(f"/trust_relationships/{rel['id']}", headers=BOB).status_code == 403
        response = client.delete(f"/trust_relationships/{rel['id']}", headers=ALICE)
        assert response.status_code == 200
        assert response.json()["state"] == "cancelled_by_originator"

    def test_list(self, client):
        client.post(
            "/trust_relationships",
            json={"trust_request_type": "send", "wallet": "bob"},
            headers=ALICE,
        )
        response = client.get("/trust_relationships", headers=BOB)
        assert response.status_code == 200
        assert len(response.json()["trust_relationships"]) == 1
        response = client.get("/trust_relationships?state=trusted", headers=BOB)
        assert response.json()["trust_relationships"] == []

    def test_missing_identity(self, client):
        assert client.get("/trust_relationships").status_code == 401

    def test_unknown_identity(self, client):
        assert client.get("/trust_relationships", headers={"X-Wallet-Id": "99"}).status_code == 404


class TestTransferEndpoints:
    def test_trusted_transfer_created(self, client):
        rel = client.post(
            "/trust_relationships",
            json={"trust_request_type": "send", "wallet": "bob"},
            headers=ALICE,
        ).json()
        client.post(f"/trust_relationships/{rel['id']}/accept", headers=BOB)

        response = client.post(
            "/transfers",
            json={"sender_wallet": "alice", "receiver_wallet": "bob", "tokens": ["tok_1"]},
            headers=ALICE,
        )
        assert response.status_code == 201
        assert response.json()["disposition"] == "completed"

    def test_idempotency_key_header(self, client):
        rel = client.post(
            "/trust_relationships",
            json={"trust_request_type": "send", "wallet": "bob"},
            headers=ALICE,
        ).json()
        client.post(f"/trust_relationships/{rel['id']}/accept", headers=BOB)

        body = {"sender_wallet": "alice", "receiver_wallet": "bob", "tokens": ["tok_1"]}
        headers = {**ALICE, "Idempotency-Key": "req-1"}
        assert client.post("/transfers", json=body, headers=headers).status_code == 201
        assert client.post("/transfers", json=body, headers=headers).status_code == 201

        executor = client.app.state.wallet_service.executor
        assert list(executor.executed) == ["req-1"]

    def test_untrusted_transfer_deferred(self, client):
        response = client.post(
            "/transfers",
            json={"sender_wallet": "alice", "receiver_wallet": "carol", "tokens": ["tok_1"]},
            headers=ALICE,
        )
        assert response.status_code == 202
        data = response.json()
        assert data["disposition"] == "deferred_accepted"
        assert data["transfer"]["state"] == "pending"
        assert data["transfer"]["source_entity_id"] == 1
        assert data["transfer"]["destination_entity_id"] == 3

        pending = client.get("/transfers/pending", headers=CAROL).json()["transfers"]
        assert [t["id"] for t in pending] == [data["transfer"]["id"]]

        response = client.post(f"/transfers/{data['transfer']['id']}/accept", headers=CAROL)
        assert response.status_code == 200
        assert response.json()["state"] == "completed"

    def test_no_control_forbidden(self, client):
        response = client.post(
            "/transfers",
            json={"sender_wallet": "alice", "receiver_wallet": "carol", "tokens": ["tok_1"]},
            headers=BOB,
        )
        assert response.status_code == 403

    def test_requested_transfer_fulfilled(self, client):
        transfer = client.post(
            "/transfers",
            json={"sender_wallet": "alice", "receiver_wallet": "carol", "tokens": ["tok_1"]},
            headers=CAROL,
        ).json()["transfer"]
        assert transfer["state"] == "requested"

        assert client.post(f"/transfers/{transfer['id']}/fulfill", headers=CAROL).status_code == 403
        response = client.post(f"/transfers/{transfer['id']}/fulfill", headers=ALICE)
        assert response.status_code == 200
        assert response.json()["state"] == "completed"

    def test_decline_and_cancel(self, client):
        first = client.post(
            "/transfers",
            json={"sender_wallet": "alice", "receiver_wallet": "carol", "tokens": ["tok_1"]},
            headers=ALICE,
        ).json()["transfer"]
        second = client.post(
            "/transfers",
            json={"sender_wallet": "alice", "receiver_wallet": "carol", "tokens": ["tok_2"]},
            headers=ALICE,
        ).json()["transfer"]

        assert client.post(f"/transfers/{first['id']}/decline", headers=CAROL).json()["state"] == "cancelled"
        assert client.delete(f"/transfers/{second['id']}", headers=ALICE).json()["state"] == "cancelled"

    def test_list_scoped_and_filtered(self, client):
        client.post(
            "/transfers",
            json={"sender_wallet": "alice", "receiver_wallet": "carol", "tokens": ["tok_1"]},
            headers=ALICE,
        )
        assert len(client.get("/transfers", headers=ALICE).json()["transfers"]) == 1
        assert client.get("/transfers", headers=BOB).json()["transfers"] == []
        assert client.get("/transfers?state=completed", headers=ALICE).json()["transfers"] == []
        assert client.get("/transfers?state=bogus", headers=ALICE).status_code == 400

    def test_unknown_transfer(self, client):
        assert client.post("/transfers/42/accept", headers=ALICE).status_code == 404


class TestApiKey:
    def setup_method(self):
        self.client = TestClient(_make_app(Settings(api_key="s3cret")))

    def test_missing_key_rejected(self):
        assert self.client.get("/transfers", headers=ALICE).status_code == 401

    def test_wrong_key_rejected(self):
        headers = {**ALICE, "X-Api-Key": "guess"}
        assert self.client.get("/transfers", headers=headers).status_code == 401

    def test_valid_key_accepted(self):
        headers = {**ALICE, "X-Api-Key": "s3cret"}
        assert self.client.get("/transfers", headers=headers).status_code == 200

    def test_auth_requires_key(self):
        response = self.client.post("/auth", json={"wallet": "bob", "password": "bob-pw"})
        assert response.status_code == 401
