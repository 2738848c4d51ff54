"""Tests for core data models."""

import pytest

from trust_kernel.models import (
    Transfer,
    TransferDisposition,
    TransferFilter,
    TransferOutcome,
    TransferState,
    TrustRelationship,
    TrustRequestType,
    TrustState,
    WalletRecord,
)


class TestTrustRelationship:
    def test_defaults_to_requested(self):
        rel = TrustRelationship(
            request_type=TrustRequestType.SEND,
            actor_entity_id=1,
            originator_entity_id=1,
            target_entity_id=2,
        )
        assert rel.state == TrustState.REQUESTED
        assert rel.version == 1
        assert rel.id is None

    def test_parses_wire_values(self):
        rel = TrustRelationship.model_validate({
            "id": 7,
            "request_type": "send",
            "actor_entity_id": 1,
            "originator_entity_id": 1,
            "target_entity_id": 2,
            "state": "canceled_by_target",
        })
        assert rel.request_type == TrustRequestType.SEND
        assert rel.state == TrustState.CANCELED_BY_TARGET

    def test_unknown_request_type_rejected(self):
        with pytest.raises(Exception):
            TrustRelationship.model_validate({
                "request_type": "teleport",
                "actor_entity_id": 1,
                "originator_entity_id": 1,
                "target_entity_id": 2,
            })

    def test_state_wire_spellings(self):
        assert TrustState.CANCELED_BY_TARGET.value == "canceled_by_target"
        assert TrustState.CANCELLED_BY_ORIGINATOR.value == "cancelled_by_originator"


class TestTransfer:
    def test_create_pending_transfer(self):
        transfer = Transfer(
            originator_entity_id=1,
            source_entity_id=1,
            destination_entity_id=3,
            tokens=["tok_a", "tok_b"],
            state=TransferState.PENDING,
        )
        assert transfer.state == TransferState.PENDING
        assert transfer.tokens == ["tok_a", "tok_b"]
        assert transfer.closed_at is None

    def test_filter_bounds(self):
        with pytest.raises(Exception):
            TransferFilter(limit=0)
        with pytest.raises(Exception):
            TransferFilter(offset=-1)

    def test_outcome_deferred_flag(self):
        deferred = TransferOutcome(disposition=TransferDisposition.DEFERRED_ACCEPTED)
        completed = TransferOutcome(disposition=TransferDisposition.COMPLETED)
        assert deferred.deferred is True
        assert completed.deferred is False


class TestWalletRecord:
    def test_name_required(self):
        with pytest.raises(Exception):
            WalletRecord(name="", password="x", salt="y")
