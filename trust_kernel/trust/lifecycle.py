"""
Trust Relationship Lifecycle — the state machine for a single trust request.

    requested ──accept──▶ trusted
        │──decline──▶ canceled_by_target
        └──cancel───▶ cancelled_by_originator

Behavioral Contract:
- Only REQUESTED has outgoing transitions; every other state is terminal
- Exactly one terminal transition ever applies to a relationship
- Transition functions return a new record and never touch a store
"""

from typing import Dict, FrozenSet

from trust_kernel.errors import Forbidden
from trust_kernel.models.trust import TrustRelationship, TrustRequestType, TrustState

_TRANSITIONS: Dict[TrustState, FrozenSet[TrustState]] = {
    TrustState.REQUESTED: frozenset({
        TrustState.TRUSTED,
        TrustState.CANCELED_BY_TARGET,
        TrustState.CANCELLED_BY_ORIGINATOR,
    }),
    TrustState.TRUSTED: frozenset(),
    TrustState.CANCELED_BY_TARGET: frozenset(),
    TrustState.CANCELLED_BY_ORIGINATOR: frozenset(),
}


def is_terminal(state: TrustState) -> bool:
    return not _TRANSITIONS[state]


def new_trust_request(
    request_type: TrustRequestType,
    originator_id: int,
    target_id: int,
) -> TrustRelationship:
    """A direct request: the originator asks to be trusted as the actor."""
    return TrustRelationship(
        request_type=request_type,
        actor_entity_id=originator_id,
        originator_entity_id=originator_id,
        target_entity_id=target_id,
        state=TrustState.REQUESTED,
    )


def transition(relationship: TrustRelationship, new_state: TrustState) -> TrustRelationship:
    """Move a relationship to new_state, or raise Forbidden if not allowed."""
    if new_state not in _TRANSITIONS[relationship.state]:
        raise Forbidden(
            f"Trust relationship {relationship.id} is {relationship.state.value}, "
            f"cannot move to {new_state.value}"
        )
    return relationship.model_copy(update={"state": new_state})


def accept(relationship: TrustRelationship) -> TrustRelationship:
    return transition(relationship, TrustState.TRUSTED)


def decline(relationship: TrustRelationship) -> TrustRelationship:
    return transition(relationship, TrustState.CANCELED_BY_TARGET)


def cancel(relationship: TrustRelationship) -> TrustRelationship:
    return transition(relationship, TrustState.CANCELLED_BY_ORIGINATOR)


def matches(
    relationship: TrustRelationship,
    request_type: TrustRequestType,
    actor_id: int,
    target_id: int,
) -> bool:
    """True if the relationship grants request_type from actor to target."""
    return (
        relationship.actor_entity_id == actor_id
        and relationship.target_entity_id == target_id
        and relationship.request_type == request_type
    )
