"""
Transfer Lifecycle — the state machine for a single token movement.

    pending   ──accept──▶ completed     requested ──fulfill──▶ completed
        └──decline/cancel──▶ cancelled      └──decline/cancel──▶ cancelled

COMPLETED and CANCELLED are terminal. Illegal moves raise Forbidden.
"""

from datetime import datetime, timezone
from typing import Dict, FrozenSet, List

from trust_kernel.errors import Forbidden
from trust_kernel.models.transfer import Transfer, TransferState

_TRANSITIONS: Dict[TransferState, FrozenSet[TransferState]] = {
    TransferState.PENDING: frozenset({TransferState.COMPLETED, TransferState.CANCELLED}),
    TransferState.REQUESTED: frozenset({TransferState.COMPLETED, TransferState.CANCELLED}),
    TransferState.COMPLETED: frozenset(),
    TransferState.CANCELLED: frozenset(),
}


def is_terminal(state: TransferState) -> bool:
    return not _TRANSITIONS[state]


def new_transfer(
    originator_id: int,
    source_id: int,
    destination_id: int,
    tokens: List[str],
    state: TransferState,
) -> Transfer:
    """A deferred transfer. Only PENDING and REQUESTED are valid starting states."""
    if state not in (TransferState.PENDING, TransferState.REQUESTED):
        raise ValueError(f"A transfer cannot be created as {state.value}")
    return Transfer(
        originator_entity_id=originator_id,
        source_entity_id=source_id,
        destination_entity_id=destination_id,
        tokens=list(tokens),
        state=state,
    )


def transition(transfer: Transfer, new_state: TransferState) -> Transfer:
    if new_state not in _TRANSITIONS[transfer.state]:
        raise Forbidden(
            f"Operation forbidden, transfer {transfer.id} is {transfer.state.value}"
        )
    updates = {"state": new_state}
    if is_terminal(new_state):
        updates["closed_at"] = datetime.now(timezone.utc)
    return transfer.model_copy(update=updates)


def complete(transfer: Transfer) -> Transfer:
    return transition(transfer, TransferState.COMPLETED)


def cancel(transfer: Transfer) -> Transfer:
    return transition(transfer, TransferState.CANCELLED)
