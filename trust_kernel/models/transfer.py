"""Transfer — a recorded token movement between two wallets."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class TransferState(str, Enum):
    PENDING = "pending"       # Waiting for the destination to accept
    REQUESTED = "requested"   # Waiting for the source to fulfill
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TransferDisposition(str, Enum):
    COMPLETED = "completed"
    DEFERRED_ACCEPTED = "deferred_accepted"


class Transfer(BaseModel):
    """A token movement, possibly spanning several steps."""

    id: Optional[int] = None
    originator_entity_id: int
    source_entity_id: int
    destination_entity_id: int
    tokens: List[str] = []
    state: TransferState
    created_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    version: int = 1


class TransferFilter(BaseModel):
    """Query shape for the transfer store."""

    state: Optional[TransferState] = None
    involving_entity_id: Optional[int] = None   # Originator, source or destination
    limit: int = Field(ge=1, default=100)
    offset: int = Field(ge=0, default=0)


class TransferOutcome(BaseModel):
    """
    Result of a trust-gated transfer attempt.

    DEFERRED_ACCEPTED is not a failure: the transfer was durably recorded and
    waits for the other party. Callers must not retry it.
    """

    disposition: TransferDisposition
    transfer: Optional[Transfer] = None
    detail: str = ""

    @property
    def deferred(self) -> bool:
        return self.disposition == TransferDisposition.DEFERRED_ACCEPTED
