"""Trust Relationship — a directed, typed trust grant request between wallets."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class TrustRequestType(str, Enum):
    SEND = "send"         # Actor may send tokens to the target
    MANAGE = "manage"     # Actor may manage the target wallet
    YIELD = "yield"       # Target hands management over to the actor
    DEDUCT = "deduct"     # Actor may pull tokens out of the target
    RELEASE = "release"   # Actor may release tokens held by the target


class TrustState(str, Enum):
    REQUESTED = "requested"
    TRUSTED = "trusted"
    CANCELED_BY_TARGET = "canceled_by_target"
    CANCELLED_BY_ORIGINATOR = "cancelled_by_originator"


class TrustRelationship(BaseModel):
    """
    One trust request and its lifecycle state.

    Rows are never deleted. The state only moves forward out of REQUESTED,
    and the version counter guards concurrent updates of the same row.
    """

    id: Optional[int] = None
    request_type: TrustRequestType
    actor_entity_id: int          # Who is trusted to act
    originator_entity_id: int     # Who initiated the request
    target_entity_id: int         # Who is asked to grant the trust
    state: TrustState = TrustState.REQUESTED
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 1
