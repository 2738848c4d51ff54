"""
Extension points the Wallet aggregate calls through.

Each seam has a Protocol and a default implementation carrying today's rules:
- TrustRequestPolicy: lets a target wallet veto an incoming trust request
- ControlPolicy: decides whether one wallet may act on behalf of another
- TransferPrivilegePolicy: who may accept/decline/cancel/fulfill a transfer
- TransferExecutor: moves the tokens once a transfer is allowed to complete
"""

import logging
import threading
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Protocol

from trust_kernel.errors import Forbidden
from trust_kernel.models.transfer import Transfer, TransferState
from trust_kernel.models.trust import TrustRequestType

if TYPE_CHECKING:
    from trust_kernel.wallet.aggregate import Wallet

logger = logging.getLogger(__name__)


class TransferAction(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"
    CANCEL = "cancel"
    FULFILL = "fulfill"


class TrustRequestPolicy(Protocol):
    def check_request_sent_to(
        self, target: "Wallet", request_type: TrustRequestType, source_wallet_id: int
    ) -> None:
        """Raise Forbidden to refuse the request."""


class ControlPolicy(Protocol):
    def has_control_over(self, actor: "Wallet", wallet: "Wallet") -> bool: ...


class TransferPrivilegePolicy(Protocol):
    def check(self, action: TransferAction, actor: "Wallet", transfer: Transfer) -> None:
        """Raise Forbidden if actor may not perform action on transfer."""


class TransferExecutor(Protocol):
    def execute(
        self,
        idempotency_key: str,
        source_id: int,
        destination_id: int,
        tokens: List[str],
    ) -> None:
        """Move the tokens. Calling twice with the same key must be a no-op."""


class AcceptAllTrustRequests:
    """Every wallet accepts every incoming trust request."""

    def check_request_sent_to(
        self, target: "Wallet", request_type: TrustRequestType, source_wallet_id: int
    ) -> None:
        return None


class SelfControlPolicy:
    """
    A wallet controls only itself.

    Sub-wallet delegation is not supported yet, so any other wallet is
    reported as not under control.
    """

    def has_control_over(self, actor: "Wallet", wallet: "Wallet") -> bool:
        if wallet.id == actor.id:
            logger.debug("Wallet %s controls itself", actor.id)
            return True
        return False


class PartyPrivilegePolicy:
    """
    Only the party a transfer is waiting on may resolve it.

    accept:  the destination, on a pending transfer
    decline: the destination on a pending transfer, the source on a requested one
    cancel:  the originator, while the transfer is open
    fulfill: the source, on a requested transfer
    """

    def check(self, action: TransferAction, actor: "Wallet", transfer: Transfer) -> None:
        if action == TransferAction.ACCEPT:
            self._require(actor.id == transfer.destination_entity_id)
            self._require_state(transfer, TransferState.PENDING)
        elif action == TransferAction.DECLINE:
            if transfer.state == TransferState.REQUESTED:
                self._require(actor.id == transfer.source_entity_id)
            else:
                self._require(actor.id == transfer.destination_entity_id)
                self._require_state(transfer, TransferState.PENDING)
        elif action == TransferAction.CANCEL:
            self._require(actor.id == transfer.originator_entity_id)
        elif action == TransferAction.FULFILL:
            self._require(actor.id == transfer.source_entity_id)
            self._require_state(transfer, TransferState.REQUESTED)

    @staticmethod
    def _require(allowed: bool) -> None:
        if not allowed:
            raise Forbidden("Have no permission to do this operation")

    @staticmethod
    def _require_state(transfer: Transfer, state: TransferState) -> None:
        if transfer.state != state:
            raise Forbidden("Operation forbidden, the transfer state is wrong")


class RecordingTransferExecutor:
    """
    Records executed transfers in memory, once per idempotency key.

    The token ledger itself lives outside the kernel; deployments replace this
    with an executor that talks to it.
    """

    def __init__(self):
        self.executed: Dict[str, dict] = {}
        self._lock = threading.Lock()

    def execute(
        self,
        idempotency_key: str,
        source_id: int,
        destination_id: int,
        tokens: List[str],
    ) -> None:
        with self._lock:
            if idempotency_key in self.executed:
                logger.debug("Transfer %s already executed, skipping", idempotency_key)
                return
            self.executed[idempotency_key] = {
                "source_id": source_id,
                "destination_id": destination_id,
                "tokens": list(tokens),
            }
        logger.info(
            "Executed transfer %s: %d token(s) from wallet %s to wallet %s",
            idempotency_key, len(tokens), source_id, destination_id,
        )
