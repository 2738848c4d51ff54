"""
Wallet Aggregate — the authorizing party for every trust and transfer operation.

Behavioral Contract:
- Every mutation of a TrustRelationship or Transfer goes through a Wallet
  acting on its own behalf
- Domain rule violations are raised where they are detected
- attempt_transfer is the only operation that recovers from an error, and
  only from Forbidden raised by the trust check
"""

import hashlib
import logging
from typing import TYPE_CHECKING, Iterable, List, Optional, Union

from trust_kernel.errors import Forbidden, InvalidInput, NotFound, Unauthorized
from trust_kernel.models.transfer import (
    Transfer,
    TransferDisposition,
    TransferFilter,
    TransferOutcome,
    TransferState,
)
from trust_kernel.models.trust import TrustRelationship, TrustRequestType, TrustState
from trust_kernel.models.wallet import WalletRecord, WalletView
from trust_kernel.transfer import lifecycle as transfer_lifecycle
from trust_kernel.trust import lifecycle as trust_lifecycle
from trust_kernel.wallet.credentials import verify_password
from trust_kernel.wallet.policy import TransferAction

if TYPE_CHECKING:
    from trust_kernel.wallet.service import WalletService

logger = logging.getLogger(__name__)


def _parse_request_type(request_type: Union[str, TrustRequestType]) -> TrustRequestType:
    try:
        return TrustRequestType(request_type)
    except ValueError:
        allowed = ",".join(t.value for t in TrustRequestType)
        raise InvalidInput(f"The trust request type must be one of {allowed}")


def _parse_transfer_state(state: Union[str, TransferState]) -> TransferState:
    try:
        return TransferState(state)
    except ValueError:
        allowed = ",".join(s.value for s in TransferState)
        raise InvalidInput(f"The transfer state must be one of {allowed}")


def _parse_tokens(tokens: Iterable[str]) -> List[str]:
    if isinstance(tokens, (str, bytes)) or tokens is None:
        raise InvalidInput("Tokens must be a list of token ids")
    parsed = list(tokens)
    if not all(isinstance(t, str) and t for t in parsed):
        raise InvalidInput("Tokens must be a list of token ids")
    return parsed


def _direct_key(originator_id: int, source_id: int, destination_id: int, tokens: List[str]) -> str:
    material = f"{originator_id}:{source_id}:{destination_id}:{','.join(sorted(tokens))}"
    return "direct_" + hashlib.sha256(material.encode()).hexdigest()[:24]


class Wallet:
    """
    One wallet, addressed by id, acting through the stores and policies of
    the WalletService that materialized it.
    """

    def __init__(self, wallet_id: int, service: "WalletService"):
        if not isinstance(wallet_id, int) or isinstance(wallet_id, bool):
            raise InvalidInput(f"Wallet id must be an integer, got {wallet_id!r}")
        self._id = wallet_id
        self._service = service

    @property
    def id(self) -> int:
        return self._id

    def __eq__(self, other) -> bool:
        return isinstance(other, Wallet) and other.id == self._id

    def __hash__(self) -> int:
        return hash(self._id)

    def __repr__(self) -> str:
        return f"Wallet(id={self._id})"

    # --- Identity ---

    def to_record(self) -> WalletRecord:
        record = self._service.wallet_store.get_by_id(self._id)
        if record is None:
            raise NotFound(f"Wallet {self._id} not found")
        return record

    def to_public(self) -> WalletView:
        record = self.to_record()
        return WalletView(id=record.id, name=record.name)

    def authorize(self, password: Optional[str]) -> int:
        """Check a password against the stored credential. Returns the wallet id."""
        if not password:
            raise InvalidInput("Error: Invalid credential format")
        record = self.to_record()
        if not verify_password(password, record.salt, record.password):
            raise Unauthorized("Invalid credentials")
        return record.id

    # --- Trust relationships ---

    def get_trust_relationships_requested(self) -> List[TrustRelationship]:
        """All relationships I originated."""
        return self._service.trust_store.get_by_originator_id(self._id)

    def get_trust_relationships_targeted(self) -> List[TrustRelationship]:
        """All relationships asking me to grant trust."""
        return self._service.trust_store.get_by_target_id(self._id)

    def get_trust_relationships_trusted(self) -> List[TrustRelationship]:
        """All relationships I originated that have been accepted."""
        return self._service.trust_store.get_trusted_by_originator_id(self._id)

    def get_trust_relationships(
        self, state: Optional[Union[str, TrustState]] = None
    ) -> List[TrustRelationship]:
        """Relationships I originated or am targeted by, optionally by state."""
        if state is not None:
            try:
                state = TrustState(state)
            except ValueError:
                allowed = ",".join(s.value for s in TrustState)
                raise InvalidInput(f"The trust state must be one of {allowed}")

        seen = {}
        for rel in self.get_trust_relationships_requested() + self.get_trust_relationships_targeted():
            seen[rel.id] = rel
        relationships = [seen[k] for k in sorted(seen)]
        if state is not None:
            relationships = [r for r in relationships if r.state == state]
        return relationships

    def request_trust(
        self,
        request_type: Union[str, TrustRequestType],
        target_wallet_name: str,
    ) -> TrustRelationship:
        """Ask the wallet named target_wallet_name to trust me for request_type."""
        request_type = _parse_request_type(request_type)
        if not isinstance(target_wallet_name, str) or not target_wallet_name.strip():
            raise InvalidInput("Invalid wallet name")
        logger.debug("Wallet %s requesting %s trust from '%s'", self._id, request_type.value, target_wallet_name)

        target = self._service.get_by_name(target_wallet_name)

        # One relationship per (originator, target, type), whatever its state
        for rel in self.get_trust_relationships_requested():
            if rel.request_type == request_type and rel.target_entity_id == target.id:
                raise Forbidden("The trust requested has existed")

        self._service.trust_request_policy.check_request_sent_to(target, request_type, self._id)

        created = self._service.trust_store.create(
            trust_lifecycle.new_trust_request(request_type, self._id, target.id)
        )
        logger.info(
            "Trust relationship %s created: %s from wallet %s to wallet %s",
            created.id, request_type.value, self._id, target.id,
        )
        return created

    def _get_targeted(self, relationship_id: int, verb: str) -> TrustRelationship:
        for rel in self.get_trust_relationships_targeted():
            if rel.id == relationship_id:
                return rel
        raise Forbidden(f"Have no permission to {verb} this relationship")

    def accept_trust_request(self, relationship_id: int) -> TrustRelationship:
        rel = self._get_targeted(relationship_id, "accept")
        return self._save_trust(trust_lifecycle.accept(rel))

    def decline_trust_request(self, relationship_id: int) -> TrustRelationship:
        rel = self._get_targeted(relationship_id, "decline")
        return self._save_trust(trust_lifecycle.decline(rel))

    def cancel_trust_request(self, relationship_id: int) -> TrustRelationship:
        rel = self._service.trust_store.get_by_id(relationship_id)
        if rel is None:
            raise NotFound(f"Trust relationship {relationship_id} not found")
        if rel.originator_entity_id != self._id:
            raise Forbidden("Have no permission to cancel this relationship")
        return self._save_trust(trust_lifecycle.cancel(rel))

    def _save_trust(self, rel: TrustRelationship) -> TrustRelationship:
        saved = self._service.trust_store.update(rel)
        logger.info("Trust relationship %s is now %s (by wallet %s)", saved.id, saved.state.value, self._id)
        return saved

    def check_trust(
        self,
        request_type: Union[str, TrustRequestType],
        source: "Wallet",
        target: "Wallet",
    ) -> None:
        """
        Pass silently if I hold a trusted relationship granting request_type
        from source to target. Raise Forbidden otherwise.
        """
        request_type = _parse_request_type(request_type)
        for rel in self.get_trust_relationships_trusted():
            if trust_lifecycle.matches(rel, request_type, source.id, target.id):
                logger.debug("Check trust passed for wallet %s", self._id)
                return
        raise Forbidden("Have no permission to do this action")

    # --- Transfers ---

    def has_control_over(self, wallet: "Wallet") -> bool:
        return self._service.control_policy.has_control_over(self, wallet)

    def attempt_transfer(
        self,
        sender: "Wallet",
        receiver: "Wallet",
        tokens: Iterable[str],
        idempotency_key: Optional[str] = None,
    ) -> TransferOutcome:
        """
        Move tokens from sender to receiver if trust allows it, otherwise
        record the transfer for the party I control and defer it.

        A direct move is executed under idempotency_key. Without one, the key
        is derived from the parties and tokens, so retrying the same attempt
        moves the tokens once.
        """
        tokens = _parse_tokens(tokens)
        try:
            self.check_trust(TrustRequestType.SEND, sender, receiver)
        except Forbidden:
            if self.has_control_over(sender):
                logger.debug("No trust, sender %s under control, saving as pending", sender.id)
                state = TransferState.PENDING
            elif self.has_control_over(receiver):
                logger.debug("No trust, receiver %s under control, saving as requested", receiver.id)
                state = TransferState.REQUESTED
            else:
                raise Forbidden(
                    "Transfer between wallets that are not under my control is not supported"
                )
            transfer = self._service.transfer_store.create(
                transfer_lifecycle.new_transfer(self._id, sender.id, receiver.id, tokens, state)
            )
            logger.info("Transfer %s deferred as %s", transfer.id, state.value)
            return TransferOutcome(
                disposition=TransferDisposition.DEFERRED_ACCEPTED,
                transfer=transfer,
                detail="No trust, saved",
            )

        if idempotency_key is None:
            idempotency_key = _direct_key(self._id, sender.id, receiver.id, tokens)
        self._service.executor.execute(idempotency_key, sender.id, receiver.id, tokens)
        return TransferOutcome(
            disposition=TransferDisposition.COMPLETED,
            detail="Transfer completed",
        )

    def get_pending_transfers(self) -> List[Transfer]:
        """Pending transfers waiting for me to accept or decline."""
        return self._service.transfer_store.get_pending_transfers(self._id)

    def get_transfers(
        self,
        state: Optional[Union[str, TransferState]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Transfer]:
        """Transfers I originated, send or receive, optionally by state."""
        if (limit is not None and limit < 1) or offset < 0:
            raise InvalidInput("limit must be positive and offset not negative")
        return self._service.transfer_store.get_by_filter(TransferFilter(
            state=_parse_transfer_state(state) if state is not None else None,
            involving_entity_id=self._id,
            limit=limit or self._service.page_size,
            offset=offset,
        ))

    def _get_transfer(self, transfer_id: int) -> Transfer:
        transfer = self._service.transfer_store.get_by_id(transfer_id)
        if transfer is None:
            raise NotFound(f"Transfer {transfer_id} not found")
        return transfer

    def _resolve_transfer(self, transfer_id: int, action: TransferAction) -> Transfer:
        transfer = self._get_transfer(transfer_id)
        self._service.privilege_policy.check(action, self, transfer)
        if action in (TransferAction.ACCEPT, TransferAction.FULFILL):
            resolved = transfer_lifecycle.complete(transfer)
        else:
            resolved = transfer_lifecycle.cancel(transfer)

        # Executor runs before the save, so a failure leaves the transfer open
        if resolved.state == TransferState.COMPLETED:
            self._service.executor.execute(
                f"transfer_{resolved.id}",
                resolved.source_entity_id,
                resolved.destination_entity_id,
                resolved.tokens,
            )
        saved = self._service.transfer_store.update(resolved)
        logger.info("Transfer %s %s by wallet %s, now %s", saved.id, action.value, self._id, saved.state.value)
        return saved

    def accept_transfer(self, transfer_id: int) -> Transfer:
        return self._resolve_transfer(transfer_id, TransferAction.ACCEPT)

    def decline_transfer(self, transfer_id: int) -> Transfer:
        return self._resolve_transfer(transfer_id, TransferAction.DECLINE)

    def cancel_transfer(self, transfer_id: int) -> Transfer:
        return self._resolve_transfer(transfer_id, TransferAction.CANCEL)

    def fulfill_transfer(self, transfer_id: int) -> Transfer:
        return self._resolve_transfer(transfer_id, TransferAction.FULFILL)
