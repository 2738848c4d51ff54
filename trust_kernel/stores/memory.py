"""
In-memory stores — process-local adapters for the persistence ports.

Used by tests and by the default application when no database is configured.
Records are copied on the way in and out so callers never share state with
the store.
"""

import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

from trust_kernel.errors import Conflict
from trust_kernel.models.transfer import Transfer, TransferFilter, TransferState
from trust_kernel.models.trust import TrustRelationship, TrustState
from trust_kernel.models.wallet import WalletRecord


class InMemoryWalletStore:
    """Wallets keyed by id, with a unique name index."""

    def __init__(self):
        self._wallets: Dict[int, WalletRecord] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def get_by_id(self, wallet_id: int) -> Optional[WalletRecord]:
        with self._lock:
            record = self._wallets.get(wallet_id)
            return record.model_copy(deep=True) if record else None

    def get_by_name(self, name: str) -> Optional[WalletRecord]:
        with self._lock:
            for record in self._wallets.values():
                if record.name == name:
                    return record.model_copy(deep=True)
        return None

    def create(self, record: WalletRecord) -> WalletRecord:
        with self._lock:
            if any(w.name == record.name for w in self._wallets.values()):
                raise Conflict(f"Wallet name '{record.name}' already exists")
            stored = record.model_copy(
                update={"id": self._next_id, "created_at": datetime.now(timezone.utc)},
                deep=True,
            )
            self._wallets[stored.id] = stored
            self._next_id += 1
        return stored.model_copy(deep=True)


class _VersionedStore:
    """Shared create/update logic with optimistic concurrency."""

    def __init__(self):
        self._records: Dict[int, object] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def _create(self, record, **stamps):
        with self._lock:
            stored = record.model_copy(
                update={"id": self._next_id, "version": 1, **stamps},
                deep=True,
            )
            self._records[stored.id] = stored
            self._next_id += 1
        return stored.model_copy(deep=True)

    def _update(self, record, **stamps):
        with self._lock:
            current = self._records.get(record.id)
            if current is None or current.version != record.version:
                raise Conflict(
                    f"Record {record.id} was modified concurrently, reload and retry"
                )
            stored = record.model_copy(
                update={"version": record.version + 1, **stamps},
                deep=True,
            )
            self._records[stored.id] = stored
        return stored.model_copy(deep=True)

    def _get(self, record_id: int):
        with self._lock:
            record = self._records.get(record_id)
            return record.model_copy(deep=True) if record else None

    def _select(self, predicate) -> list:
        with self._lock:
            return [
                r.model_copy(deep=True)
                for _, r in sorted(self._records.items())
                if predicate(r)
            ]


class InMemoryTrustStore(_VersionedStore):
    """Trust relationships keyed by id."""

    def get_by_id(self, relationship_id: int) -> Optional[TrustRelationship]:
        return self._get(relationship_id)

    def get_by_originator_id(self, wallet_id: int) -> List[TrustRelationship]:
        return self._select(lambda r: r.originator_entity_id == wallet_id)

    def get_by_target_id(self, wallet_id: int) -> List[TrustRelationship]:
        return self._select(lambda r: r.target_entity_id == wallet_id)

    def get_trusted_by_originator_id(self, wallet_id: int) -> List[TrustRelationship]:
        return self._select(
            lambda r: r.originator_entity_id == wallet_id
            and r.state == TrustState.TRUSTED
        )

    def create(self, record: TrustRelationship) -> TrustRelationship:
        now = datetime.now(timezone.utc)
        return self._create(record, created_at=now, updated_at=now)

    def update(self, record: TrustRelationship) -> TrustRelationship:
        return self._update(record, updated_at=datetime.now(timezone.utc))


class InMemoryTransferStore(_VersionedStore):
    """Transfers keyed by id."""

    def get_by_id(self, transfer_id: int) -> Optional[Transfer]:
        return self._get(transfer_id)

    def get_pending_transfers(self, wallet_id: int) -> List[Transfer]:
        return self._select(
            lambda t: t.destination_entity_id == wallet_id
            and t.state == TransferState.PENDING
        )

    def get_by_filter(self, filter: TransferFilter) -> List[Transfer]:
        def matches(t: Transfer) -> bool:
            if filter.state is not None and t.state != filter.state:
                return False
            if filter.involving_entity_id is not None and filter.involving_entity_id not in (
                t.originator_entity_id,
                t.source_entity_id,
                t.destination_entity_id,
            ):
                return False
            return True

        selected = self._select(matches)
        return selected[filter.offset:filter.offset + filter.limit]

    def create(self, record: Transfer) -> Transfer:
        return self._create(record, created_at=datetime.now(timezone.utc))

    def update(self, record: Transfer) -> Transfer:
        return self._update(record)
