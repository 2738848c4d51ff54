"""
Persistence Ports — the narrow store contracts the kernel consumes.

Behavioral Contract:
- Single-record reads return None when the record does not exist
- create() assigns the id and returns the stored record
- update() replaces the full record by id, but only when the stored version
  equals the record's version; otherwise it raises Conflict
- No record is ever physically deleted
"""

from typing import List, Optional, Protocol

from trust_kernel.models.transfer import Transfer, TransferFilter
from trust_kernel.models.trust import TrustRelationship
from trust_kernel.models.wallet import WalletRecord


class WalletStore(Protocol):
    def get_by_id(self, wallet_id: int) -> Optional[WalletRecord]: ...

    def get_by_name(self, name: str) -> Optional[WalletRecord]: ...

    def create(self, record: WalletRecord) -> WalletRecord: ...


class TrustStore(Protocol):
    def get_by_id(self, relationship_id: int) -> Optional[TrustRelationship]: ...

    def get_by_originator_id(self, wallet_id: int) -> List[TrustRelationship]: ...

    def get_by_target_id(self, wallet_id: int) -> List[TrustRelationship]: ...

    def get_trusted_by_originator_id(self, wallet_id: int) -> List[TrustRelationship]: ...

    def create(self, record: TrustRelationship) -> TrustRelationship: ...

    def update(self, record: TrustRelationship) -> TrustRelationship: ...


class TransferStore(Protocol):
    def get_by_id(self, transfer_id: int) -> Optional[Transfer]: ...

    def get_pending_transfers(self, wallet_id: int) -> List[Transfer]: ...

    def get_by_filter(self, filter: TransferFilter) -> List[Transfer]: ...

    def create(self, record: Transfer) -> Transfer: ...

    def update(self, record: Transfer) -> Transfer: ...
