"""
Wallet Service — resolves Wallet aggregates and wires them to stores and policies.
"""

import logging
from typing import Optional

from trust_kernel.config import Settings
from trust_kernel.errors import InvalidInput, NotFound, Unauthorized
from trust_kernel.models.wallet import WalletRecord
from trust_kernel.stores.memory import (
    InMemoryTransferStore,
    InMemoryTrustStore,
    InMemoryWalletStore,
)
from trust_kernel.stores.ports import TransferStore, TrustStore, WalletStore
from trust_kernel.stores.sqlite import (
    SQLiteTransferStore,
    SQLiteTrustStore,
    SQLiteWalletStore,
    connect,
)
from trust_kernel.wallet.aggregate import Wallet
from trust_kernel.wallet.credentials import generate_salt, hash_password
from trust_kernel.wallet.policy import (
    AcceptAllTrustRequests,
    ControlPolicy,
    PartyPrivilegePolicy,
    RecordingTransferExecutor,
    SelfControlPolicy,
    TransferExecutor,
    TransferPrivilegePolicy,
    TrustRequestPolicy,
)

logger = logging.getLogger(__name__)


class WalletService:
    """Entry point for callers: look up wallets, then act through them."""

    def __init__(
        self,
        wallet_store: WalletStore,
        trust_store: TrustStore,
        transfer_store: TransferStore,
        trust_request_policy: Optional[TrustRequestPolicy] = None,
        control_policy: Optional[ControlPolicy] = None,
        privilege_policy: Optional[TransferPrivilegePolicy] = None,
        executor: Optional[TransferExecutor] = None,
        page_size: int = 100,
    ):
        self.wallet_store = wallet_store
        self.trust_store = trust_store
        self.transfer_store = transfer_store
        self.trust_request_policy = trust_request_policy or AcceptAllTrustRequests()
        self.control_policy = control_policy or SelfControlPolicy()
        self.privilege_policy = privilege_policy or PartyPrivilegePolicy()
        self.executor = executor or RecordingTransferExecutor()
        self.page_size = page_size

    @classmethod
    def in_memory(cls, **kwargs) -> "WalletService":
        return cls(
            wallet_store=InMemoryWalletStore(),
            trust_store=InMemoryTrustStore(),
            transfer_store=InMemoryTransferStore(),
            **kwargs,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "WalletService":
        """SQLite-backed service on settings.database_path."""
        conn = connect(settings.database_path)
        logger.info("Using SQLite database at %s", settings.database_path)
        return cls(
            wallet_store=SQLiteWalletStore(conn),
            trust_store=SQLiteTrustStore(conn),
            transfer_store=SQLiteTransferStore(conn),
            page_size=settings.default_page_size,
            **kwargs,
        )

    def get_by_id(self, wallet_id: int) -> Wallet:
        wallet = Wallet(wallet_id, self)
        if self.wallet_store.get_by_id(wallet_id) is None:
            raise NotFound(f"Could not find wallet by id: {wallet_id}")
        return wallet

    def get_by_name(self, name: str) -> Wallet:
        record = self.wallet_store.get_by_name(name)
        if record is None:
            raise NotFound(f"Could not find wallet by name: {name}")
        return Wallet(record.id, self)

    def create_wallet(self, name: str, password: str) -> Wallet:
        """Register a wallet with a freshly salted credential."""
        if not name or not name.strip():
            raise InvalidInput("Invalid wallet name")
        if not password:
            raise InvalidInput("Error: Invalid credential format")
        salt = generate_salt()
        record = self.wallet_store.create(WalletRecord(
            name=name,
            password=hash_password(password, salt),
            salt=salt,
        ))
        logger.info("Wallet %s created with name '%s'", record.id, record.name)
        return Wallet(record.id, self)

    def authenticate(self, name: str, password: str) -> int:
        """Resolve a wallet by name and check its password. Returns the wallet id."""
        if not name:
            raise InvalidInput("Error: Invalid credential format")
        try:
            wallet = self.get_by_name(name)
        except NotFound:
            raise Unauthorized("Invalid credentials")
        return wallet.authorize(password)
