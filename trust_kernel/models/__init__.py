"""Trust Kernel data models."""

from trust_kernel.models.transfer import (
    Transfer,
    TransferDisposition,
    TransferFilter,
    TransferOutcome,
    TransferState,
)
from trust_kernel.models.trust import TrustRelationship, TrustRequestType, TrustState
from trust_kernel.models.wallet import WalletRecord, WalletView

__all__ = [
    "Transfer",
    "TransferDisposition",
    "TransferFilter",
    "TransferOutcome",
    "TransferState",
    "TrustRelationship",
    "TrustRequestType",
    "TrustState",
    "WalletRecord",
    "WalletView",
]
