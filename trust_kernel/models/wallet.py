"""Wallet Record — identity and credential data for a wallet."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class WalletRecord(BaseModel):
    """A stored wallet. Created and destroyed outside the kernel."""

    id: Optional[int] = None                # Assigned by the store, never reused
    name: str = Field(min_length=1)         # Unique display name
    password: str                           # HMAC-SHA512 hex digest
    salt: str
    created_at: Optional[datetime] = None


class WalletView(BaseModel):
    """Public projection of a wallet. Never carries credential material."""

    id: int
    name: str
