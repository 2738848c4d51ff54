"""
Trust Kernel API — FastAPI endpoints.

Thin transport adapter over the WalletService:
- Authentication
- Trust relationship requests and their resolution
- Trust-gated transfers and their resolution

The acting wallet arrives in the X-Wallet-Id header, set by the upstream
layer that verified the caller's token. When an API key is configured every
request must also carry it in X-Api-Key.
"""

import hmac
import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from trust_kernel.config import Settings, configure_logging, get_settings
from trust_kernel.errors import TrustKernelError, Unauthorized
from trust_kernel.models.transfer import TransferDisposition
from trust_kernel.stores.ports import TransferStore, TrustStore, WalletStore
from trust_kernel.wallet.aggregate import Wallet
from trust_kernel.wallet.policy import TransferExecutor
from trust_kernel.wallet.service import WalletService

logger = logging.getLogger(__name__)


# --- Request/Response Models ---

class AuthRequest(BaseModel):
    wallet: str
    password: str


class TrustRequestCreate(BaseModel):
    trust_request_type: str
    wallet: str


class TransferCreate(BaseModel):
    sender_wallet: str
    receiver_wallet: str
    tokens: List[str] = []


# --- Application Factory ---

def create_app(
    wallet_store: Optional[WalletStore] = None,
    trust_store: Optional[TrustStore] = None,
    transfer_store: Optional[TransferStore] = None,
    executor: Optional[TransferExecutor] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    config = settings or get_settings()
    configure_logging(config.log_level)

    app = FastAPI(
        title="Trust Kernel API",
        description="Trust-gated token transfers between wallets",
        version="0.1.0",
    )

    if wallet_store is not None and trust_store is not None and transfer_store is not None:
        service = WalletService(
            wallet_store=wallet_store,
            trust_store=trust_store,
            transfer_store=transfer_store,
            executor=executor,
            page_size=config.default_page_size,
        )
    else:
        service = WalletService.from_settings(config, executor=executor)

    app.state.wallet_service = service
    app.state.settings = config

    @app.exception_handler(TrustKernelError)
    async def handle_domain_error(request: Request, exc: TrustKernelError):
        logger.debug("Request %s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.status_code, "message": exc.message},
        )

    def check_api_key(x_api_key: Optional[str] = Header(default=None)) -> None:
        if config.api_key is None:
            return
        if x_api_key is None or not hmac.compare_digest(x_api_key, config.api_key):
            raise Unauthorized("Invalid access - no API key")

    def acting_wallet(
        _: None = Depends(check_api_key),
        x_wallet_id: Optional[int] = Header(default=None),
    ) -> Wallet:
        if x_wallet_id is None:
            raise Unauthorized("Missing wallet identity")
        return service.get_by_id(x_wallet_id)

    # === AUTH ===

    @app.post("/auth", dependencies=[Depends(check_api_key)])
    def authenticate(req: AuthRequest):
        """Exchange a wallet name and password for the wallet id."""
        return {"id": service.authenticate(req.wallet, req.password)}

    # === TRUST RELATIONSHIPS ===

    @app.get("/trust_relationships")
    def list_trust_relationships(
        state: Optional[str] = None,
        wallet: Wallet = Depends(acting_wallet),
    ):
        """Relationships I requested or that target me."""
        return {
            "trust_relationships": [
                r.model_dump(mode="json") for r in wallet.get_trust_relationships(state)
            ]
        }

    @app.post("/trust_relationships", status_code=201)
    def request_trust(req: TrustRequestCreate, wallet: Wallet = Depends(acting_wallet)):
        """Ask another wallet to trust me."""
        rel = wallet.request_trust(req.trust_request_type, req.wallet)
        return rel.model_dump(mode="json")

    @app.post("/trust_relationships/{relationship_id}/accept")
    def accept_trust_request(relationship_id: int, wallet: Wallet = Depends(acting_wallet)):
        return wallet.accept_trust_request(relationship_id).model_dump(mode="json")

    @app.post("/trust_relationships/{relationship_id}/decline")
    def decline_trust_request(relationship_id: int, wallet: Wallet = Depends(acting_wallet)):
        return wallet.decline_trust_request(relationship_id).model_dump(mode="json")

    @app.delete("/trust_relationships/{relationship_id}")
    def cancel_trust_request(relationship_id: int, wallet: Wallet = Depends(acting_wallet)):
        return wallet.cancel_trust_request(relationship_id).model_dump(mode="json")

    # === TRANSFERS ===

    @app.post("/transfers")
    def create_transfer(
        req: TransferCreate,
        wallet: Wallet = Depends(acting_wallet),
        idempotency_key: Optional[str] = Header(default=None),
    ):
        """Attempt a transfer. 201 when completed, 202 when recorded and deferred."""
        sender = service.get_by_name(req.sender_wallet)
        receiver = service.get_by_name(req.receiver_wallet)
        outcome = wallet.attempt_transfer(sender, receiver, req.tokens, idempotency_key=idempotency_key)
        status = 202 if outcome.disposition == TransferDisposition.DEFERRED_ACCEPTED else 201
        return JSONResponse(status_code=status, content=outcome.model_dump(mode="json"))

    @app.get("/transfers")
    def list_transfers(
        state: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        wallet: Wallet = Depends(acting_wallet),
    ):
        transfers = wallet.get_transfers(state=state, limit=limit, offset=offset)
        return {"transfers": [t.model_dump(mode="json") for t in transfers]}

    @app.get("/transfers/pending")
    def list_pending_transfers(wallet: Wallet = Depends(acting_wallet)):
        """Pending transfers waiting for my decision."""
        return {"transfers": [t.model_dump(mode="json") for t in wallet.get_pending_transfers()]}

    @app.post("/transfers/{transfer_id}/accept")
    def accept_transfer(transfer_id: int, wallet: Wallet = Depends(acting_wallet)):
        return wallet.accept_transfer(transfer_id).model_dump(mode="json")

    @app.post("/transfers/{transfer_id}/decline")
    def decline_transfer(transfer_id: int, wallet: Wallet = Depends(acting_wallet)):
        return wallet.decline_transfer(transfer_id).model_dump(mode="json")

    @app.post("/transfers/{transfer_id}/fulfill")
    def fulfill_transfer(transfer_id: int, wallet: Wallet = Depends(acting_wallet)):
        return wallet.fulfill_transfer(transfer_id).model_dump(mode="json")

    @app.delete("/transfers/{transfer_id}")
    def cancel_transfer(transfer_id: int, wallet: Wallet = Depends(acting_wallet)):
        return wallet.cancel_transfer(transfer_id).model_dump(mode="json")

    return app


# Default application instance
app = create_app()
