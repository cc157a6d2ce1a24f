"""Tracionar — Ad Account & Sync Routes."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.dependencies import get_gateway
from app.api.errors import to_http
from app.core.errors import TracionarError
from app.core.logging import get_logger
from app.scheduler.jobs import schedule_sync
from app.services import account_service, sync_service
from app.storage.gateway import PersistenceGateway

logger = get_logger("api.accounts")

router = APIRouter(prefix="/accounts", tags=["Accounts"])


# ── Request / Response Models ──


class CallbackRequest(BaseModel):
    """Request body for POST /accounts/callback."""

    code: str
    state: Optional[str] = None
    owner_id: str = ""


class SyncRequest(BaseModel):
    """Request body for POST /accounts/{id}/sync."""

    mode: str = "incremental"

    model_config = {
        "json_schema_extra": {"examples": [{"mode": "incremental"}, {"mode": "full"}]}
    }


class SyncAck(BaseModel):
    account_id: int
    mode: str
    status: str


# ── OAuth ──


@router.get("/auth-url")
async def auth_url():
    """Meta login dialog URL to start connecting an ad account."""
    return account_service.build_auth_url()


@router.post("/callback")
async def oauth_callback(
    request: CallbackRequest,
    gateway: PersistenceGateway = Depends(get_gateway),
):
    """Exchange the OAuth code and store the connected account."""
    try:
        account = await account_service.connect_account(
            gateway, request.code, request.owner_id
        )
    except TracionarError as e:
        raise to_http(e) from e
    return {
        "status": "success",
        "account": {
            "id": account.id,
            "external_id": account.external_id,
            "name": account.name,
            "is_active": account.is_active,
        },
    }


# ── Accounts ──


@router.get("")
async def list_accounts(
    owner_id: Optional[str] = None,
    gateway: PersistenceGateway = Depends(get_gateway),
) -> Dict[str, List[Dict[str, Any]]]:
    return {"accounts": account_service.list_accounts(gateway, owner_id)}


@router.delete("/{account_id}")
async def disconnect_account(
    account_id: int, gateway: PersistenceGateway = Depends(get_gateway)
):
    try:
        account = account_service.disconnect_account(gateway, account_id)
    except TracionarError as e:
        raise to_http(e) from e
    return {"status": "success", "account_id": account.id, "is_active": account.is_active}


@router.get("/{account_id}/campaigns")
async def list_campaigns(
    account_id: int, gateway: PersistenceGateway = Depends(get_gateway)
):
    try:
        return {"campaigns": account_service.list_campaigns(gateway, account_id)}
    except TracionarError as e:
        raise to_http(e) from e


# ── Sync ──


@router.post("/{account_id}/sync", response_model=SyncAck)
async def request_sync(
    account_id: int,
    request: SyncRequest,
    gateway: PersistenceGateway = Depends(get_gateway),
):
    """Start a detached sync. The outcome shows up in /sync-status."""
    try:
        return sync_service.request_sync(
            gateway, account_id, request.mode, dispatch=schedule_sync
        )
    except TracionarError as e:
        raise to_http(e) from e


@router.get("/{account_id}/sync-status")
async def sync_status(
    account_id: int, gateway: PersistenceGateway = Depends(get_gateway)
):
    try:
        return account_service.get_sync_status(gateway, account_id)
    except TracionarError as e:
        raise to_http(e) from e
