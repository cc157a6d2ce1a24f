"""Tracionar — Account Service.

Connect, list and disconnect Meta ad accounts, and report their sync history.
Tokens go through the credential vault before they touch storage.
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from app.connectors.meta.client import MetaClient
from app.connectors.meta.endpoints import account_node
from app.core.errors import ExternalAPIError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.core.vault import CredentialVault, get_vault
from app.models.entities import AdAccount, utcnow
from app.storage.gateway import PersistenceGateway

logger = get_logger("services.account")

ClientFactory = Callable[[str], MetaClient]


def _default_client(access_token: str) -> MetaClient:
    return MetaClient(access_token=access_token)


def _external_id(row: Dict[str, Any]) -> str:
    """Meta returns ``act_<n>`` as id and the bare number as account_id."""
    external = row.get("account_id") or row.get("id") or ""
    external = str(external)
    return external[4:] if external.startswith("act_") else external


async def _expiry_from_debug_token(client: MetaClient) -> Optional[datetime]:
    """Expiry reported by /debug_token; None when the token never expires."""
    try:
        info = await client.validate_token()
    except ExternalAPIError as e:
        logger.warning(f"Token expiry unknown, /debug_token failed: {e.message}")
        return None
    if not info["expires_at"]:
        return None
    return datetime.fromtimestamp(info["expires_at"], timezone.utc)


def build_auth_url(
    state: Optional[str] = None, client_factory: ClientFactory = _default_client
) -> Dict[str, str]:
    state = state or secrets.token_urlsafe(16)
    return {
        "auth_url": client_factory("").build_auth_url(state),
        "state": state,
    }


async def connect_account(
    gateway: PersistenceGateway,
    code: str,
    owner_id: str = "",
    client_factory: ClientFactory = _default_client,
    vault: Optional[CredentialVault] = None,
) -> AdAccount:
    """OAuth code → token → first ad account → encrypted, upserted AdAccount.

    Reconnecting an existing account reactivates it and replaces its token.
    """
    if not code:
        raise ValidationError("Authorization code is required")
    vault = vault or get_vault()

    oauth = client_factory("")
    try:
        token_data = await oauth.exchange_code_for_token(code)
    finally:
        await oauth.close()

    access_token = token_data["access_token"]
    client = client_factory(access_token)
    try:
        ad_accounts = await client.get_ad_accounts()
        expires_in = token_data.get("expires_in")
        if expires_in:
            token_expiry = utcnow() + timedelta(seconds=int(expires_in))
        else:
            token_expiry = await _expiry_from_debug_token(client)
    finally:
        await client.close()

    if not ad_accounts:
        raise NotFoundError("No ad account is reachable with this authorization")
    info = ad_accounts[0]
    external_id = _external_id(info)

    account, created = gateway.upsert(
        AdAccount,
        {"external_id": external_id},
        {
            "name": info.get("name", ""),
            "owner_id": owner_id,
            "currency": info.get("currency", ""),
            "encrypted_token": vault.encrypt(access_token),
            "token_expiry": token_expiry,
            "is_active": True,
        },
    )
    logger.info(
        f"Ad account {account_node(external_id)} {'connected' if created else 'reconnected'}",
        extra={"account_id": account.id},
    )
    return account


def list_accounts(
    gateway: PersistenceGateway, owner_id: Optional[str] = None
) -> List[Dict[str, Any]]:
    accounts = gateway.list_accounts(owner_id=owner_id)
    counts = gateway.campaign_counts([a.id for a in accounts])
    return [
        {
            "id": a.id,
            "external_id": a.external_id,
            "name": a.name,
            "currency": a.currency,
            "is_active": a.is_active,
            "last_sync_at": a.last_sync_at,
            "created_at": a.created_at,
            "campaign_count": counts.get(a.id, 0),
        }
        for a in accounts
    ]


def _require_account(
    gateway: PersistenceGateway, account_id: int, active_only: bool = False
) -> AdAccount:
    account = gateway.get_account(account_id)
    if account is None or (active_only and not account.is_active):
        raise NotFoundError(f"Account {account_id} not found", {"account_id": account_id})
    return account


def disconnect_account(gateway: PersistenceGateway, account_id: int) -> AdAccount:
    """Soft delete: the account and its history stay, syncs stop."""
    account = _require_account(gateway, account_id)
    gateway.deactivate_account(account)
    logger.info(f"Ad account {account.external_id} disconnected", extra={"account_id": account_id})
    return account


def get_sync_status(gateway: PersistenceGateway, account_id: int) -> Dict[str, Any]:
    account = _require_account(gateway, account_id)
    runs = gateway.recent_sync_runs(account_id, limit=5)
    return {
        "account": {
            "id": account.id,
            "external_id": account.external_id,
            "name": account.name,
        },
        "recent_syncs": [run.model_dump() for run in runs],
        "last_sync_at": account.last_sync_at,
        "is_active": account.is_active,
    }


def list_campaigns(gateway: PersistenceGateway, account_id: int) -> List[Dict[str, Any]]:
    """Campaigns of an active account with ad-set count and latest daily sample."""
    _require_account(gateway, account_id, active_only=True)
    campaigns = gateway.campaigns_for_accounts([account_id])
    ids = [c.id for c in campaigns]
    adsets = gateway.adset_counts(ids)
    latest = gateway.latest_samples("campaign", ids)
    return [
        {
            **c.model_dump(),
            "ad_set_count": adsets.get(c.id, 0),
            "latest_metrics": latest[c.id].model_dump() if c.id in latest else None,
        }
        for c in campaigns
    ]
