"""Tracionar — Sync Service.

``request_sync`` is the caller-facing half: validate, hand off, acknowledge.
``run_account_sync`` is the detached half the scheduler executes; its outcome
is only visible through the SyncRun log and the account's last_sync_at.
"""

import asyncio
from contextlib import nullcontext
from typing import Any, Callable, ContextManager, Dict, Optional

from sqlmodel import Session

from app.config import settings
from app.core.errors import CredentialError, NotFoundError, PersistenceError, SyncError
from app.core.logging import get_logger
from app.core.vault import CredentialVault, get_vault
from app.database import session_scope
from app.models.analytics_models import SyncMode, SyncOutcome, SyncResult
from app.storage.gateway import PersistenceGateway
from app.sync.orchestrator import (
    EndpointsFactory,
    HierarchySyncOrchestrator,
    default_endpoints_factory,
    parse_mode,
)

logger = get_logger("services.sync")

Dispatch = Callable[[int, str], Any]

_account_locks: Dict[int, asyncio.Lock] = {}


def _account_lock(account_id: int):
    if not settings.sync_serialize_per_account:
        return nullcontext()
    lock = _account_locks.get(account_id)
    if lock is None:
        lock = _account_locks[account_id] = asyncio.Lock()
    return lock


def request_sync(
    gateway: PersistenceGateway,
    account_id: int,
    mode: str,
    dispatch: Dispatch,
) -> Dict[str, Any]:
    """Validate and dispatch a sync; returns before any fetch happens."""
    sync_mode = parse_mode(mode)
    account = gateway.get_account(account_id)
    if account is None or not account.is_active:
        raise NotFoundError(
            f"Account {account_id} not found or inactive", {"account_id": account_id}
        )

    dispatch(account_id, sync_mode.value)
    logger.info(
        f"Sync requested for {account.external_id}",
        extra={"account_id": account_id, "sync_mode": sync_mode.value},
    )
    return {"account_id": account_id, "mode": sync_mode.value, "status": "in_progress"}


async def run_account_sync(
    account_id: int,
    mode: str,
    endpoints_factory: EndpointsFactory = default_endpoints_factory,
    session_factory: Callable[[], ContextManager[Session]] = session_scope,
    vault: Optional[CredentialVault] = None,
) -> Optional[SyncResult]:
    """Run one account sync to completion; run failures are logged, not raised."""
    sync_mode = parse_mode(mode)

    async with _account_lock(account_id):
        with session_factory() as session:
            gateway = PersistenceGateway(session)
            account = gateway.get_account(account_id)
            if account is None or not account.is_active:
                logger.warning(
                    f"Skipping sync of missing or inactive account {account_id}",
                    extra={"account_id": account_id},
                )
                return None

            try:
                credential = (vault or get_vault()).decrypt(account.encrypted_token)
            except CredentialError as e:
                _record_credential_failure(gateway, account_id, sync_mode, e)
                return None

            orchestrator = HierarchySyncOrchestrator(gateway, endpoints_factory)
            try:
                return await orchestrator.sync(account, credential, sync_mode)
            except SyncError as e:
                # Already recorded as an error run by the orchestrator
                logger.error(
                    f"Detached sync failed: {e.message}",
                    extra={"account_id": account_id, "sync_mode": sync_mode.value},
                )
                return None


def _record_credential_failure(
    gateway: PersistenceGateway,
    account_id: int,
    mode: SyncMode,
    error: CredentialError,
) -> None:
    logger.error(
        f"Sync aborted, credential unusable: {error.message}",
        extra={"account_id": account_id, "sync_mode": mode.value},
    )
    try:
        gateway.record_sync_run(
            account_id, mode.value, SyncOutcome.ERROR.value, 0, 0, error.message
        )
    except PersistenceError as e:
        logger.error(f"Could not record sync run for account {account_id}: {e.message}")
