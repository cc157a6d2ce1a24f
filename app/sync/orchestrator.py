"""Tracionar — Hierarchy Sync Orchestrator.

Runs one account sync:
  credential check → campaigns → ad sets → ads → daily campaign metrics
  → advance last_sync_at → append SyncRun

Entity branches fail independently: a fetch or write error under one campaign
or ad set is logged and that branch simply contributes nothing. Only the
credential check, the top-level campaign fetch and the final account update
abort the run. Nothing is retried; repeated runs converge because every write
is an upsert on a natural key.
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from app.connectors.meta.client import MetaClient
from app.connectors.meta.endpoints import DATE_PRESETS, MetaEndpoints
from app.connectors.meta.transformer import (
    ad_fields,
    adset_fields,
    campaign_fields,
    insight_fields,
)
from app.core.errors import (
    CredentialError,
    PersistenceError,
    SyncError,
    TracionarError,
    ValidationError,
)
from app.core.logging import get_logger
from app.models.analytics_models import SyncMode, SyncOutcome, SyncResult
from app.models.entities import Ad, AdAccount, AdSet, Campaign, MetricSample, utcnow
from app.storage.gateway import PersistenceGateway, UpsertMode

logger = get_logger("sync.orchestrator")

EndpointsFactory = Callable[[str], MetaEndpoints]


def default_endpoints_factory(access_token: str) -> MetaEndpoints:
    return MetaEndpoints(MetaClient(access_token=access_token))


def parse_mode(mode: Any) -> SyncMode:
    try:
        return SyncMode(mode)
    except ValueError as e:
        raise ValidationError(
            f"Invalid sync mode: {mode!r}. Use 'full' or 'incremental'."
        ) from e


class HierarchySyncOrchestrator:
    """Pulls the Meta hierarchy for one account and merges it into storage."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        endpoints_factory: EndpointsFactory = default_endpoints_factory,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.gateway = gateway
        self._endpoints_factory = endpoints_factory
        self._clock = clock

    async def sync(
        self, account: AdAccount, credential: str, mode: SyncMode | str
    ) -> SyncResult:
        mode = parse_mode(mode)
        account_id = account.id
        log_extra = {"account_id": account_id, "sync_mode": mode.value}
        logger.info(f"Sync started for {account.external_id}", extra=log_extra)

        started = time.monotonic()
        touched = 0
        endpoints: Optional[MetaEndpoints] = None

        try:
            self._check_credential(account, credential)
            endpoints = self._endpoints_factory(credential)

            campaigns = await endpoints.fetch_campaigns(account.external_id)
            for row in campaigns:
                touched += await self._sync_campaign(endpoints, account, row)

            touched += await self._sync_metrics(endpoints, account, mode)
            self.gateway.mark_synced(account, self._clock())
        except Exception as e:
            duration_ms = self._elapsed_ms(started)
            message = e.message if isinstance(e, TracionarError) else str(e)
            self._record(account_id, mode, SyncOutcome.ERROR, touched, duration_ms, message)
            logger.error(
                f"Sync failed for account {account_id}: {message}",
                extra={**log_extra, "records_touched": touched, "duration_ms": duration_ms},
            )
            raise SyncError(message, account_id) from e
        finally:
            if endpoints is not None:
                await endpoints.close()

        duration_ms = self._elapsed_ms(started)
        self._record(account_id, mode, SyncOutcome.SUCCESS, touched, duration_ms)
        logger.info(
            f"Sync complete for account {account_id}",
            extra={**log_extra, "records_touched": touched, "duration_ms": duration_ms},
        )
        return SyncResult(
            account_id=account_id,
            mode=mode,
            records_touched=touched,
            duration_ms=duration_ms,
        )

    # ── Credential ──

    def _check_credential(self, account: AdAccount, credential: str) -> None:
        if not credential:
            raise CredentialError("No access token for account; reconnect it")
        expiry = account.token_expiry
        if expiry is None:
            return
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        if expiry <= self._clock():
            raise CredentialError(
                f"Access token expired at {expiry.isoformat()}; reconnect the account"
            )

    # ── Hierarchy ──

    async def _sync_campaign(
        self, endpoints: MetaEndpoints, account: AdAccount, row: Dict[str, Any]
    ) -> int:
        external_id = row.get("id")
        if not external_id:
            logger.warning("Skipping campaign row without id")
            return 0
        try:
            campaign, _ = self.gateway.upsert(
                Campaign,
                {"account_id": account.id, "external_id": external_id},
                campaign_fields(row),
            )
        except PersistenceError as e:
            logger.warning(f"Campaign {external_id} not stored: {e.message}")
            return 0

        touched = 1
        try:
            adsets = await endpoints.fetch_adsets(external_id)
        except TracionarError as e:
            logger.warning(f"Ad sets of campaign {external_id} skipped: {e.message}")
            return touched

        for adset_row in adsets:
            touched += await self._sync_adset(endpoints, campaign.id, adset_row)
        return touched

    async def _sync_adset(
        self, endpoints: MetaEndpoints, campaign_id: int, row: Dict[str, Any]
    ) -> int:
        external_id = row.get("id")
        if not external_id:
            logger.warning("Skipping ad set row without id")
            return 0
        try:
            adset, _ = self.gateway.upsert(
                AdSet,
                {"campaign_id": campaign_id, "external_id": external_id},
                adset_fields(row),
            )
        except PersistenceError as e:
            logger.warning(f"Ad set {external_id} not stored: {e.message}")
            return 0

        touched = 1
        try:
            ads = await endpoints.fetch_ads(external_id)
        except TracionarError as e:
            logger.warning(f"Ads of ad set {external_id} skipped: {e.message}")
            return touched

        for ad_row in ads:
            ad_external_id = ad_row.get("id")
            if not ad_external_id:
                continue
            try:
                self.gateway.upsert(
                    Ad,
                    {"ad_set_id": adset.id, "external_id": ad_external_id},
                    ad_fields(ad_row),
                )
                touched += 1
            except PersistenceError as e:
                logger.warning(f"Ad {ad_external_id} not stored: {e.message}")
        return touched

    # ── Metrics ──

    async def _sync_metrics(
        self, endpoints: MetaEndpoints, account: AdAccount, mode: SyncMode
    ) -> int:
        date_preset = DATE_PRESETS[mode.value]
        touched = 0

        for campaign in self.gateway.campaigns_for_accounts([account.id]):
            campaign_id, external_id = campaign.id, campaign.external_id
            try:
                rows = await endpoints.fetch_insights(external_id, date_preset, "campaign")
            except TracionarError as e:
                logger.warning(f"Metrics of campaign {external_id} skipped: {e.message}")
                continue

            for row in rows:
                date = row.get("date_start")
                if not date:
                    continue
                try:
                    self.gateway.upsert(
                        MetricSample,
                        {"entity_type": "campaign", "entity_id": campaign_id, "date": date},
                        insight_fields(row),
                        mode=UpsertMode.REPLACE,
                    )
                    touched += 1
                except PersistenceError as e:
                    logger.warning(
                        f"Sample {external_id}@{date} not stored: {e.message}"
                    )
        return touched

    # ── Run log ──

    def _record(
        self,
        account_id: int,
        mode: SyncMode,
        outcome: SyncOutcome,
        touched: int,
        duration_ms: int,
        error_message: Optional[str] = None,
    ) -> None:
        try:
            self.gateway.record_sync_run(
                account_id, mode.value, outcome.value, touched, duration_ms, error_message
            )
        except PersistenceError as e:
            logger.error(f"Could not record sync run for account {account_id}: {e.message}")

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
