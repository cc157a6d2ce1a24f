"""Tracionar — Persistence Gateway.

Idempotent merge of external records keyed by natural identifiers, plus the
append-only logs (sync runs, insights). Each upsert commits on its own so a
failure only loses the entity being written, never its siblings.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, SQLModel, func, select

from app.core.errors import PersistenceError
from app.core.logging import get_logger
from app.models.entities import (
    AdAccount,
    AdSet,
    Campaign,
    Insight,
    MetricSample,
    SyncRun,
    utcnow,
)

logger = get_logger("storage.gateway")

ModelT = TypeVar("ModelT", bound=SQLModel)

# Columns an upsert never rewrites
_MANAGED_COLUMNS = {"id", "created_at", "updated_at"}


class UpsertMode(str, Enum):
    PARTIAL = "partial"  # write only the fields supplied
    REPLACE = "replace"  # every non-key field; missing ones reset to default


class PersistenceGateway:
    """Storage access for the sync engine and read-side services."""

    def __init__(self, session: Session):
        self.session = session

    # ── Natural-key merge ──

    def upsert(
        self,
        model: Type[ModelT],
        key: Dict[str, Any],
        fields: Dict[str, Any],
        mode: UpsertMode = UpsertMode.PARTIAL,
    ) -> Tuple[ModelT, bool]:
        """Insert or update the row identified by ``key``.

        Returns ``(row, created)``. A row whose stored values already match
        ``fields`` is left untouched, including its ``updated_at``.
        """
        try:
            try:
                row, created = self._merge(model, key, fields, mode)
                self.session.commit()
            except IntegrityError:
                # Another writer inserted the same key first: apply as update.
                self.session.rollback()
                row, created = self._merge(model, key, fields, mode)
                self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Upsert failed for {model.__name__} {key}: {e}")
            raise PersistenceError(
                f"Failed to upsert {model.__name__}", {"key": key}
            ) from e
        return row, created

    def _find(self, model: Type[ModelT], key: Dict[str, Any]) -> Optional[ModelT]:
        clauses = [getattr(model, name) == value for name, value in key.items()]
        return self.session.exec(select(model).where(*clauses)).first()

    def _merge(
        self,
        model: Type[ModelT],
        key: Dict[str, Any],
        fields: Dict[str, Any],
        mode: UpsertMode,
    ) -> Tuple[ModelT, bool]:
        values = {k: v for k, v in fields.items() if k not in key}
        existing = self._find(model, key)

        if existing is None:
            row = model(**key, **values)
            self.session.add(row)
            self.session.flush()
            return row, True

        if mode == UpsertMode.REPLACE:
            values = {
                name: values[name]
                if name in values
                else info.get_default(call_default_factory=True)
                for name, info in model.model_fields.items()
                if name not in key and name not in _MANAGED_COLUMNS
            }

        changed = False
        for name, value in values.items():
            if getattr(existing, name) != value:
                setattr(existing, name, value)
                changed = True
        if changed and "updated_at" in model.model_fields:
            existing.updated_at = utcnow()
        self.session.add(existing)
        return existing, False

    # ── Accounts ──

    def get_account(self, account_id: int) -> Optional[AdAccount]:
        return self.session.get(AdAccount, account_id)

    def active_accounts(self, account_id: Optional[int] = None) -> List[AdAccount]:
        query = select(AdAccount).where(AdAccount.is_active == True)  # noqa: E712
        if account_id is not None:
            query = query.where(AdAccount.id == account_id)
        return list(self.session.exec(query.order_by(AdAccount.id)).all())

    def mark_synced(self, account: AdAccount, at: datetime) -> None:
        """Advance the account's last successful sync timestamp."""
        try:
            account.last_sync_at = at
            account.updated_at = utcnow()
            self.session.add(account)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(
                "Failed to update last sync timestamp", {"account_id": account.id}
            ) from e

    def list_accounts(
        self, owner_id: Optional[str] = None, include_inactive: bool = False
    ) -> List[AdAccount]:
        query = select(AdAccount)
        if not include_inactive:
            query = query.where(AdAccount.is_active == True)  # noqa: E712
        if owner_id:
            query = query.where(AdAccount.owner_id == owner_id)
        return list(
            self.session.exec(
                query.order_by(AdAccount.created_at.desc(), AdAccount.id.desc())  # type: ignore
            ).all()
        )

    def deactivate_account(self, account: AdAccount) -> AdAccount:
        try:
            account.is_active = False
            account.updated_at = utcnow()
            self.session.add(account)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(
                "Failed to deactivate account", {"account_id": account.id}
            ) from e
        return account

    def campaign_counts(self, account_ids: Sequence[int]) -> Dict[int, int]:
        if not account_ids:
            return {}
        rows = self.session.exec(
            select(Campaign.account_id, func.count(Campaign.id))
            .where(Campaign.account_id.in_(account_ids))  # type: ignore
            .group_by(Campaign.account_id)
        ).all()
        return {account_id: count for account_id, count in rows}

    # ── Campaigns & samples ──

    def get_campaign(self, campaign_id: int) -> Optional[Campaign]:
        return self.session.get(Campaign, campaign_id)

    def set_desired_cpa(self, campaign: Campaign, value: Optional[float]) -> Campaign:
        try:
            campaign.desired_cpa = value
            campaign.updated_at = utcnow()
            self.session.add(campaign)
            self.session.commit()
            self.session.refresh(campaign)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(
                "Failed to update desired CPA", {"campaign_id": campaign.id}
            ) from e
        return campaign

    def adset_counts(self, campaign_ids: Sequence[int]) -> Dict[int, int]:
        if not campaign_ids:
            return {}
        rows = self.session.exec(
            select(AdSet.campaign_id, func.count(AdSet.id))
            .where(AdSet.campaign_id.in_(campaign_ids))  # type: ignore
            .group_by(AdSet.campaign_id)
        ).all()
        return {campaign_id: count for campaign_id, count in rows}

    def latest_samples(
        self, entity_type: str, entity_ids: Sequence[int]
    ) -> Dict[int, MetricSample]:
        """Most recent sample per entity; entities without samples are absent."""
        latest: Dict[int, MetricSample] = {}
        for sample in self.samples_for_entities(entity_type, entity_ids):
            # Ordered by date ascending, so the last one seen wins
            latest[sample.entity_id] = sample
        return latest

    def campaigns_for_accounts(self, account_ids: Sequence[int]) -> List[Campaign]:
        if not account_ids:
            return []
        return list(
            self.session.exec(
                select(Campaign)
                .where(Campaign.account_id.in_(account_ids))  # type: ignore
                .order_by(Campaign.id)
            ).all()
        )

    def samples_for_entities(
        self,
        entity_type: str,
        entity_ids: Sequence[int],
        date_start: Optional[str] = None,
        date_stop: Optional[str] = None,
    ) -> List[MetricSample]:
        if not entity_ids:
            return []
        query = select(MetricSample).where(
            MetricSample.entity_type == entity_type,
            MetricSample.entity_id.in_(entity_ids),  # type: ignore
        )
        if date_start:
            query = query.where(MetricSample.date >= date_start)
        if date_stop:
            query = query.where(MetricSample.date <= date_stop)
        return list(
            self.session.exec(
                query.order_by(MetricSample.date, MetricSample.entity_id)
            ).all()
        )

    # ── Append-only logs ──

    def record_sync_run(
        self,
        account_id: int,
        mode: str,
        outcome: str,
        records_touched: int,
        duration_ms: int,
        error_message: Optional[str] = None,
    ) -> SyncRun:
        run = SyncRun(
            account_id=account_id,
            mode=mode,
            outcome=outcome,
            records_touched=records_touched,
            duration_ms=duration_ms,
            error_message=error_message,
        )
        try:
            self.session.add(run)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(
                "Failed to record sync run", {"account_id": account_id}
            ) from e
        return run

    def recent_sync_runs(self, account_id: int, limit: int = 5) -> List[SyncRun]:
        return list(
            self.session.exec(
                select(SyncRun)
                .where(SyncRun.account_id == account_id)
                .order_by(SyncRun.created_at.desc(), SyncRun.id.desc())  # type: ignore
                .limit(limit)
            ).all()
        )

    def append_insight(
        self,
        type: str,
        content: str,
        confidence: float,
        actionable: bool,
        fingerprint: str,
        metrics_snapshot: Dict[str, Any],
    ) -> Insight:
        insight = Insight(
            type=type,
            content=content,
            confidence=confidence,
            actionable=actionable,
            fingerprint=fingerprint,
            metrics_snapshot=json.dumps(metrics_snapshot, default=str),
        )
        try:
            self.session.add(insight)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError("Failed to append insight") from e
        return insight

    def insight_history(
        self, limit: int = 10, type: Optional[str] = None
    ) -> List[Insight]:
        query = select(Insight)
        if type:
            query = query.where(Insight.type == type)
        return list(
            self.session.exec(
                query.order_by(Insight.created_at.desc(), Insight.id.desc())  # type: ignore
                .limit(limit)
            ).all()
        )
