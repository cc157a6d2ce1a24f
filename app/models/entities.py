"""Tracionar — Persistent Entity Models.

Campaign hierarchy mirrored from Meta, keyed by Meta's own identifiers.
Each natural key carries a unique constraint so repeated or overlapping sync
runs converge on one row instead of duplicating.
"""

from datetime import datetime, timezone
from typing import Optional
from sqlmodel import SQLModel, Field, UniqueConstraint


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AdAccount(SQLModel, table=True):
    """A connected Meta ad account. Never physically deleted."""

    __tablename__ = "ad_accounts"

    id: Optional[int] = Field(default=None, primary_key=True)
    external_id: str = Field(
        index=True, unique=True, description="Meta account id, without act_ prefix"
    )
    name: str = Field(default="")
    owner_id: str = Field(default="", index=True, description="Connecting user")
    currency: str = Field(default="")
    encrypted_token: str = Field(description="Vault ciphertext, never plaintext")
    token_expiry: Optional[datetime] = Field(default=None)
    is_active: bool = Field(default=True, index=True)
    last_sync_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Campaign(SQLModel, table=True):
    __tablename__ = "campaigns"
    __table_args__ = (
        UniqueConstraint("account_id", "external_id", name="uq_campaign_external"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    account_id: int = Field(foreign_key="ad_accounts.id", index=True)
    external_id: str = Field(index=True)
    name: str = Field(default="")
    objective: str = Field(default="")
    status: str = Field(default="")
    desired_cpa: Optional[float] = Field(
        default=None, description="User target; None means no target"
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class AdSet(SQLModel, table=True):
    __tablename__ = "ad_sets"
    __table_args__ = (
        UniqueConstraint("campaign_id", "external_id", name="uq_adset_external"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    campaign_id: int = Field(foreign_key="campaigns.id", index=True)
    external_id: str = Field(index=True)
    name: str = Field(default="")
    status: str = Field(default="")
    targeting_type: str = Field(default="unknown")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Ad(SQLModel, table=True):
    __tablename__ = "ads"
    __table_args__ = (
        UniqueConstraint("ad_set_id", "external_id", name="uq_ad_external"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    ad_set_id: int = Field(foreign_key="ad_sets.id", index=True)
    external_id: str = Field(index=True)
    name: str = Field(default="")
    status: str = Field(default="")
    creative: str = Field(default="{}", description="Opaque creative JSON")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class MetricSample(SQLModel, table=True):
    """One day of performance for one entity.

    (entity_type, entity_id, date) is the merge key: a re-synced day
    overwrites the stored row.
    """

    __tablename__ = "metric_samples"
    __table_args__ = (
        UniqueConstraint(
            "entity_type", "entity_id", "date", name="uq_metric_sample_day"
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    entity_type: str = Field(index=True, description="campaign | adset | ad")
    entity_id: int = Field(index=True, description="Stored entity id")
    date: str = Field(index=True, description="YYYY-MM-DD")
    impressions: int = Field(default=0)
    reach: int = Field(default=0)
    clicks: int = Field(default=0)
    spend: float = Field(default=0.0)
    conversions: int = Field(default=0)
    revenue: float = Field(default=0.0)
    ctr: float = Field(default=0.0)
    cpc: float = Field(default=0.0)
    cpm: float = Field(default=0.0)
    cpa: float = Field(default=0.0)
    roas: float = Field(default=0.0)
    frequency: float = Field(default=0.0)
    updated_at: datetime = Field(default_factory=utcnow)


class SyncRun(SQLModel, table=True):
    """Append-only log of sync attempts."""

    __tablename__ = "sync_runs"

    id: Optional[int] = Field(default=None, primary_key=True)
    account_id: int = Field(index=True)
    mode: str = Field(description="full | incremental")
    outcome: str = Field(description="success | error")
    records_touched: int = Field(default=0)
    error_message: Optional[str] = Field(default=None)
    duration_ms: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow, index=True)


class Insight(SQLModel, table=True):
    """Append-only history of generated narratives."""

    __tablename__ = "insights"

    id: Optional[int] = Field(default=None, primary_key=True)
    type: str = Field(index=True, description="general_insights | campaign_analysis")
    content: str
    confidence: float = Field(default=0.0)
    actionable: bool = Field(default=True)
    fingerprint: str = Field(default="", index=True)
    metrics_snapshot: str = Field(default="{}", description="Input metrics as JSON")
    created_at: datetime = Field(default_factory=utcnow, index=True)
