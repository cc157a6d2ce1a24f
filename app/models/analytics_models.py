"""Tracionar — Analytics Output Models."""

from datetime import datetime
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel


class SyncMode(str, Enum):
    FULL = "full"
    INCREMENTAL = "incremental"


class SyncOutcome(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class SyncResult(BaseModel):
    """What a completed sync run reports back."""

    account_id: int
    mode: SyncMode
    records_touched: int = 0
    duration_ms: int = 0


class KPISet(BaseModel):
    """Rolled-up KPIs over any slice of metric samples."""

    total_spend: float = 0.0
    total_impressions: int = 0
    total_clicks: int = 0
    total_conversions: int = 0
    total_reach: int = 0
    total_revenue: float = 0.0
    avg_cpa: float = 0.0
    avg_roas: float = 0.0
    avg_ctr: float = 0.0
    avg_cpc: float = 0.0
    avg_cpm: float = 0.0
    sample_count: int = 0


class CampaignPerformance(BaseModel):
    """Per-campaign aggregate, the input of the alert evaluator."""

    campaign_id: int
    name: str = ""
    objective: str = ""
    status: str = ""
    desired_cpa: Optional[float] = None
    spend: float = 0.0
    conversions: int = 0
    cpa: float = 0.0
    roas: float = 0.0
    ctr: float = 0.0
    cpc: float = 0.0


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AlertCategory(str, Enum):
    CPA_OVERRUN = "cpa_overrun"
    ROAS_FLOOR_BREACH = "roas_floor_breach"
    LOW_ENGAGEMENT = "low_engagement"
    SCALE_UP_CANDIDATE = "scale_up_candidate"


class Alert(BaseModel):
    type: str  # "warning" | "error" | "info" | "success"
    severity: Severity
    category: AlertCategory
    campaign_id: int
    campaign_name: str = ""
    title: str
    message: str
    recommendation: str
    created_at: datetime


class CriticalCampaign(BaseModel):
    """A campaign that needs attention, with the alerts that flagged it."""

    campaign: CampaignPerformance
    worst_severity: Severity
    alerts: List[Alert] = []


class DailyPoint(BaseModel):
    date: str
    spend: float = 0.0
    cpa: float = 0.0
    roas: float = 0.0


class CampaignRoas(BaseModel):
    campaign_id: int
    name: str = ""
    spend: float = 0.0
    roas: float = 0.0


class ChartData(BaseModel):
    cpa_evolution: List[DailyPoint] = []
    roas_by_campaign: List[CampaignRoas] = []


class AccountSummary(BaseModel):
    id: int
    external_id: str
    name: str = ""
    campaign_count: int = 0
    last_sync_at: Optional[datetime] = None


class DateRange(BaseModel):
    start: str
    end: str


class Dashboard(BaseModel):
    kpis: KPISet
    chart_data: ChartData
    critical_campaigns: List[CriticalCampaign] = []
    accounts: List[AccountSummary] = []
    period: str
    date_range: DateRange


class InsightPayload(BaseModel):
    """A generated narrative as served to callers and kept in the cache."""

    content: str
    type: str = "general_insights"
    confidence: float = 0.85
    actionable: bool = True
    generated_at: datetime
