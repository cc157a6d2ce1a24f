"""Tracionar — Analytics Service.

Read side of the engine. Loads the metric samples of a period, rolls them up
with the KPI engine and runs the alert rules over the per-campaign rollups:
  period → samples → KPIs / per-campaign performance → alerts → dashboard
"""

import math
import random
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from app.analyzer.alert_engine import Chooser, SEVERITY_RANK, evaluate, worst_severity
from app.analyzer.kpi_engine import aggregate, aggregate_by_date, aggregate_by_entity
from app.core.errors import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.analytics_models import (
    AccountSummary,
    Alert,
    CampaignPerformance,
    CampaignRoas,
    ChartData,
    CriticalCampaign,
    DailyPoint,
    Dashboard,
    DateRange,
    Severity,
)
from app.models.entities import AdAccount, Campaign, MetricSample
from app.storage.gateway import PersistenceGateway

logger = get_logger("services.analytics")

PERIOD_DAYS = {"7d": 7, "30d": 30, "90d": 90}
CRITICAL_SEVERITIES = {Severity.CRITICAL, Severity.HIGH}


# ── Period ──


def _parse_date(value: str, name: str) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be an ISO date (YYYY-MM-DD)") from e


def resolve_period(
    period: str = "7d",
    date_start: Optional[str] = None,
    date_end: Optional[str] = None,
    today: Optional[date] = None,
) -> DateRange:
    """Turn a period name (or custom bounds) into an inclusive date range."""
    if period == "custom":
        if not date_start or not date_end:
            raise ValidationError("A custom period needs date_start and date_end")
        start = _parse_date(date_start, "date_start")
        end = _parse_date(date_end, "date_end")
        if start > end:
            raise ValidationError("date_start must not be after date_end")
        return DateRange(start=start.isoformat(), end=end.isoformat())

    if period not in PERIOD_DAYS:
        raise ValidationError(
            f"Invalid period: {period!r}. Use 7d, 30d, 90d or custom."
        )
    today = today or datetime.now(timezone.utc).date()
    start = today - timedelta(days=PERIOD_DAYS[period])
    return DateRange(start=start.isoformat(), end=today.isoformat())


# ── Scope loading ──


@dataclass
class _Scope:
    accounts: List[AdAccount]
    campaigns: List[Campaign]
    samples: List[MetricSample]
    performance: List[CampaignPerformance] = field(default_factory=list)


def _load_scope(
    gateway: PersistenceGateway, account_id: Optional[int], window: DateRange
) -> _Scope:
    accounts = gateway.active_accounts(account_id)
    if account_id is not None and not accounts:
        raise NotFoundError(f"Account {account_id} not found", {"account_id": account_id})

    campaigns = gateway.campaigns_for_accounts([a.id for a in accounts])
    samples = gateway.samples_for_entities(
        "campaign", [c.id for c in campaigns], window.start, window.end
    )
    scope = _Scope(accounts=accounts, campaigns=campaigns, samples=samples)
    scope.performance = campaign_performance(campaigns, samples)
    return scope


def campaign_performance(
    campaigns: List[Campaign], samples: List[MetricSample]
) -> List[CampaignPerformance]:
    """Per-campaign rollups; campaigns with no samples in the window are left out."""
    rollups = aggregate_by_entity(samples)
    performance = []
    for c in campaigns:
        kpis = rollups.get(c.id)
        if kpis is None:
            continue
        performance.append(
            CampaignPerformance(
                campaign_id=c.id,
                name=c.name,
                objective=c.objective,
                status=c.status,
                desired_cpa=c.desired_cpa,
                spend=kpis.total_spend,
                conversions=kpis.total_conversions,
                cpa=kpis.avg_cpa,
                roas=kpis.avg_roas,
                ctr=kpis.avg_ctr,
                cpc=kpis.avg_cpc,
            )
        )
    return performance


def _critical(
    performance: List[CampaignPerformance], alerts: List[Alert]
) -> List[CriticalCampaign]:
    by_campaign: Dict[int, List[Alert]] = {}
    for alert in alerts:
        by_campaign.setdefault(alert.campaign_id, []).append(alert)

    critical = []
    for campaign in performance:
        campaign_alerts = by_campaign.get(campaign.campaign_id, [])
        worst = worst_severity(campaign_alerts)
        if worst in CRITICAL_SEVERITIES:
            critical.append(
                CriticalCampaign(campaign=campaign, worst_severity=worst, alerts=campaign_alerts)
            )
    # Stable: ties keep campaign order
    critical.sort(key=lambda c: SEVERITY_RANK[c.worst_severity])
    return critical


def _chart_data(scope: _Scope) -> ChartData:
    daily = aggregate_by_date(scope.samples)
    return ChartData(
        cpa_evolution=[
            DailyPoint(date=day, spend=k.total_spend, cpa=k.avg_cpa, roas=k.avg_roas)
            for day, k in daily.items()
        ],
        roas_by_campaign=sorted(
            (
                CampaignRoas(
                    campaign_id=p.campaign_id, name=p.name, spend=p.spend, roas=p.roas
                )
                for p in scope.performance
            ),
            key=lambda r: r.roas,
            reverse=True,
        ),
    )


# ── Caller-facing operations ──


def get_dashboard(
    gateway: PersistenceGateway,
    account_id: Optional[int] = None,
    period: str = "7d",
    date_start: Optional[str] = None,
    date_end: Optional[str] = None,
    choose: Chooser = random.choice,
    today: Optional[date] = None,
) -> Dashboard:
    window = resolve_period(period, date_start, date_end, today)
    scope = _load_scope(gateway, account_id, window)
    alerts = evaluate(scope.performance, choose)
    counts = gateway.campaign_counts([a.id for a in scope.accounts])

    logger.info(
        f"Dashboard built over {len(scope.samples)} samples "
        f"({window.start} → {window.end})",
        extra={"account_id": account_id},
    )
    return Dashboard(
        kpis=aggregate(scope.samples),
        chart_data=_chart_data(scope),
        critical_campaigns=_critical(scope.performance, alerts),
        accounts=[
            AccountSummary(
                id=a.id,
                external_id=a.external_id,
                name=a.name,
                campaign_count=counts.get(a.id, 0),
                last_sync_at=a.last_sync_at,
            )
            for a in scope.accounts
        ],
        period=period,
        date_range=window,
    )


def get_critical_campaigns(
    gateway: PersistenceGateway,
    account_id: Optional[int] = None,
    period: str = "7d",
    choose: Chooser = random.choice,
    today: Optional[date] = None,
) -> List[CriticalCampaign]:
    window = resolve_period(period, today=today)
    scope = _load_scope(gateway, account_id, window)
    return _critical(scope.performance, evaluate(scope.performance, choose))


def get_alerts(
    gateway: PersistenceGateway,
    account_id: Optional[int] = None,
    period: str = "7d",
    choose: Chooser = random.choice,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    window = resolve_period(period, today=today)
    scope = _load_scope(gateway, account_id, window)
    alerts = evaluate(scope.performance, choose)
    return {
        "alerts": alerts,
        "total_alerts": len(alerts),
        "critical_alerts": sum(1 for a in alerts if a.severity == Severity.CRITICAL),
        "generated_at": datetime.now(timezone.utc),
    }


def set_desired_cpa(
    gateway: PersistenceGateway, campaign_id: int, value: Optional[float]
) -> Campaign:
    """Set or clear (``None``) a campaign's CPA target."""
    if value is not None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError("desired_cpa must be a number")
        if not math.isfinite(value) or value <= 0:
            raise ValidationError("desired_cpa must be a positive number")
        value = float(value)

    campaign = gateway.get_campaign(campaign_id)
    if campaign is None:
        raise NotFoundError(f"Campaign {campaign_id} not found", {"campaign_id": campaign_id})

    gateway.set_desired_cpa(campaign, value)
    logger.info(f"Desired CPA of campaign {campaign.external_id} set to {value}")
    return campaign
