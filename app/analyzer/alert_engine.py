"""Tracionar — Alert Engine.

Flags at-risk and scale-ready campaigns from their aggregated KPIs:
- CPA more than 20% above the desired CPA → high
- ROAS below 2.0x → critical
- CTR below 1% → medium
- ROAS above 5.0x with CPA 20% under target → low (scale up)

Rules are independent, so one campaign can raise several alerts. Output
follows input campaign order, then the rule order above.
"""

import random
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from app.models.analytics_models import (
    Alert,
    AlertCategory,
    CampaignPerformance,
    Severity,
)
from app.core.logging import get_logger

logger = get_logger("analyzer.alert")

# Thresholds
CPA_OVERRUN_FACTOR = 1.2
ROAS_FLOOR = 2.0
CTR_FLOOR = 1.0  # %
SCALE_UP_ROAS = 5.0
SCALE_UP_CPA_FACTOR = 0.8

RECOMMENDATIONS: Dict[AlertCategory, List[str]] = {
    AlertCategory.CPA_OVERRUN: [
        "Review audience targeting",
        "Test new creatives",
        "Adjust automatic bidding",
        "Exclude low-performing audiences",
    ],
    AlertCategory.ROAS_FLOOR_BREACH: [
        "Verify the conversion pixel",
        "Optimize the landing page",
        "Review the sales funnel",
        "Adjust the target audience",
    ],
    AlertCategory.LOW_ENGAGEMENT: [
        "Refresh visual creatives",
        "Test new ad copy",
        "Review the target audience",
        "Add a stronger call-to-action",
    ],
    AlertCategory.SCALE_UP_CANDIDATE: [
        "Consider increasing the budget to scale this campaign",
    ],
}

SEVERITY_RANK = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
}

Chooser = Callable[[Sequence[str]], str]


def _has_target(desired_cpa: Optional[float]) -> bool:
    # Unset (or zero) means "no target", never a threshold of 0
    return desired_cpa is not None and desired_cpa > 0


def _alert(
    campaign: CampaignPerformance,
    category: AlertCategory,
    severity: Severity,
    type: str,
    title: str,
    message: str,
    choose: Chooser,
    now: datetime,
) -> Alert:
    return Alert(
        type=type,
        severity=severity,
        category=category,
        campaign_id=campaign.campaign_id,
        campaign_name=campaign.name,
        title=title,
        message=message,
        recommendation=choose(RECOMMENDATIONS[category]),
        created_at=now,
    )


def evaluate_campaign(
    campaign: CampaignPerformance,
    choose: Chooser = random.choice,
    now: Optional[datetime] = None,
) -> List[Alert]:
    """Run every rule against one campaign, in rule-table order."""
    now = now or datetime.now(timezone.utc)
    alerts: List[Alert] = []
    target = campaign.desired_cpa if _has_target(campaign.desired_cpa) else None

    if target is not None and campaign.cpa > target * CPA_OVERRUN_FACTOR:
        alerts.append(
            _alert(
                campaign,
                AlertCategory.CPA_OVERRUN,
                Severity.HIGH,
                "warning",
                "CPA above target",
                f"Current CPA ({campaign.cpa:.2f}) is more than 20% above the target ({target:.2f})",
                choose,
                now,
            )
        )

    if campaign.roas < ROAS_FLOOR:
        alerts.append(
            _alert(
                campaign,
                AlertCategory.ROAS_FLOOR_BREACH,
                Severity.CRITICAL,
                "error",
                "Critical ROAS",
                f"ROAS of {campaign.roas:.2f}x is below the recommended minimum ({ROAS_FLOOR:.1f}x)",
                choose,
                now,
            )
        )

    if campaign.ctr < CTR_FLOOR:
        alerts.append(
            _alert(
                campaign,
                AlertCategory.LOW_ENGAGEMENT,
                Severity.MEDIUM,
                "info",
                "Low CTR",
                f"CTR of {campaign.ctr:.2f}% can be improved",
                choose,
                now,
            )
        )

    if (
        campaign.roas > SCALE_UP_ROAS
        and target is not None
        and campaign.cpa < target * SCALE_UP_CPA_FACTOR
    ):
        alerts.append(
            _alert(
                campaign,
                AlertCategory.SCALE_UP_CANDIDATE,
                Severity.LOW,
                "success",
                "Excellent performance",
                f"ROAS of {campaign.roas:.2f}x with CPA below target",
                choose,
                now,
            )
        )

    return alerts


def evaluate(
    campaigns: Sequence[CampaignPerformance],
    choose: Chooser = random.choice,
    now: Optional[datetime] = None,
) -> List[Alert]:
    """Evaluate all campaigns; order-stable."""
    now = now or datetime.now(timezone.utc)
    alerts: List[Alert] = []
    for campaign in campaigns:
        alerts.extend(evaluate_campaign(campaign, choose, now))
    logger.info(f"Raised {len(alerts)} alerts across {len(campaigns)} campaigns")
    return alerts


def worst_severity(alerts: Sequence[Alert]) -> Optional[Severity]:
    if not alerts:
        return None
    return min((a.severity for a in alerts), key=SEVERITY_RANK.__getitem__)
