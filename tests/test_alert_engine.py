"""Alert rules: thresholds, ordering and unset targets."""

from datetime import datetime, timezone

from app.analyzer.alert_engine import (
    RECOMMENDATIONS,
    evaluate,
    evaluate_campaign,
    worst_severity,
)
from app.models.analytics_models import AlertCategory, CampaignPerformance, Severity

from conftest import first

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def perf(**fields) -> CampaignPerformance:
    base = {"campaign_id": 1, "name": "Promo", "cpa": 40.0, "roas": 3.0, "ctr": 2.0}
    base.update(fields)
    return CampaignPerformance(**base)


def categories(alerts):
    return [a.category for a in alerts]


def test_healthy_campaign_raises_nothing():
    assert evaluate([perf(desired_cpa=50.0)], first, NOW) == []


def test_cpa_overrun_is_high_severity_with_deterministic_recommendation():
    alerts = evaluate([perf(desired_cpa=50.0, cpa=75.0)], first, NOW)
    assert len(alerts) == 1
    alert = alerts[0]
    assert alert.category == AlertCategory.CPA_OVERRUN
    assert alert.severity == Severity.HIGH
    assert alert.type == "warning"
    assert alert.recommendation == RECOMMENDATIONS[AlertCategory.CPA_OVERRUN][0]
    assert alert.created_at == NOW


def test_cpa_exactly_at_twenty_percent_over_is_not_an_overrun():
    assert evaluate([perf(desired_cpa=50.0, cpa=60.0)], first, NOW) == []


def test_unset_or_zero_target_never_compares():
    for target in (None, 0.0):
        alerts = evaluate([perf(desired_cpa=target, cpa=500.0, roas=9.0)], first, NOW)
        assert alerts == []


def test_roas_floor_and_low_ctr():
    alerts = evaluate([perf(roas=1.5, ctr=0.4)], first, NOW)
    assert categories(alerts) == [
        AlertCategory.ROAS_FLOOR_BREACH,
        AlertCategory.LOW_ENGAGEMENT,
    ]
    assert [a.severity for a in alerts] == [Severity.CRITICAL, Severity.MEDIUM]


def test_scale_up_candidate():
    alerts = evaluate_campaign(perf(desired_cpa=50.0, cpa=30.0, roas=6.0), first, NOW)
    assert categories(alerts) == [AlertCategory.SCALE_UP_CANDIDATE]
    assert alerts[0].severity == Severity.LOW
    assert alerts[0].type == "success"


def test_output_follows_campaign_then_rule_order():
    campaigns = [
        perf(campaign_id=1, roas=1.0, ctr=0.5, desired_cpa=10.0, cpa=20.0),
        perf(campaign_id=2, roas=1.9),
    ]
    alerts = evaluate(campaigns, first, NOW)
    assert [(a.campaign_id, a.category) for a in alerts] == [
        (1, AlertCategory.CPA_OVERRUN),
        (1, AlertCategory.ROAS_FLOOR_BREACH),
        (1, AlertCategory.LOW_ENGAGEMENT),
        (2, AlertCategory.ROAS_FLOOR_BREACH),
    ]


def test_chooser_receives_the_category_options():
    seen = []

    def choose(options):
        seen.append(list(options))
        return options[-1]

    alerts = evaluate([perf(roas=1.0)], choose, NOW)
    assert seen == [RECOMMENDATIONS[AlertCategory.ROAS_FLOOR_BREACH]]
    assert alerts[0].recommendation == RECOMMENDATIONS[AlertCategory.ROAS_FLOOR_BREACH][-1]


def test_worst_severity():
    alerts = evaluate([perf(roas=1.0, ctr=0.1)], first, NOW)
    assert worst_severity(alerts) == Severity.CRITICAL
    assert worst_severity([]) is None
