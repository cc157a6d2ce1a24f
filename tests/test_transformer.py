"""Meta row → storage field mapping."""

import json

import pytest

from app.connectors.meta.transformer import (
    ad_fields,
    adset_fields,
    campaign_fields,
    classify_targeting,
    insight_fields,
)


@pytest.mark.parametrize(
    "targeting, expected",
    [
        (None, "unknown"),
        ({}, "unknown"),
        ({"custom_audiences": [{"id": "1"}], "interests": [{"id": "2"}]}, "custom_audience"),
        ({"lookalike_audiences": [{"id": "1"}], "behaviors": [{"id": "3"}]}, "lookalike"),
        ({"interests": [{"id": "2"}], "behaviors": [{"id": "3"}]}, "interests"),
        ({"behaviors": [{"id": "3"}]}, "behaviors"),
        ({"age_min": 18, "geo_locations": {"countries": ["BR"]}}, "demographic"),
    ],
)
def test_targeting_classification_priority(targeting, expected):
    assert classify_targeting(targeting) == expected


def test_entity_mappers_emit_only_present_fields():
    assert campaign_fields({"id": "1", "name": "Promo"}) == {"name": "Promo"}
    assert adset_fields({"id": "2", "status": "ACTIVE"}) == {"status": "ACTIVE"}
    assert "targeting_type" in adset_fields({"id": "2", "targeting": {"interests": [1]}})


def test_ad_creative_is_stored_as_canonical_json():
    fields = ad_fields({"id": "3", "creative": {"title": "Hi", "body": "Buy"}})
    assert json.loads(fields["creative"]) == {"title": "Hi", "body": "Buy"}
    assert fields["creative"] == json.dumps({"body": "Buy", "title": "Hi"})


def test_insight_fields_derive_cpa_and_roas():
    row = {
        "impressions": "10000",
        "reach": "8000",
        "clicks": "250",
        "spend": "200.00",
        "ctr": "2.5",
        "cpc": "0.8",
        "cpm": "20",
        "frequency": "1.25",
        "actions": [
            {"action_type": "link_click", "value": "250"},
            {"action_type": "purchase", "value": "8"},
            {"action_type": "offsite_conversion.fb_pixel_purchase", "value": "8"},
        ],
        "action_values": [{"action_type": "purchase", "value": "900.0"}],
        "date_start": "2024-05-01",
    }
    fields = insight_fields(row)
    assert fields["impressions"] == 10000
    assert fields["conversions"] == 8
    assert fields["revenue"] == pytest.approx(900.0)
    assert fields["cpa"] == pytest.approx(25.0)
    assert fields["roas"] == pytest.approx(4.5)
    assert fields["frequency"] == pytest.approx(1.25)


def test_insight_fields_zero_denominators():
    fields = insight_fields({"spend": "0", "impressions": "10"})
    assert fields["conversions"] == 0
    assert fields["cpa"] == 0.0
    assert fields["roas"] == 0.0


def test_lead_counts_as_conversion_when_no_purchase():
    fields = insight_fields(
        {"spend": "50", "actions": [{"action_type": "lead", "value": "5"}]}
    )
    assert fields["conversions"] == 5
    assert fields["cpa"] == pytest.approx(10.0)
