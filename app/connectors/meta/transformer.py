"""Tracionar — Meta Raw → Storage Transformer.

Maps raw Graph API rows to the field dicts the persistence gateway merges.
Entity mappers only emit fields the source row actually carried, so a
partial upsert never nulls out data Meta did not send.
"""

import json
from typing import Any, Dict, Optional

from app.core.logging import get_logger

logger = get_logger("meta.transformer")

# First action type present wins; "purchase" outranks pixel duplicates
CONVERSION_ACTION_TYPES = (
    "purchase",
    "offsite_conversion.fb_pixel_purchase",
    "lead",
    "complete_registration",
)
REVENUE_ACTION_TYPES = ("purchase", "offsite_conversion.fb_pixel_purchase")

# Targeting classification, checked in priority order
TARGETING_RULES = (
    ("custom_audiences", "custom_audience"),
    ("lookalike_audiences", "lookalike"),
    ("interests", "interests"),
    ("behaviors", "behaviors"),
)


def _safe_float(value: Any) -> float:
    """Safely convert a value to float."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _safe_int(value: Any) -> int:
    return int(_safe_float(value))


def _pick(row: Dict[str, Any], *names: str) -> Dict[str, Any]:
    return {name: row[name] for name in names if name in row}


def _first_action_value(actions: Any, action_types: tuple) -> Optional[float]:
    by_type = {
        a.get("action_type"): a.get("value")
        for a in (actions or [])
        if isinstance(a, dict)
    }
    for action_type in action_types:
        if action_type in by_type:
            return _safe_float(by_type[action_type])
    return None


def classify_targeting(targeting: Optional[Dict[str, Any]]) -> str:
    """Derive the ad-set targeting classification."""
    if not targeting:
        return "unknown"
    for key, label in TARGETING_RULES:
        if targeting.get(key):
            return label
    return "demographic"


# ── Hierarchy ──


def campaign_fields(row: Dict[str, Any]) -> Dict[str, Any]:
    return _pick(row, "name", "objective", "status")


def adset_fields(row: Dict[str, Any]) -> Dict[str, Any]:
    fields = _pick(row, "name", "status")
    if "targeting" in row:
        fields["targeting_type"] = classify_targeting(row["targeting"])
    return fields


def ad_fields(row: Dict[str, Any]) -> Dict[str, Any]:
    fields = _pick(row, "name", "status")
    if "creative" in row:
        fields["creative"] = json.dumps(row["creative"] or {}, sort_keys=True)
    return fields


# ── Insights ──


def insight_fields(row: Dict[str, Any]) -> Dict[str, Any]:
    """Full MetricSample field set for one daily insight row.

    CPA and ROAS are derived here; both are zero when their denominator is.
    """
    spend = _safe_float(row.get("spend"))
    conversions = _safe_int(_first_action_value(row.get("actions"), CONVERSION_ACTION_TYPES))
    revenue = _first_action_value(row.get("action_values"), REVENUE_ACTION_TYPES) or 0.0

    return {
        "impressions": _safe_int(row.get("impressions")),
        "reach": _safe_int(row.get("reach")),
        "clicks": _safe_int(row.get("clicks")),
        "spend": spend,
        "conversions": conversions,
        "revenue": revenue,
        "ctr": _safe_float(row.get("ctr")),
        "cpc": _safe_float(row.get("cpc")),
        "cpm": _safe_float(row.get("cpm")),
        "cpa": spend / conversions if conversions > 0 else 0.0,
        "roas": revenue / spend if spend > 0 else 0.0,
        "frequency": _safe_float(row.get("frequency")),
    }
