"""Tracionar — KPI Engine.

Rolls metric samples up into a KPISet. Volumes and money are summed; ratio
metrics (CPA, ROAS, CTR, CPC, CPM) are weighted averages over a fixed weight
field from the metric registry, never arithmetic means. The same function
serves cross-account dashboards and single-campaign views; only the input
slice differs.
"""

import math
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from app.core.errors import ValidationError
from app.core.logging import get_logger
from app.core.metric_registry import NON_NEGATIVE_FIELDS, WEIGHTED_KPIS
from app.models.analytics_models import KPISet

logger = get_logger("analyzer.kpi")


def _read(sample: Any, field: str) -> float:
    """Numeric field of a sample row or mapping; missing counts as zero."""
    if isinstance(sample, Mapping):
        value = sample.get(field, 0)
    else:
        value = getattr(sample, field, 0)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(
            f"Metric '{field}' must be numeric, got {type(value).__name__}",
            {"field": field},
        )
    if math.isnan(value) or math.isinf(value):
        raise ValidationError(f"Metric '{field}' is not finite", {"field": field})
    if value < 0 and field in NON_NEGATIVE_FIELDS:
        raise ValidationError(f"Metric '{field}' cannot be negative", {"field": field})
    return float(value)


def weighted_average(
    rows: Sequence[Dict[str, float]], field: str, weight_field: str
) -> float:
    """sum(field * weight) / sum(weight); zero when the total weight is zero."""
    total_weight = sum(r[weight_field] for r in rows)
    if total_weight == 0:
        return 0.0
    return sum(r[field] * r[weight_field] for r in rows) / total_weight


def aggregate(samples: Iterable[Any]) -> KPISet:
    """Aggregate any slice of metric samples into a KPISet."""
    rows = [{f: _read(s, f) for f in NON_NEGATIVE_FIELDS} for s in samples]
    if not rows:
        return KPISet()

    ratios = {
        kpi: weighted_average(rows, metric, weight)
        for kpi, (metric, weight) in WEIGHTED_KPIS.items()
    }
    return KPISet(
        total_spend=sum(r["spend"] for r in rows),
        total_impressions=int(sum(r["impressions"] for r in rows)),
        total_clicks=int(sum(r["clicks"] for r in rows)),
        total_conversions=int(sum(r["conversions"] for r in rows)),
        total_reach=int(sum(r["reach"] for r in rows)),
        total_revenue=sum(r["revenue"] for r in rows),
        sample_count=len(rows),
        **ratios,
    )


def aggregate_by_entity(samples: Iterable[Any]) -> Dict[int, KPISet]:
    """Aggregate samples separately per entity_id, keeping first-seen order."""
    groups: Dict[int, List[Any]] = defaultdict(list)
    for s in samples:
        entity_id = s["entity_id"] if isinstance(s, Mapping) else s.entity_id
        groups[entity_id].append(s)
    result = {entity_id: aggregate(group) for entity_id, group in groups.items()}
    logger.debug(f"Aggregated KPIs for {len(result)} entities")
    return result


def aggregate_by_date(samples: Iterable[Any]) -> Dict[str, KPISet]:
    """Aggregate samples per calendar day, in ascending date order."""
    groups: Dict[str, List[Any]] = defaultdict(list)
    for s in samples:
        date = s["date"] if isinstance(s, Mapping) else s.date
        groups[date].append(s)
    return {date: aggregate(groups[date]) for date in sorted(groups)}
