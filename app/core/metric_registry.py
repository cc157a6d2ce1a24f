"""Tracionar — Metric Registry.

Defines the canonical set of metrics stored per MetricSample and how the
KPI engine rolls each one up. Additive metrics are summed; ratio metrics are
averaged weighted by a fixed companion field.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class MetricDefinition:
    """One sample metric; ``weight_field`` is set for weighted ratios only."""

    name: str
    weight_field: Optional[str] = None


# ─────────────────────────────────────────────
# SAMPLE METRICS: one value per entity per day
# ─────────────────────────────────────────────

SAMPLE_METRICS: Dict[str, MetricDefinition] = {
    m.name: m
    for m in (
        # Volume
        MetricDefinition("impressions"),
        MetricDefinition("reach"),
        MetricDefinition("clicks"),
        MetricDefinition("conversions"),
        # Money
        MetricDefinition("spend"),
        MetricDefinition("revenue"),
        # Rates reported by Meta
        MetricDefinition("ctr", weight_field="impressions"),
        MetricDefinition("cpc", weight_field="clicks"),
        MetricDefinition("cpm", weight_field="impressions"),
        # Derived at ingest
        MetricDefinition("cpa", weight_field="conversions"),
        MetricDefinition("roas", weight_field="spend"),
        # Average impressions per reached user
        MetricDefinition("frequency"),
    )
}

# KPISet field → (metric, weight field)
WEIGHTED_KPIS: Dict[str, Tuple[str, str]] = {
    f"avg_{m.name}": (m.name, m.weight_field)
    for m in SAMPLE_METRICS.values()
    if m.weight_field is not None
}

# Fields that can never be negative in a well-formed sample.
NON_NEGATIVE_FIELDS = tuple(SAMPLE_METRICS)
