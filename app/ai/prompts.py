"""Tracionar — Narrative Prompts.

Builds the prompts sent to whichever provider is selected. Numbers are
formatted here, once, so every provider sees the same text for the same
input.
"""

from typing import Any, Mapping, Optional

from app.ai.base_provider import Prompt

# ── Personas ──

INSIGHTS_SYSTEM = (
    "You are a Meta Ads specialist with more than ten years of experience. "
    "Analyze the metrics you are given and provide practical, actionable "
    "insights. Use only the numbers present in the data."
)

CAMPAIGN_SYSTEM = (
    "You are a Meta Ads consultant. Your analysis must be direct, practical "
    "and focused on results."
)


def _money(value: Optional[Any]) -> str:
    if value is None:
        return "N/A"
    return f"{float(value):.2f}"


def _ratio(value: Optional[Any], suffix: str = "") -> str:
    if value is None:
        return "N/A"
    return f"{float(value):.2f}{suffix}"


def _count(value: Optional[Any]) -> str:
    if value is None:
        return "N/A"
    return f"{int(value):,}"


def build_insights_prompt(
    metrics: Mapping[str, Any], context: Optional[Mapping[str, Any]] = None
) -> Prompt:
    """Prompt for the account-level executive read of a KPI set."""
    context = context or {}
    user = f"""Analyze these Meta Ads metrics and provide strategic insights:

**Overall metrics:**
- Total spend: {_money(metrics.get("total_spend"))}
- Impressions: {_count(metrics.get("total_impressions"))}
- Clicks: {_count(metrics.get("total_clicks"))}
- Conversions: {_count(metrics.get("total_conversions"))}
- Average CPA: {_money(metrics.get("avg_cpa"))}
- Average ROAS: {_ratio(metrics.get("avg_roas"), "x")}
- Average CTR: {_ratio(metrics.get("avg_ctr"), "%")}
- Average CPC: {_money(metrics.get("avg_cpc"))}

**Context:**
- Period analyzed: {context.get("period", "7 days")}
- Number of campaigns: {context.get("campaign_count", "N/A")}

Provide:
1. **Performance summary**: overall assessment of the results
2. **Main opportunities**: the three most important improvements
3. **Recommended actions**: specific optimization steps
4. **Benchmark**: how these metrics compare with market standards

Be concise, practical and focused on actions that drive results."""
    return Prompt(system=INSIGHTS_SYSTEM, user=user, max_tokens=1000, temperature=0.7)


def build_campaign_prompt(campaign: Mapping[str, Any]) -> Prompt:
    """Prompt for a single-campaign diagnosis."""
    desired = campaign.get("desired_cpa")
    user = f"""Analyze this Meta Ads campaign and provide specific recommendations:

**Campaign data:**
- Name: {campaign.get("name", "N/A")}
- Objective: {campaign.get("objective", "N/A")}
- Current CPA: {_money(campaign.get("cpa"))}
- Desired CPA: {_money(desired) if desired else "Not set"}
- ROAS: {_ratio(campaign.get("roas"), "x")}
- CTR: {_ratio(campaign.get("ctr"), "%")}
- CPC: {_money(campaign.get("cpc"))}
- Spend: {_money(campaign.get("spend"))}
- Conversions: {_count(campaign.get("conversions"))}

Structure your analysis as:
1. **Diagnosis**: the main problems
2. **Opportunities**: strengths worth exploiting
3. **Recommendations**: 3-5 specific, practical actions
4. **Priority**: which action to implement first
5. **Expectation**: expected impact of the improvements

Be specific and practical. Focus on actions that can be implemented immediately."""
    return Prompt(system=CAMPAIGN_SYSTEM, user=user, max_tokens=800, temperature=0.6)

