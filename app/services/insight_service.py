"""Tracionar — Insight Service.

Narrative generation on top of the provider layer:
- generate_insights: cached per fingerprint; history row appended on every
  fresh generation, never on a cache hit
- analyze_campaign: uncached single-campaign diagnosis
- get_insight_history: newest-first read of the append-only log
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import pydantic

from app.ai.base_provider import AIProvider
from app.ai.insight_cache import InsightCache, fingerprint, insight_cache
from app.ai.prompts import build_campaign_prompt, build_insights_prompt
from app.ai.providers import select_provider
from app.core.errors import PersistenceError, ValidationError
from app.core.logging import get_logger
from app.models.analytics_models import CampaignPerformance, InsightPayload, KPISet
from app.models.entities import Insight, utcnow
from app.storage.gateway import PersistenceGateway

logger = get_logger("services.insight")

ProviderArg = Union[str, AIProvider]


def _resolve(provider: ProviderArg) -> Tuple[str, AIProvider]:
    if isinstance(provider, AIProvider):
        return provider.name, provider
    return select_provider(provider)


def _invalid(message: str, e: pydantic.ValidationError) -> ValidationError:
    return ValidationError(
        message, {"errors": e.errors(include_url=False, include_context=False)}
    )


def _check_metrics(metrics: Any) -> Dict[str, Any]:
    if not isinstance(metrics, Mapping) or not metrics:
        raise ValidationError("metrics must be a non-empty object")
    try:
        KPISet.model_validate(metrics)
    except pydantic.ValidationError as e:
        raise _invalid("metrics contain invalid values", e) from e
    return dict(metrics)


async def generate_insights(
    gateway: PersistenceGateway,
    metrics: Mapping[str, Any],
    context: Optional[Mapping[str, Any]] = None,
    provider: ProviderArg = "auto",
    cache: InsightCache = insight_cache,
) -> InsightPayload:
    """Executive narrative for a KPI set, served from cache when fresh."""
    metrics = _check_metrics(metrics)
    context = dict(context or {})
    key = fingerprint("general_insights", metrics, context)

    async def _generate() -> InsightPayload:
        name, chosen = _resolve(provider)
        content = await chosen.generate(build_insights_prompt(metrics, context))
        payload = InsightPayload(content=content, generated_at=utcnow())
        logger.info(f"Insights generated by {name}", extra={"fingerprint": key})
        _append_history(gateway, payload, key, metrics)
        return payload

    return await cache.get_or_generate(key, _generate)


async def analyze_campaign(
    campaign_data: Mapping[str, Any],
    provider: ProviderArg = "auto",
) -> Dict[str, Any]:
    """Uncached diagnosis of one campaign."""
    if not isinstance(campaign_data, Mapping) or not campaign_data:
        raise ValidationError("campaign_data must be a non-empty object")
    try:
        campaign = CampaignPerformance.model_validate(campaign_data)
    except pydantic.ValidationError as e:
        raise _invalid("campaign_data contains invalid values", e) from e

    name, chosen = _resolve(provider)
    analysis = await chosen.generate(build_campaign_prompt(campaign.model_dump()))
    logger.info(f"Campaign {campaign.campaign_id} analyzed by {name}")
    return {
        "campaign_id": campaign.campaign_id,
        "analysis": analysis,
        "generated_at": utcnow(),
        "type": "campaign_analysis",
        "provider_used": name,
    }


def get_insight_history(
    gateway: PersistenceGateway, limit: int = 10, type: Optional[str] = None
) -> List[Insight]:
    if limit < 1:
        raise ValidationError("limit must be a positive integer")
    return gateway.insight_history(limit=limit, type=type)


def _append_history(
    gateway: PersistenceGateway,
    payload: InsightPayload,
    key: str,
    metrics: Dict[str, Any],
) -> None:
    # History is best-effort; the caller still gets the narrative
    try:
        gateway.append_insight(
            type=payload.type,
            content=payload.content,
            confidence=payload.confidence,
            actionable=payload.actionable,
            fingerprint=key,
            metrics_snapshot=metrics,
        )
    except PersistenceError as e:
        logger.error(f"Insight history not saved: {e.message}", extra={"fingerprint": key})
