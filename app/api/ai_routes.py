"""Tracionar — AI Insight Routes."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from app.api.dependencies import get_gateway
from app.api.errors import to_http
from app.core.errors import TracionarError
from app.core.logging import get_logger
from app.models.analytics_models import InsightPayload
from app.services import insight_service
from app.storage.gateway import PersistenceGateway

logger = get_logger("api.ai")

router = APIRouter(prefix="/insights", tags=["AI"])


# ── Request / Response Models ──


class InsightsRequest(BaseModel):
    """Request body for POST /insights/generate."""

    metrics: Dict[str, Any]
    context: Dict[str, Any] = Field(default_factory=dict)
    provider: str = "auto"

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "metrics": {"total_spend": 1500.0, "total_conversions": 30, "avg_cpa": 50.0},
                    "context": {"period": "7d", "campaign_count": 4},
                }
            ]
        }
    }


class InsightsResponse(BaseModel):
    status: str = "success"
    insights: InsightPayload


class CampaignAnalysisRequest(BaseModel):
    """Request body for POST /insights/analyze-campaign."""

    campaign_data: Dict[str, Any]
    provider: str = "auto"


# ── Endpoints ──


@router.post("/generate", response_model=InsightsResponse)
async def generate_insights(
    request: InsightsRequest,
    gateway: PersistenceGateway = Depends(get_gateway),
):
    """Narrative insights for a KPI set. Identical input within an hour is served from cache."""
    try:
        payload = await insight_service.generate_insights(
            gateway, request.metrics, request.context, request.provider
        )
    except TracionarError as e:
        logger.error(f"Insight generation failed: {e.message}")
        raise to_http(e) from e
    return InsightsResponse(insights=payload)


@router.post("/analyze-campaign")
async def analyze_campaign(request: CampaignAnalysisRequest):
    try:
        analysis = await insight_service.analyze_campaign(
            request.campaign_data, request.provider
        )
    except TracionarError as e:
        logger.error(f"Campaign analysis failed: {e.message}")
        raise to_http(e) from e
    return {"status": "success", "analysis": analysis}


@router.get("/history")
async def insight_history(
    limit: int = Query(10, ge=1, le=100),
    type: Optional[str] = None,
    gateway: PersistenceGateway = Depends(get_gateway),
):
    try:
        insights = insight_service.get_insight_history(gateway, limit, type)
    except TracionarError as e:
        raise to_http(e) from e
    return {
        "insights": [
            {
                "id": i.id,
                "type": i.type,
                "content": i.content,
                "confidence": i.confidence,
                "actionable": i.actionable,
                "created_at": i.created_at,
            }
            for i in insights
        ],
        "total": len(insights),
    }
