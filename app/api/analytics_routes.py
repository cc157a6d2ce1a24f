"""Tracionar — Analytics Routes."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.api.dependencies import get_gateway
from app.api.errors import to_http
from app.core.errors import TracionarError
from app.core.logging import get_logger
from app.models.analytics_models import CriticalCampaign, Dashboard
from app.services import analytics_service
from app.storage.gateway import PersistenceGateway

logger = get_logger("api.analytics")

router = APIRouter(prefix="/analytics", tags=["Analytics"])


class DesiredCpaRequest(BaseModel):
    """Request body for POST /analytics/campaigns/{id}/desired-cpa.

    ``null`` clears the target.
    """

    desired_cpa: Optional[float] = None


@router.get("/dashboard", response_model=Dashboard)
async def dashboard(
    account_id: Optional[int] = None,
    period: str = Query("7d", description="7d, 30d, 90d or custom"),
    date_start: Optional[str] = Query(None, description="YYYY-MM-DD, custom only"),
    date_end: Optional[str] = Query(None, description="YYYY-MM-DD, custom only"),
    gateway: PersistenceGateway = Depends(get_gateway),
):
    """KPIs, chart series and critical campaigns for one or all accounts."""
    try:
        return analytics_service.get_dashboard(
            gateway, account_id, period, date_start, date_end
        )
    except TracionarError as e:
        raise to_http(e) from e


@router.get("/critical-campaigns", response_model=List[CriticalCampaign])
async def critical_campaigns(
    account_id: Optional[int] = None,
    period: str = "7d",
    gateway: PersistenceGateway = Depends(get_gateway),
):
    try:
        return analytics_service.get_critical_campaigns(gateway, account_id, period)
    except TracionarError as e:
        raise to_http(e) from e


@router.get("/alerts")
async def alerts(
    account_id: Optional[int] = None,
    period: str = "7d",
    gateway: PersistenceGateway = Depends(get_gateway),
):
    try:
        return analytics_service.get_alerts(gateway, account_id, period)
    except TracionarError as e:
        raise to_http(e) from e


@router.post("/campaigns/{campaign_id}/desired-cpa")
async def set_desired_cpa(
    campaign_id: int,
    request: DesiredCpaRequest,
    gateway: PersistenceGateway = Depends(get_gateway),
):
    try:
        campaign = analytics_service.set_desired_cpa(
            gateway, campaign_id, request.desired_cpa
        )
    except TracionarError as e:
        raise to_http(e) from e
    return {
        "status": "success",
        "campaign_id": campaign.id,
        "desired_cpa": campaign.desired_cpa,
    }
