"""Tracionar — Meta API Endpoints.

Fetch functions for each level of the campaign hierarchy and for daily
insights. Each returns raw rows; mapping to storage lives in transformer.py.
"""

from typing import Any, Dict, List

from app.connectors.meta.client import MetaClient
from app.core.logging import get_logger

logger = get_logger("meta.endpoints")

CAMPAIGN_FIELDS = (
    "id,name,objective,status,created_time,updated_time,start_time,stop_time"
)
ADSET_FIELDS = "id,name,status,targeting,created_time,updated_time,start_time,end_time"
AD_FIELDS = "id,name,status,creative,created_time,updated_time"
INSIGHT_FIELDS = (
    "impressions,reach,clicks,spend,actions,action_values,"
    "ctr,cpc,cpm,frequency,date_start,date_stop"
)

# Sync mode → Meta date preset for insight queries
DATE_PRESETS = {
    "incremental": "last_7d",
    "full": "maximum",
}


def account_node(external_id: str) -> str:
    """Graph node for an ad account; Meta expects the act_ prefix."""
    return external_id if external_id.startswith("act_") else f"act_{external_id}"


class MetaEndpoints:
    """Hierarchy and insight fetches for one access token."""

    def __init__(self, client: MetaClient):
        self.client = client

    async def fetch_campaigns(self, account_external_id: str) -> List[Dict[str, Any]]:
        url = f"{self.client.base_url}/{account_node(account_external_id)}/campaigns"
        return await self.client.paginated_get(url, {"fields": CAMPAIGN_FIELDS})

    async def fetch_adsets(self, campaign_external_id: str) -> List[Dict[str, Any]]:
        url = f"{self.client.base_url}/{campaign_external_id}/adsets"
        return await self.client.paginated_get(url, {"fields": ADSET_FIELDS})

    async def fetch_ads(self, adset_external_id: str) -> List[Dict[str, Any]]:
        url = f"{self.client.base_url}/{adset_external_id}/ads"
        return await self.client.paginated_get(url, {"fields": AD_FIELDS})

    async def fetch_insights(
        self,
        object_external_id: str,
        date_preset: str = "last_7d",
        level: str = "campaign",
    ) -> List[Dict[str, Any]]:
        """Daily insight rows (one per entity per day) for an object."""
        url = f"{self.client.base_url}/{object_external_id}/insights"
        params = {
            "fields": INSIGHT_FIELDS,
            "date_preset": date_preset,
            "level": level,
            "time_increment": 1,
        }
        data = await self.client.paginated_get(url, params)
        logger.info(
            f"Fetched {len(data)} {level} insight rows for {object_external_id} ({date_preset})"
        )
        return data

    async def close(self) -> None:
        await self.client.close()
