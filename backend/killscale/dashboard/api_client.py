"""
Async client for the KillScale API, used by the dashboard controllers.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from killscale.config import Settings, get_settings

logger = logging.getLogger(__name__)


class KillScaleApiError(Exception):
    """Non-2xx response from the KillScale API, carrying the server's `error` text."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class KillScaleApiClient:
    """
    Thin wrapper around httpx.AsyncClient bound to one signed-in user.

        async with KillScaleApiClient(user_id) as api:
            campaigns = await api.get_campaigns(ad_account_id)
    """

    def __init__(
        self,
        user_id: str,
        settings: Optional[Settings] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 60.0,
    ):
        self.user_id = user_id
        self.settings = settings or get_settings()
        self.base_url = base_url or self.settings.api_base_url
        self._transport = transport
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "KillScaleApiClient":
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if self._client is None:
            raise RuntimeError("KillScaleApiClient must be used inside 'async with'")

        query = {k: v for k, v in (params or {}).items() if v is not None}
        response = await self._client.request(method, path, params=query or None, json=json)

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if not response.is_success:
            message = payload.get("error") if isinstance(payload, dict) else None
            raise KillScaleApiError(response.status_code, message or "")
        return payload if isinstance(payload, dict) else {}

    # ==================== Hierarchy ====================

    async def get_campaigns(self, ad_account_id: str) -> List[Dict[str, Any]]:
        payload = await self._request(
            "GET", "/api/meta/campaigns", params={"userId": self.user_id, "adAccountId": ad_account_id}
        )
        return payload.get("campaigns", [])

    async def get_campaign_creations(self, ad_account_id: str) -> List[Dict[str, Any]]:
        payload = await self._request(
            "GET", "/api/campaign-creations", params={"userId": self.user_id, "adAccountId": ad_account_id}
        )
        return payload.get("creations", [])

    async def get_adsets(self, campaign_id: str, ad_account_id: Optional[str] = None) -> List[Dict[str, Any]]:
        payload = await self._request(
            "GET",
            "/api/meta/adsets",
            params={"userId": self.user_id, "campaignId": campaign_id, "adAccountId": ad_account_id},
        )
        return payload.get("adsets", [])

    async def get_ads(self, adset_id: str, ad_account_id: Optional[str] = None) -> List[Dict[str, Any]]:
        payload = await self._request(
            "GET",
            "/api/meta/ads",
            params={"userId": self.user_id, "adsetId": adset_id, "adAccountId": ad_account_id},
        )
        return payload.get("ads", [])

    async def sync_utm_status(self, ad_account_id: str, ad_ids: List[str]) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/meta/sync-utm-status",
            json={"userId": self.user_id, "adAccountId": ad_account_id, "adIds": ad_ids},
        )

    # ==================== Status ====================

    async def update_status(self, entity_id: str, entity_type: str, status: str) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/meta/update-status",
            json={"userId": self.user_id, "entityId": entity_id, "entityType": entity_type, "status": status},
        )

    async def bulk_update_status(self, entities: List[Dict[str, Any]], status: str) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/meta/bulk-update-status",
            json={"userId": self.user_id, "entities": entities, "status": status},
        )

    async def bulk_delete(self, entities: List[Dict[str, Any]]) -> Dict[str, Any]:
        return await self._request(
            "POST", "/api/meta/bulk-delete", json={"userId": self.user_id, "entities": entities}
        )

    async def bulk_budget_scale(
        self, ad_account_id: str, entities: List[Dict[str, Any]], scale_percentage: float
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/meta/bulk-budget-scale",
            json={
                "userId": self.user_id,
                "adAccountId": ad_account_id,
                "entities": entities,
                "scalePercentage": scale_percentage,
            },
        )

    # ==================== Duplication ====================

    async def duplicate_campaign(
        self, ad_account_id: str, source_campaign_id: str, new_name: Optional[str], copy_status: str
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/meta/duplicate-campaign",
            json={
                "userId": self.user_id,
                "adAccountId": ad_account_id,
                "sourceCampaignId": source_campaign_id,
                "newName": new_name,
                "copyStatus": copy_status,
            },
        )

    async def duplicate_adset(
        self,
        ad_account_id: str,
        source_adset_id: str,
        target_campaign_id: Optional[str],
        new_name: Optional[str],
        copy_status: str,
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/meta/duplicate-adset",
            json={
                "userId": self.user_id,
                "adAccountId": ad_account_id,
                "sourceAdsetId": source_adset_id,
                "targetCampaignId": target_campaign_id,
                "newName": new_name,
                "copyStatus": copy_status,
            },
        )

    async def duplicate_ad(
        self,
        ad_account_id: str,
        source_ad_id: str,
        target_adset_id: Optional[str],
        new_name: Optional[str],
        copy_status: str,
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/meta/duplicate-ad",
            json={
                "userId": self.user_id,
                "adAccountId": ad_account_id,
                "sourceAdId": source_ad_id,
                "targetAdsetId": target_adset_id,
                "newName": new_name,
                "copyStatus": copy_status,
            },
        )

    # ==================== AI ====================

    async def creative_insights(self, ad_account_id: str, summary: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/ai/creative-insights",
            json={"userId": self.user_id, "adAccountId": ad_account_id, "summary": summary},
        )
