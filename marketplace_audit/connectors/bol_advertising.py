"""
bol.com Advertising API client (sponsored products)

Campaign -> ad group -> keyword listing plus performance subtotals for an
id list over a date range. Subtotal endpoints accept at most 20 ids per
call; results are matched back by id and missing ids map to None.
"""
from datetime import date
from typing import Dict, List, Optional

from marketplace_audit.analysis.records import PerformanceSubtotal
from marketplace_audit.config import get_settings
from marketplace_audit.connectors.base_connector import BaseMarketplaceClient, MarketplaceAPIError
from marketplace_audit.utils.logger import log

settings = get_settings()


class BolAdvertisingClient(BaseMarketplaceClient):
    """Client for the bol.com Advertising API"""

    def __init__(self, token: str, **kwargs):
        super().__init__("bol.com Advertising", settings.bol_ads_base_url, token, **kwargs)

    def default_headers(self) -> Dict[str, str]:
        return {"Accept": "application/json", "Content-Type": "application/json"}

    async def list_campaigns(self) -> List[Dict]:
        data = await self._get_json("/api/v1/campaigns")
        return data.get("campaigns") or []

    async def list_ad_groups(self, campaign_id: str) -> List[Dict]:
        data = await self._get_json(f"/api/v1/campaigns/{campaign_id}/ad-groups", allow_not_found=True)
        return (data or {}).get("adGroups") or []

    async def list_keywords(self, ad_group_id: str) -> List[Dict]:
        data = await self._get_json(f"/api/v1/ad-groups/{ad_group_id}/keywords", allow_not_found=True)
        return (data or {}).get("keywords") or []

    async def get_campaign_performance(
        self, campaign_ids: List[str], date_from: date, date_to: date
    ) -> Dict[str, Optional[PerformanceSubtotal]]:
        return await self._subtotals("campaigns", "campaignIds", "campaignId", campaign_ids, date_from, date_to)

    async def get_keyword_performance(
        self, keyword_ids: List[str], date_from: date, date_to: date
    ) -> Dict[str, Optional[PerformanceSubtotal]]:
        return await self._subtotals("keywords", "keywordIds", "keywordId", keyword_ids, date_from, date_to)

    async def _subtotals(
        self,
        resource: str,
        ids_field: str,
        id_field: str,
        ids: List[str],
        date_from: date,
        date_to: date,
    ) -> Dict[str, Optional[PerformanceSubtotal]]:
        path = f"/api/v1/sponsored-products/performance/{resource}/subtotals"

        async def fetch_batch(batch: List[str]) -> Dict[str, PerformanceSubtotal]:
            response = await self._request(
                "POST",
                path,
                json_body={
                    ids_field: batch,
                    "startDate": date_from.isoformat(),
                    "endDate": date_to.isoformat(),
                },
            )
            if not response.ok:
                raise MarketplaceAPIError(
                    f"{resource} performance failed ({response.status}): {response.data}",
                    status=response.status,
                    body=response.data,
                )
            data = response.data if isinstance(response.data, dict) else {}
            found = {}
            rows = data.get("subtotals") or []
            for raw in rows:
                subtotal = PerformanceSubtotal.from_raw(raw, id_field=id_field)
                if subtotal.entity_id:
                    found[subtotal.entity_id] = subtotal
            return found

        results = await self._batched(ids, fetch_batch)
        log.debug(f"Fetched {resource} subtotals for {len(results)} ids ({date_from} to {date_to})")
        return results
