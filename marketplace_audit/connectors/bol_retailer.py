"""
bol.com Retailer API v10 client

Synchronous list endpoints (inventory, orders, returns), the async offers
export (submit -> process status -> CSV download), batched offer insights,
seller performance indicators and the per-EAN product endpoints used by the
extended sync.
"""
from datetime import date
from typing import Any, Dict, List, Optional
import csv
import io

from marketplace_audit.analysis.records import (
    CompetingOffer,
    OfferInsight,
    PerformanceIndicator,
    ProcessStatus,
    ProductRank,
    ProductRating,
)
from marketplace_audit.config import get_settings
from marketplace_audit.connectors.base_connector import BaseMarketplaceClient, MarketplaceAPIError
from marketplace_audit.utils.logger import log

settings = get_settings()

RETAILER_JSON = "application/vnd.retailer.v10+json"
RETAILER_CSV = "application/vnd.retailer.v10+csv"

OFFER_INSIGHT_NAMES = ["PRODUCT_VISITS", "BUY_BOX_PERCENTAGE", "IMPRESSIONS", "CLICKS", "CONVERSIONS"]


def parse_offers_csv(text: str) -> List[Dict[str, str]]:
    """Parse the offers export into dict rows, trimming headers and values"""
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    rows = [row for row in reader if any(cell.strip() for cell in row)]
    if len(rows) < 2:
        return []
    headers = [h.strip() for h in rows[0]]
    return [
        {header: (row[i].strip() if i < len(row) else "") for i, header in enumerate(headers)}
        for row in rows[1:]
    ]


class BolRetailerClient(BaseMarketplaceClient):
    """Client for the bol.com Retailer API"""

    def __init__(self, token: str, **kwargs):
        super().__init__("bol.com Retailer", settings.bol_api_base_url, token, **kwargs)

    def default_headers(self) -> Dict[str, str]:
        return {"Accept": RETAILER_JSON, "Content-Type": RETAILER_JSON}

    # Offers export

    async def start_offers_export(self) -> str:
        """Submit an offers export job and return its processStatusId"""
        response = await self._request("POST", "/retailer/offers/export", json_body={"format": "CSV"})
        if not response.ok:
            raise MarketplaceAPIError(
                f"startOffersExport failed ({response.status}): {response.data}",
                status=response.status,
                body=response.data,
            )
        process_status_id = response.data.get("processStatusId") if isinstance(response.data, dict) else None
        if not process_status_id:
            raise MarketplaceAPIError("No processStatusId in export response", status=response.status)
        return str(process_status_id)

    async def check_process_status(self, process_status_id: str) -> ProcessStatus:
        data = await self._get_json(f"/shared/process-status/{process_status_id}")
        return ProcessStatus.from_raw(data)

    async def download_offers_export(self, entity_id: str) -> List[Dict[str, str]]:
        response = await self._request("GET", f"/retailer/offers/export/{entity_id}", accept=RETAILER_CSV)
        if not response.ok:
            raise MarketplaceAPIError(f"downloadOffersExport failed ({response.status})", status=response.status)
        text = response.data if isinstance(response.data, str) else ""
        offers = parse_offers_csv(text)
        log.info(f"Downloaded offers export {entity_id}: {len(offers)} rows")
        return offers

    # Synchronous lists

    async def get_inventory(self) -> List[Dict]:
        return await self._paged("/retailer/inventory", "inventory")

    async def get_orders(self) -> List[Dict]:
        """Orders of the last few days, FBB and FBR"""
        return await self._paged("/retailer/orders", "orders", params={"fulfilment-method": "ALL", "status": "ALL"})

    async def get_returns(self, handled: bool) -> List[Dict]:
        return await self._paged(
            "/retailer/returns",
            "returns",
            params={"handled": "true" if handled else "false"},
        )

    # Insights

    async def get_offer_insights(self, offer_ids: List[str]) -> Dict[str, Optional[OfferInsight]]:
        """Monthly insight metrics per offer id; ids absent upstream map to None"""

        async def fetch_batch(batch: List[str]) -> Dict[str, OfferInsight]:
            params = [("offer-id", offer_id) for offer_id in batch]
            params += [("period", "MONTH"), ("number-of-periods", "1")]
            params += [("name", name) for name in OFFER_INSIGHT_NAMES]
            response = await self._request("GET", "/retailer/insights/offer", params=params)
            if not response.ok or not isinstance(response.data, dict):
                log.warning(f"Offer insights batch of {len(batch)} failed ({response.status})")
                return {}
            found = {}
            for raw in response.data.get("offerInsights") or []:
                insight = OfferInsight.from_raw(raw)
                if insight.offer_id:
                    found[insight.offer_id] = insight
            return found

        return await self._batched(offer_ids, fetch_batch)

    async def get_performance_indicator(self, name: str, year: int, week: int) -> Optional[PerformanceIndicator]:
        """One KPI for an ISO week; None when bol.com has no data for it"""
        data = await self._get_json(
            "/retailer/insights/performance/indicator",
            params={"name": name, "year": str(year), "week": str(week)},
            allow_not_found=True,
        )
        indicators = (data or {}).get("performanceIndicators") or []
        if not indicators:
            return None
        indicator = PerformanceIndicator.from_raw(indicators[0])
        if not indicator.name:
            indicator.name = name
        return indicator

    async def get_sales_forecast(self, offer_id: str, weeks_ahead: int) -> List[Dict]:
        data = await self._get_json(
            "/retailer/insights/sales-forecast",
            params={"offer-id": offer_id, "weeks-ahead": str(weeks_ahead)},
            allow_not_found=True,
        )
        return (data or {}).get("periods") or []

    # Per-product endpoints

    async def get_competing_offers(self, ean: str) -> List[CompetingOffer]:
        data = await self._get_json(f"/retailer/products/{ean}/offers", allow_not_found=True)
        return [CompetingOffer.from_raw(raw) for raw in (data or {}).get("offers") or []]

    async def get_product_ratings(self, ean: str) -> Optional[ProductRating]:
        data = await self._get_json(f"/retailer/products/{ean}/ratings", allow_not_found=True)
        if not data:
            return None
        return ProductRating.from_raw(data)

    async def get_product_ranks(self, ean: str, search_type: str, on_date: date) -> List[ProductRank]:
        data = await self._get_json(
            f"/retailer/products/{ean}/product-ranks",
            params={"date": on_date.isoformat(), "type": search_type},
            allow_not_found=True,
        )
        return [ProductRank.from_raw(raw, default_week=on_date) for raw in (data or {}).get("ranks") or []]

    async def get_catalog_product(self, ean: str) -> Optional[Dict[str, Any]]:
        data = await self._get_json(f"/retailer/content/catalog-products/{ean}", allow_not_found=True)
        return data or None
