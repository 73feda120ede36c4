"""
Typed views over raw bol.com records

Upstream payloads are loosely typed: fields go missing for some sellers
(FBR sellers never report stock), names changed between API versions, and
the offers CSV export has shipped several header spellings. Each record
kind gets one dataclass whose from_raw() applies the defaulting rules in a
fixed order, so analyzers never probe dicts directly.

Defaulting rules:
  - missing numeric fields -> 0 (or None where "absent" differs from zero)
  - missing optional objects -> None
  - alternate field names are checked in the order listed on each class
"""
from dataclasses import dataclass, field, asdict
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from marketplace_audit.utils.helpers import dig, pick_field, to_float, to_int, round_half_up

# Header variants seen in offers exports, checked in this order
OFFER_ID_FIELDS = ("offerId", "offer-id", "Offer Id", "offer_id")
EAN_FIELDS = ("ean", "EAN")
TITLE_FIELDS = ("title", "Title")
PRICE_FIELDS = ("price", "Price", "bundlePricesPrice")
STOCK_FIELDS = ("stockAmount", "stock", "Stock")
FULFILMENT_FIELDS = ("fulfilmentType", "fulfilment-type", "Fulfilment Type")

T = TypeVar("T")


def coerce_records(rows: Optional[Sequence[Any]], record_type: Type[T]) -> List[T]:
    """Accept raw dicts or already-typed records and return typed records"""
    if not rows:
        return []
    return [row if isinstance(row, record_type) else record_type.from_raw(row) for row in rows]


# Retailer API


@dataclass
class OfferRow:
    """One row of the offers CSV export"""
    offer_id: str = ""
    ean: str = ""
    title: str = ""
    price: float = 0.0
    stock: Optional[int] = None
    fulfilment_type: str = ""

    @classmethod
    def from_raw(cls, row: Dict[str, Any]) -> "OfferRow":
        stock = pick_field(row, *STOCK_FIELDS, default=None)
        return cls(
            offer_id=str(pick_field(row, *OFFER_ID_FIELDS)).strip(),
            ean=str(pick_field(row, *EAN_FIELDS)).strip(),
            title=str(pick_field(row, *TITLE_FIELDS)),
            price=to_float(pick_field(row, *PRICE_FIELDS, default=None)),
            stock=to_int(stock, None),
            fulfilment_type=str(pick_field(row, *FULFILMENT_FIELDS)),
        )


@dataclass
class InventoryItem:
    """
    Inventory entry

    Stock: stock.actualStock, then regularStock, then a flat numeric stock.
    Fulfilment: offer.fulfilmentMethod, then fulfilment.method, then
    fulfilmentMethod. Empty string means unknown.
    """
    offer_id: str = ""
    ean: str = ""
    title: str = ""
    actual_stock: int = 0
    fulfilment_method: str = ""

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "InventoryItem":
        stock = dig(raw, "stock", "actualStock")
        if stock is None:
            stock = raw.get("regularStock")
        if stock is None and not isinstance(raw.get("stock"), dict):
            stock = raw.get("stock")
        method = (
            dig(raw, "offer", "fulfilmentMethod")
            or dig(raw, "fulfilment", "method")
            or raw.get("fulfilmentMethod")
            or ""
        )
        return cls(
            offer_id=str(dig(raw, "offer", "offerId") or raw.get("offerId") or ""),
            ean=str(raw.get("ean") or ""),
            title=str(raw.get("title") or ""),
            actual_stock=to_int(stock),
            fulfilment_method=str(method).upper(),
        )


@dataclass
class OrderItem:
    fulfilment_method: str = ""
    cancelled: bool = False
    quantity: int = 1

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "OrderItem":
        return cls(
            fulfilment_method=str(dig(raw, "fulfilment", "method") or "").upper(),
            cancelled=bool(dig(raw, "cancellation", "reasonCode")),
            quantity=to_int(raw.get("quantity"), 1),
        )


@dataclass
class Order:
    order_id: str = ""
    items: List[OrderItem] = field(default_factory=list)

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "Order":
        return cls(
            order_id=str(raw.get("orderId") or ""),
            items=[OrderItem.from_raw(item) for item in raw.get("orderItems") or []],
        )


@dataclass
class ReturnItem:
    """
    Return case

    Reason: returnReason.mainReason, then the first returnItems entry.
    Quantity: quantity, then expectedQuantity, then 1.
    """
    return_id: str = ""
    reason: str = "Unknown"
    quantity: int = 1
    handling_result: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "ReturnItem":
        nested = (raw.get("returnItems") or [{}])[0] or {}
        reason = dig(raw, "returnReason", "mainReason") or dig(nested, "returnReason", "mainReason")
        quantity = pick_field(raw, "quantity", "expectedQuantity", default=None)
        if quantity is None:
            quantity = nested.get("expectedQuantity")
        return cls(
            return_id=str(raw.get("returnId") or ""),
            reason=reason or "Unknown",
            quantity=to_int(quantity, 1),
            handling_result=raw.get("handlingResult") or nested.get("handlingResult"),
        )


@dataclass
class PerformanceIndicator:
    """
    Seller performance KPI for one week

    Accepts the flat {name, score, norm, status} shape or the nested
    details.weeks[0] shape returned by the insights endpoint.
    """
    name: str
    score: Optional[float] = None
    norm: Optional[float] = None
    status: str = ""

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "PerformanceIndicator":
        week = (dig(raw, "details", "weeks") or [{}])[0] or {}
        score = raw.get("score")
        if isinstance(score, dict):
            score = score.get("score")
        if score is None:
            score = dig(week, "score", "score")
        norm = raw.get("norm")
        if isinstance(norm, dict):
            norm = norm.get("value")
        if norm is None:
            norm = dig(raw, "details", "norm", "value")
        return cls(
            name=str(raw.get("name") or ""),
            score=to_float(score, None),
            norm=to_float(norm, None),
            status=str(raw.get("status") or week.get("status") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class OfferInsight:
    """
    Monthly offer insight metrics

    buy_box_pct is None when upstream reports no value (or zero).
    """
    offer_id: str
    buy_box_pct: Optional[float] = None
    visits: float = 0
    impressions: float = 0
    clicks: float = 0
    conversions: float = 0

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "OfferInsight":
        metrics: Dict[str, float] = {}
        for entry in raw.get("offerInsightData") or []:
            periods = entry.get("periods") or [{}]
            metrics[entry.get("name")] = to_float((periods[0] or {}).get("value"))
        return cls(
            offer_id=str(raw.get("offerId") or ""),
            buy_box_pct=metrics.get("BUY_BOX_PERCENTAGE") or None,
            visits=metrics.get("PRODUCT_VISITS", 0),
            impressions=metrics.get("IMPRESSIONS", 0),
            clicks=metrics.get("CLICKS", 0),
            conversions=metrics.get("CONVERSIONS", 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ProcessStatus:
    """Async export job status"""
    status: str
    entity_id: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "ProcessStatus":
        entity_id = raw.get("entityId")
        return cls(
            status=str(raw.get("status") or "PENDING").upper(),
            entity_id=str(entity_id) if entity_id else None,
            error_message=raw.get("errorMessage"),
        )

    @property
    def succeeded(self) -> bool:
        return self.status == "SUCCESS" and bool(self.entity_id)

    @property
    def failed(self) -> bool:
        return self.status in ("FAILURE", "TIMEOUT")


@dataclass
class CompetingOffer:
    """
    Offer on a product, ours or a competitor's

    Price: price.listPrice, then a flat numeric price. Buy Box: isBuyBoxWinner,
    then bestOffer.
    """
    offer_id: str = ""
    seller_id: str = ""
    price: Optional[float] = None
    condition: Optional[str] = None
    is_buy_box_winner: bool = False

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "CompetingOffer":
        price = raw.get("price")
        if isinstance(price, dict):
            price = price.get("listPrice")
        winner = raw.get("isBuyBoxWinner")
        if winner is None:
            winner = raw.get("bestOffer", False)
        return cls(
            offer_id=str(raw.get("offerId") or ""),
            seller_id=str(raw.get("sellerId") or raw.get("retailerId") or ""),
            price=to_float(price, None),
            condition=raw.get("condition"),
            is_buy_box_winner=bool(winner),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "offerId": self.offer_id,
            "sellerId": self.seller_id,
            "price": self.price,
            "condition": self.condition,
            "isBuyBoxWinner": self.is_buy_box_winner,
        }


@dataclass
class ProductRating:
    score: Optional[float] = None
    count: Optional[int] = None

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "ProductRating":
        """Flat {score, count}, or a star histogram {ratings: [{rating, count}]}"""
        if "score" in raw or "count" in raw:
            return cls(score=to_float(raw.get("score"), None), count=to_int(raw.get("count"), None))
        histogram = raw.get("ratings") or []
        total = sum(to_int(r.get("count")) for r in histogram)
        if total == 0:
            return cls(score=None, count=0)
        weighted = sum(to_int(r.get("rating")) * to_int(r.get("count")) for r in histogram)
        return cls(score=round_half_up(weighted / total, 2), count=total)


@dataclass
class ProductRank:
    rank: Optional[int] = None
    impressions: Optional[int] = None
    week_of: Optional[str] = None
    search_term: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: Dict[str, Any], default_week: Optional[date] = None) -> "ProductRank":
        week = raw.get("weekStartDate") or (default_week.isoformat() if default_week else None)
        return cls(
            rank=to_int(raw.get("rank"), None),
            impressions=to_int(raw.get("impressions"), None),
            week_of=week,
            search_term=raw.get("searchTerm"),
        )


# Advertising API


@dataclass
class Campaign:
    """
    Sponsored-products campaign

    Daily budget: flat dailyBudget (older API versions), then nested
    budget.dailyBudget.
    """
    campaign_id: str = ""
    name: str = ""
    status: str = ""
    campaign_type: Optional[str] = None
    daily_budget: float = 0.0

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "Campaign":
        budget = raw.get("dailyBudget")
        if isinstance(budget, dict):
            budget = budget.get("amount")
        if budget is None:
            budget = dig(raw, "budget", "dailyBudget")
        campaign_id = str(raw.get("campaignId") or "")
        return cls(
            campaign_id=campaign_id,
            name=raw.get("name") or f"Campaign {campaign_id}",
            status=str(raw.get("status") or raw.get("state") or "").upper(),
            campaign_type=raw.get("campaignType") or raw.get("targetingType"),
            daily_budget=to_float(budget),
        )

    @property
    def is_active(self) -> bool:
        return self.status in ("ACTIVE", "ENABLED")


@dataclass
class AdGroup:
    ad_group_id: str = ""
    campaign_id: str = ""
    name: str = ""
    state: str = ""

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "AdGroup":
        return cls(
            ad_group_id=str(raw.get("adGroupId") or ""),
            campaign_id=str(raw.get("campaignId") or ""),
            name=raw.get("name") or "",
            state=str(raw.get("state") or raw.get("status") or "").upper(),
        )


@dataclass
class Keyword:
    keyword_id: str = ""
    ad_group_id: str = ""
    campaign_id: str = ""
    keyword_text: str = ""
    match_type: Optional[str] = None
    bid: Optional[float] = None
    state: str = ""

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "Keyword":
        bid = raw.get("bid")
        if isinstance(bid, dict):
            bid = bid.get("amount")
        return cls(
            keyword_id=str(raw.get("keywordId") or ""),
            ad_group_id=str(raw.get("adGroupId") or ""),
            campaign_id=str(raw.get("campaignId") or ""),
            keyword_text=raw.get("keywordText") or raw.get("text") or "",
            match_type=raw.get("matchType"),
            bid=to_float(bid, None),
            state=str(raw.get("state") or raw.get("status") or "").upper(),
        )


@dataclass
class PerformanceSubtotal:
    """
    Advertising metrics for one campaign or keyword over a date range

    Conversions: conversions, then orders (v1 naming). Revenue: revenue,
    then sales. Spend: spend, then cost.
    """
    entity_id: str
    impressions: int = 0
    clicks: int = 0
    spend: float = 0.0
    conversions: int = 0
    revenue: float = 0.0

    @classmethod
    def from_raw(cls, raw: Dict[str, Any], id_field: str = "campaignId") -> "PerformanceSubtotal":
        return cls(
            entity_id=str(raw.get(id_field) or raw.get("entityId") or ""),
            impressions=to_int(raw.get("impressions")),
            clicks=to_int(raw.get("clicks")),
            spend=to_float(pick_field(raw, "spend", "cost", default=None)),
            conversions=to_int(pick_field(raw, "conversions", "orders", default=None)),
            revenue=to_float(pick_field(raw, "revenue", "sales", default=None)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
