"""
Marketplace Report Service
Read-side views over synced bol.com data for the dashboard

All tables are append-only, so every view resolves "latest" here:
newest row per entity by fetch time, or an aggregate within a period.
"""
from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from marketplace_audit.analysis.scoring import CATEGORY_WEIGHTS, compute_overall_score
from marketplace_audit.models.enums import SearchType
from marketplace_audit.services.persistence import MarketplaceStore
from marketplace_audit.utils.helpers import round_half_up, safe_divide

RANKING_LOOKBACK_WEEKS = 8

_SUMMED_METRICS = ("spend", "revenue", "impressions", "clicks", "conversions")


def _serialize(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def row_to_dict(row, exclude: tuple = ()) -> Dict[str, Any]:
    """Column values of an ORM row, dates as ISO strings"""
    return {
        column.name: _serialize(getattr(row, column.name))
        for column in row.__table__.columns
        if column.name not in exclude
    }


def _latest_per(rows: List, key: Callable) -> List:
    """First row per key; rows must already be ordered newest first"""
    seen = set()
    latest = []
    for row in rows:
        k = key(row)
        if k in seen:
            continue
        seen.add(k)
        latest.append(row)
    return latest


def _aggregate(rows: List, key: Callable) -> List[Dict[str, Any]]:
    """Sum metrics per entity; identity fields come from the newest row"""
    grouped: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    for row in rows:
        k = key(row)
        if k not in grouped:
            grouped[k] = {**row_to_dict(row), **{metric: 0 for metric in _SUMMED_METRICS}}
        entry = grouped[k]
        for metric in _SUMMED_METRICS:
            entry[metric] += getattr(row, metric) or 0
    return list(grouped.values())


def _with_campaign_ratios(entry: Dict[str, Any]) -> Dict[str, Any]:
    spend, revenue = entry["spend"], entry["revenue"]
    clicks, impressions = entry["clicks"], entry["impressions"]
    entry["roas"] = round_half_up(safe_divide(revenue, spend), 4)
    entry["acos"] = round_half_up(safe_divide(spend, revenue) * 100, 4)
    entry["ctr_pct"] = round_half_up(safe_divide(clicks, impressions) * 100, 4)
    entry["cvr_pct"] = round_half_up(safe_divide(entry["conversions"], clicks) * 100, 4)
    entry["avg_cpc"] = round_half_up(safe_divide(spend, clicks), 4)
    return entry


def _with_keyword_ratios(entry: Dict[str, Any]) -> Dict[str, Any]:
    entry["acos"] = round_half_up(safe_divide(entry["spend"], entry["revenue"]) * 100, 4)
    return entry


def rank_trend(current: Optional[int], previous: Optional[int]) -> str:
    """Lower rank is better: up means the product moved towards position 1"""
    if current is None or previous is None:
        return "new"
    if current < previous:
        return "up"
    if current > previous:
        return "down"
    return "stable"


class MarketplaceReportService:
    """Builds dashboard views for one database session"""

    def __init__(self, db: Session, clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.store = MarketplaceStore(db)
        self._clock = clock or datetime.utcnow

    def list_customers(self) -> List[Dict[str, Any]]:
        customers = []
        for customer in self.store.list_customers():
            data = row_to_dict(customer, exclude=("bol_client_secret", "ads_client_secret"))
            data["has_ads_credentials"] = customer.has_ads_credentials
            customers.append(data)
        return customers

    def get_summary(self, customer_id: int) -> Dict[str, Any]:
        """Latest analysis per category plus the weighted overall score"""
        latest = self.store.latest_analyses(customer_id)
        scores = {category: analysis.score for category, analysis in latest.items()}
        return {
            "customer_id": customer_id,
            "overall_score": compute_overall_score(scores),
            "scores": scores,
            "weights": CATEGORY_WEIGHTS,
            "analyses": {category: analysis.to_dict() for category, analysis in latest.items()},
        }

    def get_analyses(self, customer_id: int, category: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
        return [a.to_dict() for a in self.store.recent_analyses(customer_id, category, limit)]

    def get_campaigns(self, customer_id: int, date_from: Optional[date] = None, date_to: Optional[date] = None) -> Dict[str, Any]:
        """
        Campaign and keyword performance.

        Without a period: the latest row per campaign / keyword.
        With a period: metrics summed over rows inside it and ratios
        recomputed from the sums.
        """
        in_period = date_from is not None and date_to is not None
        campaign_rows = self.store.campaign_rows(customer_id, date_from if in_period else None, date_to if in_period else None)
        keyword_rows = self.store.keyword_rows(customer_id, date_from if in_period else None, date_to if in_period else None)

        if in_period:
            campaigns = [_with_campaign_ratios(e) for e in _aggregate(campaign_rows, lambda r: r.campaign_id)]
            keywords = [_with_keyword_ratios(e) for e in _aggregate(keyword_rows, lambda r: r.keyword_id)]
        else:
            campaigns = [row_to_dict(r) for r in _latest_per(campaign_rows, lambda r: r.campaign_id)]
            keywords = [row_to_dict(r) for r in _latest_per(keyword_rows, lambda r: r.keyword_id)]

        return {
            "campaigns": campaigns,
            "keywords": keywords,
            "count": len(campaigns),
            "period": {"from": date_from.isoformat(), "to": date_to.isoformat()} if in_period else None,
        }

    def get_rankings(self, customer_id: int) -> List[Dict[str, Any]]:
        """Current vs previous rank per (EAN, search type) over recent weeks"""
        since = self._clock() - timedelta(weeks=RANKING_LOOKBACK_WEEKS)
        grouped: "OrderedDict[tuple, Dict[str, Any]]" = OrderedDict()

        for row in self.store.ranking_rows(customer_id, since):
            key = (row.ean, row.search_type)
            entry = grouped.get(key)
            if entry is None:
                grouped[key] = {
                    "ean": row.ean,
                    "search_type": row.search_type,
                    "current_rank": row.rank,
                    "prev_rank": None,
                    "current_impressions": row.impressions,
                    "week_of": _serialize(row.week_of),
                    "_current_week": row.week_of,
                    "_has_prev": False,
                }
            elif not entry["_has_prev"] and row.week_of != entry["_current_week"]:
                # Re-fetches of the current week are not a previous data point
                entry["prev_rank"] = row.rank
                entry["_has_prev"] = True

        rankings = []
        for entry in grouped.values():
            entry.pop("_current_week")
            entry.pop("_has_prev")
            entry["trend"] = rank_trend(entry["current_rank"], entry["prev_rank"])
            rankings.append(entry)

        rankings.sort(key=lambda r: (
            0 if r["search_type"] == SearchType.SEARCH.value else 1,
            r["current_rank"] is None,
            r["current_rank"] or 0,
        ))
        return rankings

    def get_competitors(self, customer_id: int) -> List[Dict[str, Any]]:
        latest = _latest_per(self.store.competitor_rows(customer_id), lambda r: r.ean)
        return [row_to_dict(row) for row in latest]

    def get_sync_runs(self, customer_id: int, limit: int = 20) -> List[Dict[str, Any]]:
        return [row_to_dict(run) for run in self.store.recent_sync_runs(customer_id, limit)]
