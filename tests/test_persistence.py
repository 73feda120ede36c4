"""
Store and report-service tests.

Guards against:
1. "Latest" resolving to anything but the newest row (ties broken by id)
2. Period aggregates averaging stored ratios instead of recomputing them
3. Ranking trends comparing against a re-fetch of the same week
"""
from datetime import date, datetime, timedelta

from marketplace_audit.analysis.types import AnalysisResult
from marketplace_audit.models.enums import Category, DataType
from marketplace_audit.services.marketplace_report_service import MarketplaceReportService, rank_trend
from marketplace_audit.services.persistence import MarketplaceStore

from conftest import FIXED_NOW


def _campaign_row(customer_id, campaign_id, start, end, synced_at, **metrics):
    row = {
        "customer_id": customer_id,
        "campaign_id": campaign_id,
        "campaign_name": metrics.pop("name", f"Campaign {campaign_id}"),
        "period_start_date": start,
        "period_end_date": end,
        "synced_at": synced_at,
    }
    row.update(metrics)
    return row


def _ranking(customer_id, ean, search_type, rank, week_of, fetched_at=FIXED_NOW):
    return {
        "customer_id": customer_id,
        "ean": ean,
        "search_type": search_type,
        "rank": rank,
        "impressions": None,
        "week_of": week_of,
        "fetched_at": fetched_at,
    }


# ────────────────────────────────────────────
# STORE
# ────────────────────────────────────────────


class TestMarketplaceStore:

    def test_latest_analysis_is_the_newest(self, db_session, customer_factory):
        customer = customer_factory()
        store = MarketplaceStore(db_session)
        for offset, score in ((0, 40), (1, 60), (2, 80)):
            store.insert_analysis(
                customer.id, Category.CONTENT, AnalysisResult(score=score),
                analyzed_at=FIXED_NOW + timedelta(hours=offset),
            )

        assert store.latest_analyses(customer.id)["content"].score == 80
        assert [a.score for a in store.recent_analyses(customer.id, "content")] == [80, 60, 40]

    def test_same_timestamp_resolves_to_newest_id(self, db_session, customer_factory):
        customer = customer_factory()
        store = MarketplaceStore(db_session)
        store.insert_analysis(customer.id, Category.ORDERS, AnalysisResult(score=50), analyzed_at=FIXED_NOW)
        store.insert_analysis(customer.id, Category.ORDERS, AnalysisResult(score=70), analyzed_at=FIXED_NOW)
        first = store.insert_snapshot(customer.id, DataType.ORDERS, {"orders": []}, 0, 1.0, fetched_at=FIXED_NOW)
        second = store.insert_snapshot(customer.id, DataType.ORDERS, {"orders": [1]}, 1, 1.0, fetched_at=FIXED_NOW)

        assert store.latest_analyses(customer.id)["orders"].score == 70
        assert store.latest_snapshot(customer.id, DataType.ORDERS).id == second
        assert second > first

    def test_snapshots_are_scoped_per_customer_and_type(self, db_session, customer_factory):
        first = customer_factory("First")
        second = customer_factory("Second")
        store = MarketplaceStore(db_session)
        store.insert_snapshot(first.id, DataType.LISTINGS, {"offers": []}, 0, 0.5)

        assert store.latest_snapshot(second.id, DataType.LISTINGS) is None
        assert store.latest_snapshot(first.id, DataType.INVENTORY) is None

    def test_active_only_customers(self, db_session, customer_factory):
        active = customer_factory("Active")
        customer_factory("Paused", active=False)

        assert [c.id for c in MarketplaceStore(db_session).list_customers(active_only=True)] == [active.id]
        assert len(MarketplaceStore(db_session).list_customers()) == 2


# ────────────────────────────────────────────
# REPORTS
# ────────────────────────────────────────────


class TestReportService:

    def test_customers_never_expose_secrets(self, db_session, clock, customer_factory):
        customer_factory(with_ads=True)

        customers = MarketplaceReportService(db_session, clock=clock).list_customers()

        assert "bol_client_secret" not in customers[0]
        assert "ads_client_secret" not in customers[0]
        assert customers[0]["has_ads_credentials"] is True
        assert customers[0]["seller_name"] == "Test Seller"
        assert customers[0]["sync_interval_hours"] == 24

    def test_summary_without_analyses(self, db_session, clock, customer_factory):
        customer = customer_factory()
        summary = MarketplaceReportService(db_session, clock=clock).get_summary(customer.id)
        assert summary["overall_score"] is None
        assert summary["scores"] == {}

    def test_summary_uses_latest_per_category(self, db_session, clock, customer_factory):
        customer = customer_factory()
        store = MarketplaceStore(db_session)
        store.insert_analysis(customer.id, Category.CONTENT, AnalysisResult(score=20), analyzed_at=FIXED_NOW - timedelta(days=1))
        store.insert_analysis(customer.id, Category.CONTENT, AnalysisResult(score=100), analyzed_at=FIXED_NOW)
        store.insert_analysis(customer.id, Category.INVENTORY, AnalysisResult(score=0), analyzed_at=FIXED_NOW)

        summary = MarketplaceReportService(db_session, clock=clock).get_summary(customer.id)

        assert summary["scores"] == {"content": 100, "inventory": 0}
        assert summary["overall_score"] == 55
        assert summary["analyses"]["content"]["analyzed_at"] == FIXED_NOW.isoformat()

    def test_campaigns_latest_row_per_campaign(self, db_session, clock, customer_factory):
        customer = customer_factory()
        store = MarketplaceStore(db_session)
        store.insert_campaign_rows([
            _campaign_row(customer.id, "c1", date(2025, 3, 1), date(2025, 3, 7), FIXED_NOW - timedelta(days=1), spend=10.0),
            _campaign_row(customer.id, "c1", date(2025, 3, 5), date(2025, 3, 12), FIXED_NOW, spend=20.0),
            _campaign_row(customer.id, "c2", date(2025, 3, 5), date(2025, 3, 12), FIXED_NOW, spend=5.0),
        ])

        data = MarketplaceReportService(db_session, clock=clock).get_campaigns(customer.id)

        by_id = {c["campaign_id"]: c for c in data["campaigns"]}
        assert data["count"] == 2
        assert by_id["c1"]["spend"] == 20.0
        assert by_id["c1"]["period_end_date"] == "2025-03-12"
        assert data["period"] is None

    def test_campaigns_aggregate_over_period(self, db_session, clock, customer_factory):
        customer = customer_factory()
        store = MarketplaceStore(db_session)
        store.insert_campaign_rows([
            _campaign_row(customer.id, "c1", date(2025, 3, 1), date(2025, 3, 7), FIXED_NOW - timedelta(days=5),
                          name="Old name", spend=10.0, revenue=40.0, clicks=10, impressions=100, conversions=1, roas=4.0),
            _campaign_row(customer.id, "c1", date(2025, 3, 8), date(2025, 3, 12), FIXED_NOW,
                          name="New name", spend=20.0, revenue=20.0, clicks=10, impressions=400, conversions=1, roas=1.0),
            _campaign_row(customer.id, "c1", date(2025, 2, 1), date(2025, 2, 7), FIXED_NOW - timedelta(days=30),
                          spend=999.0, revenue=1.0),
        ])

        data = MarketplaceReportService(db_session, clock=clock).get_campaigns(
            customer.id, date(2025, 3, 1), date(2025, 3, 12)
        )

        campaign = data["campaigns"][0]
        assert data["period"] == {"from": "2025-03-01", "to": "2025-03-12"}
        assert campaign["campaign_name"] == "New name"
        assert campaign["spend"] == 30.0
        assert campaign["revenue"] == 60.0
        assert campaign["roas"] == 2.0
        assert campaign["acos"] == 50.0
        assert campaign["ctr_pct"] == 4.0
        assert campaign["cvr_pct"] == 10.0
        assert campaign["avg_cpc"] == 1.5

    def test_zero_spend_ratios_are_zero(self, db_session, clock, customer_factory):
        customer = customer_factory()
        MarketplaceStore(db_session).insert_campaign_rows([
            _campaign_row(customer.id, "c1", date(2025, 3, 1), date(2025, 3, 7), FIXED_NOW),
        ])

        campaign = MarketplaceReportService(db_session, clock=clock).get_campaigns(
            customer.id, date(2025, 3, 1), date(2025, 3, 12)
        )["campaigns"][0]

        assert campaign["roas"] == 0
        assert campaign["acos"] == 0

    def test_rankings_trend_and_order(self, db_session, clock, customer_factory):
        customer = customer_factory()
        this_week = datetime(2025, 3, 10)
        last_week = datetime(2025, 3, 3)
        MarketplaceStore(db_session).insert_rankings([
            _ranking(customer.id, "871", "SEARCH", 3, this_week, FIXED_NOW),
            _ranking(customer.id, "871", "SEARCH", 5, this_week, FIXED_NOW - timedelta(hours=2)),
            _ranking(customer.id, "871", "SEARCH", 6, last_week),
            _ranking(customer.id, "872", "SEARCH", 10, this_week),
            _ranking(customer.id, "873", "SEARCH", 2, this_week),
            _ranking(customer.id, "873", "SEARCH", 2, last_week),
            _ranking(customer.id, "871", "BROWSE", None, this_week),
            _ranking(customer.id, "874", "SEARCH", 1, datetime(2024, 12, 1)),
        ])

        rankings = MarketplaceReportService(db_session, clock=clock).get_rankings(customer.id)

        assert [(r["ean"], r["search_type"]) for r in rankings] == [
            ("873", "SEARCH"), ("871", "SEARCH"), ("872", "SEARCH"), ("871", "BROWSE"),
        ]
        by_key = {(r["ean"], r["search_type"]): r for r in rankings}
        assert by_key[("871", "SEARCH")]["current_rank"] == 3
        assert by_key[("871", "SEARCH")]["prev_rank"] == 6
        assert by_key[("871", "SEARCH")]["trend"] == "up"
        assert by_key[("873", "SEARCH")]["trend"] == "stable"
        assert by_key[("872", "SEARCH")]["trend"] == "new"
        assert by_key[("871", "BROWSE")]["trend"] == "new"

    def test_competitors_latest_per_ean(self, db_session, clock, customer_factory):
        customer = customer_factory()
        store = MarketplaceStore(db_session)
        store.insert_competitor_snapshot(customer_id=customer.id, ean="871", our_price=12.0,
                                         fetched_at=FIXED_NOW - timedelta(days=1))
        store.insert_competitor_snapshot(customer_id=customer.id, ean="871", our_price=11.0, fetched_at=FIXED_NOW)
        store.insert_competitor_snapshot(customer_id=customer.id, ean="872", our_price=5.0, fetched_at=FIXED_NOW)

        competitors = MarketplaceReportService(db_session, clock=clock).get_competitors(customer.id)

        prices = {c["ean"]: c["our_price"] for c in competitors}
        assert prices == {"871": 11.0, "872": 5.0}

    def test_sync_runs_newest_first(self, db_session, clock, customer_factory):
        customer = customer_factory()
        store = MarketplaceStore(db_session)
        store.record_sync_run(customer.id, "main", "ok", {}, FIXED_NOW - timedelta(hours=1), FIXED_NOW - timedelta(minutes=59))
        store.record_sync_run(customer.id, "complete", "partial", {"errors": 1}, FIXED_NOW, FIXED_NOW + timedelta(seconds=30))

        runs = MarketplaceReportService(db_session, clock=clock).get_sync_runs(customer.id)

        assert [r["sync_type"] for r in runs] == ["complete", "main"]
        assert runs[0]["duration_seconds"] == 30.0
        assert runs[0]["report"] == {"errors": 1}


def test_rank_trend():
    assert rank_trend(3, 5) == "up"
    assert rank_trend(5, 3) == "down"
    assert rank_trend(4, 4) == "stable"
    assert rank_trend(4, None) == "new"
    assert rank_trend(None, 4) == "new"
