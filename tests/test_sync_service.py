"""
Sync orchestration tests against fake bol.com clients.

Guards against:
1. One failing phase aborting the rest of the main sync
2. Export jobs leaving 'pending' when their result could not be processed
3. A single bad EAN stopping the extended sync
"""
from datetime import date, datetime

import pytest

from marketplace_audit.analysis.records import (
    CompetingOffer,
    OfferInsight,
    PerformanceIndicator,
    PerformanceSubtotal,
    ProcessStatus,
    ProductRank,
    ProductRating,
)
from marketplace_audit.connectors.base_connector import MarketplaceAuthError
from marketplace_audit.models import (
    BackfillStatus,
    CampaignPerformance,
    CompetitorSnapshot,
    KeywordPerformance,
    KeywordRanking,
    MarketplaceCustomer,
    SyncJob,
    SyncRun,
)
from marketplace_audit.models.enums import DataType, JobStatus
from marketplace_audit.services.data_sync_service import (
    CustomerInactiveError,
    CustomerNotFoundError,
    MarketplaceSyncService,
)

from conftest import FIXED_NOW, FakeCredentialProvider, _run


LONG_TITLE = "Merk " + "x" * 155


def _sync_runs(db_session, customer):
    return db_session.query(SyncRun).filter(SyncRun.customer_id == customer.id).all()


# ────────────────────────────────────────────
# MAIN SYNC
# ────────────────────────────────────────────


class TestMainSync:

    def test_report_contains_every_phase(self, sync_service, retailer, customer_factory, db_session):
        customer = customer_factory()
        retailer.inventory = [{"ean": "871", "stock": {"actualStock": 40}, "offer": {"fulfilmentMethod": "FBB"}}]
        retailer.orders = [{"orderId": "1", "orderItems": [{"fulfilment": {"method": "FBB"}, "quantity": 1}]}]

        report = _run(sync_service.run(customer.id, "main"))

        assert report["customer_id"] == customer.id
        assert report["sync_type"] == "main"
        assert report["offers_export"]["status"] == "job_submitted"
        assert report["offers_export"]["process_status_id"] == "ps-1"
        assert report["inventory"]["status"] == "ok"
        assert report["inventory"]["items"] == 1
        assert report["orders"]["count"] == 1
        assert report["advertising"] == {"status": "skipped", "note": "No ads credentials"}
        assert report["returns"]["status"] == "ok"
        assert report["performance"]["status"] == "no_data"
        assert "duration_ms" in report

    def test_offers_export_job_is_pending(self, sync_service, customer_factory, db_session):
        customer = customer_factory()
        _run(sync_service.run(customer.id, "main"))

        job = db_session.query(SyncJob).filter(SyncJob.customer_id == customer.id).one()
        assert job.status == JobStatus.PENDING.value
        assert job.data_type == DataType.LISTINGS.value

    def test_failed_phase_does_not_stop_the_others(self, sync_service, retailer, customer_factory, db_session):
        customer = customer_factory()
        retailer.failures["get_inventory"] = RuntimeError("inventory endpoint down")

        report = _run(sync_service.run(customer.id, "main"))

        assert report["inventory"] == {"status": "failed", "error": "inventory endpoint down"}
        assert report["orders"]["status"] == "ok"
        assert report["returns"]["status"] == "ok"
        runs = _sync_runs(db_session, customer)
        assert len(runs) == 1
        assert runs[0].status == "partial"

    def test_failed_insert_does_not_poison_later_phases(self, sync_service, retailer, customer_factory, db_session):
        customer = customer_factory()
        # a set is not JSON serialisable, so the inventory snapshot flush fails
        retailer.inventory = [{"ean": "871", "stock": {"actualStock": 40}, "weird": {1, 2}}]
        retailer.orders = [{"orderId": "1", "orderItems": [{"fulfilment": {"method": "FBB"}, "quantity": 1}]}]

        report = _run(sync_service.run(customer.id, "main"))

        assert report["inventory"]["status"] == "failed"
        assert report["orders"]["status"] == "ok"
        assert report["returns"]["status"] == "ok"
        assert report["performance"]["status"] == "no_data"
        assert _sync_runs(db_session, customer)[0].status == "partial"

        db_session.expire_all()
        stored = db_session.query(MarketplaceCustomer).filter(MarketplaceCustomer.id == customer.id).one()
        assert stored.last_sync_at == FIXED_NOW

    def test_successful_run_is_recorded(self, sync_service, customer_factory, db_session):
        customer = customer_factory()
        _run(sync_service.run(customer.id, "main"))

        run = _sync_runs(db_session, customer)[0]
        assert run.sync_type == "main"
        assert run.status == "ok"
        assert run.started_at == FIXED_NOW
        assert run.report["inventory"]["status"] == "ok"

        db_session.expire_all()
        stored = db_session.query(MarketplaceCustomer).filter(MarketplaceCustomer.id == customer.id).one()
        assert stored.last_sync_at == FIXED_NOW

    def test_every_category_is_analysed(self, sync_service, customer_factory):
        customer = customer_factory()
        _run(sync_service.run(customer.id, "main"))

        latest = sync_service.store.latest_analyses(customer.id)
        assert set(latest) == {"inventory", "orders", "returns", "performance"}

    def test_performance_placeholder_when_no_indicators(self, sync_service, customer_factory):
        customer = customer_factory()
        report = _run(sync_service.run(customer.id, "main"))

        assert report["performance"]["score"] == 100
        analysis = sync_service.store.latest_analyses(customer.id)["performance"]
        assert analysis.score == 100
        assert analysis.findings["indicators_count"] == 0

    def test_performance_scores_previous_iso_week(self, sync_service, retailer, customer_factory):
        customer = customer_factory()
        retailer.indicators = {
            "CANCELLATION_RATE": PerformanceIndicator(name="CANCELLATION_RATE", score=0.5, norm=2.0, status="EXCELLENT"),
        }

        report = _run(sync_service.run(customer.id, "main"))

        assert report["performance"]["week"] == "2025-W10"
        assert report["performance"]["indicators"] == 1
        weeks = {(c[2], c[3]) for c in retailer.called("get_performance_indicator")}
        assert weeks == {(2025, 10)}

    def test_returns_fetch_open_and_handled(self, sync_service, retailer, customer_factory):
        customer = customer_factory()
        retailer.open_returns = [{"returnId": "r1", "returnReason": {"mainReason": "Defect"}}]
        retailer.handled_returns = [{"returnId": "r2"}, {"returnId": "r3"}]

        report = _run(sync_service.run(customer.id, "main"))

        assert report["returns"]["open"] == 1
        assert report["returns"]["handled"] == 2
        assert sorted(c[1] for c in retailer.called("get_returns")) == [False, True]


class TestAdvertisingPhase:

    def _seed(self, ads):
        ads.campaigns = [{"campaignId": "c1", "name": "Mokken", "status": "ENABLED", "dailyBudget": 10}]
        ads.ad_groups = {"c1": [{"adGroupId": "g1", "campaignId": "c1"}]}
        ads.keywords = {"g1": [{"keywordId": "k1", "keywordText": "mok", "bid": {"amount": 0.5}}]}
        ads.campaign_performance = {
            "c1": PerformanceSubtotal("c1", impressions=1000, clicks=50, spend=25.0, conversions=5, revenue=100.0),
        }

    def test_campaign_and_keyword_rows_are_written(self, sync_service, ads, customer_factory, db_session):
        customer = customer_factory(with_ads=True)
        self._seed(ads)

        report = _run(sync_service.run(customer.id, "main"))

        assert report["advertising"]["status"] == "ok"
        assert report["advertising"]["keywords"] == 1
        campaign = db_session.query(CampaignPerformance).filter(CampaignPerformance.customer_id == customer.id).one()
        assert campaign.campaign_id == "c1"
        assert campaign.roas == 4.0
        assert campaign.acos == 25.0
        assert campaign.ctr_pct == 5.0
        assert campaign.avg_cpc == 0.5
        assert campaign.cvr_pct == 10.0
        assert campaign.period_end_date == date(2025, 3, 12)

        keyword = db_session.query(KeywordPerformance).filter(KeywordPerformance.customer_id == customer.id).one()
        assert keyword.campaign_id == "c1"
        assert keyword.ad_group_id == "g1"
        assert keyword.bid == 0.5
        assert keyword.spend is None

    def test_first_run_backfills_then_goes_incremental(self, sync_service, ads, customer_factory, db_session):
        customer = customer_factory(with_ads=True)
        self._seed(ads)

        first = _run(sync_service.run(customer.id, "main"))
        second = _run(sync_service.run(customer.id, "main"))

        assert first["advertising"]["window"] == {"from": "2024-09-13", "to": "2025-03-12", "mode": "backfill"}
        assert second["advertising"]["window"]["mode"] == "incremental"
        status = db_session.query(BackfillStatus).filter(BackfillStatus.customer_id == customer.id).one()
        assert status.backfill_completed is True

    def test_failed_first_fetch_keeps_the_backfill(self, sync_service, ads, customer_factory, db_session):
        customer = customer_factory(with_ads=True)
        self._seed(ads)
        ads.failures["get_campaign_performance"] = RuntimeError("429 Too Many Requests")

        first = _run(sync_service.run(customer.id, "main"))
        assert first["advertising"]["status"] == "failed"
        assert db_session.query(BackfillStatus).filter(BackfillStatus.customer_id == customer.id).first() is None

        del ads.failures["get_campaign_performance"]
        second = _run(sync_service.run(customer.id, "main"))
        assert second["advertising"]["window"]["mode"] == "backfill"

    def test_listing_calls_are_paced(self, sync_service, ads, customer_factory):
        customer = customer_factory(with_ads=True)
        self._seed(ads)

        _run(sync_service.run(customer.id, "main"))

        # one pause after the ad-group call, one after the keyword call
        assert len(ads.pauses) == 2

    def test_ads_failure_is_isolated(self, sync_service, ads, customer_factory):
        customer = customer_factory(with_ads=True)
        ads.failures["list_campaigns"] = RuntimeError("ads api down")

        report = _run(sync_service.run(customer.id, "main"))

        assert report["advertising"]["status"] == "failed"
        assert report["returns"]["status"] == "ok"


# ────────────────────────────────────────────
# COMPLETE SYNC
# ────────────────────────────────────────────


class TestCompleteSync:

    def _submit(self, sync_service, retailer, customer):
        return _run(sync_service.jobs.submit(customer.id, DataType.LISTINGS.value, retailer))

    def test_no_pending_jobs(self, sync_service, customer_factory, db_session):
        customer = customer_factory()

        report = _run(sync_service.run(customer.id, "complete"))

        assert report["message"] == "No pending jobs for this customer"
        assert report["checked"] == 0
        assert _sync_runs(db_session, customer)[0].status == "ok"

    def test_finished_export_is_processed_and_completed(self, sync_service, retailer, customer_factory, db_session):
        customer = customer_factory()
        job = self._submit(sync_service, retailer, customer)
        retailer.process_statuses = [ProcessStatus(status="SUCCESS", entity_id="exp-1")]
        retailer.offers_export = [
            {"offerId": "o1", "ean": "871", "title": LONG_TITLE, "price": "12.50"},
            {"offerId": "o2", "ean": "872", "title": "Bord", "price": "4.00"},
        ]
        retailer.insights = {"o1": OfferInsight(offer_id="o1", visits=30)}

        report = _run(sync_service.run(customer.id, "complete"))

        assert report["checked"] == 1
        assert report["completed"] == 1
        assert report["results"][0]["detail"].startswith("2 offers processed, content score")
        stored = db_session.query(SyncJob).filter(SyncJob.id == job.id).one()
        assert stored.status == JobStatus.COMPLETED.value
        assert stored.entity_id == "exp-1"

        listings = sync_service.store.latest_snapshot(customer.id, DataType.LISTINGS)
        assert listings.record_count == 2
        insights = sync_service.store.latest_snapshot(customer.id, DataType.OFFER_INSIGHTS)
        assert insights.record_count == 1
        assert "content" in sync_service.store.latest_analyses(customer.id)
        assert retailer.called("get_offer_insights") == [("get_offer_insights", ("o1", "o2"))]

    def test_processing_error_keeps_job_pending(self, sync_service, retailer, customer_factory, db_session):
        customer = customer_factory()
        job = self._submit(sync_service, retailer, customer)
        retailer.process_statuses = [ProcessStatus(status="SUCCESS", entity_id="exp-1")]
        retailer.failures["download_offers_export"] = RuntimeError("download broke")

        report = _run(sync_service.run(customer.id, "complete"))

        assert report["errors"] == 1
        assert report["results"][0] == {"job_id": job.id, "status": "error", "detail": "download broke"}
        db_session.expire_all()
        stored = db_session.query(SyncJob).filter(SyncJob.id == job.id).one()
        assert stored.status == JobStatus.PENDING.value
        assert _sync_runs(db_session, customer)[0].status == "partial"

    def test_still_running_export_is_reported_pending(self, sync_service, retailer, customer_factory):
        customer = customer_factory()
        self._submit(sync_service, retailer, customer)

        report = _run(sync_service.run(customer.id, "complete"))

        assert report["still_pending"] == 1
        assert retailer.called("download_offers_export") == []

    def test_upstream_failure_is_reported(self, sync_service, retailer, customer_factory):
        customer = customer_factory()
        self._submit(sync_service, retailer, customer)
        retailer.process_statuses = [ProcessStatus(status="FAILURE", error_message="Export crashed")]

        report = _run(sync_service.run(customer.id, "complete"))

        assert report["failed"] == 1
        assert sync_service.jobs.pending_jobs(customer.id) == []


# ────────────────────────────────────────────
# EXTENDED SYNC
# ────────────────────────────────────────────


class TestExtendedSync:

    def _seed_listings(self, sync_service, customer, clock):
        offers = [
            {"offerId": "o1", "ean": "871", "title": LONG_TITLE},
            {"offerId": "o2", "ean": "872", "title": "Bord"},
            {"offerId": "o3", "ean": "871", "title": "Dubbel"},
        ]
        sync_service.store.insert_snapshot(customer.id, DataType.LISTINGS, {"offers": offers}, 3, 1.0, fetched_at=clock.now)

    def test_without_listings_snapshot_is_skipped(self, sync_service, retailer, customer_factory, db_session):
        customer = customer_factory()

        report = _run(sync_service.run(customer.id, "extended"))

        assert report["message"] == "No offers snapshot found - run main and complete sync first"
        assert report["status"] == "skipped"
        assert retailer.calls == []
        assert _sync_runs(db_session, customer)[0].status == "skipped"

    def test_competitors_skip_failing_ean(self, sync_service, retailer, customer_factory, clock, db_session):
        customer = customer_factory()
        self._seed_listings(sync_service, customer, clock)
        retailer.competing = {"871": [
            CompetingOffer(offer_id="o1", seller_id="me", price=12.5, is_buy_box_winner=True),
            CompetingOffer(offer_id="x", seller_id="s2", price=11.0),
        ]}
        retailer.ratings = {"871": ProductRating(score=4.5, count=10)}
        retailer.failing_eans = {"872"}

        report = _run(sync_service.run(customer.id, "extended"))

        assert report["products"] == 2
        assert report["competitors"]["status"] == "ok"
        assert report["competitors"]["updated"] == 1
        assert report["competitors"]["total"] == 2
        row = db_session.query(CompetitorSnapshot).filter(CompetitorSnapshot.customer_id == customer.id).one()
        assert row.ean == "871"
        assert row.offer_id == "o1"
        assert row.our_price == 12.5
        assert row.lowest_competing_price == 11.0
        assert row.buy_box_winner is True
        assert row.competitor_count == 2
        assert row.rating_score == 4.5
        assert 0.15 in retailer.pauses

    def test_rankings_store_search_and_browse(self, sync_service, retailer, customer_factory, clock, db_session):
        customer = customer_factory()
        self._seed_listings(sync_service, customer, clock)
        retailer.ranks = {
            ("871", "SEARCH"): [ProductRank(rank=3, impressions=100, week_of="2025-03-10")],
            ("871", "BROWSE"): [ProductRank(rank=12)],
        }

        report = _run(sync_service.run(customer.id, "extended"))

        assert report["rankings"]["ranked"] == 1
        rows = {
            r.search_type: r
            for r in db_session.query(KeywordRanking).filter(KeywordRanking.customer_id == customer.id).all()
        }
        assert rows["SEARCH"].rank == 3
        assert rows["SEARCH"].week_of == datetime(2025, 3, 10)
        assert rows["BROWSE"].week_of == datetime(2025, 3, 12)

    def test_catalog_and_forecast_snapshot(self, sync_service, retailer, customer_factory, clock):
        customer = customer_factory()
        self._seed_listings(sync_service, customer, clock)
        retailer.catalog = {"871": {"title": "Mok"}}
        retailer.forecasts = {"o1": [{"weeksAhead": 1, "value": 5}]}

        report = _run(sync_service.run(customer.id, "extended"))

        assert report["catalog"]["catalog_items"] == 1
        assert report["catalog"]["forecasts"] == 1
        snapshot = sync_service.store.latest_snapshot(customer.id, DataType.CATALOG)
        assert snapshot.raw_payload["catalog"] == {"871": {"title": "Mok"}}
        assert snapshot.raw_payload["forecast"] == {"o1": [{"weeksAhead": 1, "value": 5}]}
        assert [c[2] for c in retailer.called("get_sales_forecast")] == [4, 4]


# ────────────────────────────────────────────
# ENTRY POINTS
# ────────────────────────────────────────────


class TestEntryPoints:

    def test_unknown_customer(self, sync_service):
        with pytest.raises(CustomerNotFoundError):
            _run(sync_service.run(999, "main"))

    def test_inactive_customer(self, sync_service, customer_factory):
        customer = customer_factory(active=False)
        with pytest.raises(CustomerInactiveError):
            _run(sync_service.run(customer.id, "main"))

    def test_unknown_sync_type(self, sync_service, customer_factory):
        customer = customer_factory()
        with pytest.raises(ValueError):
            _run(sync_service.run(customer.id, "weekly"))

    def test_token_failure_aborts_the_run(self, db_session, retailer, ads, clock, customer_factory):
        customer = customer_factory()
        service = MarketplaceSyncService(
            db_session,
            credentials=FakeCredentialProvider(clock=clock, fail=True),
            retailer_factory=lambda token: retailer,
            ads_factory=lambda token: ads,
            clock=clock,
        )
        with pytest.raises(MarketplaceAuthError):
            _run(service.run(customer.id, "main"))
        assert retailer.calls == []
        assert _sync_runs(db_session, customer) == []

    def test_retailer_token_is_reused_between_runs(self, sync_service, credentials, customer_factory):
        customer = customer_factory()
        _run(sync_service.run(customer.id, "main"))
        _run(sync_service.run(customer.id, "main"))
        assert credentials.requests == [customer.bol_client_id]

    def test_sync_all_customers(self, sync_service, customer_factory, db_session):
        first = customer_factory("First")
        customer_factory("Paused", active=False)
        broken = customer_factory("Broken")
        broken.bol_client_secret = ""
        db_session.commit()

        results = _run(sync_service.sync_all_customers("main"))

        assert [r["customer_id"] for r in results] == [first.id, broken.id]
        assert results[0]["status"] == "ok"
        assert results[0]["seller_name"] == "First"
        assert results[1]["status"] == "error"
        assert "credentials are not configured" in results[1]["detail"]
