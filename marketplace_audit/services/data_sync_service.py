"""
Marketplace Synchronization Service
Orchestrates bol.com syncs per customer and persists snapshots + analyses

Three independently triggerable sync types:
    main      offers export submit, inventory, orders, advertising,
              returns + performance indicators (concurrently)
    complete  polls pending export jobs and processes finished exports
              (offers CSV + offer insights -> content analysis)
    extended  per-EAN competitor offers, ratings, search/browse ranks, and
              catalog content + sales forecasts for the top products

Customers are processed one at a time. Within a customer every phase is
isolated by the PhaseSupervisor, so one category failing never stops the
others from being fetched and scored.
"""
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
import asyncio
import time

from dateutil import parser as date_parser
from sqlalchemy.orm import Session

from marketplace_audit.analysis import (
    analyze_advertising,
    analyze_content,
    analyze_inventory,
    analyze_orders,
    analyze_performance,
    analyze_returns,
    placeholder_performance,
)
from marketplace_audit.analysis.records import Campaign, Keyword, OfferRow, PerformanceSubtotal, coerce_records
from marketplace_audit.config import get_settings
from marketplace_audit.connectors.base_connector import SleepFunc
from marketplace_audit.connectors.bol_advertising import BolAdvertisingClient
from marketplace_audit.connectors.bol_auth import CredentialProvider
from marketplace_audit.connectors.bol_retailer import BolRetailerClient
from marketplace_audit.models import MarketplaceCustomer
from marketplace_audit.models.enums import Category, DataType, PhaseStatus, SearchType, SyncType
from marketplace_audit.services.backfill_planner import BackfillPlanner, DateWindow
from marketplace_audit.services.job_tracker import JobTracker
from marketplace_audit.services.persistence import MarketplaceStore
from marketplace_audit.services.sync_phases import PhaseSkipped, PhaseSupervisor, SyncPhase
from marketplace_audit.utils.helpers import round_half_up
from marketplace_audit.utils.logger import log

settings = get_settings()

# Shared across service instances so tokens survive between scheduled runs
_default_credentials = CredentialProvider()


class CustomerNotFoundError(LookupError):
    pass


class CustomerInactiveError(ValueError):
    pass


def _metric_ratio(numerator: float, denominator: float, scale: float = 1, digits: int = 4) -> Optional[float]:
    if not denominator:
        return None
    return round_half_up(numerator / denominator * scale, digits)


class MarketplaceSyncService:
    """
    Runs bol.com syncs for marketplace customers

    Clients, credentials, clock and sleep are injectable so the whole
    orchestration can run against fakes.
    """

    def __init__(
        self,
        db: Session,
        credentials: Optional[CredentialProvider] = None,
        retailer_factory: Optional[Callable[[str], Any]] = None,
        ads_factory: Optional[Callable[[str], Any]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        self.db = db
        self.store = MarketplaceStore(db)
        self.credentials = credentials or _default_credentials
        self._clock = clock or datetime.utcnow
        self._retailer_factory = retailer_factory or (lambda token: BolRetailerClient(token, sleep=sleep))
        self._ads_factory = ads_factory or (lambda token: BolAdvertisingClient(token, sleep=sleep))
        self.jobs = JobTracker(db, clock=self._clock)
        self.planner = BackfillPlanner(db, clock=self._clock)

    # Entry points

    def load_customer(self, customer_id: int) -> MarketplaceCustomer:
        customer = self.store.get_customer(customer_id)
        if customer is None:
            raise CustomerNotFoundError(f"Customer {customer_id} not found")
        if not customer.active:
            raise CustomerInactiveError(f"Customer {customer_id} is inactive")
        return customer

    async def run(self, customer_id: int, sync_type: str) -> Dict[str, Any]:
        """
        Run one sync type for one customer and record the run.

        Raises CustomerNotFoundError / CustomerInactiveError for unknown or
        inactive customers and MarketplaceAuthError when the retailer token
        cannot be obtained. Everything else is reported per phase.
        """
        sync_type = SyncType(sync_type).value
        customer = self.load_customer(customer_id)
        started_at = self._clock()
        start = time.monotonic()

        if sync_type == SyncType.MAIN.value:
            report, status = await self.run_main(customer)
        elif sync_type == SyncType.COMPLETE.value:
            report, status = await self.run_complete(customer)
        else:
            report, status = await self.run_extended(customer)

        report["duration_ms"] = int((time.monotonic() - start) * 1000)
        try:
            self.store.record_sync_run(customer.id, sync_type, status, report, started_at, self._clock())
        except Exception as e:
            self.db.rollback()
            log.error(f"Failed to record {sync_type} sync run for customer {customer.id}: {str(e)}")

        log.info(f"{sync_type} sync for customer {customer.id} finished: {status} in {report['duration_ms']}ms")
        return report

    async def sync_all_customers(self, sync_type: str = SyncType.MAIN.value) -> List[Dict[str, Any]]:
        """Run a sync type for every active customer, one at a time"""
        results = []
        customers = self.store.list_customers(active_only=True)
        log.info(f"Starting {sync_type} sync for {len(customers)} active customers")

        for customer in customers:
            try:
                report = await self.run(customer.id, sync_type)
                results.append({"customer_id": customer.id, "seller_name": customer.seller_name,
                                "status": "ok", "detail": report})
            except Exception as e:
                self.db.rollback()
                log.error(f"{sync_type} sync failed for customer {customer.id}: {str(e)}")
                results.append({"customer_id": customer.id, "seller_name": customer.seller_name,
                                "status": "error", "detail": str(e)})

        ok = sum(1 for r in results if r["status"] == "ok")
        log.info(f"{sync_type} sync complete: {ok}/{len(results)} customers ok")
        return results

    async def _retailer_client(self, customer: MarketplaceCustomer):
        token = await self.credentials.get_retailer_token(customer.bol_client_id, customer.bol_client_secret)
        return self._retailer_factory(token)

    def _base_report(self, customer: MarketplaceCustomer, sync_type: str) -> Dict[str, Any]:
        return {
            "customer_id": customer.id,
            "seller_name": customer.seller_name,
            "sync_type": sync_type,
            "started_at": self._clock().isoformat(),
        }

    # Main sync

    async def run_main(self, customer: MarketplaceCustomer):
        retailer = await self._retailer_client(customer)
        supervisor = PhaseSupervisor(customer.id, SyncType.MAIN.value, self.db)

        await supervisor.run([
            SyncPhase("offers_export", lambda: self._submit_offers_export(customer, retailer)),
            SyncPhase("inventory", lambda: self._sync_inventory(customer, retailer)),
            SyncPhase("orders", lambda: self._sync_orders(customer, retailer)),
            SyncPhase("advertising", lambda: self._sync_advertising(customer)),
            [
                SyncPhase("returns", lambda: self._sync_returns(customer, retailer)),
                SyncPhase("performance", lambda: self._sync_performance(customer, retailer)),
            ],
        ])

        self.store.mark_synced(customer.id, self._clock())
        report = self._base_report(customer, SyncType.MAIN.value)
        report.update(supervisor.report())
        return report, supervisor.overall_status()

    async def _submit_offers_export(self, customer, retailer) -> Dict[str, Any]:
        job = await self.jobs.submit(customer.id, DataType.LISTINGS.value, retailer)
        return {
            "status": PhaseStatus.JOB_SUBMITTED.value,
            "job_id": job.id,
            "process_status_id": job.process_status_id,
            "note": "Run the complete sync in 1-5 minutes",
        }

    async def _sync_inventory(self, customer, retailer) -> Dict[str, Any]:
        items = await retailer.get_inventory()
        result = analyze_inventory(items)
        snapshot_id = self.store.insert_snapshot(
            customer.id, DataType.INVENTORY, {"items": items}, len(items),
            1.0 if items else 0.5, fetched_at=self._clock(),
        )
        self.store.insert_analysis(customer.id, Category.INVENTORY, result, snapshot_id, analyzed_at=self._clock())
        return {"items": len(items), "score": result.score}

    async def _sync_orders(self, customer, retailer) -> Dict[str, Any]:
        orders = await retailer.get_orders()
        result = analyze_orders(orders)
        snapshot_id = self.store.insert_snapshot(
            customer.id, DataType.ORDERS, {"orders": orders}, len(orders), 1.0, fetched_at=self._clock(),
        )
        self.store.insert_analysis(customer.id, Category.ORDERS, result, snapshot_id, analyzed_at=self._clock())
        return {"count": len(orders), "score": result.score}

    async def _sync_advertising(self, customer) -> Dict[str, Any]:
        if not customer.has_ads_credentials:
            raise PhaseSkipped("No ads credentials")

        token = await self.credentials.get_ads_token(customer.ads_client_id, customer.ads_client_secret)
        ads = self._ads_factory(token)

        campaigns = await ads.list_campaigns()
        tracked = [c for c in coerce_records(campaigns, Campaign) if c.campaign_id][:settings.max_campaigns_per_sync]

        ad_groups: List[Dict] = []
        for campaign in tracked:
            ad_groups.extend(await ads.list_ad_groups(campaign.campaign_id))
            await ads.pause()

        keywords: List[Dict] = []
        for group in ad_groups[:settings.max_ad_groups_per_sync]:
            group_id = group.get("adGroupId")
            if not group_id:
                continue
            for raw in await ads.list_keywords(str(group_id)):
                keywords.append({"campaignId": group.get("campaignId"), "adGroupId": group_id, **raw})
            await ads.pause()
        typed_keywords = [k for k in coerce_records(keywords, Keyword) if k.keyword_id]

        window = self.planner.plan_window(customer.id, record=False)
        campaign_perf = await ads.get_campaign_performance([c.campaign_id for c in tracked], window.date_from, window.date_to)
        keyword_perf = await ads.get_keyword_performance([k.keyword_id for k in typed_keywords], window.date_from, window.date_to)

        synced_at = self._clock()
        self.store.insert_campaign_rows(self._campaign_rows(customer.id, tracked, campaign_perf, window, synced_at))
        self.store.insert_keyword_rows(self._keyword_rows(customer.id, typed_keywords, keyword_perf, window, synced_at))
        self.planner.record_backfill(customer.id, window)

        performance = [p for p in campaign_perf.values() if p is not None]
        result = analyze_advertising(campaigns, ad_groups, performance)
        snapshot_id = self.store.insert_snapshot(
            customer.id,
            DataType.ADVERTISING,
            {
                "campaigns": campaigns,
                "ad_groups": ad_groups,
                "keywords": keywords,
                "performance": [p.to_dict() for p in performance],
                "window": window.to_dict(),
            },
            len(campaigns),
            1.0,
            fetched_at=synced_at,
        )
        self.store.insert_analysis(customer.id, Category.ADVERTISING, result, snapshot_id, analyzed_at=synced_at)
        return {
            "campaigns": len(campaigns),
            "ad_groups": len(ad_groups),
            "keywords": len(typed_keywords),
            "window": window.to_dict(),
            "score": result.score,
        }

    def _campaign_rows(
        self,
        customer_id: int,
        campaigns: List[Campaign],
        performance: Dict[str, Optional[PerformanceSubtotal]],
        window: DateWindow,
        synced_at: datetime,
    ) -> List[Dict[str, Any]]:
        rows = []
        for campaign in campaigns:
            perf = performance.get(campaign.campaign_id)
            row: Dict[str, Any] = {
                "customer_id": customer_id,
                "campaign_id": campaign.campaign_id,
                "campaign_name": campaign.name,
                "campaign_type": campaign.campaign_type,
                "state": campaign.status,
                "budget": campaign.daily_budget or None,
                "period_start_date": window.date_from,
                "period_end_date": window.date_to,
                "synced_at": synced_at,
            }
            if perf is not None:
                row.update({
                    "spend": perf.spend,
                    "impressions": perf.impressions,
                    "clicks": perf.clicks,
                    "revenue": perf.revenue,
                    "conversions": perf.conversions,
                    "ctr_pct": _metric_ratio(perf.clicks, perf.impressions, 100),
                    "avg_cpc": _metric_ratio(perf.spend, perf.clicks),
                    "roas": _metric_ratio(perf.revenue, perf.spend),
                    "acos": _metric_ratio(perf.spend, perf.revenue, 100),
                    "cvr_pct": _metric_ratio(perf.conversions, perf.clicks, 100),
                })
            rows.append(row)
        return rows

    def _keyword_rows(
        self,
        customer_id: int,
        keywords: List[Keyword],
        performance: Dict[str, Optional[PerformanceSubtotal]],
        window: DateWindow,
        synced_at: datetime,
    ) -> List[Dict[str, Any]]:
        rows = []
        for keyword in keywords:
            perf = performance.get(keyword.keyword_id)
            row: Dict[str, Any] = {
                "customer_id": customer_id,
                "keyword_id": keyword.keyword_id,
                "keyword_text": keyword.keyword_text,
                "match_type": keyword.match_type,
                "campaign_id": keyword.campaign_id or None,
                "ad_group_id": keyword.ad_group_id or None,
                "bid": keyword.bid,
                "state": keyword.state,
                "period_start_date": window.date_from,
                "period_end_date": window.date_to,
                "synced_at": synced_at,
            }
            if perf is not None:
                row.update({
                    "spend": perf.spend,
                    "impressions": perf.impressions,
                    "clicks": perf.clicks,
                    "revenue": perf.revenue,
                    "conversions": perf.conversions,
                    "acos": _metric_ratio(perf.spend, perf.revenue, 100),
                })
            rows.append(row)
        return rows

    async def _sync_returns(self, customer, retailer) -> Dict[str, Any]:
        open_returns, handled_returns = await asyncio.gather(
            retailer.get_returns(handled=False),
            retailer.get_returns(handled=True),
        )
        result = analyze_returns(open_returns, handled_returns)
        self.store.insert_analysis(customer.id, Category.RETURNS, result, analyzed_at=self._clock())
        return {"open": len(open_returns), "handled": len(handled_returns), "score": result.score}

    async def _sync_performance(self, customer, retailer) -> Dict[str, Any]:
        # The current week is still incomplete upstream; score last week
        year, week, _ = (self._clock() - timedelta(days=7)).isocalendar()
        fetched = await asyncio.gather(
            *(retailer.get_performance_indicator(name, year, week) for name in settings.indicator_names)
        )
        indicators = [i for i in fetched if i is not None]

        if not indicators:
            self.store.insert_analysis(customer.id, Category.PERFORMANCE, placeholder_performance(), analyzed_at=self._clock())
            return {
                "status": PhaseStatus.NO_DATA.value,
                "note": "Placeholder stored so readers can render",
                "score": placeholder_performance().score,
            }

        result = analyze_performance(indicators)
        self.store.insert_analysis(customer.id, Category.PERFORMANCE, result, analyzed_at=self._clock())
        return {"indicators": len(indicators), "week": f"{year}-W{week:02d}", "score": result.score}

    # Complete sync

    async def run_complete(self, customer: MarketplaceCustomer):
        report = self._base_report(customer, SyncType.COMPLETE.value)
        pending = self.jobs.pending_jobs(customer.id)
        if not pending:
            report.update({"message": "No pending jobs for this customer", "checked": 0, "results": []})
            return report, "ok"

        retailer = await self._retailer_client(customer)
        results = []

        for job in pending:
            try:
                poll = await self.jobs.poll(job, retailer)
                if poll.status == "success":
                    detail = await self._process_offers_export(customer, retailer, poll.result_ref)
                    self.jobs.complete(job, poll.result_ref)
                    results.append({"job_id": job.id, "status": "completed", "detail": detail})
                elif poll.status == "failure":
                    results.append({"job_id": job.id, "status": "failed", "detail": poll.detail})
                else:
                    results.append({"job_id": job.id, "status": "pending", "detail": poll.detail})
            except Exception as e:
                # Job stays pending; the next complete run retries it
                self.db.rollback()
                log.error(f"Processing export job {job.id} for customer {customer.id} failed: {str(e)}")
                results.append({"job_id": job.id, "status": "error", "detail": str(e)})

        statuses = [r["status"] for r in results]
        report.update({
            "checked": len(pending),
            "completed": statuses.count("completed"),
            "still_pending": statuses.count("pending"),
            "failed": statuses.count("failed"),
            "errors": statuses.count("error"),
            "results": results,
        })
        status = "partial" if "error" in statuses or "failed" in statuses else "ok"
        return report, status

    async def _process_offers_export(self, customer, retailer, entity_id: str) -> str:
        offers = await retailer.download_offers_export(entity_id)
        offer_ids = [row.offer_id for row in coerce_records(offers, OfferRow) if row.offer_id]

        insights = await retailer.get_offer_insights(offer_ids) if offer_ids else {}
        found = {offer_id: insight for offer_id, insight in insights.items() if insight is not None}
        if found:
            self.store.insert_snapshot(
                customer.id,
                DataType.OFFER_INSIGHTS,
                {"insights": {offer_id: insight.to_dict() for offer_id, insight in found.items()}},
                len(found),
                1.0,
                fetched_at=self._clock(),
            )

        result = analyze_content(offers, insights)
        snapshot_id = self.store.insert_snapshot(
            customer.id, DataType.LISTINGS, {"offers": offers}, len(offers),
            1.0 if offers else 0.5, fetched_at=self._clock(),
        )
        self.store.insert_analysis(customer.id, Category.CONTENT, result, snapshot_id, analyzed_at=self._clock())
        return f"{len(offers)} offers processed, content score {result.score}"

    # Extended sync

    async def run_extended(self, customer: MarketplaceCustomer):
        report = self._base_report(customer, SyncType.EXTENDED.value)
        snapshot = self.store.latest_snapshot(customer.id, DataType.LISTINGS)
        offers = []
        if snapshot is not None:
            offers = (snapshot.raw_payload or {}).get("offers") or []
        if not offers:
            report["status"] = PhaseStatus.SKIPPED.value
            report["message"] = "No offers snapshot found - run main and complete sync first"
            return report, PhaseStatus.SKIPPED.value

        ean_offers: Dict[str, str] = {}
        for row in coerce_records(offers, OfferRow):
            if row.ean and row.ean not in ean_offers:
                ean_offers[row.ean] = row.offer_id
            if len(ean_offers) >= settings.extended_max_products:
                break
        eans = list(ean_offers)

        retailer = await self._retailer_client(customer)
        supervisor = PhaseSupervisor(customer.id, SyncType.EXTENDED.value, self.db)
        await supervisor.run([
            SyncPhase("competitors", lambda: self._sync_competitors(customer, retailer, eans, ean_offers)),
            SyncPhase("rankings", lambda: self._sync_rankings(customer, retailer, eans)),
            SyncPhase("catalog", lambda: self._sync_catalog(customer, retailer, eans, ean_offers)),
        ])

        report["products"] = len(eans)
        report.update(supervisor.report())
        return report, supervisor.overall_status()

    async def _sync_competitors(self, customer, retailer, eans: List[str], ean_offers: Dict[str, str]) -> Dict[str, Any]:
        updated = 0
        for ean in eans:
            try:
                competing, rating = await asyncio.gather(
                    retailer.get_competing_offers(ean),
                    retailer.get_product_ratings(ean),
                )
                our_offer_id = ean_offers.get(ean) or None
                our_price = None
                buy_box_winner = False
                prices = [o.price for o in competing if o.price is not None]
                for offer in competing:
                    if our_offer_id and offer.offer_id == our_offer_id and offer.price is not None:
                        our_price = offer.price
                        buy_box_winner = offer.is_buy_box_winner

                self.store.insert_competitor_snapshot(
                    customer_id=customer.id,
                    ean=ean,
                    offer_id=our_offer_id,
                    our_price=our_price,
                    lowest_competing_price=min(prices) if prices else None,
                    buy_box_winner=buy_box_winner,
                    competitor_count=len(competing),
                    competitor_prices=[o.to_dict() for o in competing],
                    rating_score=rating.score if rating else None,
                    rating_count=rating.count if rating else None,
                    fetched_at=self._clock(),
                )
                updated += 1
            except Exception as e:
                self.db.rollback()
                log.warning(f"Competitor fetch for EAN {ean} (customer {customer.id}) skipped: {str(e)}")
            await retailer.pause(settings.bol_extended_delay_seconds)
        return {"updated": updated, "total": len(eans), "summary": f"{updated}/{len(eans)} EANs updated"}

    async def _sync_rankings(self, customer, retailer, eans: List[str]) -> Dict[str, Any]:
        today = self._clock().date()
        week_start = datetime.combine(today, datetime.min.time())
        ranked = 0
        for ean in eans:
            try:
                search_ranks, browse_ranks = await asyncio.gather(
                    retailer.get_product_ranks(ean, SearchType.SEARCH.value, today),
                    retailer.get_product_ranks(ean, SearchType.BROWSE.value, today),
                )
                rows = []
                for search_type, ranks in ((SearchType.SEARCH, search_ranks), (SearchType.BROWSE, browse_ranks)):
                    for rank in ranks:
                        rows.append({
                            "customer_id": customer.id,
                            "ean": ean,
                            "search_type": search_type.value,
                            "rank": rank.rank,
                            "impressions": rank.impressions,
                            "week_of": date_parser.parse(rank.week_of).replace(tzinfo=None) if rank.week_of else week_start,
                            "fetched_at": self._clock(),
                        })
                if rows:
                    self.store.insert_rankings(rows)
                    ranked += 1
            except Exception as e:
                self.db.rollback()
                log.warning(f"Rank fetch for EAN {ean} (customer {customer.id}) skipped: {str(e)}")
            await retailer.pause()
        return {"ranked": ranked, "total": len(eans), "summary": f"{ranked}/{len(eans)} EANs ranked"}

    async def _sync_catalog(self, customer, retailer, eans: List[str], ean_offers: Dict[str, str]) -> Dict[str, Any]:
        top = eans[:settings.extended_catalog_products]
        catalog: Dict[str, Any] = {}
        forecast: Dict[str, Any] = {}

        for ean in top:
            try:
                product = await retailer.get_catalog_product(ean)
                if product:
                    catalog[ean] = product
            except Exception as e:
                log.warning(f"Catalog fetch for EAN {ean} skipped: {str(e)}")
            await retailer.pause(settings.bol_extended_delay_seconds)

        for ean in top:
            offer_id = ean_offers.get(ean)
            if not offer_id:
                continue
            try:
                periods = await retailer.get_sales_forecast(offer_id, settings.forecast_weeks_ahead)
                if periods:
                    forecast[offer_id] = periods
            except Exception as e:
                log.warning(f"Sales forecast for offer {offer_id} skipped: {str(e)}")
            await retailer.pause(settings.bol_extended_delay_seconds)

        if catalog or forecast:
            self.store.insert_snapshot(
                customer.id, DataType.CATALOG, {"catalog": catalog, "forecast": forecast},
                len(catalog), 1.0, fetched_at=self._clock(),
            )
        return {
            "catalog_items": len(catalog),
            "forecasts": len(forecast),
            "summary": f"{len(catalog)} catalog items, {len(forecast)} forecasts",
        }
