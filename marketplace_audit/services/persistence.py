"""
Marketplace store

Thin persistence layer over the SQLAlchemy session: insert-returning-id,
update-by-filter and select-with-filter-order-limit. Snapshot, analysis and
time-series tables are append-only; "latest" is always resolved here at
read time (newest timestamp first, newest id breaking ties). Each write
commits on its own so one phase never rolls back another's rows.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from marketplace_audit.analysis.types import AnalysisResult
from marketplace_audit.models import (
    Analysis,
    CampaignPerformance,
    CompetitorSnapshot,
    KeywordPerformance,
    KeywordRanking,
    MarketplaceCustomer,
    RawSnapshot,
    SyncRun,
)
from marketplace_audit.utils.helpers import utcnow


def _value(enum_or_str) -> str:
    return getattr(enum_or_str, "value", enum_or_str)


class MarketplaceStore:
    """Reads and writes marketplace rows for one database session"""

    def __init__(self, db: Session):
        self.db = db

    def _add(self, row):
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    # Customers

    def get_customer(self, customer_id: int) -> Optional[MarketplaceCustomer]:
        return self.db.query(MarketplaceCustomer).filter(MarketplaceCustomer.id == customer_id).first()

    def list_customers(self, active_only: bool = False) -> List[MarketplaceCustomer]:
        query = self.db.query(MarketplaceCustomer)
        if active_only:
            query = query.filter(MarketplaceCustomer.active.is_(True))
        return query.order_by(MarketplaceCustomer.id.asc()).all()

    def mark_synced(self, customer_id: int, synced_at: Optional[datetime] = None) -> None:
        self.db.query(MarketplaceCustomer).filter(MarketplaceCustomer.id == customer_id).update(
            {MarketplaceCustomer.last_sync_at: synced_at or utcnow()}
        )
        self.db.commit()

    # Snapshots and analyses

    def insert_snapshot(
        self,
        customer_id: int,
        data_type,
        payload: Dict[str, Any],
        record_count: int,
        quality_score: Optional[float],
        fetched_at: Optional[datetime] = None,
    ) -> int:
        row = self._add(RawSnapshot(
            customer_id=customer_id,
            data_type=_value(data_type),
            raw_payload=payload,
            record_count=record_count,
            quality_score=quality_score,
            fetched_at=fetched_at or utcnow(),
        ))
        return row.id

    def latest_snapshot(self, customer_id: int, data_type) -> Optional[RawSnapshot]:
        return (
            self.db.query(RawSnapshot)
            .filter(RawSnapshot.customer_id == customer_id, RawSnapshot.data_type == _value(data_type))
            .order_by(RawSnapshot.fetched_at.desc(), RawSnapshot.id.desc())
            .first()
        )

    def insert_analysis(
        self,
        customer_id: int,
        category,
        result: AnalysisResult,
        snapshot_id: Optional[int] = None,
        analyzed_at: Optional[datetime] = None,
    ) -> int:
        row = self._add(Analysis(
            customer_id=customer_id,
            snapshot_id=snapshot_id,
            category=_value(category),
            score=result.score,
            findings=result.findings,
            recommendations=[r.to_dict() for r in result.recommendations],
            analyzed_at=analyzed_at or utcnow(),
        ))
        return row.id

    def latest_analyses(self, customer_id: int) -> Dict[str, Analysis]:
        """Most recent analysis per category"""
        rows = (
            self.db.query(Analysis)
            .filter(Analysis.customer_id == customer_id)
            .order_by(Analysis.analyzed_at.desc(), Analysis.id.desc())
            .all()
        )
        latest: Dict[str, Analysis] = {}
        for row in rows:
            latest.setdefault(row.category, row)
        return latest

    def recent_analyses(self, customer_id: int, category: Optional[str] = None, limit: int = 50) -> List[Analysis]:
        query = self.db.query(Analysis).filter(Analysis.customer_id == customer_id)
        if category:
            query = query.filter(Analysis.category == category)
        return query.order_by(Analysis.analyzed_at.desc(), Analysis.id.desc()).limit(limit).all()

    # Advertising time series

    def insert_campaign_rows(self, rows: Iterable[Dict[str, Any]]) -> int:
        objects = [CampaignPerformance(**row) for row in rows]
        self.db.add_all(objects)
        self.db.commit()
        return len(objects)

    def insert_keyword_rows(self, rows: Iterable[Dict[str, Any]]) -> int:
        objects = [KeywordPerformance(**row) for row in rows]
        self.db.add_all(objects)
        self.db.commit()
        return len(objects)

    def campaign_rows(self, customer_id: int, start=None, end=None) -> List[CampaignPerformance]:
        query = self.db.query(CampaignPerformance).filter(CampaignPerformance.customer_id == customer_id)
        if start is not None:
            query = query.filter(CampaignPerformance.period_start_date >= start)
        if end is not None:
            query = query.filter(CampaignPerformance.period_end_date <= end)
        return query.order_by(CampaignPerformance.synced_at.desc(), CampaignPerformance.id.desc()).all()

    def keyword_rows(self, customer_id: int, start=None, end=None) -> List[KeywordPerformance]:
        query = self.db.query(KeywordPerformance).filter(KeywordPerformance.customer_id == customer_id)
        if start is not None:
            query = query.filter(KeywordPerformance.period_start_date >= start)
        if end is not None:
            query = query.filter(KeywordPerformance.period_end_date <= end)
        return query.order_by(KeywordPerformance.synced_at.desc(), KeywordPerformance.id.desc()).all()

    # Competitive intelligence

    def insert_competitor_snapshot(self, **values) -> int:
        return self._add(CompetitorSnapshot(**values)).id

    def insert_rankings(self, rows: Iterable[Dict[str, Any]]) -> int:
        objects = [KeywordRanking(**row) for row in rows]
        self.db.add_all(objects)
        self.db.commit()
        return len(objects)

    def competitor_rows(self, customer_id: int) -> List[CompetitorSnapshot]:
        return (
            self.db.query(CompetitorSnapshot)
            .filter(CompetitorSnapshot.customer_id == customer_id)
            .order_by(CompetitorSnapshot.fetched_at.desc(), CompetitorSnapshot.id.desc())
            .all()
        )

    def ranking_rows(self, customer_id: int, since: datetime) -> List[KeywordRanking]:
        return (
            self.db.query(KeywordRanking)
            .filter(KeywordRanking.customer_id == customer_id, KeywordRanking.week_of >= since)
            .order_by(KeywordRanking.week_of.desc(), KeywordRanking.fetched_at.desc(), KeywordRanking.id.desc())
            .all()
        )

    # Sync runs

    def record_sync_run(
        self,
        customer_id: int,
        sync_type: str,
        status: str,
        report: Dict[str, Any],
        started_at: datetime,
        completed_at: datetime,
    ) -> int:
        row = self._add(SyncRun(
            customer_id=customer_id,
            sync_type=sync_type,
            status=status,
            report=report,
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=(completed_at - started_at).total_seconds(),
        ))
        return row.id

    def recent_sync_runs(self, customer_id: int, limit: int = 20) -> List[SyncRun]:
        return (
            self.db.query(SyncRun)
            .filter(SyncRun.customer_id == customer_id)
            .order_by(SyncRun.started_at.desc(), SyncRun.id.desc())
            .limit(limit)
            .all()
        )
