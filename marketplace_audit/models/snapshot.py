"""
Raw snapshot and analysis models

Both tables are append-only. "Latest per category" is resolved at read time
by ordering on analyzed_at / fetched_at, never by updating rows in place.
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, JSON, ForeignKey, Index
from datetime import datetime

from marketplace_audit.models.base import Base


class RawSnapshot(Base):
    """
    Raw upstream payload from one successful fetch

    quality_score is a 0-1 confidence heuristic (0.5 when zero records came
    back but zero is plausible).
    """
    __tablename__ = "marketplace_raw_snapshots"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("marketplace_customers.id", ondelete="CASCADE"), nullable=False)
    data_type = Column(String, nullable=False)
    raw_payload = Column(JSON, nullable=False)
    record_count = Column(Integer, default=0)
    quality_score = Column(Float, nullable=True)
    fetched_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_marketplace_snapshots_customer_type", "customer_id", "data_type", "fetched_at"),
    )


class Analysis(Base):
    """
    Scored analysis for one category, derived from at most one snapshot
    """
    __tablename__ = "marketplace_analyses"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("marketplace_customers.id", ondelete="CASCADE"), nullable=False)
    snapshot_id = Column(Integer, ForeignKey("marketplace_raw_snapshots.id", ondelete="SET NULL"), nullable=True)
    category = Column(String, nullable=False)
    score = Column(Integer, nullable=False)  # 0-100
    findings = Column(JSON, nullable=False, default=dict)
    recommendations = Column(JSON, nullable=False, default=list)
    analyzed_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_marketplace_analyses_customer_category", "customer_id", "category", "analyzed_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "snapshot_id": self.snapshot_id,
            "category": self.category,
            "score": self.score,
            "findings": self.findings,
            "recommendations": self.recommendations,
            "analyzed_at": self.analyzed_at.isoformat() if self.analyzed_at else None,
        }
