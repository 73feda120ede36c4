"""
Advertising time-series models

One row per campaign / keyword per sync run, keyed by the reporting period.
Duplicates across runs are expected; readers keep the latest row per entity
by synced_at, or aggregate within a period.
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, Date, ForeignKey, Index
from datetime import datetime

from marketplace_audit.models.base import Base


class CampaignPerformance(Base):
    """Sponsored-products campaign metrics for one reporting period"""
    __tablename__ = "marketplace_campaign_performance"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("marketplace_customers.id", ondelete="CASCADE"), nullable=False)

    campaign_id = Column(String, nullable=False)
    campaign_name = Column(String, nullable=True)
    campaign_type = Column(String, nullable=True)  # MANUAL, AUTOMATIC
    state = Column(String, nullable=True)  # ENABLED, PAUSED, ARCHIVED
    budget = Column(Float, nullable=True)  # Daily budget (EUR)

    # Metrics are null when the entity was missing from the upstream batch
    spend = Column(Float, nullable=True)
    impressions = Column(Integer, nullable=True)
    clicks = Column(Integer, nullable=True)
    ctr_pct = Column(Float, nullable=True)
    avg_cpc = Column(Float, nullable=True)
    revenue = Column(Float, nullable=True)
    roas = Column(Float, nullable=True)
    acos = Column(Float, nullable=True)
    conversions = Column(Integer, nullable=True)
    cvr_pct = Column(Float, nullable=True)

    period_start_date = Column(Date, nullable=False)
    period_end_date = Column(Date, nullable=False)
    synced_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_marketplace_camp_perf_entity", "customer_id", "campaign_id", "synced_at"),
        Index("ix_marketplace_camp_perf_period", "customer_id", "period_start_date", "period_end_date"),
    )


class KeywordPerformance(Base):
    """Sponsored-products keyword metrics for one reporting period"""
    __tablename__ = "marketplace_keyword_performance"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("marketplace_customers.id", ondelete="CASCADE"), nullable=False)

    keyword_id = Column(String, nullable=False)
    keyword_text = Column(String, nullable=True)
    match_type = Column(String, nullable=True)  # EXACT, PHRASE
    campaign_id = Column(String, nullable=True)
    ad_group_id = Column(String, nullable=True)
    bid = Column(Float, nullable=True)
    state = Column(String, nullable=True)

    spend = Column(Float, nullable=True)
    impressions = Column(Integer, nullable=True)
    clicks = Column(Integer, nullable=True)
    revenue = Column(Float, nullable=True)
    acos = Column(Float, nullable=True)
    conversions = Column(Integer, nullable=True)

    period_start_date = Column(Date, nullable=False)
    period_end_date = Column(Date, nullable=False)
    synced_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_marketplace_kw_perf_entity", "customer_id", "keyword_id", "synced_at"),
        Index("ix_marketplace_kw_perf_period", "customer_id", "period_start_date", "period_end_date"),
    )
