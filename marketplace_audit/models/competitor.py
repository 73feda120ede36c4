"""
Competitive intelligence models

Per (customer, EAN) periodic facts from the extended sync. Append-only;
readers take the latest row per key.
"""
from sqlalchemy import Column, Integer, String, Float, DateTime, JSON, Boolean, ForeignKey, Index
from datetime import datetime

from marketplace_audit.models.base import Base


class CompetitorSnapshot(Base):
    """Competing offers and rating for one product at fetch time"""
    __tablename__ = "marketplace_competitor_snapshots"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("marketplace_customers.id", ondelete="CASCADE"), nullable=False)
    ean = Column(String, nullable=False)
    offer_id = Column(String, nullable=True)  # Our offer on this EAN

    our_price = Column(Float, nullable=True)
    lowest_competing_price = Column(Float, nullable=True)
    buy_box_winner = Column(Boolean, default=False)
    competitor_count = Column(Integer, default=0)
    competitor_prices = Column(JSON, nullable=True)  # [{offerId, sellerId, price, condition, isBuyBoxWinner}]

    rating_score = Column(Float, nullable=True)
    rating_count = Column(Integer, nullable=True)

    fetched_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_marketplace_competitors_customer_ean", "customer_id", "ean", "fetched_at"),
    )


class KeywordRanking(Base):
    """Weekly search / browse rank for one product"""
    __tablename__ = "marketplace_keyword_rankings"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("marketplace_customers.id", ondelete="CASCADE"), nullable=False)
    ean = Column(String, nullable=False)
    search_type = Column(String, nullable=False)  # SEARCH, BROWSE
    rank = Column(Integer, nullable=True)
    impressions = Column(Integer, nullable=True)
    week_of = Column(DateTime, nullable=False)
    fetched_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_marketplace_rankings_customer_ean", "customer_id", "ean", "week_of"),
    )
