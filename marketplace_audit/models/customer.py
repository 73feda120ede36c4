"""
Marketplace customer (bol.com seller account) model
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from datetime import datetime

from marketplace_audit.models.base import Base


class MarketplaceCustomer(Base):
    """
    A bol.com seller account that is synced and scored.

    Retailer API and Advertising API use separate OAuth client credentials;
    advertising credentials are either both set or both empty.
    """
    __tablename__ = "marketplace_customers"

    id = Column(Integer, primary_key=True, index=True)
    seller_name = Column(String, nullable=False)

    # Retailer API credentials
    bol_client_id = Column(String, unique=True, nullable=False)
    bol_client_secret = Column(String, nullable=False)

    # Advertising API credentials (optional)
    ads_client_id = Column(String, nullable=True)
    ads_client_secret = Column(String, nullable=True)

    active = Column(Boolean, default=True, index=True, nullable=False)
    sync_interval_hours = Column(Integer, default=24, nullable=False)
    last_sync_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def has_ads_credentials(self) -> bool:
        return bool(self.ads_client_id and self.ads_client_secret)
