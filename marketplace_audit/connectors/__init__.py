"""bol.com API clients for the Marketplace Audit platform"""

from marketplace_audit.connectors.base_connector import (
    BaseMarketplaceClient,
    MarketplaceAPIError,
    MarketplaceAuthError,
    RateLimitError,
)
from marketplace_audit.connectors.bol_auth import CredentialProvider, TokenCache
from marketplace_audit.connectors.bol_retailer import BolRetailerClient
from marketplace_audit.connectors.bol_advertising import BolAdvertisingClient

__all__ = [
    "BaseMarketplaceClient",
    "MarketplaceAPIError",
    "MarketplaceAuthError",
    "RateLimitError",
    "CredentialProvider",
    "TokenCache",
    "BolRetailerClient",
    "BolAdvertisingClient",
]
