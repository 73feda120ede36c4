"""
bol.com OAuth2 client-credentials tokens

Retailer API and Advertising API use separate client credentials but the
same token endpoint. Tokens are cached per client id until shortly before
they expire; the cache belongs to a CredentialProvider instance rather than
the module, and the clock is injectable.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional
import aiohttp

from marketplace_audit.config import get_settings
from marketplace_audit.connectors.base_connector import MarketplaceAuthError
from marketplace_audit.utils.logger import log

settings = get_settings()


@dataclass
class TokenCache:
    token: str
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return now < self.expires_at


class CredentialProvider:
    """Acquires and memoises access tokens"""

    def __init__(
        self,
        token_url: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
        expiry_margin_seconds: Optional[int] = None,
    ):
        self.token_url = token_url or settings.bol_token_url
        self._clock = clock or datetime.utcnow
        self.expiry_margin = timedelta(
            seconds=settings.bol_token_expiry_margin_seconds if expiry_margin_seconds is None else expiry_margin_seconds
        )
        self._retailer_tokens: Dict[str, TokenCache] = {}
        self._ads_tokens: Dict[str, TokenCache] = {}

    async def get_retailer_token(self, client_id: str, client_secret: str) -> str:
        return await self._get_token(self._retailer_tokens, client_id, client_secret, "Retailer")

    async def get_ads_token(self, client_id: str, client_secret: str) -> str:
        return await self._get_token(self._ads_tokens, client_id, client_secret, "Advertising")

    async def _get_token(self, cache: Dict[str, TokenCache], client_id: str, client_secret: str, label: str) -> str:
        cached = cache.get(client_id)
        now = self._clock()
        if cached and cached.is_valid(now):
            return cached.token

        if not client_id or not client_secret:
            raise MarketplaceAuthError(f"bol.com {label} credentials are not configured")

        payload = await self._request_token(client_id, client_secret)
        token = payload.get("access_token")
        if not token:
            raise MarketplaceAuthError(f"bol.com {label} OAuth response has no access_token")

        expires_in = int(payload.get("expires_in", 300))
        cache[client_id] = TokenCache(
            token=token,
            expires_at=now + timedelta(seconds=expires_in) - self.expiry_margin,
        )
        log.debug(f"Obtained bol.com {label} token for client {client_id[:6]}..., expires in {expires_in}s")
        return token

    async def _request_token(self, client_id: str, client_secret: str) -> Dict:
        timeout = aiohttp.ClientTimeout(total=settings.bol_http_timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    self.token_url,
                    auth=aiohttp.BasicAuth(client_id, client_secret),
                    headers={"Accept": "application/json"},
                ) as response:
                    if response.status != 200:
                        body = await response.text()
                        raise MarketplaceAuthError(
                            f"bol.com OAuth failed ({response.status}): {body}",
                            status=response.status,
                            body=body,
                        )
                    return await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise MarketplaceAuthError(f"bol.com OAuth request failed: {str(e)}") from e
