"""
Base client for rate-limited marketplace APIs

bol.com enforces per-second rate limits and answers 429 when they are hit.
Clients here never retry on their own: every call issued inside an entity
loop is followed by a fixed pause, batched endpoints are called with at most
`batch_size` ids, and a 429 surfaces as RateLimitError for the caller's
phase to record.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence
from datetime import datetime
import asyncio
import aiohttp

from marketplace_audit.config import get_settings
from marketplace_audit.utils.helpers import chunk_list, dedupe_keep_order
from marketplace_audit.utils.logger import log

settings = get_settings()

SleepFunc = Callable[[float], Awaitable[None]]


class MarketplaceAPIError(Exception):
    """Upstream call returned a non-success status"""

    def __init__(self, message: str, status: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status = status
        self.body = body


class RateLimitError(MarketplaceAPIError):
    """HTTP 429 from upstream (not retried automatically)"""

    def __init__(self, retry_after: int, body: Any = None):
        super().__init__(f"Rate limited by bol.com - retry after {retry_after}s", status=429, body=body)
        self.retry_after = retry_after


class MarketplaceAuthError(MarketplaceAPIError):
    """OAuth token could not be obtained"""


@dataclass
class ApiResponse:
    status: int
    data: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class BaseMarketplaceClient(ABC):
    """Base class for bol.com API clients"""

    def __init__(
        self,
        name: str,
        base_url: str,
        token: str,
        sleep: Optional[SleepFunc] = None,
        request_delay: Optional[float] = None,
        batch_size: Optional[int] = None,
        batch_delay: Optional[float] = None,
    ):
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._sleep = sleep or asyncio.sleep
        self.request_delay = settings.bol_request_delay_seconds if request_delay is None else request_delay
        self.batch_size = batch_size or settings.bol_batch_size
        self.batch_delay = settings.bol_batch_delay_seconds if batch_delay is None else batch_delay

        self.last_request_at: Optional[datetime] = None
        self.request_count = 0
        self.error_count = 0

    @abstractmethod
    def default_headers(self) -> Dict[str, str]:
        """Accept / Content-Type headers for this API"""
        pass

    async def _request(
        self,
        method: str,
        path: str,
        params: Any = None,
        json_body: Optional[Dict[str, Any]] = None,
        accept: Optional[str] = None,
    ) -> ApiResponse:
        """
        Issue one HTTP call.

        Raises RateLimitError on 429. Other statuses are returned to the
        caller, which decides whether a non-2xx is fatal for that resource.
        """
        headers = {**self.default_headers(), "Authorization": f"Bearer {self.token}"}
        if accept:
            headers["Accept"] = accept

        self.request_count += 1
        self.last_request_at = datetime.utcnow()
        timeout = aiohttp.ClientTimeout(total=settings.bol_http_timeout_seconds)

        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.request(
                method,
                f"{self.base_url}{path}",
                params=params,
                json=json_body,
                headers=headers,
            ) as response:
                if response.status == 429:
                    self.error_count += 1
                    retry_after = int(response.headers.get("Retry-After", "60") or 60)
                    log.warning(f"{self.name} rate limited on {path}, retry after {retry_after}s")
                    raise RateLimitError(retry_after, body=await response.text())

                content_type = response.headers.get("Content-Type", "")
                if "json" in content_type:
                    data = await response.json(content_type=None)
                else:
                    data = await response.text()

                if response.status >= 400:
                    self.error_count += 1
                    log.debug(f"{self.name} {method} {path} -> {response.status}")

                return ApiResponse(status=response.status, data=data, headers=dict(response.headers))

    async def _get_json(self, path: str, params: Any = None, allow_not_found: bool = False) -> Any:
        """GET that raises MarketplaceAPIError on failure; None on 404 when allowed"""
        response = await self._request("GET", path, params=params)
        if response.status == 404 and allow_not_found:
            return None
        if not response.ok:
            raise MarketplaceAPIError(
                f"{self.name} GET {path} failed ({response.status}): {response.data}",
                status=response.status,
                body=response.data,
            )
        return response.data if isinstance(response.data, dict) else {}

    async def pause(self, seconds: Optional[float] = None) -> None:
        """Mandatory gap between consecutive calls in an entity loop"""
        await self._sleep(self.request_delay if seconds is None else seconds)

    async def _batched(
        self,
        ids: Sequence[str],
        fetch_batch: Callable[[List[str]], Awaitable[Mapping[str, Any]]],
    ) -> Dict[str, Optional[Any]]:
        """
        Call a batch endpoint over ids in chunks of at most batch_size.

        Results are matched back by id; ids missing from every response map
        to None instead of raising. A pause of batch_delay separates batches.
        """
        unique_ids = dedupe_keep_order([str(i) for i in ids])
        results: Dict[str, Optional[Any]] = {i: None for i in unique_ids}
        batches = chunk_list(unique_ids, self.batch_size)

        for index, batch in enumerate(batches):
            found = await fetch_batch(batch)
            for entity_id, value in found.items():
                if entity_id in results:
                    results[entity_id] = value
            if index < len(batches) - 1:
                await self.pause(self.batch_delay)

        missing = sum(1 for v in results.values() if v is None)
        if missing:
            log.debug(f"{self.name}: {missing}/{len(results)} ids missing from batch results")
        return results

    async def _paged(self, path: str, key: str, params: Optional[Dict[str, Any]] = None, page_size: int = 50) -> List[Dict]:
        """Walk a page-numbered list endpoint until a short or empty page"""
        items: List[Dict] = []
        page = 1
        while True:
            data = await self._get_json(path, params={**(params or {}), "page": page})
            batch = data.get(key) or []
            items.extend(batch)
            if len(batch) < page_size:
                break
            page += 1
            await self.pause()
        return items

    def get_status(self) -> Dict[str, Any]:
        """Get client status"""
        return {
            "name": self.name,
            "last_request_at": self.last_request_at,
            "request_count": self.request_count,
            "error_count": self.error_count,
            "error_rate": self.error_count / max(self.request_count, 1),
        }
