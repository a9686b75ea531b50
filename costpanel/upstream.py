import logging
import time
from typing import Any, Dict, Hashable, Optional, Tuple

import httpx

LOG = logging.getLogger(__name__)


class UpstreamError(Exception):
    """A third-party API call failed or answered with something unusable."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ResponseCache:
    """Keeps decoded JSON responses for a short while.

    Only successful responses are stored; the cache is a latency optimisation,
    callers never rely on it for correctness.
    """

    def __init__(self, ttl_seconds: float = 300, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, payload = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return payload

    def put(self, key: Hashable, payload: Any) -> None:
        if self.ttl_seconds <= 0:
            return
        now = self._clock()
        # Sweep on write: keys carrying a timestamp are never read again.
        self._entries = {k: v for k, v in self._entries.items() if now - v[0] <= self.ttl_seconds}
        self._entries[key] = (now, payload)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class JsonFetcher:
    """GETs JSON documents through an httpx client, consulting the cache first."""

    def __init__(self, client: httpx.AsyncClient, cache: Optional[ResponseCache] = None):
        self.client = client
        self.cache = cache

    async def get_json(
        self,
        url: str,
        *,
        token: Optional[str] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        key = (url, tuple(sorted((params or {}).items())), token)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            response = await self.client.get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise UpstreamError(f"request to {url} failed: {e}") from e

        if response.is_error:
            LOG.error(f"{url} answered {response.status_code}: {response.text[:500]}")
            raise UpstreamError(f"API error: {response.status_code}", status_code=response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError(f"{url} returned invalid JSON") from e

        if self.cache is not None:
            self.cache.put(key, payload)
        return payload
