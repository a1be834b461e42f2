"""Best-effort calls to the service under test.

Reset, GC and memory introspection are side channels to the benchmark:
each is a single attempt with a short timeout, and any failure becomes
"no data" instead of an exception.
"""

import logging
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


class HeapUsage(BaseModel):
    """Process heap usage (MB)"""

    heap_used: float | None = Field(None, alias="heapUsed")
    heap_total: float | None = Field(None, alias="heapTotal")
    rss: float | None = None
    external: float | None = None


class V8HeapStats(BaseModel):
    """V8 heap statistics (MB)"""

    used_heap_size: float | None = Field(None, alias="usedHeapSize")
    total_heap_size: float | None = Field(None, alias="totalHeapSize")
    heap_size_limit: float | None = Field(None, alias="heapSizeLimit")


class EndpointMemoryStats(BaseModel):
    """Heap statistics recorded per endpoint by the service (MB)"""

    peak: float | None = None
    avg: float | None = None
    sample_count: int | None = Field(None, alias="sampleCount")


class MemorySnapshot(BaseModel):
    """Response body of ``GET /bench/memory``"""

    current: HeapUsage | None = None
    v8: V8HeapStats | None = None
    endpoints: dict[str, EndpointMemoryStats] | None = None

    def for_endpoint(self, path: str) -> EndpointMemoryStats | None:
        return (self.endpoints or {}).get(path)


class BenchClient:
    """Client for the reset/GC/memory endpoints of the service under test"""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _get(self, path: str) -> httpx.Response | None:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url)
            if response.status_code != 200:
                logger.debug(f"{url} returned HTTP {response.status_code}")
                return None
            return response
        except httpx.HTTPError as e:
            logger.debug(f"{url} unavailable: {e}")
            return None

    async def reset_memory(self, endpoint: str | None = None) -> bool:
        """Clear per-endpoint counters (all endpoints when ``endpoint`` is None)"""
        path = "/bench/memory/reset"
        if endpoint:
            # Endpoint paths contain slashes; send them as a single route segment
            path = f"{path}/{quote(endpoint, safe='')}"
        return await self._get(path) is not None

    async def trigger_gc(self) -> bool:
        """Ask the service to run a garbage collection pass"""
        response = await self._get("/bench/gc")
        if response is None:
            return False
        try:
            return bool(response.json().get("success", True))
        except (ValueError, AttributeError):
            return True

    async def get_memory(self) -> MemorySnapshot | None:
        """Read current heap and per-endpoint statistics"""
        response = await self._get("/bench/memory")
        if response is None:
            return None
        try:
            return MemorySnapshot.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.debug(f"Unusable /bench/memory payload: {e}")
            return None
