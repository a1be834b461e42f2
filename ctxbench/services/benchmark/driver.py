"""
Load Driver

Runs fixed-connection, fixed-duration HTTP GET load against a single
endpoint and aggregates request, latency and throughput statistics.
"""

import asyncio
import logging
import time

import httpx

from ctxbench.core.exceptions import ConfigurationError, LoadDriverError

from .config import LoadConfig
from .metrics import LoadResult, RequestResult

logger = logging.getLogger(__name__)

# Approximates the header block size on the wire ("name: value\r\n")
HEADER_LINE_OVERHEAD = 4


class LoadDriver:
    """
    Generates load against one endpoint at a time.

    Each connection runs ``pipelining`` request loops that keep issuing
    GETs until the configured duration elapses; httpx has no HTTP/1.1
    pipelining, so pipelining is expressed as in-flight requests per
    connection.
    """

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport

    async def run(self, path: str, config: LoadConfig) -> LoadResult:
        """Execute the load run and block until all connections drain"""
        valid, error = config.validate()
        if not valid:
            raise ConfigurationError(error)

        url = config.url_for(path)
        results: list[RequestResult] = []
        limits = httpx.Limits(
            max_connections=config.connections,
            max_keepalive_connections=config.connections,
        )

        logger.debug(
            f"Load run: {url} connections={config.connections} "
            f"duration={config.duration_seconds}s pipelining={config.pipelining}"
        )

        async with httpx.AsyncClient(
            timeout=config.request_timeout,
            limits=limits,
            transport=self._transport,
        ) as client:
            start_time = time.perf_counter()
            end_time = start_time + config.duration_seconds

            tasks = [
                asyncio.create_task(self._request_loop(client, url, end_time, results))
                for _ in range(config.connections * config.pipelining)
            ]
            try:
                await asyncio.gather(*tasks)
            finally:
                # No loop may outlive the client
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)

            total_duration = time.perf_counter() - start_time

        result = LoadResult.from_results(results, total_duration)

        if result.responses == 0:
            last_error = next(
                (r.error_message for r in reversed(results) if r.error_message),
                "no requests completed",
            )
            raise LoadDriverError(f"Target unreachable: {last_error}", url=url)

        if result.errors:
            logger.warning(f"{result.errors}/{result.total_requests} requests to {url} failed")

        return result

    async def _request_loop(
        self,
        client: httpx.AsyncClient,
        url: str,
        end_time: float,
        results: list[RequestResult],
    ):
        """Issue requests back-to-back until the deadline"""
        while time.perf_counter() < end_time:
            results.append(await self._make_request(client, url))
            # A refused connection can fail without suspending
            await asyncio.sleep(0)

    async def _make_request(self, client: httpx.AsyncClient, url: str) -> RequestResult:
        """Make a single timed GET request"""
        result = RequestResult()
        start_time = time.perf_counter()

        try:
            response = await client.get(url)
            result.latency_ms = (time.perf_counter() - start_time) * 1000
            result.status_code = response.status_code
            result.bytes_read = len(response.content) + sum(
                len(name) + len(value) + HEADER_LINE_OVERHEAD
                for name, value in response.headers.raw
            )

        except httpx.TimeoutException:
            result.latency_ms = (time.perf_counter() - start_time) * 1000
            result.error_message = "Request timeout"

        except httpx.HTTPError as e:
            result.latency_ms = (time.perf_counter() - start_time) * 1000
            result.error_message = str(e) or type(e).__name__

        return result
