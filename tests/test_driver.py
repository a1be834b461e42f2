"""
Tests for the HTTP load driver.
"""
import asyncio
from dataclasses import replace

import httpx
import pytest

from ctxbench.core.exceptions import ConfigurationError, LoadDriverError
from ctxbench.services.benchmark import LoadConfig, LoadDriver, compute_percentiles

SHORT_RUN = LoadConfig(
    target_url="http://bench.test",
    connections=2,
    duration_seconds=0.1,
    pipelining=1,
    request_timeout=1.0,
)


class TestLoadDriver:
    @pytest.mark.asyncio
    async def test_successful_run(self):
        seen_urls = set()

        def handler(request: httpx.Request) -> httpx.Response:
            seen_urls.add(str(request.url))
            return httpx.Response(200, json={"scope": "SINGLETON"})

        result = await LoadDriver(httpx.MockTransport(handler)).run("/bench/singleton", SHORT_RUN)

        assert seen_urls == {"http://bench.test/bench/singleton"}
        assert result.total_requests > 0
        assert result.successful_requests == result.total_requests
        assert result.errors == 0
        assert result.non_2xx == 0
        assert result.requests_per_sec_avg > 0
        assert result.throughput_bytes_per_sec_avg > 0
        assert result.latency.p50 <= result.latency.p95 <= result.latency.p99
        assert result.duration_seconds >= SHORT_RUN.duration_seconds

    @pytest.mark.asyncio
    async def test_partial_failure_is_not_an_error(self):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] % 2:
                raise httpx.ConnectError("reset by peer", request=request)
            if calls["n"] % 3 == 0:
                return httpx.Response(500)
            return httpx.Response(200, json={})

        result = await LoadDriver(httpx.MockTransport(handler)).run("/bench/cls", SHORT_RUN)

        assert result.errors > 0
        assert result.non_2xx > 0
        assert result.successful_requests > 0
        assert result.total_requests == result.errors + result.non_2xx + result.successful_requests

    @pytest.mark.asyncio
    async def test_unreachable_target_raises(self, refusing_transport):
        with pytest.raises(LoadDriverError) as exc_info:
            await LoadDriver(refusing_transport).run("/bench/singleton", SHORT_RUN)

        assert "Connection refused" in exc_info.value.message
        assert exc_info.value.details["url"] == "http://bench.test/bench/singleton"

    @pytest.mark.asyncio
    async def test_pipelining_multiplies_in_flight_requests(self):
        in_flight = {"now": 0, "max": 0}

        async def handler(request: httpx.Request) -> httpx.Response:
            in_flight["now"] += 1
            in_flight["max"] = max(in_flight["max"], in_flight["now"])
            await asyncio.sleep(0.005)
            in_flight["now"] -= 1
            return httpx.Response(200)

        config = LoadConfig(
            target_url="http://bench.test",
            connections=2,
            duration_seconds=0.1,
            pipelining=3,
        )
        await LoadDriver(httpx.MockTransport(handler)).run("/x", config)

        assert in_flight["max"] == 6

    @pytest.mark.asyncio
    async def test_unexpected_error_stops_all_loops(self):
        calls = {"n": 0}

        async def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("handler crashed")
            await asyncio.sleep(0.005)
            return httpx.Response(200)

        config = replace(SHORT_RUN, connections=4, duration_seconds=5)

        with pytest.raises(RuntimeError, match="handler crashed"):
            await LoadDriver(httpx.MockTransport(handler)).run("/bench/singleton", config)

        made = calls["n"]
        await asyncio.sleep(0.05)
        assert calls["n"] == made

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [{"connections": 0}, {"duration_seconds": 0}, {"pipelining": 0}, {"target_url": ""}],
    )
    async def test_invalid_config(self, overrides):
        config = replace(SHORT_RUN, **overrides)

        with pytest.raises(ConfigurationError):
            await LoadDriver().run("/bench/singleton", config)


class TestLoadConfig:
    def test_warmup_is_lighter(self):
        config = LoadConfig(connections=100, duration_seconds=30)
        warmup = config.for_warmup(connections=10, duration_seconds=5)

        assert warmup.connections == 10
        assert warmup.duration_seconds == 5
        assert warmup.target_url == config.target_url
        assert config.connections == 100

    def test_warmup_never_heavier_than_measurement(self):
        config = LoadConfig(connections=4, duration_seconds=1)
        warmup = config.for_warmup(connections=10, duration_seconds=5)

        assert warmup.connections == 4
        assert warmup.duration_seconds == 1

    def test_url_for(self):
        assert LoadConfig(target_url="http://h:3000/").url_for("/bench/cls") == "http://h:3000/bench/cls"


class TestPercentiles:
    def test_exact_percentiles(self):
        metrics = compute_percentiles([float(v) for v in range(1, 101)])

        assert metrics.mean == pytest.approx(50.5)
        assert metrics.p50 == pytest.approx(50.5)
        assert metrics.p95 == pytest.approx(95.05)
        assert metrics.p99 == pytest.approx(99.01)
        assert metrics.min == 1.0
        assert metrics.max == 100.0

    def test_empty(self):
        metrics = compute_percentiles([])
        assert metrics.mean == 0.0
