"""
Test fixtures and configuration for pytest.
"""

from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport

from ctxbench.services.benchmark import (
    BenchClient,
    EndpointSpec,
    LoadConfig,
    ResourceProbe,
    SuiteConfig,
)

BASE_URL = "http://bench.test"

TEST_ENDPOINTS = (
    EndpointSpec(name="Singleton", path="/bench/singleton"),
    EndpointSpec(name="Request Scope", path="/bench/request-scope"),
    EndpointSpec(name="CLS (nestjs-cls)", path="/bench/cls"),
)


def create_fake_service() -> FastAPI:
    """Stand-in for the service under test with per-endpoint heap counters."""
    app = FastAPI()
    stats: dict[str, dict[str, float]] = {}
    app.state.stats = stats
    app.state.gc_calls = 0

    def record(path: str, heap_used: float):
        entry = stats.setdefault(path, {"peak": 0.0, "total": 0.0, "count": 0})
        entry["peak"] = max(entry["peak"], heap_used)
        entry["total"] += heap_used
        entry["count"] += 1

    @app.get("/bench/singleton")
    async def singleton():
        record("/bench/singleton", 20.0)
        return {"scope": "SINGLETON"}

    @app.get("/bench/request-scope")
    async def request_scope():
        record("/bench/request-scope", 24.0)
        return {"scope": "REQUEST"}

    @app.get("/bench/cls")
    async def cls():
        record("/bench/cls", 21.0)
        return {"scope": "CLS"}

    @app.get("/bench/memory")
    async def memory():
        return {
            "current": {"heapUsed": 22.5, "heapTotal": 40.0, "rss": 80.0},
            "v8": {"usedHeapSize": 21.75},
            "endpoints": {
                path: {
                    "peak": entry["peak"],
                    "avg": entry["total"] / entry["count"] if entry["count"] else 0,
                    "sampleCount": entry["count"],
                }
                for path, entry in stats.items()
            },
            "unit": "MB",
        }

    @app.get("/bench/memory/reset")
    async def reset_all():
        stats.clear()
        return {"success": True}

    @app.get("/bench/memory/reset/{endpoint:path}")
    async def reset_one(endpoint: str):
        stats.pop(endpoint, None)
        return {"success": True, "endpoint": endpoint}

    @app.get("/bench/gc")
    async def gc():
        app.state.gc_calls += 1
        return {"success": True, "message": "GC triggered"}

    return app


def _write_cgroup_files(root: Path, files: dict[str, str]) -> Path:
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


@pytest.fixture
def fake_service() -> FastAPI:
    return create_fake_service()


@pytest.fixture
def service_transport(fake_service: FastAPI) -> ASGITransport:
    return ASGITransport(app=fake_service)


@pytest_asyncio.fixture
async def bench_client(service_transport: ASGITransport) -> BenchClient:
    return BenchClient(BASE_URL, timeout=2.0, transport=service_transport)


@pytest.fixture
def cgroup_v2(tmp_path: Path) -> Path:
    """A cgroup v2 tree with a 2-core quota."""
    return _write_cgroup_files(
        tmp_path / "cgroup",
        {
            "cgroup.controllers": "cpuset cpu io memory pids",
            "cpu.max": "200000 100000",
            "cpu.stat": "usage_usec 5000000\nuser_usec 3000000\nsystem_usec 2000000\n",
            "memory.current": "104857600\n",
            "memory.peak": "209715200\n",
        },
    )


@pytest.fixture
def empty_probe(tmp_path: Path) -> ResourceProbe:
    """Probe pointed at a directory with no cgroup files."""
    return ResourceProbe(tmp_path / "no-cgroup")


@pytest.fixture
def fast_suite_config() -> SuiteConfig:
    """Suite with no pauses, suitable for in-process runs."""
    load = LoadConfig(
        target_url=BASE_URL,
        connections=2,
        duration_seconds=0.2,
        pipelining=1,
        request_timeout=2.0,
    )
    return SuiteConfig(
        endpoints=TEST_ENDPOINTS,
        load=load,
        warmup=load.for_warmup(connections=1, duration_seconds=0.05),
        sample_interval_ms=20,
        settle_ms=0,
        post_warmup_settle_ms=0,
        cooldown_ms=0,
    )


@pytest.fixture
def refusing_transport() -> httpx.MockTransport:
    """Transport whose every request fails to connect."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    return httpx.MockTransport(handler)


@pytest.fixture
def make_cgroup(tmp_path: Path):
    """Build a cgroup tree from a mapping of relative path to file content."""

    def factory(files: dict[str, str]) -> Path:
        return _write_cgroup_files(tmp_path / "cgroup-tree", files)

    return factory
