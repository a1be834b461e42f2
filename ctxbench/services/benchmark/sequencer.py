"""
Benchmark Sequencer

Runs the endpoint suite one endpoint at a time. Each endpoint goes
through reset, settle, warm-up, reset, settle and a measured load run
with concurrent CPU and memory sampling.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from .collaborator import BenchClient, MemorySnapshot
from .config import EndpointSpec, SuiteConfig
from .driver import LoadDriver
from .metrics import LatencyMetrics, LoadResult
from .probe import CpuUsage, ResourceProbe
from .sampler import MemorySampler, MemoryStats

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


def _to_mb(value: float | None) -> float | None:
    return value / BYTES_PER_MB if value is not None else None


@dataclass(frozen=True)
class CgroupStats:
    """Container-level resource usage during the measurement window"""

    mem_avg_mb: float | None = None
    mem_peak_mb: float | None = None
    cpu_avg_percent: float | None = None
    cpu_limit: float | None = None

    @classmethod
    def from_measurements(cls, memory: MemoryStats, cpu: CpuUsage) -> "CgroupStats":
        return cls(
            mem_avg_mb=_to_mb(memory.avg_bytes),
            mem_peak_mb=_to_mb(memory.peak_bytes),
            cpu_avg_percent=cpu.avg_percent,
            cpu_limit=cpu.cpu_limit,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "memAvgMb": self.mem_avg_mb,
            "memPeakMb": self.mem_peak_mb,
            "cpuAvgPercent": self.cpu_avg_percent,
            "cpuLimit": self.cpu_limit,
        }


@dataclass(frozen=True)
class ProcessStats:
    """Heap statistics reported by the service under test (MB)"""

    peak_heap_mb: float | None = None
    avg_heap_mb: float | None = None
    sample_count: int | None = None
    v8_used_heap_mb: float | None = None
    heap_used_mb: float | None = None

    @classmethod
    def from_snapshot(cls, snapshot: MemorySnapshot | None, path: str) -> "ProcessStats":
        if snapshot is None:
            return cls()
        endpoint = snapshot.for_endpoint(path)
        return cls(
            peak_heap_mb=endpoint.peak if endpoint else None,
            avg_heap_mb=endpoint.avg if endpoint else None,
            sample_count=endpoint.sample_count if endpoint else None,
            v8_used_heap_mb=snapshot.v8.used_heap_size if snapshot.v8 else None,
            heap_used_mb=snapshot.current.heap_used if snapshot.current else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "peakHeapMb": self.peak_heap_mb,
            "avgHeapMb": self.avg_heap_mb,
            "sampleCount": self.sample_count,
            "v8UsedHeapMb": self.v8_used_heap_mb,
            "heapUsedMb": self.heap_used_mb,
        }


@dataclass(frozen=True)
class EndpointRunResult:
    """Combined measurement for one endpoint"""

    name: str
    path: str
    rps: float
    latency: LatencyMetrics
    throughput_bytes_per_sec: float
    total_requests: int = 0
    successful_requests: int = 0
    errors: int = 0
    non_2xx: int = 0
    cgroup_stats: CgroupStats = field(default_factory=CgroupStats)
    process_stats: ProcessStats = field(default_factory=ProcessStats)

    @classmethod
    def assemble(
        cls,
        endpoint: EndpointSpec,
        load: LoadResult,
        memory: MemoryStats,
        cpu: CpuUsage,
        snapshot: MemorySnapshot | None,
    ) -> "EndpointRunResult":
        return cls(
            name=endpoint.name,
            path=endpoint.path,
            rps=load.requests_per_sec_avg,
            latency=load.latency,
            throughput_bytes_per_sec=load.throughput_bytes_per_sec_avg,
            total_requests=load.total_requests,
            successful_requests=load.successful_requests,
            errors=load.errors,
            non_2xx=load.non_2xx,
            cgroup_stats=CgroupStats.from_measurements(memory, cpu),
            process_stats=ProcessStats.from_snapshot(snapshot, endpoint.path),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "rps": self.rps,
            "latency": self.latency.to_dict(),
            "throughputBytesPerSec": self.throughput_bytes_per_sec,
            "requests": {
                "total": self.total_requests,
                "successful": self.successful_requests,
                "errors": self.errors,
                "non2xx": self.non_2xx,
            },
            "cgroupStats": self.cgroup_stats.to_dict(),
            "processStats": self.process_stats.to_dict(),
        }


class BenchmarkSequencer:
    """
    Orchestrates the per-endpoint phase sequence.

    Endpoints are measured strictly one after another. A failure inside
    one endpoint's sequence skips that endpoint and the suite moves on.
    """

    def __init__(
        self,
        config: SuiteConfig,
        driver: LoadDriver,
        client: BenchClient,
        probe: ResourceProbe,
        sampler: MemorySampler | None = None,
    ):
        self.config = config
        self.driver = driver
        self.client = client
        self.probe = probe
        self.sampler = sampler or MemorySampler(probe)

    async def run_suite(self) -> list[EndpointRunResult]:
        """Benchmark every configured endpoint; returns successful results in order"""
        results: list[EndpointRunResult] = []
        cpu_limit = self.probe.detect_cpu_limit()
        logger.info(
            f"Starting benchmark suite: {self.config.load.connections} connections, "
            f"{self.config.load.duration_seconds}s duration, cgroup v{self.probe.detect_version()}, "
            f"cpu limit={cpu_limit if cpu_limit is not None else 'none'}"
        )

        for index, endpoint in enumerate(self.config.endpoints):
            if index > 0:
                # Let connection teardown and GC from the previous endpoint finish
                await self._pause(self.config.cooldown_ms)

            logger.info(f"Benchmarking: {endpoint.name} ({endpoint.path})")
            try:
                result = await self.run_endpoint(endpoint, cpu_limit)
            except Exception as e:
                logger.error(f"Error benchmarking {endpoint.name}: {e}")
                continue

            results.append(result)
            logger.info(
                f"{endpoint.name}: {result.rps:.2f} req/s, "
                f"latency mean={result.latency.mean:.2f}ms p99={result.latency.p99:.2f}ms"
            )

        return results

    async def run_endpoint(
        self,
        endpoint: EndpointSpec,
        cpu_limit: float | None = None,
    ) -> EndpointRunResult:
        """Run the full phase sequence for one endpoint"""
        await self._reset_and_settle(self.config.settle_ms)

        try:
            await self.driver.run(endpoint.path, self.config.warmup)
        except Exception as e:
            logger.warning(f"Warm-up failed for {endpoint.name}: {e}")

        # Clear counters polluted by warm-up traffic
        await self._reset_and_settle(self.config.post_warmup_settle_ms)

        load, memory, cpu = await self._measure(endpoint, cpu_limit)

        snapshot = await self.client.get_memory()
        return EndpointRunResult.assemble(endpoint, load, memory, cpu, snapshot)

    async def _measure(
        self,
        endpoint: EndpointSpec,
        cpu_limit: float | None,
    ) -> tuple[LoadResult, MemoryStats, CpuUsage]:
        """Measured load run with CPU snapshots and memory sampling around it"""
        cpu_start = self.probe.read_cpu_stat()
        handle = self.sampler.start(self.config.sample_interval_ms)
        start_time = time.perf_counter()

        try:
            load = await self.driver.run(endpoint.path, self.config.load)
            cpu_end = self.probe.read_cpu_stat()
            elapsed_ms = (time.perf_counter() - start_time) * 1000
        finally:
            memory = await handle.stop()

        cpu = CpuUsage.from_snapshots(cpu_start, cpu_end, elapsed_ms, cpu_limit)
        return load, memory, cpu

    async def _reset_and_settle(self, settle_ms: int):
        await self.client.reset_memory()
        await self.client.trigger_gc()
        await self._pause(settle_ms)

    @staticmethod
    async def _pause(milliseconds: int):
        if milliseconds > 0:
            await asyncio.sleep(milliseconds / 1000)
