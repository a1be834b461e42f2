"""
Benchmark Module

Comparative HTTP benchmark of request-context propagation strategies.
Measures throughput, latency, cgroup CPU/memory and service heap usage per
endpoint, then compares every endpoint against the first (baseline).

Usage:
    from ctxbench.services.benchmark import (
        BenchClient, BenchmarkSequencer, LoadDriver, ResourceProbe, SuiteConfig,
        build_report, persist,
    )

    config = SuiteConfig()
    sequencer = BenchmarkSequencer(
        config,
        driver=LoadDriver(),
        client=BenchClient(config.load.target_url),
        probe=ResourceProbe(),
    )
    results = await sequencer.run_suite()
    path = persist(build_report(results, config), "./reports")
"""

from .collaborator import BenchClient, EndpointMemoryStats, MemorySnapshot
from .config import DEFAULT_ENDPOINTS, EndpointSpec, LoadConfig, SuiteConfig
from .driver import LoadDriver
from .metrics import LatencyMetrics, LoadResult, RequestResult, compute_percentiles
from .probe import CpuSnapshot, CpuUsage, ResourceProbe
from .reporter import (
    ComparisonRatio,
    Report,
    build_report,
    compare,
    format_comparison,
    format_summary,
    persist,
    print_summary,
)
from .sampler import MemorySampler, MemoryStats, SamplerHandle
from .sequencer import BenchmarkSequencer, CgroupStats, EndpointRunResult, ProcessStats

__all__ = [
    # Config
    "DEFAULT_ENDPOINTS",
    "EndpointSpec",
    "LoadConfig",
    "SuiteConfig",
    # Metrics
    "LatencyMetrics",
    "LoadResult",
    "RequestResult",
    "compute_percentiles",
    # Resource probes
    "CpuSnapshot",
    "CpuUsage",
    "ResourceProbe",
    "MemorySampler",
    "MemoryStats",
    "SamplerHandle",
    # Load and collaborator
    "LoadDriver",
    "BenchClient",
    "MemorySnapshot",
    "EndpointMemoryStats",
    # Sequencer
    "BenchmarkSequencer",
    "EndpointRunResult",
    "CgroupStats",
    "ProcessStats",
    # Reporter
    "ComparisonRatio",
    "Report",
    "build_report",
    "compare",
    "format_summary",
    "format_comparison",
    "print_summary",
    "persist",
]
