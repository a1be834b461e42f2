"""
Benchmark Metrics

Latency percentiles and aggregate load statistics:
- Latency mean/min/max/std
- Percentiles (p50, p95, p99) computed exactly from raw samples
- Requests per second and bytes per second
"""

import statistics
from collections.abc import Sequence
from dataclasses import dataclass, field


@dataclass
class RequestResult:
    """Result from a single request"""

    latency_ms: float = 0.0
    status_code: int | None = None
    bytes_read: int = 0
    error_message: str | None = None

    @property
    def responded(self) -> bool:
        """A response (of any status) came back"""
        return self.status_code is not None

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300


@dataclass
class LatencyMetrics:
    """Latency metrics with percentiles"""

    mean: float = 0.0
    min: float = 0.0
    max: float = 0.0
    std: float = 0.0
    p50: float = 0.0
    p95: float = 0.0
    p99: float = 0.0

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary"""
        return {
            "mean": round(self.mean, 2),
            "p50": round(self.p50, 2),
            "p95": round(self.p95, 2),
            "p99": round(self.p99, 2),
        }


def compute_percentiles(values: Sequence[float]) -> LatencyMetrics:
    """Compute latency metrics with percentiles from a sequence of values"""
    if not values:
        return LatencyMetrics()

    sorted_values = sorted(values)
    n = len(sorted_values)

    def percentile(p: float) -> float:
        """Calculate percentile value"""
        if n == 1:
            return sorted_values[0]
        k = (n - 1) * (p / 100)
        f = int(k)
        c = f + 1 if f + 1 < n else f
        return sorted_values[f] + (k - f) * (sorted_values[c] - sorted_values[f])

    return LatencyMetrics(
        mean=statistics.mean(values),
        min=sorted_values[0],
        max=sorted_values[-1],
        std=statistics.stdev(values) if n > 1 else 0.0,
        p50=percentile(50),
        p95=percentile(95),
        p99=percentile(99),
    )


@dataclass
class LoadResult:
    """Aggregate statistics from one load run"""

    requests_per_sec_avg: float = 0.0
    latency: LatencyMetrics = field(default_factory=LatencyMetrics)
    throughput_bytes_per_sec_avg: float = 0.0

    # Request statistics
    total_requests: int = 0
    successful_requests: int = 0
    errors: int = 0
    non_2xx: int = 0

    duration_seconds: float = 0.0

    @property
    def responses(self) -> int:
        return self.successful_requests + self.non_2xx

    @classmethod
    def from_results(
        cls,
        results: list[RequestResult],
        total_duration: float,
    ) -> "LoadResult":
        """Compute aggregate statistics from a list of request results"""
        if not results:
            return cls(duration_seconds=total_duration)

        responded = [r for r in results if r.responded]
        successful = [r for r in responded if r.ok]
        total_bytes = sum(r.bytes_read for r in responded)

        return cls(
            requests_per_sec_avg=len(responded) / total_duration if total_duration > 0 else 0,
            latency=compute_percentiles([r.latency_ms for r in responded]),
            throughput_bytes_per_sec_avg=total_bytes / total_duration if total_duration > 0 else 0,
            total_requests=len(results),
            successful_requests=len(successful),
            errors=len(results) - len(responded),
            non_2xx=len(responded) - len(successful),
            duration_seconds=total_duration,
        )
