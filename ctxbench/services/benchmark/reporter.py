"""
Benchmark Reporter

Console summary, baseline-relative comparison and JSON persistence of a
suite run. The first result is always the baseline.
"""

import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TextIO

from ctxbench.core.exceptions import ReportWriteError

from .config import SuiteConfig
from .sequencer import EndpointRunResult

logger = logging.getLogger(__name__)

DEFAULT_REPORT_FILENAME = "benchmark-results.json"
SEPARATOR = "=" * 60
PLACEHOLDER = "-"


def round_floats(value: Any, ndigits: int = 2) -> Any:
    """Round every float in a nested structure"""
    if isinstance(value, float):
        return round(value, ndigits)
    if isinstance(value, dict):
        return {k: round_floats(v, ndigits) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [round_floats(v, ndigits) for v in value]
    return value


def ratio_percent(value: float | None, baseline: float | None) -> float | None:
    """``value`` as a percentage of ``baseline``; None if either is missing or baseline is 0"""
    if value is None or baseline is None or baseline == 0:
        return None
    return value / baseline * 100


@dataclass(frozen=True)
class ComparisonRatio:
    """One endpoint relative to the baseline, in percent"""

    rps_ratio_percent: float | None = None
    latency_ratio_percent: float | None = None
    memory_peak_ratio_percent: float | None = None
    memory_avg_ratio_percent: float | None = None
    cpu_ratio_percent: float | None = None
    degradation_percent: float | None = None

    def to_dict(self) -> dict[str, float | None]:
        return {
            "rpsRatioPercent": self.rps_ratio_percent,
            "latencyRatioPercent": self.latency_ratio_percent,
            "memoryPeakRatioPercent": self.memory_peak_ratio_percent,
            "memoryAvgRatioPercent": self.memory_avg_ratio_percent,
            "cpuRatioPercent": self.cpu_ratio_percent,
            "degradationPercent": self.degradation_percent,
        }


@dataclass
class Report:
    """Full result set of one suite run"""

    timestamp: str
    config: dict[str, Any]
    results: list[EndpointRunResult] = field(default_factory=list)
    comparison: dict[str, ComparisonRatio] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serializable form with all floats rounded to 2 decimals"""
        return round_floats(
            {
                "timestamp": self.timestamp,
                "config": self.config,
                "results": [r.to_dict() for r in self.results],
                "comparison": {name: c.to_dict() for name, c in self.comparison.items()},
            }
        )


def compare_to_baseline(
    result: EndpointRunResult,
    baseline: EndpointRunResult,
) -> ComparisonRatio:
    """Compute null-safe ratios of one result against the baseline"""
    degradation = None
    if result.rps is not None and baseline.rps:
        degradation = max(0.0, (baseline.rps - result.rps) / baseline.rps * 100)

    return ComparisonRatio(
        rps_ratio_percent=ratio_percent(result.rps, baseline.rps),
        latency_ratio_percent=ratio_percent(result.latency.mean, baseline.latency.mean),
        memory_peak_ratio_percent=ratio_percent(
            result.cgroup_stats.mem_peak_mb, baseline.cgroup_stats.mem_peak_mb
        ),
        memory_avg_ratio_percent=ratio_percent(
            result.cgroup_stats.mem_avg_mb, baseline.cgroup_stats.mem_avg_mb
        ),
        cpu_ratio_percent=ratio_percent(
            result.cgroup_stats.cpu_avg_percent, baseline.cgroup_stats.cpu_avg_percent
        ),
        degradation_percent=degradation,
    )


def compare(results: list[EndpointRunResult]) -> dict[str, ComparisonRatio]:
    """Ratios for every non-baseline result, keyed by endpoint name"""
    if len(results) < 2:
        return {}

    baseline = results[0]
    return {result.name: compare_to_baseline(result, baseline) for result in results[1:]}


def build_report(
    results: list[EndpointRunResult],
    suite_config: SuiteConfig,
    timestamp: datetime | None = None,
) -> Report:
    timestamp = timestamp or datetime.now(UTC)
    return Report(
        timestamp=timestamp.isoformat(),
        config=suite_config.to_dict(),
        results=list(results),
        comparison=compare(results),
    )


def _fmt(value: float | None, suffix: str = "") -> str:
    if value is None:
        return PLACEHOLDER
    return f"{value:.2f}{suffix}"


def format_summary(results: list[EndpointRunResult]) -> str:
    """Human-readable block per endpoint; absent metrics are left out"""
    lines = [SEPARATOR, "BENCHMARK RESULTS SUMMARY", SEPARATOR]

    if not results:
        lines.append("\nNo endpoint completed successfully.")

    for result in results:
        cgroup = result.cgroup_stats
        process = result.process_stats

        lines.append(f"\n{result.name}:")
        lines.append(f"  Path: {result.path}")
        lines.append(f"  Avg RPS: {_fmt(result.rps)}")
        lines.append(f"  Latency (mean): {_fmt(result.latency.mean, 'ms')}")
        lines.append(f"  Latency (p50): {_fmt(result.latency.p50, 'ms')}")
        lines.append(f"  Latency (p95): {_fmt(result.latency.p95, 'ms')}")
        lines.append(f"  Latency (p99): {_fmt(result.latency.p99, 'ms')}")
        throughput_mb = (
            result.throughput_bytes_per_sec / 1024 / 1024
            if result.throughput_bytes_per_sec is not None
            else None
        )
        lines.append(f"  Avg Throughput: {_fmt(throughput_mb, ' MB/s')}")
        if result.errors or result.non_2xx:
            lines.append(
                f"  Requests: {result.total_requests} total, "
                f"{result.errors} errors, {result.non_2xx} non-2xx"
            )

        if cgroup.mem_avg_mb is not None or cgroup.mem_peak_mb is not None:
            lines.append(
                f"  Cgroup memory (avg/peak): {_fmt(cgroup.mem_avg_mb)} / "
                f"{_fmt(cgroup.mem_peak_mb)} MB"
            )
        if cgroup.cpu_avg_percent is not None:
            limit = f"{cgroup.cpu_limit:g} cores" if cgroup.cpu_limit else "no limit"
            lines.append(f"  Cgroup CPU (avg): {_fmt(cgroup.cpu_avg_percent, '%')} ({limit})")

        if process.peak_heap_mb is not None or process.avg_heap_mb is not None:
            samples = process.sample_count if process.sample_count is not None else PLACEHOLDER
            lines.append(
                f"  Heap (peak/avg): {_fmt(process.peak_heap_mb)} / "
                f"{_fmt(process.avg_heap_mb)} MB ({samples} samples)"
            )
        if process.v8_used_heap_mb is not None:
            lines.append(f"  V8 used heap: {_fmt(process.v8_used_heap_mb, ' MB')}")

    return "\n".join(lines)


def format_comparison(
    results: list[EndpointRunResult],
    comparison: dict[str, ComparisonRatio],
) -> str:
    """Comparison section; empty when fewer than two endpoints succeeded"""
    if len(results) < 2:
        return ""

    baseline = results[0]
    lines = [
        SEPARATOR,
        f"PERFORMANCE COMPARISON (vs {baseline.name} baseline)",
        SEPARATOR,
    ]

    for name, ratio in comparison.items():
        lines.append(f"\n{name}:")
        lines.append(f"  RPS: {_fmt(ratio.rps_ratio_percent, '%')} of baseline")
        lines.append(f"  Latency: {_fmt(ratio.latency_ratio_percent, '%')} of baseline")
        if ratio.memory_peak_ratio_percent is not None:
            lines.append(f"  Memory peak: {_fmt(ratio.memory_peak_ratio_percent, '%')} of baseline")
        if ratio.memory_avg_ratio_percent is not None:
            lines.append(f"  Memory avg: {_fmt(ratio.memory_avg_ratio_percent, '%')} of baseline")
        if ratio.cpu_ratio_percent is not None:
            lines.append(f"  CPU: {_fmt(ratio.cpu_ratio_percent, '%')} of baseline")
        if ratio.degradation_percent:
            lines.append(f"  Performance degradation: {_fmt(ratio.degradation_percent, '%')}")

    return "\n".join(lines)


def print_summary(report: Report, file: TextIO | None = None):
    """Print the summary and, with two or more results, the comparison"""
    out = file or sys.stdout
    print(format_summary(report.results), file=out)
    comparison = format_comparison(report.results, report.comparison)
    if comparison:
        print(f"\n{comparison}", file=out)
    print(file=out)


def persist(
    report: Report,
    report_dir: Path | str,
    filename: str | None = None,
) -> Path:
    """Write the report as pretty-printed JSON; returns the file path"""
    directory = Path(report_dir)
    path = directory / (filename or DEFAULT_REPORT_FILENAME)

    try:
        directory.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(report.to_dict(), indent=2) + "\n")
    except OSError as e:
        raise ReportWriteError(f"Cannot write report: {e}", path=str(path)) from e

    logger.info(f"Results saved to: {path}")
    return path


def timestamped_filename(timestamp: datetime | None = None) -> str:
    timestamp = timestamp or datetime.now(UTC)
    return f"benchmark-results-{timestamp:%Y%m%d-%H%M%S}.json"
