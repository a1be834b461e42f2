"""Container-aware CPU and memory probes.

Reads usage counters from the cgroup pseudo-filesystem, preferring the
cgroup v2 unified layout and falling back to the v1 per-controller
layout. Every reader returns None when no path exists or parses, so
callers treat resource data as best-effort.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_CGROUP_ROOT = Path("/sys/fs/cgroup")

# v1 reports an unlimited CFS quota as -1
CGROUP_V1_NO_QUOTA = -1


@dataclass(frozen=True)
class CpuSnapshot:
    """Cumulative CPU time consumed by the cgroup, in microseconds"""

    usage_micros: int | None = None
    user_micros: int | None = None
    system_micros: int | None = None


@dataclass(frozen=True)
class CpuUsage:
    """CPU consumed between two snapshots"""

    delta_micros: int | None = None
    elapsed_millis: float | None = None
    avg_percent: float | None = None
    cpu_limit: float | None = None

    @classmethod
    def from_snapshots(
        cls,
        start: CpuSnapshot | None,
        end: CpuSnapshot | None,
        elapsed_millis: float | None,
        cpu_limit: float | None,
    ) -> "CpuUsage":
        """Derive average CPU percent over the window.

        The percentage is relative to the detected core quota (or one core
        when unlimited) and is not clamped, so it can exceed 100.
        """
        if (
            start is None
            or end is None
            or start.usage_micros is None
            or end.usage_micros is None
        ):
            return cls(elapsed_millis=elapsed_millis, cpu_limit=cpu_limit)

        delta = end.usage_micros - start.usage_micros
        if elapsed_millis is None or elapsed_millis <= 0:
            return cls(delta_micros=delta, elapsed_millis=elapsed_millis, cpu_limit=cpu_limit)

        cores = max(cpu_limit or 1, 1)
        avg_percent = delta / (elapsed_millis * 1000 * cores) * 100
        return cls(
            delta_micros=delta,
            elapsed_millis=elapsed_millis,
            avg_percent=avg_percent,
            cpu_limit=cpu_limit,
        )


def parse_int(content: str | None) -> int | None:
    """Parse the first whitespace-delimited token as an integer."""
    if not content:
        return None
    tokens = content.split()
    if not tokens:
        return None
    try:
        return int(tokens[0])
    except ValueError:
        return None


def parse_keyed(content: str | None) -> dict[str, int]:
    """Parse flat-keyed cgroup files ("key value" per line)."""
    values: dict[str, int] = {}
    if not content:
        return values
    for line in content.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        try:
            values[parts[0]] = int(parts[1])
        except ValueError:
            continue
    return values


class ResourceProbe:
    """Read CPU and memory counters for the current cgroup.

    Supports both cgroup v2 (unified hierarchy) and v1 (per-controller
    directories) layouts rooted at ``cgroup_root``.
    """

    def __init__(self, cgroup_root: Path | str = DEFAULT_CGROUP_ROOT):
        """Initialize probe.

        Args:
            cgroup_root: Mount point of the cgroup filesystem.
        """
        self.root = Path(cgroup_root)

    def _read_cgroup_file(self, *paths: str) -> str | None:
        """Try to read from cgroup files (v2 first, then v1)."""
        for path in paths:
            full_path = self.root / path
            try:
                if full_path.exists():
                    return full_path.read_text().strip()
            except (OSError, UnicodeDecodeError) as e:
                logger.debug(f"Cannot read {full_path}: {e}")
                continue
        return None

    def _read_cgroup_int(self, *paths: str) -> int | None:
        """Return the first path that parses as an integer."""
        for path in paths:
            value = parse_int(self._read_cgroup_file(path))
            if value is not None:
                return value
        return None

    def detect_version(self) -> int | None:
        """Detect the mounted cgroup layout: 2, 1, or None if absent."""
        if (self.root / "cgroup.controllers").exists():
            return 2
        for controller in ("memory", "cpu", "cpuacct", "cpu,cpuacct"):
            if (self.root / controller).is_dir():
                return 1
        return None

    def detect_cpu_limit(self) -> float | None:
        """Get the CPU quota in cores, or None when unlimited or unknown."""
        # cgroups v2: "<quota> <period>" or "max <period>"
        cpu_max = self._read_cgroup_file("cpu.max")
        if cpu_max:
            parts = cpu_max.split()
            if parts and parts[0] == "max":
                return None
            if len(parts) == 2:
                try:
                    quota_us = int(parts[0])
                    period_us = int(parts[1])
                    if quota_us > 0 and period_us > 0:
                        return quota_us / period_us
                except ValueError:
                    logger.debug(f"Unparseable cpu.max: {cpu_max!r}")

        # cgroups v1: separate quota and period files
        for controller in ("cpu", "cpu,cpuacct"):
            quota_us = self._read_cgroup_int(f"{controller}/cpu.cfs_quota_us")
            if quota_us is None:
                continue
            if quota_us == CGROUP_V1_NO_QUOTA:
                return None
            period_us = self._read_cgroup_int(f"{controller}/cpu.cfs_period_us")
            if quota_us > 0 and period_us:
                return quota_us / period_us

        return None

    def read_cpu_stat(self) -> CpuSnapshot | None:
        """Snapshot cumulative CPU usage of the cgroup."""
        # cgroups v2
        stat = parse_keyed(self._read_cgroup_file("cpu.stat"))
        if "usage_usec" in stat:
            return CpuSnapshot(
                usage_micros=stat["usage_usec"],
                user_micros=stat.get("user_usec"),
                system_micros=stat.get("system_usec"),
            )

        # cgroups v1: cpuacct.usage is in nanoseconds, cpuacct.stat in clock ticks
        for controller in ("cpuacct", "cpu,cpuacct"):
            usage_ns = self._read_cgroup_int(f"{controller}/cpuacct.usage")
            if usage_ns is None:
                continue
            ticks = parse_keyed(self._read_cgroup_file(f"{controller}/cpuacct.stat"))
            return CpuSnapshot(
                usage_micros=usage_ns // 1000,
                user_micros=_ticks_to_micros(ticks.get("user")),
                system_micros=_ticks_to_micros(ticks.get("system")),
            )

        return None

    def read_memory_current(self) -> int | None:
        """Current memory usage of the cgroup in bytes."""
        return self._read_cgroup_int(
            "memory.current",
            "memory/memory.usage_in_bytes",
        )

    def read_memory_peak(self) -> int | None:
        """Kernel-tracked peak memory usage of the cgroup in bytes."""
        return self._read_cgroup_int(
            "memory.peak",
            "memory/memory.max_usage_in_bytes",
        )


def _ticks_to_micros(ticks: int | None) -> int | None:
    if ticks is None:
        return None
    try:
        hz = os.sysconf("SC_CLK_TCK")
    except (ValueError, OSError, AttributeError):
        hz = 100
    return ticks * 1_000_000 // hz
