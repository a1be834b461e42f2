"""
Memory Sampler

Polls cgroup memory usage on a fixed interval while a load run is in
progress and reduces the samples to average and peak.
"""

import asyncio
import contextlib
import logging
import statistics
from dataclasses import dataclass

from .probe import ResourceProbe

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 250


@dataclass(frozen=True)
class MemoryStats:
    """Reduced memory samples for one measurement window"""

    avg_bytes: float | None = None
    peak_bytes: int | None = None
    sample_count: int = 0

    @classmethod
    def from_samples(cls, samples: list[int], kernel_peak: int | None = None) -> "MemoryStats":
        """Reduce samples; the kernel-reported peak wins over the sampled max."""
        avg = statistics.fmean(samples) if samples else None
        if kernel_peak is not None:
            peak = kernel_peak
        elif samples:
            peak = max(samples)
        else:
            peak = None
        return cls(avg_bytes=avg, peak_bytes=peak, sample_count=len(samples))


class SamplerHandle:
    """A running sampler; call ``stop()`` to end polling and get stats."""

    def __init__(self, probe: ResourceProbe, interval_ms: int):
        self._probe = probe
        self._interval = interval_ms / 1000
        self._samples: list[int] = []
        self._stats: MemoryStats | None = None
        self._task = asyncio.create_task(self._poll(), name="memory-sampler")

    @property
    def samples(self) -> list[int]:
        return list(self._samples)

    async def _poll(self):
        while True:
            await asyncio.sleep(self._interval)
            value = self._probe.read_memory_current()
            if value is not None:
                self._samples.append(value)

    async def stop(self) -> MemoryStats:
        """Cancel polling and reduce the collected samples.

        The polling task is fully cancelled before this returns, so no
        sample can be appended afterwards. Repeated calls return the same
        stats.
        """
        if self._stats is not None:
            return self._stats

        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task

        self._stats = MemoryStats.from_samples(
            self._samples,
            kernel_peak=self._probe.read_memory_peak(),
        )
        logger.debug(
            f"Memory sampler stopped: {self._stats.sample_count} samples, "
            f"peak={self._stats.peak_bytes}"
        )
        return self._stats


class MemorySampler:
    """Factory for per-run sampler handles"""

    def __init__(self, probe: ResourceProbe):
        self.probe = probe

    def start(self, interval_ms: int = DEFAULT_INTERVAL_MS) -> SamplerHandle:
        """Begin background polling; must be called from a running event loop."""
        if interval_ms <= 0:
            raise ValueError("Sampling interval must be positive")
        return SamplerHandle(self.probe, interval_ms)
