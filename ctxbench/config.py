"""Harness configuration"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

from ctxbench.services.benchmark.config import DEFAULT_ENDPOINTS, LoadConfig, SuiteConfig


class Settings(BaseSettings):
    """Harness settings, read from CTXBENCH_* environment variables"""

    # Service under test
    base_url: str = "http://localhost:3000"

    # Measurement load
    connections: int = 100
    duration_seconds: float = 30
    pipelining: int = 1
    request_timeout: float = 10.0

    # Warm-up load (discarded)
    warmup_connections: int = 10
    warmup_duration_seconds: float = 5

    # Reset / GC / memory calls to the service under test
    collaborator_timeout: float = 5.0

    # Phase timing (milliseconds)
    sample_interval_ms: int = 250
    settle_ms: int = 1000
    post_warmup_settle_ms: int = 500
    cooldown_ms: int = 5000

    # Output
    report_dir: Path = Path("./reports")
    report_timestamped: bool = False

    # Resource accounting
    cgroup_root: Path = Path("/sys/fs/cgroup")

    log_level: str = "INFO"

    def to_suite_config(self) -> SuiteConfig:
        """Build the immutable suite configuration from these settings."""
        load = LoadConfig(
            target_url=self.base_url.rstrip("/"),
            connections=self.connections,
            duration_seconds=self.duration_seconds,
            pipelining=self.pipelining,
            request_timeout=self.request_timeout,
        )
        return SuiteConfig(
            endpoints=DEFAULT_ENDPOINTS,
            load=load,
            warmup=load.for_warmup(
                connections=self.warmup_connections,
                duration_seconds=self.warmup_duration_seconds,
            ),
            sample_interval_ms=self.sample_interval_ms,
            settle_ms=self.settle_ms,
            post_warmup_settle_ms=self.post_warmup_settle_ms,
            cooldown_ms=self.cooldown_ms,
        )

    class Config:
        env_prefix = "CTXBENCH_"
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
