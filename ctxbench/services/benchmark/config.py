"""
Benchmark Configuration

Defines the endpoints under test and the load parameters for a suite run.
"""

from dataclasses import dataclass, field, replace


@dataclass(frozen=True)
class EndpointSpec:
    """An endpoint to benchmark"""

    name: str
    path: str


# Singleton first: it is the comparison baseline
DEFAULT_ENDPOINTS: tuple[EndpointSpec, ...] = (
    EndpointSpec(name="Singleton", path="/bench/singleton"),
    EndpointSpec(name="Request Scope", path="/bench/request-scope"),
    EndpointSpec(name="CLS (nestjs-cls)", path="/bench/cls"),
)


@dataclass(frozen=True)
class LoadConfig:
    """Configuration for a single fixed-duration load run"""

    # Base URL of the service under test (endpoint path is appended)
    target_url: str = "http://localhost:3000"

    # Number of concurrent connections
    connections: int = 100

    # Run length in seconds
    duration_seconds: float = 30

    # In-flight requests per connection
    pipelining: int = 1

    # Per-request timeout in seconds
    request_timeout: float = 10.0

    def for_warmup(self, connections: int = 10, duration_seconds: float = 5) -> "LoadConfig":
        """Lighter variant of this config used for the discarded warm-up run"""
        return replace(
            self,
            connections=min(connections, self.connections),
            duration_seconds=min(duration_seconds, self.duration_seconds),
        )

    def url_for(self, path: str) -> str:
        return f"{self.target_url.rstrip('/')}{path}"

    def validate(self) -> tuple[bool, str]:
        """Validate configuration"""
        if not self.target_url:
            return False, "Target URL is required"

        if self.connections < 1:
            return False, "Connections must be at least 1"

        if self.duration_seconds <= 0:
            return False, "Duration must be positive"

        if self.pipelining < 1:
            return False, "Pipelining must be at least 1"

        if self.request_timeout <= 0:
            return False, "Request timeout must be positive"

        return True, ""

    def to_dict(self) -> dict:
        return {
            "url": self.target_url,
            "connections": self.connections,
            "duration": self.duration_seconds,
            "pipelining": self.pipelining,
            "requestTimeout": self.request_timeout,
        }


@dataclass(frozen=True)
class SuiteConfig:
    """Everything needed to run the full endpoint sequence"""

    endpoints: tuple[EndpointSpec, ...] = DEFAULT_ENDPOINTS
    load: LoadConfig = field(default_factory=LoadConfig)
    warmup: LoadConfig = field(default_factory=lambda: LoadConfig().for_warmup())

    # Memory polling interval during measurement
    sample_interval_ms: int = 250

    # Pauses between phases
    settle_ms: int = 1000
    post_warmup_settle_ms: int = 500
    cooldown_ms: int = 5000

    def to_dict(self) -> dict:
        return {
            **self.load.to_dict(),
            "warmup": {
                "connections": self.warmup.connections,
                "duration": self.warmup.duration_seconds,
            },
            "sampleIntervalMs": self.sample_interval_ms,
            "endpoints": [{"name": e.name, "path": e.path} for e in self.endpoints],
        }
