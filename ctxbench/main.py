"""ctxbench entry point - runs the full endpoint suite and writes the report"""

import asyncio
import logging
import sys

from ctxbench.config import Settings, get_settings
from ctxbench.services.benchmark import (
    BenchClient,
    BenchmarkSequencer,
    LoadDriver,
    ResourceProbe,
    build_report,
    persist,
    print_summary,
)
from ctxbench.services.benchmark.reporter import timestamped_filename

logger = logging.getLogger(__name__)


async def run(settings: Settings) -> int:
    """Run the suite; returns the process exit code"""
    suite_config = settings.to_suite_config()
    probe = ResourceProbe(settings.cgroup_root)
    sequencer = BenchmarkSequencer(
        suite_config,
        driver=LoadDriver(),
        client=BenchClient(suite_config.load.target_url, timeout=settings.collaborator_timeout),
        probe=probe,
    )

    results = await sequencer.run_suite()
    report = build_report(results, suite_config)

    print_summary(report)

    filename = timestamped_filename() if settings.report_timestamped else None
    persist(report, settings.report_dir, filename)
    return 0


def main(settings: Settings | None = None) -> int:
    settings = settings or get_settings()

    # Configure logging
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        return asyncio.run(run(settings))
    except Exception as e:
        logger.exception(f"Benchmark suite failed: {e}")
        return 1


def cli():
    sys.exit(main())


if __name__ == "__main__":
    cli()
