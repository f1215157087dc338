"""
Generic background worker runner.

Reads the desired job name from CLI args or the WORKER_JOB environment
variable and delegates to the appropriate job. The database pool is
opened for the lifetime of the job.
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from outreach.config import settings
from outreach.db.pool import db_pool
from outreach.features.inbox.jobs.rematch_job import run_inbound_rematch, start_inbound_rematch_scheduler
from outreach.infrastructure.observability.logging import get_logger, setup_logging
from outreach.jobs.business_import_job import run_business_import

logger = get_logger(__name__)

JobCoroutine = Callable[[], Awaitable[Any]]

JOB_REGISTRY: dict[str, JobCoroutine] = {
    "inbound_rematch": start_inbound_rematch_scheduler,
    "inbound_rematch_once": run_inbound_rematch,
    "business_import": run_business_import,
}


def _resolve_job_name() -> str:
    """Pick the target job from CLI args or WORKER_JOB env variable."""
    if len(sys.argv) > 1:
        return sys.argv[1].strip().lower()
    return os.getenv("WORKER_JOB", "inbound_rematch").strip().lower()


async def run_worker(job_name: str | None = None) -> None:
    """Run the requested background job."""
    name = (job_name or _resolve_job_name()).strip().lower()
    if name not in JOB_REGISTRY:
        raise ValueError(
            f"Unknown worker job '{name}'. "
            f"Available jobs: {', '.join(sorted(JOB_REGISTRY.keys()))}"
        )

    logger.info("Starting background worker", job=name)
    await db_pool.initialize()
    try:
        await JOB_REGISTRY[name]()
    finally:
        await db_pool.close()


def main() -> None:
    """CLI entrypoint."""
    setup_logging(log_level=settings.LOG_LEVEL)
    job_name = _resolve_job_name()
    asyncio.run(run_worker(job_name))


if __name__ == "__main__":
    main()
