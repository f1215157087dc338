"""
Inbound re-match job.

Periodically runs the matcher over the inbox owner's unmatched emails so
deliveries that arrived before their business was imported still end up
in the right thread.
"""

import asyncio

from outreach.config import settings
from outreach.features.inbox.services.ingestion_service import InboxIngestionService, RematchResult
from outreach.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


async def run_inbound_rematch(user_id: str | None = None) -> RematchResult | None:
    """Run one re-match pass. Returns None when no inbox owner is configured."""
    owner_id = user_id or settings.INBOUND_OWNER_USER_ID
    if not owner_id:
        logger.warning("Inbound rematch skipped", reason="INBOUND_OWNER_USER_ID not set")
        return None

    result = await InboxIngestionService(owner_id).rematch_unmatched(
        limit=settings.INBOUND_REMATCH_BATCH_SIZE
    )
    logger.info(
        "Inbound rematch completed", user_id=owner_id, scanned=result.scanned, matched=result.matched
    )
    return result


async def start_inbound_rematch_scheduler() -> None:
    interval_minutes = settings.INBOUND_REMATCH_INTERVAL_MINUTES
    logger.info("Starting inbound rematch scheduler", interval_minutes=interval_minutes)

    while True:
        try:
            await run_inbound_rematch()
        except Exception as e:
            logger.error("Error in inbound rematch scheduler", error=str(e), error_type=type(e).__name__)

        await asyncio.sleep(interval_minutes * 60)
