"""
One-time business import job.

Loads a lead dataset (JSON object keyed by category, each value a list
of rows like {"Website": ..., "Rating": ..., "Reviews": ..., "Address":
..., "Domain": ...}) into the inbox owner's businesses, then re-matches
unmatched inbound email against the new records.
"""

import json
from pathlib import Path
from typing import Any

from outreach.config import settings
from outreach.features.inbox.jobs.rematch_job import run_inbound_rematch
from outreach.infrastructure.observability.logging import get_logger
from outreach.models.domain.business_domain import Business
from outreach.repositories.business_repository import BusinessRepository

logger = get_logger(__name__)


def load_dataset(path: str | Path) -> list[Business]:
    """Parse the dataset file; ids default to '<category>-<row index>'."""
    data: Any = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, list):
        data = {"leads": data}
    if not isinstance(data, dict):
        raise ValueError("Business dataset must be a JSON object keyed by category")

    businesses = []
    for category, rows in data.items():
        if not isinstance(rows, list):
            logger.warning("Skipping dataset category with no rows", category=category)
            continue
        for index, row in enumerate(rows):
            if isinstance(row, dict):
                businesses.append(Business.from_dataset_row(row, category=category, index=index))
    return businesses


async def run_business_import(path: str | None = None, user_id: str | None = None) -> int:
    dataset_path = path or settings.BUSINESS_IMPORT_PATH
    owner_id = user_id or settings.INBOUND_OWNER_USER_ID
    if not dataset_path or not owner_id:
        logger.warning(
            "Business import skipped",
            reason="BUSINESS_IMPORT_PATH and INBOUND_OWNER_USER_ID are required",
        )
        return 0

    businesses = load_dataset(dataset_path)
    imported = await BusinessRepository.upsert_many(owner_id, businesses)
    logger.info("Business import completed", user_id=owner_id, imported=imported, path=str(dataset_path))

    if imported:
        await run_inbound_rematch(owner_id)
    return imported
