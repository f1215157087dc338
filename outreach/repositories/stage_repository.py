"""
Persistence for pipeline stage assignments.

One row per (user_id, business_id). Writes are upserts so a stage change
and a migration replay land on the same row.
"""

from outreach.db.helpers import DatabaseError, execute_query, fetch_all, with_db_retry
from outreach.infrastructure.observability.logging import get_logger
from outreach.models.domain.pipeline_domain import Stage, parse_stages

logger = get_logger(__name__)


class StageRepository:
    @classmethod
    @with_db_retry(max_retries=3, base_delay=0.1)
    async def get_stages(cls, user_id: str) -> dict[str, Stage]:
        rows = await fetch_all(
            "SELECT business_id, stage FROM business_stages WHERE user_id = %s",
            (user_id,),
        )
        return parse_stages({row["business_id"]: row["stage"] for row in rows})

    @classmethod
    @with_db_retry(max_retries=3, base_delay=0.1)
    async def upsert_stage(cls, user_id: str, business_id: str, stage: Stage) -> None:
        query = """
            INSERT INTO business_stages (user_id, business_id, stage)
            VALUES (%s, %s, %s)
            ON CONFLICT (user_id, business_id) DO UPDATE SET
                stage = EXCLUDED.stage,
                updated_at = NOW()
        """
        affected = await execute_query(query, (user_id, business_id, Stage(stage).value))
        if affected != 1:
            raise DatabaseError(
                f"Stage upsert affected {affected} rows", operation="upsert_stage", recoverable=False
            )

        logger.debug("Stage saved", user_id=user_id, business_id=business_id, stage=Stage(stage).value)
