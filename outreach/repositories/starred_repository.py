"""
Persistence for starred businesses.

A business is starred at most once per kind. `set_starred` is idempotent
and is what bulk writers (migration) use; `toggle_starred` flips the
current state and backs the UI action.
"""

from outreach.db.helpers import execute_query, fetch_all, with_db_retry
from outreach.db.pool import get_db_transaction
from outreach.infrastructure.observability.logging import get_logger
from outreach.models.domain.business_domain import StarKind

logger = get_logger(__name__)


class StarredRepository:
    @classmethod
    @with_db_retry(max_retries=3, base_delay=0.1)
    async def list_starred(cls, user_id: str, kind: StarKind) -> list[str]:
        rows = await fetch_all(
            """
            SELECT business_id FROM starred_businesses
            WHERE user_id = %s AND business_type = %s
            ORDER BY created_at, business_id
            """,
            (user_id, StarKind(kind).value),
        )
        return [row["business_id"] for row in rows]

    @classmethod
    @with_db_retry(max_retries=3, base_delay=0.1)
    async def set_starred(cls, user_id: str, business_id: str, kind: StarKind, starred: bool) -> bool:
        """Force the star state. Repeating the call changes nothing."""
        kind = StarKind(kind)
        if starred:
            await execute_query(
                """
                INSERT INTO starred_businesses (user_id, business_id, business_type)
                VALUES (%s, %s, %s)
                ON CONFLICT (user_id, business_id, business_type) DO NOTHING
                """,
                (user_id, business_id, kind.value),
            )
        else:
            await execute_query(
                """
                DELETE FROM starred_businesses
                WHERE user_id = %s AND business_id = %s AND business_type = %s
                """,
                (user_id, business_id, kind.value),
            )
        return starred

    @classmethod
    async def toggle_starred(cls, user_id: str, business_id: str, kind: StarKind) -> bool:
        """Flip the star state inside one transaction; returns the new state."""
        kind = StarKind(kind)
        params = (user_id, business_id, kind.value)
        async with await get_db_transaction() as conn:
            removed = await execute_query(
                """
                DELETE FROM starred_businesses
                WHERE user_id = %s AND business_id = %s AND business_type = %s
                """,
                params,
                connection=conn,
            )
            if removed:
                starred = False
            else:
                await execute_query(
                    """
                    INSERT INTO starred_businesses (user_id, business_id, business_type)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (user_id, business_id, business_type) DO NOTHING
                    """,
                    params,
                    connection=conn,
                )
                starred = True

        logger.info("Star toggled", user_id=user_id, business_id=business_id, kind=kind.value, starred=starred)
        return starred
