"""
Persistence for business records.

Businesses arrive through bulk import and are read back as the candidate
set for inbound email matching.
"""

from collections.abc import Iterable

from outreach.db.helpers import execute_transaction, fetch_all, with_db_retry
from outreach.infrastructure.observability.logging import get_logger
from outreach.models.domain.business_domain import Business

logger = get_logger(__name__)


class BusinessRepository:
    SELECT_COLUMNS = """
        b.business_id, b.source, b.name, b.rating, b.reviews, b.city, b.domain,
        b.email_1, b.email_2, b.email_3
    """

    @classmethod
    @with_db_retry(max_retries=3, base_delay=0.1)
    async def list_for_user(cls, user_id: str) -> list[Business]:
        """All businesses visible to the user, starred flag included."""
        query = f"""
            SELECT {cls.SELECT_COLUMNS},
                   (s.business_id IS NOT NULL) AS is_starred
            FROM businesses b
            LEFT JOIN starred_businesses s
              ON s.user_id = b.user_id
             AND s.business_id = b.business_id
             AND s.business_type = b.source
            WHERE b.user_id = %s
            ORDER BY b.name, b.business_id
        """
        rows = await fetch_all(query, (user_id,))

        businesses = []
        for row in rows:
            business = Business.from_db_row(row)
            business.is_starred = bool(row.get("is_starred"))
            businesses.append(business)
        return businesses

    @classmethod
    async def upsert_many(cls, user_id: str, businesses: Iterable[Business]) -> int:
        query = """
            INSERT INTO businesses (
                user_id, business_id, source, name, rating, reviews, city, domain,
                email_1, email_2, email_3
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (user_id, business_id) DO UPDATE SET
                source = EXCLUDED.source,
                name = EXCLUDED.name,
                rating = EXCLUDED.rating,
                reviews = EXCLUDED.reviews,
                city = EXCLUDED.city,
                domain = EXCLUDED.domain,
                email_1 = EXCLUDED.email_1,
                email_2 = EXCLUDED.email_2,
                email_3 = EXCLUDED.email_3,
                updated_at = NOW()
        """
        statements = [
            (
                query,
                (
                    user_id,
                    business.id,
                    business.source.value,
                    business.name,
                    business.rating,
                    business.reviews,
                    business.city,
                    business.domain,
                    *business.email_columns(),
                ),
            )
            for business in businesses
        ]
        if not statements:
            return 0

        await execute_transaction(statements)
        logger.info("Businesses upserted", user_id=user_id, count=len(statements))
        return len(statements)
