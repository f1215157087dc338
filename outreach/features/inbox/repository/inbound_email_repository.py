"""
Persistence for inbound email deliveries.

Every received email is stored here whether or not it matched a
business; unmatched rows keep business_id NULL until a re-match links
them. Redelivery of the same message id never creates a second row and
never unlinks an already matched one.
"""

import json
from dataclasses import dataclass
from typing import Any

from outreach.db.helpers import execute_query, fetch_all, with_db_retry
from outreach.features.inbox.domain import EmailDirection, EmailRecord
from outreach.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_LIST_LIMIT = 50


@dataclass(frozen=True, slots=True)
class StoredDelivery:
    inserted: bool
    business_id: str | None


class InboundEmailRepository:
    SELECT_COLUMNS = """
        id, business_id, sender, recipient, subject, body_text, body_html,
        thread_reference, sent_at, received_at
    """

    @classmethod
    def _row_to_email(cls, row: dict[str, Any]) -> EmailRecord:
        return EmailRecord(
            id=row["id"],
            sender=row["sender"],
            recipient=row["recipient"],
            subject=row["subject"],
            text=row.get("body_text") or "",
            html=row.get("body_html"),
            timestamp=row["sent_at"],
            direction=EmailDirection.RECEIVED,
            business_id=row.get("business_id"),
            thread_reference=row.get("thread_reference"),
        )

    @classmethod
    async def store(
        cls, user_id: str, email: EmailRecord, headers: dict[str, str] | None = None
    ) -> StoredDelivery:
        """
        Insert the delivery, or find the stored one for a redelivered message id.

        The returned business_id is the stored link: a redelivery keeps the
        business the first delivery matched even when `email` carries another.
        """
        query = """
            INSERT INTO inbound_emails (
                id, user_id, business_id, sender, recipient, subject,
                body_text, body_html, headers, thread_reference, sent_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s::jsonb, %s, %s)
            ON CONFLICT (user_id, id) DO UPDATE SET
                business_id = COALESCE(inbound_emails.business_id, EXCLUDED.business_id)
            RETURNING business_id, (xmax = 0) AS inserted
        """
        rows = await fetch_all(
            query,
            (
                email.id,
                user_id,
                email.business_id,
                email.sender,
                email.recipient,
                email.subject,
                email.text,
                email.html,
                json.dumps(headers or {}),
                email.thread_reference,
                email.timestamp,
            ),
        )
        row = rows[0] if rows else {}
        stored = StoredDelivery(inserted=bool(row.get("inserted")), business_id=row.get("business_id"))
        if not stored.inserted:
            logger.info(
                "Inbound email redelivered", user_id=user_id, email_id=email.id, business_id=stored.business_id
            )
        return stored

    @classmethod
    @with_db_retry(max_retries=3, base_delay=0.1)
    async def list_emails(
        cls,
        user_id: str,
        *,
        business_id: str | None = None,
        unmatched: bool = False,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[EmailRecord]:
        """Newest first. `unmatched` wins over `business_id` when both are given."""
        conditions = ["user_id = %s"]
        params: list[Any] = [user_id]
        if unmatched:
            conditions.append("business_id IS NULL")
        elif business_id:
            conditions.append("business_id = %s")
            params.append(business_id)
        params.append(limit)

        query = f"""
            SELECT {cls.SELECT_COLUMNS} FROM inbound_emails
            WHERE {" AND ".join(conditions)}
            ORDER BY received_at DESC
            LIMIT %s
        """
        rows = await fetch_all(query, tuple(params))
        return [cls._row_to_email(row) for row in rows]

    @classmethod
    async def list_unmatched(cls, user_id: str, limit: int = 500) -> list[EmailRecord]:
        return await cls.list_emails(user_id, unmatched=True, limit=limit)

    @classmethod
    async def assign_business(cls, user_id: str, email_id: str, business_id: str) -> bool:
        """Link an unmatched email; already linked rows are left alone."""
        affected = await execute_query(
            """
            UPDATE inbound_emails SET business_id = %s
            WHERE user_id = %s AND id = %s AND business_id IS NULL
            """,
            (business_id, user_id, email_id),
        )
        return affected > 0
