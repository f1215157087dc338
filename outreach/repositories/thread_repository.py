"""
Persistence for email threads.

Each thread is one row keyed by (user_id, business_id) with the emails
stored as a JSONB array in thread order. Writes never replace a row
blindly: incoming emails are merged into the stored ones while the row
is locked, so writers in different processes cannot drop each other's
emails.
"""

import json

from outreach.db.helpers import DatabaseError, execute_query, fetch_all, fetch_one, with_db_retry
from outreach.db.pool import get_db_transaction
from outreach.features.inbox.domain import DEFAULT_THREAD_SUBJECT, EmailRecord, EmailThread
from outreach.features.inbox.pipeline.threads import merge_threads
from outreach.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class ThreadRepository:
    @classmethod
    def _row_to_thread(cls, row: dict | None) -> EmailThread | None:
        if not row:
            return None

        emails = row.get("emails") or []
        if isinstance(emails, str):
            emails = json.loads(emails)

        return EmailThread(
            business_id=row["business_id"],
            subject=row.get("subject") or DEFAULT_THREAD_SUBJECT,
            emails=[EmailRecord.from_dict(email) for email in emails],
        )

    @classmethod
    def _emails_json(cls, thread: EmailThread) -> str:
        return json.dumps([email.to_dict() for email in thread.emails])

    @classmethod
    @with_db_retry(max_retries=3, base_delay=0.1)
    async def get_thread(cls, user_id: str, business_id: str) -> EmailThread | None:
        row = await fetch_one(
            """
            SELECT business_id, subject, emails FROM email_threads
            WHERE user_id = %s AND business_id = %s
            """,
            (user_id, business_id),
        )
        return cls._row_to_thread(row)

    @classmethod
    @with_db_retry(max_retries=3, base_delay=0.1)
    async def list_threads(cls, user_id: str) -> list[EmailThread]:
        rows = await fetch_all(
            """
            SELECT business_id, subject, emails FROM email_threads
            WHERE user_id = %s
            ORDER BY updated_at DESC
            """,
            (user_id,),
        )
        return [cls._row_to_thread(row) for row in rows]

    @classmethod
    @with_db_retry(max_retries=3, base_delay=0.1)
    async def merge_thread(cls, user_id: str, thread: EmailThread) -> tuple[EmailThread, bool]:
        """
        Merge `thread` into the stored thread for its business in one transaction.

        A missing row is inserted as is. An existing row is read with
        FOR UPDATE, so concurrent merges for the same business wait for
        each other, and is rewritten only when new emails were added.

        Returns:
            The stored thread and whether this call changed it
        """
        async with await get_db_transaction() as conn:
            created = await fetch_one(
                """
                INSERT INTO email_threads (user_id, business_id, subject, emails)
                VALUES (%s, %s, %s, %s::jsonb)
                ON CONFLICT (user_id, business_id) DO NOTHING
                RETURNING business_id
                """,
                (
                    user_id,
                    thread.business_id,
                    thread.subject or DEFAULT_THREAD_SUBJECT,
                    cls._emails_json(thread),
                ),
                connection=conn,
            )
            if created:
                logger.debug("Thread created", user_id=user_id, business_id=thread.business_id)
                return thread, True

            row = await fetch_one(
                """
                SELECT business_id, subject, emails FROM email_threads
                WHERE user_id = %s AND business_id = %s
                FOR UPDATE
                """,
                (user_id, thread.business_id),
                connection=conn,
            )
            existing = cls._row_to_thread(row)
            if existing is None:
                raise DatabaseError(
                    "Thread row vanished during merge", operation="merge_thread", recoverable=True
                )

            merged = merge_threads(existing, thread)
            if merged is existing:
                return existing, False

            affected = await execute_query(
                """
                UPDATE email_threads
                SET subject = %s, emails = %s::jsonb, updated_at = NOW()
                WHERE user_id = %s AND business_id = %s
                """,
                (merged.subject, cls._emails_json(merged), user_id, merged.business_id),
                connection=conn,
            )
            if affected != 1:
                raise DatabaseError(
                    f"Thread update affected {affected} rows", operation="merge_thread", recoverable=False
                )

        logger.debug(
            "Thread merged", user_id=user_id, business_id=merged.business_id, email_count=len(merged.emails)
        )
        return merged, True
