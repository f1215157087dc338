"""Thread reads and writes against the session's store."""

from datetime import UTC, datetime

from outreach.config import settings
from outreach.features.inbox.domain import EmailDirection, EmailRecord, EmailThread
from outreach.features.inbox.domain.models import generate_email_id
from outreach.features.inbox.pipeline.threads import merge_into_thread
from outreach.infrastructure.observability.logging import get_logger
from outreach.services.stores import OutreachStore, write_locks

logger = get_logger(__name__)


class ThreadService:
    def __init__(self, store: OutreachStore):
        self.store = store

    async def merge_email(self, business_id: str, email: EmailRecord) -> EmailThread:
        """Merge into the business's thread; writes only when the thread changed."""
        async with write_locks.hold(self.store.write_scope("email_threads", business_id)):
            return await self.store.merge_thread(merge_into_thread(None, business_id, email))

    async def record_sent_email(
        self,
        business_id: str,
        *,
        to: str,
        subject: str,
        text: str,
        html: str | None = None,
        message_id: str | None = None,
        sender: str | None = None,
        timestamp: datetime | None = None,
    ) -> EmailRecord:
        """Append an email the user sent; `message_id` is the id the send provider returned."""
        email = EmailRecord(
            id=message_id or generate_email_id(EmailDirection.SENT),
            sender=sender or settings.INBOUND_DEFAULT_TO,
            recipient=to,
            subject=subject,
            text=text,
            html=html,
            timestamp=timestamp or datetime.now(UTC),
            direction=EmailDirection.SENT,
            business_id=business_id,
        )
        await self.merge_email(business_id, email)
        logger.info("Sent email recorded", owner=self.store.owner, business_id=business_id, email_id=email.id)
        return email

    async def get_thread(self, business_id: str) -> EmailThread | None:
        return await self.store.get_thread(business_id)

    async def list_threads(self) -> list[EmailThread]:
        return await self.store.list_threads()
