"""
Inbound email ingestion for the inbox owner.

Inbound flow:
1. build an EmailRecord from the delivery payload
2. resolve the business with the matcher (a miss is fine)
3. store the delivery in inbound_emails, linked or not
4. when matched, merge it into that business's thread

Unmatched deliveries stay in inbound_emails with no business and are
picked up later by `rematch_unmatched`.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from outreach.features.inbox.domain import EmailRecord, email_from_inbound
from outreach.features.inbox.domain.models import normalize_headers
from outreach.features.inbox.pipeline.matching import BusinessMatcher, business_matcher
from outreach.features.inbox.repository.inbound_email_repository import InboundEmailRepository
from outreach.features.inbox.services.thread_service import ThreadService
from outreach.infrastructure.audit import audit_logger
from outreach.infrastructure.observability.logging import get_logger
from outreach.models.domain.business_domain import Business
from outreach.repositories.business_repository import BusinessRepository
from outreach.services.stores import OutreachStore, RemoteStore

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class IngestResult:
    email: EmailRecord
    business_id: str | None
    strategy: str | None
    duplicate: bool

    @property
    def matched(self) -> bool:
        return self.business_id is not None


@dataclass(frozen=True, slots=True)
class RematchResult:
    scanned: int
    matched: int


class InboxIngestionService:
    """Inbound email operations for one owning user."""

    def __init__(
        self,
        user_id: str,
        store: OutreachStore | None = None,
        matcher: BusinessMatcher | None = None,
    ):
        self.user_id = user_id
        self.threads = ThreadService(store or RemoteStore(user_id))
        self.matcher = matcher or business_matcher

    async def load_businesses(self) -> list[Business]:
        return await BusinessRepository.list_for_user(self.user_id)

    async def ingest(
        self,
        payload: Mapping[str, Any],
        *,
        received_at: datetime | None = None,
        request_id: str | None = None,
    ) -> IngestResult:
        email = email_from_inbound(payload, received_at=received_at or datetime.now(UTC))
        businesses = await self.load_businesses()

        business_id, strategy = self.matcher.resolve(email, businesses)
        email = email.with_business(business_id)

        stored = await InboundEmailRepository.store(
            self.user_id, email, normalize_headers(payload.get("headers"))
        )
        inserted = stored.inserted
        if stored.business_id != business_id:
            # a redelivery stays with the business its first delivery was linked to
            business_id, strategy = stored.business_id, "stored"
            email = email.with_business(business_id)
        if business_id:
            await self.threads.merge_email(business_id, email)

        logger.info(
            "Inbound email ingested",
            user_id=self.user_id,
            email_id=email.id,
            business_id=business_id,
            strategy=strategy,
            duplicate=not inserted,
        )
        if inserted:
            await audit_logger.log(
                user_id=self.user_id,
                action="inbound_email_received",
                resource_type="inbound_email",
                resource_id=email.id,
                request_id=request_id,
                metadata={"business_id": business_id, "strategy": strategy},
            )

        return IngestResult(email=email, business_id=business_id, strategy=strategy, duplicate=not inserted)

    async def rematch_unmatched(
        self, limit: int = 500, businesses: Sequence[Business] | None = None
    ) -> RematchResult:
        """Run the matcher again over stored unmatched emails and link the hits."""
        pending = await InboundEmailRepository.list_unmatched(self.user_id, limit=limit)
        if not pending:
            return RematchResult(scanned=0, matched=0)

        if businesses is None:
            businesses = await self.load_businesses()

        matched = 0
        for email in pending:
            business_id, strategy = self.matcher.resolve(email, businesses)
            if not business_id:
                continue
            if await InboundEmailRepository.assign_business(self.user_id, email.id, business_id):
                await self.threads.merge_email(business_id, email.with_business(business_id))
                matched += 1
                logger.info(
                    "Unmatched email linked",
                    user_id=self.user_id,
                    email_id=email.id,
                    business_id=business_id,
                    strategy=strategy,
                )

        if matched:
            await audit_logger.log(
                user_id=self.user_id,
                action="inbound_emails_rematched",
                resource_type="inbound_email",
                resource_count=matched,
            )

        return RematchResult(scanned=len(pending), matched=matched)

    async def list_inbound(
        self, *, business_id: str | None = None, unmatched: bool = False, limit: int = 50
    ) -> list[EmailRecord]:
        return await InboundEmailRepository.list_emails(
            self.user_id, business_id=business_id, unmatched=unmatched, limit=limit
        )
