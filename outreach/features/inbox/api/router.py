"""
Inbound email routes.

The webhook is called by the email provider, not by a user, so it is
authenticated with an HMAC-SHA256 signature over the raw body instead of
a JWT. Deliveries are filed under the configured inbox owner.
"""

import hashlib
import hmac
import json

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import ValidationError

from outreach.config import settings
from outreach.db.helpers import DatabaseError
from outreach.features.inbox.services.ingestion_service import InboxIngestionService
from outreach.infrastructure.observability.logging import get_logger
from outreach.models.api.inbox_request import InboundEmailPayload, RematchRequest
from outreach.models.api.inbox_response import (
    EmailResponse,
    InboundIngestResponse,
    InboundListResponse,
    RematchResponse,
)
from outreach.routes.dependencies import get_user_id
from outreach.services.stores import StoreError

logger = get_logger(__name__)

router = APIRouter(prefix="/api/email", tags=["inbox"])

SIGNATURE_HEADER = "x-webhook-signature"


def verify_webhook_signature(raw: bytes, signature: str | None) -> None:
    secret = settings.INBOUND_WEBHOOK_SECRET
    if not secret:
        return
    if not signature:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing signature")

    expected = hmac.new(secret.encode(), raw, hashlib.sha256).hexdigest()
    provided = signature.removeprefix("sha256=").strip().lower()
    if not hmac.compare_digest(expected, provided):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")


def get_inbox_owner() -> str:
    if not settings.INBOUND_OWNER_USER_ID:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Inbound email is not configured"
        )
    return settings.INBOUND_OWNER_USER_ID


@router.post("/inbound", response_model=InboundIngestResponse)
async def receive_inbound_email(request: Request, owner_id: str = Depends(get_inbox_owner)):
    """Accept one inbound delivery. Unmatched emails are stored and still return 200."""
    raw = await request.body()
    verify_webhook_signature(raw, request.headers.get(SIGNATURE_HEADER))

    try:
        payload = InboundEmailPayload.model_validate(json.loads(raw or b"{}"))
    except (ValueError, ValidationError) as e:
        logger.warning("Rejected malformed inbound payload", error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed email payload")

    service = InboxIngestionService(owner_id)
    request_id = getattr(request.state, "request_id", None)
    try:
        result = await service.ingest(payload.to_payload(), request_id=request_id)
    except (DatabaseError, StoreError) as e:
        logger.error("Inbound email ingestion failed", user_id=owner_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to store inbound email"
        )

    return InboundIngestResponse(
        email_id=result.email.id,
        business_id=result.business_id,
        matched=result.matched,
        strategy=result.strategy,
        duplicate=result.duplicate,
    )


@router.get("/inbound", response_model=InboundListResponse)
async def list_inbound_emails(
    user_id: str = Depends(get_user_id),
    business_id: str | None = Query(default=None, alias="businessId", description="Only this business"),
    unmatched: bool = Query(default=False, description="Only emails not linked to a business"),
    limit: int = Query(default=50, ge=1, le=200, description="Maximum emails to return"),
):
    """Received emails, newest first."""
    try:
        emails = await InboxIngestionService(user_id).list_inbound(
            business_id=business_id, unmatched=unmatched, limit=limit
        )
    except DatabaseError as e:
        logger.error("Error listing inbound emails", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to list inbound emails"
        )

    return InboundListResponse(
        emails=[EmailResponse.from_domain(email) for email in emails], total_count=len(emails)
    )


@router.post("/rematch", response_model=RematchResponse)
async def rematch_unmatched_emails(
    body: RematchRequest | None = None,
    user_id: str = Depends(get_user_id),
):
    """Run the matcher again over unmatched emails, e.g. after importing businesses."""
    limit = body.limit if body else RematchRequest().limit
    try:
        result = await InboxIngestionService(user_id).rematch_unmatched(limit=limit)
    except (DatabaseError, StoreError) as e:
        logger.error("Rematch failed", user_id=user_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to re-match emails"
        )

    return RematchResponse(scanned=result.scanned, matched=result.matched)
