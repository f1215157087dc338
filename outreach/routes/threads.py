"""
Email thread routes.
Served from whichever store the session uses (local cache or remote).
"""

from fastapi import APIRouter, Depends, HTTPException, status

from outreach.db.helpers import DatabaseError
from outreach.features.inbox.services.thread_service import ThreadService
from outreach.infrastructure.observability.logging import get_logger
from outreach.models.api.inbox_request import RecordSentEmailRequest
from outreach.models.api.inbox_response import EmailResponse, ThreadResponse, ThreadsListResponse
from outreach.routes.dependencies import get_store
from outreach.services.local_cache import LocalCacheError
from outreach.services.stores import OutreachStore, StoreError

logger = get_logger(__name__)

router = APIRouter(prefix="/threads", tags=["threads"])


@router.get("", response_model=ThreadsListResponse)
async def list_threads(store: OutreachStore = Depends(get_store)):
    try:
        threads = await ThreadService(store).list_threads()
    except (DatabaseError, LocalCacheError) as e:
        logger.error("Error listing threads", owner=store.owner, error=str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to list threads")

    return ThreadsListResponse(
        threads=[ThreadResponse.from_domain(thread) for thread in threads], total_count=len(threads)
    )


@router.get("/{business_id}", response_model=ThreadResponse)
async def get_thread(business_id: str, store: OutreachStore = Depends(get_store)):
    try:
        thread = await ThreadService(store).get_thread(business_id)
    except (DatabaseError, LocalCacheError) as e:
        logger.error("Error loading thread", owner=store.owner, business_id=business_id, error=str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load thread")

    if thread is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No emails for this business")
    return ThreadResponse.from_domain(thread)


@router.post("/{business_id}/emails", response_model=EmailResponse, status_code=status.HTTP_201_CREATED)
async def record_sent_email(
    business_id: str,
    body: RecordSentEmailRequest,
    store: OutreachStore = Depends(get_store),
):
    """Record an email the user just sent to this business."""
    try:
        email = await ThreadService(store).record_sent_email(
            business_id,
            to=body.to,
            subject=body.subject,
            text=body.body,
            html=body.html,
            message_id=body.message_id,
        )
    except (DatabaseError, StoreError, LocalCacheError) as e:
        logger.error("Error recording sent email", owner=store.owner, business_id=business_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to record sent email"
        )

    return EmailResponse.from_domain(email)
