"""
Migration routes.

Called by the client right after sign-in with both the bearer token (the
destination user) and X-Device-ID (the source local cache).
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from outreach.infrastructure.observability.logging import get_logger
from outreach.models.api.migration_response import (
    MigrationCountsResponse,
    MigrationResponse,
    MigrationStatusResponse,
)
from outreach.routes.dependencies import get_device_cache, get_user_id
from outreach.services.local_cache import LocalCache, LocalCacheError
from outreach.services.migration_service import MigrationError, MigrationService

logger = get_logger(__name__)

router = APIRouter(prefix="/migration", tags=["migration"])


@router.get("/status", response_model=MigrationStatusResponse)
async def get_migration_status(
    user_id: str = Depends(get_user_id),
    cache: LocalCache = Depends(get_device_cache),
):
    try:
        status_ = await MigrationService(cache).check_migration_status(user_id)
    except LocalCacheError as e:
        logger.error("Migration status check failed", user_id=user_id, key=e.key, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Local data is unavailable right now"
        )
    return MigrationStatusResponse(
        has_local_data=status_.has_local_data,
        local_data_count=MigrationCountsResponse.from_domain(status_.local_data_count),
    )


@router.post("", response_model=MigrationResponse)
async def migrate_local_data(
    request: Request,
    user_id: str = Depends(get_user_id),
    cache: LocalCache = Depends(get_device_cache),
):
    """Copy the device's local data into the user's account, then clear it locally."""
    request_id = getattr(request.state, "request_id", None)
    try:
        receipt = await MigrationService(cache).bootstrap(user_id, request_id=request_id)
    except MigrationError as e:
        logger.error("Migration request failed", user_id=user_id, collection=e.collection, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Migration failed; your local data was kept. Please try again.",
        )

    if receipt is None:
        return MigrationResponse(migrated=False, message="No local data to migrate")

    return MigrationResponse(
        migrated=True,
        message="Local data migrated",
        counts=MigrationCountsResponse.from_domain(receipt),
    )
