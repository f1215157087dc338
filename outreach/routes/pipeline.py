"""
Pipeline routes: stage assignments and starred businesses.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from outreach.db.helpers import DatabaseError
from outreach.infrastructure.observability.logging import get_logger
from outreach.models.api.pipeline_request import SetStageRequest
from outreach.models.api.pipeline_response import (
    StageResponse,
    StagesResponse,
    StarredListResponse,
    StarToggleResponse,
)
from outreach.models.domain.business_domain import StarKind
from outreach.routes.dependencies import get_store
from outreach.services.local_cache import LocalCacheError
from outreach.services.pipeline_service import StagePipeline
from outreach.services.stores import OutreachStore, StoreError

logger = get_logger(__name__)

router = APIRouter(prefix="/pipeline", tags=["pipeline"])


def _store_failure(action: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to {action}")


@router.get("/stages", response_model=StagesResponse)
async def get_stages(store: OutreachStore = Depends(get_store)):
    try:
        stages = await StagePipeline(store).get_stages()
    except (DatabaseError, LocalCacheError) as e:
        logger.error("Error loading stages", owner=store.owner, error=str(e))
        raise _store_failure("load stages")
    return StagesResponse(stages=stages, total_count=len(stages))


@router.get("/stages/{business_id}", response_model=StageResponse)
async def get_stage(business_id: str, store: OutreachStore = Depends(get_store)):
    try:
        stage = await StagePipeline(store).get_stage(business_id)
    except (DatabaseError, LocalCacheError) as e:
        logger.error("Error loading stage", owner=store.owner, business_id=business_id, error=str(e))
        raise _store_failure("load stage")
    return StageResponse(business_id=business_id, stage=stage)


@router.put("/stages/{business_id}", response_model=StageResponse)
async def set_stage(business_id: str, body: SetStageRequest, store: OutreachStore = Depends(get_store)):
    try:
        stage = await StagePipeline(store).set_stage(business_id, body.stage)
    except (DatabaseError, StoreError, LocalCacheError) as e:
        logger.error("Error saving stage", owner=store.owner, business_id=business_id, error=str(e))
        raise _store_failure("save stage")
    return StageResponse(business_id=business_id, stage=stage)


@router.get("/starred/{kind}", response_model=StarredListResponse)
async def list_starred(kind: StarKind, store: OutreachStore = Depends(get_store)):
    try:
        business_ids = await StagePipeline(store).list_starred(kind)
    except (DatabaseError, LocalCacheError) as e:
        logger.error("Error loading starred businesses", owner=store.owner, kind=kind.value, error=str(e))
        raise _store_failure("load starred businesses")
    return StarredListResponse(kind=kind, business_ids=business_ids, total_count=len(business_ids))


@router.post("/starred/{kind}/{business_id}/toggle", response_model=StarToggleResponse)
async def toggle_star(kind: StarKind, business_id: str, store: OutreachStore = Depends(get_store)):
    try:
        starred = await StagePipeline(store).toggle_star(business_id, kind)
    except (DatabaseError, StoreError, LocalCacheError) as e:
        logger.error("Error toggling star", owner=store.owner, business_id=business_id, error=str(e))
        raise _store_failure("toggle star")
    return StarToggleResponse(business_id=business_id, kind=kind, starred=starred)
