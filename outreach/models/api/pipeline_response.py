"""
Pipeline API response models.
"""

from pydantic import BaseModel, Field

from outreach.models.domain.business_domain import StarKind
from outreach.models.domain.pipeline_domain import Stage


class StageResponse(BaseModel):
    business_id: str
    stage: Stage


class StagesResponse(BaseModel):
    stages: dict[str, Stage] = Field(..., description="Explicit assignments; absent businesses are New")
    total_count: int


class StarredListResponse(BaseModel):
    kind: StarKind
    business_ids: list[str]
    total_count: int


class StarToggleResponse(BaseModel):
    business_id: str
    kind: StarKind
    starred: bool
