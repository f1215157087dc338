"""
Pipeline API request models.
"""

from pydantic import BaseModel, Field

from outreach.models.domain.pipeline_domain import Stage


class SetStageRequest(BaseModel):
    """Move a business to a pipeline stage."""

    stage: Stage = Field(..., description="New, Contacted, Engaged, Qualified or Converted")
