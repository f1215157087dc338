"""
Migration API response models.
"""

from pydantic import BaseModel, Field

from outreach.models.domain.migration_domain import CollectionCounts


class MigrationCountsResponse(BaseModel):
    business_stages: int = 0
    starred_businesses: int = 0
    starred_external_businesses: int = 0
    email_threads: int = Field(0, description="Threads migrated, not individual emails")

    @classmethod
    def from_domain(cls, counts: CollectionCounts) -> "MigrationCountsResponse":
        return cls(**counts.as_dict())


class MigrationStatusResponse(BaseModel):
    has_local_data: bool
    local_data_count: MigrationCountsResponse


class MigrationResponse(BaseModel):
    migrated: bool
    message: str
    counts: MigrationCountsResponse | None = None
