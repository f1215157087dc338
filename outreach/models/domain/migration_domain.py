# outreach/models/domain/migration_domain.py
"""
Migration Domain Models
Counters reported when local cache contents move to the remote store.
"""

from dataclasses import asdict, dataclass


@dataclass(slots=True)
class CollectionCounts:
    """Per-category record counts for the migrated collections."""

    business_stages: int = 0
    starred_businesses: int = 0
    starred_external_businesses: int = 0
    email_threads: int = 0

    @property
    def total(self) -> int:
        return (
            self.business_stages
            + self.starred_businesses
            + self.starred_external_businesses
            + self.email_threads
        )

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(slots=True)
class MigrationReceipt(CollectionCounts):
    """Result of one successful migration run. Returned once, never stored."""


@dataclass(slots=True)
class MigrationStatus:
    has_local_data: bool
    local_data_count: CollectionCounts
