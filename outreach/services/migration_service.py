# outreach/services/migration_service.py
"""
One-time migration of locally cached pipeline state into the remote store.

Two phases:
1. transfer - read every local collection and write each record remotely
2. commit   - purge the local cache

Phase 2 runs only after phase 1 finished without error, and phase 1
reads every local collection before its first remote write. Stages and
stars are upserts or idempotent sets; threads are merged into any thread
the account already holds, so emails on either side survive and a
failed run can be retried from the start. A failure never yields a
partial receipt.
"""

from outreach.infrastructure.audit import audit_logger
from outreach.infrastructure.observability.logging import get_logger
from outreach.models.domain.business_domain import StarKind
from outreach.models.domain.migration_domain import CollectionCounts, MigrationReceipt, MigrationStatus
from outreach.services.local_cache import (
    BUSINESS_STAGES,
    EMAIL_THREADS,
    EXTERNAL_STARRED_BUSINESSES,
    STARRED_BUSINESSES,
    LocalCache,
    LocalCacheError,
)
from outreach.services.stores import RemoteStore, write_locks

logger = get_logger(__name__)

_COLLECTION_BY_KEY = {
    BUSINESS_STAGES: "business_stages",
    STARRED_BUSINESSES: "starred_businesses",
    EXTERNAL_STARRED_BUSINESSES: "starred_external_businesses",
    EMAIL_THREADS: "email_threads",
}


class MigrationError(Exception):
    """The transfer phase failed; the local cache was left untouched."""

    def __init__(self, message: str, collection: str | None = None):
        super().__init__(message)
        self.collection = collection


class MigrationService:
    def __init__(self, cache: LocalCache, remote: RemoteStore | None = None):
        self.cache = cache
        self.remote = remote

    def _remote_for(self, user_id: str) -> RemoteStore:
        if self.remote is not None and self.remote.user_id == user_id:
            return self.remote
        return RemoteStore(user_id)

    async def count_local_data(self) -> CollectionCounts:
        return CollectionCounts(
            business_stages=len(await self.cache.load_stages()),
            starred_businesses=len(await self.cache.load_starred(StarKind.DIRECTORY)),
            starred_external_businesses=len(await self.cache.load_starred(StarKind.EXTERNAL)),
            email_threads=len(await self.cache.load_threads()),
        )

    async def check_migration_status(self, user_id: str) -> MigrationStatus:
        counts = await self.count_local_data()
        logger.debug("Migration status checked", user_id=user_id, counts=counts.as_dict())
        return MigrationStatus(has_local_data=counts.total > 0, local_data_count=counts)

    async def migrate_from_local_storage(self, user_id: str) -> MigrationReceipt:
        """
        Copy every local collection into the remote store for `user_id`.

        Raises:
            MigrationError: any read or write failed; nothing is purged
        """
        remote = self._remote_for(user_id)
        receipt = MigrationReceipt()
        collection = "business_stages"

        try:
            # read everything before the first remote write
            stages = await self.cache.load_stages()
            collection = "starred_businesses"
            starred = await self.cache.load_starred(StarKind.DIRECTORY)
            collection = "starred_external_businesses"
            starred_external = await self.cache.load_starred(StarKind.EXTERNAL)
            collection = "email_threads"
            threads = await self.cache.load_threads()

            collection = "business_stages"
            for business_id, stage in stages.items():
                await remote.set_stage(business_id, stage)
                receipt.business_stages += 1

            collection = "starred_businesses"
            for business_id in starred:
                await remote.set_starred(business_id, StarKind.DIRECTORY, True)
                receipt.starred_businesses += 1

            collection = "starred_external_businesses"
            for business_id in starred_external:
                await remote.set_starred(business_id, StarKind.EXTERNAL, True)
                receipt.starred_external_businesses += 1

            collection = "email_threads"
            for thread in threads:
                async with write_locks.hold(remote.write_scope("email_threads", thread.business_id)):
                    await remote.merge_thread(thread)
                receipt.email_threads += 1

        except Exception as e:
            logger.error(
                "Migration failed",
                user_id=user_id,
                collection=collection,
                completed=receipt.as_dict(),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise MigrationError(f"Migration failed while copying {collection}: {e}", collection) from e

        logger.info("Migration transferred local data", user_id=user_id, counts=receipt.as_dict())
        return receipt

    async def clear_local_storage_after_migration(self) -> int:
        return await self.cache.purge()

    async def bootstrap(self, user_id: str, request_id: str | None = None) -> MigrationReceipt | None:
        """
        Session bootstrap: migrate and purge when local data exists.

        Returns None when there was nothing to migrate.
        """
        try:
            status = await self.check_migration_status(user_id)
        except LocalCacheError as e:
            collection = _COLLECTION_BY_KEY.get(e.key, e.key)
            logger.error("Migration status check failed", user_id=user_id, collection=collection, error=str(e))
            raise MigrationError(f"Migration failed while reading {collection}: {e}", collection) from e

        if not status.has_local_data:
            logger.info("No local data to migrate", user_id=user_id)
            return None

        receipt = await self.migrate_from_local_storage(user_id)
        await self.clear_local_storage_after_migration()
        await audit_logger.log_migration(user_id, receipt.as_dict(), request_id=request_id)
        return receipt
