# outreach/services/stores.py
"""
The two stores behind pipeline state.

LocalCacheStore serves unauthenticated sessions from the per-device local
cache; RemoteStore serves authenticated users from Postgres, scoped by
the owning user id. Services depend only on the OutreachStore protocol
and never branch on which one they were given.

Read-modify-write sequences against either store hold `write_locks`
under the key returned by `write_scope`. Remote rows are independent per
business; a local collection is one serialized value, so the whole
collection is the scope. The lock only covers this process; remote
thread merges also lock the row in Postgres.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol, runtime_checkable

from outreach.features.inbox.domain import EmailThread
from outreach.features.inbox.pipeline.threads import merge_threads
from outreach.infrastructure.observability.logging import get_logger
from outreach.models.domain.business_domain import StarKind
from outreach.models.domain.pipeline_domain import Stage
from outreach.repositories.stage_repository import StageRepository
from outreach.repositories.starred_repository import StarredRepository
from outreach.repositories.thread_repository import ThreadRepository
from outreach.services.change_feed import ANY_TABLE, ChangeEvent, ChangeFeed, change_feed
from outreach.services.local_cache import LocalCache
from outreach.utils.keyed_lock import KeyedLock

logger = get_logger(__name__)

write_locks = KeyedLock()


class StoreError(Exception):
    """A store write could not be completed."""

    def __init__(self, message: str, operation: str = "unknown"):
        super().__init__(message)
        self.operation = operation


@runtime_checkable
class OutreachStore(Protocol):
    @property
    def owner(self) -> str: ...

    def write_scope(self, collection: str, business_id: str) -> tuple: ...

    async def get_stages(self) -> dict[str, Stage]: ...

    async def set_stage(self, business_id: str, stage: Stage) -> None: ...

    async def list_starred(self, kind: StarKind) -> list[str]: ...

    async def set_starred(self, business_id: str, kind: StarKind, starred: bool) -> bool: ...

    async def toggle_starred(self, business_id: str, kind: StarKind) -> bool: ...

    async def list_threads(self) -> list[EmailThread]: ...

    async def get_thread(self, business_id: str) -> EmailThread | None: ...

    async def merge_thread(self, thread: EmailThread) -> EmailThread: ...


class LocalCacheStore:
    """Pipeline state held in one device's local cache."""

    def __init__(self, cache: LocalCache):
        self.cache = cache

    @property
    def owner(self) -> str:
        return f"device:{self.cache.device_id}"

    def write_scope(self, collection: str, business_id: str) -> tuple:
        return (self.owner, collection)

    def _require_saved(self, saved: bool, operation: str) -> None:
        if not saved:
            raise StoreError("Local cache write failed", operation=operation)

    async def get_stages(self) -> dict[str, Stage]:
        return await self.cache.load_stages()

    async def set_stage(self, business_id: str, stage: Stage) -> None:
        stages = await self.cache.load_stages()
        stages[business_id] = Stage(stage)
        self._require_saved(await self.cache.save_stages(stages), "set_stage")

    async def list_starred(self, kind: StarKind) -> list[str]:
        return await self.cache.load_starred(StarKind(kind))

    async def set_starred(self, business_id: str, kind: StarKind, starred: bool) -> bool:
        kind = StarKind(kind)
        ids = await self.cache.load_starred(kind)
        if starred and business_id not in ids:
            ids.append(business_id)
        elif not starred and business_id in ids:
            ids.remove(business_id)
        else:
            return starred
        self._require_saved(await self.cache.save_starred(kind, ids), "set_starred")
        return starred

    async def toggle_starred(self, business_id: str, kind: StarKind) -> bool:
        kind = StarKind(kind)
        currently = business_id in await self.cache.load_starred(kind)
        return await self.set_starred(business_id, kind, not currently)

    async def list_threads(self) -> list[EmailThread]:
        return await self.cache.load_threads()

    async def get_thread(self, business_id: str) -> EmailThread | None:
        for thread in await self.cache.load_threads():
            if thread.business_id == business_id:
                return thread
        return None

    async def merge_thread(self, thread: EmailThread) -> EmailThread:
        threads = await self.cache.load_threads()
        existing = next((t for t in threads if t.business_id == thread.business_id), None)
        merged = merge_threads(existing, thread)
        if merged is not existing:
            threads = [t for t in threads if t.business_id != thread.business_id]
            threads.append(merged)
            self._require_saved(await self.cache.save_threads(threads), "merge_thread")
        return merged


class RemoteStore:
    """Pipeline state in Postgres for one owning user. Writes publish change events."""

    def __init__(self, user_id: str, feed: ChangeFeed | None = None):
        self.user_id = user_id
        self.feed = feed or change_feed

    @property
    def owner(self) -> str:
        return f"user:{self.user_id}"

    def write_scope(self, collection: str, business_id: str) -> tuple:
        return (self.owner, collection, business_id)

    def _publish(self, table: str, operation: str, key: str, **payload) -> None:
        self.feed.publish(
            ChangeEvent(owner_id=self.user_id, table=table, operation=operation, key=key, payload=payload)
        )

    async def get_stages(self) -> dict[str, Stage]:
        return await StageRepository.get_stages(self.user_id)

    async def set_stage(self, business_id: str, stage: Stage) -> None:
        await StageRepository.upsert_stage(self.user_id, business_id, Stage(stage))
        self._publish("business_stages", "upsert", business_id, stage=Stage(stage).value)

    async def list_starred(self, kind: StarKind) -> list[str]:
        return await StarredRepository.list_starred(self.user_id, StarKind(kind))

    async def set_starred(self, business_id: str, kind: StarKind, starred: bool) -> bool:
        result = await StarredRepository.set_starred(self.user_id, business_id, StarKind(kind), starred)
        self._publish(
            "starred_businesses",
            "upsert" if result else "delete",
            business_id,
            kind=StarKind(kind).value,
        )
        return result

    async def toggle_starred(self, business_id: str, kind: StarKind) -> bool:
        result = await StarredRepository.toggle_starred(self.user_id, business_id, StarKind(kind))
        self._publish(
            "starred_businesses",
            "insert" if result else "delete",
            business_id,
            kind=StarKind(kind).value,
        )
        return result

    async def list_threads(self) -> list[EmailThread]:
        return await ThreadRepository.list_threads(self.user_id)

    async def get_thread(self, business_id: str) -> EmailThread | None:
        return await ThreadRepository.get_thread(self.user_id, business_id)

    async def merge_thread(self, thread: EmailThread) -> EmailThread:
        merged, changed = await ThreadRepository.merge_thread(self.user_id, thread)
        if changed:
            self._publish("email_threads", "upsert", merged.business_id, email_count=len(merged.emails))
        return merged

    @asynccontextmanager
    async def subscribe(self, table: str = ANY_TABLE) -> AsyncIterator:
        """Change events for this owner; yields an asyncio.Queue of ChangeEvent."""
        async with self.feed.subscribe(self.user_id, table) as queue:
            yield queue
