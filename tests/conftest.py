import os

# Settings are read at import time; keep tests off real services
os.environ.setdefault("LOCAL_CACHE_BACKEND", "memory")
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")

import pytest

from outreach.auth.verify import auth_dependency, optional_auth_dependency
from outreach.db.helpers import DatabaseError
from outreach.features.inbox.domain import EmailThread
from outreach.features.inbox.pipeline.threads import merge_threads
from outreach.models.domain.business_domain import StarKind
from outreach.models.domain.pipeline_domain import Stage
from outreach.services.local_cache import LocalCache, MemoryBackend, memory_backend


@pytest.fixture
def auth_override():
    def _override():
        return {"sub": "user-123"}

    return _override


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[auth_dependency] = auth_override
        app.dependency_overrides[optional_auth_dependency] = auth_override

    return _apply


@pytest.fixture(autouse=True)
def clear_memory_backend():
    memory_backend.store.clear()
    yield
    memory_backend.store.clear()


@pytest.fixture
def local_cache():
    return LocalCache("device-1", backend=MemoryBackend(), prefix="b2b")


class FakeRemoteStore:
    """In-memory stand-in for RemoteStore with injectable thread write failures."""

    def __init__(self, user_id: str = "user-123", fail_thread_write: int | None = None):
        self.user_id = user_id
        self.stages: dict[str, Stage] = {}
        self.starred: dict[StarKind, list[str]] = {StarKind.DIRECTORY: [], StarKind.EXTERNAL: []}
        self.threads: dict[str, EmailThread] = {}
        self.fail_thread_write = fail_thread_write
        self.thread_writes = 0

    @property
    def owner(self) -> str:
        return f"user:{self.user_id}"

    def write_scope(self, collection: str, business_id: str) -> tuple:
        return (self.owner, collection, business_id)

    async def get_stages(self) -> dict[str, Stage]:
        return dict(self.stages)

    async def set_stage(self, business_id: str, stage: Stage) -> None:
        self.stages[business_id] = Stage(stage)

    async def list_starred(self, kind: StarKind) -> list[str]:
        return list(self.starred[kind])

    async def set_starred(self, business_id: str, kind: StarKind, starred: bool) -> bool:
        ids = self.starred[kind]
        if starred and business_id not in ids:
            ids.append(business_id)
        if not starred and business_id in ids:
            ids.remove(business_id)
        return starred

    async def toggle_starred(self, business_id: str, kind: StarKind) -> bool:
        return await self.set_starred(business_id, kind, business_id not in self.starred[kind])

    async def list_threads(self) -> list[EmailThread]:
        return list(self.threads.values())

    async def get_thread(self, business_id: str) -> EmailThread | None:
        return self.threads.get(business_id)

    async def merge_thread(self, thread: EmailThread) -> EmailThread:
        existing = self.threads.get(thread.business_id)
        merged = merge_threads(existing, thread)
        if merged is existing:
            return existing
        self.thread_writes += 1
        if self.fail_thread_write == self.thread_writes:
            raise DatabaseError("connection reset", operation="merge_thread")
        self.threads[thread.business_id] = merged
        return merged


@pytest.fixture
def fake_remote():
    return FakeRemoteStore()


@pytest.fixture
def remote_store_factory():
    return FakeRemoteStore
