# outreach/services/local_cache.py
"""
Local cache for unauthenticated (pre-migration) sessions.

Five independent JSON collections per device:
- starred directory business ids
- starred external business ids
- stage assignments {business_id: stage}
- email threads
- chat messages by business

A missing key or data that does not parse loads as the empty default.
A backend read failure raises LocalCacheError instead, so callers never
rewrite or migrate a collection they could not read. Datetimes are
stored as ISO-8601 strings and parsed back on load.
"""

import json
from datetime import date, datetime
from typing import Any, Protocol

from outreach.config import settings
from outreach.features.inbox.domain import EmailThread
from outreach.infrastructure.observability.logging import get_logger
from outreach.models.domain.business_domain import StarKind
from outreach.models.domain.pipeline_domain import Stage, parse_stages
from outreach.services.infrastructure.redis_client import FastRedisClient, fast_redis

logger = get_logger(__name__)

STARRED_BUSINESSES = "starred_businesses"
EXTERNAL_STARRED_BUSINESSES = "google_starred_businesses"
BUSINESS_STAGES = "business_stages"
EMAIL_THREADS = "email_threads"
MESSAGES_BY_BUSINESS = "messages_by_business"

STORAGE_KEYS = (
    STARRED_BUSINESSES,
    EXTERNAL_STARRED_BUSINESSES,
    BUSINESS_STAGES,
    EMAIL_THREADS,
    MESSAGES_BY_BUSINESS,
)

_STARRED_KEYS = {
    StarKind.DIRECTORY: STARRED_BUSINESSES,
    StarKind.EXTERNAL: EXTERNAL_STARRED_BUSINESSES,
}


class LocalCacheError(Exception):
    """The cache backend could not be read."""

    def __init__(self, message: str, key: str):
        super().__init__(message)
        self.key = key


class KeyValueBackend(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> bool: ...

    async def delete(self, *keys: str) -> int: ...


class MemoryBackend:
    """Process-local key-value store."""

    def __init__(self):
        self.store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def set(self, key: str, value: str) -> bool:
        self.store[key] = value
        return True

    async def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self.store.pop(key, None) is not None)


class RedisBackend:
    """Key-value store on the pooled Redis client."""

    def __init__(self, client: FastRedisClient):
        self.client = client

    async def get(self, key: str) -> str | None:
        return await self.client.get(key)

    async def set(self, key: str, value: str) -> bool:
        return await self.client.set(key, value)

    async def delete(self, *keys: str) -> int:
        return await self.client.delete_keys(*keys)


memory_backend = MemoryBackend()


def get_local_cache_backend() -> KeyValueBackend:
    if settings.uses_redis_cache():
        return RedisBackend(fast_redis)
    return memory_backend


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, StarKind | Stage):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class LocalCache:
    """Typed load/save helpers over one device's cache namespace."""

    def __init__(
        self,
        device_id: str,
        backend: KeyValueBackend | None = None,
        prefix: str | None = None,
    ):
        self.device_id = device_id
        self.backend = backend or get_local_cache_backend()
        self.prefix = prefix or settings.LOCAL_CACHE_KEY_PREFIX

    def key(self, name: str) -> str:
        return f"{self.prefix}:{self.device_id}:{name}"

    async def load(self, name: str, default: Any) -> Any:
        try:
            raw = await self.backend.get(self.key(name))
        except Exception as e:
            logger.error("Local cache read failed", key=name, device_id=self.device_id, error=str(e))
            raise LocalCacheError(f"Failed to read local cache entry {name}", key=name) from e
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning("Discarding unreadable local cache entry", key=name, error=str(e))
            return default

    async def save(self, name: str, value: Any) -> bool:
        saved = await self.backend.set(self.key(name), json.dumps(value, default=_json_default))
        if not saved:
            logger.warning("Failed to save local cache entry", key=name, device_id=self.device_id)
        return saved

    # Starred businesses

    async def load_starred(self, kind: StarKind) -> list[str]:
        value = await self.load(_STARRED_KEYS[kind], [])
        if not isinstance(value, list):
            logger.warning("Discarding malformed starred list", kind=kind.value)
            return []
        # dict.fromkeys keeps first-seen order while dropping repeats
        return list(dict.fromkeys(str(item) for item in value))

    async def save_starred(self, kind: StarKind, business_ids: list[str]) -> bool:
        return await self.save(_STARRED_KEYS[kind], list(dict.fromkeys(business_ids)))

    # Stage assignments

    async def load_stages(self) -> dict[str, Stage]:
        value = await self.load(BUSINESS_STAGES, {})
        if not isinstance(value, dict):
            logger.warning("Discarding malformed stage map")
            return {}
        return parse_stages(value)

    async def save_stages(self, stages: dict[str, Stage]) -> bool:
        return await self.save(BUSINESS_STAGES, {k: Stage(v).value for k, v in stages.items()})

    # Email threads

    async def load_threads(self) -> list[EmailThread]:
        value = await self.load(EMAIL_THREADS, [])
        if not isinstance(value, list):
            logger.warning("Discarding malformed email threads")
            return []
        try:
            return [EmailThread.from_dict(item) for item in value]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding unreadable email threads", error=str(e))
            return []

    async def save_threads(self, threads: list[EmailThread]) -> bool:
        return await self.save(EMAIL_THREADS, [thread.to_dict() for thread in threads])

    # Chat messages

    async def load_messages(self) -> dict[str, list[dict[str, Any]]]:
        value = await self.load(MESSAGES_BY_BUSINESS, {})
        return value if isinstance(value, dict) else {}

    async def save_messages(self, messages: dict[str, list[dict[str, Any]]]) -> bool:
        return await self.save(MESSAGES_BY_BUSINESS, messages)

    async def purge(self) -> int:
        """Remove every collection for this device. Errors propagate."""
        removed = await self.backend.delete(*(self.key(name) for name in STORAGE_KEYS))
        logger.info("Local cache purged", device_id=self.device_id, keys_removed=removed)
        return removed
