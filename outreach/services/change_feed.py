# outreach/services/change_feed.py
"""
In-process change notifications for remote store writes.

Subscribers register per (owner, table) and receive ChangeEvent objects
on an asyncio.Queue. Publishing never blocks: a subscriber whose queue
is full misses the event and a warning is logged.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from outreach.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

ANY_TABLE = "*"


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    owner_id: str
    table: str
    operation: str  # upsert | insert | update | delete
    key: str
    payload: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class ChangeFeed:
    def __init__(self, max_queue_size: int = 100):
        self.max_queue_size = max_queue_size
        self._subscribers: dict[tuple[str, str], set[asyncio.Queue]] = {}

    def publish(self, event: ChangeEvent) -> int:
        """Deliver to matching subscribers; returns how many received it."""
        delivered = 0
        for table in (event.table, ANY_TABLE):
            for queue in self._subscribers.get((event.owner_id, table), ()):
                try:
                    queue.put_nowait(event)
                    delivered += 1
                except asyncio.QueueFull:
                    logger.warning(
                        "Change subscriber queue full, event dropped",
                        owner_id=event.owner_id,
                        table=event.table,
                        key=event.key,
                    )
        return delivered

    @asynccontextmanager
    async def subscribe(self, owner_id: str, table: str = ANY_TABLE) -> AsyncIterator[asyncio.Queue]:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue_size)
        subscribers = self._subscribers.setdefault((owner_id, table), set())
        subscribers.add(queue)
        logger.debug("Change subscriber added", owner_id=owner_id, table=table)
        try:
            yield queue
        finally:
            subscribers.discard(queue)
            if not subscribers:
                self._subscribers.pop((owner_id, table), None)

    def subscriber_count(self, owner_id: str) -> int:
        return sum(len(queues) for (owner, _), queues in self._subscribers.items() if owner == owner_id)


change_feed = ChangeFeed()
