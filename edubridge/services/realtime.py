"""In-process change feed fanning table change events out to subscribers."""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from ..config import get_settings
from ..constants import REALTIME_TABLES
from ..schemas import ChangeEvent

logger = logging.getLogger(__name__)


class ChangeFeedManager:
    """Tracks subscriber queues and the tables each one listens to.

    Queues are bounded; when a subscriber falls behind, its oldest pending
    event is dropped so publishers never block.
    """

    def __init__(self, *, queue_size: int = 100) -> None:
        self._queue_size = max(1, queue_size)
        self._subscribers: dict[asyncio.Queue[ChangeEvent], frozenset[str]] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, tables: Iterable[str] | None = None) -> asyncio.Queue[ChangeEvent]:
        selected = frozenset(tables or REALTIME_TABLES)
        queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=self._queue_size)
        async with self._lock:
            self._subscribers[queue] = selected
        return queue

    async def unsubscribe(self, queue: asyncio.Queue[ChangeEvent]) -> None:
        async with self._lock:
            self._subscribers.pop(queue, None)

    async def publish(self, event: ChangeEvent) -> int:
        """Deliver ``event`` to every subscriber of its table; return the fanout count."""

        async with self._lock:
            targets = [queue for queue, tables in self._subscribers.items() if event.table in tables]
        for queue in targets:
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:  # pragma: no cover - raced with consumer
                    pass
                logger.debug("Dropped oldest change event for a slow subscriber")
            queue.put_nowait(event)
        return len(targets)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


change_feed = ChangeFeedManager(queue_size=get_settings().realtime_queue_size)


async def publish_change(table: str, event: str, record_id=None) -> None:
    """Best-effort publish used by routers after a successful commit."""

    try:
        await change_feed.publish(ChangeEvent(table=table, event=event, record_id=record_id))
    except Exception:  # pragma: no cover - best effort logging
        logger.exception("Failed to publish %s change on %s", event, table)


__all__ = ["ChangeFeedManager", "change_feed", "publish_change"]
