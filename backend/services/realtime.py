"""
Change notifications for the props and wagers tables.

Every write endpoint publishes a ChangeEvent after its commit.  Subscribers
get one callback per change and are expected to simply re-run their query:
events carry the table and action, never the changed row, so there is
nothing to merge.

The SSE endpoint (GET /api/stream) is a ChangeFeed subscriber that pushes
each event onto a per-connection queue.
"""

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncGenerator, Callable, Iterable, List

logger = logging.getLogger(__name__)

WATCHED_TABLES = ("props", "wagers")

KEEPALIVE_SECONDS = 30.0


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    action: str  # "insert" | "update" | "delete"
    at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {"table": self.table, "action": self.action, "at": self.at.isoformat()}

    def to_sse(self) -> str:
        return f"event: change\ndata: {json.dumps(self.to_dict())}\n\n"


class Subscription:
    """Handle returned by ChangeFeed.subscribe(); call unsubscribe() when done."""

    def __init__(self, feed: "ChangeFeed", tables: frozenset, callback: Callable):
        self._feed = feed
        self.tables = tables
        self.callback = callback

    @property
    def active(self) -> bool:
        return self in self._feed._subscriptions

    def unsubscribe(self) -> None:
        self._feed._remove(self)


class ChangeFeed:
    """In-process fan-out of table change events."""

    def __init__(self):
        self._subscriptions: List[Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, tables: Iterable[str], callback: Callable) -> Subscription:
        """
        Call ``callback(event)`` on every change to any of ``tables``.

        ``callback`` may be sync or async.
        """
        wanted = frozenset(tables)
        unknown = wanted - set(WATCHED_TABLES)
        if not wanted or unknown:
            raise ValueError(f"Can only watch {WATCHED_TABLES}, got {sorted(wanted)}")

        subscription = Subscription(self, wanted, callback)
        self._subscriptions.append(subscription)
        logger.debug("New change subscription on %s, total: %d", sorted(wanted), self.subscriber_count)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            logger.debug("Change subscription closed, total: %d", self.subscriber_count)

    async def publish(self, table: str, action: str) -> int:
        """Notify subscribers of ``table``.  Returns how many were notified."""
        event = ChangeEvent(table=table, action=action)
        delivered = 0
        for subscription in list(self._subscriptions):
            if table not in subscription.tables:
                continue
            try:
                result = subscription.callback(event)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as exc:
                logger.error("Change subscriber failed on %s/%s: %s", table, action, exc, exc_info=True)
        return delivered


# Global feed instance
change_feed = ChangeFeed()


async def change_stream(
    request,
    tables: Iterable[str],
    feed: ChangeFeed = None,
    keepalive: float = KEEPALIVE_SECONDS,
) -> AsyncGenerator[str, None]:
    """SSE frames for one client until it disconnects."""
    feed = feed or change_feed
    queue: asyncio.Queue = asyncio.Queue()
    subscription = feed.subscribe(tables, queue.put_nowait)

    try:
        yield f"event: connected\ndata: {json.dumps({'tables': sorted(subscription.tables)})}\n\n"

        while True:
            if await request.is_disconnected():
                break
            try:
                event = await asyncio.wait_for(queue.get(), timeout=keepalive)
                yield event.to_sse()
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
    finally:
        subscription.unsubscribe()
