"""
Change feed for realtime table invalidation.

After a request commits, the endpoint publishes one event per touched table.
Subscribers only learn that a table changed and re-run their own fetch;
events carry no row data beyond the id.

Events go to in-process subscribers (the SSE endpoint) and to the Redis
channel `changes:<table>` for other workers. Publishing is best effort and
never fails the request that triggered it. Each worker relays events from
the other workers back into its own subscribers, reconnecting when Redis
is unavailable.
"""

import asyncio
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, Optional, Set

from redis.exceptions import RedisError

from backend.app.core import redis_client as redis_module

logger = logging.getLogger(__name__)

WATCHED_TABLES = frozenset({
    "wallet_balances",
    "wallet_transactions",
    "financial_transactions",
    "student_fees",
})

CHANNEL_PREFIX = "changes:"
SUBSCRIBER_QUEUE_SIZE = 100
RELAY_RETRY_SECONDS = 1.0
RELAY_MAX_RETRY_SECONDS = 30.0

# Identifies events published by this process
WORKER_ID = uuid.uuid4().hex


def build_event(table: str, action: str, row_id: Optional[int] = None) -> dict:
    return {
        "table": table,
        "action": action,
        "row_id": row_id,
        "at": datetime.now(timezone.utc).isoformat(),
        "origin": WORKER_ID,
    }


class ChangeFeed:
    """In-process fan-out of change events, one queue per subscriber."""

    def __init__(self):
        self._subscribers: Dict[str, Set[asyncio.Queue]] = {}

    def subscribe(self, table: str) -> asyncio.Queue:
        queue = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        self._subscribers.setdefault(table, set()).add(queue)
        return queue

    def unsubscribe(self, table: str, queue: asyncio.Queue):
        self._subscribers.get(table, set()).discard(queue)

    def subscriber_count(self, table: str) -> int:
        return len(self._subscribers.get(table, ()))

    def deliver(self, event: dict):
        """Put an event on every local subscriber queue for its table."""
        table = event.get("table")
        for queue in list(self._subscribers.get(table, ())):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                # Slow consumer: it only needs to know the table changed
                logger.warning("Change feed queue full for %s, dropping event", table)

    async def publish(self, table: str, action: str, row_id: Optional[int] = None) -> dict:
        """Deliver an event locally and on the table's Redis channel."""
        event = build_event(table, action, row_id)
        self.deliver(event)

        try:
            await redis_module.redis_client.publish(f"{CHANNEL_PREFIX}{table}", json.dumps(event))
        except (RedisError, OSError) as e:
            logger.warning("Change feed publish to Redis failed for %s: %s", table, e)

        return event

    async def relay_from_redis(
        self,
        retry_seconds: float = RELAY_RETRY_SECONDS,
        max_retry_seconds: float = RELAY_MAX_RETRY_SECONDS
    ):
        """
        Forward events other workers publish on Redis to local subscribers.

        Runs until cancelled. When Redis is unreachable or the subscription
        drops, it resubscribes with exponential backoff. Events this worker
        published were delivered locally already and are skipped.
        """
        delay = retry_seconds
        while True:
            pubsub = redis_module.redis_client.pubsub()
            try:
                await pubsub.psubscribe(f"{CHANNEL_PREFIX}*")
                delay = retry_seconds
                async for message in pubsub.listen():
                    self._relay_message(message)
                logger.warning("Change feed relay subscription ended, resubscribing in %.1fs", delay)
            except (RedisError, OSError) as e:
                logger.warning("Change feed relay lost Redis, retrying in %.1fs: %s", delay, e)
            finally:
                await pubsub.aclose()

            await asyncio.sleep(delay)
            delay = min(delay * 2, max_retry_seconds)

    def _relay_message(self, message: dict):
        if message.get("type") != "pmessage":
            return
        try:
            event = json.loads(message["data"])
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed change event on %s", message.get("channel"))
            return
        if event.get("origin") == WORKER_ID:
            return
        self.deliver(event)

    async def listen(self, table: str, heartbeat_seconds: float = 15.0) -> AsyncIterator[Optional[dict]]:
        """
        Yield events for `table` until the consumer stops iterating.

        Yields None when no event arrived within `heartbeat_seconds`.
        """
        queue = self.subscribe(table)
        try:
            while True:
                try:
                    yield await asyncio.wait_for(queue.get(), timeout=heartbeat_seconds)
                except asyncio.TimeoutError:
                    yield None
        finally:
            self.unsubscribe(table, queue)


change_feed = ChangeFeed()


async def publish_changes(*changes: tuple) -> None:
    """Publish (table, action, row_id) tuples after a successful commit."""
    for table, action, row_id in changes:
        await change_feed.publish(table, action, row_id)
