"""Per-event publish/subscribe channels for the discussion feed.

The hub is a plain in-process registry: one topic per event id, one
Subscription per connected WebSocket. Publishing never blocks and never
fails the caller; a subscriber whose loop has gone away is dropped.
"""
import asyncio
import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)

_ids = itertools.count(1)


@dataclass(eq=False)
class Subscription:
    topic: str
    loop: asyncio.AbstractEventLoop
    account_id: Optional[str] = None
    display_name: str = "Someone"
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    sub_id: int = field(default_factory=lambda: next(_ids))

    def deliver(self, envelope: Optional[dict[str, Any]]) -> None:
        self.loop.call_soon_threadsafe(self.queue.put_nowait, envelope)

    async def receive(self) -> Optional[dict[str, Any]]:
        """Next envelope, or None once the hub has shut down."""
        return await self.queue.get()


class ChannelHub:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: dict[str, set[Subscription]] = {}
        self._channel_locks: dict[str, threading.Lock] = {}

    def subscribe(self, topic: str, account_id: Optional[str] = None, display_name: str = "Someone") -> Subscription:
        sub = Subscription(topic=topic, loop=asyncio.get_running_loop(), account_id=account_id, display_name=display_name)
        with self._lock:
            self._subscribers.setdefault(topic, set()).add(sub)
        logger.info("Subscriber %d (%s) joined event:%s", sub.sub_id, account_id, topic)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subscribers.get(sub.topic)
            if subs is not None:
                subs.discard(sub)
                if not subs:
                    del self._subscribers[sub.topic]
        logger.info("Subscriber %d left event:%s", sub.sub_id, sub.topic)

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscribers.get(topic, ()))

    def ordered(self, topic: str) -> threading.Lock:
        """Lock to hold across commit + publish so delivery order matches persistence order."""
        with self._lock:
            return self._channel_locks.setdefault(topic, threading.Lock())

    def publish(self, topic: str, event: str, data: Any, exclude: Optional[Subscription] = None) -> int:
        """Fan an event out to the topic's subscribers; returns how many were reached."""
        envelope = {"event": event, "data": jsonable_encoder(data)}
        with self._lock:
            targets = [s for s in self._subscribers.get(topic, ()) if s is not exclude]
        delivered = 0
        for sub in targets:
            try:
                sub.deliver(envelope)
                delivered += 1
            except RuntimeError:
                # Event loop already closed
                logger.warning("Dropping dead subscriber %d on event:%s", sub.sub_id, topic)
                self.unsubscribe(sub)
        logger.debug("Published %s to event:%s (%d subscribers)", event, topic, delivered)
        return delivered

    def close(self) -> None:
        with self._lock:
            subs = [s for topic_subs in self._subscribers.values() for s in topic_subs]
            self._subscribers.clear()
        for sub in subs:
            try:
                sub.deliver(None)
            except RuntimeError:
                pass
        logger.info("Channel hub closed (%d subscribers released)", len(subs))
