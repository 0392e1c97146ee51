"""
Fan-out of election lifecycle events to connected clients.

Events only tell clients *what* changed; clients re-fetch the authoritative
endpoints afterwards, so a lost event never leaves anyone with stale state.

Event names:
  votingStarted{periodId}      votingEnded{periodId}
  resultsPublished{periodId}   voteCast{periodId, candidateId}
  candidatesUpdated{}          periodDeleted{periodId}
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

VOTING_STARTED = "votingStarted"
VOTING_ENDED = "votingEnded"
RESULTS_PUBLISHED = "resultsPublished"
VOTE_CAST = "voteCast"
CANDIDATES_UPDATED = "candidatesUpdated"
PERIOD_DELETED = "periodDeleted"

Payload = Dict[str, Any]
Subscriber = Callable[[str, Payload], None]


class Notifier(Protocol):
    def publish(self, event: str, payload: Optional[Payload] = None) -> None:
        ...


class EventBus:
    """
    In-process pub/sub. Publishing never raises: a failing subscriber is
    logged and the remaining subscribers still receive the event.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: List[Subscriber] = []

    def subscribe(self, handler: Subscriber) -> None:
        with self._lock:
            self._subscribers.append(handler)
        logger.debug("Registered event subscriber %r", handler)

    def unsubscribe(self, handler: Subscriber) -> None:
        with self._lock:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

    def publish(self, event: str, payload: Optional[Payload] = None) -> None:
        data = dict(payload or {})
        with self._lock:
            handlers = list(self._subscribers)
        logger.debug("Publishing %s to %d subscriber(s)", event, len(handlers))
        for handler in handlers:
            try:
                handler(event, data)
            except Exception:
                logger.exception("Event subscriber failed for %s", event)

    def close(self) -> None:
        with self._lock:
            self._subscribers.clear()


class QueueSubscriber:
    """
    Bridges bus events onto an asyncio queue owned by one WebSocket.

    ``publish`` runs on whatever worker thread served the request, so events
    are handed to the connection's loop with ``call_soon_threadsafe``.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, maxsize: int = 100) -> None:
        self.loop = loop
        self.queue: "asyncio.Queue[Payload]" = asyncio.Queue(maxsize=maxsize)

    def _put(self, message: Payload) -> None:
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Event queue full, dropping %s", message.get("event"))

    def __call__(self, event: str, payload: Payload) -> None:
        message = {"event": event, "data": payload}
        if self.loop.is_closed():
            return
        self.loop.call_soon_threadsafe(self._put, message)


__all__ = [
    "Notifier",
    "EventBus",
    "QueueSubscriber",
    "VOTING_STARTED",
    "VOTING_ENDED",
    "RESULTS_PUBLISHED",
    "VOTE_CAST",
    "CANDIDATES_UPDATED",
    "PERIOD_DELETED",
]
