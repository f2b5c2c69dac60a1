# events.py
# Minimal observer plumbing: subscribe(handler) -> Subscription.
# All delivery happens synchronously on the caller's (event loop) thread.

import logging
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class Subscription:
    """
    Token returned by EventSource.subscribe().

    unsubscribe() is idempotent and safe to call any number of times.
    """

    def __init__(self, source: Optional["EventSource"], handler: Handler) -> None:
        self._source = source
        self.handler = handler

    @property
    def active(self) -> bool:
        return self._source is not None

    def unsubscribe(self) -> None:
        source, self._source = self._source, None
        if source is not None:
            source._remove(self)


class EventSource:
    """Fan-out of payloads to every active subscriber, in subscription order."""

    def __init__(self, name: str = "events") -> None:
        self.name = name
        self._subscriptions: List[Subscription] = []

    @property
    def listener_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, handler: Handler) -> Subscription:
        sub = Subscription(self, handler)
        self._subscriptions.append(sub)
        logger.debug(f"[{self.name}] subscriber added ({self.listener_count} total)")
        return sub

    def emit(self, payload: Any) -> None:
        # Snapshot the list: handlers may unsubscribe while we iterate.
        for sub in list(self._subscriptions):
            if sub.active:
                sub.handler(payload)

    def clear(self) -> None:
        for sub in list(self._subscriptions):
            sub.unsubscribe()

    def _remove(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)
        logger.debug(f"[{self.name}] subscriber removed ({self.listener_count} left)")
