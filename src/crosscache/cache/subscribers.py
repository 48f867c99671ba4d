"""In-process change notification for the cache store.

Every mutating store operation notifies each registered callback with the
canonical key it touched. Callbacks run inline with the mutation, so they
should hand off real work instead of doing it here.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from crosscache.cache.keys import CanonicalKey, render

logger = logging.getLogger(__name__)

Subscriber = Callable[[CanonicalKey], None]
Unsubscribe = Callable[[], None]


class SubscriberRegistry:
    """Registry of change callbacks with per-callback error isolation."""

    def __init__(self) -> None:
        # Keyed by registration token so the same callable may subscribe twice
        self._subscribers: dict[int, Subscriber] = {}
        self._next_token = 0

    def subscribe(self, callback: Subscriber) -> Unsubscribe:
        """Register a callback and return a function that removes it."""
        token = self._next_token
        self._next_token += 1
        self._subscribers[token] = callback

        def unsubscribe() -> None:
            self._subscribers.pop(token, None)

        return unsubscribe

    def notify(self, key: CanonicalKey) -> None:
        """Deliver ``key`` to every subscriber registered right now."""
        for callback in list(self._subscribers.values()):
            try:
                callback(key)
            except Exception:
                callback_name = getattr(callback, "__name__", callback.__class__.__name__)
                logger.exception(
                    "Cache subscriber %s failed for key %s", callback_name, render(key)
                )

    def __len__(self) -> int:
        return len(self._subscribers)
