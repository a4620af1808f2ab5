"""
Minimal event emitter whose registrations are explicit, cancellable handles.
"""

import logging
from collections import defaultdict
from typing import Any, Callable

log = logging.getLogger(__name__)

Listener = Callable[..., Any]


class Subscription:
    """A registered listener. Cancelling it more than once is a no-op."""

    def __init__(self, emitter: "EventEmitter", event: str, listener: Listener):
        self._emitter = emitter
        self.event = event
        self.listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._emitter._remove(self)


class EventEmitter:
    """Dispatches named events synchronously to the current subscriptions."""

    def __init__(self):
        self._subscriptions: dict[str, list[Subscription]] = defaultdict(list)

    def on(self, event: str, listener: Listener) -> Subscription:
        subscription = Subscription(self, event, listener)
        self._subscriptions[event].append(subscription)
        return subscription

    def emit(self, event: str, *args) -> int:
        """Calls every active listener for `event`. Returns how many were called."""
        subscriptions = list(self._subscriptions.get(event, ()))
        for subscription in subscriptions:
            if subscription.active:
                subscription.listener(*args)
        return len(subscriptions)

    def listener_count(self, event: str) -> int:
        return len(self._subscriptions.get(event, ()))

    def _remove(self, subscription: Subscription) -> None:
        listeners = self._subscriptions.get(subscription.event)
        if listeners and subscription in listeners:
            listeners.remove(subscription)
            log.debug(f"Listener for '{subscription.event}' removed.")
