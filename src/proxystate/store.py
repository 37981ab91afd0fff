"""Store: a wrapped root plus the lifecycle of its subscriptions.

The application keeps one Store per state tree. Subscriptions made through
it are disposed together. reconcile() supports schema evolution: add new
keys and re-register subscriptions without losing existing values.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable

from proxystate.proxy import wrap_root
from proxystate.snapshot import unwrap
from proxystate.subscription import Subscription, subscribe, subscribe_multiple

logger = logging.getLogger("proxystate.store")

Disposer = Callable[[], None]


class Store:
    """Wrapped root state with tracked subscriptions."""

    def __init__(self, initial: dict, proxifiable: Iterable[type] = ()) -> None:
        self.state = wrap_root(initial, proxifiable)
        self._disposers: list[Disposer] = []

    def subscribe(self, selector: Callable[[], object], callback: Callable[[], None]) -> Subscription:
        subscription = subscribe(selector, callback)
        self._disposers.append(subscription)
        return subscription

    def subscribe_multiple(
        self, selectors: Iterable[Callable[[], object]], callback: Callable[[], None]
    ) -> Disposer:
        unsubscribe = subscribe_multiple(selectors, callback)
        self._disposers.append(unsubscribe)
        return unsubscribe

    def snapshot(self) -> dict:
        """Plain deep copy of the whole state."""
        return unwrap(self.state)

    def reconcile(self, schema: dict, setup_fn: Callable[[Store], list | None]) -> None:
        """Schema evolution: add missing keys, re-register subscriptions.

        Existing values are untouched. New keys get their defaults through the
        normal write path, so current subscribers hear about them. Old
        subscriptions are disposed; setup_fn(store) -> list[disposer] registers
        new ones. If setup_fn raises, the failure is logged and the store keeps
        running with its values and no subscriptions.
        """
        new_keys = []
        for key, default in schema.items():
            if key not in self.state:
                self.state[key] = default
                new_keys.append(key)

        old_count = len(self._disposers)
        self._dispose_subscriptions()

        try:
            registered = setup_fn(self) or []
        except Exception:
            logger.exception("Failed to register subscriptions during reconcile")
            self._dispose_subscriptions()
            return
        for dispose in registered:
            if dispose not in self._disposers:
                self._disposers.append(dispose)
        logger.info(
            "Reconciled: %d new keys, %d->%d subscriptions",
            len(new_keys), old_count, len(self._disposers),
        )

    def _dispose_subscriptions(self) -> None:
        for dispose in self._disposers:
            dispose()
        self._disposers.clear()

    def dispose(self) -> None:
        self._dispose_subscriptions()
