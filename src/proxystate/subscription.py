"""Subscriptions: callbacks attached to the last value a selector reads.

subscribe(selector, callback) runs selector once inside a capture window
and attaches to the (node, key) pair it read last. When that pair is
marked by a write, the subscription re-runs the selector to find where it
should listen now, then calls the callback.

A selector that cannot be resolved yet (it reads through None, a missing
key or an index out of range) listens on the last link it did reach, and
retries each time that link changes.
"""

from __future__ import annotations

from typing import Callable, Iterable

from proxystate import _anchor, _tracking
from proxystate.errors import NotWrappedError

# What a selector raises while its target does not exist yet.
UNRESOLVED = (AttributeError, KeyError, IndexError, TypeError)


class _Handler:
    """One attachment of a subscription to a (node, key) pair."""

    __slots__ = ("subscription", "found")

    def __init__(self, subscription: Subscription, found: bool) -> None:
        self.subscription = subscription
        self.found = found

    @property
    def original(self) -> Callable[[], None]:
        return self.subscription._callback

    def __call__(self) -> bool:
        return self.subscription._fire(self)

    def update(self) -> None:
        self.subscription._refresh(self)

    def __repr__(self) -> str:
        return f"_Handler({self.subscription!r})"


class Subscription:
    """A selector/callback pair. Call it (or .dispose()) to unsubscribe."""

    __slots__ = ("_selector", "_callback", "_node", "_key", "_handler", "_disposed")

    def __init__(self, selector: Callable[[], object], callback: Callable[[], None]) -> None:
        self._selector = selector
        self._callback = callback
        self._node = None
        self._key = None
        self._handler: _Handler | None = None
        self._disposed = False
        self._attach()

    @property
    def target(self) -> tuple[object, object]:
        """The (node, key) pair currently listened to."""
        return self._node, self._key

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _attach(self) -> bool:
        """Run the selector and listen on what it read last. Returns found."""
        found = False
        with _tracking.capture() as touched:
            try:
                self._selector()
                found = True
            except UNRESOLVED:
                pass

        if touched.node is None:
            raise NotWrappedError(f"selector {self._selector!r} did not read any wrapped state")

        handler = _Handler(self, found)
        handlers = _anchor.lookup(touched.node._node_id).handlers
        handlers.setdefault(touched.key, []).append(handler)
        self._node = touched.node
        self._key = touched.key
        self._handler = handler
        return found

    def _detach(self, handler: _Handler | None) -> bool:
        if handler is None or handler is not self._handler:
            return False
        handlers = _anchor.lookup(self._node._node_id).handlers
        attached = handlers.get(self._key)
        if not attached or handler not in attached:
            return False
        attached.remove(handler)
        if not attached:
            del handlers[self._key]
        self._handler = None
        return True

    def _fire(self, handler: _Handler) -> bool:
        """Move to the selector's current target, then notify if appropriate.

        Not-found to not-found is not a change worth reporting.
        """
        if self._disposed or not self._detach(handler):
            return False
        found = self._attach()
        if handler.found or found:
            self._callback()
            return True
        return False

    def _refresh(self, handler: _Handler) -> None:
        """Move to the selector's current target without notifying."""
        if self._disposed or not self._detach(handler):
            return
        self._attach()

    def dispose(self) -> None:
        """Stop listening. Safe to call more than once."""
        if self._disposed:
            return
        self._disposed = True
        self._detach(self._handler)

    __call__ = dispose

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else f"on {self._key!r}"
        name = getattr(self._callback, "__name__", repr(self._callback))
        return f"Subscription({name}, {state})"


def subscribe(selector: Callable[[], object], callback: Callable[[], None]) -> Subscription:
    """Call callback whenever the value read last by selector changes.

    Returns the Subscription; call it to unsubscribe.

    Usage:
        store = wrap_root({"canvas": {"color": "#000"}})
        unsubscribe = subscribe(lambda: store.canvas.color, lambda: print(store.canvas.color))
        store.canvas.color = "#fff"   # prints #fff
        unsubscribe()
    """
    return Subscription(selector, callback)


def subscribe_multiple(
    selectors: Iterable[Callable[[], object]], callback: Callable[[], None]
) -> Callable[[], None]:
    """subscribe() each selector with the same callback. Returns one unsubscribe."""
    subscriptions = [Subscription(selector, callback) for selector in selectors]

    def _unsubscribe() -> None:
        for subscription in subscriptions:
            subscription.dispose()

    return _unsubscribe
