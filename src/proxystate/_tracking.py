"""Dependency capture and handler scheduling: the heart of proxystate.

Capture: every read through a wrapper reports its (node, key) pair. Inside a
capture window the last reported pair is kept; that pair is what a
subscription attaches to.

Scheduling: a write marks handlers into the current pending set, then
drains it. Writes made by a handler mark a deeper pending set which the
nested write drains before returning, so propagation is depth first and
nothing is coalesced across writes.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import Iterator

from proxystate import _anchor
from proxystate.errors import InfiniteLoopError

logger = logging.getLogger("proxystate.tracking")


class Touch:
    """The last (node, key) pair read inside a capture window."""

    __slots__ = ("node", "key")

    def __init__(self) -> None:
        self.node = None
        self.key = None


# The capture window currently open, if any.
current_capture: contextvars.ContextVar[Touch | None] = contextvars.ContextVar(
    "current_capture", default=None
)


@contextmanager
def capture() -> Iterator[Touch]:
    """Open a capture window. The window is closed even if the body raises."""
    touched = Touch()
    token = current_capture.set(touched)
    try:
        yield touched
    finally:
        current_capture.reset(token)


def touch(node, key) -> None:
    """Called by wrapper read paths."""
    touched = current_capture.get()
    if touched is not None:
        touched.node = node
        touched.key = key


# One insertion-ordered set (a dict with None values) per nesting depth.
_pending: list[dict] = [{}]

# Handlers currently executing, outermost first.
_call_stack: list = []


def mark(node, key) -> int:
    """Schedule the handlers registered on (node, key). Returns how many."""
    handlers = _anchor.lookup(node._node_id).handlers.get(key)
    if not handlers:
        return 0
    current = _pending[-1]
    for handler in handlers:
        current[handler] = None
    return len(handlers)


def mark_all(node) -> int:
    """Schedule every handler registered on node, whatever its key."""
    count = 0
    for key in list(_anchor.lookup(node._node_id).handlers):
        count += mark(node, key)
    return count


def _same_callback(a, b) -> bool:
    """Identity, except that bound methods match on instance and function."""
    if a is b:
        return True
    func = getattr(a, "__func__", None)
    return (
        func is not None
        and func is getattr(b, "__func__", None)
        and a.__self__ is getattr(b, "__self__", None)
    )


def discard_pending() -> None:
    """Drop the marks of a write that failed before dispatch."""
    _pending[-1].clear()


def dispatch() -> None:
    """Run the current pending set, one handler at a time.

    Raises InfiniteLoopError if a handler's callback is already running
    further up the stack. Other callback errors are logged and skipped.
    """
    batch = _pending[-1]
    if not batch:
        return

    # Writes made by the handlers below land in a fresh, deeper set.
    _pending.append({})
    fired: list = []
    try:
        for handler in list(batch):
            original = handler.original
            if any(_same_callback(running.original, original) for running in _call_stack):
                logger.debug("Loop detected on %r; aborting %d pending handlers", original, len(batch))
                raise InfiniteLoopError(
                    f"{original!r} changed state it depends on while it was running"
                )

            _call_stack.append(handler)
            try:
                if any(_same_callback(done, original) for done in fired):
                    handler.update()
                elif handler():
                    fired.append(original)
            except InfiniteLoopError:
                raise
            except Exception:
                logger.exception("Subscriber %r failed", original)
            finally:
                _call_stack.pop()
    finally:
        _pending.pop()
        batch.clear()


def get_pending_count() -> int:
    """Number of handlers marked but not yet run. Useful for testing."""
    return sum(len(batch) for batch in _pending)
