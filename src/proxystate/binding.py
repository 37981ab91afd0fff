"""Bindings: derived state kept in sync with the selectors it watches.

A Binding is what a UI layer needs from the engine: compute the visible
state once, subscribe once, and recompute exactly once for every write that
notifies any of its selectors. Whatever framework glue applies the value
(re-rendering, updating a widget) goes in on_change.
"""

from __future__ import annotations

from typing import Callable, Generic, Sequence, TypeVar

from proxystate.subscription import subscribe_multiple

T = TypeVar("T")

Selector = Callable[[], object]


class Binding(Generic[T]):
    """Latest result of compute(), refreshed when a selector's target changes."""

    __slots__ = ("_compute", "_on_change", "_value", "_unsubscribe", "_disposed")

    def __init__(
        self,
        selectors: Selector | Sequence[Selector],
        compute: Callable[[], T],
        on_change: Callable[[T], None] | None = None,
    ) -> None:
        if callable(selectors):
            selectors = [selectors]
        self._compute = compute
        self._on_change = on_change
        self._value = compute()
        self._disposed = False
        self._unsubscribe = subscribe_multiple(selectors, self._refresh)

    @property
    def value(self) -> T:
        return self._value

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _refresh(self) -> None:
        self._value = self._compute()
        if self._on_change is not None:
            self._on_change(self._value)

    def dispose(self) -> None:
        """Unsubscribe. The last computed value stays readable."""
        if not self._disposed:
            self._disposed = True
            self._unsubscribe()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else f"value={self._value!r}"
        return f"Binding({getattr(self._compute, '__name__', '?')}, {state})"


def bind(
    selectors: Selector | Sequence[Selector],
    compute: Callable[[], T],
    on_change: Callable[[T], None] | None = None,
) -> Binding[T]:
    """Create a Binding.

    compute must return a new object whenever the state it shows changed;
    pass wrapped data through unwrap() so consumers comparing by identity
    see the change.

    Usage:
        store = wrap_root({"animations": []})
        names = bind(
            lambda: store.animations.length,
            lambda: [a.name for a in store.animations],
            on_change=render_menu,
        )
        store.animations.append({"name": "walk"})   # render_menu(["walk"])
        names.dispose()
    """
    return Binding(selectors, compute, on_change)
