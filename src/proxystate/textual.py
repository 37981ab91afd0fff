"""Textual integration for proxystate. Opt-in, requires textual.

Guards against firing while the widget tree is being replaced or the app is
not running, swallows NoMatches from widget queries, and marshals updates
triggered from another thread through App.call_from_thread. The core engine
stays framework agnostic; all Textual coupling lives here.
"""

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

from proxystate.binding import bind as _bind
from proxystate.subscription import subscribe as _subscribe

# Module-owned pause state, keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend guarded updates during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def _guard(app, fn):
    main = threading.get_ident()

    def _safe(*args):
        try:
            fn(*args)
        except NoMatches:
            pass

    def _guarded(*args):
        if not is_safe(app):
            return
        if threading.get_ident() != main:
            app.call_from_thread(_safe, *args)
        else:
            _safe(*args)

    return _guarded


def bind(app, selectors, compute, apply):
    """bind() whose apply(value) safely updates Textual widgets.

    compute still runs on every notification, so Binding.value stays
    current while the app is paused; only apply is skipped.

    Usage:
        binding = ptx.bind(
            app,
            lambda: store.selected_animation,
            lambda: store.selected_animation,
            lambda v: app.query_one("#title", Label).update(str(v)),
        )
    """
    return _bind(selectors, compute, _guard(app, apply))


def subscribe(app, selector, callback):
    """subscribe() whose callback safely touches Textual widgets."""
    return _subscribe(selector, _guard(app, callback))
