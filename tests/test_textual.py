"""Tests for proxystate.textual: Textual integration layer."""

import logging
import threading

import pytest
from textual.css.query import NoMatches

from proxystate import wrap_root
from proxystate import textual as ptx


class _MockApp:
    """Minimal mock matching the Textual App interface ptx needs."""

    def __init__(self, *, is_running=True):
        self.is_running = is_running
        self._call_from_thread_log = []

    def call_from_thread(self, fn, *args):
        self._call_from_thread_log.append((fn, args))
        fn(*args)


class TestSubscribe:
    def test_skips_when_not_running(self):
        app = _MockApp(is_running=False)
        store = wrap_root({"n": 1})
        effects = []
        ptx.subscribe(app, lambda: store.n, lambda: effects.append(store.n))
        store.n = 2
        assert effects == []

    def test_skips_during_pause(self):
        app = _MockApp()
        store = wrap_root({"n": 1})
        effects = []
        ptx.subscribe(app, lambda: store.n, lambda: effects.append(store.n))
        with ptx.pause(app):
            store.n = 2
        assert effects == []

    def test_keeps_listening_after_pause(self):
        app = _MockApp()
        store = wrap_root({"n": {"v": 1}})
        effects = []
        ptx.subscribe(app, lambda: store.n.v, lambda: effects.append(store.n.v))
        with ptx.pause(app):
            store.n = {"v": 2}
        store.n.v = 3
        assert effects == [3]

    def test_fires_when_safe(self):
        app = _MockApp()
        store = wrap_root({"n": 1})
        effects = []
        ptx.subscribe(app, lambda: store.n, lambda: effects.append(store.n))
        store.n = 2
        assert effects == [2]

    def test_catches_nomatch(self):
        """NoMatches from widget queries are silently swallowed."""
        app = _MockApp()
        store = wrap_root({"n": 1})

        def _raise_nomatch():
            raise NoMatches("StatusFooter")

        # Should not raise or log
        sub = ptx.subscribe(app, lambda: store.n, _raise_nomatch)
        store.n = 2
        sub.dispose()

    def test_logs_real_errors(self, caplog):
        """Non-NoMatches exceptions reach the engine, which logs them."""
        app = _MockApp()
        store = wrap_root({"n": 1})

        def _raise_value_error():
            raise ValueError("boom")

        ptx.subscribe(app, lambda: store.n, _raise_value_error)
        with caplog.at_level(logging.ERROR, logger="proxystate.tracking"):
            store.n = 2
        assert "boom" in caplog.text

    def test_dispose_stops_subscription(self):
        app = _MockApp()
        store = wrap_root({"n": 1})
        effects = []
        sub = ptx.subscribe(app, lambda: store.n, lambda: effects.append(store.n))
        store.n = 2
        assert effects == [2]
        sub.dispose()
        store.n = 3
        assert effects == [2]

    def test_thread_marshal(self):
        """Writes from a background thread use call_from_thread."""
        app = _MockApp()
        store = wrap_root({"n": 1})
        effects = []
        ptx.subscribe(app, lambda: store.n, lambda: effects.append(store.n))

        def _bg():
            store.n = 2

        t = threading.Thread(target=_bg)
        t.start()
        t.join()

        assert effects == [2]
        assert len(app._call_from_thread_log) == 1


class TestBind:
    def test_applies_computed_value(self):
        app = _MockApp()
        store = wrap_root({"title": "walk"})
        applied = []
        binding = ptx.bind(app, lambda: store.title, lambda: store.title.title(), applied.append)
        assert binding.value == "Walk"
        store.title = "run"
        assert applied == ["Run"]

    def test_value_current_while_paused(self):
        app = _MockApp()
        store = wrap_root({"title": "walk"})
        applied = []
        binding = ptx.bind(app, lambda: store.title, lambda: store.title, applied.append)
        with ptx.pause(app):
            store.title = "run"
        assert binding.value == "run"
        assert applied == []

    def test_catches_nomatch(self):
        app = _MockApp()
        store = wrap_root({"title": "walk"})
        calls = [0]

        def _apply(value):
            calls[0] += 1
            raise NoMatches("#title")

        ptx.bind(app, lambda: store.title, lambda: store.title, _apply)
        store.title = "run"
        assert calls[0] == 1


class TestPause:
    def test_pause_restores_on_exception(self):
        app = _MockApp()
        assert ptx.is_safe(app)

        with pytest.raises(RuntimeError):
            with ptx.pause(app):
                assert not ptx.is_safe(app)
                raise RuntimeError("oops")

        # Restored despite exception
        assert ptx.is_safe(app)

    def test_pause_does_not_mutate_app(self):
        """Pause state lives in the module, not on the app."""
        app = _MockApp()
        attrs_before = set(vars(app))
        with ptx.pause(app):
            attrs_during = set(vars(app))
        attrs_after = set(vars(app))
        assert attrs_before == attrs_during, (
            f"pause() added attributes to app: {attrs_during - attrs_before}"
        )
        assert attrs_before == attrs_after

    def test_multiple_apps_independent(self):
        """Pausing one app does not affect another."""
        app_a = _MockApp()
        app_b = _MockApp()
        with ptx.pause(app_a):
            assert not ptx.is_safe(app_a)
            assert ptx.is_safe(app_b)
