"""Textual connector for modstore. Opt-in — requires textual.

Store notifications reach widgets only through guarded handlers: a handler
is skipped while its app is stopped or paused, NoMatches raised by widget
queries is dropped, and notifications arriving off the subscribing thread
are re-posted with app.call_from_thread. A CombinerBinding owns at most one
subscription at a time; mount() creates it and unmount() releases it, so
an unmounted widget never blocks uncombine().
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Callable

from textual.css.query import NoMatches

# id(app) -> pause depth. An app is present only while inside pause().
_pause_depth: dict[int, int] = {}


@contextmanager
def pause(app):
    """Hold back store notifications for app, e.g. while swapping widgets.

    Pauses nest; notifications resume when the outermost pause exits.
    """
    key = id(app)
    _pause_depth[key] = _pause_depth.get(key, 0) + 1
    try:
        yield
    finally:
        depth = _pause_depth.pop(key) - 1
        if depth:
            _pause_depth[key] = depth


def is_safe(app) -> bool:
    """Can guarded handlers touch app's widgets right now?"""
    return app.is_running and id(app) not in _pause_depth


def _guard(app, handler: Callable[[Any], None]) -> Callable[[Any], None]:
    _main = threading.get_ident()

    def _guarded(value):
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe, value)
        else:
            _safe(value)

    def _safe(value):
        try:
            handler(value)
        except NoMatches:
            pass

    return _guarded


def subscribe(app, store, hash: str, handler: Callable[[Any], None]) -> str:
    """store.subscribe() that safely bridges to Textual widgets.

    Guards against firing during pause/not-running, catches NoMatches
    from widget queries, and marshals cross-thread calls via call_from_thread.
    """
    return store.subscribe(hash, _guard(app, handler))


class CombinerBinding:
    """Ties one widget to one combiner: mount() subscribes, unmount() unsubscribes.

    Call them from the widget's own lifecycle handlers:

        class Counter(Static):
            def on_mount(self):
                self.binding = use_combiner("counter", lambda s: self.update(str(s["count"])))
                self.binding.mount()

            def on_unmount(self):
                self.binding.unmount()
    """

    __slots__ = ("_app", "_store", "_hash", "_on_change", "_reducer", "_subscription_id", "state")

    def __init__(self, app, store, hash: str, on_change=None, reducer=None) -> None:
        self._app = app
        self._store = store
        self._hash = hash
        self._on_change = on_change
        self._reducer = reducer
        self._subscription_id: str | None = None
        self.state: Any = None

    @property
    def mounted(self) -> bool:
        return self._subscription_id is not None

    def mount(self) -> None:
        if self._subscription_id is None:
            self._subscription_id = subscribe(self._app, self._store, self._hash, self._receive)

    def unmount(self) -> None:
        if self._subscription_id is not None:
            subscription_id, self._subscription_id = self._subscription_id, None
            self._store.unsubscribe(self._hash, subscription_id)

    def _receive(self, value) -> None:
        self.state = self._reducer(value) if self._reducer is not None else value
        if self._on_change is not None:
            self._on_change(self.state)

    def __repr__(self) -> str:
        state = "mounted" if self.mounted else "unmounted"
        return f"CombinerBinding({self._hash!r}, {state})"


def use_store(app, store):
    """Connect app to store. Returns (use_combiner, mutate, dispatch).

    use_combiner(hash, on_change=None, reducer=None) builds a CombinerBinding;
    mutate and dispatch are the store's own methods.
    """

    def use_combiner(hash: str, on_change=None, reducer=None) -> CombinerBinding:
        return CombinerBinding(app, store, hash, on_change, reducer)

    return use_combiner, store.mutate, store.dispatch
