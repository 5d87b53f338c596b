"""Textual integration for reformx. Opt-in, requires textual.

All widget-facing guards live here: the pause/running check, NoMatches
suppression and the call_from_thread hop. Form nodes never import textual.
_paused_apps is owned by this module; an id is present exactly while its
app is inside pause().
"""

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

from reformx import autorun as _autorun, reaction as _reaction

# Keyed by id(app) so several apps can coexist in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend guarded bindings while widgets are being replaced."""
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


def bind(app, data_fn, effect_fn, *, fire_immediately=False):
    """reaction() whose effect only touches widgets when that is safe.

    Skips while the app is not running or paused, swallows NoMatches from
    widget queries, and marshals cross-thread calls via call_from_thread.
    """
    return _reaction(data_fn, _guard(app, effect_fn), fire_immediately=fire_immediately)


def autorun(app, fn):
    """autorun() with the same guards as bind()."""
    return _autorun(_guard(app, fn))


def bind_field(app, node, query, attribute="value", *, transform=None):
    """Push node.value into `attribute` of the widget matching query.

    Runs immediately and on every change. Returns the disposer.
    """

    def _push(value):
        widget = app.query_one(query)
        setattr(widget, attribute, transform(value) if transform else value)

    r = bind(app, lambda: node.value.get(), _push, fire_immediately=True)
    return r.dispose


def bind_errors(app, node, query, *, separator="\n"):
    """Show node's error messages in a Static-like widget once they should be shown.

    Nodes without should_show_error (groups, arrays) show errors as soon as
    they are invalid.
    """
    gate = getattr(node, "should_show_error", node.invalid)

    def _collect():
        if not gate.get():
            return ""
        return separator.join(error.message for error in node.errors.get())

    r = bind(app, _collect, lambda text: app.query_one(query).update(text), fire_immediately=True)
    return r.dispose
