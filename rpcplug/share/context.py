"""A request context that carries values of its own on top of a parent."""

from __future__ import annotations

import threading
from typing import Any


class Context:
    """Holds key/value pairs and falls back to its parent for unknown keys.

    The parent is ``None`` or any object with a ``value(key)`` method.
    """

    def __init__(self, parent: Any = None) -> None:
        self.parent = parent
        self._tags: dict[Any, Any] = {}
        self._lock = threading.Lock()

    def value(self, key: Any) -> Any:
        """Return the value for ``key`` here, else from the parent, else None."""
        with self._lock:
            if key in self._tags:
                return self._tags[key]
        if self.parent is None:
            return None
        return self.parent.value(key)

    def set_value(self, key: Any, val: Any) -> None:
        with self._lock:
            self._tags[key] = val

    def delete_key(self, key: Any) -> None:
        """Remove ``key`` from this context's own values, if present."""
        if key is None:
            return
        with self._lock:
            self._tags.pop(key, None)

    def __str__(self) -> str:
        parent = "background" if self.parent is None else str(self.parent)
        with self._lock:
            tags = dict(self._tags)
        return f"{parent}.WithValue({tags})"


def _check_key(key: Any) -> None:
    if key is None:
        raise ValueError("nil key")
    try:
        hash(key)
    except TypeError as exc:
        raise TypeError("key is not comparable") from exc


def with_value(parent: Any, key: Any, val: Any) -> Context:
    """Return a new context over ``parent`` holding ``key`` = ``val``."""
    _check_key(key)
    ctx = Context(parent)
    ctx.set_value(key, val)
    return ctx


def with_local_value(ctx: Context, key: Any, val: Any) -> Context:
    """Set ``key`` = ``val`` on ``ctx`` itself and return it."""
    _check_key(key)
    ctx.set_value(key, val)
    return ctx