"""Assignment store - the data bag request logic hands to templates.

Request logic fills the store with ``assign()``; the rendering pipeline reads
a snapshot of it. Each in-flight request gets its own store through
``request_scope()``, carried in a context variable so concurrent asyncio
requests never see each other's assignments.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator


class AssignmentStore:
    """Mapping of template variable name to value."""

    def __init__(self) -> None:
        self._assignments: dict[str, Any] = {}

    def assign(self, key: str, value: Any) -> AssignmentStore:
        """Set ``key`` to ``value``. Returns the store so calls can be chained."""
        self._assignments[key] = value
        return self

    def get(self, key: str, default: Any = None) -> Any:
        return self._assignments.get(key, default)

    def get_all(self) -> dict[str, Any]:
        """Return a shallow copy of all assignments."""
        return dict(self._assignments)

    def reset(self) -> AssignmentStore:
        """Clear all assignments."""
        self._assignments = {}
        return self

    def __contains__(self, key: object) -> bool:
        return key in self._assignments

    def __len__(self) -> int:
        return len(self._assignments)

    def __repr__(self) -> str:
        return f"AssignmentStore({self._assignments!r})"


# Used outside of any request (CLI, scripts, tests)
_default_store = AssignmentStore()

_current_store: ContextVar[AssignmentStore | None] = ContextVar(
    "ore_assignment_store", default=None
)


def current_store() -> AssignmentStore:
    """Get the store of the active request, or the process default store."""
    store = _current_store.get()
    if store is None:
        return _default_store
    return store


@contextmanager
def request_scope(store: AssignmentStore | None = None) -> Iterator[AssignmentStore]:
    """Install a fresh store for the duration of one request.

    The store is reset before request logic can assign anything, and the
    previously active store is restored on exit.
    """
    if store is None:
        store = AssignmentStore()
    store.reset()

    token = _current_store.set(store)
    try:
        yield store
    finally:
        _current_store.reset(token)
