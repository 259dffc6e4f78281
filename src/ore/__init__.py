"""Ore - server-rendered single-file components with client hydration."""

from ore._version import __version__
from ore.app import Ore, ore
from ore.exceptions import OreError
from ore.store import AssignmentStore, current_store, request_scope
from ore.view import View

__all__ = [
    "AssignmentStore",
    "Ore",
    "OreError",
    "View",
    "__version__",
    "current_store",
    "ore",
    "request_scope",
]
