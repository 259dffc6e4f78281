"""Request handlers - the callable a route's index.py exposes.

A logic module exposes either ``handler`` or a top-level ``handle``:

    def handler(request): ...          # FunctionHandler
    async def handle(request): ...     # FunctionHandler

    class Page:
        def handle(self, request): ...
    handler = Page()                   # ObjectHandler

Handlers may be sync or async. Their return value is ignored; they
communicate with the template through the assignment store.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Callable

from ore.exceptions import OreError


@dataclass(frozen=True)
class FunctionHandler:
    func: Callable[..., Any]

    async def __call__(self, request: Any) -> Any:
        result = self.func(request)
        if inspect.isawaitable(result):
            result = await result
        return result


@dataclass(frozen=True)
class ObjectHandler:
    obj: Any

    async def __call__(self, request: Any) -> Any:
        result = self.obj.handle(request)
        if inspect.isawaitable(result):
            result = await result
        return result


Handler = FunctionHandler | ObjectHandler


def resolve_handler(module: ModuleType) -> Handler:
    """Find the request handler of a logic module.

    Raises:
        OreError: The module exposes neither ``handler`` nor ``handle``.
    """
    target = getattr(module, "handler", None)
    if target is None:
        target = getattr(module, "handle", None)
    if target is None:
        raise OreError(f"{module.__name__} defines no handler or handle")

    if inspect.isroutine(target):
        return FunctionHandler(target)
    if callable(getattr(target, "handle", None)):
        return ObjectHandler(target)
    if callable(target):
        return FunctionHandler(target)
    raise OreError(f"handler of {module.__name__} is not callable")
