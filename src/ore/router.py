"""Router - maps URL paths onto the components directory.

    /            -> components/index/{index.py,index.ore}
    /test        -> components/test/{index.py,index.ore}
    /blog/post/  -> components/blog/post/{index.py,index.ore}

For every request the route's logic module is loaded fresh, its handler runs
inside a new request scope, and the component is rendered from the store it
filled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ore.compiler.spec import COMPONENT_FILENAME, LOGIC_FILENAME
from ore.exceptions import RouteNotFoundError
from ore.handlers import resolve_handler
from ore.loader import ModuleLoader
from ore.store import request_scope
from ore.view import View

log = logging.getLogger(__name__)


@dataclass
class RouteResult:
    status_code: int
    body: str


def normalize_route(path: str) -> str:
    """``/`` -> ``/index``; trailing slashes and query strings are dropped."""
    path = path.split("?", 1)[0].split("#", 1)[0]
    path = "/" + path.strip("/")
    return "/index" if path == "/" else path


class Router:
    """Filesystem-convention router."""

    def __init__(self, view: View, loader: ModuleLoader | None = None):
        self.view = view
        self.loader = loader or ModuleLoader()

    @property
    def components_root(self) -> Path:
        return self.view.components_root

    def directory_for(self, path: str) -> Path:
        """Component directory of a URL path.

        Raises:
            RouteNotFoundError: The path has unsafe segments or leaves the root.
        """
        route = normalize_route(path)
        segments = route.strip("/").split("/")
        if any(segment in ("", ".", "..") or "\\" in segment or "\x00" in segment for segment in segments):
            raise RouteNotFoundError(route)

        root = self.components_root.resolve()
        directory = root.joinpath(*segments).resolve()
        if directory != root and root not in directory.parents:
            raise RouteNotFoundError(route)
        return directory

    async def dispatch(self, path: str, request: Any = None) -> str:
        """Run the route's logic and render its component.

        Raises:
            RouteNotFoundError: No index.py or index.ore for the path.
            OreError: Anything the logic or rendering raises.
        """
        directory = self.directory_for(path)
        logic = directory / LOGIC_FILENAME
        component = directory / COMPONENT_FILENAME
        if not logic.is_file() or not component.is_file():
            raise RouteNotFoundError(normalize_route(path))

        with request_scope():
            module = self.loader.load_file(logic, name=f"{directory.name}_logic")
            handler = resolve_handler(module.module)
            await handler(request)
            return await self.view.render(component)

    async def route(self, path: str, request: Any = None) -> RouteResult:
        """Dispatch and convert failures into error pages."""
        assembler = self.view.assembler
        try:
            body = await self.dispatch(path, request)
        except RouteNotFoundError as e:
            log.info("404 %s", e.route)
            return RouteResult(404, assembler.error_page(404, f"Not found: {e.route}"))
        except Exception as e:
            log.exception("Error while rendering %s", path)
            return RouteResult(500, assembler.error_page(500, str(e)))
        return RouteResult(200, body)

