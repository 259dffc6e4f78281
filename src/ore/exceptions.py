"""Ore Exceptions

Every error the rendering engine surfaces to the router. None of them are
retried: they describe authoring defects, not transient conditions.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from ore.compiler.spec import ComponentIdentity


def _format_diagnostics(diagnostics: Sequence[str]) -> str:
    return "\n".join(f"  - {d}" for d in diagnostics)


class OreError(Exception):
    """Base exception for all Ore errors."""

    pass


class ComponentNotFoundError(OreError):
    """Raised when a component source file does not exist."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        super().__init__(f"Component not found: {path}")


class ParseError(OreError):
    """Raised when a single-file component cannot be split into blocks."""

    def __init__(self, path: str | Path, diagnostics: Sequence[str]):
        self.path = Path(path)
        self.diagnostics = list(diagnostics)
        super().__init__(
            f"SFC parse errors in {path}:\n{_format_diagnostics(self.diagnostics)}"
        )


class TemplateMissingError(OreError):
    """Raised when a component has no <template> block."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        super().__init__(f"SFC has no <template> block: {path}")


class CompileError(OreError):
    """Raised when the template or script compiler reports diagnostics."""

    def __init__(self, path: str | Path, diagnostics: Sequence[str], kind: str = "template"):
        self.path = Path(path)
        self.diagnostics = list(diagnostics)
        self.kind = kind
        super().__init__(
            f"{kind.capitalize()} compile errors in {path}:\n"
            f"{_format_diagnostics(self.diagnostics)}"
        )


class CompileExecutionError(OreError):
    """Raised when generated module code fails while it is being loaded."""

    def __init__(self, name: str, cause: BaseException):
        self.name = name
        self.cause = cause
        super().__init__(f"Generated module '{name}' failed to load: {cause}")


class RenderExecutionError(OreError):
    """Raised when a component's setup or render function throws."""

    def __init__(self, identity: ComponentIdentity, cause: BaseException):
        self.identity = identity
        self.cause = cause
        super().__init__(
            f"Render failed in component '{identity.component_id}' "
            f"({identity.path}): {cause}"
        )


class UnknownComponentError(OreError):
    """Raised at render time for a capitalized tag with no registered component."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown component tag: <{name}>")


class MissingParameterError(OreError):
    """Raised when a query references a named parameter that was not bound."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Missing named parameter :{name}")


class InvalidComponentIdError(OreError):
    """Raised when a component identifier would escape the components root."""

    def __init__(self, component_id: str):
        self.component_id = component_id
        super().__init__(f"Invalid component id: {component_id!r}")


class RouteNotFoundError(OreError):
    """Raised when no component directory matches a URL path."""

    def __init__(self, route: str):
        self.route = route
        super().__init__(f"No component for route: {route}")
