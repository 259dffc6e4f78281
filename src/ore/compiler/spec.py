"""Compiler spec - SFC descriptors, compile results and compiled artifacts."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ore.exceptions import InvalidComponentIdError


COMPONENT_FILENAME = "index.ore"
LOGIC_FILENAME = "index.py"
SCOPE_ATTRIBUTE_PREFIX = "data-o-"


class Target(str, Enum):
    """Compilation target for a component."""

    SERVER = "server"
    CLIENT = "client"


class ScriptShape(str, Enum):
    """The kind of server script a component carries."""

    NONE = "none"
    OPTIONS = "options"  # <script>: module-level setup(props, ctx)
    SETUP = "setup"  # <script setup>: body is the setup function


def validate_component_id(component_id: str) -> str:
    """Reject component ids that could address files outside the components root."""
    if (
        not component_id
        or ".." in component_id
        or component_id.startswith(("/", "\\"))
        or "\x00" in component_id
        or ":" in component_id
    ):
        raise InvalidComponentIdError(component_id)
    return component_id


def scope_id_for(path: Path) -> str:
    """Deterministic 8-hex scope id derived from a component's resolved path."""
    return hashlib.sha256(str(path.resolve()).encode()).hexdigest()[:8]


@dataclass(frozen=True)
class ComponentIdentity:
    """Where a component lives and how its scoped styles are tagged."""

    component_id: str
    path: Path

    @property
    def scope_id(self) -> str:
        return scope_id_for(self.path)

    @property
    def scope_attribute(self) -> str:
        return f"{SCOPE_ATTRIBUTE_PREFIX}{self.scope_id}"

    @classmethod
    def for_id(cls, components_root: Path, component_id: str) -> ComponentIdentity:
        """Build the identity of ``components_root/<component_id>/index.ore``."""
        validate_component_id(component_id)
        return cls(component_id, components_root / component_id / COMPONENT_FILENAME)

    @classmethod
    def from_path(cls, components_root: Path, path: Path) -> ComponentIdentity:
        """Build an identity from a component source path.

        The id is the directory relative to the components root, in posix form.
        A path outside the root keeps its directory name as id.
        """
        directory = path.parent if path.name == COMPONENT_FILENAME else path
        try:
            component_id = directory.resolve().relative_to(
                components_root.resolve()
            ).as_posix()
        except ValueError:
            component_id = directory.name
        if component_id in ("", "."):
            component_id = "index"
        return cls(component_id, path)


@dataclass
class SFCBlock:
    """A single top-level block of a single-file component."""

    type: str  # template, script or style
    content: str
    attrs: Dict[str, Any] = field(default_factory=dict)
    line: int = 1  # line of the first content character

    @property
    def scoped(self) -> bool:
        return bool(self.attrs.get("scoped"))


@dataclass
class SFCDescriptor:
    """Parsed single-file component."""

    filename: str
    source: str
    template: Optional[SFCBlock] = None
    script: Optional[SFCBlock] = None
    script_setup: Optional[SFCBlock] = None
    script_client: Optional[SFCBlock] = None
    styles: List[SFCBlock] = field(default_factory=list)


@dataclass
class ParseResult:
    descriptor: SFCDescriptor
    errors: List[str] = field(default_factory=list)


@dataclass
class TemplateCompileResult:
    """Generated template module source plus any diagnostics."""

    code: str
    diagnostics: List[str] = field(default_factory=list)


@dataclass
class ScriptCompileResult:
    """Generated server script source.

    ``code`` defines a module-level ``setup`` callable (empty when the
    component has no server script) and ``props`` lists declared prop names.
    """

    code: str
    diagnostics: List[str] = field(default_factory=list)
    shape: ScriptShape = ScriptShape.NONE
    props: List[str] = field(default_factory=list)


@dataclass
class ClientScriptResult:
    """Client script with its default export rewritten.

    ``export_span`` is the (start, end) offset of the original
    ``export default`` keywords in the client block content.
    """

    code: str
    diagnostics: List[str] = field(default_factory=list)
    export_span: Optional[Tuple[int, int]] = None


@dataclass(frozen=True)
class ComponentReference:
    """A capitalized tag in a template mapped to the component it renders."""

    name: str
    identity: ComponentIdentity


RenderFunction = Callable[[Dict[str, Any]], Awaitable[str]]
SetupFunction = Callable[..., Any]


@dataclass
class ServerArtifact:
    """Everything needed to render a component on the server."""

    identity: ComponentIdentity
    render: RenderFunction
    setup: Optional[SetupFunction] = None
    props: List[str] = field(default_factory=list)
    shape: ScriptShape = ScriptShape.NONE
    styles: List[str] = field(default_factory=list)


@dataclass
class CompiledTree:
    """A root artifact and every sub-component it transitively references.

    ``components`` maps tag name to artifact, in resolution order.
    """

    root: ServerArtifact
    references: List[ComponentReference] = field(default_factory=list)
    components: Dict[str, ServerArtifact] = field(default_factory=dict)

    @property
    def styles(self) -> List[str]:
        """Root styles first, then sub-components in resolution order."""
        styles = list(self.root.styles)
        for artifact in self.components.values():
            styles.extend(artifact.styles)
        return styles


@dataclass
class RenderInstance:
    """One rendering of a root component."""

    identity: ComponentIdentity
    instance_id: str
    html: str
    state: Dict[str, Any] = field(default_factory=dict)
    references: List[ComponentReference] = field(default_factory=list)
    styles: List[str] = field(default_factory=list)

    @property
    def mount_id(self) -> str:
        return f"ore-{self.instance_id}"
