"""Rendering pipeline - turns a component location into a hydratable document.

    location -> parse -> resolve sub-components -> compile tree
             -> setup + store -> render -> document

Nothing is retried: any failure propagates to the caller as an OreError.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from markupsafe import Markup
from uuid_extensions import uuid7str

from ore.compiler.compiler import ComponentCompiler
from ore.compiler.spec import (
    CompiledTree,
    ComponentIdentity,
    RenderInstance,
    ServerArtifact,
    validate_component_id,
)
from ore.compiler.template import COMPONENT_HELPER
from ore.document import DocumentAssembler
from ore.exceptions import (
    RenderExecutionError,
    UnknownComponentError,
)
from ore.store import AssignmentStore, current_store

log = logging.getLogger(__name__)


@dataclass
class SetupContext:
    """Second argument of every setup function."""

    store: AssignmentStore
    identity: ComponentIdentity
    attrs: Dict[str, Any] = field(default_factory=dict)


def compose_context(store_data: Dict[str, Any], setup_data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Merge store assignments with setup bindings; setup wins on conflict."""
    context = dict(store_data)
    if setup_data:
        context.update(setup_data)
    return context


async def _call_setup(artifact: ServerArtifact, props: Dict[str, Any], ctx: SetupContext) -> Dict[str, Any]:
    setup = artifact.setup
    if setup is None:
        return {}

    parameters = inspect.signature(setup).parameters.values()
    if any(p.kind == p.VAR_POSITIONAL for p in parameters):
        args = [props, ctx]
    else:
        args = [props, ctx][: len(parameters)]
    result = setup(*args)
    if inspect.isawaitable(result):
        result = await result
    if result is None:
        return {}
    if not isinstance(result, dict):
        raise TypeError(f"setup() must return a dict, got {type(result).__name__}")
    return result


class ComponentRuntime:
    """Renders one compiled tree against one store snapshot."""

    def __init__(self, tree: CompiledTree, store: AssignmentStore):
        self.tree = tree
        self.store = store
        self.store_data = store.get_all()

    async def _execute(self, artifact: ServerArtifact, coro) -> Any:
        try:
            return await coro
        except RenderExecutionError:
            raise
        except Exception as e:
            raise RenderExecutionError(artifact.identity, e) from e

    async def render_root(self) -> tuple[Markup, Dict[str, Any]]:
        """Render the root component.

        Returns:
            The HTML fragment and the composed root context (store + setup).
        """
        artifact = self.tree.root
        ctx = SetupContext(store=self.store, identity=artifact.identity)
        setup_data = await self._execute(artifact, _call_setup(artifact, {}, ctx))
        context = compose_context(self.store_data, setup_data)

        html = await self._execute(artifact, artifact.render(self._with_helper(context)))
        return Markup(html), context

    async def render_component(
        self, name: str, props: Optional[Dict[str, Any]] = None, caller=None
    ) -> Markup:
        """Render a registered sub-component; called from compiled templates."""
        artifact = self.tree.components.get(name)
        if artifact is None:
            raise UnknownComponentError(name)

        props = dict(props or {})
        declared = {key: props.pop(key) for key in list(props) if key in artifact.props}
        for key in artifact.props:
            declared.setdefault(key, None)
        attrs = props

        slot = ""
        if caller is not None:
            slot = caller()
            if inspect.isawaitable(slot):
                slot = await slot

        ctx = SetupContext(store=self.store, identity=artifact.identity, attrs=attrs)
        setup_data = await self._execute(artifact, _call_setup(artifact, declared, ctx))

        context: Dict[str, Any] = {
            **declared,
            "attrs": attrs,
            "slot": Markup(slot),
            **setup_data,
        }
        html = await self._execute(artifact, artifact.render(self._with_helper(context)))
        return Markup(html)

    def _with_helper(self, context: Dict[str, Any]) -> Dict[str, Any]:
        context[COMPONENT_HELPER] = self.render_component
        return context


class View:
    """Entry point of the rendering engine.

    Holds the compiler and document assembler; request data comes from the
    current assignment store.
    """

    def __init__(self, compiler: ComponentCompiler, assembler: DocumentAssembler):
        self.compiler = compiler
        self.assembler = assembler

    @property
    def components_root(self) -> Path:
        return self.compiler.components_root

    # Assignment store delegation

    def assign(self, key: str, value: Any) -> View:
        current_store().assign(key, value)
        return self

    def get(self, key: str, default: Any = None) -> Any:
        return current_store().get(key, default)

    def get_all(self) -> Dict[str, Any]:
        return current_store().get_all()

    def reset(self) -> View:
        current_store().reset()
        return self

    def identity_for(self, location: str | Path) -> ComponentIdentity:
        """Identity of a component given its id or the path of its .ore file."""
        path = Path(location)
        if path.suffix == ".ore":
            return ComponentIdentity.from_path(self.components_root, path)
        return self.compiler.identity(str(location))

    async def render_instance(self, location: str | Path) -> RenderInstance:
        identity = self.identity_for(location)
        tree = self.compiler.compile_tree(identity)
        runtime = ComponentRuntime(tree, current_store())
        html, context = await runtime.render_root()

        instance = RenderInstance(
            identity=identity,
            instance_id=uuid7str(),
            html=str(html),
            state={k: v for k, v in context.items() if k != COMPONENT_HELPER},
            references=tree.references,
            styles=tree.styles,
        )
        log.info(
            "Rendered %s as %s (%d sub-components)",
            identity.component_id,
            instance.instance_id,
            len(tree.components),
        )
        return instance

    async def render(self, location: str | Path) -> str:
        """Render the component at ``location`` to a full HTML document.

        Raises:
            ComponentNotFoundError, ParseError, TemplateMissingError,
            CompileError, CompileExecutionError, RenderExecutionError
        """
        instance = await self.render_instance(location)
        return self.assembler.assemble(instance)

    def compile_for_client(self, location: str | Path) -> str:
        """ES module source of a component for the browser."""
        return self.compiler.compile_client(self.identity_for(location))

    def compile_for_client_id(self, component_id: str) -> str:
        """Like compile_for_client, for an untrusted component id.

        Raises:
            InvalidComponentIdError: Before any path is built from the id.
        """
        validate_component_id(component_id)
        return self.compiler.compile_client(self.compiler.identity(component_id))

