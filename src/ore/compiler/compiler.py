"""Component compiler - drives parsing and code generation for components."""

import logging
from collections import deque
from pathlib import Path
from typing import Dict, List, Optional, Set

from ore.compiler.parser import parse_sfc
from ore.compiler.resolver import Resolver
from ore.compiler.script import CLIENT_SCRIPT_BINDING, ScriptCompiler
from ore.compiler.spec import (
    CompiledTree,
    ComponentIdentity,
    ComponentReference,
    ScriptShape,
    ServerArtifact,
    SFCDescriptor,
    Target,
)
from ore.compiler.style import compile_styles
from ore.compiler.template import TemplateCompiler, render_function
from ore.exceptions import (
    CompileError,
    ComponentNotFoundError,
    ParseError,
    TemplateMissingError,
)
from ore.loader import ModuleLoader

log = logging.getLogger(__name__)


class ComponentCompiler:
    """Compiles single-file components for the server and client targets.

    Nothing is cached: every call re-reads the component from disk, so edits
    are picked up by the next request.
    """

    def __init__(
        self,
        components_root: Path,
        loader: Optional[ModuleLoader] = None,
        template_compiler: Optional[TemplateCompiler] = None,
        script_compiler: Optional[ScriptCompiler] = None,
    ):
        self.components_root = Path(components_root)
        self.loader = loader or ModuleLoader()
        self.template_compiler = template_compiler or TemplateCompiler()
        self.script_compiler = script_compiler or ScriptCompiler()
        self.resolver = Resolver(self.components_root)

    def identity(self, component_id: str) -> ComponentIdentity:
        return ComponentIdentity.for_id(self.components_root, component_id)

    def parse(self, identity: ComponentIdentity) -> SFCDescriptor:
        """Read and parse the component source.

        Raises:
            ComponentNotFoundError: The .ore file does not exist.
            ParseError: The parser reported errors.
        """
        if not identity.path.is_file():
            raise ComponentNotFoundError(identity.path)
        source = identity.path.read_text(encoding="utf-8")
        result = parse_sfc(source, filename=str(identity.path))
        if result.errors:
            raise ParseError(identity.path, result.errors)
        return result.descriptor

    def require_template(self, identity: ComponentIdentity, descriptor: SFCDescriptor) -> str:
        if descriptor.template is None:
            raise TemplateMissingError(identity.path)
        return descriptor.template.content

    def resolve(self, template_source: str) -> List[ComponentReference]:
        return self.resolver.resolve(template_source)

    def _scope_for(self, identity: ComponentIdentity, descriptor: SFCDescriptor) -> Optional[str]:
        """Scope id when the component has scoped styles, else None."""
        if any(block.scoped for block in descriptor.styles):
            return identity.scope_id
        return None

    def generate_server_source(
        self, identity: ComponentIdentity, descriptor: Optional[SFCDescriptor] = None
    ) -> str:
        """Generated Python source of the template module, for inspection."""
        descriptor = descriptor or self.parse(identity)
        template = self.require_template(identity, descriptor)
        result = self.template_compiler.compile(
            template,
            scope_id=self._scope_for(identity, descriptor),
            target=Target.SERVER,
            filename=str(identity.path),
        )
        if result.diagnostics:
            raise CompileError(identity.path, result.diagnostics, kind="template")
        return result.code

    def compile_server(
        self, identity: ComponentIdentity, descriptor: Optional[SFCDescriptor] = None
    ) -> ServerArtifact:
        """Compile a component to its server render function and setup.

        Raises:
            ComponentNotFoundError, ParseError, TemplateMissingError,
            CompileError, CompileExecutionError
        """
        descriptor = descriptor or self.parse(identity)
        code = self.generate_server_source(identity, descriptor)
        handle = self.loader.load(code, name=f"{identity.component_id}_template")
        render = render_function(handle.module)

        script = self.script_compiler.compile(descriptor, identity.scope_id)
        if script.diagnostics:
            raise CompileError(identity.path, script.diagnostics, kind="script")

        setup = None
        if script.shape != ScriptShape.NONE:
            setup = self._load_setup(identity, script.code)

        log.debug(
            "Compiled %s (shape=%s, props=%s)",
            identity.component_id,
            script.shape.value,
            script.props,
        )
        return ServerArtifact(
            identity=identity,
            render=render,
            setup=setup,
            props=script.props,
            shape=script.shape,
            styles=compile_styles(descriptor, identity.scope_id),
        )

    def _load_setup(self, identity: ComponentIdentity, code: str):
        handle = self.loader.load(code, name=f"{identity.component_id}_script")
        setup = handle.get("setup")
        if setup is not None and not callable(setup):
            raise CompileError(
                identity.path, ["setup must be a callable"], kind="script"
            )
        return setup

    def compile_tree(self, identity: ComponentIdentity) -> CompiledTree:
        """Compile a component and every sub-component it transitively uses.

        Sub-components are discovered breadth-first and compiled once each,
        in resolution order. Tags are registered under the name first seen.
        """
        descriptor = self.parse(identity)
        references = self.resolve(self.require_template(identity, descriptor))
        root = self.compile_server(identity, descriptor)

        components: Dict[str, ServerArtifact] = {}
        compiled: Dict[Path, ServerArtifact] = {identity.path.resolve(): root}
        ordered: List[ComponentReference] = []
        queue = deque(references)
        queued: Set[str] = {ref.name for ref in references}

        while queue:
            reference = queue.popleft()
            ordered.append(reference)
            key = reference.identity.path.resolve()

            if key in compiled:
                components[reference.name] = compiled[key]
                continue

            child_descriptor = self.parse(reference.identity)
            child_refs = self.resolve(self.require_template(reference.identity, child_descriptor))
            artifact = self.compile_server(reference.identity, child_descriptor)
            compiled[key] = artifact
            components[reference.name] = artifact

            for child in child_refs:
                if child.name not in queued:
                    queued.add(child.name)
                    queue.append(child)

        return CompiledTree(root=root, references=ordered, components=components)

    def compile_client(self, identity: ComponentIdentity) -> str:
        """Compile a component to an ES module for the browser.

        The module's default export is the client options object merged with
        the template render function.
        """
        descriptor = self.parse(identity)
        template = self.require_template(identity, descriptor)
        result = self.template_compiler.compile(
            template,
            scope_id=self._scope_for(identity, descriptor),
            target=Target.CLIENT,
            filename=str(identity.path),
        )
        if result.diagnostics:
            raise CompileError(identity.path, result.diagnostics, kind="template")

        if descriptor.script_client is None:
            return result.code + "\nexport default { render };\n"

        script = self.script_compiler.compile_client(descriptor)
        if script.diagnostics:
            raise CompileError(identity.path, script.diagnostics, kind="script")

        return (
            result.code
            + "\n"
            + script.code.strip("\n")
            + f"\n\nexport default {{ ...{CLIENT_SCRIPT_BINDING}, render }};\n"
        )
