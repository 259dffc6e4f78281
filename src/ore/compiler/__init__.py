"""Component compiler package."""

from ore.compiler.compiler import ComponentCompiler
from ore.compiler.parser import parse_sfc
from ore.compiler.resolver import Resolver, component_dir_name, scan_references
from ore.compiler.script import ScriptCompiler
from ore.compiler.spec import (
    CompiledTree,
    ComponentIdentity,
    ComponentReference,
    RenderInstance,
    ScriptShape,
    ServerArtifact,
    SFCDescriptor,
    Target,
    validate_component_id,
)
from ore.compiler.style import scope_css
from ore.compiler.template import TemplateCompiler

__all__ = [
    "ComponentCompiler",
    "CompiledTree",
    "ComponentIdentity",
    "ComponentReference",
    "RenderInstance",
    "Resolver",
    "ScriptCompiler",
    "ScriptShape",
    "ServerArtifact",
    "SFCDescriptor",
    "Target",
    "TemplateCompiler",
    "component_dir_name",
    "parse_sfc",
    "scan_references",
    "scope_css",
    "validate_component_id",
]
