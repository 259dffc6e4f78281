"""Template compiler - turns an SFC <template> into server or client code.

Server target: the template is compiled by Jinja2 (async mode) to raw Python
module source. The module is prefixed with a lookup of the Environment it was
compiled against, so it can be loaded through the regular import machinery
and turned back into a ``Template``.

Client target: an ES module that renders the same template with nunjucks.

Capitalized component tags are rewritten before either target sees them:

    <Card title="x" :count="n + 1"/>  ->  {{ __ore_component("Card", {...}) }}
    <Card title="a {{ b }}"/>         ->  {{ __ore_component("Card", {"title": ("a " ~ (b))}) }}
    <Card>body</Card>                 ->  {% call __ore_component(...) %}body{% endcall %}

Tags inside HTML comments and ``{% raw %}`` blocks are left alone.
"""

import json
import logging
import re
import weakref
from typing import Any, Dict, List, Optional, Tuple

from jinja2 import Environment, TemplateSyntaxError
from uuid_extensions import uuid7str

from ore.compiler.markup import ATTRIBUTE, TOKEN, map_markup
from ore.compiler.spec import (
    SCOPE_ATTRIBUTE_PREFIX,
    RenderFunction,
    Target,
    TemplateCompileResult,
)

log = logging.getLogger(__name__)


COMPONENT_HELPER = "__ore_component"

_environments: "weakref.WeakValueDictionary[str, Environment]" = (
    weakref.WeakValueDictionary()
)

_INTERPOLATION = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)
_NATIVE_START_TAG = re.compile(r"<([a-z][a-z0-9-]*)(?=[\s/>])")

CLIENT_MODULE = """\
import nunjucks from "nunjucks";

const __ore_env = new nunjucks.Environment(null, {{
  autoescape: true,
  trimBlocks: true,
  lstripBlocks: true,
}});
const __ore_template = nunjucks.compile({source}, __ore_env);
const __ore_safe = (value) =>
  new nunjucks.runtime.SafeString(value == null ? "" : String(value));

export function render(ctx) {{
  const context = {{ ...ctx }};
  if ("slot" in ctx) {{
    context.slot = __ore_safe(ctx.slot);
  }}
  if (typeof ctx.{helper} === "function") {{
    context.{helper} = (...args) => __ore_safe(ctx.{helper}(...args));
  }}
  return __ore_template.render(context);
}}
"""


def lookup_environment(key: str) -> Environment:
    """Environment registered under ``key``; used by generated server modules."""
    return _environments[key]


def create_environment(enable_async: bool = True) -> Environment:
    return Environment(
        enable_async=enable_async,
        autoescape=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def _prop_key(name: str) -> str:
    return name.replace("-", "_")


def _expression(text: str) -> str:
    return "(" + text.strip().replace("\n", " ") + ")"


def _interpolated(text: str) -> str:
    """Jinja expression for an attribute value.

    A value that is a single ``{{ e }}`` passes ``e`` through unchanged;
    text mixed with interpolations is joined into a string with ``~``.
    """
    parts = []
    last = 0
    for match in _INTERPOLATION.finditer(text):
        if match.start() > last:
            parts.append(json.dumps(text[last:match.start()]))
        parts.append(_expression(match.group(1)))
        last = match.end()
    if last < len(text):
        parts.append(json.dumps(text[last:]))

    if not parts:
        return '""'
    if len(parts) == 1:
        return parts[0]
    return "(" + " ~ ".join(parts) + ")"


def _props_literal(raw_attrs: str) -> Tuple[str, List[str]]:
    """Jinja dict literal for the attributes of a component tag.

    Returns:
        The literal and the names of attributes whose value holds a Jinja
        statement or comment, which cannot be turned into an expression.
    """
    entries = []
    rejected = []
    for match in ATTRIBUTE.finditer(raw_attrs):
        name = match.group("name")
        quoted = match.group("double")
        if quoted is None:
            quoted = match.group("single")

        if name.startswith(":"):
            expression = quoted or match.group("bare")
            value = _expression(expression) if expression else "none"
            name = name[1:]
        elif quoted is not None:
            if "{%" in quoted or "{#" in quoted:
                rejected.append(name)
                continue
            value = _interpolated(quoted)
        elif match.group("bare") is not None:
            value = json.dumps(match.group("bare"))
        else:
            value = "true"
        entries.append(f"{json.dumps(_prop_key(name))}: {value}")
    return "{" + ", ".join(entries) + "}", rejected


def transform_component_tags(source: str) -> Tuple[str, List[str]]:
    """Rewrite capitalized tags into component helper calls.

    Returns:
        The rewritten source and a list of diagnostics for unbalanced tags
        and unsupported attribute values.
    """
    diagnostics: List[str] = []
    open_tags: List[Tuple[str, int]] = []

    def replace(match: "re.Match[str]") -> str:
        if not match.group("tag"):
            return match.group(0)

        name = match.group("name")
        line = source.count("\n", 0, match.start()) + 1
        # keep line numbers stable for Jinja diagnostics
        newlines = "\n" * match.group(0).count("\n")

        if match.group("close"):
            if not open_tags or open_tags[-1][0] != name:
                diagnostics.append(f"line {line}: unexpected closing tag </{name}>")
                return match.group(0)
            open_tags.pop()
            return f"{{% endcall{newlines} %}}"

        props, rejected = _props_literal(match.group("attrs"))
        for attribute in rejected:
            diagnostics.append(
                f"line {line}: attribute {attribute!r} of <{name}> may only "
                "interpolate {{ }} expressions"
            )
        call = f'{COMPONENT_HELPER}("{name}", {props})'
        if match.group("self_closing"):
            return f"{{{{ {call}{newlines} }}}}"
        open_tags.append((name, line))
        return f"{{% call {call}{newlines} %}}"

    transformed = TOKEN.sub(replace, source)
    for name, line in open_tags:
        diagnostics.append(f"line {line}: <{name}> is never closed")
    return transformed, diagnostics


def inject_scope_attribute(source: str, scope_id: str) -> str:
    """Add ``data-o-<scope_id>`` to every native start tag in the markup."""
    attribute = f"{SCOPE_ATTRIBUTE_PREFIX}{scope_id}"
    return map_markup(
        source, lambda markup: _NATIVE_START_TAG.sub(rf"<\1 {attribute}", markup)
    )



class TemplateCompiler:
    """Compiles component templates for the server and client targets.

    Every compiler owns one async Jinja2 Environment. Generated server modules
    look it up by key when they are loaded, so the compiler has to outlive
    the modules it produces.
    """

    def __init__(self) -> None:
        self.key = f"ore-{uuid7str()}"
        self.environment = create_environment()
        self._validator = create_environment(enable_async=False)
        _environments[self.key] = self.environment

    def preprocess(self, source: str, scope_id: Optional[str]) -> Tuple[str, List[str]]:
        transformed, diagnostics = transform_component_tags(source)
        if scope_id:
            transformed = inject_scope_attribute(transformed, scope_id)
        return transformed, diagnostics

    def compile(
        self,
        source: str,
        scope_id: Optional[str] = None,
        target: Target = Target.SERVER,
        filename: Optional[str] = None,
    ) -> TemplateCompileResult:
        """Compile template source for ``target``.

        Args:
            source: Content of the <template> block.
            scope_id: When set, native elements get the scope attribute.
            target: Target.SERVER for Python source, Target.CLIENT for an ES module.
            filename: Used for Jinja2 debug info.

        Returns:
            TemplateCompileResult. ``code`` is empty when diagnostics are present.
        """
        transformed, diagnostics = self.preprocess(source, scope_id)
        if diagnostics:
            return TemplateCompileResult(code="", diagnostics=diagnostics)

        name = filename or "<template>"
        try:
            if target == Target.SERVER:
                body = self.environment.compile(
                    transformed, name=name, filename=filename, raw=True
                )
                code = self._server_preamble() + body
            else:
                self._validator.parse(transformed, name=name, filename=filename)
                code = CLIENT_MODULE.format(
                    source=json.dumps(transformed), helper=COMPONENT_HELPER
                )
        except TemplateSyntaxError as exc:
            return TemplateCompileResult(
                code="", diagnostics=[f"line {exc.lineno}: {exc.message}"]
            )

        log.debug("Compiled %s template %s (%d chars)", target.value, name, len(code))
        return TemplateCompileResult(code=code)

    def _server_preamble(self) -> str:
        return (
            "from ore.compiler.template import lookup_environment as __ore_lookup_environment\n"
            f"environment = __ore_lookup_environment({self.key!r})\n"
        )


def render_function(module: Any) -> RenderFunction:
    """Build the async render function of a loaded server template module."""
    environment: Environment = module.environment
    namespace: Dict[str, Any] = vars(module)
    template = environment.template_class.from_module_dict(
        environment, namespace, environment.make_globals(None)
    )

    async def render(context: Dict[str, Any]) -> str:
        return await template.render_async(dict(context))

    return render
