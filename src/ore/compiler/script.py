"""Script compiler - server setup scripts and client option scripts.

Server scripts are Python:

    <script>                        <script setup>
    props = ["title"]               define_props(["title"])
                                    import math
    def setup(props, ctx):          total = math.floor(ctx.store.get("n", 0))
        return {"total": 1}         label = f"{props['title']}: {total}"

A ``<script setup>`` body is wrapped into ``def setup(props, ctx)`` which
returns every top-level binding that does not start with an underscore.
Imports are hoisted to module level and are not returned. A top-level
``await`` turns the generated function into a coroutine.

Client scripts are JavaScript. Their single top-level ``export default`` is
rewritten to ``const __ore_script =`` so the component module can merge the
options object with its render function.
"""

import ast
import re
import textwrap
from typing import List, Optional, Set, Tuple

from ore.compiler.spec import (
    ClientScriptResult,
    ScriptCompileResult,
    ScriptShape,
    SFCBlock,
    SFCDescriptor,
)


CLIENT_SCRIPT_BINDING = "__ore_script"
DEFINE_PROPS = "define_props"
_RESERVED = {"props", "ctx"}
_EXPORT_DEFAULT = re.compile(r"export\s+default\b")


def _syntax_diagnostic(exc: SyntaxError, block: SFCBlock) -> str:
    line = (exc.lineno or 1) + block.line - 1
    return f"line {line}: {exc.msg}"


def _literal_props(node: ast.AST) -> Optional[List[str]]:
    try:
        value = ast.literal_eval(node)
    except (ValueError, TypeError, SyntaxError):
        return None
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return list(value)
    return None


def _is_define_props(node: ast.AST) -> bool:
    return (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Name)
        and node.func.id == DEFINE_PROPS
    )


def _target_names(target: ast.AST) -> List[str]:
    if isinstance(target, ast.Name):
        return [target.id]
    if isinstance(target, (ast.Tuple, ast.List)):
        names = []
        for element in target.elts:
            names.extend(_target_names(element))
        return names
    if isinstance(target, ast.Starred):
        return _target_names(target.value)
    return []


def _bound_names(statement: ast.stmt) -> List[str]:
    """Names a top-level statement binds in the setup scope."""
    if isinstance(statement, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
        return [statement.name]
    if isinstance(statement, ast.Assign):
        names = []
        for target in statement.targets:
            names.extend(_target_names(target))
        return names
    if isinstance(statement, (ast.AnnAssign, ast.AugAssign)):
        return _target_names(statement.target)
    if isinstance(statement, (ast.For, ast.AsyncFor)):
        return _target_names(statement.target)
    return []


class _TopLevelAwaitFinder(ast.NodeVisitor):
    """Finds await expressions that are not inside a nested scope."""

    def __init__(self) -> None:
        self.found = False

    def visit_Await(self, node: ast.Await) -> None:
        self.found = True

    def visit_AsyncFor(self, node: ast.AsyncFor) -> None:
        self.found = True

    def visit_AsyncWith(self, node: ast.AsyncWith) -> None:
        self.found = True

    def _skip(self, node: ast.AST) -> None:
        pass

    visit_FunctionDef = _skip
    visit_AsyncFunctionDef = _skip
    visit_Lambda = _skip
    visit_ClassDef = _skip


def _has_top_level_await(statements: List[ast.stmt]) -> bool:
    finder = _TopLevelAwaitFinder()
    for statement in statements:
        finder.visit(statement)
    return finder.found


def _is_ident(char: str) -> bool:
    return char.isalnum() or char in "_$"


def _skip_quoted(source: str, pos: int) -> int:
    quote = source[pos]
    pos += 1
    while pos < len(source):
        char = source[pos]
        if char == "\\":
            pos += 2
            continue
        if char == quote or char == "\n":
            return pos + 1
        pos += 1
    return pos


def _skip_template_literal(source: str, pos: int) -> int:
    pos += 1
    while pos < len(source):
        char = source[pos]
        if char == "\\":
            pos += 2
        elif char == "`":
            return pos + 1
        elif source.startswith("${", pos):
            pos = _scan(source, pos + 2)
        else:
            pos += 1
    return pos


def _scan(source: str, pos: int, spans: Optional[List[Tuple[int, int]]] = None) -> int:
    """Walk JavaScript source outside strings, template literals and comments.

    With ``spans`` set, records every ``export default`` at brace depth zero
    and runs to the end of the source. Without it, stops after the ``}``
    closing a template literal substitution.
    """
    depth = 0
    length = len(source)
    while pos < length:
        char = source[pos]
        if char in "\"'":
            pos = _skip_quoted(source, pos)
        elif char == "`":
            pos = _skip_template_literal(source, pos)
        elif source.startswith("//", pos):
            end = source.find("\n", pos)
            pos = length if end < 0 else end
        elif source.startswith("/*", pos):
            end = source.find("*/", pos + 2)
            pos = length if end < 0 else end + 2
        elif char in "{([":
            depth += 1
            pos += 1
        elif char in "})]":
            if char == "}" and depth == 0 and spans is None:
                return pos + 1
            depth = max(depth - 1, 0)
            pos += 1
        elif spans is not None and depth == 0 and char == "e":
            match = _EXPORT_DEFAULT.match(source, pos)
            if match and (pos == 0 or not _is_ident(source[pos - 1])):
                spans.append(match.span())
                pos = match.end()
            else:
                pos += 1
        else:
            pos += 1
    return pos


def find_default_exports(source: str) -> List[Tuple[int, int]]:
    """Spans of top-level ``export default`` keywords in JavaScript source.

    Regular expression literals are not recognised; a ``/`` inside one that
    looks like a quote or comment opener can confuse the scan.
    """
    spans: List[Tuple[int, int]] = []
    _scan(source, 0, spans)
    return spans


class ScriptCompiler:
    """Compiles the script blocks of a component."""

    def compile(self, descriptor: SFCDescriptor, scope_id: Optional[str] = None) -> ScriptCompileResult:
        """Compile the server script of ``descriptor`` to module source.

        ``scope_id`` is exposed to the script as ``__ore_scope__``.
        """
        if descriptor.script_setup is not None:
            result = self._compile_setup(descriptor.script_setup)
        elif descriptor.script is not None:
            result = self._compile_options(descriptor.script)
        else:
            return ScriptCompileResult(code="", shape=ScriptShape.NONE)

        if result.code and scope_id:
            result.code += f"\n__ore_scope__ = {scope_id!r}\n"
        return result

    def _compile_options(self, block: SFCBlock) -> ScriptCompileResult:
        source = textwrap.dedent(block.content)
        try:
            tree = ast.parse(source, filename=f"<script:{block.line}>")
        except SyntaxError as exc:
            return ScriptCompileResult(
                code="", diagnostics=[_syntax_diagnostic(exc, block)], shape=ScriptShape.OPTIONS
            )

        props: List[str] = []
        diagnostics: List[str] = []
        for statement in tree.body:
            if (
                isinstance(statement, ast.Assign)
                and any(isinstance(t, ast.Name) and t.id == "props" for t in statement.targets)
            ):
                declared = _literal_props(statement.value)
                if declared is None:
                    diagnostics.append(
                        f"line {statement.lineno + block.line - 1}: props must be a "
                        "list of prop names"
                    )
                else:
                    props = declared

        # keep line numbers of the .ore file in tracebacks
        code = "\n" * (block.line - 1) + source
        return ScriptCompileResult(
            code="" if diagnostics else code,
            diagnostics=diagnostics,
            shape=ScriptShape.OPTIONS,
            props=props,
        )

    def _compile_setup(self, block: SFCBlock) -> ScriptCompileResult:
        source = textwrap.dedent(block.content)
        try:
            tree = ast.parse(source, filename=f"<script setup:{block.line}>")
        except SyntaxError as exc:
            return ScriptCompileResult(
                code="", diagnostics=[_syntax_diagnostic(exc, block)], shape=ScriptShape.SETUP
            )

        imports: List[ast.stmt] = []
        body: List[ast.stmt] = []
        props: List[str] = []
        diagnostics: List[str] = []

        for statement in tree.body:
            if isinstance(statement, (ast.Import, ast.ImportFrom)):
                imports.append(statement)
                continue

            call = None
            if isinstance(statement, ast.Expr) and _is_define_props(statement.value):
                call = statement.value
            elif isinstance(statement, ast.Assign) and _is_define_props(statement.value):
                call = statement.value

            if call is not None:
                declared = _literal_props(call.args[0]) if len(call.args) == 1 else None
                if declared is None:
                    diagnostics.append(
                        f"line {statement.lineno + block.line - 1}: {DEFINE_PROPS}() "
                        "expects a list of prop names"
                    )
                    continue
                props = declared
                if isinstance(statement, ast.Assign):
                    statement.value = ast.Name(id="props", ctx=ast.Load())
                    body.append(statement)
                continue

            body.append(statement)

        if diagnostics:
            return ScriptCompileResult(
                code="", diagnostics=diagnostics, shape=ScriptShape.SETUP, props=props
            )

        exported: List[str] = []
        seen: Set[str] = set()
        for statement in body:
            for name in _bound_names(statement):
                if name.startswith("_") or name in _RESERVED or name in seen:
                    continue
                seen.add(name)
                exported.append(name)

        is_async = _has_top_level_await(body)
        lines = [ast.unparse(statement) for statement in imports]
        lines.append(f"{'async ' if is_async else ''}def setup(props, ctx):")
        for statement in body:
            lines.append(textwrap.indent(ast.unparse(statement), "    "))
        returned = ", ".join(f"{name!r}: {name}" for name in exported)
        lines.append(f"    return {{{returned}}}")
        lines.append("")
        lines.append(f"props = {props!r}")

        return ScriptCompileResult(
            code="\n".join(lines) + "\n",
            shape=ScriptShape.SETUP,
            props=props,
        )

    def compile_client(self, descriptor: SFCDescriptor) -> ClientScriptResult:
        """Rewrite the default export of the ``<script client>`` block."""
        block = descriptor.script_client
        if block is None:
            return ClientScriptResult(code="")

        spans = find_default_exports(block.content)
        if len(spans) != 1:
            return ClientScriptResult(
                code="",
                diagnostics=[
                    f"line {block.line}: <script client> must have exactly one "
                    f"top-level export default, found {len(spans)}"
                ],
            )

        start, end = spans[0]
        code = (
            block.content[:start]
            + f"const {CLIENT_SCRIPT_BINDING} ="
            + block.content[end:]
        )
        return ClientScriptResult(code=code, export_span=(start, end))
