"""Tests for the script compiler."""

import asyncio
import inspect

from ore.compiler.parser import parse_sfc
from ore.compiler.script import ScriptCompiler, find_default_exports
from ore.compiler.spec import ScriptShape


def descriptor_for(source):
    result = parse_sfc(source, "demo.ore")
    assert result.errors == []
    return result.descriptor


def test_no_script():
    result = ScriptCompiler().compile(descriptor_for("<template>x</template>"))
    assert result.shape == ScriptShape.NONE
    assert result.code == ""


def test_options_script(loader):
    descriptor = descriptor_for(
        "<template>x</template>\n"
        "<script>\n"
        'props = ["title"]\n'
        "\n"
        "def setup(props, ctx):\n"
        '    return {"upper": props["title"].upper()}\n'
        "</script>\n"
    )
    result = ScriptCompiler().compile(descriptor, "abc12345")

    assert result.shape == ScriptShape.OPTIONS
    assert result.props == ["title"]
    module = loader.load(result.code).module
    assert module.setup({"title": "hi"}, None) == {"upper": "HI"}
    assert module.__ore_scope__ == "abc12345"


def test_setup_script_returns_public_bindings(loader):
    """Top-level bindings are returned; imports and underscored names are not."""
    descriptor = descriptor_for(
        "<template>x</template>\n"
        "<script setup>\n"
        'define_props(["title"])\n'
        "import math\n"
        "total = math.floor(2.7)\n"
        "_hidden = 1\n"
        "label = f\"{props['title']}!\"\n"
        "def shout(value):\n"
        "    return value.upper()\n"
        "</script>\n"
    )
    result = ScriptCompiler().compile(descriptor)

    assert result.diagnostics == []
    assert result.shape == ScriptShape.SETUP
    assert result.props == ["title"]

    setup = loader.load(result.code).get("setup")
    data = setup({"title": "Hi"}, None)
    assert set(data) == {"total", "label", "shout"}
    assert data["total"] == 2
    assert data["label"] == "Hi!"
    assert data["shout"]("a") == "A"


def test_define_props_assignment_binds_props(loader):
    descriptor = descriptor_for(
        "<template>x</template>\n"
        "<script setup>\n"
        'p = define_props(["a"])\n'
        'doubled = p["a"] * 2\n'
        "</script>\n"
    )
    result = ScriptCompiler().compile(descriptor)
    setup = loader.load(result.code).get("setup")
    assert setup({"a": 3}, None) == {"p": {"a": 3}, "doubled": 6}


def test_top_level_await_makes_setup_async(loader):
    descriptor = descriptor_for(
        "<template>x</template>\n"
        "<script setup>\n"
        "import asyncio\n"
        "await asyncio.sleep(0)\n"
        "ready = True\n"
        "</script>\n"
    )
    result = ScriptCompiler().compile(descriptor)
    setup = loader.load(result.code).get("setup")

    assert inspect.iscoroutinefunction(setup)
    assert asyncio.run(setup({}, None)) == {"ready": True}


def test_await_in_nested_function_keeps_setup_sync(loader):
    descriptor = descriptor_for(
        "<template>x</template>\n"
        "<script setup>\n"
        "async def load():\n"
        "    return await other()\n"
        "</script>\n"
    )
    result = ScriptCompiler().compile(descriptor)
    setup = loader.load(result.code).get("setup")
    assert not inspect.iscoroutinefunction(setup)


def test_syntax_error_line_is_file_relative():
    descriptor = descriptor_for(
        "<template>x</template>\n"
        "<script setup>\n"
        "a = 1\n"
        "b = (\n"
        "</script>\n"
    )
    result = ScriptCompiler().compile(descriptor)
    assert result.code == ""
    assert len(result.diagnostics) == 1
    assert result.diagnostics[0].startswith("line 4:")


def test_define_props_requires_literal_list():
    descriptor = descriptor_for(
        "<template>x</template>\n<script setup>\ndefine_props(names)\n</script>\n"
    )
    result = ScriptCompiler().compile(descriptor)
    assert result.diagnostics == ["line 3: define_props() expects a list of prop names"]


def test_find_default_exports_skips_strings_and_comments():
    source = (
        'const s = "export default nope";\n'
        "// export default comment\n"
        "/* export default block */\n"
        'const t = `x ${ {a: "export default"} } y`;\n'
        "function f() { return { export: 1 }; }\n"
        "export default { data() { return { n: 1 }; } };\n"
    )
    spans = find_default_exports(source)
    assert len(spans) == 1
    start, end = spans[0]
    assert source[start:end] == "export default"
    assert source[:start].endswith("}\n")


def test_compile_client_rewrites_export():
    descriptor = descriptor_for(
        "<template>x</template>\n"
        "<script client>\n"
        "export default { methods: {} };\n"
        "</script>\n"
    )
    result = ScriptCompiler().compile_client(descriptor)
    assert result.diagnostics == []
    assert "const __ore_script = { methods: {} };" in result.code
    assert "export default" not in result.code
    assert result.export_span is not None


def test_compile_client_requires_exactly_one_export():
    none = descriptor_for("<template>x</template>\n<script client>\nconst a = 1;\n</script>\n")
    two = descriptor_for(
        "<template>x</template>\n<script client>\n"
        "export default {};\nexport default {};\n</script>\n"
    )
    compiler = ScriptCompiler()
    assert "found 0" in compiler.compile_client(none).diagnostics[0]
    assert "found 2" in compiler.compile_client(two).diagnostics[0]
