"""Tests for the document assembler."""

from pathlib import Path

from ore.compiler.spec import ComponentIdentity, ComponentReference, RenderInstance
from ore.config import ClientConfig
from ore.document import DocumentAssembler, encode_state, module_url, project_state


def make_instance(**overrides):
    root = Path("/app/components")
    values = dict(
        identity=ComponentIdentity("test", root / "test" / "index.ore"),
        instance_id="0190-abc",
        html="<p>hi</p>",
        state={"title": "Test"},
        references=[
            ComponentReference(
                "SampleCounter",
                ComponentIdentity("sample-counter", root / "sample-counter" / "index.ore"),
            )
        ],
        styles=[".root { color: red; }", ".child { color: blue; }"],
    )
    values.update(overrides)
    return RenderInstance(**values)


def test_state_script_creates_map_without_replacing():
    script = DocumentAssembler().state_script(make_instance())
    assert script == (
        '(window.__ORE_STATE__ = window.__ORE_STATE__ || {})["0190-abc"] = {"title":"Test"};'
    )


def test_state_escapes_closing_tags():
    payload = "</script><script>alert(1)</script>"
    encoded = encode_state({"s": payload})
    assert "</" not in encoded
    assert "<\\/script>" in encoded


def test_project_state_drops_unserializable_values():
    state = project_state(
        {"n": 1, "items": ["a"], "fn": len, "obj": object(), "_private": 1}
    )
    assert state == {"n": 1, "items": ["a"]}


def test_module_url_encodes_id():
    assert module_url("/ore/component.js", "sample-counter") == "/ore/component.js?c=sample-counter"
    assert module_url("/ore/component.js", "blog/post") == "/ore/component.js?c=blog%2Fpost"


def test_bootstrap_registers_sub_components():
    bootstrap = DocumentAssembler().bootstrap(make_instance())

    assert 'import { createApp } from "ore/runtime";' in bootstrap
    assert 'import __ore_root, { render as __ore_render } from "/ore/component.js?c=test";' in bootstrap
    assert 'import SampleCounter from "/ore/component.js?c=sample-counter";' in bootstrap
    assert 'window.__ORE_STATE__["0190-abc"]' in bootstrap
    assert 'app.component("SampleCounter", SampleCounter);' in bootstrap
    assert bootstrap.endswith('app.mount("#ore-0190-abc");')


def test_assemble_orders_styles_and_mounts_fragment():
    html = DocumentAssembler().assemble(make_instance())

    assert html.index(".root { color: red; }") < html.index(".child { color: blue; }")
    assert '<div id="ore-0190-abc"><p>hi</p></div>' in html
    assert '<link rel="stylesheet" href="/css/main.css">' in html
    assert '"nunjucks": "https://esm.sh/nunjucks@3.2.4"' in html
    assert '<script type="module">' in html


def test_client_config_is_used():
    config = ClientConfig(component_endpoint="/c.js", stylesheets=[], state_global="S")
    assembler = DocumentAssembler(config)
    instance = make_instance()

    assert 'from "/c.js?c=test"' in assembler.bootstrap(instance)
    assert assembler.state_script(instance).startswith("(window.S = window.S || {})")
    assert "stylesheet" not in assembler.assemble(instance)


def test_error_page_escapes_message():
    page = DocumentAssembler().error_page(500, "<script>bad</script>")
    assert "<h1>500</h1>" in page
    assert "&lt;script&gt;bad&lt;/script&gt;" in page
