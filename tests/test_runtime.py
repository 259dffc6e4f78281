"""Tests for the browser runtime and generated client modules, run under node."""

import json
import shutil
import subprocess
from pathlib import Path

import pytest

from ore.server import RUNTIME_JS

NODE = shutil.which("node")

pytestmark = pytest.mark.skipif(NODE is None, reason="node is not installed")

PRELUDE = """\
import { createApp, componentArgs, INSTANCE_ATTRIBUTE } from "./runtime.mjs";

function fakeElement() {
  return {
    innerHTML: "",
    listeners: {},
    addEventListener(type, fn) {
      this.listeners[type] = fn;
    },
  };
}

function fakeNode(attributes, parentNode) {
  return {
    parentNode,
    hasAttribute: (name) => name in attributes,
    getAttribute: (name) => attributes[name],
  };
}

const tick = () => new Promise((resolve) => setTimeout(resolve, 0));
const instanceKey = (html) => /data-o-instance="([^"]+)"/.exec(html)[1];

"""

COUNTER_APP = """
let mountedCalls = 0;
const Counter = {
  props: ["label"],
  data() {
    return { count: 0 };
  },
  methods: {
    increment() {
      this.count += 1;
    },
  },
  mounted() {
    mountedCalls += 1;
  },
  render(ctx) {
    return `<div><span>${ctx.label}: ${ctx.count}</span>` +
      `<button data-on-click="increment">+1</button>${ctx.slot}${ctx.attrs.extra}</div>`;
  },
};
const root = {
  methods: {
    rename() {
      this.title = "renamed";
    },
  },
  render(ctx) {
    const counter = ctx.__ore_component(
      "Counter",
      { label: "Clicks", extra: "!" },
      { caller: () => "<i>slot</i>", __keywords: true },
    );
    return `<main data-on-click="rename"><h1>${ctx.title}</h1>${counter}</main>`;
  },
};

const element = fakeElement();
const app = createApp(root, { title: "Home" });
app.component("Counter", Counter);
app.mount(element);
const initial = element.innerHTML;

const key = instanceKey(initial);
const button = fakeNode({ "data-on-click": "increment" }, fakeNode({ [INSTANCE_ATTRIBUTE]: key }, element));
element.listeners.click({ type: "click", target: button });
element.listeners.click({ type: "click", target: button });
await tick();
const afterClicks = element.innerHTML;

const heading = fakeNode({}, fakeNode({ "data-on-click": "rename" }, element));
element.listeners.click({ type: "click", target: heading });
await tick();

console.log(JSON.stringify({
  initial,
  afterClicks,
  afterRename: element.innerHTML,
  count: app.instance(key).count,
  mountedCalls,
}));
"""

ARGS = """
const caller = () => "body";
const positional = componentArgs([{ a: 1 }, caller]);
const keywords = componentArgs([{ a: 1 }, { caller, __keywords: true }]);
const bare = componentArgs([{ a: 1 }]);
console.log(JSON.stringify({
  positional: positional.caller(),
  keywords: keywords.caller(),
  keywordProps: keywords.props,
  bare: bare.caller,
}));
"""


def run_node(directory: Path, script: str) -> dict:
    shutil.copy(RUNTIME_JS, directory / "runtime.mjs")
    harness = directory / "harness.mjs"
    harness.write_text(PRELUDE + script, encoding="utf-8")
    result = subprocess.run(
        [NODE, str(harness)], capture_output=True, text=True, timeout=30
    )
    assert result.returncode == 0, result.stderr
    return json.loads(result.stdout.strip().splitlines()[-1])


@pytest.fixture
def nunjucks_url() -> str:
    result = subprocess.run(
        [NODE, "-p", "require.resolve('nunjucks')"], capture_output=True, text=True
    )
    if result.returncode != 0:
        pytest.skip("nunjucks is not installed for node")
    return Path(result.stdout.strip()).as_uri()


def test_sub_component_methods_and_state(tmp_path):
    """Sub-component handlers run on their own instance, whose state survives re-renders."""
    result = run_node(tmp_path, COUNTER_APP)

    assert result["initial"] == (
        '<main data-on-click="rename"><h1>Home</h1>'
        '<div data-o-instance="root/Counter.0"><span>Clicks: 0</span>'
        '<button data-on-click="increment">+1</button><i>slot</i>!</div></main>'
    )
    assert "<span>Clicks: 2</span>" in result["afterClicks"]
    assert "<h1>Home</h1>" in result["afterClicks"]
    assert "<h1>renamed</h1>" in result["afterRename"]
    assert "<span>Clicks: 2</span>" in result["afterRename"]
    assert result["count"] == 2
    assert result["mountedCalls"] == 1


def test_component_args_reads_keyword_caller(tmp_path):
    result = run_node(tmp_path, ARGS)

    assert result["positional"] == "body"
    assert result["keywords"] == "body"
    assert result["keywordProps"] == {"a": 1}
    assert result["bare"] is None


def test_compiled_modules_render_slot_and_methods(
    tmp_path, compiler, write_component, nunjucks_url
):
    write_component("index", '<template><Card title="{{ t }}">hi {{ t }}</Card></template>')
    write_component(
        "card",
        "<template><section><h2>{{ title }}</h2>{{ slot }}"
        '<button data-on-click="bump">{{ n }}</button></section></template>\n'
        "<script client>\n"
        "export default {\n"
        '  props: ["title"],\n'
        "  data() { return { n: 0 }; },\n"
        "  methods: { bump() { this.n += 1; } },\n"
        "};\n"
        "</script>",
    )
    for component_id in ("index", "card"):
        code = compiler.compile_client(compiler.identity(component_id))
        code = code.replace('from "nunjucks"', f'from "{nunjucks_url}"')
        (tmp_path / f"{component_id}.mjs").write_text(code, encoding="utf-8")

    script = """
import Index from "./index.mjs";
import Card from "./card.mjs";

const element = fakeElement();
const app = createApp(Index, { t: "x<y" });
app.component("Card", Card);
app.mount(element);
const initial = element.innerHTML;

const key = instanceKey(initial);
const button = fakeNode({ "data-on-click": "bump" }, fakeNode({ [INSTANCE_ATTRIBUTE]: key }, element));
element.listeners.click({ type: "click", target: button });
await tick();
console.log(JSON.stringify({ initial, afterClick: element.innerHTML }));
"""
    result = run_node(tmp_path, script)

    assert result["initial"] == (
        '<section data-o-instance="root/Card.0"><h2>x&lt;y</h2>hi x&lt;y'
        '<button data-on-click="bump">0</button></section>'
    )
    assert '<button data-on-click="bump">1</button>' in result["afterClick"]
    assert "hi x&lt;y" in result["afterClick"]
