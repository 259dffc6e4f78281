"""Document assembler - wraps a rendered fragment into a hydratable page."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List
from urllib.parse import urlencode

import msgspec
from jinja2 import Environment, FileSystemLoader
from markupsafe import Markup

from ore.compiler.spec import RenderInstance
from ore.config import ClientConfig

log = logging.getLogger(__name__)


TEMPLATES_DIR = Path(__file__).parent / "templates"
ROOT_BINDING = "__ore_root"
RENDER_BINDING = "__ore_render"


def _encodable(value: Any) -> bool:
    try:
        msgspec.json.encode(value)
    except (TypeError, msgspec.EncodeError, ValueError):
        return False
    return True


def project_state(context: Dict[str, Any]) -> Dict[str, Any]:
    """Keep the entries of a render context that can be sent to the browser."""
    state = {}
    for key, value in context.items():
        if key.startswith("_") or callable(value):
            continue
        if _encodable(value):
            state[key] = value
        else:
            log.debug("Dropping non-serializable state entry %r (%s)", key, type(value).__name__)
    return state


def encode_state(state: Dict[str, Any]) -> str:
    """JSON text that is safe to embed inside a <script> element."""
    return msgspec.json.encode(state).decode().replace("</", "<\\/")


def module_url(endpoint: str, component_id: str) -> str:
    return f"{endpoint}?{urlencode({'c': component_id})}"


class DocumentAssembler:
    """Builds the HTML document around a RenderInstance."""

    def __init__(self, config: ClientConfig | None = None):
        self.config = config or ClientConfig()
        self.env = Environment(
            loader=FileSystemLoader(TEMPLATES_DIR),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def state_script(self, instance: RenderInstance) -> str:
        """Inline script that stores this instance's state under its id.

        The global map is created when absent and never replaced, so several
        instances on one page keep their own entries.
        """
        name = self.config.state_global
        return (
            f"(window.{name} = window.{name} || {{}})"
            f"[{json.dumps(instance.instance_id)}] = "
            f"{encode_state(project_state(instance.state))};"
        )

    def import_map(self) -> str:
        imports = {
            "nunjucks": self.config.nunjucks_url,
            "ore/runtime": self.config.runtime_endpoint,
        }
        return json.dumps({"imports": imports}, indent=2).replace("</", "<\\/")

    def bootstrap(self, instance: RenderInstance) -> str:
        """Module script that hydrates the server-rendered markup."""
        endpoint = self.config.component_endpoint
        instance_id = json.dumps(instance.instance_id)
        lines: List[str] = [
            'import { createApp } from "ore/runtime";',
            f"import {ROOT_BINDING}, {{ render as {RENDER_BINDING} }} from "
            f"{json.dumps(module_url(endpoint, instance.identity.component_id))};",
        ]
        for reference in instance.references:
            url = module_url(endpoint, reference.identity.component_id)
            lines.append(f"import {reference.name} from {json.dumps(url)};")

        lines.append("")
        lines.append(
            f"const app = createApp({{ ...{ROOT_BINDING}, render: {RENDER_BINDING} }}, "
            f"window.{self.config.state_global}[{instance_id}]);"
        )
        for reference in instance.references:
            lines.append(f"app.component({json.dumps(reference.name)}, {reference.name});")
        lines.append(f"app.mount({json.dumps('#' + instance.mount_id)});")
        return "\n".join(lines).replace("</", "<\\/")

    def assemble(self, instance: RenderInstance, title: str | None = None) -> str:
        template = self.env.get_template("document.html.j2")
        return template.render(
            title=title or instance.identity.component_id,
            stylesheets=self.config.stylesheets,
            styles=[Markup(css.replace("</", "<\\/")) for css in instance.styles],
            mount_id=instance.mount_id,
            html=Markup(instance.html),
            state_script=Markup(self.state_script(instance)),
            import_map=Markup(self.import_map()),
            bootstrap=Markup(self.bootstrap(instance)),
        )

    def error_page(self, status_code: int, message: str) -> str:
        """HTML error page; ``message`` is escaped."""
        template = self.env.get_template("error.html.j2")
        return template.render(status_code=status_code, message=message)
