"""Markup scanner shared by the resolver and the template compiler.

Template source is read as a sequence of tokens:

    <!-- ... -->                     opaque, never rewritten
    {% raw %}...{% endraw %}         opaque, never rewritten
    {{ ... }}, {% ... %}, {# ... #}  Jinja segments, passed through
    <Card ...>, </Card>, <Card/>     component tags

Attribute values of a component tag may contain Jinja segments, so
``<Card title="{{ x }}"/>`` is read as one tag.
"""

import re
from typing import Iterator

_JINJA = r"\{\{.*?\}\}|\{%.*?%\}|\{#.*?#\}"
_DOUBLE_QUOTED = r'"(?:' + _JINJA + r'|[^"{]|\{(?![{%#]))*"'
_SINGLE_QUOTED = r"'(?:" + _JINJA + r"|[^'{]|\{(?![{%#]))*'"
_ATTRIBUTE = (
    r"\s+[^\s=/>\"']+"
    r"(?:\s*=\s*(?:" + _DOUBLE_QUOTED + "|" + _SINGLE_QUOTED + r"|[^\s\"'=<>`]+))?"
)

_OPAQUE = (
    r"(?P<comment><!--.*?-->)"
    r"|(?P<raw>\{%-?\s*raw\s*-?%\}.*?\{%-?\s*endraw\s*-?%\})"
    r"|(?P<jinja>" + _JINJA + ")"
)

OPAQUE = re.compile(_OPAQUE, re.DOTALL)
TOKEN = re.compile(
    _OPAQUE
    + r"|(?P<tag><(?P<close>/)?(?P<name>[A-Z][A-Za-z0-9]*)"
    + r"(?P<attrs>(?:" + _ATTRIBUTE + r")*)"
    + r"\s*(?P<self_closing>/)?>)",
    re.DOTALL,
)

ATTRIBUTE = re.compile(
    r"(?P<name>[^\s=/>\"']+)(?:\s*=\s*(?:"
    r"\"(?P<double>(?:" + _JINJA + r"|[^\"{]|\{(?![{%#]))*)\""
    r"|'(?P<single>(?:" + _JINJA + r"|[^'{]|\{(?![{%#]))*)'"
    r"|(?P<bare>[^\s\"'=<>`]+)))?",
    re.DOTALL,
)


def iter_component_tags(source: str) -> Iterator["re.Match[str]"]:
    """Component tags outside comments, raw blocks and Jinja segments."""
    for match in TOKEN.finditer(source):
        if match.group("tag"):
            yield match


def map_markup(source: str, transform) -> str:
    """Apply ``transform`` to the text between opaque tokens."""
    parts = []
    last = 0
    for match in OPAQUE.finditer(source):
        parts.append(transform(source[last:match.start()]))
        parts.append(match.group(0))
        last = match.end()
    parts.append(transform(source[last:]))
    return "".join(parts)
