"""Style compiler - scopes ``<style scoped>`` rules to their component.

Every selector of a scoped block gets ``[data-o-<scope_id>]`` attached to its
last compound selector, before any trailing pseudo-classes or elements:

    .card h1:hover, .card::after  ->  .card h1[data-o-1a2b3c4d]:hover,
                                      .card[data-o-1a2b3c4d]::after
"""

import re
from typing import List

from ore.compiler.spec import SCOPE_ATTRIBUTE_PREFIX, SFCDescriptor


# At-rules whose bodies hold ordinary style rules
_NESTED_AT_RULES = {"media", "supports", "container", "layer", "document"}

_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_TRAILING_PSEUDO = re.compile(r"((?::{1,2}[A-Za-z-]+(?:\([^)]*\))?)+)$")


def _matching_brace(css: str, start: int) -> int:
    depth = 0
    pos = start
    while pos < len(css):
        char = css[pos]
        if char in "\"'":
            end = css.find(char, pos + 1)
            pos = len(css) if end < 0 else end + 1
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return pos
        pos += 1
    return len(css)


def _split_selectors(selector_list: str) -> List[str]:
    selectors = []
    depth = 0
    current = []
    for char in selector_list:
        if char in "([":
            depth += 1
        elif char in ")]":
            depth -= 1
        if char == "," and depth == 0:
            selectors.append("".join(current))
            current = []
        else:
            current.append(char)
    selectors.append("".join(current))
    return selectors


def scope_selector(selector: str, attribute: str) -> str:
    selector = selector.strip()
    if not selector:
        return selector
    match = _TRAILING_PSEUDO.search(selector)
    if match and match.start() > 0 and not selector[match.start() - 1].isspace():
        return selector[: match.start()] + attribute + match.group(1)
    if match and (match.start() == 0 or selector[match.start() - 1].isspace()):
        # bare pseudo like ":hover" or ".a :first-child"
        return selector[: match.start()] + "*" + attribute + match.group(1)
    return selector + attribute


def _scope_rules(css: str, attribute: str) -> str:
    out = []
    pos = 0
    while pos < len(css):
        brace = css.find("{", pos)
        if brace < 0:
            out.append(css[pos:])
            break

        prelude = css[pos:brace]
        # statement at-rules (@import, @charset) end with ';' and pass through
        statement_end = prelude.rfind(";")
        if statement_end >= 0:
            out.append(prelude[: statement_end + 1])
            prelude = prelude[statement_end + 1 :]

        end = _matching_brace(css, brace)
        body = css[brace + 1 : end]
        head = prelude.strip()
        lead = prelude[: len(prelude) - len(prelude.lstrip())]

        if head.startswith("@"):
            keyword = re.split(r"[\s(]", head[1:], maxsplit=1)[0].lower()
            if keyword in _NESTED_AT_RULES:
                body = _scope_rules(body, attribute)
            out.append(f"{lead}{head} {{{body}}}")
        else:
            scoped = ", ".join(
                scope_selector(s, attribute) for s in _split_selectors(head)
            )
            out.append(f"{lead}{scoped} {{{body}}}")
        pos = end + 1
    return "".join(out)


def scope_css(css: str, scope_id: str) -> str:
    """Attach the scope attribute of ``scope_id`` to every selector in ``css``."""
    attribute = f"[{SCOPE_ATTRIBUTE_PREFIX}{scope_id}]"
    return _scope_rules(_COMMENT.sub("", css), attribute)


def compile_styles(descriptor: SFCDescriptor, scope_id: str) -> List[str]:
    """CSS text of every style block, scoped where requested, in source order."""
    styles = []
    for block in descriptor.styles:
        css = scope_css(block.content, scope_id) if block.scoped else block.content
        css = css.strip()
        if css:
            styles.append(css)
    return styles
