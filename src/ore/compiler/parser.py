"""Parser - splits single-file component source into top-level blocks.

An ``.ore`` file holds at most one ``<template>``, one ``<script>`` or
``<script setup>``, one ``<script client>`` and any number of ``<style>``
blocks. Anything else at the top level except whitespace and HTML comments
is reported as an error.
"""

import re
from typing import Any, Dict, List

from ore.compiler.spec import ParseResult, SFCBlock, SFCDescriptor


_BLOCK_OPEN = re.compile(r"<(template|script|style)\b([^>]*)>")
_TEMPLATE_TAG = re.compile(r"<(/?)template\b[^>]*?(/?)>")
_ATTRIBUTE = re.compile(
    r"""([^\s=/>"']+)(?:\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s>"']+)))?"""
)


def _line_of(source: str, offset: int) -> int:
    return source.count("\n", 0, offset) + 1


def parse_attributes(raw: str) -> Dict[str, Any]:
    """Parse ``key="value"`` pairs; bare attributes map to True."""
    attrs: Dict[str, Any] = {}
    for match in _ATTRIBUTE.finditer(raw):
        name, double, single, bare = match.groups()
        if double is not None:
            attrs[name] = double
        elif single is not None:
            attrs[name] = single
        elif bare is not None:
            attrs[name] = bare
        else:
            attrs[name] = True
    return attrs


def _find_template_close(source: str, start: int) -> int:
    """Offset of the </template> matching a template opened before ``start``."""
    depth = 1
    for match in _TEMPLATE_TAG.finditer(source, start):
        closing, self_closing = match.groups()
        if closing:
            depth -= 1
            if depth == 0:
                return match.start()
        elif not self_closing:
            depth += 1
    return -1


def _check_gap(source: str, start: int, end: int, errors: List[str]) -> None:
    text = source[start:end]
    if text.strip():
        offset = start + (len(text) - len(text.lstrip()))
        errors.append(
            f"line {_line_of(source, offset)}: unexpected content outside of "
            "top-level blocks"
        )


def _attach(descriptor: SFCDescriptor, block: SFCBlock, errors: List[str], line: int) -> None:
    if block.type == "style":
        descriptor.styles.append(block)
        return

    if block.type == "template":
        slot = "template"
    elif block.attrs.get("setup"):
        slot = "script_setup"
    elif block.attrs.get("client"):
        slot = "script_client"
    else:
        slot = "script"

    if getattr(descriptor, slot) is not None:
        label = slot.replace("_", " ")
        errors.append(f"line {line}: duplicate <{label}> block")
        return
    setattr(descriptor, slot, block)


def parse_sfc(source: str, filename: str = "anonymous.ore") -> ParseResult:
    """Split SFC source into a descriptor.

    Args:
        source: Full text of the component file.
        filename: Used in the descriptor and for diagnostics.

    Returns:
        ParseResult with the descriptor and a list of error strings. The
        descriptor is populated with every block that could be parsed even
        when errors are present.
    """
    descriptor = SFCDescriptor(filename=filename, source=source)
    errors: List[str] = []
    pos = 0

    while pos < len(source):
        match = _BLOCK_OPEN.search(source, pos)
        comment = source.find("<!--", pos)

        if comment >= 0 and (match is None or comment < match.start()):
            _check_gap(source, pos, comment, errors)
            end = source.find("-->", comment + 4)
            if end < 0:
                errors.append(f"line {_line_of(source, comment)}: unterminated comment")
                break
            pos = end + 3
            continue

        if match is None:
            _check_gap(source, pos, len(source), errors)
            break

        _check_gap(source, pos, match.start(), errors)
        tag = match.group(1)
        line = _line_of(source, match.start())
        content_start = match.end()

        if tag == "template":
            close = _find_template_close(source, content_start)
        else:
            close = source.find(f"</{tag}>", content_start)

        if close < 0:
            errors.append(f"line {line}: <{tag}> has no matching </{tag}>")
            break

        block = SFCBlock(
            type=tag,
            content=source[content_start:close],
            attrs=parse_attributes(match.group(2)),
            line=_line_of(source, content_start),
        )
        _attach(descriptor, block, errors, line)
        pos = close + len(f"</{tag}>")

    if descriptor.script is not None and descriptor.script_setup is not None:
        errors.append(
            f"line {descriptor.script_setup.line}: <script> and <script setup> "
            "cannot be used together"
        )

    return ParseResult(descriptor=descriptor, errors=errors)
