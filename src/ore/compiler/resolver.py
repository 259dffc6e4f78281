"""Resolver - maps capitalized template tags to on-disk components.

A tag ``<SampleCounter>`` refers to ``<components_root>/sample-counter/index.ore``.
References whose file does not exist are dropped; rendering such a tag later
fails with an unknown-component error. Tags inside HTML comments, ``{% raw %}``
blocks and Jinja segments are not references.
"""

import logging
import re
from pathlib import Path
from typing import List

from ore.compiler.markup import iter_component_tags
from ore.compiler.spec import COMPONENT_FILENAME, ComponentIdentity, ComponentReference

log = logging.getLogger(__name__)


_WORD_BOUNDARY = re.compile(r"(?<=[a-z])(?=[A-Z])")


def scan_references(template_source: str) -> List[str]:
    """Capitalized tag names in first-appearance order, without duplicates."""
    seen = set()
    names = []
    for match in iter_component_tags(template_source):
        name = match.group("name")
        if match.group("close") or name in seen:
            continue
        seen.add(name)
        names.append(name)
    return names


def component_dir_name(name: str) -> str:
    """``SampleCounter`` -> ``sample-counter``."""
    return _WORD_BOUNDARY.sub("-", name).lower()


class Resolver:
    """Resolves component references against a components root."""

    def __init__(self, components_root: Path):
        self.components_root = Path(components_root)

    def path_for(self, name: str) -> Path:
        return self.components_root / component_dir_name(name) / COMPONENT_FILENAME

    def resolve(self, template_source: str) -> List[ComponentReference]:
        """Return references for every tag whose component file exists."""
        references = []
        for name in scan_references(template_source):
            path = self.path_for(name)
            if not path.is_file():
                log.debug("Dropping reference <%s>: %s does not exist", name, path)
                continue
            identity = ComponentIdentity(component_dir_name(name), path)
            references.append(ComponentReference(name=name, identity=identity))
        return references
