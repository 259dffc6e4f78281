"""Dynamic module loader - executes generated Python source as a real module.

Generated template and script code is written to a uniquely named temporary
``.py`` file and imported from there, so tracebacks, ``__file__`` and the
import system behave as for any other module. The file is removed as soon as
the module body has run, whether it succeeded or not, and no bytecode cache
is written next to it.
"""

from __future__ import annotations

import importlib.util
import itertools
import logging
import os
import re
import sys
import tempfile
import time
from contextlib import contextmanager
from dataclasses import dataclass
from importlib.machinery import SourceFileLoader
from pathlib import Path
from types import ModuleType
from typing import Any, Iterator, Optional

from ore.exceptions import CompileExecutionError

log = logging.getLogger(__name__)


_counter = itertools.count()
_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_]")


class _TransientSourceLoader(SourceFileLoader):
    """Source loader that never writes a bytecode cache."""

    def set_data(self, path, data, *, _mode=0o666):
        pass


def unique_module_name(name: str) -> str:
    """Module name that is unique within this process."""
    safe = _UNSAFE_NAME_CHARS.sub("_", name) or "module"
    return f"__ore_{safe}_{time.time_ns()}_{next(_counter)}"


@contextmanager
def scoped_artifact(
    source: str, name: str = "module", directory: Optional[Path] = None
) -> Iterator[Path]:
    """Write ``source`` to a unique temporary file and remove it on exit.

    Args:
        source: Python module source.
        name: Readable part of the file name.
        directory: Where to create the file. Defaults to the system temp dir.

    Yields:
        Path of the written file.
    """
    if directory is not None:
        directory.mkdir(parents=True, exist_ok=True)

    fd, filename = tempfile.mkstemp(
        prefix=f"{unique_module_name(name)}_",
        suffix=".py",
        dir=str(directory) if directory is not None else None,
    )
    path = Path(filename)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(source)
        yield path
    finally:
        try:
            path.unlink()
        except FileNotFoundError:
            pass


def _exec_file(path: Path, module_name: str, display_name: str) -> ModuleType:
    loader = _TransientSourceLoader(module_name, str(path))
    spec = importlib.util.spec_from_file_location(module_name, path, loader=loader)
    if spec is None:
        raise CompileExecutionError(
            display_name, ImportError(f"Cannot create module spec for {path}")
        )

    module = importlib.util.module_from_spec(spec)
    # registered while the body runs so dataclasses and pickling can find it
    sys.modules[module_name] = module
    try:
        loader.exec_module(module)
    except Exception as e:
        raise CompileExecutionError(display_name, e) from e
    finally:
        sys.modules.pop(module_name, None)
    return module


@dataclass
class ModuleHandle:
    """A loaded generated module."""

    name: str
    module: ModuleType

    @property
    def exports(self) -> dict[str, Any]:
        """Public bindings of the module."""
        return {
            key: value
            for key, value in vars(self.module).items()
            if not key.startswith("_")
        }

    def get(self, name: str, default: Any = None) -> Any:
        return getattr(self.module, name, default)


class ModuleLoader:
    """Loads generated module source through the import machinery."""

    def __init__(self, directory: Optional[Path] = None):
        self.directory = Path(directory) if directory is not None else None

    def load(self, source: str, name: str = "module") -> ModuleHandle:
        """Execute ``source`` as a fresh module.

        Raises:
            CompileExecutionError: When the module body raises, including
                syntax errors in the generated source.
        """
        with scoped_artifact(source, name, self.directory) as path:
            module_name = path.stem
            log.debug("Loading generated module %s from %s", name, path)
            module = _exec_file(path, module_name, name)
        return ModuleHandle(name=name, module=module)

    def load_file(self, path: Path, name: Optional[str] = None) -> ModuleHandle:
        """Execute an existing source file as a fresh, unregistered module.

        Used for request logic, which is re-read on every request.
        """
        display_name = name or path.stem
        module_name = unique_module_name(display_name)
        log.debug("Loading %s as %s", path, module_name)
        return ModuleHandle(name=display_name, module=_exec_file(path, module_name, display_name))
