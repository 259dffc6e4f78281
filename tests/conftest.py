"""Shared fixtures: a temporary components root and a view built on it."""

from pathlib import Path

import pytest

from ore.compiler.compiler import ComponentCompiler
from ore.document import DocumentAssembler
from ore.loader import ModuleLoader
from ore.router import Router
from ore.view import View


@pytest.fixture
def components_root(tmp_path: Path) -> Path:
    root = tmp_path / "components"
    root.mkdir()
    return root


@pytest.fixture
def write_component(components_root: Path):
    """Write ``components/<id>/index.ore`` (and optionally ``index.py``)."""

    def write(component_id: str, source: str, logic: str | None = None) -> Path:
        directory = components_root / component_id
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / "index.ore"
        path.write_text(source, encoding="utf-8")
        if logic is not None:
            (directory / "index.py").write_text(logic, encoding="utf-8")
        return path

    return write


@pytest.fixture
def generated_dir(tmp_path: Path) -> Path:
    return tmp_path / "generated"


@pytest.fixture
def loader(generated_dir: Path) -> ModuleLoader:
    return ModuleLoader(generated_dir)


@pytest.fixture
def compiler(components_root: Path, loader: ModuleLoader) -> ComponentCompiler:
    return ComponentCompiler(components_root, loader=loader)


@pytest.fixture
def view(compiler: ComponentCompiler) -> View:
    return View(compiler, DocumentAssembler())


@pytest.fixture
def router(view: View, loader: ModuleLoader) -> Router:
    return Router(view, loader=loader)
