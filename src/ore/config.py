"""Configuration parsing for ore.yaml"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

log = logging.getLogger(__name__)


CONFIG_FILENAME = "ore.yaml"
CONFIG_ENV = "ORE_CONFIG"


class ServerConfig(BaseModel):
    """HTTP server settings"""

    host: str = "127.0.0.1"
    port: int = 3000
    static_dir: Path | None = None  # defaults to <app>/www
    static_prefixes: list[str] = ["/css/", "/images/"]


class DbConfig(BaseModel):
    """Database connection settings"""

    host: str = "localhost"
    port: int = 3306
    user: str = "root"
    password: str = ""
    name: str = "ore"


class ClientConfig(BaseModel):
    """What the generated documents load in the browser"""

    component_endpoint: str = "/ore/component.js"
    runtime_endpoint: str = "/ore/runtime.js"
    nunjucks_url: str = "https://esm.sh/nunjucks@3.2.4"
    stylesheets: list[str] = ["/css/main.css"]
    state_global: str = "__ORE_STATE__"


# environment variable -> (section, field)
_ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "ORE_HOST": ("server", "host"),
    "ORE_PORT": ("server", "port"),
    "ORE_COMPONENTS_ROOT": (None, "components_root"),
    "DB_HOST": ("db", "host"),
    "DB_PORT": ("db", "port"),
    "DB_USER": ("db", "user"),
    "DB_PASSWORD": ("db", "password"),
    "DB_NAME": ("db", "name"),
}


def _apply_env(data: dict[str, Any], environ: dict[str, str]) -> dict[str, Any]:
    for variable, (section, key) in _ENV_OVERRIDES.items():
        if variable not in environ:
            continue
        target = data if section is None else data.setdefault(section, {})
        target[key] = environ[variable]
        log.debug("Config override from %s", variable)
    return data


class OreConfig(BaseModel):
    """Full ore.yaml configuration"""

    name: str | None = None
    root: Path = Path(".")
    components_root: Path = Path("components")
    temp_dir: Path | None = None  # generated modules; system temp dir if unset
    server: ServerConfig = Field(default_factory=ServerConfig)
    db: DbConfig = Field(default_factory=DbConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)

    @classmethod
    def load(cls, path: Path, environ: dict[str, str] | None = None) -> "OreConfig":
        """Load config from yaml file, then apply environment overrides.

        A missing file yields the defaults. Relative paths are resolved
        against the directory holding the file.
        """
        data: dict[str, Any] = {}
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

        data = _apply_env(data, dict(os.environ) if environ is None else environ)
        config = cls.model_validate(data)
        return config.resolve_paths(path.parent)

    def resolve_paths(self, base: Path) -> "OreConfig":
        base = base.resolve()
        self.root = base
        if not self.components_root.is_absolute():
            self.components_root = base / self.components_root
        if self.temp_dir is not None and not self.temp_dir.is_absolute():
            self.temp_dir = base / self.temp_dir
        if self.server.static_dir is None:
            self.server.static_dir = base / "www"
        elif not self.server.static_dir.is_absolute():
            self.server.static_dir = base / self.server.static_dir
        return self


def find_config(start: Path | None = None) -> Path:
    """Locate ore.yaml.

    ``ORE_CONFIG`` wins; otherwise the first ore.yaml in ``start`` or its
    parents. Falls back to ``start/ore.yaml`` (which may not exist).
    """
    if CONFIG_ENV in os.environ:
        return Path(os.environ[CONFIG_ENV])

    start = (start or Path.cwd()).resolve()
    for directory in [start, *start.parents]:
        candidate = directory / CONFIG_FILENAME
        if candidate.exists():
            return candidate
    return start / CONFIG_FILENAME
