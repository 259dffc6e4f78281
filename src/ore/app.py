"""Service locator - the ``ore`` object request logic talks to.

    from ore import ore

    def handler(request):
        ore.view.assign("title", "Hello")

Everything is created lazily from the configuration on first access.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ore.compiler.compiler import ComponentCompiler
from ore.config import OreConfig, find_config
from ore.db import Connector, Database
from ore.document import DocumentAssembler
from ore.loader import ModuleLoader
from ore.router import Router
from ore.view import View

log = logging.getLogger(__name__)


class Ore:
    """Lazily built view, router and database for one application."""

    def __init__(self, config: OreConfig | None = None, db_connector: Connector | None = None):
        self._config = config
        self._db_connector = db_connector
        self._view: View | None = None
        self._router: Router | None = None
        self._db: Database | None = None

    def configure(
        self,
        config: OreConfig | Path | None = None,
        db_connector: Connector | None = None,
    ) -> Ore:
        """Replace the configuration; services are rebuilt on next access."""
        if isinstance(config, Path):
            config = OreConfig.load(config)
        self._config = config
        if db_connector is not None:
            self._db_connector = db_connector
        self._view = None
        self._router = None
        self._db = None
        return self

    @property
    def config(self) -> OreConfig:
        if self._config is None:
            path = find_config()
            log.debug("Loading config from %s", path)
            self._config = OreConfig.load(path)
        return self._config

    @property
    def loader(self) -> ModuleLoader:
        return ModuleLoader(self.config.temp_dir)

    @property
    def view(self) -> View:
        if self._view is None:
            compiler = ComponentCompiler(self.config.components_root, loader=self.loader)
            self._view = View(compiler, DocumentAssembler(self.config.client))
        return self._view

    @property
    def router(self) -> Router:
        if self._router is None:
            self._router = Router(self.view, loader=self.loader)
        return self._router

    @property
    def db(self) -> Database:
        if self._db is None:
            self._db = Database(self.config.db, self._db_connector)
        return self._db

    @property
    def has_db(self) -> bool:
        return self._db is not None

    async def disconnect(self) -> None:
        if self._db is not None:
            await self._db.disconnect()


ore = Ore()
