"""HTTP server - FastAPI application serving rendered components."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Query, Request
from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse, Response
from fastapi.staticfiles import StaticFiles

from ore.app import Ore
from ore.app import ore as default_ore
from ore.exceptions import ComponentNotFoundError, InvalidComponentIdError, OreError

log = logging.getLogger(__name__)


RUNTIME_JS = Path(__file__).parent / "static" / "runtime.js"
JAVASCRIPT = "text/javascript"


def create_app(instance: Ore | None = None) -> FastAPI:
    """Build the application for an Ore instance (the global one by default)."""
    instance = instance or default_ore
    config = instance.config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup/shutdown."""
        log.info("Serving components from %s", config.components_root)
        yield
        await instance.disconnect()

    app = FastAPI(lifespan=lifespan)

    @app.get(config.client.component_endpoint)
    async def component_module(c: str = Query(...)) -> Response:
        try:
            source = instance.view.compile_for_client_id(c)
        except InvalidComponentIdError as e:
            return PlainTextResponse(str(e), status_code=400)
        except ComponentNotFoundError as e:
            return PlainTextResponse(str(e), status_code=404)
        except OreError as e:
            log.exception("Client compile failed for %s", c)
            return PlainTextResponse(str(e), status_code=500)
        return Response(source, media_type=JAVASCRIPT)

    @app.get(config.client.runtime_endpoint)
    async def runtime_module() -> Response:
        return FileResponse(RUNTIME_JS, media_type=JAVASCRIPT)

    static_dir = config.server.static_dir
    if static_dir is not None:
        for prefix in config.server.static_prefixes:
            path = "/" + prefix.strip("/")
            app.mount(
                path,
                StaticFiles(directory=static_dir / prefix.strip("/"), check_dir=False),
                name=f"static{path.replace('/', '_')}",
            )

    @app.get("/{path:path}", response_class=HTMLResponse)
    async def page(path: str, request: Request) -> HTMLResponse:
        result = await instance.router.route("/" + path, request)
        return HTMLResponse(result.body, status_code=result.status_code)

    return app
