"""Host bootstrap around the loader.

Clears the cache directory outside production, collects service definitions
from every ``*.autowire.py`` module, builds the FastAPI app and registers
every ``*.routes.py`` module under the source root through the loader.
Route modules reach the definitions through ``app.state.definitions``.
The cache clear is a precondition of loader calls and lives here, not in
the loader.
"""
from __future__ import annotations

import logging
from typing import Protocol

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from fastapi.routing import APIRoute

from dynaload.container import Definitions
from dynaload.core.config import Settings, settings as default_settings
from dynaload.loader import capability, run

_log = logging.getLogger(__name__)

ROUTES_CACHEFILE = 'RouteIncludes'
AUTOWIRE_CACHEFILE = 'AutowireIncludes'


@capability(name='AutowireLoader', pattern='*.autowire.py')
class AutowireLoader(Protocol):
    """Autowire modules bind ``plugin`` to a callable adding definitions."""

    def __call__(self, definitions: Definitions) -> None: ...


@capability(name='RoutesLoader', pattern='*.routes.py')
class RoutesLoader(Protocol):
    """Route modules bind ``plugin`` to a callable taking the app."""

    def __call__(self, app: FastAPI) -> None: ...


def clear_cache(force: bool = False, settings: Settings | None = None) -> int:
    """Delete every file directly under the cache directory.

    Runs only outside production unless *force* is set. Returns the number of
    files removed.
    """
    cfg = settings or default_settings
    if cfg.is_production and not force:
        return 0
    if not cfg.cache_dir.is_dir():
        return 0
    removed = 0
    for entry in sorted(cfg.cache_dir.iterdir()):
        if entry.is_file():
            entry.unlink()
            removed += 1
    _log.info("cleared %d file(s) from %s", removed, cfg.cache_dir)
    return removed


def _route_listing(app: FastAPI) -> str:
    lines = []
    for route in app.routes:
        if not isinstance(route, APIRoute):
            continue
        for method in sorted(route.methods):
            lines.append(f"{method} {route.path}")
    return "\n".join(lines) + "\n"


def register_definitions(settings: Settings | None = None) -> Definitions:
    cfg = settings or default_settings
    definitions = Definitions()
    definitions.add_definitions({'settings': cfg})
    run({
        'cachefile': AUTOWIRE_CACHEFILE,
        'contract': AutowireLoader,
        'args': [definitions],
    }, cfg)
    _log.info("registered definitions: %s", ", ".join(definitions.keys()))
    return definitions


def register_routes(app: FastAPI, settings: Settings | None = None) -> None:
    cfg = settings or default_settings
    run({
        'cachefile': ROUTES_CACHEFILE,
        'contract': RoutesLoader,
        'args': [app],
    }, cfg)

    # Snapshot taken before '/' itself is added, like a help page.
    listing = _route_listing(app)

    @app.get('/', response_class=PlainTextResponse)
    async def list_routes():
        return listing


def create_app(settings: Settings | None = None) -> FastAPI:
    cfg = settings or default_settings
    cfg.ensure_cache_dir()
    clear_cache(settings=cfg)
    definitions = register_definitions(cfg)
    app = FastAPI(title=cfg.app_name, version=cfg.version)
    app.state.definitions = definitions
    register_routes(app, cfg)
    return app
