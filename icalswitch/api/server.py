"""aiohttp application exposing the device state and driver commands."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from aiohttp import web

from .. import __version__

if TYPE_CHECKING:
    from ..driver import CalendarSwitchDriver

logger = logging.getLogger(__name__)

DRIVER_KEY: web.AppKey[Any] = web.AppKey("driver", object)


def register_routes(app: web.Application) -> None:
    """Register the status and command routes.

    Routes:
        GET  /api/health         liveness
        GET  /api/status         device state as JSON
        POST /api/refresh        queue an immediate run
        POST /api/debug/clear    empty the diagnostic buffer
        POST /api/switch/on      manual on
        POST /api/switch/off     manual off
    """

    def _driver(request: web.Request) -> CalendarSwitchDriver:
        return request.app[DRIVER_KEY]

    async def health(_request: web.Request) -> web.Response:
        return web.json_response({"status": "ok", "version": __version__})

    async def status(request: web.Request) -> web.Response:
        driver = _driver(request)
        payload = driver.state.model_dump()
        next_at = driver.scheduler_state.next_transition_at
        payload["next_transition_at"] = next_at.isoformat() if next_at else None
        return web.json_response(payload)

    async def refresh(request: web.Request) -> web.Response:
        _driver(request).refresh()
        logger.info("Refresh requested via API")
        return web.json_response({"queued": True}, status=202)

    async def clear_debug(request: web.Request) -> web.Response:
        _driver(request).clear_debug()
        return web.json_response({"cleared": True})

    async def switch_on(request: web.Request) -> web.Response:
        driver = _driver(request)
        driver.turn_on()
        return web.json_response({"switch": driver.state.switch})

    async def switch_off(request: web.Request) -> web.Response:
        driver = _driver(request)
        driver.turn_off()
        return web.json_response({"switch": driver.state.switch})

    app.router.add_get("/api/health", health)
    app.router.add_get("/api/status", status)
    app.router.add_post("/api/refresh", refresh)
    app.router.add_post("/api/debug/clear", clear_debug)
    app.router.add_post("/api/switch/on", switch_on)
    app.router.add_post("/api/switch/off", switch_off)


def make_app(driver: CalendarSwitchDriver) -> web.Application:
    """Build the status API application bound to ``driver``."""
    app = web.Application()
    app[DRIVER_KEY] = driver
    register_routes(app)
    logger.debug("Status API application created")
    return app
