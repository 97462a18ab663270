"""
Command and Health Server

Small aiohttp app exposing the controller commands to a UI or script:

    GET  /health            liveness
    GET  /stats             component statistics
    GET  /state             current aggregate snapshot (live display)
    POST /logging/start     {"interval_ms": 5000}
    POST /logging/stop
    POST /sync              one ad-hoc sync run
    POST /logs/clear        wipe the local store
    GET  /logs/recent       ?limit=10, most recent first
    GET  /logs              every record, most recent first (export source)
"""

from datetime import datetime, timezone

from aiohttp import web

from netlogger.common.exceptions import ConfigError, ControllerStateError, StoreError
from netlogger.common.logging_setup import get_service_logger

from .controller import LoggingController

logger = get_service_logger("api")

CONTROLLER_KEY = web.AppKey("controller", LoggingController)
STARTED_AT_KEY = web.AppKey("started_at", datetime)


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def health_handler(request: web.Request) -> web.Response:
    controller = request.app[CONTROLLER_KEY]
    uptime = (datetime.now(timezone.utc) - request.app[STARTED_AT_KEY]).total_seconds()
    return web.json_response({
        "status": "healthy",
        "service": "netlogger",
        "state": controller.current_state.value,
        "uptime": int(uptime),
    })


async def stats_handler(request: web.Request) -> web.Response:
    controller = request.app[CONTROLLER_KEY]
    try:
        store_stats = await controller.store_stats()
    except StoreError as e:
        logger.error(f"Stats request failed, local store unavailable: {e}")
        return _error(503, e.message)
    return web.json_response({
        "controller": controller.get_stats(),
        "persistence": controller.persistence.get_stats(),
        "channel": controller.channel.get_stats(),
        "store": store_stats,
        "sync": controller.sync_worker.get_stats() if controller.sync_worker else None,
        "jobs": controller.job_runner.get_stats(),
    })


async def state_handler(request: web.Request) -> web.Response:
    controller = request.app[CONTROLLER_KEY]
    return web.json_response(controller.aggregator.snapshot().to_dict())


async def start_handler(request: web.Request) -> web.Response:
    controller = request.app[CONTROLLER_KEY]
    try:
        body = await request.json()
    except ValueError:
        return _error(400, "request body must be JSON")
    if not isinstance(body, dict) or "interval_ms" not in body:
        return _error(400, "interval_ms is required")

    try:
        await controller.start(body["interval_ms"])
    except ConfigError as e:
        return _error(400, e.message)
    except ControllerStateError as e:
        return _error(409, e.message)

    return web.json_response({"state": controller.current_state.value})


async def stop_handler(request: web.Request) -> web.Response:
    controller = request.app[CONTROLLER_KEY]
    try:
        await controller.stop()
    except ControllerStateError as e:
        return _error(409, e.message)
    return web.json_response({"state": controller.current_state.value})


async def sync_handler(request: web.Request) -> web.Response:
    controller = request.app[CONTROLLER_KEY]
    if not controller.trigger_sync_now():
        return _error(409, "remote sync is not configured")
    return web.json_response({"enqueued": True}, status=202)


async def clear_handler(request: web.Request) -> web.Response:
    controller = request.app[CONTROLLER_KEY]
    try:
        deleted = await controller.clear_all()
    except StoreError as e:
        return _error(503, e.message)
    return web.json_response({"deleted": deleted})


async def recent_handler(request: web.Request) -> web.Response:
    controller = request.app[CONTROLLER_KEY]
    try:
        limit = int(request.query.get("limit", 10))
    except ValueError:
        return _error(400, "limit must be an integer")
    try:
        records = await controller.recent(limit)
    except StoreError as e:
        return _error(503, e.message)
    return web.json_response([r.to_dict() for r in records])


async def export_handler(request: web.Request) -> web.Response:
    controller = request.app[CONTROLLER_KEY]
    try:
        records = await controller.export_all()
    except StoreError as e:
        return _error(503, e.message)
    return web.json_response([r.to_dict() for r in records])


def create_app(controller: LoggingController) -> web.Application:
    app = web.Application()
    app[CONTROLLER_KEY] = controller
    app[STARTED_AT_KEY] = datetime.now(timezone.utc)

    app.router.add_get("/health", health_handler)
    app.router.add_get("/stats", stats_handler)
    app.router.add_get("/state", state_handler)
    app.router.add_post("/logging/start", start_handler)
    app.router.add_post("/logging/stop", stop_handler)
    app.router.add_post("/sync", sync_handler)
    app.router.add_post("/logs/clear", clear_handler)
    app.router.add_get("/logs/recent", recent_handler)
    app.router.add_get("/logs", export_handler)
    return app


class ApiServer:
    """Runs the app on a TCP site until stopped"""

    def __init__(self, controller: LoggingController, host: str = "127.0.0.1", port: int = 8090):
        self.app = create_app(controller)
        self.host = host
        self.port = port
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info(f"API server started on {self.host}:{self.port}")

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("API server stopped")
