"""Bus Routes - Object enumeration and action activation endpoints."""

from typing import Any, List, Mapping, Optional, Protocol, Sequence

from aiohttp import web

from devicelink.core.commands.envelope import ActionEnvelope, decode
from devicelink.core.commands.router import ActionOutcome

from .middleware import create_error_response, parse_json_body


API_PREFIX = "/api/v1"


class BusApplication(Protocol):
    """What the bus server calls into on the primary instance."""

    version: str

    def managed_objects(self) -> Mapping[str, Mapping[str, Any]]: ...

    def dispatch(self, envelope: ActionEnvelope) -> List[ActionOutcome]: ...

    def activate_action(self, name: str, parameter: Any = None) -> None: ...


APPLICATION_KEY = web.AppKey("application", BusApplication)


def setup_bus_routes(app: web.Application) -> None:
    app.router.add_get(f"{API_PREFIX}/ping", ping_handler)
    app.router.add_get(f"{API_PREFIX}/objects", managed_objects_handler)
    app.router.add_post(f"{API_PREFIX}/actions/device", device_action_handler)
    app.router.add_post(f"{API_PREFIX}/actions/error", error_action_handler)
    app.router.add_post(f"{API_PREFIX}/actions/connect", connect_action_handler)
    app.router.add_post(f"{API_PREFIX}/actions/open", open_action_handler)
    for name in ("refresh", "preferences", "quit"):
        app.router.add_post(f"{API_PREFIX}/actions/{name}", simple_action_handler)


def _application(request: web.Request) -> BusApplication:
    return request.app[APPLICATION_KEY]


def _action_response(name: str) -> web.Response:
    return web.json_response({"success": True, "action": name})


async def ping_handler(request: web.Request) -> web.Response:
    """GET /api/v1/ping - Liveness of the primary instance."""
    return web.json_response({"status": "ok", "version": _application(request).version})


async def managed_objects_handler(request: web.Request) -> web.Response:
    """GET /api/v1/objects - Public attributes of every managed device."""
    return web.json_response(dict(_application(request).managed_objects()))


async def device_action_handler(request: web.Request) -> web.Response:
    """POST /api/v1/actions/device - Route an encoded envelope."""
    envelope = decode(await request.read())
    outcomes = _application(request).dispatch(envelope)
    failed = sum(1 for outcome in outcomes if not outcome.success)
    return web.json_response({
        "success": True,
        "dispatched": len(outcomes) - failed,
        "failed": failed,
    })


async def error_action_handler(request: web.Request) -> web.Response:
    """POST /api/v1/actions/error - Show a previously reported error."""
    body, error = await parse_json_body(request)
    if error:
        return error
    if not isinstance(body, dict):
        return create_error_response("VALIDATION_ERROR", "Error report must be an object")
    _application(request).activate_action("error", body)
    return _action_response("error")


async def connect_action_handler(request: web.Request) -> web.Response:
    """POST /api/v1/actions/connect - Contact a device by URI."""
    body, error = await parse_json_body(request)
    if error:
        return error
    uri = body.get("uri") if isinstance(body, dict) else None
    if not isinstance(uri, str) or not uri:
        return create_error_response("MISSING_FIELD", "Missing required field: uri")
    _application(request).activate_action("connect", uri)
    return _action_response("connect")


async def open_action_handler(request: web.Request) -> web.Response:
    """POST /api/v1/actions/open - Open URIs from a secondary invocation."""
    body, error = await parse_json_body(request)
    if error:
        return error
    uris: Optional[Sequence[Any]] = body.get("uris") if isinstance(body, dict) else None
    if not isinstance(uris, list) or not all(isinstance(uri, str) for uri in uris):
        return create_error_response("VALIDATION_ERROR", "uris must be a list of strings")
    _application(request).activate_action("open", list(uris))
    return _action_response("open")


async def simple_action_handler(request: web.Request) -> web.Response:
    """POST /api/v1/actions/{refresh,preferences,quit} - Parameterless actions."""
    name = request.path.rsplit("/", 1)[-1]
    _application(request).activate_action(name)
    return _action_response(name)
