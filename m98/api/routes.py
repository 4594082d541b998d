"""Macro HTTP API handlers.

Exposes macro CRUD and execution over HTTP. Every route is mounted
under both ``/macros`` and ``/m98-macros``.

Example:
    app = create_app(MacroManager.from_config())
    web.run_app(app, host="127.0.0.1", port=8765)
"""

from typing import Optional

from aiohttp import web

from m98.macros.errors import MacroError, MacroErrorKind
from m98.macros.executor import ExecutionFailure
from m98.macros.manager import MacroManager
from m98.macros.models import MACRO_ID_MAX, MACRO_ID_MIN, is_valid_macro_id, normalize_macro_id
from m98.utils.logger import log_macro_error

ROUTE_BASES = ("/macros", "/m98-macros")

MANAGER_KEY = web.AppKey("macro_manager", MacroManager)

_ERROR_STATUS = {
    MacroErrorKind.VALIDATION: 400,
    MacroErrorKind.NOT_FOUND: 404,
    MacroErrorKind.CAPACITY: 507,
    MacroErrorKind.IO_FAULT: 500,
    MacroErrorKind.MIGRATION_FAULT: 500,
}

_EXECUTION_STATUS = {
    ExecutionFailure.DISCONNECTED: 503,
    ExecutionFailure.REJECTED: 400,
    ExecutionFailure.DISPATCH_FAILED: 500,
}


def _manager(request: web.Request) -> MacroManager:
    return request.app[MANAGER_KEY]


def _error(status: int, message: str, /, **extra) -> web.Response:
    return web.json_response({"error": message, **extra}, status=status)


def _macro_id(request: web.Request) -> Optional[str]:
    """Normalized identifier from the path, or None if out of range."""
    macro_id = normalize_macro_id(request.match_info["id"])
    if macro_id is None or not is_valid_macro_id(macro_id):
        return None
    return macro_id


def _invalid_id() -> web.Response:
    return _error(400, f"Macro ID must be between {MACRO_ID_MIN} and {MACRO_ID_MAX}")


def _from_macro_error(error: MacroError, action: str) -> web.Response:
    status = _ERROR_STATUS[error.kind]
    if status >= 500:
        log_macro_error(error, action, kind=error.kind.value, macro_id=error.macro_id)
        return _error(status, f"Failed to {action} macro", message=error.message)
    return _error(status, error.message)


async def _json_body(request: web.Request) -> Optional[dict]:
    try:
        data = await request.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


async def list_macros(request: web.Request) -> web.Response:
    """List all macros sorted by identifier."""
    try:
        macros = _manager(request).list_all()
    except MacroError as e:
        return _from_macro_error(e, "read")
    return web.json_response([macro.to_dict() for macro in macros])


async def get_macro(request: web.Request) -> web.Response:
    """Get a single macro.

    Returns 400 for an out-of-range identifier and 404 if it does not exist.
    """
    macro_id = _macro_id(request)
    if macro_id is None:
        return _invalid_id()

    macro = _manager(request).get(macro_id)
    if macro is None:
        return _error(404, "Macro not found")
    return web.json_response(macro.to_dict())


async def create_macro(request: web.Request) -> web.Response:
    """Create a macro.

    Expects JSON body with:
    - name: Display name (required)
    - commands: Command text, one command per line (required)
    - description: Optional description

    Returns:
        HTTP 201 with the stored macro.
    """
    data = await _json_body(request)
    if data is None:
        return _error(400, "Invalid JSON body")

    try:
        macro = _manager(request).create(data)
    except MacroError as e:
        return _from_macro_error(e, "create")
    return web.json_response(macro.to_dict(), status=201)


async def update_macro(request: web.Request) -> web.Response:
    """Update name, description or commands of a macro."""
    macro_id = _macro_id(request)
    if macro_id is None:
        return _invalid_id()

    data = await _json_body(request)
    if data is None:
        return _error(400, "Invalid JSON body")

    updates = {key: data[key] for key in ("name", "description", "commands") if key in data}
    try:
        macro = _manager(request).update(macro_id, updates)
    except MacroError as e:
        return _from_macro_error(e, "update")
    return web.json_response(macro.to_dict())


async def delete_macro(request: web.Request) -> web.Response:
    """Delete a macro and its keyboard binding."""
    macro_id = _macro_id(request)
    if macro_id is None:
        return _invalid_id()

    try:
        result = _manager(request).delete(macro_id)
    except MacroError as e:
        return _from_macro_error(e, "delete")
    return web.json_response(result)


async def execute_macro(request: web.Request) -> web.Response:
    """Execute a macro on the device controller via ``M98 P<id>``."""
    manager = _manager(request)
    if not manager.controller.is_connected:
        return _error(503, "CNC controller is not connected")

    macro_id = _macro_id(request)
    if macro_id is None:
        return _invalid_id()

    try:
        result = await manager.execute(macro_id)
    except MacroError as e:
        return _from_macro_error(e, "execute")

    if result.success:
        return web.json_response(result.to_dict())
    return web.json_response(result.to_dict(), status=_EXECUTION_STATUS[result.failure])


def setup_routes(app: web.Application) -> None:
    """Register macro routes under every base path."""
    for base in ROUTE_BASES:
        app.router.add_get(base, list_macros)
        app.router.add_get(f"{base}/{{id}}", get_macro)
        app.router.add_post(base, create_macro)
        app.router.add_put(f"{base}/{{id}}", update_macro)
        app.router.add_delete(f"{base}/{{id}}", delete_macro)
        app.router.add_post(f"{base}/{{id}}/execute", execute_macro)


def create_app(manager: MacroManager) -> web.Application:
    """Build the aiohttp application serving the macro API."""
    app = web.Application()
    app[MANAGER_KEY] = manager
    setup_routes(app)
    return app
