"""
Bus Middleware - Access control and error formatting for the bus server.

Provides:
- Localhost-only access enforcement
- Request logging
- Unified JSON error responses
"""

import time
import traceback
from typing import Any, Callable, Dict, Optional, Tuple

from aiohttp import web

from devicelink.core.errors import DaemonError, MalformedEnvelope
from devicelink.core.logging_utils import get_module_logger


logger = get_module_logger("BusMiddleware")

LOCALHOST_IPS = frozenset({"127.0.0.1", "::1", "::ffff:127.0.0.1"})


@web.middleware
async def localhost_only_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
    """Reject requests from any peer other than the loopback interface."""
    peername = request.transport.get_extra_info("peername") if request.transport else None
    if peername:
        remote_ip = peername[0]
        if remote_ip not in LOCALHOST_IPS:
            logger.warning("Rejected bus request from non-localhost IP: %s", remote_ip)
            return create_error_response(
                "ACCESS_DENIED",
                "The bus is restricted to localhost",
                status=403,
            )

    return await handler(request)


@web.middleware
async def request_logging_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
    start_time = time.perf_counter()
    response = await handler(request)
    logger.debug(
        "%s %s -> %d (%.1f ms)",
        request.method,
        request.path,
        response.status,
        (time.perf_counter() - start_time) * 1000,
    )
    return response


@web.middleware
async def error_handling_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
    """
    Catch and format all errors as JSON responses:

    {
        "error": {"code": "ERROR_CODE", "message": "...", "details": {...}},
        "status": 500
    }
    """
    try:
        return await handler(request)
    except web.HTTPException as e:
        return create_error_response(
            e.reason.upper().replace(" ", "_") if e.reason else "HTTP_ERROR",
            e.text or str(e),
            status=e.status,
        )
    except MalformedEnvelope as e:
        logger.warning("Malformed envelope on %s: %s", request.path, e)
        return create_error_response("MALFORMED_ENVELOPE", str(e), status=400)
    except DaemonError as e:
        logger.warning("%s on %s: %s", type(e).__name__, request.path, e)
        return create_error_response(_error_code(e), str(e), status=400)
    except (ValueError, TypeError) as e:
        logger.warning("Validation error: %s", e)
        return create_error_response("VALIDATION_ERROR", str(e), status=400)
    except Exception as e:
        logger.error("Unexpected error on %s: %s\n%s", request.path, e, traceback.format_exc())
        return create_error_response(
            "INTERNAL_ERROR",
            "An unexpected error occurred",
            status=500,
            details={"type": type(e).__name__, "message": str(e)},
        )


def _error_code(error: DaemonError) -> str:
    name = type(error).__name__
    chars = []
    for index, ch in enumerate(name):
        if ch.isupper() and index:
            chars.append("_")
        chars.append(ch.upper())
    return "".join(chars)


def create_error_response(
    code: str,
    message: str,
    status: int = 400,
    details: Optional[Dict[str, Any]] = None,
) -> web.Response:
    """Create standardized error response."""
    error: Dict[str, Any] = {"error": {"code": code, "message": message}, "status": status}
    if details:
        error["error"]["details"] = details
    return web.json_response(error, status=status)


async def parse_json_body(
    request: web.Request,
    required: bool = True,
) -> Tuple[Optional[Any], Optional[web.Response]]:
    """Parse JSON body with error handling. Returns (body, error_response)."""
    if not request.can_read_body:
        if required:
            return None, create_error_response("EMPTY_BODY", "Request body must contain data", status=400)
        return {}, None
    try:
        body = await request.json()
    except ValueError:
        return None, create_error_response("INVALID_BODY", "Request body must be valid JSON", status=400)
    return body, None
