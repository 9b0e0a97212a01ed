"""Line-delimited JSON-RPC dispatcher.

One request object per line in, at most one response object out. The
dispatcher never raises: every failure is turned into an error response
carrying one of the codes in `RpcErrorCode`.
"""

from __future__ import annotations

import json
import time
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

import jarplane.mcp.tools  # noqa: F401  (registers tool handlers)
from jarplane import __version__
from jarplane.config.constants import JSONRPC_VERSION, PROTOCOL_VERSION, SERVER_NAME
from jarplane.core.errors import JarPlaneError
from jarplane.core.formatting import truncate_query
from jarplane.core.logging import clear_request_id, set_request_id
from jarplane.mcp.errors import (
    InternalProtocolError,
    InvalidParamsError,
    MethodNotFoundError,
    ProtocolError,
)
from jarplane.mcp.registry import registry

if TYPE_CHECKING:
    from jarplane.mcp.context import AppContext

log = structlog.get_logger(__name__)

NOTIFICATION_PREFIX = "notifications/"


class RequestMethod(StrEnum):
    """Top-level methods the server answers."""

    INITIALIZE = "initialize"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"


# Method -> name of the ProtocolDispatcher coroutine that serves it
_METHOD_HANDLERS: dict[RequestMethod, str] = {
    RequestMethod.INITIALIZE: "_initialize",
    RequestMethod.TOOLS_LIST: "_list_tools",
    RequestMethod.TOOLS_CALL: "_call_tool",
}

if set(_METHOD_HANDLERS) != set(RequestMethod):
    _unhandled = sorted(m.value for m in set(RequestMethod) - set(_METHOD_HANDLERS))
    raise RuntimeError(f"Request methods without handlers: {', '.join(_unhandled)}")

registry.ensure_complete()


def _response(request_id: Any, result: dict[str, Any]) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def _error_response(request_id: Any, error: ProtocolError) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error.to_error_object()}


def _validation_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return f"Invalid params: {exc}"
    first = errors[0]
    field = ".".join(str(part) for part in first["loc"])
    msg = first["msg"]
    return f"Invalid params: {field}: {msg}" if field else f"Invalid params: {msg}"


def _log_params(arguments: dict[str, Any]) -> dict[str, Any]:
    """Scalar arguments worth putting on the tool_start line."""
    out: dict[str, Any] = {}
    for key, value in arguments.items():
        if isinstance(value, str):
            out[key] = truncate_query(value)
        elif isinstance(value, bool | int | float) or value is None:
            out[key] = value
    return out


class ProtocolDispatcher:
    """Routes decoded requests to the method handlers and tool registry."""

    def __init__(self, context: AppContext) -> None:
        self._context = context

    @property
    def context(self) -> AppContext:
        return self._context

    async def handle_line(self, line: str | bytes) -> dict[str, Any] | None:
        """Decode one input line and dispatch it.

        Returns the response object, or None for blank lines and
        notifications.
        """
        if not line.strip():
            return None

        try:
            request = json.loads(line)
        except ValueError as e:
            log.warning("request_parse_failed", error=str(e))
            return _error_response(
                None,
                InternalProtocolError(f"Internal error: could not parse request line: {e}"),
            )

        if not isinstance(request, dict):
            log.warning("request_not_object", kind=type(request).__name__)
            return _error_response(
                None,
                InternalProtocolError("Internal error: request must be a JSON object"),
            )

        return await self.handle_request(request)

    async def handle_request(self, request: dict[str, Any]) -> dict[str, Any] | None:
        """Dispatch a decoded request object."""
        method = request.get("method")

        if "id" not in request and isinstance(method, str) and method.startswith(NOTIFICATION_PREFIX):
            log.debug("notification_received", method=method)
            return None

        request_id = request.get("id")
        set_request_id(None if request_id is None else str(request_id))
        try:
            result = await self._dispatch(method, request.get("params"))
            return _response(request_id, result)
        except ProtocolError as e:
            return _error_response(request_id, e)
        except Exception as e:
            log.error("request_internal_error", method=method, error=str(e))
            log.debug("request_internal_error_traceback", method=method, exc_info=True)
            return _error_response(request_id, InternalProtocolError("Internal error"))
        finally:
            clear_request_id()

    async def _dispatch(self, method: Any, params: Any) -> dict[str, Any]:
        try:
            request_method = RequestMethod(method)
        except ValueError:
            log.warning("method_not_found", method=str(method))
            raise MethodNotFoundError(str(method)) from None

        if params is None:
            params = {}
        if not isinstance(params, dict):
            raise InvalidParamsError("Invalid params: params must be an object")

        handler = getattr(self, _METHOD_HANDLERS[request_method])
        result: dict[str, Any] = await handler(params)
        return result

    # =========================================================================
    # Method Handlers
    # =========================================================================

    async def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        log.info("client_initialize", client=params.get("clientInfo"))
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": {"name": SERVER_NAME, "version": __version__},
        }

    async def _list_tools(self, _params: dict[str, Any]) -> dict[str, Any]:
        return {"tools": [spec.describe() for spec in registry.get_all()]}

    async def _call_tool(self, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        if not isinstance(name, str) or not name.strip():
            raise InvalidParamsError("Invalid params: tool name is required")

        spec = registry.get(name)
        if spec is None:
            log.warning("tool_not_found", tool=name)
            raise InvalidParamsError(f"Unknown tool: {name}", tool=name)

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise InvalidParamsError("Invalid params: arguments must be an object", tool=name)

        start_time = time.perf_counter()
        log.info("tool_start", tool=name, args=_log_params(arguments))

        try:
            validated = spec.params_model.model_validate(arguments)
        except ValidationError as e:
            # Caller input error, no traceback
            elapsed_ms = int((time.perf_counter() - start_time) * 1000)
            message = _validation_message(e)
            log.warning("tool_validation_error", tool=name, error=message, elapsed_ms=elapsed_ms)
            raise InvalidParamsError(message, tool=name) from None

        try:
            text = await spec.handler(self._context, validated)
        except ProtocolError as e:
            elapsed_ms = int((time.perf_counter() - start_time) * 1000)
            log.warning(
                "tool_error",
                tool=name,
                error_code=e.code.value,
                error=e.message,
                elapsed_ms=elapsed_ms,
            )
            raise
        except Exception as e:
            elapsed_ms = int((time.perf_counter() - start_time) * 1000)
            context: dict[str, Any] = {}
            if isinstance(e, JarPlaneError):
                context = {"error_code": e.error_name, "retryable": e.retryable}
            # Summary on the console, full traceback at DEBUG
            log.error(
                "tool_internal_error", tool=name, error=str(e), elapsed_ms=elapsed_ms, **context
            )
            log.debug("tool_internal_error_traceback", tool=name, exc_info=True)
            raise InternalProtocolError(f"Internal error while running {name}", tool=name) from e

        elapsed_ms = int((time.perf_counter() - start_time) * 1000)
        log.info("tool_complete", tool=name, elapsed_ms=elapsed_ms, chars=len(text))
        return {"content": [{"type": "text", "text": text}]}
