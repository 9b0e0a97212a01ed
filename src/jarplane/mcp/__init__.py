"""Protocol layer - JSON-RPC dispatcher, tool registry and stdio server."""

from jarplane.mcp.context import AppContext
from jarplane.mcp.dispatcher import ProtocolDispatcher, RequestMethod
from jarplane.mcp.errors import (
    InternalProtocolError,
    InvalidParamsError,
    MethodNotFoundError,
    NotFoundError,
    ProtocolError,
    RpcErrorCode,
)
from jarplane.mcp.registry import ToolName, ToolSpec, registry
from jarplane.mcp.server import run_server, serve

__all__ = [
    "AppContext",
    "InternalProtocolError",
    "InvalidParamsError",
    "MethodNotFoundError",
    "NotFoundError",
    "ProtocolDispatcher",
    "ProtocolError",
    "RequestMethod",
    "RpcErrorCode",
    "ToolName",
    "ToolSpec",
    "registry",
    "run_server",
    "serve",
]
