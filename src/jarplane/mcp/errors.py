"""Protocol error taxonomy.

Every failure that reaches a client is one of four JSON-RPC error codes.
Errors carry the numeric code, a human message and a snake_case ``data``
tag naming the kind of failure.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any

from fastmcp.exceptions import ToolError


class RpcErrorCode(IntEnum):
    """Closed set of error codes on the wire."""

    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    # Custom, outside the reserved JSON-RPC range
    NOT_FOUND = -32001

    @property
    def tag(self) -> str:
        return self.name.lower()


class ProtocolError(ToolError):
    """Base exception for failures reported as a JSON-RPC error object.

    Extends FastMCP's ToolError so tool handlers raise the same exception
    family FastMCP tools do.
    """

    code: RpcErrorCode = RpcErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_error_object(self) -> dict[str, Any]:
        """Render as the ``error`` member of a response."""
        return {
            "code": self.code.value,
            "message": self.message,
            "data": self.code.tag,
        }


class MethodNotFoundError(ProtocolError):
    """Unknown top-level method."""

    code = RpcErrorCode.METHOD_NOT_FOUND

    def __init__(self, method: str) -> None:
        super().__init__(f"Unknown method: {method}", method=method)


class InvalidParamsError(ProtocolError):
    """Missing, blank or mistyped arguments, or an unknown tool."""

    code = RpcErrorCode.INVALID_PARAMS


class NotFoundError(ProtocolError):
    """No stored record for the requested key."""

    code = RpcErrorCode.NOT_FOUND


class InternalProtocolError(ProtocolError):
    """Unexpected failure. The message is generic; details go to the log."""

    code = RpcErrorCode.INTERNAL_ERROR
