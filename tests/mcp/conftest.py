"""Shared fixtures for protocol tests."""

from __future__ import annotations

from collections.abc import Callable, Generator
from typing import Any

import pytest

from jarplane.config.models import JarPlaneConfig
from jarplane.mcp.context import AppContext
from jarplane.mcp.dispatcher import ProtocolDispatcher


@pytest.fixture
def app_context(config: JarPlaneConfig) -> Generator[AppContext, None, None]:
    """Opened context on the temporary repository and store."""
    ctx = AppContext.create(config)
    yield ctx
    ctx.close()


@pytest.fixture
def dispatcher(app_context: AppContext) -> ProtocolDispatcher:
    return ProtocolDispatcher(app_context)


@pytest.fixture
def call_tool() -> Callable[..., dict[str, Any]]:
    """Build a tools/call request object."""

    def _build(name: str, arguments: Any = None, request_id: Any = 1) -> dict[str, Any]:
        params: dict[str, Any] = {"name": name}
        if arguments is not None:
            params["arguments"] = arguments
        return {"jsonrpc": "2.0", "id": request_id, "method": "tools/call", "params": params}

    return _build
