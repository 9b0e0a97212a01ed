"""Tests for the JSON-RPC dispatcher."""

from __future__ import annotations

import base64
import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from jarplane import __version__
from jarplane.config.models import LoggingConfig, LogOutputConfig
from jarplane.core.errors import StorageError
from jarplane.core.logging import configure_logging
from jarplane.mcp.dispatcher import ProtocolDispatcher, RequestMethod

CallTool = Callable[..., dict[str, Any]]


def _error(response: dict[str, Any] | None) -> dict[str, Any]:
    assert response is not None
    assert "result" not in response
    return response["error"]


def _text(response: dict[str, Any] | None) -> str:
    assert response is not None
    assert "error" not in response, response
    content = response["result"]["content"]
    assert len(content) == 1
    assert content[0]["type"] == "text"
    return content[0]["text"]


@pytest.fixture
def populated(make_jar) -> None:  # type: ignore[no-untyped-def]
    make_jar(
        "org/apache/commons/commons-lang3/3.12.0/commons-lang3-3.12.0.jar",
        [
            "org/apache/commons/lang3/StringUtils.class",
            "org/apache/commons/lang3/StringUtils$1.class",
        ],
    )
    make_jar("com/acme/acme-core/1.0/acme-core-1.0.jar", ["com/acme/Strings.class"])


class TestRequestMethod:
    def test_methods(self) -> None:
        assert [m.value for m in RequestMethod] == ["initialize", "tools/list", "tools/call"]


class TestLineHandling:
    """Decoding of raw input lines."""

    @pytest.mark.asyncio
    async def test_malformed_line_reports_internal_error_without_id(
        self, dispatcher: ProtocolDispatcher
    ) -> None:
        response = await dispatcher.handle_line('{"jsonrpc": "2.0", "id": 3, "method": ')

        assert response is not None
        assert response["jsonrpc"] == "2.0"
        assert response["id"] is None
        error = _error(response)
        assert error["code"] == -32603
        assert error["data"] == "internal_error"
        assert error["message"].startswith("Internal error: could not parse request line")

    @pytest.mark.asyncio
    async def test_non_object_line_reports_internal_error(
        self, dispatcher: ProtocolDispatcher
    ) -> None:
        response = await dispatcher.handle_line("[1, 2, 3]")
        assert response is not None
        assert response["id"] is None
        assert _error(response)["code"] == -32603

    @pytest.mark.asyncio
    @pytest.mark.parametrize("line", ["", "\n", "   \r\n", b"\n"])
    async def test_blank_lines_ignored(self, dispatcher: ProtocolDispatcher, line: Any) -> None:
        assert await dispatcher.handle_line(line) is None

    @pytest.mark.asyncio
    async def test_bytes_line_accepted(self, dispatcher: ProtocolDispatcher) -> None:
        line = json.dumps({"jsonrpc": "2.0", "id": 1, "method": "initialize"}).encode()
        response = await dispatcher.handle_line(line + b"\n")
        assert response is not None
        assert response["result"]["serverInfo"]["name"] == "jarplane"

    @pytest.mark.asyncio
    async def test_notification_gets_no_response(self, dispatcher: ProtocolDispatcher) -> None:
        line = json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"})
        assert await dispatcher.handle_line(line) is None


class TestTopLevelMethods:
    @pytest.mark.asyncio
    async def test_initialize(self, dispatcher: ProtocolDispatcher) -> None:
        response = await dispatcher.handle_request(
            {"jsonrpc": "2.0", "id": 0, "method": "initialize", "params": {"clientInfo": {}}}
        )

        assert response == {
            "jsonrpc": "2.0",
            "id": 0,
            "result": {
                "protocolVersion": "2024-11-05",
                "capabilities": {"tools": {"listChanged": False}},
                "serverInfo": {"name": "jarplane", "version": __version__},
            },
        }

    @pytest.mark.asyncio
    async def test_tools_list(self, dispatcher: ProtocolDispatcher) -> None:
        response = await dispatcher.handle_request({"jsonrpc": "2.0", "id": 1, "method": "tools/list"})

        assert response is not None
        tools = {t["name"]: t for t in response["result"]["tools"]}
        assert list(tools) == [
            "search_class",
            "get_class_detail",
            "get_class_content",
            "update_cache",
        ]
        assert tools["search_class"]["inputSchema"]["required"] == ["query"]
        assert tools["get_class_detail"]["inputSchema"]["required"] == ["className"]
        content_props = tools["get_class_content"]["inputSchema"]["properties"]
        assert set(content_props) == {"className", "jarPath"}
        assert "required" not in tools["update_cache"]["inputSchema"]
        assert tools["update_cache"]["inputSchema"]["properties"]["force"]["default"] is False

    @pytest.mark.asyncio
    async def test_unknown_method(self, dispatcher: ProtocolDispatcher) -> None:
        response = await dispatcher.handle_request(
            {"jsonrpc": "2.0", "id": "abc", "method": "resources/list"}
        )
        assert response is not None
        assert response["id"] == "abc"
        error = _error(response)
        assert error["code"] == -32601
        assert error["data"] == "method_not_found"
        assert "resources/list" in error["message"]

    @pytest.mark.asyncio
    async def test_missing_method(self, dispatcher: ProtocolDispatcher) -> None:
        response = await dispatcher.handle_request({"jsonrpc": "2.0", "id": 5})
        assert _error(response)["code"] == -32601

    @pytest.mark.asyncio
    async def test_non_object_params(self, dispatcher: ProtocolDispatcher) -> None:
        response = await dispatcher.handle_request(
            {"jsonrpc": "2.0", "id": 5, "method": "tools/call", "params": ["search_class"]}
        )
        assert _error(response)["code"] == -32602


class TestToolCallValidation:
    """Argument validation happens before any backend call."""

    @pytest.mark.asyncio
    async def test_blank_class_name(self, dispatcher: ProtocolDispatcher, call_tool: CallTool) -> None:
        """Given a blank className, then invalid-params echoes the request id."""
        # Given
        spy = AsyncMock()
        dispatcher.context.queries.get_detail = spy  # type: ignore[method-assign]

        # When
        response = await dispatcher.handle_request(
            call_tool("get_class_detail", {"className": ""}, request_id=7)
        )

        # Then
        assert response is not None
        assert response["jsonrpc"] == "2.0"
        assert response["id"] == 7
        error = _error(response)
        assert error["code"] == -32602
        assert error["data"] == "invalid_params"
        assert "className" in error["message"]
        spy.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("tool", "arguments"),
        [
            ("get_class_detail", {"className": "   "}),
            ("get_class_detail", {}),
            ("get_class_detail", None),
            ("get_class_content", {"jarPath": "/a.jar"}),
            ("search_class", {"query": ""}),
            ("search_class", {"query": "Foo", "limit": 0}),
            ("search_class", {"query": "Foo", "limit": 1001}),
            ("search_class", {"query": 42}),
            ("search_class", {"query": "Foo", "unexpected": True}),
            ("update_cache", {"force": "sometimes"}),
            ("update_cache", [True]),
        ],
    )
    async def test_invalid_arguments(
        self,
        dispatcher: ProtocolDispatcher,
        call_tool: CallTool,
        tool: str,
        arguments: Any,
    ) -> None:
        response = await dispatcher.handle_request(call_tool(tool, arguments))
        assert _error(response)["code"] == -32602

    @pytest.mark.asyncio
    async def test_unknown_tool(self, dispatcher: ProtocolDispatcher, call_tool: CallTool) -> None:
        response = await dispatcher.handle_request(call_tool("drop_tables", {}))
        error = _error(response)
        assert error["code"] == -32602
        assert "drop_tables" in error["message"]

    @pytest.mark.asyncio
    async def test_missing_tool_name(self, dispatcher: ProtocolDispatcher) -> None:
        response = await dispatcher.handle_request(
            {"jsonrpc": "2.0", "id": 2, "method": "tools/call", "params": {"arguments": {}}}
        )
        assert _error(response)["code"] == -32602


class TestTools:
    """End-to-end tool calls against a scanned repository."""

    @pytest.mark.asyncio
    async def test_update_cache_then_search(
        self, populated: None, dispatcher: ProtocolDispatcher, call_tool: CallTool
    ) -> None:
        # Given
        update = await dispatcher.handle_request(call_tool("update_cache", {}))

        # Then
        assert _text(update) == (
            "Cache update complete:\n"
            "Scanned archives: 2\n"
            "New classes: 2\n"
            "Updated classes: 0\n"
            "\n"
            "Index now holds 2 classes in 2 packages across 2 archives."
        )

        # When
        search = await dispatcher.handle_request(call_tool("search_class", {"query": "strings"}))

        # Then
        text = _text(search)
        assert text.startswith('Found 1 matching class for "strings":\n\n1. **com.acme.Strings**')
        assert "   Package: com.acme\n" in text
        assert "acme-core-1.0.jar" in text
        assert text.endswith("Match: substring")

    @pytest.mark.asyncio
    async def test_second_update_without_changes(
        self, populated: None, dispatcher: ProtocolDispatcher, call_tool: CallTool
    ) -> None:
        await dispatcher.handle_request(call_tool("update_cache"))
        text = _text(await dispatcher.handle_request(call_tool("update_cache")))
        assert "Scanned archives: 0\nNew classes: 0\nUpdated classes: 0" in text

    @pytest.mark.asyncio
    async def test_forced_update_counts_updates(
        self, populated: None, dispatcher: ProtocolDispatcher, call_tool: CallTool
    ) -> None:
        await dispatcher.handle_request(call_tool("update_cache"))
        text = _text(await dispatcher.handle_request(call_tool("update_cache", {"force": True})))
        assert "Scanned archives: 2\nNew classes: 0\nUpdated classes: 2" in text

    @pytest.mark.asyncio
    async def test_search_without_hits(
        self, dispatcher: ProtocolDispatcher, call_tool: CallTool
    ) -> None:
        text = _text(await dispatcher.handle_request(call_tool("search_class", {"query": "Nope"})))
        assert text == 'Found 0 matching classes for "Nope".'

    @pytest.mark.asyncio
    async def test_search_limit(
        self, populated: None, dispatcher: ProtocolDispatcher, call_tool: CallTool
    ) -> None:
        await dispatcher.handle_request(call_tool("update_cache"))
        text = _text(
            await dispatcher.handle_request(call_tool("search_class", {"query": "s", "limit": 1}))
        )
        assert text.startswith("Found 1 matching class")

    @pytest.mark.asyncio
    async def test_class_detail(
        self, populated: None, dispatcher: ProtocolDispatcher, call_tool: CallTool
    ) -> None:
        await dispatcher.handle_request(call_tool("update_cache"))

        text = _text(
            await dispatcher.handle_request(
                call_tool("get_class_detail", {"className": " org.apache.commons.lang3.StringUtils "})
            )
        )

        assert text.startswith("# Class: org.apache.commons.lang3.StringUtils\n")
        assert "**Package**: org.apache.commons.lang3" in text
        assert "commons-lang3-3.12.0.jar" in text
        assert "## Methods" not in text
        assert "No method or field signatures recorded." in text

    @pytest.mark.asyncio
    async def test_class_detail_not_found(
        self, dispatcher: ProtocolDispatcher, call_tool: CallTool
    ) -> None:
        response = await dispatcher.handle_request(
            call_tool("get_class_detail", {"className": "com.acme.Missing"}, request_id=11)
        )
        assert response is not None
        assert response["id"] == 11
        error = _error(response)
        assert error["code"] == -32001
        assert error["data"] == "not_found"
        assert "com.acme.Missing" in error["message"]

    @pytest.mark.asyncio
    async def test_class_content(
        self,
        populated: None,
        dispatcher: ProtocolDispatcher,
        call_tool: CallTool,
        class_bytes: bytes,
    ) -> None:
        await dispatcher.handle_request(call_tool("update_cache"))

        text = _text(
            await dispatcher.handle_request(
                call_tool("get_class_content", {"className": "com.acme.Strings"})
            )
        )

        header, encoded = text.split("\n", 1)
        assert header.startswith("Class file content of com.acme.Strings from ")
        assert header.endswith(f"(base64, {len(class_bytes)} bytes):")
        assert base64.b64decode(encoded) == class_bytes

    @pytest.mark.asyncio
    async def test_class_content_wrong_archive(
        self, populated: None, dispatcher: ProtocolDispatcher, call_tool: CallTool
    ) -> None:
        await dispatcher.handle_request(call_tool("update_cache"))
        response = await dispatcher.handle_request(
            call_tool("get_class_content", {"className": "com.acme.Strings", "jarPath": "/x.jar"})
        )
        assert _error(response)["code"] == -32001


class TestInternalErrors:
    """Failures inside a tool never crash the dispatcher."""

    @pytest.mark.asyncio
    async def test_storage_error_becomes_generic_internal_error(
        self, dispatcher: ProtocolDispatcher, call_tool: CallTool
    ) -> None:
        # Given
        dispatcher.context.queries.search_by_name_or_package = AsyncMock(  # type: ignore[method-assign]
            side_effect=StorageError.query_failed("search", "disk I/O error at /secret/path")
        )

        # When
        response = await dispatcher.handle_request(
            call_tool("search_class", {"query": "Foo"}, request_id=9)
        )

        # Then
        assert response is not None
        assert response["id"] == 9
        error = _error(response)
        assert error["code"] == -32603
        assert error["data"] == "internal_error"
        assert "/secret/path" not in error["message"]

    @pytest.mark.asyncio
    async def test_storage_error_is_logged_with_retry_hint(
        self, dispatcher: ProtocolDispatcher, call_tool: CallTool, tmp_path: Path
    ) -> None:
        """The log line carries the store error name and whether retrying may help."""
        # Given
        log_file = tmp_path / "logs" / "server.jsonl"
        configure_logging(
            config=LoggingConfig(
                outputs=[LogOutputConfig(format="json", destination=str(log_file))]
            )
        )
        dispatcher.context.queries.search_by_name_or_package = AsyncMock(  # type: ignore[method-assign]
            side_effect=StorageError.query_failed("search", "database is locked")
        )

        # When
        try:
            await dispatcher.handle_request(call_tool("search_class", {"query": "Foo"}))
        finally:
            logging.getLogger().handlers.clear()

        # Then
        events = [json.loads(line) for line in log_file.read_text().splitlines()]
        failure = next(e for e in events if e["event"] == "tool_internal_error")
        assert failure["error_code"] == "STORE_QUERY_FAILED"
        assert failure["retryable"] is True

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_internal_error(
        self, dispatcher: ProtocolDispatcher, call_tool: CallTool
    ) -> None:
        dispatcher.context.scanner.scan = AsyncMock(side_effect=RuntimeError("boom"))  # type: ignore[method-assign]

        response = await dispatcher.handle_request(call_tool("update_cache", {}))

        assert _error(response)["code"] == -32603

    @pytest.mark.asyncio
    async def test_dispatcher_keeps_working_after_failure(
        self, dispatcher: ProtocolDispatcher, call_tool: CallTool
    ) -> None:
        dispatcher.context.scanner.scan = AsyncMock(side_effect=RuntimeError("boom"))  # type: ignore[method-assign]
        await dispatcher.handle_request(call_tool("update_cache", {}))

        response = await dispatcher.handle_request({"jsonrpc": "2.0", "id": 2, "method": "initialize"})

        assert response is not None
        assert "result" in response
