"""Tool registry for the protocol server.

Provides decorator-based tool registration with Pydantic param validation.
Tool names form a closed enum; `ensure_complete()` fails loudly when a
member of ToolName has no registered handler.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from fastmcp.utilities.json_schema import dereference_refs
from pydantic import BaseModel

if TYPE_CHECKING:
    from jarplane.mcp.context import AppContext

# Handler signature: (ctx, validated_params) -> text block
HandlerFn = Callable[["AppContext", Any], Awaitable[str]]


class ToolName(StrEnum):
    """Every callable tool."""

    SEARCH_CLASS = "search_class"
    GET_CLASS_DETAIL = "get_class_detail"
    GET_CLASS_CONTENT = "get_class_content"
    UPDATE_CACHE = "update_cache"


@dataclass
class ToolSpec:
    """Specification for a registered tool."""

    name: ToolName
    handler: HandlerFn
    description: str
    params_model: type[BaseModel]

    def input_schema(self) -> dict[str, Any]:
        """Flat JSON schema of the arguments, keyed by wire (alias) names."""
        schema = dereference_refs(self.params_model.model_json_schema(by_alias=True))
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return schema

    def describe(self) -> dict[str, Any]:
        """Catalogue entry for tools/list."""
        return {
            "name": self.name.value,
            "description": self.description,
            "inputSchema": self.input_schema(),
        }


class ToolRegistry:
    """Registry for tools with decorator-based registration."""

    _instance: ToolRegistry | None = None
    _tools: dict[ToolName, ToolSpec]

    def __new__(cls) -> ToolRegistry:
        """Singleton pattern for global registry."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._tools = {}
        return cls._instance

    def register(
        self,
        name: ToolName,
        description: str,
        params_model: type[BaseModel],
    ) -> Callable[[HandlerFn], HandlerFn]:
        """Decorator to register a tool handler.

        Usage:
            @registry.register(ToolName.SEARCH_CLASS, "Search classes", SearchClassParams)
            async def search_class(ctx: AppContext, params: SearchClassParams) -> str:
                ...
        """

        def decorator(fn: HandlerFn) -> HandlerFn:
            self._tools[name] = ToolSpec(
                name=name,
                handler=fn,
                description=description,
                params_model=params_model,
            )
            return fn

        return decorator

    def get_all(self) -> list[ToolSpec]:
        """All registered tool specs in ToolName declaration order."""
        return [self._tools[name] for name in ToolName if name in self._tools]

    def get(self, name: str) -> ToolSpec | None:
        """Get a tool spec by wire name; None for unknown names."""
        try:
            return self._tools.get(ToolName(name))
        except ValueError:
            return None

    def ensure_complete(self) -> None:
        """Raise if any ToolName lacks a handler."""
        missing = [name.value for name in ToolName if name not in self._tools]
        if missing:
            msg = f"Tools without handlers: {', '.join(missing)}"
            raise RuntimeError(msg)

    def clear(self) -> None:
        """Clear all registrations (for testing)."""
        self._tools.clear()


# Global registry instance
registry = ToolRegistry()
