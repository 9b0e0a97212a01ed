"""Class lookup tools - search_class, get_class_detail, get_class_content.

Results are rendered as markdown-ish text blocks meant to be read directly
by the calling agent.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator

from jarplane.config.constants import SEARCH_MAX_LIMIT
from jarplane.core.formatting import format_timestamp, pluralize, truncate_query
from jarplane.mcp.errors import NotFoundError
from jarplane.mcp.registry import ToolName, registry
from jarplane.mcp.tools.base import BaseParams, require_text

if TYPE_CHECKING:
    from jarplane.index.models import ClassDetail, ClassPayload, SearchHit
    from jarplane.mcp.context import AppContext


# =============================================================================
# Parameter Models
# =============================================================================


class SearchClassParams(BaseParams):
    """Parameters for search_class."""

    query: str = Field(
        description="Search text matched against fully-qualified class names and package names.",
    )
    limit: int | None = Field(
        default=None,
        ge=1,
        le=SEARCH_MAX_LIMIT,
        description="Maximum number of results (default 50).",
    )

    @field_validator("query")
    @classmethod
    def _non_blank(cls, v: str) -> str:
        return require_text(v, "query")


class GetClassDetailParams(BaseParams):
    """Parameters for get_class_detail."""

    class_name: str = Field(
        alias="className",
        description="Fully-qualified class name, including the package.",
    )

    @field_validator("class_name")
    @classmethod
    def _non_blank(cls, v: str) -> str:
        return require_text(v, "className")


class GetClassContentParams(BaseParams):
    """Parameters for get_class_content."""

    class_name: str = Field(
        alias="className",
        description="Fully-qualified class name, including the package.",
    )
    jar_path: str | None = Field(
        default=None,
        alias="jarPath",
        description="Archive to read from. Defaults to the first archive containing the class.",
    )

    @field_validator("class_name")
    @classmethod
    def _non_blank(cls, v: str) -> str:
        return require_text(v, "className")

    @field_validator("jar_path")
    @classmethod
    def _blank_is_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


# =============================================================================
# Rendering
# =============================================================================


def _format_search_results(query: str, hits: list[SearchHit]) -> str:
    header = f'Found {pluralize(len(hits), "matching class", "matching classes")} for "{query}"'
    if not hits:
        return header + "."
    blocks = [
        f"{i}. **{hit.qualified_name}**\n"
        f"   Package: {hit.package_name or '(default package)'}\n"
        f"   Archive: {hit.archive_path}\n"
        f"   Match: {hit.tier.label}"
        for i, hit in enumerate(hits, start=1)
    ]
    return header + ":\n\n" + "\n\n".join(blocks)


def _format_class_detail(detail: ClassDetail) -> str:
    lines = [
        f"# Class: {detail.qualified_name}",
        "",
        f"**Package**: {detail.package_name or '(default package)'}",
        f"**Archive**: {detail.archive_path}",
        f"**Archive modified**: {format_timestamp(detail.last_modified)}",
        f"**Indexed at**: {format_timestamp(detail.created_at)}",
    ]

    if detail.methods:
        lines += ["", f"## Methods ({len(detail.methods)})", ""]
        lines += [f"{i}. {m}" for i, m in enumerate(detail.methods, start=1)]
    if detail.fields:
        lines += ["", f"## Fields ({len(detail.fields)})", ""]
        lines += [f"{i}. {f}" for i, f in enumerate(detail.fields, start=1)]
    if not detail.methods and not detail.fields:
        lines += ["", "No method or field signatures recorded."]

    if detail.other_archives:
        lines += ["", f"## Also found in ({len(detail.other_archives)})", ""]
        lines += [f"- {path}" for path in detail.other_archives]

    return "\n".join(lines)


def _format_class_content(payload: ClassPayload) -> str:
    return (
        f"Class file content of {payload.qualified_name} from {payload.archive_path} "
        f"({payload.encoding}, {pluralize(payload.size_bytes, 'byte')}):\n"
        f"{payload.content}"
    )


# =============================================================================
# Tool Handlers
# =============================================================================


@registry.register(
    ToolName.SEARCH_CLASS,
    "Search the local Maven repository for classes by name or package. "
    "Matching is case-insensitive unless configured otherwise; exact names rank first.",
    SearchClassParams,
)
async def search_class(ctx: AppContext, params: SearchClassParams) -> str:
    limit = params.limit or ctx.config.search.default_limit
    hits = await ctx.queries.search_by_name_or_package(params.query, limit)
    return _format_search_results(truncate_query(params.query, 60), hits)


@registry.register(
    ToolName.GET_CLASS_DETAIL,
    "Get details of a class: package, containing archive, timestamps, and any "
    "recorded methods and fields.",
    GetClassDetailParams,
)
async def get_class_detail(ctx: AppContext, params: GetClassDetailParams) -> str:
    detail = await ctx.queries.get_detail(params.class_name)
    if detail is None:
        raise NotFoundError(f"Class not found: {params.class_name}", class_name=params.class_name)
    return _format_class_detail(detail)


@registry.register(
    ToolName.GET_CLASS_CONTENT,
    "Get the compiled class file of a class as Base64-encoded bytes.",
    GetClassContentParams,
)
async def get_class_content(ctx: AppContext, params: GetClassContentParams) -> str:
    payload = await ctx.queries.get_payload(params.class_name, params.jar_path)
    if payload is None:
        where = f" in {params.jar_path}" if params.jar_path else ""
        raise NotFoundError(
            f"Class file not found: {params.class_name}{where}",
            class_name=params.class_name,
            jar_path=params.jar_path,
        )
    return _format_class_content(payload)
