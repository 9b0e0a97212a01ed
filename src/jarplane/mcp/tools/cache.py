"""Cache maintenance tool - update_cache."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field

from jarplane.core.formatting import pluralize
from jarplane.mcp.registry import ToolName, registry
from jarplane.mcp.tools.base import BaseParams

if TYPE_CHECKING:
    from jarplane.index.models import ScanStats, StoreStatistics
    from jarplane.mcp.context import AppContext


class UpdateCacheParams(BaseParams):
    """Parameters for update_cache."""

    force: bool = Field(
        default=False,
        description="Rescan every archive, not only those modified since the last scan.",
    )


def _format_update(stats: ScanStats, totals: StoreStatistics) -> str:
    return (
        "Cache update complete:\n"
        f"Scanned archives: {stats.scanned_archives}\n"
        f"New classes: {stats.new_units}\n"
        f"Updated classes: {stats.updated_units}\n"
        "\n"
        f"Index now holds {pluralize(totals.classes, 'class', 'classes')} in "
        f"{pluralize(totals.packages, 'package')} across "
        f"{pluralize(totals.archives, 'archive')}."
    )


@registry.register(
    ToolName.UPDATE_CACHE,
    "Rescan the local Maven repository and refresh the class index. "
    "Only archives modified since the last scan are read unless force is true.",
    UpdateCacheParams,
)
async def update_cache(ctx: AppContext, params: UpdateCacheParams) -> str:
    stats = await ctx.scanner.scan(force=params.force)
    totals = await ctx.queries.get_statistics()
    return _format_update(stats, totals)
