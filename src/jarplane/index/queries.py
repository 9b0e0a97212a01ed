"""Read-only queries over the class store.

Search ranks hits in four tiers, lowest first:

1. exact qualified name
2. qualified name starts with the query
3. package name starts with the query
4. any other substring match in the qualified or package name

Ties are broken by ascending qualified name, then archive path.

By default matching folds ASCII case (``stringutils`` finds
``StringUtils``); with ``case_sensitive=True`` every comparison is exact.
Wildcard characters in the query are always matched literally.

Exact-key lookups (detail, payload) are case-sensitive.
"""

from __future__ import annotations

import base64
import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from jarplane.core.errors import StorageError
from jarplane.index._internal.db import ClassStore
from jarplane.index.models import (
    ClassDetail,
    ClassPayload,
    ClassSummary,
    MatchTier,
    SearchHit,
    StoreStatistics,
)

if TYPE_CHECKING:
    from jarplane.config.models import JarPlaneConfig

logger = structlog.get_logger()

_LIKE_ESCAPE = "\\"

_SEARCH_NOCASE_SQL = """
    SELECT qualified_name, package_name, archive_path, methods_json, fields_json,
        CASE
            WHEN qualified_name = :query COLLATE NOCASE THEN 1
            WHEN qualified_name LIKE :prefix ESCAPE '\\' THEN 2
            WHEN package_name LIKE :prefix ESCAPE '\\' THEN 3
            ELSE 4
        END AS tier
    FROM units
    WHERE qualified_name LIKE :contains ESCAPE '\\'
        OR package_name LIKE :contains ESCAPE '\\'
    ORDER BY tier, qualified_name, archive_path
    LIMIT :limit
"""

_SEARCH_CASE_SQL = """
    SELECT qualified_name, package_name, archive_path, methods_json, fields_json,
        CASE
            WHEN qualified_name = :query THEN 1
            WHEN substr(qualified_name, 1, length(:query)) = :query THEN 2
            WHEN substr(package_name, 1, length(:query)) = :query THEN 3
            ELSE 4
        END AS tier
    FROM units
    WHERE instr(qualified_name, :query) > 0 OR instr(package_name, :query) > 0
    ORDER BY tier, qualified_name, archive_path
    LIMIT :limit
"""

_PACKAGE_NOCASE_SQL = """
    SELECT qualified_name, package_name, archive_path
    FROM units
    WHERE package_name LIKE :prefix ESCAPE '\\'
    ORDER BY qualified_name, archive_path
    LIMIT :limit
"""

_PACKAGE_CASE_SQL = """
    SELECT qualified_name, package_name, archive_path
    FROM units
    WHERE substr(package_name, 1, length(:package)) = :package
    ORDER BY qualified_name, archive_path
    LIMIT :limit
"""


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so value matches literally."""
    return (
        value.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )


def _to_datetime(seconds: int | None) -> datetime:
    return datetime.fromtimestamp(int(seconds or 0), tz=UTC)


class QueryService:
    """Search and lookup over an independent read-only store handle."""

    def __init__(self, store: ClassStore, *, case_sensitive: bool = False) -> None:
        if not store.read_only:
            msg = "QueryService requires a read-only ClassStore"
            raise ValueError(msg)
        self.store = store
        self.case_sensitive = case_sensitive

    @classmethod
    def from_config(cls, config: JarPlaneConfig) -> QueryService:
        return cls(
            ClassStore.from_config(config.store, read_only=True),
            case_sensitive=config.search.case_sensitive,
        )

    def open(self) -> None:
        self.store.open()

    def close(self) -> None:
        self.store.close()

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search_by_name_or_package(self, query: str, limit: int) -> list[SearchHit]:
        """Ranked substring search over qualified and package names."""
        if not query or limit <= 0:
            return []

        if self.case_sensitive:
            sql = _SEARCH_CASE_SQL
            params: dict[str, Any] = {"query": query, "limit": limit}
        else:
            escaped = escape_like(query)
            sql = _SEARCH_NOCASE_SQL
            params = {
                "query": query,
                "prefix": f"{escaped}%",
                "contains": f"%{escaped}%",
                "limit": limit,
            }

        rows = self._fetch_all("search_by_name_or_package", sql, params)
        hits = [
            SearchHit(
                qualified_name=row.qualified_name,
                package_name=row.package_name,
                archive_path=row.archive_path,
                tier=MatchTier(row.tier),
                methods=self._decode_members(row.methods_json, row.qualified_name, "methods"),
                fields=self._decode_members(row.fields_json, row.qualified_name, "fields"),
            )
            for row in rows
        ]
        logger.debug("search_complete", query=query, limit=limit, hits=len(hits))
        return hits

    async def search_by_package_prefix(self, package_name: str, limit: int) -> list[ClassSummary]:
        """Units whose package starts with package_name, ascending by qualified name."""
        if limit <= 0:
            return []
        if self.case_sensitive:
            sql = _PACKAGE_CASE_SQL
            params: dict[str, Any] = {"package": package_name, "limit": limit}
        else:
            sql = _PACKAGE_NOCASE_SQL
            params = {"prefix": f"{escape_like(package_name)}%", "limit": limit}

        rows = self._fetch_all("search_by_package_prefix", sql, params)
        return [
            ClassSummary(
                qualified_name=row.qualified_name,
                package_name=row.package_name,
                archive_path=row.archive_path,
            )
            for row in rows
        ]

    # ------------------------------------------------------------------
    # Exact lookups
    # ------------------------------------------------------------------

    async def get_detail(self, qualified_name: str) -> ClassDetail | None:
        """Full record for qualified_name, or None if it is not stored.

        When several archives contain the name, the first archive in path
        order is described and the rest are listed in other_archives.
        """
        rows = self._fetch_all(
            "get_detail",
            """
            SELECT qualified_name, package_name, archive_path, methods_json, fields_json,
                last_modified, created_at
            FROM units
            WHERE qualified_name = :name
            ORDER BY archive_path
            """,
            {"name": qualified_name},
        )
        if not rows:
            return None

        first = rows[0]
        return ClassDetail(
            qualified_name=first.qualified_name,
            package_name=first.package_name,
            archive_path=first.archive_path,
            methods=self._decode_members(first.methods_json, first.qualified_name, "methods"),
            fields=self._decode_members(first.fields_json, first.qualified_name, "fields"),
            last_modified=_to_datetime(first.last_modified),
            created_at=_to_datetime(first.created_at),
            other_archives=[row.archive_path for row in rows[1:]],
        )

    async def get_payload(
        self, qualified_name: str, archive_path: str | None = None
    ) -> ClassPayload | None:
        """Raw unit bytes, base64-encoded, or None if not stored.

        Without archive_path the first archive in path order is used.
        """
        sql = "SELECT archive_path, payload FROM units WHERE qualified_name = :name"
        params: dict[str, Any] = {"name": qualified_name}
        if archive_path:
            sql += " AND archive_path = :archive_path"
            params["archive_path"] = archive_path
        sql += " ORDER BY archive_path LIMIT 1"

        rows = self._fetch_all("get_payload", sql, params)
        if not rows:
            return None

        payload = bytes(rows[0].payload or b"")
        return ClassPayload(
            qualified_name=qualified_name,
            archive_path=rows[0].archive_path,
            content=base64.b64encode(payload).decode("ascii"),
            encoding="base64",
            size_bytes=len(payload),
        )

    async def get_statistics(self) -> StoreStatistics:
        """Distinct counts of qualified names, packages and archives."""
        rows = self._fetch_all(
            "get_statistics",
            """
            SELECT COUNT(DISTINCT qualified_name) AS classes,
                COUNT(DISTINCT package_name) AS packages,
                COUNT(DISTINCT archive_path) AS archives
            FROM units
            """,
            {},
        )
        if not rows:
            return StoreStatistics()
        row = rows[0]
        return StoreStatistics(
            classes=int(row.classes or 0),
            packages=int(row.packages or 0),
            archives=int(row.archives or 0),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _fetch_all(self, operation: str, sql: str, params: dict[str, Any]) -> list[Any]:
        try:
            with self.store.engine.connect() as conn:
                return list(conn.execute(text(sql), params))
        except SQLAlchemyError as e:
            raise StorageError.query_failed(operation, str(e)) from e

    def _decode_members(self, raw: str | None, qualified_name: str, kind: str) -> list[str]:
        """Decode a stored member list; malformed data yields an empty list."""
        if not raw:
            return []
        try:
            value = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(
                "member_list_malformed", class_name=qualified_name, kind=kind, error=str(e)
            )
            return []
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            logger.warning(
                "member_list_malformed",
                class_name=qualified_name,
                kind=kind,
                error=f"expected list of strings, got {type(value).__name__}",
            )
            return []
        return value
