"""Tests for QueryService search, lookups and statistics."""

from __future__ import annotations

import base64

import pytest
from sqlalchemy import text

from jarplane.core.errors import StorageError
from jarplane.index import ClassStore, MatchTier, QueryService, StoreStatistics
from jarplane.index.queries import escape_like


class TestEscapeLike:
    def test_escapes_wildcards(self) -> None:
        assert escape_like("a_b%c\\d") == "a\\_b\\%c\\\\d"


class TestSearchByNameOrPackage:
    """Four-tier ranked search."""

    @pytest.mark.asyncio
    async def test_exact_name_ranks_first_then_substrings_by_name(
        self, indexed_repo, queries: QueryService
    ) -> None:
        """Given StringUtils in the default package, when searched, then it ranks first."""
        # When
        hits = await queries.search_by_name_or_package("StringUtils", 10)

        # Then
        assert [(h.qualified_name, h.tier) for h in hits] == [
            ("StringUtils", MatchTier.EXACT),
            ("com.acme.util.StringUtilsHelper", MatchTier.SUBSTRING),
            ("org.apache.commons.lang3.StringUtils", MatchTier.SUBSTRING),
        ]

    @pytest.mark.asyncio
    async def test_prefix_tier(self, indexed_repo, queries: QueryService) -> None:
        hits = await queries.search_by_name_or_package("com.acme", 10)

        assert {h.tier for h in hits} == {MatchTier.NAME_PREFIX}
        assert [h.qualified_name for h in hits] == [
            "com.acme.Strings",
            "com.acme.Strings",
            "com.acme.util.StringUtilsHelper",
        ]

    @pytest.mark.asyncio
    async def test_shadowed_names_ordered_by_archive(
        self, indexed_repo, queries: QueryService
    ) -> None:
        hits = await queries.search_by_name_or_package("com.acme.Strings", 10)
        assert [h.archive_path for h in hits] == [
            str(indexed_repo.acme_core),
            str(indexed_repo.acme_extra),
        ]
        assert all(h.tier == MatchTier.EXACT for h in hits)

    @pytest.mark.asyncio
    async def test_case_insensitive_by_default(self, indexed_repo, queries: QueryService) -> None:
        hits = await queries.search_by_name_or_package("stringutils", 10)
        assert hits[0].qualified_name == "StringUtils"
        assert hits[0].tier == MatchTier.EXACT
        assert len(hits) == 3

    @pytest.mark.asyncio
    async def test_case_sensitive_mode(self, indexed_repo, reader_store: ClassStore) -> None:
        service = QueryService(reader_store, case_sensitive=True)

        assert await service.search_by_name_or_package("stringutils", 10) == []
        hits = await service.search_by_name_or_package("StringUtils", 10)
        assert [h.qualified_name for h in hits][0] == "StringUtils"

    @pytest.mark.asyncio
    async def test_limit_applies_after_ranking(self, indexed_repo, queries: QueryService) -> None:
        hits = await queries.search_by_name_or_package("StringUtils", 1)
        assert [h.qualified_name for h in hits] == ["StringUtils"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, -5])
    async def test_non_positive_limit_returns_nothing(
        self, indexed_repo, queries: QueryService, limit: int
    ) -> None:
        assert await queries.search_by_name_or_package("String", limit) == []

    @pytest.mark.asyncio
    async def test_empty_query_returns_nothing(self, indexed_repo, queries: QueryService) -> None:
        assert await queries.search_by_name_or_package("", 10) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["%", "_", "String%Utils"])
    async def test_wildcards_match_literally(
        self, indexed_repo, queries: QueryService, query: str
    ) -> None:
        assert await queries.search_by_name_or_package(query, 10) == []

    @pytest.mark.asyncio
    async def test_empty_store(self, queries: QueryService) -> None:
        assert await queries.search_by_name_or_package("Foo", 10) == []


class TestSearchByPackagePrefix:
    @pytest.mark.asyncio
    async def test_lists_subpackages_in_name_order(
        self, indexed_repo, queries: QueryService
    ) -> None:
        results = await queries.search_by_package_prefix("org.apache.commons.lang3", 10)
        assert [r.qualified_name for r in results] == [
            "org.apache.commons.lang3.StringEscapeUtils",
            "org.apache.commons.lang3.StringUtils",
            "org.apache.commons.lang3.text.WordUtils",
        ]

    @pytest.mark.asyncio
    async def test_limit(self, indexed_repo, queries: QueryService) -> None:
        assert len(await queries.search_by_package_prefix("org", 2)) == 2
        assert await queries.search_by_package_prefix("org", 0) == []


class TestGetDetail:
    """Exact qualified-name lookups."""

    @pytest.mark.asyncio
    async def test_returns_first_archive_and_lists_others(
        self, indexed_repo, queries: QueryService
    ) -> None:
        detail = await queries.get_detail("com.acme.Strings")

        assert detail is not None
        assert detail.package_name == "com.acme"
        assert detail.archive_path == str(indexed_repo.acme_core)
        assert detail.other_archives == [str(indexed_repo.acme_extra)]
        assert detail.methods == []
        assert detail.fields == []
        assert detail.last_modified.tzinfo is not None

    @pytest.mark.asyncio
    async def test_unknown_name_returns_none(self, indexed_repo, queries: QueryService) -> None:
        assert await queries.get_detail("com.acme.Missing") is None

    @pytest.mark.asyncio
    async def test_lookup_is_case_sensitive(self, indexed_repo, queries: QueryService) -> None:
        assert await queries.get_detail("com.acme.strings") is None

    @pytest.mark.asyncio
    async def test_malformed_member_list_degrades_to_empty(
        self, indexed_repo, writer_store: ClassStore, queries: QueryService
    ) -> None:
        """Given a corrupt methods column, when read, then methods are empty."""
        # Given
        with writer_store.engine.connect() as conn:
            conn.execute(
                text(
                    "UPDATE units SET methods_json = 'not json', fields_json = '{\"a\": 1}' "
                    "WHERE qualified_name = 'StringUtils'"
                )
            )
            conn.commit()

        # When
        detail = await queries.get_detail("StringUtils")

        # Then
        assert detail is not None
        assert detail.methods == []
        assert detail.fields == []


class TestGetPayload:
    @pytest.mark.asyncio
    async def test_base64_of_first_archive(
        self, indexed_repo, queries: QueryService, class_bytes: bytes
    ) -> None:
        payload = await queries.get_payload("com.acme.Strings")

        assert payload is not None
        assert payload.archive_path == str(indexed_repo.acme_core)
        assert payload.encoding == "base64"
        assert base64.b64decode(payload.content) == class_bytes
        assert payload.size_bytes == len(class_bytes)

    @pytest.mark.asyncio
    async def test_archive_filter(self, indexed_repo, queries: QueryService) -> None:
        payload = await queries.get_payload("com.acme.Strings", str(indexed_repo.acme_extra))

        assert payload is not None
        assert base64.b64decode(payload.content) == b"\xca\xfe\xba\xbe-extra"

    @pytest.mark.asyncio
    async def test_archive_filter_without_match(
        self, indexed_repo, queries: QueryService
    ) -> None:
        assert await queries.get_payload("com.acme.Strings", str(indexed_repo.lang3)) is None

    @pytest.mark.asyncio
    async def test_unknown_class(self, indexed_repo, queries: QueryService) -> None:
        assert await queries.get_payload("com.acme.Nope") is None


class TestStatistics:
    @pytest.mark.asyncio
    async def test_distinct_counts(self, indexed_repo, queries: QueryService) -> None:
        stats = await queries.get_statistics()
        # packages: lang3, lang3.text, com.acme, com.acme.util and the default package
        assert stats == StoreStatistics(classes=6, packages=5, archives=3)

    @pytest.mark.asyncio
    async def test_empty_store(self, queries: QueryService) -> None:
        assert await queries.get_statistics() == StoreStatistics()


class TestClosedService:
    @pytest.mark.asyncio
    async def test_query_after_close_raises_storage_error(self, queries: QueryService) -> None:
        queries.close()
        with pytest.raises(StorageError):
            await queries.get_statistics()

    def test_rejects_writable_store(self, writer_store: ClassStore) -> None:
        with pytest.raises(ValueError, match="read-only"):
            QueryService(writer_store)
