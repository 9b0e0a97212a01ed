"""Index module - archive scanning, storage and queries.

Public API:
- ArchiveScanner: incremental scan of the repository into the store
- QueryService: read-only search and lookups
- ClassStore: the SQLite store both of them wrap

Internal implementations are in `jarplane.index._internal/`.
"""

from jarplane.index._internal.db import ClassStore, create_additional_indexes
from jarplane.index.decoder import MemberDecoder, NullMemberDecoder, package_of, qualified_name_for
from jarplane.index.models import (
    ClassDetail,
    ClassPayload,
    ClassSummary,
    MatchTier,
    ScanStats,
    SearchHit,
    StoreStatistics,
    UnitRecord,
    UpsertResult,
)
from jarplane.index.queries import QueryService
from jarplane.index.scanner import ArchiveScanner

__all__ = [
    "ArchiveScanner",
    "ClassDetail",
    "ClassPayload",
    "ClassStore",
    "ClassSummary",
    "MatchTier",
    "MemberDecoder",
    "NullMemberDecoder",
    "QueryService",
    "ScanStats",
    "SearchHit",
    "StoreStatistics",
    "UnitRecord",
    "UpsertResult",
    "create_additional_indexes",
    "package_of",
    "qualified_name_for",
]
