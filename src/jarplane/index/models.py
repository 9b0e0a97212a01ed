"""SQLModel table and result types for the class index.

Single source of truth for the store schema. One table holds every
persisted unit; a unit is identified by (qualified_name, archive_path), so
the same class shipped in several archives is kept once per archive.

Member lists are stored as JSON text. The payload is the raw entry bytes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum

from sqlalchemy import Column, LargeBinary, UniqueConstraint
from sqlmodel import Field, SQLModel

# ============================================================================
# TABLES
# ============================================================================


class UnitRecord(SQLModel, table=True):
    """One compiled unit extracted from one archive."""

    __tablename__ = "units"
    __table_args__ = (
        UniqueConstraint("qualified_name", "archive_path", name="uq_units_name_archive"),
    )

    id: int | None = Field(default=None, primary_key=True)
    qualified_name: str = Field(index=True)
    package_name: str = Field(default="", index=True)
    archive_path: str = Field(index=True)
    methods_json: str = Field(default="[]")
    fields_json: str = Field(default="[]")
    payload: bytes = Field(default=b"", sa_column=Column(LargeBinary, nullable=False))
    last_modified: int = Field(default=0)
    created_at: int = Field(default=0)


# ============================================================================
# ENUMS
# ============================================================================


class MatchTier(IntEnum):
    """Ranking tier of a search hit. Lower sorts first."""

    EXACT = 1
    NAME_PREFIX = 2
    PACKAGE_PREFIX = 3
    SUBSTRING = 4

    @property
    def label(self) -> str:
        return {
            MatchTier.EXACT: "exact name",
            MatchTier.NAME_PREFIX: "name prefix",
            MatchTier.PACKAGE_PREFIX: "package prefix",
            MatchTier.SUBSTRING: "substring",
        }[self]


# ============================================================================
# RESULT TYPES
# ============================================================================


@dataclass(frozen=True)
class ScanStats:
    """Counters returned by one scan.

    Archives that failed to open are logged and not counted anywhere.
    """

    scanned_archives: int = 0
    new_units: int = 0
    updated_units: int = 0


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of persisting one archive's units."""

    inserted: int = 0
    updated: int = 0


@dataclass(frozen=True)
class ClassSummary:
    """Identity of a stored unit."""

    qualified_name: str
    package_name: str
    archive_path: str


@dataclass(frozen=True)
class SearchHit:
    """A ranked search result."""

    qualified_name: str
    package_name: str
    archive_path: str
    tier: MatchTier
    methods: list[str] = field(default_factory=list)
    fields: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ClassDetail:
    """Full record for one qualified name, timestamps decoded."""

    qualified_name: str
    package_name: str
    archive_path: str
    methods: list[str]
    fields: list[str]
    last_modified: datetime
    created_at: datetime
    other_archives: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ClassPayload:
    """Raw unit bytes in a transport encoding."""

    qualified_name: str
    archive_path: str
    content: str
    encoding: str = "base64"
    size_bytes: int = 0


@dataclass(frozen=True)
class StoreStatistics:
    """Distinct counts across the store."""

    classes: int = 0
    packages: int = 0
    archives: int = 0
