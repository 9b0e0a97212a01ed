"""Additional index creation for query performance.

These indexes complement the single-column indexes declared via
Field(index=True) on UnitRecord. They cover query patterns that cannot be
expressed as a plain column index.

Call create_additional_indexes() after the schema exists.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import text

if TYPE_CHECKING:
    from sqlalchemy import Engine


ADDITIONAL_INDEXES = [
    # Staleness check reads MIN(last_modified) per archive
    "CREATE INDEX IF NOT EXISTS idx_units_archive_mtime ON units(archive_path, last_modified)",
    # Case-insensitive LIKE prefix lookups can use a NOCASE index
    "CREATE INDEX IF NOT EXISTS idx_units_name_nocase ON units(qualified_name COLLATE NOCASE)",
    "CREATE INDEX IF NOT EXISTS idx_units_package_nocase ON units(package_name COLLATE NOCASE)",
]


def create_additional_indexes(engine: Engine) -> None:
    """Create additional indexes. Idempotent."""
    with engine.connect() as conn:
        for sql in ADDITIONAL_INDEXES:
            conn.execute(text(sql))
        conn.commit()
