"""Incremental archive scanner.

Walks the repository tree, opens every archive whose modification time is
newer than what the store recorded for it, and upserts one UnitRecord per
top-level unit entry.

Failure isolation:
- A directory that cannot be read is logged and its subtree skipped.
- An archive that cannot be opened, or has an unreadable entry, is logged
  and skipped as a whole; the scan continues and the returned ScanStats do
  not mention it.
- Store failures are not archive-local and propagate as StorageError.

Archives and their entries are processed strictly one after another; the
scanner is the only writer of the store.
"""

from __future__ import annotations

import asyncio
import json
import os
import time
import zipfile
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from jarplane.core.errors import ArchiveError
from jarplane.index._internal.db import ClassStore
from jarplane.index.decoder import (
    MemberDecoder,
    NullMemberDecoder,
    package_of,
    qualified_name_for,
)
from jarplane.index.models import ScanStats, UnitRecord

if TYPE_CHECKING:
    from jarplane.config.models import JarPlaneConfig

logger = structlog.get_logger()

# Errors zipfile can raise for a damaged or unsupported container
_ARCHIVE_ERRORS = (
    zipfile.BadZipFile,
    zlib.error,
    OSError,
    EOFError,
    RuntimeError,
    NotImplementedError,
    ValueError,
)


@dataclass
class WalkResult:
    """Archives found under a root plus the directories that could not be read."""

    archives: list[Path] = field(default_factory=list)
    failed_dirs: list[Path] = field(default_factory=list)


class ArchiveScanner:
    """Keeps the class store consistent with the archives on disk.

    Usage::

        scanner = ArchiveScanner(repo_root, ClassStore(db_path))
        scanner.open()
        stats = await scanner.scan()
        scanner.close()
    """

    def __init__(
        self,
        repository_path: Path,
        store: ClassStore,
        *,
        archive_extension: str = ".jar",
        follow_symlinks: bool = False,
        decoder: MemberDecoder | None = None,
    ) -> None:
        if store.read_only:
            msg = "ArchiveScanner requires a writable ClassStore"
            raise ValueError(msg)
        self.repository_path = repository_path
        self.store = store
        self.archive_extension = archive_extension
        self.follow_symlinks = follow_symlinks
        self.decoder: MemberDecoder = decoder or NullMemberDecoder()

    @classmethod
    def from_config(
        cls, config: JarPlaneConfig, *, decoder: MemberDecoder | None = None
    ) -> ArchiveScanner:
        return cls(
            config.repository_path,
            ClassStore.from_config(config.store),
            archive_extension=config.repository.archive_extension,
            follow_symlinks=config.repository.follow_symlinks,
            decoder=decoder,
        )

    def open(self) -> None:
        self.store.open()

    def close(self) -> None:
        self.store.close()

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------

    async def scan(self, force: bool = False, *, prune: bool = False) -> ScanStats:
        """Bring the store up to date with the repository.

        Args:
            force: Rescan every archive regardless of modification time.
            prune: Afterwards delete records of archives no longer on disk.
                Skipped when any directory could not be read.

        Returns:
            ScanStats with archives scanned and units inserted/updated.
        """
        start_time = time.perf_counter()
        walk = self.find_archives()
        scanned = 0
        new_units = 0
        updated_units = 0
        skipped = 0

        logger.info(
            "scan_started",
            root=str(self.repository_path),
            archives=len(walk.archives),
            force=force,
        )

        for archive in walk.archives:
            # Suspension point between archives; signal handlers run here
            await asyncio.sleep(0)

            try:
                mtime = int(archive.stat().st_mtime)
            except OSError as e:
                logger.warning("archive_stat_failed", archive=str(archive), error=str(e))
                skipped += 1
                continue

            archive_key = str(archive)
            if not force and not self.store.is_stale(archive_key, mtime):
                continue

            try:
                records = self.read_units(archive, mtime)
            except ArchiveError as e:
                logger.warning("archive_skipped", archive=archive_key, error=e.message)
                skipped += 1
                continue

            result = self.store.upsert_many(archive_key, records)
            scanned += 1
            new_units += result.inserted
            updated_units += result.updated
            logger.debug(
                "archive_scanned",
                archive=archive_key,
                units=len(records),
                inserted=result.inserted,
                updated=result.updated,
            )

        if prune:
            if walk.failed_dirs:
                logger.warning("prune_skipped", failed_dirs=len(walk.failed_dirs))
            else:
                purged = self.store.purge_missing_archives(str(a) for a in walk.archives)
                logger.info("prune_complete", rows_deleted=purged)

        elapsed_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            "scan_complete",
            scanned_archives=scanned,
            new_units=new_units,
            updated_units=updated_units,
            skipped_archives=skipped,
            elapsed_ms=elapsed_ms,
        )
        return ScanStats(
            scanned_archives=scanned,
            new_units=new_units,
            updated_units=updated_units,
        )

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def find_archives(self) -> WalkResult:
        """Recursively collect archives under the repository root, sorted by path."""
        result = WalkResult()
        self._walk(self.repository_path, result)
        result.archives.sort()
        return result

    def _walk(self, directory: Path, result: WalkResult) -> None:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.warning("directory_read_failed", directory=str(directory), error=str(e))
            result.failed_dirs.append(directory)
            return

        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=self.follow_symlinks):
                    self._walk(Path(entry.path), result)
                elif entry.is_file() and entry.name.endswith(self.archive_extension):
                    result.archives.append(Path(entry.path))
            except OSError as e:
                logger.warning("directory_entry_failed", path=entry.path, error=str(e))

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def read_units(self, archive_path: Path, last_modified: int) -> list[UnitRecord]:
        """Read every top-level unit of one archive, one entry at a time.

        Raises:
            ArchiveError: The container or one of its unit entries is unreadable.
        """
        records: list[UnitRecord] = []
        try:
            with zipfile.ZipFile(archive_path) as zf:
                for info in zf.infolist():
                    if info.is_dir():
                        continue
                    qualified_name = qualified_name_for(info.filename)
                    if qualified_name is None:
                        continue
                    payload = self._read_entry(zf, info, archive_path)
                    records.append(
                        self._build_record(qualified_name, archive_path, payload, last_modified)
                    )
        except ArchiveError:
            raise
        except _ARCHIVE_ERRORS as e:
            raise ArchiveError.unreadable(str(archive_path), str(e)) from e
        return records

    def _read_entry(self, zf: zipfile.ZipFile, info: zipfile.ZipInfo, archive_path: Path) -> bytes:
        try:
            with zf.open(info) as fh:
                return fh.read()
        except _ARCHIVE_ERRORS as e:
            raise ArchiveError.entry_unreadable(str(archive_path), info.filename, str(e)) from e

    def _build_record(
        self,
        qualified_name: str,
        archive_path: Path,
        payload: bytes,
        last_modified: int,
    ) -> UnitRecord:
        try:
            methods, fields = self.decoder.decode(payload)
        except Exception as e:
            raise ArchiveError.entry_unreadable(
                str(archive_path), qualified_name, f"member decoding failed: {e}"
            ) from e
        return UnitRecord(
            qualified_name=qualified_name,
            package_name=package_of(qualified_name),
            archive_path=str(archive_path),
            methods_json=json.dumps(list(methods)),
            fields_json=json.dumps(list(fields)),
            payload=payload,
            last_modified=last_modified,
        )
