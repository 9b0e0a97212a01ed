"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages,
and provides repository/store fixtures shared by every test package.
"""

import os
import sys
import zipfile
from collections.abc import Callable, Generator
from dataclasses import dataclass
from pathlib import Path

import pytest
import pytest_asyncio

# Insert local src directory at the beginning of sys.path
# This ensures that the local jarplane package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of jarplane modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("jarplane"):
        del sys.modules[module_name]

from jarplane.config.models import JarPlaneConfig  # noqa: E402
from jarplane.index import ArchiveScanner, ClassStore, QueryService  # noqa: E402

# A few bytes that look like the start of a class file
CLASS_BYTES = b"\xca\xfe\xba\xbe\x00\x00\x00\x34"

JarBuilder = Callable[..., Path]


@pytest.fixture
def class_bytes() -> bytes:
    return CLASS_BYTES


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    """Empty Maven-style repository root."""
    path = tmp_path / "repository"
    path.mkdir()
    return path


@pytest.fixture
def make_jar(repo_dir: Path) -> JarBuilder:
    """Factory writing a jar under the repository.

    Usage: make_jar("org/acme/lib/1.0/lib-1.0.jar", ["org/acme/Foo.class", ...])
    Entries may also be given as a dict of name -> bytes.
    """

    def _make(
        relative: str,
        entries: list[str] | dict[str, bytes],
        mtime: float | None = None,
    ) -> Path:
        path = repo_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        contents = entries if isinstance(entries, dict) else dict.fromkeys(entries, CLASS_BYTES)
        with zipfile.ZipFile(path, "w") as zf:
            for name, data in contents.items():
                zf.writestr(name, data)
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path

    return _make


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "cache" / "cache.db"


@pytest.fixture
def writer_store(store_path: Path) -> Generator[ClassStore, None, None]:
    """Writable store with schema created."""
    store = ClassStore(store_path)
    store.open()
    yield store
    store.close()


@pytest.fixture
def reader_store(writer_store: ClassStore) -> Generator[ClassStore, None, None]:
    """Read-only handle on the same file as writer_store."""
    store = ClassStore(writer_store.db_path, read_only=True)
    store.open()
    yield store
    store.close()


@pytest.fixture
def scanner(repo_dir: Path, writer_store: ClassStore) -> ArchiveScanner:
    return ArchiveScanner(repo_dir, writer_store)


@pytest.fixture
def queries(reader_store: ClassStore) -> QueryService:
    return QueryService(reader_store)


@pytest.fixture
def config(repo_dir: Path, store_path: Path) -> JarPlaneConfig:
    """Configuration pointing at the temporary repository and store."""
    return JarPlaneConfig.model_validate(
        {"repository": {"path": str(repo_dir)}, "store": {"path": str(store_path)}}
    )


@dataclass
class IndexedRepo:
    """Archives written by the indexed_repo fixture."""

    lang3: Path
    acme_core: Path
    acme_extra: Path


@pytest_asyncio.fixture
async def indexed_repo(make_jar: JarBuilder, scanner: ArchiveScanner) -> IndexedRepo:
    """Three archives scanned into the store.

    commons-lang3: org.apache.commons.lang3.{StringUtils,StringEscapeUtils},
                   org.apache.commons.lang3.text.WordUtils
    acme-core:     com.acme.Strings, com.acme.util.StringUtilsHelper, StringUtils
    acme-extra:    com.acme.Strings (shadows acme-core)
    """
    repo = IndexedRepo(
        lang3=make_jar(
            "org/apache/commons/commons-lang3/3.12.0/commons-lang3-3.12.0.jar",
            [
                "org/apache/commons/lang3/StringUtils.class",
                "org/apache/commons/lang3/StringUtils$1.class",
                "org/apache/commons/lang3/StringEscapeUtils.class",
                "org/apache/commons/lang3/text/WordUtils.class",
            ],
        ),
        acme_core=make_jar(
            "com/acme/acme-core/1.0/acme-core-1.0.jar",
            [
                "com/acme/Strings.class",
                "com/acme/util/StringUtilsHelper.class",
                "StringUtils.class",
            ],
        ),
        acme_extra=make_jar(
            "com/acme/acme-extra/1.0/acme-extra-1.0.jar",
            {"com/acme/Strings.class": b"\xca\xfe\xba\xbe-extra"},
        ),
    )
    await scanner.scan()
    return repo
