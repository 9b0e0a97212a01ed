"""Entry naming rules and member decoding.

Archive entries map to qualified names by path: ``com/acme/Foo.class``
becomes ``com.acme.Foo`` in package ``com.acme``. Nested units
(``Foo$Inner``) and descriptor entries (``module-info``) are not indexed.

Member extraction is pluggable. The default decoder returns empty method
and field lists; structural decoding of the payload is intentionally not
performed.
"""

from __future__ import annotations

from typing import Protocol

from jarplane.config.constants import DESCRIPTOR_UNITS, NESTED_UNIT_MARKER, UNIT_SUFFIX


def qualified_name_for(entry_name: str) -> str | None:
    """Derive the qualified name of an archive entry.

    Returns None for directories, non-unit entries, nested units and
    descriptors.
    """
    if entry_name.endswith("/") or not entry_name.endswith(UNIT_SUFFIX):
        return None
    stem = entry_name[: -len(UNIT_SUFFIX)].strip("/")
    if not stem:
        return None
    qualified_name = stem.replace("\\", "/").replace("/", ".")
    if NESTED_UNIT_MARKER in qualified_name:
        return None
    if simple_name_of(qualified_name) in DESCRIPTOR_UNITS:
        return None
    return qualified_name


def package_of(qualified_name: str) -> str:
    """Package part of a qualified name; empty for the default package."""
    head, sep, _ = qualified_name.rpartition(".")
    return head if sep else ""


def simple_name_of(qualified_name: str) -> str:
    return qualified_name.rpartition(".")[2]


class MemberDecoder(Protocol):
    """Extracts method and field signatures from a unit payload."""

    def decode(self, payload: bytes) -> tuple[list[str], list[str]]: ...


class NullMemberDecoder:
    """Decoder that records no members."""

    def decode(self, payload: bytes) -> tuple[list[str], list[str]]:  # noqa: ARG002
        return [], []
