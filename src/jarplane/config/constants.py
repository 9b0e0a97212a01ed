"""Configuration constants.

This module contains truly constant values that should NOT be user-configurable.
These are protocol constraints, API stability limits, and implementation details.

For configurable values, see models.py (SearchConfig, StoreConfig, etc.).
"""

# =============================================================================
# Tool Limits
# =============================================================================

SEARCH_MAX_LIMIT = 1000
"""Maximum results for a single search_class call."""

SEARCH_DEFAULT_LIMIT = 50
"""Default results for search_class when no limit is given."""

# =============================================================================
# Protocol
# =============================================================================

PROTOCOL_VERSION = "2024-11-05"
"""Protocol revision reported by initialize."""

SERVER_NAME = "jarplane"
"""Server name reported by initialize."""

JSONRPC_VERSION = "2.0"

MAX_LINE_BYTES = 64 * 1024 * 1024
"""Upper bound for a single inbound request line."""

# =============================================================================
# Archive Layout
# =============================================================================

UNIT_SUFFIX = ".class"
"""Entry suffix of a compiled unit inside an archive."""

NESTED_UNIT_MARKER = "$"
"""Separator the compiler uses for nested and synthetic units."""

DESCRIPTOR_UNITS = frozenset({"module-info", "package-info"})
"""Simple names of descriptor entries that are not real units."""
