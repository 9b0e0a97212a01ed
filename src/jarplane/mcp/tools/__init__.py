"""Tool handlers. Importing this package registers every tool."""

from jarplane.mcp.tools import cache, classes

__all__ = ["cache", "classes"]
