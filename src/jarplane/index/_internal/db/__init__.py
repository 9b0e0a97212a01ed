"""Database layer for the index."""

from jarplane.index._internal.db.database import ClassStore
from jarplane.index._internal.db.indexes import create_additional_indexes

__all__ = [
    "ClassStore",
    "create_additional_indexes",
]
