"""Base classes for tool parameters."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BaseParams(BaseModel):
    """Base class for all tool parameters.

    Uses extra="forbid" to reject unknown fields with clear errors. Fields
    may declare camelCase aliases; both spellings are accepted.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


def require_text(value: str, field_name: str) -> str:
    """Strip value and reject it when nothing is left."""
    stripped = value.strip()
    if not stripped:
        raise ValueError(f"{field_name} must not be empty")
    return stripped
