"""
Parse-boundary result for CSV rows.

Transforms turn each raw row into either a keyed record or an
``InvalidRow`` carrying the reason, so downstream code never re-checks
field presence.
"""

from pydantic import BaseModel, Field


class InvalidRow(BaseModel):
    """
    A row rejected while parsing.

    Attributes:
        row_number: 1-based line number in the file (header is line 1)
        reason: Why the row was rejected
        raw: The row as read
    """

    row_number: int = Field(..., ge=1)
    reason: str
    raw: dict[str, str] | list[str] = Field(default_factory=dict)
