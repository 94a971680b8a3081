"""Parsed deposit table.

All parsers (CSV, Excel, PDF) produce a ParsedTable: one header row plus
data rows of strings aligned positionally to the headers. The table lives
only for the duration of an import and is never persisted.
"""

from datetime import datetime, time
from typing import Any, List, Optional

from pydantic import BaseModel, Field, model_validator


def cell_to_string(value: Any) -> str:
    """Render a raw cell value as text.

    None becomes '', strings are kept verbatim, integral floats lose
    their '.0' so spreadsheet numbers read the same as in CSV exports.
    Datetimes at midnight render as plain dates.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime) and value.time() == time.min:
        return value.date().isoformat()
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def is_blank_row(row: List[str]) -> bool:
    """True if every cell of the row is empty after trimming."""
    return not any(cell.strip() for cell in row)


class ParsedTable(BaseModel):
    """Header row plus data rows.

    Invariant: every row has exactly len(headers) cells. Short rows are
    padded with '' and overlong rows truncated on construction.
    """

    headers: List[str] = Field(..., description="Header cells in file order (not necessarily unique)")
    rows: List[List[str]] = Field(default_factory=list, description="Data rows aligned to headers")

    @model_validator(mode="after")
    def align_rows(self) -> "ParsedTable":
        width = len(self.headers)
        self.rows = [
            (row + [""] * (width - len(row)))[:width]
            for row in self.rows
        ]
        return self

    def column_index(self, header: str) -> Optional[int]:
        """Index of the first column with exactly this header, or None."""
        try:
            return self.headers.index(header)
        except ValueError:
            return None

    def column_values(self, header: str) -> List[str]:
        """All values of the first column with exactly this header."""
        index = self.column_index(header)
        if index is None:
            return []
        return [row[index] for row in self.rows]
