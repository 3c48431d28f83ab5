from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""RowData model: one spreadsheet data row after column mapping.

``values`` is keyed by canonical field name (``readingId``, ``component``,
``leadContent`` ...). ``raw_values`` keeps the row keyed by the original header
text so the parsed Reading can carry its source row for traceability.
"""

__all__ = [
    "RawGrid",
    "RowData",
    "cell_text",
]

# Untyped 2-D cell grid as loaded from a workbook; only used before mapping
RawGrid = list[list[Any]]


@dataclass(frozen=True)
class RowData:
    """Mapped data row.

    ``row_number`` is the 1-based line number in the source sheet and
    ``index`` the 0-based position among the non-blank data rows.
    """
    row_number: int  # 1-based spreadsheet line
    index: int  # position among data rows (feeds the reading id)
    values: dict[str, Any]  # canonical field -> cell value
    raw_values: dict[str, Any] | None = None  # header text -> cell value

    def get(self, field: str) -> Any:
        return self.values.get(field)

    def text(self, field: str) -> str:
        """Cell for ``field`` rendered as stripped text ("" when blank)."""
        return cell_text(self.values.get(field))


def cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        # spreadsheets store "12" as 12.0
        return str(int(value))
    return str(value).strip()
