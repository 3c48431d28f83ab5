from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from xrf_processor.config.column_aliases import DEFAULT_COLUMN_ALIASES, HEADER_SCORING_FIELDS
from xrf_processor.models.row_data import RawGrid, cell_text

"""Header row detection.

Device exports often put a metadata banner (company, model, serial number ...)
above the real column headers, so the header row cannot be assumed to be the
first one. Each row in the scan window is scored by how many of its text cells
exactly match a reading-id, component, lead or color alias; the best row with
at least two matches wins, and the earliest row wins ties.

One device family always writes its banner in rows 1-6 and the headers on
row 7; when the first cell looks like such a banner that row is scored as well
explicitly.
"""

__all__ = [
    "BANNER_MARKERS",
    "DEFAULT_SCAN_ROWS",
    "DEVICE_HEADER_ROW_INDEX",
    "HeaderDetection",
    "MIN_HEADER_MATCHES",
    "header_alias_set",
    "locate_header",
    "looks_like_device_banner",
    "score_row",
]

DEFAULT_SCAN_ROWS = 25
MIN_HEADER_MATCHES = 2
DEVICE_HEADER_ROW_INDEX = 6  # 0-based, spreadsheet row 7
BANNER_MARKERS = ("company", "model", "viken", "pb200", "serial")

LOW_CONFIDENCE_WARNING = "Could not clearly identify header row. Assuming first row contains headers."


@dataclass(frozen=True)
class HeaderDetection:
    row_index: int  # 0-based index into the grid
    headers: list[str]
    match_count: int
    confident: bool  # False when the row-0 fallback was used
    warnings: list[str] = field(default_factory=list)


def header_alias_set(aliases: Mapping[str, Sequence[str]] = DEFAULT_COLUMN_ALIASES) -> frozenset[str]:
    return frozenset(
        a.strip().lower() for name in HEADER_SCORING_FIELDS for a in aliases.get(name, ())
    )


def score_row(row: Sequence[Any], alias_set: frozenset[str]) -> int:
    """Number of text cells in ``row`` that are a known header spelling."""
    return sum(1 for cell in row if isinstance(cell, str) and cell.strip().lower() in alias_set)


def looks_like_device_banner(grid: RawGrid) -> bool:
    if not grid or not grid[0]:
        return False
    first = cell_text(grid[0][0]).lower()
    return any(marker in first for marker in BANNER_MARKERS)


def _header_labels(row: Sequence[Any]) -> list[str]:
    return [cell_text(c) for c in row]


def locate_header(
    grid: RawGrid,
    aliases: Mapping[str, Sequence[str]] = DEFAULT_COLUMN_ALIASES,
    scan_rows: int = DEFAULT_SCAN_ROWS,
) -> HeaderDetection:
    """Pick the header row of ``grid``.

    Args:
        grid: Raw cell grid, must contain at least one row
        aliases: Alias table used for scoring
        scan_rows: Number of leading rows considered

    Returns:
        HeaderDetection with the chosen row, its labels and any warnings
    """
    if not grid:
        raise ValueError("cannot locate a header in an empty grid")

    alias_set = header_alias_set(aliases)
    window = min(len(grid), scan_rows)

    best_index = 0
    best_count = 0
    found = False
    for i in range(window):
        count = score_row(grid[i], alias_set)
        if count >= MIN_HEADER_MATCHES and count > best_count:
            best_index, best_count, found = i, count, True

    if looks_like_device_banner(grid) and DEVICE_HEADER_ROW_INDEX < window:
        banner_count = score_row(grid[DEVICE_HEADER_ROW_INDEX], alias_set)
        if banner_count >= MIN_HEADER_MATCHES and (
            not found or best_index < DEVICE_HEADER_ROW_INDEX or banner_count >= best_count
        ):
            best_index, best_count, found = DEVICE_HEADER_ROW_INDEX, banner_count, True

    if not found:
        return HeaderDetection(
            row_index=0,
            headers=_header_labels(grid[0]),
            match_count=score_row(grid[0], alias_set),
            confident=False,
            warnings=[LOW_CONFIDENCE_WARNING],
        )

    warnings: list[str] = []
    if best_index > 0:
        warnings.append(
            f"Detected header row at row {best_index + 1} ({best_count} columns matched, "
            f"skipped {best_index} row(s) above)"
        )
    return HeaderDetection(
        row_index=best_index,
        headers=_header_labels(grid[best_index]),
        match_count=best_count,
        confident=True,
        warnings=warnings,
    )
