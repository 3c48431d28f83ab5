from __future__ import annotations

import csv
import io
import math
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from xrf_processor.models.row_data import RawGrid

"""Spreadsheet reader: workbook -> RawGrid.

The first sheet is read with ``header=None`` so no row is interpreted yet;
header detection happens later on the raw grid. Cells come back as plain
Python values: blanks become ``""``, dates become ``datetime`` and numpy
scalars are unwrapped.

CSV exports are converted to an in-memory XLSX workbook first (text cells kept
as text) and then go through exactly the same path as native workbooks.
"""

__all__ = [
    "CSV_SUFFIXES",
    "EXCEL_SUFFIXES",
    "GridReadError",
    "GridSheet",
    "csv_to_xlsx_bytes",
    "is_csv_file",
    "read_grid",
    "read_grid_bytes",
]

EXCEL_SUFFIXES = {".xlsx", ".xlsm", ".xls"}
CSV_SUFFIXES = {".csv"}


class GridReadError(Exception):
    """Raised when a file cannot be opened or decoded as a spreadsheet."""


@dataclass(frozen=True)
class GridSheet:
    sheet_name: str
    rows: RawGrid


def is_csv_file(path: Path) -> bool:
    return path.suffix.lower() in CSV_SUFFIXES


def _native_cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, pd.Timestamp):
        return "" if pd.isna(value) else value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, np.bool_):
        return bool(value)
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, (float, np.floating)):
        v = float(value)
        return "" if math.isnan(v) else v
    if value is pd.NaT:
        return ""
    return value


def _frame_to_grid(df: pd.DataFrame) -> RawGrid:
    grid: RawGrid = []
    for raw in df.astype(object).itertuples(index=False, name=None):
        row = [_native_cell(v) for v in raw]
        # trailing blanks carry no information
        while row and row[-1] == "":
            row.pop()
        grid.append(row)
    # trailing blank rows too
    while grid and not grid[-1]:
        grid.pop()
    return grid


def csv_to_xlsx_bytes(data: bytes, encoding: str = "utf-8") -> bytes:
    """Convert CSV bytes into an XLSX workbook (single sheet, text cells)."""
    text = data.decode(encoding, errors="replace").lstrip("\ufeff")
    records = list(csv.reader(io.StringIO(text)))
    width = max((len(r) for r in records), default=0)
    padded = [[c if c != "" else None for c in r] + [None] * (width - len(r)) for r in records]
    df = pd.DataFrame(padded)
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="Sheet1", header=False, index=False)
    return buf.getvalue()


def read_grid_bytes(data: bytes, *, csv_input: bool = False) -> GridSheet:
    """Read the first sheet of an in-memory workbook (or CSV) into a RawGrid."""
    if csv_input:
        data = csv_to_xlsx_bytes(data)
    try:
        xls = pd.ExcelFile(io.BytesIO(data))
        if not xls.sheet_names:
            return GridSheet(sheet_name="", rows=[])
        name = str(xls.sheet_names[0])
        df = xls.parse(xls.sheet_names[0], header=None)
    except Exception as e:
        raise GridReadError(f"cannot read workbook: {e}") from e
    return GridSheet(sheet_name=name, rows=_frame_to_grid(df))


def read_grid(path: Path) -> GridSheet:
    """Read ``path`` (.xlsx/.xls/.csv) into a GridSheet.

    Raises:
        GridReadError: unknown extension, missing file or undecodable content
    """
    suffix = path.suffix.lower()
    if suffix not in EXCEL_SUFFIXES | CSV_SUFFIXES:
        raise GridReadError(f"unsupported file type: {path.name}")
    try:
        data = path.read_bytes()
    except OSError as e:
        raise GridReadError(f"cannot open {path}: {e}") from e
    return read_grid_bytes(data, csv_input=suffix in CSV_SUFFIXES)
