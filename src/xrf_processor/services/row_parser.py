from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timedelta
from typing import Any

import pandas as pd

from xrf_processor.models.parse_result import (
    CalibrationSkip,
    JunkReason,
    JunkSkip,
    RowError,
    RowOutcome,
)
from xrf_processor.models.reading import LEAD_POSITIVE_THRESHOLD, Reading
from xrf_processor.models.row_data import RowData, cell_text

"""Per-row coercion and classification.

Checks run in a fixed order and the first match wins:

1. calibration / standard shot      -> CalibrationSkip
2. no component text                -> JunkSkip(noComponent)
3. lead value cannot be coerced     -> JunkSkip(noLeadContent)
4. otherwise                        -> Reading

Anything unexpected raised while building the Reading becomes a RowError for
that row only.
"""

__all__ = [
    "CALIBRATION_VALUES",
    "EXCEL_EPOCH",
    "NEGATIVE_TOKENS",
    "POSITIVE_TOKENS",
    "POSITIVE_TOKEN_VALUE",
    "build_location",
    "coerce_lead_content",
    "is_calibration_row",
    "parse_row",
    "parse_timestamp",
]

logger = logging.getLogger(__name__)

# Kept clear of both the threshold and the calibration check values
POSITIVE_TOKEN_VALUE = round(LEAD_POSITIVE_THRESHOLD + 0.05, 2)
POSITIVE_TOKENS = frozenset({"pos", "positive", "assumed", "assumed positive"})
NEGATIVE_TOKENS = frozenset({"neg", "negative", "n/a", "-"})

# Reference-standard check values reported on rows without a component
CALIBRATION_VALUES = (1.0, 1.1, 1.2)
_CALIBRATION_SUBSTRINGS = ("calibrate", "calib", "standard")
_CALIBRATION_EXACT = frozenset({"cal", "cal."})
_CALIBRATION_ID_SUBSTRINGS = ("calibrate", "calib")

# Spreadsheet serial dates count days from this epoch
EXCEL_EPOCH = datetime(1899, 12, 30)

_UNIT_RE = re.compile(r"mg/cm[²2]|ppm", re.IGNORECASE)
_NOISE_RE = re.compile(r"[<>,]")
_LEADING_NUMBER_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


def coerce_lead_content(value: Any) -> float | None:
    """Turn a lead cell into mg/cm².

    Numbers pass through, booleans map to just-above-threshold / 0,
    positive/negative tokens likewise, other text is stripped of units,
    comparison signs and thousands separators and its leading number parsed.

    Returns:
        The lead value, or None when nothing usable is in the cell
    """
    if isinstance(value, bool):
        return POSITIVE_TOKEN_VALUE if value else 0.0
    if isinstance(value, (int, float)):
        v = float(value)
        return None if math.isnan(v) else v
    if not isinstance(value, str):
        return None

    lowered = value.strip().lower()
    if lowered in POSITIVE_TOKENS:
        return POSITIVE_TOKEN_VALUE
    if lowered in NEGATIVE_TOKENS:
        return 0.0

    cleaned = _NOISE_RE.sub("", _UNIT_RE.sub("", value)).strip()
    m = _LEADING_NUMBER_RE.match(cleaned)
    if not m:
        return None
    return float(m.group(0))


def is_calibration_row(component: str, lead_value: Any, reading_id: str = "") -> bool:
    comp = component.strip().lower()
    rid = reading_id.strip().lower()
    if any(s in comp for s in _CALIBRATION_SUBSTRINGS) or comp in _CALIBRATION_EXACT:
        return True
    if any(s in rid for s in _CALIBRATION_ID_SUBSTRINGS):
        return True
    if not comp:
        return coerce_lead_content(lead_value) in CALIBRATION_VALUES
    return False


def parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        if not value or math.isnan(value):
            return None
        try:
            return EXCEL_EPOCH + timedelta(days=float(value))
        except (OverflowError, ValueError):
            # out of the serial date range (e.g. epoch seconds)
            return None
    if isinstance(value, str):
        parsed = pd.to_datetime(value.strip(), errors="coerce")
        if pd.isna(parsed):
            return None
        return parsed.to_pydatetime()
    return None


def build_location(unit_number: str, room_type: str, room_number: str) -> str | None:
    """``Unit <u> - <roomType> <roomNumber>``; ``Room <n>`` when only a number is known."""
    parts: list[str] = []
    if unit_number:
        parts.append(f"Unit {unit_number}")
    if room_type:
        parts.append(f"{room_type} {room_number}" if room_number else room_type)
    elif room_number:
        parts.append(f"Room {room_number}")
    return " - ".join(parts) or None


def _json_safe(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return None
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def _source_row(row: RowData, raw_reading_id: str) -> dict[str, Any]:
    source = {str(k): _json_safe(v) for k, v in (row.raw_values or {}).items() if k}
    source["originalReadingId"] = raw_reading_id
    return source


def _build_reading(row: RowData, raw_id: str, component: str, lead: float) -> Reading:
    unit_number = row.text("unitNumber")
    room_type = row.text("roomType")
    room_number = row.text("roomNumber")
    location = row.text("location") or build_location(unit_number, room_type, room_number)
    return Reading(
        id=f"{raw_id}_{row.index}" if raw_id else f"Row_{row.index}",
        component=component,
        color=row.text("color") or "Unknown",
        lead_content=lead,
        location=location,
        unit_number=unit_number or None,
        room_type=room_type or None,
        room_number=room_number or None,
        substrate=row.text("substrate") or None,
        side=row.text("side") or None,
        condition=row.text("condition") or None,
        timestamp=parse_timestamp(row.get("timestamp")),
        source_row=_source_row(row, raw_id),
    )


def parse_row(row: RowData) -> RowOutcome:
    """Classify one mapped data row; never raises."""
    try:
        raw_id = row.text("readingId")
        component = row.text("component")
        lead_raw = row.get("leadContent")

        if is_calibration_row(component, lead_raw, raw_id):
            return CalibrationSkip(row_number=row.row_number, reading_id=raw_id, component=component)

        lead = coerce_lead_content(lead_raw)
        if not component:
            return JunkSkip(row_number=row.row_number, reason=JunkReason.NO_COMPONENT)
        if lead is None:
            return JunkSkip(row_number=row.row_number, reason=JunkReason.NO_LEAD_CONTENT)

        return _build_reading(row, raw_id, component, lead)
    except Exception as e:
        logger.debug("row %d failed: %s", row.row_number, e)
        return RowError(row_number=row.row_number, message=f"Failed to parse row: {e}")
