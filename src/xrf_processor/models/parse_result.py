from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .reading import Reading

"""Parse outcome models.

Every data row resolves to exactly one of ``Reading``, ``CalibrationSkip``,
``JunkSkip`` or ``RowError``. A whole file resolves to either a
``ParseBatch`` (success, possibly with row errors and warnings) or a
``ParseFailure`` (terminal, nothing usable was produced).
"""

__all__ = [
    "CalibrationSkip",
    "JunkReason",
    "JunkSkip",
    "ParseBatch",
    "ParseFailure",
    "ParseFailureReason",
    "ParseMetadata",
    "RowError",
    "RowOutcome",
]


class JunkReason(str, Enum):
    NO_COMPONENT = "noComponent"
    NO_LEAD_CONTENT = "noLeadContent"


class ParseFailureReason(str, Enum):
    READ_ERROR = "READ_ERROR"
    EMPTY_FILE = "EMPTY_FILE"
    NO_DATA_ROWS = "NO_DATA_ROWS"
    MISSING_REQUIRED_COLUMNS = "MISSING_REQUIRED_COLUMNS"


@dataclass(frozen=True)
class CalibrationSkip:
    """Calibration/standard shot; counted separately, never an error."""
    row_number: int
    reading_id: str
    component: str


@dataclass(frozen=True)
class JunkSkip:
    row_number: int
    reason: JunkReason


@dataclass(frozen=True)
class RowError:
    row_number: int
    message: str


RowOutcome = Reading | CalibrationSkip | JunkSkip | RowError


@dataclass(frozen=True)
class ParseMetadata:
    """Per-file counters and detection details.

    Invariant: ``valid_rows + len(errors) + skipped_rows == total_rows`` where
    ``skipped_rows == skipped_calibration + skipped_junk``.
    """
    total_rows: int
    valid_rows: int
    skipped_rows: int
    sheet_name: str
    header_row_index: int
    detected_columns: dict[str, str]  # canonical field -> header
    unmapped_columns: list[str]
    used_ai_mapping: bool = False
    ai_mapping_confidence: float | None = None
    skipped_calibration: int = 0
    skipped_junk: int = 0
    skipped_junk_reasons: dict[str, int] = field(
        default_factory=lambda: {r.value: 0 for r in JunkReason}
    )
    skipped_junk_rows: list[JunkSkip] = field(default_factory=list)


@dataclass(frozen=True)
class ParseBatch:
    readings: list[Reading]
    errors: list[RowError]
    warnings: list[str]
    metadata: ParseMetadata

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class ParseFailure:
    reason: ParseFailureReason
    errors: list[str]
    warnings: list[str] = field(default_factory=list)
    metadata: ParseMetadata | None = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return "; ".join(self.errors) or self.reason.value
