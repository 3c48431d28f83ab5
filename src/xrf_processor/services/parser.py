from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

from xrf_processor.config.column_aliases import DEFAULT_COLUMN_ALIASES
from xrf_processor.config.loader import ProcessingConfig
from xrf_processor.excel.header_locator import locate_header
from xrf_processor.excel.reader import GridReadError, read_grid
from xrf_processor.models.parse_result import (
    CalibrationSkip,
    JunkReason,
    JunkSkip,
    ParseBatch,
    ParseFailure,
    ParseFailureReason,
    ParseMetadata,
    RowError,
)
from xrf_processor.models.reading import Reading
from xrf_processor.models.row_data import RawGrid, RowData, cell_text
from xrf_processor.services.collaborators import ColumnMappingService
from xrf_processor.services.column_mapper import MissingRequiredColumnsError, map_columns, missing_required
from xrf_processor.services.row_parser import parse_row

"""Parse service: spreadsheet -> ParseBatch | ParseFailure.

Steps: read grid, locate header row, collect non-blank data rows below it,
map columns (static aliases, AI fallback), then classify every row. Progress
is reported and control yielded every ``chunk_size`` rows; yielding never
changes the order of the output.
"""

__all__ = [
    "ProgressCallback",
    "XrfParser",
]

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

SAMPLE_ROW_COUNT = 3


def _empty_metadata(sheet_name: str, header_row_index: int = 0) -> ParseMetadata:
    return ParseMetadata(
        total_rows=0,
        valid_rows=0,
        skipped_rows=0,
        sheet_name=sheet_name,
        header_row_index=header_row_index,
        detected_columns={},
        unmapped_columns=[],
    )


def _collect_data_rows(grid: RawGrid, header_index: int, headers: Sequence[str]) -> list[tuple[int, dict[str, Any]]]:
    """(1-based line, header -> cell) for each row below the header with any content."""
    rows: list[tuple[int, dict[str, Any]]] = []
    for i in range(header_index + 1, len(grid)):
        cells = grid[i]
        raw: dict[str, Any] = {}
        has_data = False
        for j, header in enumerate(headers):
            if not header:
                continue
            value = cells[j] if j < len(cells) else ""
            if header not in raw:
                raw[header] = value
            if value != "" and value is not None:
                has_data = True
        if has_data:
            rows.append((i + 1, raw))
    return rows


class XrfParser:
    """Turns XRF device exports into Readings.

    Args:
        aliases: Column alias table (built-in plus configured spellings)
        ai_mapper: Optional AI column mapping collaborator
        processing: Chunking and header scan settings
        use_ai_fallback: Consult ``ai_mapper`` when required columns are missing
        always_use_ai: Consult ``ai_mapper`` for every file
        sleep: Yield function called between chunks (injectable for tests)
    """

    def __init__(
        self,
        aliases: Mapping[str, Sequence[str]] = DEFAULT_COLUMN_ALIASES,
        *,
        ai_mapper: ColumnMappingService | None = None,
        processing: ProcessingConfig | None = None,
        use_ai_fallback: bool = True,
        always_use_ai: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.aliases = aliases
        self.ai_mapper = ai_mapper
        self.processing = processing or ProcessingConfig()
        self.use_ai_fallback = use_ai_fallback
        self.always_use_ai = always_use_ai
        self._sleep = sleep

    def parse_file(self, path: Path, on_progress: ProgressCallback | None = None) -> ParseBatch | ParseFailure:
        try:
            sheet = read_grid(path)
        except GridReadError as e:
            logger.error("read failed: %s: %s", path.name, e)
            return ParseFailure(
                reason=ParseFailureReason.READ_ERROR,
                errors=[f"Failed to parse file: {e}"],
                metadata=_empty_metadata(""),
            )
        return self.parse_grid(sheet.rows, sheet.sheet_name, on_progress=on_progress)

    def parse_grid(
        self,
        grid: RawGrid,
        sheet_name: str = "",
        on_progress: ProgressCallback | None = None,
    ) -> ParseBatch | ParseFailure:
        if not grid or not any(any(c != "" and c is not None for c in row) for row in grid):
            return ParseFailure(
                reason=ParseFailureReason.EMPTY_FILE,
                errors=["No data found in worksheet"],
                metadata=_empty_metadata(sheet_name),
            )

        detection = locate_header(grid, self.aliases, self.processing.header_scan_rows)
        warnings = list(detection.warnings)
        headers = detection.headers
        logger.debug("header row %d: %s", detection.row_index, headers)

        data_rows = _collect_data_rows(grid, detection.row_index, headers)
        if not data_rows:
            return ParseFailure(
                reason=ParseFailureReason.NO_DATA_ROWS,
                errors=["No data rows found below headers"],
                warnings=warnings,
                metadata=_empty_metadata(sheet_name, detection.row_index),
            )

        samples = [{k: cell_text(v) for k, v in raw.items()} for _, raw in data_rows[:SAMPLE_ROW_COUNT]]
        resolution = map_columns(
            headers,
            self.aliases,
            ai_mapper=self.ai_mapper,
            sample_rows=samples,
            use_ai_fallback=self.use_ai_fallback,
            always_use_ai=self.always_use_ai,
        )
        warnings.extend(resolution.warnings)
        mapping = resolution.mapping

        total = len(data_rows)
        missing = missing_required(mapping)
        if missing:
            err = MissingRequiredColumnsError(missing, headers)
            logger.error("%s", err)
            return ParseFailure(
                reason=ParseFailureReason.MISSING_REQUIRED_COLUMNS,
                errors=err.messages(),
                warnings=warnings,
                metadata=ParseMetadata(
                    total_rows=total,
                    valid_rows=0,
                    skipped_rows=total,
                    sheet_name=sheet_name,
                    header_row_index=detection.row_index,
                    detected_columns=mapping,
                    unmapped_columns=resolution.unmapped,
                    used_ai_mapping=resolution.used_ai,
                    ai_mapping_confidence=resolution.ai_confidence,
                ),
            )

        readings: list[Reading] = []
        errors: list[RowError] = []
        calibration = 0
        junk_rows: list[JunkSkip] = []
        junk_reasons = {r.value: 0 for r in JunkReason}
        chunk = self.processing.chunk_size

        if on_progress:
            on_progress(0, total)
        for index, (line, raw) in enumerate(data_rows):
            values = {name: raw.get(header, "") for name, header in mapping.items()}
            outcome = parse_row(RowData(row_number=line, index=index, values=values, raw_values=raw))
            if isinstance(outcome, Reading):
                readings.append(outcome)
            elif isinstance(outcome, CalibrationSkip):
                calibration += 1
            elif isinstance(outcome, JunkSkip):
                junk_rows.append(outcome)
                junk_reasons[outcome.reason.value] += 1
            else:
                errors.append(outcome)

            if (index + 1) % chunk == 0:
                if on_progress:
                    on_progress(index + 1, total)
                self._sleep(self.processing.chunk_delay_seconds)
        if on_progress:
            on_progress(total, total)

        junk = len(junk_rows)
        if calibration:
            warnings.append(f"Filtered out {calibration} calibration/non-component reading(s).")
        if junk:
            warnings.append(
                f"Skipped {junk} junk row(s): {junk_reasons[JunkReason.NO_COMPONENT.value]} no component, "
                f"{junk_reasons[JunkReason.NO_LEAD_CONTENT.value]} no valid lead value."
            )

        metadata = ParseMetadata(
            total_rows=total,
            valid_rows=len(readings),
            skipped_rows=calibration + junk,
            sheet_name=sheet_name,
            header_row_index=detection.row_index,
            detected_columns=mapping,
            unmapped_columns=resolution.unmapped,
            used_ai_mapping=resolution.used_ai,
            ai_mapping_confidence=resolution.ai_confidence,
            skipped_calibration=calibration,
            skipped_junk=junk,
            skipped_junk_reasons=junk_reasons,
            skipped_junk_rows=junk_rows,
        )
        logger.debug(
            "parsed %d rows: valid=%d errors=%d calibration=%d junk=%d",
            total, len(readings), len(errors), calibration, junk,
        )
        return ParseBatch(readings=readings, errors=errors, warnings=warnings, metadata=metadata)
