from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from xrf_processor.models.error_record import FILE_LEVEL_ROW, ErrorRecord
from xrf_processor.models.parse_result import JunkReason, ParseBatch, ParseFailure

"""Error log buffering.

Junk rows, row errors and file-level parse failures are buffered as
``ErrorRecord`` objects and appended as JSON Lines to
``logs/errors-YYYYMMDD-HHMMSS.log`` (UTC, one file per run) on ``flush()``.
"""

__all__ = [
    "ErrorLogBuffer",
    "ErrorRecord",
    "LOGS_DIR",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"

_JUNK_ERROR_TYPES = {
    JunkReason.NO_COMPONENT: "JUNK_NO_COMPONENT",
    JunkReason.NO_LEAD_CONTENT: "JUNK_NO_LEAD_CONTENT",
}


class ErrorLogBuffer:
    """In-memory buffer for error records. Flush appends JSON Lines.

    The file path is fixed on first access so every flush of a run lands in
    the same file. Not thread safe (the pipeline is single threaded).
    """

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir or LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def record_parse_outcome(self, file_name: str, outcome: ParseBatch | ParseFailure) -> None:
        """Buffer one record per junk row / row error, or one for a failed file."""
        if isinstance(outcome, ParseFailure):
            for message in outcome.errors or [outcome.reason.value]:
                self.append(
                    ErrorRecord.create(file_name, FILE_LEVEL_ROW, outcome.reason.value, message)
                )
            return
        for junk in outcome.metadata.skipped_junk_rows:
            self.append(
                ErrorRecord.create(
                    file_name,
                    junk.row_number,
                    _JUNK_ERROR_TYPES[junk.reason],
                    f"skipped junk row ({junk.reason.value})",
                )
            )
        for err in outcome.errors:
            self.append(ErrorRecord.create(file_name, err.row_number, "ROW_ERROR", err.message))

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records; returns the file path, or None when nothing was buffered."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
