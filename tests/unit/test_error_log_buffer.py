from __future__ import annotations

import json
import re
from pathlib import Path

from xrf_processor.logging.error_log import ErrorLogBuffer
from xrf_processor.models.error_record import FILE_LEVEL_ROW, ErrorRecord
from xrf_processor.models.parse_result import (
    JunkReason,
    JunkSkip,
    ParseBatch,
    ParseFailure,
    ParseFailureReason,
    ParseMetadata,
    RowError,
)


def _batch() -> ParseBatch:
    md = ParseMetadata(
        total_rows=4,
        valid_rows=1,
        skipped_rows=2,
        sheet_name="Sheet1",
        header_row_index=0,
        detected_columns={},
        unmapped_columns=[],
        skipped_junk=2,
        skipped_junk_rows=[
            JunkSkip(3, JunkReason.NO_COMPONENT),
            JunkSkip(5, JunkReason.NO_LEAD_CONTENT),
        ],
    )
    return ParseBatch(readings=[], errors=[RowError(4, "bad row")], warnings=[], metadata=md)


def _lines(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_flush_returns_none_when_empty(temp_workdir: Path):
    buf = ErrorLogBuffer()
    assert buf.flush() is None
    assert list((temp_workdir / "logs").iterdir()) == []


def test_record_parse_outcome_for_batch(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.record_parse_outcome("units.xlsx", _batch())
    assert len(buf) == 3
    path = buf.flush()
    assert path is not None
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    assert path.parent.resolve() == (temp_workdir / "logs").resolve()
    records = _lines(path)
    assert [(r["row"], r["error_type"]) for r in records] == [
        (3, "JUNK_NO_COMPONENT"),
        (5, "JUNK_NO_LEAD_CONTENT"),
        (4, "ROW_ERROR"),
    ]
    assert records[0]["file"] == "units.xlsx"
    assert len(buf) == 0


def test_record_parse_outcome_for_failure(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path / "out")
    failure = ParseFailure(ParseFailureReason.READ_ERROR, ["cannot read workbook"])
    buf.record_parse_outcome("broken.xlsx", failure)
    records = _lines(buf.flush())
    assert records == [
        {
            "timestamp": records[0]["timestamp"],
            "file": "broken.xlsx",
            "row": FILE_LEVEL_ROW,
            "error_type": "READ_ERROR",
            "message": "cannot read workbook",
        }
    ]


def test_failure_without_messages_uses_reason(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path)
    buf.record_parse_outcome("empty.xlsx", ParseFailure(ParseFailureReason.EMPTY_FILE, []))
    assert _lines(buf.flush())[0]["message"] == "EMPTY_FILE"


def test_flushes_append_to_one_file(tmp_path: Path):
    buf = ErrorLogBuffer(logs_dir=tmp_path)
    buf.append(ErrorRecord.create("a.xlsx", 2, "ROW_ERROR", "first"))
    first = buf.flush()
    buf.append(ErrorRecord.create("a.xlsx", 3, "ROW_ERROR", "second"))
    second = buf.flush()
    assert first == second
    assert [r["message"] for r in _lines(first)] == ["first", "second"]


def test_error_record_timestamp_is_utc_z():
    rec = ErrorRecord.create("a.xlsx", 1, "ROW_ERROR", "x")
    assert rec.timestamp.endswith("Z")
    assert json.loads(rec.to_json_line())["row"] == 1
