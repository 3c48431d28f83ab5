from __future__ import annotations

import json
from pathlib import Path

import jsonschema

from xrf_processor.logging.error_log import ErrorLogBuffer
from xrf_processor.models.error_record import ErrorRecord
from xrf_processor.models.parse_result import ParseFailure, ParseFailureReason
from xrf_processor.services.parser import XrfParser

"""Error log contract: one JSON object per line with a fixed key set."""

ERROR_RECORD_SCHEMA = {
    "type": "object",
    "additionalProperties": False,
    "required": ["timestamp", "file", "row", "error_type", "message"],
    "properties": {
        "timestamp": {"type": "string", "pattern": r"^\d{4}-\d{2}-\d{2}T.*Z$"},
        "file": {"type": "string", "minLength": 1},
        "row": {"type": "integer", "minimum": -1},
        "error_type": {"type": "string", "pattern": "^[A-Z][A-Z_]*$"},
        "message": {"type": "string"},
    },
}


def _records(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line]


def test_single_record_matches_schema():
    rec = json.loads(ErrorRecord.create("units.xlsx", 12, "ROW_ERROR", "bad value").to_json_line())
    jsonschema.validate(rec, ERROR_RECORD_SCHEMA)


def test_parsed_file_records_match_schema(temp_workdir: Path):
    grid_file = temp_workdir / "data" / "shots.csv"
    grid_file.write_text(
        "Reading,Component,Color,PbC\n1,Wall,White,0.2\n2,,White,1.5\n3,Door,White,n.d.\n",
        encoding="utf-8",
    )
    buf = ErrorLogBuffer()
    buf.record_parse_outcome(grid_file.name, XrfParser().parse_file(grid_file))
    records = _records(buf.flush())
    assert [(r["row"], r["error_type"]) for r in records] == [
        (3, "JUNK_NO_COMPONENT"),
        (4, "JUNK_NO_LEAD_CONTENT"),
    ]
    for r in records:
        jsonschema.validate(r, ERROR_RECORD_SCHEMA)


def test_file_level_failure_uses_row_minus_one(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.record_parse_outcome(
        "units.xlsx",
        ParseFailure(ParseFailureReason.MISSING_REQUIRED_COLUMNS, ["Required column not found: color."]),
    )
    (record,) = _records(buf.flush())
    jsonschema.validate(record, ERROR_RECORD_SCHEMA)
    assert record["row"] == -1
    assert record["error_type"] == "MISSING_REQUIRED_COLUMNS"
