from __future__ import annotations

from datetime import datetime

import pytest

from xrf_processor.models.parse_result import CalibrationSkip, JunkReason, JunkSkip, RowError
from xrf_processor.models.reading import Reading
from xrf_processor.models.row_data import RowData
from xrf_processor.services.row_parser import (
    CALIBRATION_VALUES,
    POSITIVE_TOKEN_VALUE,
    build_location,
    coerce_lead_content,
    is_calibration_row,
    parse_row,
    parse_timestamp,
)


def _row(index: int = 0, **values) -> RowData:
    return RowData(row_number=index + 2, index=index, values=values, raw_values=dict(values))


@pytest.mark.parametrize(
    "raw,expected",
    [
        (2.13, 2.13),
        (0, 0.0),
        ("1.5", 1.5),
        ("1.2 mg/cm²", 1.2),
        ("<0.1", 0.1),
        (">9.9 mg/cm2", 9.9),
        ("1,234", 1234.0),
        ("0.4 ppm", 0.4),
        ("NEG", 0.0),
        ("n/a", 0.0),
        ("-", 0.0),
        ("Positive", POSITIVE_TOKEN_VALUE),
        ("assumed", POSITIVE_TOKEN_VALUE),
        (True, POSITIVE_TOKEN_VALUE),
        (False, 0.0),
    ],
)
def test_coerce_lead_content(raw, expected):
    assert coerce_lead_content(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", [None, "", "abc", float("nan"), ["1.0"]])
def test_coerce_lead_content_unusable(raw):
    assert coerce_lead_content(raw) is None


def test_positive_token_is_positive_but_not_a_calibration_value():
    assert POSITIVE_TOKEN_VALUE >= 1.0
    assert POSITIVE_TOKEN_VALUE not in CALIBRATION_VALUES
    assert not is_calibration_row("", "POS")


@pytest.mark.parametrize(
    "component,lead,rid",
    [
        ("CALIBRATE", 0.9, ""),
        ("Calibration check", 3.0, ""),
        ("Standard", 1.0, ""),
        ("cal", 0.0, ""),
        ("Cal.", 0.0, ""),
        ("Door", 1.0, "CALIB-01"),
        ("", 1.0, ""),
        ("", "1.1", ""),
        ("", 1.2, "7"),
    ],
)
def test_calibration_rows(component, lead, rid):
    assert is_calibration_row(component, lead, rid)


@pytest.mark.parametrize(
    "component,lead",
    [
        ("Door", 1.0),  # real shot at a calibration value
        ("Calvert Door", 0.2),  # "cal" only matches the whole component
        ("", 0.3),
        ("", 1.3),
    ],
)
def test_not_calibration_rows(component, lead):
    assert not is_calibration_row(component, lead, "")


def test_parse_row_builds_reading():
    out = parse_row(_row(
        3,
        readingId="17",
        component=" Door Jamb ",
        color="",
        leadContent="2.4",
        substrate="Wood",
        unitNumber="101",
        roomType="Kitchen",
        roomNumber="2",
    ))
    assert isinstance(out, Reading)
    assert out.id == "17_3"
    assert out.component == "Door Jamb"
    assert out.color == "Unknown"
    assert out.lead_content == 2.4
    assert out.is_positive
    assert out.location == "Unit 101 - Kitchen 2"
    assert out.substrate == "Wood"
    assert out.source_row["originalReadingId"] == "17"
    assert out.normalized_component is None


def test_parse_row_synthesizes_id_without_reading_column():
    out = parse_row(_row(5, component="Wall", color="White", leadContent=0.2))
    assert isinstance(out, Reading)
    assert out.id == "Row_5"
    assert out.location is None


def test_parse_row_integral_float_id():
    out = parse_row(_row(0, readingId=12.0, component="Wall", color="White", leadContent=0.2))
    assert out.id == "12_0"


def test_parse_row_prefers_combined_location():
    out = parse_row(_row(
        0, component="Wall", color="White", leadContent=0.2, location="Hall 2", unitNumber="5",
    ))
    assert out.location == "Hall 2"


def test_parse_row_calibration():
    out = parse_row(_row(0, readingId="1", component="CALIBRATE", leadContent=1.0))
    assert isinstance(out, CalibrationSkip)
    assert out.row_number == 2
    assert out.reading_id == "1"


def test_parse_row_junk_no_component():
    out = parse_row(_row(0, readingId="9", component="", color="White", leadContent=0.4))
    assert out == JunkSkip(row_number=2, reason=JunkReason.NO_COMPONENT)


def test_parse_row_junk_no_lead():
    out = parse_row(_row(0, readingId="9", component="Wall", color="White", leadContent="--"))
    assert out == JunkSkip(row_number=2, reason=JunkReason.NO_LEAD_CONTENT)


def test_parse_row_unexpected_error_becomes_row_error():
    class Exploding:
        def __str__(self):
            raise RuntimeError("bad cell")

    out = parse_row(_row(0, readingId=Exploding(), component="Wall", leadContent=1.0))
    assert isinstance(out, RowError)
    assert "bad cell" in out.message


def test_parse_timestamp_variants():
    dt = datetime(2024, 3, 1, 9, 30)
    assert parse_timestamp(dt) is dt
    assert parse_timestamp(45352) == datetime(2024, 3, 1)
    assert parse_timestamp("2024-03-01 09:30") == dt
    assert parse_timestamp("not a date") is None
    assert parse_timestamp("") is None
    assert parse_timestamp(None) is None


def test_build_location():
    assert build_location("4B", "Bedroom", "1") == "Unit 4B - Bedroom 1"
    assert build_location("", "", "12") == "Room 12"
    assert build_location("4B", "", "") == "Unit 4B"
    assert build_location("", "", "") is None


@pytest.mark.parametrize("raw", [5e6, 1e12, -1e9])
def test_parse_timestamp_out_of_serial_range(raw):
    assert parse_timestamp(raw) is None


def test_parse_row_keeps_reading_when_timestamp_out_of_range():
    # epoch seconds in a date column must not cost the measurement
    out = parse_row(_row(0, readingId="3", component="Door", color="White", leadContent=2.0, timestamp=1.7e9))
    assert isinstance(out, Reading)
    assert out.lead_content == 2.0
    assert out.timestamp is None


def test_negative_instrument_values_are_kept():
    assert coerce_lead_content("-0.3") == pytest.approx(-0.3)
    out = parse_row(_row(0, readingId="4", component="Wall", color="White", leadContent="-0.3"))
    assert isinstance(out, Reading)
    assert out.lead_content == pytest.approx(-0.3)
    assert not out.is_positive
