from __future__ import annotations

import json
from datetime import date, datetime

from conftest import make_reading
from xrf_processor.models.summary import AreaType, LeadPaintHazard
from xrf_processor.services.summary import (
    calculate_job_totals,
    calculate_stats,
    combined_summary_file_name,
    from_json,
    generate_job_summary,
    get_all_positive_components,
    get_classification_counts,
    render_summary_line,
    summary_file_name,
    to_json,
)


def _units():
    readings = [make_reading(f"w{i}", "Wall", 0.1, substrate="Drywall") for i in range(3)]
    readings += [
        make_reading("d1", "Door", 1.4, substrate="Wood", unit_number="101", timestamp=datetime(2024, 1, 2, 3, 4)),
        make_reading("d2", "Door", 0.2, substrate="Wood", location="Unit 102 - Kitchen"),
        make_reading("s1", "Sill", 2.0),
    ]
    return readings


def test_generate_job_summary_fills_both_datasets():
    summary = generate_job_summary("J-1", "units.xlsx", None, _units(), ai_normalizations_applied=3)
    assert summary.job_number == "J-1"
    assert summary.processed_date.endswith("Z")
    assert summary.ai_normalizations_applied == 3
    assert summary.common_area_summary.dataset_type is AreaType.COMMON_AREA
    assert summary.common_area_summary.total_readings == 0
    assert summary.units_summary.total_readings == 6
    assert summary.hazards is None


def test_json_round_trip_including_empty_dataset():
    summary = generate_job_summary("J-1", "units.xlsx", [], _units())
    text = to_json(summary)
    assert from_json(text) == summary
    data = json.loads(text)
    assert data["commonAreaSummary"]["totalReadings"] == 0
    assert "hazards" not in data


def test_json_round_trip_with_hazards():
    hazard = LeadPaintHazard(
        hazard_description="Deteriorated paint on door.",
        severity="High",
        priority="ASAP",
        abate_code="h",
        ic_code="4",
        abatement_options="Replace door",
        interim_control_options="Repaint",
        component="Door",
        substrate="Wood",
        area_type=AreaType.UNITS,
    )
    summary = generate_job_summary("J-2", "a.xlsx", [], [], hazards=[hazard])
    again = from_json(to_json(summary))
    assert again.hazards == [hazard]


def test_json_uses_camel_case_keys():
    data = json.loads(to_json(generate_job_summary("J-1", "u.xlsx", [], _units())))
    assert set(data) == {
        "jobNumber", "processedDate", "sourceFileName", "aiNormalizationsApplied",
        "commonAreaSummary", "unitsSummary",
    }
    non_uniform = data["unitsSummary"]["nonUniformComponents"][0]
    assert non_uniform["component"] == "Door"
    assert non_uniform["readings"][0]["isPositive"] is True


def test_stats_counts_and_positive_labels():
    ds = generate_job_summary("J", "u", [], _units()).units_summary
    stats = calculate_stats(ds)
    assert stats.total_readings == 6
    assert stats.total_positive == 2
    assert stats.positive_percent == 33.3
    assert stats.uniform_component_count == 2
    assert stats.non_uniform_component_count == 1

    counts = get_classification_counts(ds)
    assert counts.uniform_positive == 1
    assert counts.uniform_negative == 1
    assert counts.non_uniform_count == 1

    assert get_all_positive_components(ds) == ["Door (Wood)", "Sill"]


def test_job_totals_across_datasets():
    summary = generate_job_summary("J", "u", [make_reading("c1", "Rail", 1.0)], _units())
    totals = calculate_job_totals(summary)
    assert totals.total_readings == 7
    assert totals.total_positive == 3
    assert totals.unique_components == 4
    assert totals.positive_components == 3


def test_file_names():
    on = date(2024, 6, 1)
    assert summary_file_name("J-9", AreaType.UNITS, on) == "J-9-units-summary-2024-06-01.json"
    assert summary_file_name("J-9", AreaType.COMMON_AREA, on) == "J-9-common-areas-summary-2024-06-01.json"
    assert combined_summary_file_name("J-9", on) == "J-9-summary-2024-06-01.json"


def test_render_summary_line():
    summary = generate_job_summary("J-7", "u", [], _units(), ai_normalizations_applied=4)
    line = render_summary_line(summary, files_ok=1, files_failed=1, elapsed_seconds=1.5)
    assert line == (
        "SUMMARY job=J-7 files=1/2 readings=6 positive=2 groups=3 "
        "positive_groups=2 ai_normalizations=4 elapsed_sec=1.50"
    )


def test_render_summary_line_small_elapsed():
    summary = generate_job_summary("J", "u", [], [])
    line = render_summary_line(summary, files_ok=1, files_failed=0, elapsed_seconds=0.004)
    assert line.endswith("elapsed_sec=0.004")
