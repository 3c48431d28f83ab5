from __future__ import annotations

from pathlib import Path

import pytest

from conftest import FakeHazardAssessor, make_reading
from xrf_processor.config.loader import ConfigError
from xrf_processor.models.summary import AreaType
from xrf_processor.services.classification import classify_dataset
from xrf_processor.services.hazards import (
    HazardReference,
    collect_positive_components,
    generate_hazards,
    load_hazard_reference,
)

REFERENCE = HazardReference(
    abatement={"h": "Replace the door.", "d": "Enclose the component."},
    interim={"4": "Adjust and repaint.", "5": "Wet scrape and repaint."},
)


def _datasets():
    common = classify_dataset([make_reading("c1", "Handrail", 1.6, substrate="Metal")], AreaType.COMMON_AREA)
    units = classify_dataset(
        [
            make_reading("u1", "Door", 1.2, substrate="Wood"),
            make_reading("u2", "Door", 0.1, substrate="Wood"),
            make_reading("u3", "Wall", 0.1),
        ],
        AreaType.UNITS,
    )
    return common, units


def test_collect_positive_components_includes_non_uniform():
    common, units = _datasets()
    items = collect_positive_components(common, units)
    assert [(i.component, i.area_type, i.classification_type) for i in items] == [
        ("Handrail", AreaType.COMMON_AREA, "UNIFORM"),
        ("Door", AreaType.UNITS, "NON_UNIFORM"),
    ]
    assert items[1].positive_count == 1
    assert items[0].to_prompt_dict()["areaType"] == "COMMON_AREA"


def test_generate_hazards_expands_codes_and_applies_defaults():
    common, units = _datasets()
    items = collect_positive_components(common, units)
    assessor = FakeHazardAssessor([
        {"hazardDescription": "Chipping paint on handrail.", "severity": "High", "priority": "ASAP",
         "abateCode": "Z", "icCode": "4"},
        {"hazardDescription": "Friction wear on door edge."},
    ])
    hazards = generate_hazards(items, assessor, REFERENCE)
    assert len(assessor.calls) == 1
    assert len(hazards) == 2

    first, second = hazards
    assert first.component == "Handrail"
    assert first.abate_code == "z"
    assert first.abatement_options == "[Abatement option z not found]"
    assert first.interim_control_options == "Adjust and repaint."

    assert second.severity == "Moderate"
    assert second.priority == "Schedule"
    assert second.abatement_options == "Enclose the component."
    assert second.interim_control_options == "Wet scrape and repaint."
    assert second.area_type is AreaType.UNITS


def test_entries_without_description_are_dropped():
    common, units = _datasets()
    items = collect_positive_components(common, units)
    hazards = generate_hazards(items, FakeHazardAssessor([{"severity": "High"}, "junk"]), REFERENCE)
    assert hazards == []


def test_no_assessor_or_no_components():
    common, units = _datasets()
    items = collect_positive_components(common, units)
    assert generate_hazards(items, None, REFERENCE) == []
    assessor = FakeHazardAssessor()
    assert generate_hazards([], assessor, REFERENCE) == []
    assert assessor.calls == []


def test_assessor_failure_yields_empty_list():
    common, units = _datasets()
    items = collect_positive_components(common, units)
    assert generate_hazards(items, FakeHazardAssessor(error=RuntimeError("timeout")), REFERENCE) == []


def test_load_hazard_reference(temp_workdir: Path):
    path = temp_workdir / "config" / "haz.yml"
    path.write_text('abatement:\n  H: "Replace."\ninterim:\n  4: "Repaint."\n', encoding="utf-8")
    ref = load_hazard_reference(path)
    assert ref.abatement_text("h") == "Replace."
    assert ref.interim_text("4") == "Repaint."


def test_load_hazard_reference_none_gives_empty_tables():
    ref = load_hazard_reference(None)
    assert ref.abatement == {}
    assert ref.interim_text("9") == "[Interim control option 9 not found]"


def test_load_hazard_reference_errors(temp_workdir: Path):
    with pytest.raises(ConfigError):
        load_hazard_reference(temp_workdir / "config" / "missing.yml")
    bad = temp_workdir / "config" / "bad.yml"
    bad.write_text("abatement: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_hazard_reference(bad)


def test_bundled_reference_covers_default_codes():
    root = Path(__file__).resolve().parents[2]
    ref = load_hazard_reference(root / "config" / "haz_reference.yml")
    assert not ref.abatement_text("d").startswith("[")
    assert not ref.interim_text("5").startswith("[")
