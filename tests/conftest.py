# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from xrf_processor.config.loader import ProcessingConfig
from xrf_processor.db.mapping_cache import InMemoryMappingCache
from xrf_processor.logging.init import reset_logging
from xrf_processor.models.normalization import NormalizationGroup
from xrf_processor.models.reading import Reading
from xrf_processor.services.collaborators import AIColumnMapping


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    # keep real credentials out of every test
    for var in ("OPENAI_API_KEY", "AZURE_OPENAI_API_KEY", "DATABASE_URL", "PGDSN"):
        monkeypatch.delenv(var, raising=False)
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """processing:
  chunk_size: 2
  chunk_delay_seconds: 0
ai:
  enabled: false
cache:
  backend: memory
column_aliases:
  component:
    - Bldg Component
output_directory: ./output
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "xrf.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def make_excel(path: Path, rows: Sequence[Sequence[Any]], sheet_name: str = "Sheet1") -> Path:
    """Write ``rows`` as a headerless single-sheet workbook."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame(list(rows)).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    return path


@pytest.fixture()
def excel_factory(temp_workdir: Path):
    def _make(name: str, rows: Sequence[Sequence[Any]]) -> Path:
        return make_excel(temp_workdir / "data" / name, rows)
    return _make


@pytest.fixture()
def units_rows() -> list[list[Any]]:
    return [
        ["Viken Detection PB200i Report"],
        ["Serial", "12345"],
        ["Model", "PB200i"],
        ["Reading #", "Component", "Substrate", "Color", "PbC", "Unit #", "Room Type"],
        [1, "CALIBRATE", "", "", 1.0, "", ""],
        [2, "Door Jamb", "Wood", "White", 2.4, "101", "Kitchen"],
        [3, "door jamb", "wd", "White", 0.1, "102", "Kitchen"],
        [4, "Wall", "Drywall", "Beige", 0.0, "101", "Bedroom"],
        [5, "", "", "", 0.3, "", ""],
        [6, "Window Sill", "Wood", "White", "POS", "103", "Living"],
    ]


def make_reading(
    rid: str,
    component: str,
    lead: float,
    substrate: str | None = None,
    **kwargs: Any,
) -> Reading:
    return Reading(id=rid, component=component, color="White", lead_content=lead, substrate=substrate, **kwargs)


class FakeGrouper:
    """Name grouping collaborator returning canned groups and counting calls."""

    def __init__(self, groups: list[NormalizationGroup] | None = None, error: Exception | None = None) -> None:
        self.groups = groups or []
        self.error = error
        self.calls: list[list[str]] = []

    def normalize(self, names: Sequence[str]) -> list[NormalizationGroup]:
        self.calls.append(list(names))
        if self.error is not None:
            raise self.error
        return list(self.groups)


class FakeColumnMapper:
    def __init__(self, mapping: AIColumnMapping | None = None, error: Exception | None = None) -> None:
        self.mapping = mapping or AIColumnMapping()
        self.error = error
        self.calls: list[tuple[list[str], list[dict[str, Any]]]] = []

    def map_columns(self, headers, sample_rows=None) -> AIColumnMapping:
        self.calls.append((list(headers), list(sample_rows or [])))
        if self.error is not None:
            raise self.error
        return self.mapping


class FakeHazardAssessor:
    def __init__(self, responses: list[dict[str, Any]] | None = None, error: Exception | None = None) -> None:
        self.responses = responses or []
        self.error = error
        self.calls: list[list[dict[str, Any]]] = []

    def assess_hazards(self, components):
        self.calls.append(list(components))
        if self.error is not None:
            raise self.error
        return list(self.responses)


@pytest.fixture()
def memory_cache() -> InMemoryMappingCache:
    return InMemoryMappingCache()


@pytest.fixture()
def fast_processing() -> ProcessingConfig:
    return ProcessingConfig(chunk_size=2, chunk_delay_seconds=0.0, cache_batch_size=2)
