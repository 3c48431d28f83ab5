from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from xrf_processor.config.loader import ConfigError
from xrf_processor.models.summary import AreaType, DatasetSummary, LeadPaintHazard, Verdict
from xrf_processor.services.collaborators import HazardAssessor

"""Lead hazard assessment for positive component groups.

Positive groups (and every non-uniform group, since at least one location
tested positive) are sent to the hazard assessor in one call. The assessor
answers with a description, severity, priority and two option codes per
group; the codes are expanded to full remediation text from a reference
table loaded from YAML.
"""

__all__ = [
    "HazardReference",
    "PositiveComponentInput",
    "collect_positive_components",
    "generate_hazards",
    "load_hazard_reference",
]

logger = logging.getLogger(__name__)

DEFAULT_SEVERITY = "Moderate"
DEFAULT_PRIORITY = "Schedule"
DEFAULT_ABATE_CODE = "d"
DEFAULT_IC_CODE = "5"


@dataclass(frozen=True)
class HazardReference:
    abatement: dict[str, str] = field(default_factory=dict)  # letter code -> text
    interim: dict[str, str] = field(default_factory=dict)  # number code -> text

    def abatement_text(self, code: str) -> str:
        key = (code or "").strip().lower()
        return self.abatement.get(key) or f"[Abatement option {code or '?'} not found]"

    def interim_text(self, code: str) -> str:
        key = (code or "").strip()
        return self.interim.get(key) or f"[Interim control option {code or '?'} not found]"


def load_hazard_reference(path: Path | None) -> HazardReference:
    """Load ``{abatement: {...}, interim: {...}}`` from YAML; empty tables when ``path`` is None."""
    if path is None:
        return HazardReference()
    if not path.exists():
        raise ConfigError(f"hazard reference not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid hazard reference yaml: {e}") from e
    return HazardReference(
        abatement={str(k).strip().lower(): str(v) for k, v in (data.get("abatement") or {}).items()},
        interim={str(k).strip(): str(v) for k, v in (data.get("interim") or {}).items()},
    )


@dataclass(frozen=True)
class PositiveComponentInput:
    component: str
    substrate: str | None
    area_type: AreaType
    total_readings: int
    positive_count: int
    classification_type: str  # AVERAGE | UNIFORM | NON_UNIFORM

    def to_prompt_dict(self) -> dict[str, Any]:
        return {
            "component": self.component,
            "substrate": self.substrate,
            "areaType": self.area_type.value,
            "totalReadings": self.total_readings,
            "positiveCount": self.positive_count,
            "classificationType": self.classification_type,
        }


def _collect(summary: DatasetSummary, area: AreaType) -> list[PositiveComponentInput]:
    items = [
        PositiveComponentInput(c.component, c.substrate, area, c.total_readings, c.positive_count, "AVERAGE")
        for c in summary.average_components
        if c.result is Verdict.POSITIVE
    ]
    items += [
        PositiveComponentInput(c.component, c.substrate, area, c.total_readings, c.total_readings, "UNIFORM")
        for c in summary.uniform_components
        if c.result is Verdict.POSITIVE
    ]
    items += [
        PositiveComponentInput(c.component, c.substrate, area, c.total_readings, c.positive_count, "NON_UNIFORM")
        for c in summary.non_uniform_components
    ]
    return items


def collect_positive_components(
    common_area: DatasetSummary | None, units: DatasetSummary | None
) -> list[PositiveComponentInput]:
    items: list[PositiveComponentInput] = []
    if common_area is not None:
        items += _collect(common_area, AreaType.COMMON_AREA)
    if units is not None:
        items += _collect(units, AreaType.UNITS)
    return items


def generate_hazards(
    components: Sequence[PositiveComponentInput],
    assessor: HazardAssessor | None,
    reference: HazardReference,
) -> list[LeadPaintHazard]:
    """One hazard per component the assessor described; [] when it is unavailable or fails.

    Responses are matched to inputs by position; entries without a
    description are dropped.
    """
    if not components or assessor is None:
        return []
    try:
        responses = assessor.assess_hazards([c.to_prompt_dict() for c in components])
    except Exception as e:
        logger.warning("hazard assessment failed: %s", e)
        return []

    hazards: list[LeadPaintHazard] = []
    for source, raw in zip(components, responses):
        if not isinstance(raw, Mapping) or not raw.get("hazardDescription"):
            continue
        abate = str(raw.get("abateCode") or DEFAULT_ABATE_CODE).strip().lower()
        ic = str(raw.get("icCode") or DEFAULT_IC_CODE).strip()
        hazards.append(
            LeadPaintHazard(
                hazard_description=str(raw["hazardDescription"]),
                severity=str(raw.get("severity") or DEFAULT_SEVERITY),
                priority=str(raw.get("priority") or DEFAULT_PRIORITY),
                abate_code=abate,
                ic_code=ic,
                abatement_options=reference.abatement_text(abate),
                interim_control_options=reference.interim_text(ic),
                component=source.component,
                substrate=source.substrate,
                area_type=source.area_type,
            )
        )
    return hazards
