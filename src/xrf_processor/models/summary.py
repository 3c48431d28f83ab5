from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .reading import Reading

"""Summary models: per-group verdicts, dataset aggregates and the job summary.

The JSON form uses camelCase keys (``jobNumber``, ``commonAreaSummary`` ...);
``to_dict`` / ``from_dict`` on each type are exact inverses so a persisted
summary reloads into equal objects.
"""

__all__ = [
    "AreaType",
    "AverageComponentSummary",
    "ClassificationCounts",
    "DatasetSummary",
    "JobSummary",
    "JobTotals",
    "LeadPaintHazard",
    "NonUniformComponentSummary",
    "SummaryStats",
    "UniformComponentSummary",
    "Verdict",
]


class AreaType(str, Enum):
    COMMON_AREA = "COMMON_AREA"
    UNITS = "UNITS"


class Verdict(str, Enum):
    POSITIVE = "POSITIVE"
    NEGATIVE = "NEGATIVE"


@dataclass(frozen=True)
class AverageComponentSummary:
    """Group with at least the statistical sample size of readings."""
    component: str
    substrate: str | None
    total_readings: int
    positive_count: int
    negative_count: int
    positive_percent: float  # one decimal, half-up
    negative_percent: float
    result: Verdict

    def to_dict(self) -> dict[str, Any]:
        return {
            "component": self.component,
            "substrate": self.substrate,
            "totalReadings": self.total_readings,
            "positiveCount": self.positive_count,
            "negativeCount": self.negative_count,
            "positivePercent": self.positive_percent,
            "negativePercent": self.negative_percent,
            "result": self.result.value,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> AverageComponentSummary:
        return AverageComponentSummary(
            component=data["component"],
            substrate=data.get("substrate"),
            total_readings=data["totalReadings"],
            positive_count=data["positiveCount"],
            negative_count=data["negativeCount"],
            positive_percent=data["positivePercent"],
            negative_percent=data["negativePercent"],
            result=Verdict(data["result"]),
        )


@dataclass(frozen=True)
class UniformComponentSummary:
    """Small group where every reading agrees."""
    component: str
    substrate: str | None
    total_readings: int
    result: Verdict

    def to_dict(self) -> dict[str, Any]:
        return {
            "component": self.component,
            "substrate": self.substrate,
            "totalReadings": self.total_readings,
            "result": self.result.value,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> UniformComponentSummary:
        return UniformComponentSummary(
            component=data["component"],
            substrate=data.get("substrate"),
            total_readings=data["totalReadings"],
            result=Verdict(data["result"]),
        )


@dataclass(frozen=True)
class NonUniformComponentSummary:
    """Small group with mixed outcomes; keeps its readings for location review."""
    component: str
    substrate: str | None
    total_readings: int
    positive_count: int
    negative_count: int
    positive_percent: float
    negative_percent: float
    readings: list[Reading] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "component": self.component,
            "substrate": self.substrate,
            "totalReadings": self.total_readings,
            "positiveCount": self.positive_count,
            "negativeCount": self.negative_count,
            "positivePercent": self.positive_percent,
            "negativePercent": self.negative_percent,
            "readings": [r.to_dict() for r in self.readings],
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> NonUniformComponentSummary:
        return NonUniformComponentSummary(
            component=data["component"],
            substrate=data.get("substrate"),
            total_readings=data["totalReadings"],
            positive_count=data["positiveCount"],
            negative_count=data["negativeCount"],
            positive_percent=data["positivePercent"],
            negative_percent=data["negativePercent"],
            readings=[Reading.from_dict(r) for r in data.get("readings", [])],
        )


@dataclass(frozen=True)
class DatasetSummary:
    dataset_type: AreaType
    total_readings: int
    total_positive: int
    total_negative: int
    unique_components: int  # number of (component, substrate) groups
    average_components: list[AverageComponentSummary] = field(default_factory=list)
    uniform_components: list[UniformComponentSummary] = field(default_factory=list)
    non_uniform_components: list[NonUniformComponentSummary] = field(default_factory=list)

    @staticmethod
    def empty(dataset_type: AreaType) -> DatasetSummary:
        return DatasetSummary(dataset_type, 0, 0, 0, 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "datasetType": self.dataset_type.value,
            "totalReadings": self.total_readings,
            "totalPositive": self.total_positive,
            "totalNegative": self.total_negative,
            "uniqueComponents": self.unique_components,
            "averageComponents": [s.to_dict() for s in self.average_components],
            "uniformComponents": [s.to_dict() for s in self.uniform_components],
            "nonUniformComponents": [s.to_dict() for s in self.non_uniform_components],
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> DatasetSummary:
        return DatasetSummary(
            dataset_type=AreaType(data["datasetType"]),
            total_readings=data["totalReadings"],
            total_positive=data["totalPositive"],
            total_negative=data["totalNegative"],
            unique_components=data["uniqueComponents"],
            average_components=[
                AverageComponentSummary.from_dict(s) for s in data.get("averageComponents", [])
            ],
            uniform_components=[
                UniformComponentSummary.from_dict(s) for s in data.get("uniformComponents", [])
            ],
            non_uniform_components=[
                NonUniformComponentSummary.from_dict(s)
                for s in data.get("nonUniformComponents", [])
            ],
        )


@dataclass(frozen=True)
class LeadPaintHazard:
    hazard_description: str
    severity: str  # Critical | High | Moderate
    priority: str  # Restrict Access | ASAP | Schedule
    abate_code: str
    ic_code: str
    abatement_options: str
    interim_control_options: str
    component: str
    substrate: str | None
    area_type: AreaType

    def to_dict(self) -> dict[str, Any]:
        return {
            "hazardDescription": self.hazard_description,
            "severity": self.severity,
            "priority": self.priority,
            "abateCode": self.abate_code,
            "icCode": self.ic_code,
            "abatementOptions": self.abatement_options,
            "interimControlOptions": self.interim_control_options,
            "component": self.component,
            "substrate": self.substrate,
            "areaType": self.area_type.value,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> LeadPaintHazard:
        return LeadPaintHazard(
            hazard_description=data["hazardDescription"],
            severity=data["severity"],
            priority=data["priority"],
            abate_code=data["abateCode"],
            ic_code=data["icCode"],
            abatement_options=data["abatementOptions"],
            interim_control_options=data["interimControlOptions"],
            component=data["component"],
            substrate=data.get("substrate"),
            area_type=AreaType(data["areaType"]),
        )


@dataclass(frozen=True)
class JobSummary:
    """Terminal artifact of a job run; persisted as JSON."""
    job_number: str
    processed_date: str  # ISO8601
    source_file_name: str
    ai_normalizations_applied: int  # component + substrate AI entries
    common_area_summary: DatasetSummary | None
    units_summary: DatasetSummary | None
    hazards: list[LeadPaintHazard] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "jobNumber": self.job_number,
            "processedDate": self.processed_date,
            "sourceFileName": self.source_file_name,
            "aiNormalizationsApplied": self.ai_normalizations_applied,
            "commonAreaSummary": (
                self.common_area_summary.to_dict() if self.common_area_summary else None
            ),
            "unitsSummary": self.units_summary.to_dict() if self.units_summary else None,
        }
        if self.hazards is not None:
            data["hazards"] = [h.to_dict() for h in self.hazards]
        return data

    @staticmethod
    def from_dict(data: dict[str, Any]) -> JobSummary:
        common = data.get("commonAreaSummary")
        units = data.get("unitsSummary")
        hazards = data.get("hazards")
        return JobSummary(
            job_number=data["jobNumber"],
            processed_date=data["processedDate"],
            source_file_name=data["sourceFileName"],
            ai_normalizations_applied=data.get("aiNormalizationsApplied", 0),
            common_area_summary=DatasetSummary.from_dict(common) if common else None,
            units_summary=DatasetSummary.from_dict(units) if units else None,
            hazards=[LeadPaintHazard.from_dict(h) for h in hazards] if hazards is not None else None,
        )


@dataclass(frozen=True)
class SummaryStats:
    total_readings: int
    total_positive: int
    total_negative: int
    positive_percent: float
    unique_components: int
    average_component_count: int
    uniform_component_count: int
    non_uniform_component_count: int


@dataclass(frozen=True)
class ClassificationCounts:
    average_positive: int = 0
    average_negative: int = 0
    uniform_positive: int = 0
    uniform_negative: int = 0
    non_uniform_count: int = 0


@dataclass(frozen=True)
class JobTotals:
    """Readings and group counts summed over both datasets of a job."""
    total_readings: int
    total_positive: int
    total_negative: int
    unique_components: int
    positive_components: int  # positive average/uniform groups plus all non-uniform
