from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import UTC, date, datetime

from xrf_processor.models.reading import Reading
from xrf_processor.models.summary import (
    AreaType,
    ClassificationCounts,
    DatasetSummary,
    JobSummary,
    JobTotals,
    LeadPaintHazard,
    SummaryStats,
    Verdict,
)
from xrf_processor.services.classification import classify_dataset, percent_half_up

"""Summary assembly, serialization and the SUMMARY log line.

``generate_job_summary`` always fills both dataset slots; an area with no
readings gets an empty DatasetSummary of its type so consumers never have to
special-case a missing section.
"""

__all__ = [
    "calculate_job_totals",
    "calculate_stats",
    "combined_summary_file_name",
    "from_json",
    "generate_job_summary",
    "get_all_positive_components",
    "get_classification_counts",
    "render_summary_line",
    "summary_file_name",
    "to_json",
]


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def generate_job_summary(
    job_number: str,
    source_file_name: str,
    common_area_readings: Sequence[Reading] | None,
    unit_readings: Sequence[Reading] | None,
    ai_normalizations_applied: int = 0,
    hazards: list[LeadPaintHazard] | None = None,
) -> JobSummary:
    return JobSummary(
        job_number=job_number,
        processed_date=_utc_now_iso(),
        source_file_name=source_file_name,
        ai_normalizations_applied=ai_normalizations_applied,
        common_area_summary=classify_dataset(common_area_readings or [], AreaType.COMMON_AREA),
        units_summary=classify_dataset(unit_readings or [], AreaType.UNITS),
        hazards=hazards,
    )


def to_json(summary: JobSummary) -> str:
    return json.dumps(summary.to_dict(), indent=2, ensure_ascii=False)


def from_json(text: str) -> JobSummary:
    return JobSummary.from_dict(json.loads(text))


def calculate_stats(summary: DatasetSummary) -> SummaryStats:
    pct = percent_half_up(summary.total_positive, summary.total_readings)
    return SummaryStats(
        total_readings=summary.total_readings,
        total_positive=summary.total_positive,
        total_negative=summary.total_negative,
        positive_percent=pct,
        unique_components=summary.unique_components,
        average_component_count=len(summary.average_components),
        uniform_component_count=len(summary.uniform_components),
        non_uniform_component_count=len(summary.non_uniform_components),
    )


def get_classification_counts(summary: DatasetSummary) -> ClassificationCounts:
    return ClassificationCounts(
        average_positive=sum(1 for c in summary.average_components if c.result is Verdict.POSITIVE),
        average_negative=sum(1 for c in summary.average_components if c.result is Verdict.NEGATIVE),
        uniform_positive=sum(1 for c in summary.uniform_components if c.result is Verdict.POSITIVE),
        uniform_negative=sum(1 for c in summary.uniform_components if c.result is Verdict.NEGATIVE),
        non_uniform_count=len(summary.non_uniform_components),
    )


def _label(component: str, substrate: str | None) -> str:
    return f"{component} ({substrate})" if substrate else component


def get_all_positive_components(summary: DatasetSummary) -> list[str]:
    """``"Component (Substrate)"`` labels of every group with positive findings, sorted."""
    labels = [
        _label(c.component, c.substrate)
        for c in summary.average_components
        if c.result is Verdict.POSITIVE
    ]
    labels += [
        _label(c.component, c.substrate)
        for c in summary.uniform_components
        if c.result is Verdict.POSITIVE
    ]
    labels += [
        _label(c.component, c.substrate)
        for c in summary.non_uniform_components
        if c.positive_count > 0
    ]
    return sorted(labels)


def calculate_job_totals(summary: JobSummary) -> JobTotals:
    datasets = [d for d in (summary.common_area_summary, summary.units_summary) if d is not None]
    return JobTotals(
        total_readings=sum(d.total_readings for d in datasets),
        total_positive=sum(d.total_positive for d in datasets),
        total_negative=sum(d.total_negative for d in datasets),
        unique_components=sum(d.unique_components for d in datasets),
        positive_components=sum(len(get_all_positive_components(d)) for d in datasets),
    )


def _date_str(on: date | None) -> str:
    return (on or datetime.now(UTC).date()).isoformat()


def summary_file_name(job_number: str, area: AreaType, on: date | None = None) -> str:
    """``<job>-units-summary-YYYY-MM-DD.json`` / ``<job>-common-areas-summary-...``."""
    slug = "units" if area is AreaType.UNITS else "common-areas"
    return f"{job_number}-{slug}-summary-{_date_str(on)}.json"


def combined_summary_file_name(job_number: str, on: date | None = None) -> str:
    return f"{job_number}-summary-{_date_str(on)}.json"


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.2f}"


def render_summary_line(
    summary: JobSummary,
    *,
    files_ok: int,
    files_failed: int,
    elapsed_seconds: float,
) -> str:
    """One-line run summary.

    Format:
        SUMMARY job={job} files={ok}/{total} readings={n} positive={p}
        groups={g} positive_groups={pg} ai_normalizations={a} elapsed_sec={s}
    """
    totals = calculate_job_totals(summary)
    return (
        f"SUMMARY job={summary.job_number} "
        f"files={files_ok}/{files_ok + files_failed} "
        f"readings={totals.total_readings} "
        f"positive={totals.total_positive} "
        f"groups={totals.unique_components} "
        f"positive_groups={totals.positive_components} "
        f"ai_normalizations={summary.ai_normalizations_applied} "
        f"elapsed_sec={_format_seconds(elapsed_seconds)}"
    )
