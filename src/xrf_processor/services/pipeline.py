from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from pathlib import Path

from xrf_processor.logging.error_log import ErrorLogBuffer
from xrf_processor.models.parse_result import ParseBatch, ParseFailure
from xrf_processor.models.reading import Reading
from xrf_processor.models.summary import AreaType, JobSummary
from xrf_processor.services.collaborators import HazardAssessor
from xrf_processor.services.hazards import HazardReference, collect_positive_components, generate_hazards
from xrf_processor.services.normalizer import NameNormalizer
from xrf_processor.services.parser import XrfParser
from xrf_processor.services.progress import ProgressTracker, StageProgressIndicator
from xrf_processor.services.summary import generate_job_summary

"""Job orchestration: parse -> normalize -> classify -> (hazards).

A job has up to two input files, one per area type. Each file is parsed on its
own; a file that fails is recorded (error log + FileReport) and the job
continues with the other one. Readings from both files are normalized together
so each name is sent to the grouping service at most once, then split back by
area for classification.
"""

__all__ = [
    "FileReport",
    "JobRunResult",
    "PipelineError",
    "run_job",
]

logger = logging.getLogger(__name__)


class PipelineError(Exception):
    """No input file could be parsed; ``failures`` holds the per-file ParseFailure."""

    def __init__(self, message: str, failures: list[tuple[Path, ParseFailure]] | None = None) -> None:
        super().__init__(message)
        self.failures = failures or []


@dataclass(frozen=True)
class FileReport:
    area: AreaType
    path: Path
    outcome: ParseBatch | ParseFailure

    @property
    def ok(self) -> bool:
        return self.outcome.ok


@dataclass(frozen=True)
class JobRunResult:
    summary: JobSummary
    reports: list[FileReport] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    error_log_path: Path | None = None

    @property
    def files_ok(self) -> int:
        return sum(1 for r in self.reports if r.ok)

    @property
    def files_failed(self) -> int:
        return sum(1 for r in self.reports if not r.ok)


def _parse_one(parser: XrfParser, area: AreaType, path: Path, error_log: ErrorLogBuffer) -> FileReport:
    logger.info("Parsing %s file: %s", area.value, path.name)
    with ProgressTracker(f"Parsing {path.name}") as progress:
        outcome = parser.parse_file(path, on_progress=progress)
    error_log.record_parse_outcome(path.name, outcome)
    for w in outcome.warnings:
        logger.warning("%s: %s", path.name, w)
    if isinstance(outcome, ParseFailure):
        logger.error("%s: %s", path.name, outcome.message)
    else:
        md = outcome.metadata
        logger.info(
            "%s: %d readings (%d rows, %d calibration, %d junk, %d errors)",
            path.name, md.valid_rows, md.total_rows, md.skipped_calibration, md.skipped_junk,
            len(outcome.errors),
        )
    return FileReport(area=area, path=path, outcome=outcome)


def run_job(
    job_number: str,
    *,
    parser: XrfParser,
    component_normalizer: NameNormalizer,
    substrate_normalizer: NameNormalizer,
    units_path: Path | None = None,
    common_area_path: Path | None = None,
    hazard_assessor: HazardAssessor | None = None,
    hazard_reference: HazardReference | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> JobRunResult:
    """Run one job end to end.

    Args:
        job_number: Job identifier written into the summary
        parser: Configured parse service
        component_normalizer: Normalizer for component names
        substrate_normalizer: Normalizer for substrate names
        units_path: Units spreadsheet (optional)
        common_area_path: Common-area spreadsheet (optional)
        hazard_assessor: When given, hazards are generated for positive groups
        hazard_reference: Code tables used to expand hazard option codes
        error_log: Buffer receiving junk rows, row errors and file failures;
            flushed before returning

    Returns:
        JobRunResult with the summary and one FileReport per input file

    Raises:
        ValueError: Neither input path was given
        PipelineError: Every given input file failed to parse
    """
    inputs = [
        (area, p)
        for area, p in ((AreaType.COMMON_AREA, common_area_path), (AreaType.UNITS, units_path))
        if p is not None
    ]
    if not inputs:
        raise ValueError("at least one of units_path / common_area_path is required")

    start = datetime.now(UTC)
    error_log = error_log if error_log is not None else ErrorLogBuffer()
    reports = [_parse_one(parser, area, path, error_log) for area, path in inputs]

    failures = [(r.path, r.outcome) for r in reports if isinstance(r.outcome, ParseFailure)]
    if len(failures) == len(reports):
        _flush(error_log)
        raise PipelineError(
            "; ".join(f"{p.name}: {f.message}" for p, f in failures), failures
        )

    area_readings: dict[AreaType, list[Reading]] = {AreaType.COMMON_AREA: [], AreaType.UNITS: []}
    for r in reports:
        if isinstance(r.outcome, ParseBatch):
            area_readings[r.area].extend(r.outcome.readings)

    combined = area_readings[AreaType.COMMON_AREA] + area_readings[AreaType.UNITS]
    split = len(area_readings[AreaType.COMMON_AREA])
    combined, component_ai = component_normalizer.normalize_readings(
        combined, StageProgressIndicator("components")
    )
    combined, substrate_ai = substrate_normalizer.normalize_readings(
        combined, StageProgressIndicator("substrates")
    )

    summary = generate_job_summary(
        job_number,
        ", ".join(r.path.name for r in reports if r.ok),
        combined[:split],
        combined[split:],
        ai_normalizations_applied=component_ai + substrate_ai,
    )

    if hazard_assessor is not None:
        positives = collect_positive_components(summary.common_area_summary, summary.units_summary)
        hazards = generate_hazards(positives, hazard_assessor, hazard_reference or HazardReference())
        logger.info("Generated %d hazard(s) for %d positive group(s)", len(hazards), len(positives))
        summary = replace(summary, hazards=hazards)

    log_path = _flush(error_log)
    elapsed = (datetime.now(UTC) - start).total_seconds()
    return JobRunResult(summary=summary, reports=reports, elapsed_seconds=elapsed, error_log_path=log_path)


def _flush(error_log: ErrorLogBuffer) -> Path | None:
    try:
        return error_log.flush()
    except OSError as e:
        logger.warning("failed to write error log: %s", e)
        return None
