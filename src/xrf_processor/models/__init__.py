"""Domain models for the XRF ingestion and classification pipeline."""

from .error_record import ErrorRecord
from .normalization import (
    CacheEntry,
    NormalizationEntry,
    NormalizationGroup,
    NormalizationProgress,
    NormalizationSource,
    NormalizationStage,
)
from .parse_result import (
    CalibrationSkip,
    JunkReason,
    JunkSkip,
    ParseBatch,
    ParseFailure,
    ParseFailureReason,
    ParseMetadata,
    RowError,
)
from .reading import LEAD_POSITIVE_THRESHOLD, Reading
from .row_data import RawGrid, RowData
from .summary import (
    AreaType,
    AverageComponentSummary,
    ClassificationCounts,
    DatasetSummary,
    JobSummary,
    JobTotals,
    LeadPaintHazard,
    NonUniformComponentSummary,
    SummaryStats,
    UniformComponentSummary,
    Verdict,
)

__all__ = [
    # Parsing
    "RawGrid",
    "RowData",
    "Reading",
    "LEAD_POSITIVE_THRESHOLD",
    "CalibrationSkip",
    "JunkReason",
    "JunkSkip",
    "RowError",
    "ParseBatch",
    "ParseFailure",
    "ParseFailureReason",
    "ParseMetadata",
    # Normalization
    "CacheEntry",
    "NormalizationEntry",
    "NormalizationGroup",
    "NormalizationProgress",
    "NormalizationSource",
    "NormalizationStage",
    # Summaries
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
    # Logging
    "ErrorRecord",
]
