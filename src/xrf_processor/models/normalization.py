from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Name normalization models shared by the component and substrate normalizers."""

__all__ = [
    "CacheEntry",
    "NormalizationEntry",
    "NormalizationGroup",
    "NormalizationProgress",
    "NormalizationSource",
    "NormalizationStage",
]


class NormalizationSource(str, Enum):
    CACHE = "CACHE"
    AI = "AI"
    MANUAL = "MANUAL"


class NormalizationStage(str, Enum):
    CHECKING_CACHE = "checking-cache"
    CALLING_AI = "calling-ai"
    SAVING_CACHE = "saving-cache"
    COMPLETE = "complete"


@dataclass(frozen=True)
class NormalizationEntry:
    original_name: str  # lowercased, trimmed
    normalized_name: str
    confidence: float  # 0..1
    source: NormalizationSource


@dataclass(frozen=True)
class NormalizationGroup:
    """One canonical name and the raw variants the grouping service folded into it."""
    canonical: str
    variants: list[str] = field(default_factory=list)
    confidence: float = 0.9


@dataclass(frozen=True)
class CacheEntry:
    normalized_name: str
    confidence: float
    source: NormalizationSource
    usage_count: int = 1


@dataclass(frozen=True)
class NormalizationProgress:
    stage: NormalizationStage
    processed: int
    total: int
    message: str
