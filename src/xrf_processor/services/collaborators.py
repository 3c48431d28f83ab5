from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from xrf_processor.models.normalization import CacheEntry, NormalizationEntry, NormalizationGroup

"""Interfaces of the external collaborators the pipeline depends on.

Concrete implementations live in ``xrf_processor.clients`` (AI services) and
``xrf_processor.db`` (mapping cache); tests pass in fakes. Every collaborator
is handed to the service that uses it; nothing is looked up globally.
"""

__all__ = [
    "AIColumnMapping",
    "ColumnMappingService",
    "HazardAssessor",
    "MappingCache",
    "NameGroupingService",
]


@dataclass(frozen=True)
class AIColumnMapping:
    assignments: dict[str, str] = field(default_factory=dict)  # canonical field -> column
    unmapped: list[str] = field(default_factory=list)
    confidence: float = 0.0


class ColumnMappingService(Protocol):
    def map_columns(
        self, headers: Sequence[str], sample_rows: Sequence[dict[str, Any]] | None = None
    ) -> AIColumnMapping: ...


class NameGroupingService(Protocol):
    def normalize(self, names: Sequence[str]) -> list[NormalizationGroup]: ...


class MappingCache(Protocol):
    """Persistent key-value store keyed by lowercased original name.

    ``update_cache`` is an upsert: existing keys get the new normalized name,
    confidence and source and their usage counter incremented.
    """

    def get_cached_mappings(self, names: Sequence[str]) -> dict[str, CacheEntry]: ...

    def update_cache(self, entries: Sequence[NormalizationEntry]) -> None: ...


class HazardAssessor(Protocol):
    def assess_hazards(self, components: Sequence[dict[str, Any]]) -> list[dict[str, Any]]: ...
