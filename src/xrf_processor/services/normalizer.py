from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable, Iterable, Sequence

from xrf_processor.config.loader import ProcessingConfig
from xrf_processor.models.normalization import (
    CacheEntry,
    NormalizationEntry,
    NormalizationProgress,
    NormalizationSource,
    NormalizationStage,
)
from xrf_processor.models.reading import Reading
from xrf_processor.services.collaborators import MappingCache, NameGroupingService

"""Cache-first name normalization.

One ``NameNormalizer`` class serves both components and substrates; the two
instances differ only in the AI grouping prompt and the cache table they are
given (see ``component_normalizer`` / ``substrate_normalizer``).

For a batch of raw names:

1. lowercase, strip and deduplicate (blank names dropped)
2. look every name up in the persistent cache, in batches
3. send the remaining names to the AI grouping service in one call; variants
   it groups take the group's canonical name, names it leaves out get their
   own title-cased form (confidence 1.0)
4. if that call fails every uncached name gets its title-cased form at
   confidence 0.5
5. AI entries are written back to the cache; a failed write is logged and
   does not affect the result
"""

__all__ = [
    "FALLBACK_CONFIDENCE",
    "NameNormalizer",
    "NormalizationProgressCallback",
    "component_normalizer",
    "substrate_normalizer",
    "to_title_case",
    "unique_names",
]

logger = logging.getLogger(__name__)

NormalizationProgressCallback = Callable[[NormalizationProgress], None]

# Confidence assigned when the grouping service is unavailable
FALLBACK_CONFIDENCE = 0.5
UNGROUPED_CONFIDENCE = 1.0

_TOKEN_SPLIT_RE = re.compile(r"[\s\-_]+")


def to_title_case(name: str) -> str:
    """``"door-JAMB_left"`` -> ``"Door Jamb Left"``."""
    tokens = [t for t in _TOKEN_SPLIT_RE.split(name.lower()) if t]
    return " ".join(t[:1].upper() + t[1:] for t in tokens)


def unique_names(names: Iterable[str | None]) -> list[str]:
    """Lowercased, stripped, deduplicated names in first-seen order."""
    seen: dict[str, None] = {}
    for n in names:
        key = (n or "").strip().lower()
        if key:
            seen.setdefault(key, None)
    return list(seen)


def _batched(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


class NameNormalizer:
    """Normalizes one kind of free-text label (component or substrate).

    Args:
        kind: ``"component"`` or ``"substrate"``; selects the Reading field and
            appears in progress messages
        cache: Persistent mapping cache
        grouper: AI grouping service; None means no AI is available and
            uncached names are title-cased locally (source MANUAL, not cached)
        processing: Batch / chunk sizes for cache traffic
        sleep: Yield function called between cache write chunks
    """

    def __init__(
        self,
        kind: str,
        cache: MappingCache,
        grouper: NameGroupingService | None = None,
        *,
        processing: ProcessingConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if kind not in ("component", "substrate"):
            raise ValueError(f"unknown normalization kind: {kind}")
        self.kind = kind
        self.cache = cache
        self.grouper = grouper
        self.processing = processing or ProcessingConfig()
        self._sleep = sleep

    def _report(
        self,
        callback: NormalizationProgressCallback | None,
        stage: NormalizationStage,
        processed: int,
        total: int,
        message: str | None = None,
    ) -> None:
        if callback:
            callback(
                NormalizationProgress(
                    stage=stage,
                    processed=processed,
                    total=total,
                    message=message or f"{stage.value}: {processed}/{total}",
                )
            )

    def _lookup(self, names: list[str]) -> dict[str, CacheEntry]:
        found: dict[str, CacheEntry] = {}
        for batch in _batched(names, self.processing.cache_batch_size):
            found.update(self.cache.get_cached_mappings(list(batch)))
        return found

    def _ask_grouper(self, grouper: NameGroupingService, uncached: list[str]) -> list[NormalizationEntry]:
        wanted = set(uncached)
        claimed: dict[str, NormalizationEntry] = {}
        try:
            groups = grouper.normalize(uncached)
        except Exception as e:
            logger.warning("%s normalization service failed, using title case: %s", self.kind, e)
            return [
                NormalizationEntry(n, to_title_case(n), FALLBACK_CONFIDENCE, NormalizationSource.AI)
                for n in uncached
            ]
        for group in groups:
            for variant in group.variants:
                key = variant.strip().lower()
                if key in wanted and key not in claimed:
                    claimed[key] = NormalizationEntry(
                        key, group.canonical, group.confidence, NormalizationSource.AI
                    )
        return [
            claimed.get(n)
            or NormalizationEntry(n, to_title_case(n), UNGROUPED_CONFIDENCE, NormalizationSource.AI)
            for n in uncached
        ]

    def _save(self, entries: list[NormalizationEntry], done: int, total: int, callback) -> None:
        chunk = self.processing.chunk_size
        try:
            for i in range(0, len(entries), chunk):
                part = entries[i:i + chunk]
                self.cache.update_cache(part)
                self._report(
                    callback,
                    NormalizationStage.SAVING_CACHE,
                    done,
                    total,
                    f"Cached {min(i + chunk, len(entries))}/{len(entries)} new mappings",
                )
                if i + chunk < len(entries):
                    self._sleep(self.processing.chunk_delay_seconds)
        except Exception as e:
            logger.warning("failed to save %s mappings to cache: %s", self.kind, e)

    def normalize_names(
        self,
        names: Iterable[str | None],
        on_progress: NormalizationProgressCallback | None = None,
    ) -> list[NormalizationEntry]:
        """Normalize raw names; one entry per unique lowercased name."""
        unique = unique_names(names)
        if not unique:
            return []
        total = len(unique)

        self._report(on_progress, NormalizationStage.CHECKING_CACHE, 0, total)
        cached = self._lookup(unique)
        results: list[NormalizationEntry] = []
        uncached: list[str] = []
        for name in unique:
            hit = cached.get(name)
            if hit is not None:
                results.append(
                    NormalizationEntry(name, hit.normalized_name, hit.confidence, NormalizationSource.CACHE)
                )
            else:
                uncached.append(name)
        self._report(
            on_progress, NormalizationStage.CHECKING_CACHE, len(results), total,
            f"Found {len(results)} cached mappings",
        )

        if uncached:
            self._report(
                on_progress, NormalizationStage.CALLING_AI, len(results), total,
                f"Normalizing {len(uncached)} new {self.kind}s...",
            )
            if self.grouper is None:
                results.extend(
                    NormalizationEntry(n, to_title_case(n), FALLBACK_CONFIDENCE, NormalizationSource.MANUAL)
                    for n in uncached
                )
            else:
                results.extend(self._ask_grouper(self.grouper, uncached))

        fresh = [e for e in results if e.source is NormalizationSource.AI]
        if fresh:
            self._report(
                on_progress, NormalizationStage.SAVING_CACHE, len(results), total,
                f"Caching {len(fresh)} new mappings...",
            )
            self._save(fresh, len(results), total, on_progress)

        self._report(
            on_progress, NormalizationStage.COMPLETE, total, total,
            f"Normalized {total} {self.kind}s",
        )
        logger.debug(
            "%s normalization: %d unique, %d cached, %d new",
            self.kind, total, total - len(uncached), len(uncached),
        )
        return results

    def normalize_readings(
        self,
        readings: Sequence[Reading],
        on_progress: NormalizationProgressCallback | None = None,
    ) -> tuple[list[Reading], int]:
        """Set the normalized name on every reading.

        Returns:
            (updated readings, number of entries produced by the AI service)
        """
        raw = [r.component if self.kind == "component" else r.substrate for r in readings]
        entries = self.normalize_names(raw, on_progress)
        lookup = {e.original_name: e.normalized_name for e in entries}

        updated: list[Reading] = []
        for reading, name in zip(readings, raw, strict=True):
            if self.kind == "component":
                target = lookup.get(name.strip().lower()) or name
                updated.append(reading.with_normalized_component(target))
            elif name and name.strip():
                target = lookup.get(name.strip().lower()) or name
                updated.append(reading.with_normalized_substrate(target))
            else:
                updated.append(reading)
        ai_count = sum(1 for e in entries if e.source is NormalizationSource.AI)
        return updated, ai_count


def component_normalizer(
    cache: MappingCache,
    grouper: NameGroupingService | None = None,
    processing: ProcessingConfig | None = None,
) -> NameNormalizer:
    return NameNormalizer("component", cache, grouper, processing=processing)


def substrate_normalizer(
    cache: MappingCache,
    grouper: NameGroupingService | None = None,
    processing: ProcessingConfig | None = None,
) -> NameNormalizer:
    return NameNormalizer("substrate", cache, grouper, processing=processing)
