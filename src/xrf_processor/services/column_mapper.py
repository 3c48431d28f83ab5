from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from xrf_processor.config.column_aliases import (
    CANONICAL_FIELDS,
    CONCENTRATION_HEADERS,
    DEFAULT_COLUMN_ALIASES,
    REQUIRED_FIELDS,
    RESULT_HEADERS,
    find_column_match,
    get_unmapped_headers,
)
from xrf_processor.services.collaborators import AIColumnMapping, ColumnMappingService

"""Column mapping: detected headers -> canonical fields.

Static alias matching always runs first. The optional AI mapper is consulted
when a required field stays unresolved (or on every file when
``always_use_ai`` is set); its answers are only trusted for columns that
literally exist in the header row.
"""

__all__ = [
    "ColumnResolution",
    "MissingRequiredColumnsError",
    "detect_columns",
    "map_columns",
    "missing_required",
    "validate_required_columns",
]

logger = logging.getLogger(__name__)

# AI responses may name the pass/fail column "result"; it backfills leadContent
_AI_RESULT_FIELD = "result"


class MissingRequiredColumnsError(Exception):
    """Raised when required canonical fields cannot be mapped to any header."""

    def __init__(self, missing: Sequence[str], headers: Sequence[str]) -> None:
        self.missing = list(missing)
        self.headers = list(headers)
        super().__init__("; ".join(self.messages()))

    def messages(self) -> list[str]:
        available = ", ".join(h for h in self.headers if h)
        return [f"Required column not found: {m}. Available columns: {available}" for m in self.missing]


@dataclass(frozen=True)
class ColumnResolution:
    mapping: dict[str, str]  # canonical field -> header
    unmapped: list[str]
    used_ai: bool = False
    ai_confidence: float | None = None
    warnings: list[str] = field(default_factory=list)


def detect_columns(
    headers: Sequence[str],
    aliases: Mapping[str, Sequence[str]] = DEFAULT_COLUMN_ALIASES,
) -> dict[str, str]:
    """Static alias mapping of every canonical field that can be resolved."""
    detected: dict[str, str] = {}
    for name in CANONICAL_FIELDS:
        if name == "leadContent":
            col = (
                find_column_match(headers, CONCENTRATION_HEADERS)
                or find_column_match(headers, RESULT_HEADERS)
                or find_column_match(headers, aliases.get(name, ()))
            )
        else:
            col = find_column_match(headers, aliases.get(name, ()))
        if col:
            detected[name] = col
    return detected


def missing_required(mapping: Mapping[str, str]) -> list[str]:
    return [f for f in REQUIRED_FIELDS if not mapping.get(f)]


def validate_required_columns(mapping: Mapping[str, str], headers: Sequence[str]) -> None:
    missing = missing_required(mapping)
    if missing:
        raise MissingRequiredColumnsError(missing, headers)


def _accept_ai_assignments(
    ai: AIColumnMapping, headers: Sequence[str]
) -> tuple[dict[str, str], list[str]]:
    by_folded = {h.strip().lower(): h for h in headers if h.strip()}
    accepted: dict[str, str] = {}
    rejected: list[str] = []
    for name, column in ai.assignments.items():
        if not column:
            continue
        header = by_folded.get(str(column).strip().lower())
        if header is None:
            rejected.append(f"{name}={column}")
            continue
        if name in CANONICAL_FIELDS:
            accepted[name] = header
        elif name == _AI_RESULT_FIELD:
            accepted.setdefault("leadContent", header)
    return accepted, rejected


def _unmapped(headers: Sequence[str], mapping: Mapping[str, str], aliases) -> list[str]:
    used = set(mapping.values())
    return [h for h in get_unmapped_headers(headers, aliases) if h not in used]


def map_columns(
    headers: Sequence[str],
    aliases: Mapping[str, Sequence[str]] = DEFAULT_COLUMN_ALIASES,
    *,
    ai_mapper: ColumnMappingService | None = None,
    sample_rows: Sequence[dict[str, Any]] | None = None,
    use_ai_fallback: bool = True,
    always_use_ai: bool = False,
) -> ColumnResolution:
    """Resolve canonical fields to headers.

    Args:
        headers: Header labels of the detected header row
        aliases: Alias table (built-in plus configured spellings)
        ai_mapper: Optional AI column mapping collaborator
        sample_rows: A few data rows (header -> value) shown to the AI mapper
        use_ai_fallback: Ask the AI when required fields are unresolved
        always_use_ai: Ask the AI for every file; its assignments win

    Returns:
        ColumnResolution. Required fields may still be missing; callers run
        ``validate_required_columns`` on the result.
    """
    warnings: list[str] = []
    mapping = detect_columns(headers, aliases)

    static_unmapped = get_unmapped_headers(headers, aliases)
    if static_unmapped and not always_use_ai:
        warnings.append(f"Unmapped columns found: {', '.join(static_unmapped)}")

    wants_ai = always_use_ai or (use_ai_fallback and bool(missing_required(mapping)))
    if ai_mapper is None or not wants_ai:
        return ColumnResolution(
            mapping=mapping,
            unmapped=_unmapped(headers, mapping, aliases),
            warnings=warnings,
        )

    if not always_use_ai:
        warnings.append("Static column mapping incomplete. Using AI to map columns...")
    try:
        ai = ai_mapper.map_columns(list(headers), list(sample_rows or [])[:3])
    except Exception as e:
        logger.warning("AI column mapping failed: %s", e)
        warnings.append(f"AI column mapping failed: {e}")
        return ColumnResolution(
            mapping=mapping,
            unmapped=_unmapped(headers, mapping, aliases),
            warnings=warnings,
        )

    accepted, rejected = _accept_ai_assignments(ai, headers)
    if rejected:
        warnings.append(f"Ignored AI column suggestions not present in headers: {', '.join(rejected)}")

    if always_use_ai:
        merged = {**mapping, **accepted}
        warnings.append(f"Used AI to map columns (confidence: {ai.confidence * 100:.0f}%)")
    else:
        merged = dict(mapping)
        for name, header in accepted.items():
            merged.setdefault(name, header)
        warnings.append(f"AI mapping complete (confidence: {ai.confidence * 100:.0f}%)")

    logger.debug("column mapping after AI: %s", merged)
    return ColumnResolution(
        mapping=merged,
        unmapped=_unmapped(headers, merged, aliases),
        used_ai=True,
        ai_confidence=ai.confidence,
        warnings=warnings,
    )
