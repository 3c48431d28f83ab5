from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

"""Column alias table for XRF device exports.

Maps each canonical field to the header spellings observed across device
vendors, including truncated and all-caps variants produced by fixed-width
exports (``COMPONE``, ``SUBSTRAT``, ``Concentra`` ...). Additional spellings can
be supplied through the ``column_aliases`` section of the YAML config; they are
appended to the built-in lists by ``merge_aliases``.
"""

__all__ = [
    "CANONICAL_FIELDS",
    "CONCENTRATION_HEADERS",
    "DEFAULT_COLUMN_ALIASES",
    "HEADER_SCORING_FIELDS",
    "MIN_PREFIX_LEN",
    "REQUIRED_FIELDS",
    "RESULT_HEADERS",
    "find_column_match",
    "get_unmapped_headers",
    "merge_aliases",
]

REQUIRED_FIELDS: tuple[str, ...] = ("readingId", "component", "color", "leadContent")

# Fields whose aliases are counted when scoring candidate header rows
HEADER_SCORING_FIELDS: tuple[str, ...] = ("readingId", "component", "leadContent", "color")

# Shortest string allowed to take part in a prefix match
MIN_PREFIX_LEN = 4

DEFAULT_COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "readingId": (
        "Reading ID", "ReadingID", "Reading #", "Reading Number", "ID", "Rdg",
        "Reading", "Test ID", "Test #", "Sample ID",
    ),
    "component": (
        "Component", "COMPONENT", "Components", "COMPONE", "COMPON",
        "Building Component", "Comp", "Component Type", "Testing Component",
        "Substrate Component", "Test Component", "Element",
    ),
    "color": (
        "Color", "COLOR", "Paint Color", "Colour", "Surface Color", "Coating Color",
    ),
    "leadContent": (
        "PbC", "PbC (mg/cm²)", "PbC (mg/cm2)", "Lead Content", "Lead (mg/cm²)",
        "Lead (mg/cm2)", "Lead", "Pb", "Pb Content", "Lead Concentration",
        "Concentration", "Concentra", "mg/cm²", "mg/cm2", "Result", "RESULT",
        "XRF Result", "Lead Result", "Pb (mg/cm²)",
    ),
    "location": (
        "Location", "Full Location", "Test Location", "Unit/Room", "Room/Unit",
    ),
    "unitNumber": (
        "Unit", "Unit #", "Unit Number", "Unit No", "Apt", "Apt #", "Apt No",
        "Apartment", "Apartment #", "Apartment Number", "Dwelling", "Dwelling Unit",
    ),
    "roomType": (
        "Room Type", "ROOM TY", "RoomType", "Room", "Room Name", "Area",
        "Area Type", "Space", "Space Type",
    ),
    "roomNumber": (
        "Room Number", "Room #", "Room Num", "Room No", "Rm #", "Rm No", "Number", "#",
    ),
    "substrate": (
        "Substrate", "SUBSTRAT", "Subtrate", "Surface", "Material", "Substrate Type",
        "Surface Type", "Base Material",
    ),
    "side": ("Side", "SIDE", "Surface Side", "A/B", "Face"),
    "condition": (
        "Condition", "CONDITIO", "CONDITION", "Paint Condition", "Surface Condition",
        "Coating Condition",
    ),
    "timestamp": (
        "Date", "Time", "DateTime", "Timestamp", "Reading Date", "Test Date", "Date/Time",
    ),
}

CANONICAL_FIELDS: tuple[str, ...] = tuple(DEFAULT_COLUMN_ALIASES)

# Lead column preference: measured concentration beats a pass/fail result column
CONCENTRATION_HEADERS: tuple[str, ...] = (
    "Concentration", "Concentra", "Lead Content", "PbC", "PbC (mg/cm²)",
    "Lead (mg/cm²)", "mg/cm²", "mg/cm2",
)
RESULT_HEADERS: tuple[str, ...] = ("Result", "RESULT", "XRF Result", "Lead Result")


def _fold(text: str) -> str:
    return text.strip().lower()


def merge_aliases(
    extra: Mapping[str, Iterable[str]] | None = None,
    base: Mapping[str, Sequence[str]] = DEFAULT_COLUMN_ALIASES,
) -> dict[str, tuple[str, ...]]:
    """Return ``base`` with ``extra`` spellings appended per field.

    Unknown field names in ``extra`` are rejected so a typo in the config does
    not silently disable an alias.
    """
    merged = {name: tuple(aliases) for name, aliases in base.items()}
    for name, aliases in (extra or {}).items():
        if name not in merged:
            raise ValueError(f"unknown canonical field in column_aliases: {name}")
        known = {_fold(a) for a in merged[name]}
        added = tuple(a for a in aliases if _fold(a) not in known)
        merged[name] = merged[name] + added
    return merged


def find_column_match(headers: Sequence[str], possible_names: Iterable[str]) -> str | None:
    """Resolve one canonical field against the observed headers.

    Exact case-insensitive match first (alias order decides), then a prefix
    match where either string may be the truncated one (header order decides).
    A prefix pair is only considered when at least one side has
    ``MIN_PREFIX_LEN`` characters.

    Returns:
        The header as spelled in ``headers``, or None
    """
    names = [_fold(n) for n in possible_names]
    folded = [_fold(h) for h in headers]

    for name in names:
        if name in folded:
            return headers[folded.index(name)]

    for i, h in enumerate(folded):
        if not h:
            continue
        for n in names:
            if len(h) < MIN_PREFIX_LEN and len(n) < MIN_PREFIX_LEN:
                continue
            if n.startswith(h) or h.startswith(n):
                return headers[i]
    return None


def get_unmapped_headers(
    headers: Sequence[str],
    aliases: Mapping[str, Sequence[str]] = DEFAULT_COLUMN_ALIASES,
) -> list[str]:
    """Headers that exactly match no alias of any field (blank headers excluded)."""
    known = {_fold(a) for names in aliases.values() for a in names}
    return [h for h in headers if _fold(h) and _fold(h) not in known]
