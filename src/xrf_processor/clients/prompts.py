"""System prompts for the chat-completion collaborators."""

from __future__ import annotations

__all__ = [
    "COLUMN_MAPPING_PROMPT",
    "COMPONENT_GROUPING_PROMPT",
    "SUBSTRATE_GROUPING_PROMPT",
    "hazard_assessment_prompt",
]

_GROUPING_FORMAT = """Respond with JSON only, in this shape:
{
  "normalizations": [
    {"canonical": "Door Jamb", "variants": ["door jamb", "dr. jamb", "doorjamb"], "confidence": 0.95}
  ]
}

Rules:
- canonical names are Title Case and fully spelled out, never abbreviated
- every input name appears in exactly one group, including as its own variant
- confidence is between 0.8 and 1.0 depending on how sure the grouping is"""

COMPONENT_GROUPING_PROMPT = f"""You normalize building component names taken from XRF lead paint inspection data.
Group names that refer to the same component and give each group one canonical name.

Treat as the same component:
- abbreviations and their full word (dr/door, win/wndw/window, kit/kitchen, cab/cabinet,
  clos/closet, bdrm/bedroom, ceil/ceiling, flr/floor, ext/exterior, int/interior)
- punctuation and spacing differences (door-jamb, door jamb, doorjamb)
- construction synonyms (baseboard, base board, base molding)
- case differences and common typos

{_GROUPING_FORMAT}"""

SUBSTRATE_GROUPING_PROMPT = f"""You normalize substrate (surface material) names taken from XRF lead paint inspection data.
Group names that refer to the same material and give each group one canonical name.

Treat as the same material:
- abbreviations and their full word (wd/wood, mtl/metal, pls/plaster, dw/drywall, conc/concrete, brk/brick)
- synonyms (sheetrock, gypsum board, wallboard -> Drywall; steel, iron, aluminum -> Metal; lumber -> Wood)
- case differences and common typos
Prefer broad categories: Wood, Metal, Drywall, Plaster, Concrete, Brick, Glass, Plastic.

{_GROUPING_FORMAT}"""

COLUMN_MAPPING_PROMPT = """You map spreadsheet column headers from XRF lead paint analyzer exports to standard fields.

Required fields:
- readingId: identifier of each shot ("Reading #", "Test ID", "Rdg")
- component: building component tested ("Component", "Element", "Item")
- leadContent: lead concentration in mg/cm2 ("Pb", "PbC", "Lead", "Conc", "XRF Result")
- color: paint color ("Color", "Colour", "Paint Color")

Optional fields:
- location, substrate, side, condition, timestamp
- result: positive/negative classification column ("Pos/Neg", "+/-")

Hints: a column with numbers or "mg/cm" values is leadContent; a column with Pos/Neg text is result;
room or unit numbers are location, not readingId. Only use header names exactly as given.

Respond with JSON only, in this shape:
{
  "mappings": [{"field": "readingId", "column": "Reading #", "confidence": 0.95, "reasoning": "..."}],
  "unmapped": ["Notes"],
  "overallConfidence": 0.9
}"""


def hazard_assessment_prompt(abatement_codes: list[str], interim_codes: list[str]) -> str:
    abate = "\n".join(f"- {c}" for c in abatement_codes) or "- d"
    interim = "\n".join(f"- {c}" for c in interim_codes) or "- 5"
    return f"""You are a certified lead paint inspector and risk assessor.
For each positive lead-based paint component you receive, produce:
1. hazardDescription: one or two sentences in inspection report style
2. severity: Critical, High or Moderate
3. priority: Restrict Access, ASAP or Schedule
4. abateCode and icCode chosen from the tables below

Abatement codes:
{abate}

Interim control codes:
{interim}

Typical choices: windows e/f/g with 5/6/7; doors h/i with 4/5; walls and trim d/j/l with 5/6;
dust a/b with 1/2. Deteriorated or high-exposure items are High and ASAP; intact, low-exposure
items are Moderate and Schedule.

Respond with a JSON array only, one object per component, in input order:
[{{"hazardDescription": "...", "severity": "Moderate", "priority": "Schedule", "abateCode": "d", "icCode": "5"}}]"""
