from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

"""Reading model: one canonical XRF shot after row parsing.

A Reading is created once by the row parser and never mutated. The two
normalized-name fields are filled in later by the name normalizer through
``with_normalized_component`` / ``with_normalized_substrate``, each of which
may succeed only once per reading.
"""

__all__ = [
    "LEAD_POSITIVE_THRESHOLD",
    "Reading",
]

# mg/cm² at or above which a reading counts as lead-positive
LEAD_POSITIVE_THRESHOLD = 1.0


@dataclass(frozen=True)
class Reading:
    """Canonical XRF measurement record.

    Attributes:
        id: Identifier unique within one parse batch (``<rawId>_<index>`` or ``Row_<index>``)
        component: Raw component text as found in the spreadsheet
        color: Paint color, ``"Unknown"`` when the cell was blank
        lead_content: Lead concentration in mg/cm²
        source_row: Original mapped row, kept for traceability
    """
    id: str
    component: str
    color: str
    lead_content: float  # mg/cm²
    location: str | None = None
    unit_number: str | None = None
    room_type: str | None = None
    room_number: str | None = None
    substrate: str | None = None
    side: str | None = None
    condition: str | None = None
    timestamp: datetime | None = None
    normalized_component: str | None = None  # set once by the component normalizer
    normalized_substrate: str | None = None  # set once by the substrate normalizer
    source_row: dict[str, Any] | None = None

    @property
    def is_positive(self) -> bool:
        return self.lead_content >= LEAD_POSITIVE_THRESHOLD

    @property
    def group_component(self) -> str:
        """Component key used for grouping (normalized name wins)."""
        return self.normalized_component or self.component

    @property
    def group_substrate(self) -> str | None:
        return self.normalized_substrate or self.substrate or None

    def to_dict(self) -> dict[str, Any]:
        """JSON form (camelCase keys, ``isPositive`` included for readers)."""
        return {
            "readingId": self.id,
            "component": self.component,
            "color": self.color,
            "leadContent": self.lead_content,
            "isPositive": self.is_positive,
            "location": self.location,
            "unitNumber": self.unit_number,
            "roomType": self.room_type,
            "roomNumber": self.room_number,
            "substrate": self.substrate,
            "side": self.side,
            "condition": self.condition,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "normalizedComponent": self.normalized_component,
            "normalizedSubstrate": self.normalized_substrate,
            "rawRow": self.source_row,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> Reading:
        # isPositive is derived; the stored value is ignored
        ts = data.get("timestamp")
        return Reading(
            id=data["readingId"],
            component=data["component"],
            color=data.get("color") or "Unknown",
            lead_content=float(data["leadContent"]),
            location=data.get("location"),
            unit_number=data.get("unitNumber"),
            room_type=data.get("roomType"),
            room_number=data.get("roomNumber"),
            substrate=data.get("substrate"),
            side=data.get("side"),
            condition=data.get("condition"),
            timestamp=datetime.fromisoformat(ts) if ts else None,
            normalized_component=data.get("normalizedComponent"),
            normalized_substrate=data.get("normalizedSubstrate"),
            source_row=data.get("rawRow"),
        )

    def with_normalized_component(self, name: str) -> Reading:
        if self.normalized_component is not None:
            raise ValueError(f"reading {self.id} already has a normalized component")
        return replace(self, normalized_component=name)

    def with_normalized_substrate(self, name: str) -> Reading:
        if self.normalized_substrate is not None:
            raise ValueError(f"reading {self.id} already has a normalized substrate")
        return replace(self, normalized_substrate=name)
