from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from xrf_processor.models.reading import Reading
from xrf_processor.models.summary import (
    AreaType,
    AverageComponentSummary,
    DatasetSummary,
    NonUniformComponentSummary,
    UniformComponentSummary,
    Verdict,
)

"""Classification of readings into regulatory group verdicts.

Readings are grouped by (normalized component, normalized substrate), falling
back to the raw text when a name was not normalized. Each group is then:

- AVERAGE     at least 40 readings; POSITIVE when more than 2.5 % are positive
- UNIFORM     fewer than 40 readings that all agree
- NON_UNIFORM fewer than 40 readings with mixed outcomes; readings retained
"""

__all__ = [
    "ComponentGroup",
    "POSITIVE_PERCENT_THRESHOLD",
    "STATISTICAL_SAMPLE_SIZE",
    "classify_dataset",
    "classify_group",
    "group_readings",
    "percent_half_up",
    "round_half_up",
]

STATISTICAL_SAMPLE_SIZE = 40
POSITIVE_PERCENT_THRESHOLD = 2.5


@dataclass(frozen=True)
class ComponentGroup:
    component: str
    substrate: str | None
    readings: list[Reading] = field(default_factory=list)


GroupSummary = AverageComponentSummary | UniformComponentSummary | NonUniformComponentSummary


def round_half_up(value: float | Decimal, digits: int = 1) -> float:
    """Round halves up on the decimal value (12.25 -> 12.3)."""
    exact = value if isinstance(value, Decimal) else Decimal(repr(value))
    return float(exact.quantize(Decimal(1).scaleb(-digits), rounding=ROUND_HALF_UP))


def percent_half_up(count: int, total: int, digits: int = 1) -> float:
    """``count / total`` as a percentage, rounded half up from the exact ratio."""
    if total == 0:
        return 0.0
    return round_half_up(Decimal(count * 100) / Decimal(total), digits)


def group_readings(readings: Iterable[Reading]) -> list[ComponentGroup]:
    """Group by (component, substrate) keeping first-seen order of groups."""
    groups: dict[tuple[str, str | None], list[Reading]] = {}
    for r in readings:
        groups.setdefault((r.group_component, r.group_substrate), []).append(r)
    return [ComponentGroup(comp, sub, rs) for (comp, sub), rs in groups.items()]


def _percentages(positive: int, total: int) -> tuple[float, float]:
    return percent_half_up(positive, total), percent_half_up(total - positive, total)


def classify_group(group: ComponentGroup) -> GroupSummary:
    total = len(group.readings)
    if total == 0:
        raise ValueError(f"empty group: {group.component}")
    positive = sum(1 for r in group.readings if r.is_positive)
    negative = total - positive

    if total >= STATISTICAL_SAMPLE_SIZE:
        pos_pct, neg_pct = _percentages(positive, total)
        return AverageComponentSummary(
            component=group.component,
            substrate=group.substrate,
            total_readings=total,
            positive_count=positive,
            negative_count=negative,
            positive_percent=pos_pct,
            negative_percent=neg_pct,
            result=Verdict.POSITIVE if positive * 100 > POSITIVE_PERCENT_THRESHOLD * total else Verdict.NEGATIVE,
        )

    if positive == total or negative == total:
        return UniformComponentSummary(
            component=group.component,
            substrate=group.substrate,
            total_readings=total,
            result=Verdict.POSITIVE if positive == total else Verdict.NEGATIVE,
        )

    pos_pct, neg_pct = _percentages(positive, total)
    return NonUniformComponentSummary(
        component=group.component,
        substrate=group.substrate,
        total_readings=total,
        positive_count=positive,
        negative_count=negative,
        positive_percent=pos_pct,
        negative_percent=neg_pct,
        readings=list(group.readings),
    )


def _sort_key(summary: GroupSummary) -> tuple[str, str]:
    # plain code point order, so "Zebra" sorts before "apple"
    return (summary.component, summary.substrate or "")


def classify_dataset(readings: Sequence[Reading], dataset_type: AreaType) -> DatasetSummary:
    """Totals over all readings plus the three sorted group lists."""
    if not readings:
        return DatasetSummary.empty(dataset_type)

    groups = group_readings(readings)
    average: list[AverageComponentSummary] = []
    uniform: list[UniformComponentSummary] = []
    non_uniform: list[NonUniformComponentSummary] = []
    for g in groups:
        s = classify_group(g)
        if isinstance(s, AverageComponentSummary):
            average.append(s)
        elif isinstance(s, UniformComponentSummary):
            uniform.append(s)
        else:
            non_uniform.append(s)

    total_positive = sum(1 for r in readings if r.is_positive)
    return DatasetSummary(
        dataset_type=dataset_type,
        total_readings=len(readings),
        total_positive=total_positive,
        total_negative=len(readings) - total_positive,
        unique_components=len(groups),
        average_components=sorted(average, key=_sort_key),
        uniform_components=sorted(uniform, key=_sort_key),
        non_uniform_components=sorted(non_uniform, key=_sort_key),
    )
