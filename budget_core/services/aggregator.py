from __future__ import annotations

import math
from collections import OrderedDict
from typing import Mapping, Optional, Tuple

from budget_core.domain.models import ActualsTable, CapTable, MonthKey
from budget_core.domain.taxonomy import DEFAULT_TAXONOMY, Taxonomy

ROUNDING_UNIT = 1000


def round_to_unit(amount: float, unit: int = ROUNDING_UNIT) -> float:
    """Round half up to the nearest ``unit`` (1,000 by default)."""
    if not unit:
        return float(amount)
    return float(math.floor(amount / unit + 0.5) * unit)


def _lookup(table: Optional[Mapping[MonthKey, Mapping[str, float]]], month: MonthKey, leaf: str) -> float:
    if not table:
        return 0.0
    row = table.get(month) or {}
    value = row.get(leaf)
    if value is None:
        return 0.0
    value = float(value)
    if math.isnan(value) or value < 0:
        return 0.0
    return value


def get_actual(actuals: Optional[ActualsTable], month: MonthKey, leaf: str) -> float:
    return _lookup(actuals, month, leaf)


def get_cap(caps: Optional[CapTable], month: MonthKey, leaf: str) -> float:
    return _lookup(caps, month, leaf)


def rounded_cap(caps: Optional[CapTable], month: MonthKey, leaf: str, unit: int = ROUNDING_UNIT) -> float:
    return max(0.0, round_to_unit(get_cap(caps, month, leaf), unit))


def aggregate_parent(
    month: MonthKey,
    parent: str,
    actuals: Optional[ActualsTable],
    taxonomy: Taxonomy = DEFAULT_TAXONOMY,
) -> float:
    return sum(get_actual(actuals, month, leaf) for leaf in taxonomy.children_of(parent))


def aggregate_cap(
    month: MonthKey,
    parent: str,
    caps: Optional[CapTable],
    taxonomy: Taxonomy = DEFAULT_TAXONOMY,
    unit: int = ROUNDING_UNIT,
) -> float:
    # Each leaf is rounded before summing so the parent equals the sum of displayed leaves.
    return sum(rounded_cap(caps, month, leaf, unit) for leaf in taxonomy.children_of(parent))


def parent_totals(
    month: MonthKey,
    actuals: Optional[ActualsTable],
    caps: Optional[CapTable],
    taxonomy: Taxonomy = DEFAULT_TAXONOMY,
) -> "OrderedDict[str, Tuple[float, float]]":
    """parent -> (cap, actual), in taxonomy order."""
    totals: "OrderedDict[str, Tuple[float, float]]" = OrderedDict()
    for parent in taxonomy.parents:
        totals[parent] = (
            aggregate_cap(month, parent, caps, taxonomy),
            aggregate_parent(month, parent, actuals, taxonomy),
        )
    return totals
