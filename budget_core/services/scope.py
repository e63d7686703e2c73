from __future__ import annotations

import dataclasses
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from budget_core.domain.models import ActualsTable, MonthKey
from budget_core.domain.taxonomy import Taxonomy

GLOBAL = "global"
PER_MONTH = "per-month"


@dataclasses.dataclass(frozen=True)
class AnalyticsScope:
    """
    Leaves left out of analytics, either for every month or month by month.

    Exclusions only affect analysis input; transactions are untouched.
    """

    mode: str = GLOBAL
    global_excluded: FrozenSet[str] = frozenset()
    by_month: Mapping[MonthKey, FrozenSet[str]] = dataclasses.field(default_factory=dict)

    def __post_init__(self):
        if self.mode not in (GLOBAL, PER_MONTH):
            raise ValueError(f"Unknown scope mode: {self.mode!r}")

    def excluded_for(self, month: MonthKey) -> FrozenSet[str]:
        if self.mode == GLOBAL:
            return self.global_excluded
        return frozenset(self.by_month.get(month, frozenset()))

    def _with_excluded(self, month: MonthKey, excluded: Iterable[str]) -> "AnalyticsScope":
        if self.mode == GLOBAL:
            return dataclasses.replace(self, global_excluded=frozenset(excluded))
        by_month: Dict[MonthKey, FrozenSet[str]] = dict(self.by_month)
        by_month[month] = frozenset(excluded)
        return dataclasses.replace(self, by_month=by_month)

    def with_mode(self, mode: str) -> "AnalyticsScope":
        return dataclasses.replace(self, mode=mode)

    def toggle(self, leaf: str, month: MonthKey = "") -> "AnalyticsScope":
        current = self.excluded_for(month)
        return self._with_excluded(month, current - {leaf} if leaf in current else current | {leaf})

    def include_all(self, month: MonthKey = "") -> "AnalyticsScope":
        return self._with_excluded(month, ())

    def exclude_all(self, taxonomy: Taxonomy, month: MonthKey = "") -> "AnalyticsScope":
        return self._with_excluded(month, taxonomy.leaves)

    def exclude_parent(self, parent: str, taxonomy: Taxonomy, month: MonthKey = "") -> "AnalyticsScope":
        return self._with_excluded(month, self.excluded_for(month) | set(taxonomy.children_of(parent)))

    def include_parent(self, parent: str, taxonomy: Taxonomy, month: MonthKey = "") -> "AnalyticsScope":
        return self._with_excluded(month, self.excluded_for(month) - set(taxonomy.children_of(parent)))

    def included_count(self, month: MonthKey, leaves: Iterable[str]) -> int:
        excluded = self.excluded_for(month)
        return sum(1 for leaf in leaves if leaf not in excluded)


def apply_scope(actuals: Optional[ActualsTable], month: MonthKey, scope: AnalyticsScope) -> Dict[MonthKey, Dict[str, float]]:
    """Copy of ``actuals`` with the month's excluded leaves removed from that month."""
    excluded = scope.excluded_for(month)
    out = {m: dict(row) for m, row in (actuals or {}).items()}
    if month in out:
        out[month] = {leaf: amount for leaf, amount in out[month].items() if leaf not in excluded}
    return out
