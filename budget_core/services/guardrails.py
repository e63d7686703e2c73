from __future__ import annotations

import logging
from typing import List, Mapping, Optional

from budget_core.domain.models import (
    ActualsTable,
    DEFAULT_PARENT_INCOME_LIMITS,
    CapTable,
    GuardRailReport,
    GuardRailResult,
    IncomeBucket,
    IncomeShareWarning,
    MonthKey,
    UtilizationBucket,
)
from budget_core.domain.taxonomy import DEFAULT_TAXONOMY, Taxonomy
from budget_core.services.aggregator import aggregate_parent, get_actual, parent_totals, rounded_cap

logger = logging.getLogger(__name__)

NEAR_THRESHOLD = 0.8
OVER_THRESHOLD = 1.0

INCOME_BREACH_THRESHOLD = 1.0
INCOME_HIGH_THRESHOLD = 0.8
INCOME_MODERATE_THRESHOLD = 0.3


def safe_ratio(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 0.0
    return numerator / denominator


def classify_utilization(ratio: float) -> UtilizationBucket:
    if ratio >= OVER_THRESHOLD:
        return UtilizationBucket.OVER
    if ratio >= NEAR_THRESHOLD:
        return UtilizationBucket.NEAR
    return UtilizationBucket.OK


def classify_income(ratio: float) -> IncomeBucket:
    if ratio > INCOME_BREACH_THRESHOLD:
        return IncomeBucket.BREACH
    if ratio > INCOME_HIGH_THRESHOLD:
        return IncomeBucket.HIGH
    if ratio > INCOME_MODERATE_THRESHOLD:
        return IncomeBucket.MODERATE
    return IncomeBucket.LOW


def _result(name: str, cap: float, actual: float, income: float) -> GuardRailResult:
    ratio = safe_ratio(actual, cap)
    income_ratio = safe_ratio(actual, income)
    return GuardRailResult(
        name=name,
        cap=cap,
        actual=actual,
        ratio=ratio,
        bucket=classify_utilization(ratio),
        income_ratio=income_ratio,
        income_bucket=classify_income(income_ratio),
    )


def evaluate(
    month: MonthKey,
    actuals: Optional[ActualsTable],
    caps: Optional[CapTable],
    income: float,
    taxonomy: Taxonomy = DEFAULT_TAXONOMY,
) -> GuardRailReport:
    """Cap utilization and income utilization for every parent and leaf."""
    income = max(0.0, float(income or 0.0))
    per_parent = {}
    per_leaf = {}
    for parent, (cap, actual) in parent_totals(month, actuals, caps, taxonomy).items():
        per_parent[parent] = _result(parent, cap, actual, income)
        for leaf in taxonomy.children_of(parent):
            per_leaf[leaf] = _result(leaf, rounded_cap(caps, month, leaf), get_actual(actuals, month, leaf), income)
    return GuardRailReport(month=month, per_parent=per_parent, per_leaf=per_leaf)


def income_share_warnings(
    month: MonthKey,
    actuals: Optional[ActualsTable],
    income: float,
    taxonomy: Taxonomy = DEFAULT_TAXONOMY,
    limits: Optional[Mapping[str, float]] = None,
) -> List[IncomeShareWarning]:
    """Parents whose spending takes a larger share of income than their configured limit."""
    if limits is None:
        limits = DEFAULT_PARENT_INCOME_LIMITS
    if income <= 0:
        return []
    warnings = []
    for parent in taxonomy.parents:
        limit = limits.get(parent)
        if limit is None:
            continue
        share = safe_ratio(aggregate_parent(month, parent, actuals, taxonomy), income)
        if share > limit:
            logger.info("%s spent %.1f%% of income (limit %.0f%%) in %s", parent, share * 100, limit * 100, month)
            warnings.append(IncomeShareWarning(parent=parent, share=share, limit=limit))
    return warnings


def top_overspends(report: GuardRailReport, limit: int = 3) -> List[GuardRailResult]:
    """Leaves spending above their cap, largest overspend first."""
    over = [r for r in report.per_leaf.values() if r.actual > r.cap]
    over.sort(key=lambda r: r.actual - r.cap, reverse=True)
    return over[:limit]
