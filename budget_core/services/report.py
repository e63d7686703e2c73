from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import pandas as pd

from budget_core.domain.models import (
    ActualsTable,
    BudgetReport,
    BudgetSuggestion,
    MonthKey,
    ReportSummary,
    SuggestionStatus,
)
from budget_core.domain.taxonomy import Taxonomy
from budget_core.services.aggregator import get_actual
from budget_core.services.guardrails import safe_ratio

REPORT_COLUMNS = [
    "month",
    "parentCategory",
    "childCategory",
    "budget",
    "actual",
    "variance",
    "variancePercent",
    "status",
    "guardrailPercent",
]


def plain_amount(amount: float) -> str:
    """Plain decimal, no separators or currency: 5250000, 1234.5"""
    value = float(amount) + 0.0
    if value.is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _percent(value: float) -> str:
    return f"{value + 0.0:.1f}"


def _fmt(amount: float) -> str:
    return f"{amount:,.0f}"


def _grouped(suggestions: Sequence[BudgetSuggestion], taxonomy: Optional[Taxonomy]) -> List[BudgetSuggestion]:
    """Rows grouped by parent: taxonomy order when known, else first appearance."""
    if taxonomy is not None:
        def key(s: BudgetSuggestion):
            if taxonomy.is_leaf(s.child_category):
                return (0, taxonomy.leaf_index(s.child_category))
            return (1, 0)

        return sorted(suggestions, key=key)

    order: Dict[str, int] = {}
    for s in suggestions:
        order.setdefault(s.parent_category, len(order))
    return sorted(suggestions, key=lambda s: order[s.parent_category])


def build_report_frame(
    month: MonthKey,
    suggestions: Sequence[BudgetSuggestion],
    income: float,
    actuals: Optional[ActualsTable],
    taxonomy: Optional[Taxonomy] = None,
) -> pd.DataFrame:
    rows = []
    for s in _grouped(suggestions, taxonomy):
        budget = s.suggested_budget
        actual = get_actual(actuals, month, s.child_category) if actuals is not None else s.actual_spending
        variance = budget - actual
        rows.append(
            {
                "month": month,
                "parentCategory": s.parent_category,
                "childCategory": s.child_category,
                "budget": plain_amount(budget),
                "actual": plain_amount(actual),
                "variance": plain_amount(variance),
                "variancePercent": _percent(safe_ratio(variance, budget) * 100),
                "status": s.status.value,
                "guardrailPercent": _percent(safe_ratio(actual, income) * 100),
            }
        )
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)


def report_csv(
    month: MonthKey,
    suggestions: Sequence[BudgetSuggestion],
    income: float,
    actuals: Optional[ActualsTable],
    taxonomy: Optional[Taxonomy] = None,
) -> str:
    frame = build_report_frame(month, suggestions, income, actuals, taxonomy)
    return frame.to_csv(index=False, lineterminator="\n")


def summarize(suggestions: Sequence[BudgetSuggestion]) -> ReportSummary:
    total_current = sum(s.current_budget for s in suggestions)
    total_suggested = sum(s.suggested_budget for s in suggestions)

    def count(status: SuggestionStatus) -> int:
        return sum(1 for s in suggestions if s.status is status)

    return ReportSummary(
        total_current=total_current,
        total_suggested=total_suggested,
        total_delta=total_suggested - total_current,
        increase_count=count(SuggestionStatus.INCREASE),
        decrease_count=count(SuggestionStatus.DECREASE),
        hold_count=count(SuggestionStatus.HOLD),
        exclude_count=count(SuggestionStatus.EXCLUDE),
    )


def build_insights(suggestions: Sequence[BudgetSuggestion], income: float) -> List[str]:
    insights: List[str] = []
    active = [s for s in suggestions if s.status is not SuggestionStatus.EXCLUDE]
    excluded = [s for s in suggestions if s.status is SuggestionStatus.EXCLUDE]

    increases = [s for s in active if s.delta > 0]
    if increases:
        top = max(increases, key=lambda s: s.delta)
        insights.append(
            f"Largest increase: {top.child_category} ({top.parent_category}) +{_fmt(top.delta)}"
            f" to {_fmt(top.suggested_budget)}"
        )
    decreases = [s for s in active if s.delta < 0]
    if decreases:
        top = min(decreases, key=lambda s: s.delta)
        insights.append(
            f"Largest decrease: {top.child_category} ({top.parent_category}) {_fmt(top.delta)}"
            f" to {_fmt(top.suggested_budget)}"
        )
    if excluded:
        insights.append(
            f"{len(excluded)} transfer categories are internal cashflow; "
            "exclude them from spending analysis"
        )

    net = sum(s.delta for s in active)
    if net > 0:
        insights.append(f"Overall suggested budget is up {_fmt(net)} versus current caps")
    elif net < 0:
        insights.append(f"Overall suggested budget is down {_fmt(-net)} versus current caps")
    else:
        insights.append("Overall suggested budget is unchanged versus current caps")

    if income <= 0:
        insights.append("No income supplied: income-based rules fell back to current caps and spending")
    return insights


def report(
    month: MonthKey,
    suggestions: Sequence[BudgetSuggestion],
    income: float,
    actuals: Optional[ActualsTable],
    taxonomy: Optional[Taxonomy] = None,
) -> BudgetReport:
    income = max(0.0, float(income or 0.0))
    return BudgetReport(
        month=month,
        suggestions=list(suggestions),
        insights=build_insights(suggestions, income),
        csv_content=report_csv(month, suggestions, income, actuals, taxonomy),
        summary=summarize(suggestions),
    )
