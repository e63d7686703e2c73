from __future__ import annotations

import dataclasses
import logging
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from budget_core.domain.models import (
    ActualsTable,
    BudgetSuggestion,
    CapTable,
    DEFAULT_PARENT_INCOME_LIMITS,
    CategoryClass,
    MonthKey,
    SuggestionConfig,
    SuggestionStatus,
)
from budget_core.domain.taxonomy import DEFAULT_TAXONOMY, Taxonomy
from budget_core.services.aggregator import aggregate_cap, get_actual, round_to_unit, rounded_cap

logger = logging.getLogger(__name__)

# (leaf, suggested amount, reasoning)
Draft = Tuple[str, float, str]


@dataclasses.dataclass(frozen=True)
class _Context:
    month: MonthKey
    actuals: Optional[ActualsTable]
    caps: Optional[CapTable]
    income: float
    taxonomy: Taxonomy
    config: SuggestionConfig

    def actual(self, leaf: str) -> float:
        return get_actual(self.actuals, self.month, leaf)

    def cap(self, leaf: str) -> float:
        return rounded_cap(self.caps, self.month, leaf, self.config.rounding_unit)

    def round(self, amount: float) -> float:
        return max(0.0, round_to_unit(amount, self.config.rounding_unit))


def _fmt(amount: float) -> str:
    return f"{amount:,.0f}"


def distribute(target: float, weights: Sequence[float], unit: int = 1000) -> List[float]:
    """
    Split ``target`` across ``weights`` proportionally (evenly if all weights are 0).

    With a rounding unit, every share is rounded to ``unit`` and the rounding
    remainder goes to the first share, so the shares add up to ``target``.
    A remainder that would push the first share below 0 spills into the next.
    """
    n = len(weights)
    if n == 0:
        return []
    target = max(0.0, float(target))
    w = np.clip(np.asarray(weights, dtype=float), 0.0, None)
    total = w.sum()
    alloc = target * w / total if total > 0 else np.full(n, target / n)
    if not unit:
        return [float(v) for v in alloc]

    shares = [round_to_unit(v, unit) for v in alloc]
    shares[0] += target - sum(shares)
    for i in range(n - 1):
        if shares[i] < 0:
            shares[i + 1] += shares[i]
            shares[i] = 0.0
    shares[-1] = max(0.0, shares[-1])
    return shares


def _food_dining(ctx: _Context, parent: str) -> List[Draft]:
    leaves = ctx.taxonomy.children_of(parent)
    actuals = [ctx.actual(leaf) for leaf in leaves]
    parent_actual = sum(actuals)
    share = ctx.config.food_income_share
    if ctx.income > 0:
        target = ctx.round(ctx.income * share)
        basis = f"{share:.0%} of income {_fmt(ctx.income)}"
    else:
        target = aggregate_cap(ctx.month, parent, ctx.caps, ctx.taxonomy, ctx.config.rounding_unit)
        basis = "current parent cap (no income)"
    logger.debug("Food target for %s: %s (%s)", parent, target, basis)

    weights = actuals if parent_actual > 0 else [1.0] * len(leaves)
    alloc = distribute(target, weights, ctx.config.rounding_unit)
    drafts = []
    for leaf, leaf_actual, amount in zip(leaves, actuals, alloc):
        if parent_actual > 0:
            split = f"{leaf_actual / parent_actual:.1%} of parent spending"
        else:
            split = f"even split over {len(leaves)} categories"
        drafts.append((leaf, amount, f"Food & dining: {basis} = {_fmt(target)}, {split}"))
    return drafts


def fixed_buffer(actual: float, current_cap: float, config: SuggestionConfig) -> float:
    deviation = abs(current_cap - actual) / max(actual, 1.0)
    raw = config.fixed_buffer_base + config.fixed_buffer_slope * deviation
    return min(config.fixed_buffer_max, max(config.fixed_buffer_min, raw))


def _fixed_expense(ctx: _Context, parent: str) -> List[Draft]:
    drafts = []
    for leaf in ctx.taxonomy.children_of(parent):
        actual = ctx.actual(leaf)
        buffer = fixed_buffer(actual, ctx.cap(leaf), ctx.config)
        amount = ctx.round(actual * (1 + buffer))
        drafts.append((leaf, amount, f"Fixed expense: actual {_fmt(actual)} + {buffer:.1%} buffer"))
    return drafts


def _investment_savings(ctx: _Context, parent: str) -> List[Draft]:
    leaves = ctx.taxonomy.children_of(parent)
    caps = [ctx.cap(leaf) for leaf in leaves]
    share = ctx.config.savings_income_share
    floor = ctx.config.savings_floor
    if ctx.income > 0:
        pool = ctx.round(ctx.income * share)
        basis = f"{share:.0%} of income"
    else:
        pool = sum(caps)
        basis = "current caps (no income)"

    weights = caps if sum(caps) > 0 else [1.0] * len(leaves)
    alloc = distribute(pool, weights, ctx.config.rounding_unit)
    return [
        (
            leaf,
            max(floor, amount),
            f"Investment & savings: max({_fmt(floor)} minimum, {_fmt(amount)} from {basis})",
        )
        for leaf, amount in zip(leaves, alloc)
    ]


def _cashflow(ctx: _Context, parent: str) -> List[Draft]:
    return [
        (leaf, 0.0, "Internal transfer: excluded from spending analysis, cap set to 0")
        for leaf in ctx.taxonomy.children_of(parent)
    ]


def _other(ctx: _Context, parent: str) -> List[Draft]:
    growth = ctx.config.other_growth
    drafts = []
    for leaf in ctx.taxonomy.children_of(parent):
        actual = ctx.actual(leaf)
        drafts.append((leaf, ctx.round(actual * growth), f"Other: actual {_fmt(actual)} x {growth:g}"))
    return drafts


RULES: Dict[CategoryClass, Callable[[_Context, str], List[Draft]]] = {
    CategoryClass.FOOD_DINING: _food_dining,
    CategoryClass.FIXED_EXPENSE: _fixed_expense,
    CategoryClass.INVESTMENT_SAVINGS: _investment_savings,
    CategoryClass.CASHFLOW: _cashflow,
    CategoryClass.OTHER: _other,
}

_missing_rules = set(CategoryClass) - set(RULES)
if _missing_rules:
    raise RuntimeError(f"No suggestion rule for: {sorted(c.value for c in _missing_rules)}")


def _clamp_other(ctx: _Context, drafts: Dict[str, List[Draft]]) -> None:
    """Scale Other-class drafts down so they fit the income left by every other class."""
    if ctx.income <= 0:
        return
    other_parents = set(ctx.taxonomy.parents_of_class(CategoryClass.OTHER))
    committed = sum(row[1] for p, rows in drafts.items() if p not in other_parents for row in rows)
    other_rows = [(p, i, row) for p in drafts if p in other_parents for i, row in enumerate(drafts[p])]
    requested = sum(row[1] for _, _, row in other_rows)
    remaining = max(0.0, ctx.income - committed)
    if requested <= remaining:
        return

    unit = ctx.config.rounding_unit
    budget = float(np.floor(remaining / unit) * unit) if unit else remaining
    factor = remaining / requested
    logger.debug("Other categories request %s, %s left; scaling by %.4f", requested, remaining, factor)
    scaled = distribute(budget, [row[1] for _, _, row in other_rows], unit)
    for (parent, idx, (leaf, _, reasoning)), amount in zip(other_rows, scaled):
        note = f"{reasoning}, scaled to {factor:.1%} to fit remaining income {_fmt(remaining)}"
        drafts[parent][idx] = (leaf, amount, note)


def _status(category_class: CategoryClass, delta: float, tolerance: float) -> SuggestionStatus:
    if category_class is CategoryClass.CASHFLOW:
        return SuggestionStatus.EXCLUDE
    if delta > tolerance:
        return SuggestionStatus.INCREASE
    if delta < -tolerance:
        return SuggestionStatus.DECREASE
    return SuggestionStatus.HOLD


def suggest(
    month: MonthKey,
    actuals: Optional[ActualsTable],
    caps: Optional[CapTable],
    income: float,
    taxonomy: Taxonomy = DEFAULT_TAXONOMY,
    config: Optional[SuggestionConfig] = None,
) -> List[BudgetSuggestion]:
    """
    Suggest next-month caps for every leaf in the taxonomy.

    The rule is picked by the class of the leaf's parent. Other-class leaves
    are resolved last since their guard-rail depends on every other suggestion.
    """
    ctx = _Context(
        month=month,
        actuals=actuals,
        caps=caps,
        income=max(0.0, float(income or 0.0)),
        taxonomy=taxonomy,
        config=config or SuggestionConfig(),
    )
    drafts: Dict[str, List[Draft]] = {}
    for parent in taxonomy.parents:
        drafts[parent] = RULES[taxonomy.class_of(parent)](ctx, parent)
    _clamp_other(ctx, drafts)

    suggestions: List[BudgetSuggestion] = []
    for parent in taxonomy.parents:
        cls = taxonomy.class_of(parent)
        for leaf, amount, reasoning in drafts[parent]:
            amount = max(0.0, amount)
            current = ctx.cap(leaf)
            delta = amount - current
            suggestions.append(
                BudgetSuggestion(
                    parent_category=parent,
                    child_category=leaf,
                    current_budget=current,
                    actual_spending=ctx.actual(leaf),
                    suggested_budget=amount,
                    delta=delta,
                    status=_status(cls, delta, ctx.config.hold_tolerance),
                    reasoning=reasoning,
                )
            )
    logger.debug("Built %d suggestions for %s", len(suggestions), month)
    return suggestions


def accepted_caps(suggestions: Sequence[BudgetSuggestion], parent: Optional[str] = None) -> Dict[str, float]:
    """leaf -> amount the caller should commit with ``set_cap``; excluded leaves are left out."""
    return {
        s.child_category: s.suggested_budget
        for s in suggestions
        if s.status is not SuggestionStatus.EXCLUDE and (parent is None or s.parent_category == parent)
    }


def _previous_month(month: MonthKey, actuals: Optional[ActualsTable]) -> Optional[MonthKey]:
    earlier = sorted(m for m in (actuals or {}) if m < month)
    return earlier[-1] if earlier else None


def seed_caps(
    month: MonthKey,
    actuals: Optional[ActualsTable],
    income: float,
    taxonomy: Taxonomy = DEFAULT_TAXONOMY,
    parent_income_limits: Optional[Mapping[str, float]] = None,
    previous_month: Optional[MonthKey] = None,
    unit: int = 1000,
) -> Dict[str, float]:
    """
    Initial caps for a month that has none yet.

    Every parent with an income limit receives ``income * limit``, spread over
    its leaves by the previous month's spending (evenly when there is none).
    """
    if parent_income_limits is None:
        parent_income_limits = DEFAULT_PARENT_INCOME_LIMITS
    prev = previous_month or _previous_month(month, actuals)
    caps: Dict[str, float] = {}
    for parent in taxonomy.parents:
        limit = parent_income_limits.get(parent)
        if not limit:
            continue
        target = max(0.0, round_to_unit(max(0.0, income) * limit, unit))
        if target <= 0:
            continue
        leaves = taxonomy.children_of(parent)
        weights = [get_actual(actuals, prev, leaf) for leaf in leaves] if prev else [0.0] * len(leaves)
        for leaf, amount in zip(leaves, distribute(target, weights, unit)):
            caps[leaf] = amount

    unknown = [p for p in parent_income_limits if p not in taxonomy.parents]
    if unknown:
        logger.warning("Income limits for unknown parents ignored: %s", unknown)
    return caps
