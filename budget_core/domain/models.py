from __future__ import annotations

import dataclasses
import datetime as dt
import enum
from typing import Dict, List, Mapping, Optional

MonthKey = str
ActualsTable = Mapping[MonthKey, Mapping[str, float]]
CapTable = Mapping[MonthKey, Mapping[str, float]]


class CategoryClass(enum.Enum):
    FOOD_DINING = "FoodDining"
    FIXED_EXPENSE = "FixedExpense"
    INVESTMENT_SAVINGS = "InvestmentSavings"
    CASHFLOW = "Cashflow"
    OTHER = "Other"

    @classmethod
    def parse(cls, raw: str) -> "CategoryClass":
        key = str(raw).strip().replace("_", "").replace("-", "").replace(" ", "").lower()
        for member in cls:
            if member.value.lower() == key or member.name.replace("_", "").lower() == key:
                return member
        raise ValueError(f"Unknown category class: {raw!r}")


class SuggestionStatus(enum.Enum):
    INCREASE = "increase"
    DECREASE = "decrease"
    HOLD = "hold"
    EXCLUDE = "exclude"


class UtilizationBucket(enum.Enum):
    OK = "ok"
    NEAR = "near"
    OVER = "over"


class IncomeBucket(enum.Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    BREACH = "breach"


@dataclasses.dataclass(frozen=True)
class Category:
    name: str
    category_class: CategoryClass
    parent: Optional[str] = None  # None for parent categories

    @property
    def is_leaf(self) -> bool:
        return self.parent is not None


@dataclasses.dataclass(frozen=True)
class LedgerEntry:
    date: dt.date
    amount: float
    category: str
    kind: str  # "income" or "expense"

    @property
    def month(self) -> MonthKey:
        return f"{self.date.year:04d}-{self.date.month:02d}"


@dataclasses.dataclass(frozen=True)
class SuggestionConfig:
    food_income_share: float = 0.20
    fixed_buffer_base: float = 0.05
    fixed_buffer_slope: float = 0.10
    fixed_buffer_min: float = 0.05
    fixed_buffer_max: float = 0.15
    savings_income_share: float = 0.20
    savings_floor: float = 3_000_000.0
    other_growth: float = 1.15
    rounding_unit: int = 1000
    hold_tolerance: float = 0.0


DEFAULT_PARENT_INCOME_LIMITS: Dict[str, float] = {
    "Essential": 0.30,
    "Daily Food & Drinks": 0.20,
    "Transportation": 0.10,
    "Entertainment": 0.10,
    "Others": 0.10,
}


@dataclasses.dataclass(frozen=True)
class EngineConfig:
    suggestion: SuggestionConfig = dataclasses.field(default_factory=SuggestionConfig)
    parent_income_limits: Mapping[str, float] = dataclasses.field(
        default_factory=lambda: dict(DEFAULT_PARENT_INCOME_LIMITS)
    )


@dataclasses.dataclass(frozen=True)
class BudgetSuggestion:
    parent_category: str
    child_category: str
    current_budget: float
    actual_spending: float
    suggested_budget: float
    delta: float
    status: SuggestionStatus
    reasoning: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "parentCategory": self.parent_category,
            "childCategory": self.child_category,
            "currentBudget": self.current_budget,
            "actualSpending": self.actual_spending,
            "suggestedBudget": self.suggested_budget,
            "delta": self.delta,
            "status": self.status.value,
            "reasoning": self.reasoning,
        }


@dataclasses.dataclass(frozen=True)
class GuardRailResult:
    name: str
    cap: float
    actual: float
    ratio: float
    bucket: UtilizationBucket
    income_ratio: float
    income_bucket: IncomeBucket


@dataclasses.dataclass
class GuardRailReport:
    month: MonthKey
    per_parent: Dict[str, GuardRailResult]
    per_leaf: Dict[str, GuardRailResult]


@dataclasses.dataclass(frozen=True)
class IncomeShareWarning:
    parent: str
    share: float
    limit: float

    def message(self) -> str:
        return f"{self.parent} > {round(self.limit * 100)}% of income ({self.share * 100:.1f}%)"


@dataclasses.dataclass(frozen=True)
class ReportSummary:
    total_current: float
    total_suggested: float
    total_delta: float
    increase_count: int
    decrease_count: int
    hold_count: int
    exclude_count: int


@dataclasses.dataclass
class BudgetReport:
    month: MonthKey
    suggestions: List[BudgetSuggestion]
    insights: List[str]
    csv_content: str
    summary: ReportSummary
