from budget_core.domain.models import (  # noqa: F401
    ActualsTable,
    BudgetReport,
    BudgetSuggestion,
    CapTable,
    Category,
    CategoryClass,
    EngineConfig,
    GuardRailReport,
    GuardRailResult,
    IncomeBucket,
    IncomeShareWarning,
    LedgerEntry,
    MonthKey,
    ReportSummary,
    SuggestionConfig,
    SuggestionStatus,
    UtilizationBucket,
)
from budget_core.domain.taxonomy import (  # noqa: F401
    DEFAULT_TAXONOMY,
    Taxonomy,
    TaxonomyError,
    UnknownCategoryError,
)

__all__ = [
    "ActualsTable",
    "BudgetReport",
    "BudgetSuggestion",
    "CapTable",
    "Category",
    "CategoryClass",
    "DEFAULT_TAXONOMY",
    "EngineConfig",
    "GuardRailReport",
    "GuardRailResult",
    "IncomeBucket",
    "IncomeShareWarning",
    "LedgerEntry",
    "MonthKey",
    "ReportSummary",
    "SuggestionConfig",
    "SuggestionStatus",
    "Taxonomy",
    "TaxonomyError",
    "UnknownCategoryError",
    "UtilizationBucket",
]
