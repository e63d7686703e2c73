from budget_core.services.aggregator import aggregate_cap, aggregate_parent  # noqa: F401
from budget_core.services.guardrails import evaluate, income_share_warnings, top_overspends  # noqa: F401
from budget_core.services.scope import AnalyticsScope, apply_scope  # noqa: F401
from budget_core.services.suggestions import accepted_caps, seed_caps, suggest  # noqa: F401

__all__ = [
    "aggregate_parent",
    "aggregate_cap",
    "suggest",
    "seed_caps",
    "accepted_caps",
    "evaluate",
    "income_share_warnings",
    "top_overspends",
    "AnalyticsScope",
    "apply_scope",
]
