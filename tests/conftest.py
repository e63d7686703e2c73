import pytest

from budget_core.domain.models import CategoryClass
from budget_core.domain.taxonomy import Taxonomy

MONTH = "2024-01"


@pytest.fixture
def taxonomy() -> Taxonomy:
    return Taxonomy.from_mapping(
        {
            "Dining": ["Restaurants", "Coffee"],
            "Housing": ["Rent", "Utilities"],
            "Savings": ["Investments", "Gold"],
            "Transfers": ["Internal Transfer"],
            "Fun": ["Movies", "Shopping"],
        },
        {
            "Dining": CategoryClass.FOOD_DINING,
            "Housing": CategoryClass.FIXED_EXPENSE,
            "Savings": CategoryClass.INVESTMENT_SAVINGS,
            "Transfers": CategoryClass.CASHFLOW,
            "Fun": CategoryClass.OTHER,
        },
    )


@pytest.fixture
def no_savings_taxonomy() -> Taxonomy:
    return Taxonomy.from_mapping(
        {
            "Dining": ["Restaurants", "Coffee"],
            "Housing": ["Rent", "Utilities"],
            "Fun": ["Movies", "Shopping"],
        },
        {"Dining": "FoodDining", "Housing": "FixedExpense", "Fun": "Other"},
    )
