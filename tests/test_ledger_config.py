import json
from pathlib import Path

import pytest

from budget_core.domain.models import DEFAULT_PARENT_INCOME_LIMITS, CategoryClass
from budget_core.domain.taxonomy import TaxonomyError
from budget_core.io.config import load_engine_config, load_taxonomy
from budget_core.io.ledger import build_actuals, income_by_month, load_ledger, parse_amount

FIXTURE = Path(__file__).parent / "data" / "ledger.csv"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1,250,000", 1_250_000),
        ("1.250.000,50", 1_250_000.5),
        ("1,250,000.50", 1_250_000.5),
        ("3 000 000 ₫", 3_000_000),
        ("500000 VND", 500_000),
        ("(500)", -500),
        ("12,50", 12.5),
        (42, 42.0),
    ],
)
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["", "   ", "abc"])
def test_parse_amount_rejects(raw):
    with pytest.raises(ValueError):
        parse_amount(raw)


def test_ledger_fixture_actuals_and_income():
    entries = load_ledger(FIXTURE)
    assert len(entries) == 11
    assert entries[0].month == "2023-12"

    actuals = build_actuals(entries)
    assert actuals["2024-01"]["Lunch"] == 3_000_000
    assert actuals["2024-01"]["Internal Transfer"] == 500_000
    assert actuals["2023-12"] == {"Lunch": 2_000_000, "Coffee": 500_000}
    assert "Mystery Box" not in actuals["2024-01"]
    assert "Salary" not in actuals["2024-01"]

    assert income_by_month(entries) == {"2023-12": 20_000_000, "2024-01": 20_000_000}


def test_ledger_missing_file_and_columns(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_ledger(tmp_path / "nope.csv")
    bad = tmp_path / "bad.csv"
    bad.write_text("date,amount\n2024-01-01,100\n")
    with pytest.raises(ValueError):
        load_ledger(bad)


def test_engine_config_partial(tmp_path):
    path = tmp_path / "engine.json"
    path.write_text(json.dumps({"suggestion": {"other_growth": 1.2, "rounding_unit": 500}}))
    config = load_engine_config(path)
    assert config.suggestion.other_growth == 1.2
    assert config.suggestion.rounding_unit == 500
    assert config.suggestion.food_income_share == 0.2
    assert config.parent_income_limits == DEFAULT_PARENT_INCOME_LIMITS


def test_engine_config_limits_override(tmp_path):
    path = tmp_path / "engine.json"
    path.write_text(json.dumps({"parent_income_limits": {"Dining": 0.25}}))
    assert load_engine_config(path).parent_income_limits == {"Dining": 0.25}


def test_taxonomy_parent_list_format(tmp_path):
    path = tmp_path / "tax.json"
    path.write_text(
        json.dumps(
            {
                "parents": [
                    {"name": "Dining", "class": "FoodDining", "children": ["Lunch", "Coffee"]},
                    {"name": "Transfers", "class": "Cashflow", "children": ["Internal Transfer"]},
                ]
            }
        )
    )
    tax = load_taxonomy(path)
    assert tax.parents == ("Dining", "Transfers")
    assert tax.class_of_leaf("Coffee") is CategoryClass.FOOD_DINING


def test_taxonomy_child_map_format(tmp_path):
    path = tmp_path / "tax.json"
    path.write_text(
        json.dumps(
            {
                "classes": {"Dining": "FoodDining", "Housing": "FixedExpense"},
                "children": {"Lunch": "Dining", "Rent": "Housing"},
            }
        )
    )
    tax = load_taxonomy(path)
    assert tax.parent_of("Rent") == "Housing"
    assert len(tax) == 2


@pytest.mark.parametrize(
    "payload",
    [
        {"classes": {"Dining": "FoodDining"}, "children": {"Lunch": "Dining", "Rent": "Housing"}},
        {"parents": [{"name": "Dining", "children": ["Lunch"]}]},
        {"parents": [{"name": "Dining", "class": "Luxury", "children": ["Lunch"]}]},
        {"categories": []},
    ],
)
def test_invalid_taxonomy_files(tmp_path, payload):
    path = tmp_path / "tax.json"
    path.write_text(json.dumps(payload))
    with pytest.raises(TaxonomyError):
        load_taxonomy(path)
