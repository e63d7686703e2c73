import random

from budget_core.services.report import REPORT_COLUMNS, plain_amount, report, summarize
from budget_core.services.suggestions import suggest

MONTH = "2024-01"
INCOME = 20_000_000


def _inputs():
    actuals = {
        MONTH: {
            "Restaurants": 3_000_000,
            "Coffee": 1_000_000,
            "Rent": 5_000_000,
            "Internal Transfer": 500_000,
            "Movies": 400_000,
        }
    }
    caps = {MONTH: {"Rent": 5_000_000, "Internal Transfer": 500_000, "Restaurants": 2_000_000}}
    return actuals, caps


def _rows(csv_text):
    lines = csv_text.strip().split("\n")
    header = lines[0].split(",")
    return header, [dict(zip(header, line.split(","))) for line in lines[1:]]


def test_csv_header_and_rows(taxonomy):
    actuals, caps = _inputs()
    result = report(MONTH, suggest(MONTH, actuals, caps, INCOME, taxonomy), INCOME, actuals, taxonomy)
    header, rows = _rows(result.csv_content)
    assert ",".join(header) == (
        "month,parentCategory,childCategory,budget,actual,variance,variancePercent,status,guardrailPercent"
    )
    assert header == REPORT_COLUMNS
    assert len(rows) == len(taxonomy)
    assert [r["childCategory"] for r in rows] == list(taxonomy.leaves)

    rent = next(r for r in rows if r["childCategory"] == "Rent")
    assert rent == {
        "month": MONTH,
        "parentCategory": "Housing",
        "childCategory": "Rent",
        "budget": "5250000",
        "actual": "5000000",
        "variance": "250000",
        "variancePercent": "4.8",
        "status": "increase",
        "guardrailPercent": "25.0",
    }

    transfer = next(r for r in rows if r["childCategory"] == "Internal Transfer")
    assert transfer["budget"] == "0"
    assert transfer["variance"] == "-500000"
    assert transfer["variancePercent"] == "0.0"
    assert transfer["status"] == "exclude"


def test_rows_grouped_in_taxonomy_order(taxonomy):
    actuals, caps = _inputs()
    items = suggest(MONTH, actuals, caps, INCOME, taxonomy)
    shuffled = list(items)
    random.Random(7).shuffle(shuffled)
    _, rows = _rows(report(MONTH, shuffled, INCOME, actuals, taxonomy).csv_content)
    assert [r["childCategory"] for r in rows] == list(taxonomy.leaves)


def test_insights(taxonomy):
    actuals, caps = _inputs()
    result = report(MONTH, suggest(MONTH, actuals, caps, INCOME, taxonomy), INCOME, actuals, taxonomy)
    assert result.insights[0].startswith("Largest increase: Investments (Savings) +3,000,000")
    assert not any(i.startswith("Largest decrease") for i in result.insights)
    assert any(i.startswith("1 transfer categories") for i in result.insights)
    assert "Overall suggested budget is up 8,710,000 versus current caps" in result.insights


def test_insights_without_income(taxonomy):
    actuals, caps = _inputs()
    result = report(MONTH, suggest(MONTH, actuals, caps, 0, taxonomy), 0, actuals, taxonomy)
    assert any(i.startswith("Largest decrease") for i in result.insights)
    assert result.insights[-1].startswith("No income supplied")
    _, rows = _rows(result.csv_content)
    assert {r["guardrailPercent"] for r in rows} == {"0.0"}


def test_summary_counts(taxonomy):
    actuals, caps = _inputs()
    items = suggest(MONTH, actuals, caps, INCOME, taxonomy)
    summary = summarize(items)
    assert summary.exclude_count == 1
    assert summary.increase_count + summary.decrease_count + summary.hold_count + summary.exclude_count == len(items)
    assert summary.total_delta == summary.total_suggested - summary.total_current


def test_plain_amount():
    assert plain_amount(5_250_000.0) == "5250000"
    assert plain_amount(1234.5) == "1234.5"
    assert plain_amount(-0.0) == "0"
