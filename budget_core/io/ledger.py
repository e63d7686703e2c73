from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List

import pandas as pd

from budget_core.domain.models import LedgerEntry, MonthKey
from budget_core.domain.taxonomy import DEFAULT_TAXONOMY, Taxonomy

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {"date", "amount", "category", "kind"}

_CURRENCY = re.compile(r"[\s₫]|vnd|vnđ", re.IGNORECASE)


def parse_amount(raw: object) -> float:
    """
    Parse a money string: "1,250,000", "1.250.000,50", "(500)", "3 000 000 ₫".

    Raises ValueError when nothing numeric is left.
    """
    if isinstance(raw, (int, float)):
        return float(raw)
    text = _CURRENCY.sub("", str(raw).strip())
    if not text:
        raise ValueError("empty amount")
    negative = text.startswith("(") and text.endswith(")")
    if negative:
        text = text[1:-1]
    if "." in text and "," in text:
        if text.rfind(".") > text.rfind(","):
            text = text.replace(",", "")
        else:
            text = text.replace(".", "").replace(",", ".")
    elif re.search(r"\d,\d{2}$", text):
        text = text.replace(",", ".")
    elif text.count(".") > 1:
        text = text.replace(".", "")
    else:
        text = text.replace(",", "")
    value = float(text)
    return -value if negative else value


def load_ledger(csv_path: str | Path) -> List[LedgerEntry]:
    path = Path(csv_path)
    if not path.exists():
        raise FileNotFoundError(path)

    df = pd.read_csv(path, dtype={"amount": str, "category": str, "kind": str})
    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(f"Missing columns in ledger CSV: {missing}")

    df["date"] = pd.to_datetime(df["date"]).dt.date
    entries: List[LedgerEntry] = []
    for _, row in df.iterrows():
        entries.append(
            LedgerEntry(
                date=row["date"],
                amount=parse_amount(row["amount"]),
                category=str(row["category"]).strip(),
                kind=str(row["kind"]).strip().lower(),
            )
        )
    logger.debug("Loaded %d ledger entries from %s", len(entries), path)
    return entries


def _frame(entries: Iterable[LedgerEntry], kind: str) -> pd.DataFrame:
    rows = [
        {"month": e.month, "category": e.category, "amount": abs(e.amount)}
        for e in entries
        if e.kind == kind
    ]
    return pd.DataFrame(rows, columns=["month", "category", "amount"])


def build_actuals(entries: Iterable[LedgerEntry], taxonomy: Taxonomy = DEFAULT_TAXONOMY) -> Dict[MonthKey, Dict[str, float]]:
    """Expense entries summed into month -> leaf -> amount."""
    df = _frame(entries, "expense")
    if df.empty:
        return {}

    known = df["category"].map(taxonomy.is_leaf)
    unknown = sorted(df.loc[~known, "category"].unique())
    if unknown:
        logger.warning("Skipping expenses in categories outside the taxonomy: %s", unknown)

    grouped = df[known].groupby(["month", "category"])["amount"].sum()
    actuals: Dict[MonthKey, Dict[str, float]] = {}
    for (month, category), amount in grouped.items():
        actuals.setdefault(month, {})[category] = float(amount)
    return actuals


def income_by_month(entries: Iterable[LedgerEntry]) -> Dict[MonthKey, float]:
    df = _frame(entries, "income")
    if df.empty:
        return {}
    return {month: float(total) for month, total in df.groupby("month")["amount"].sum().items()}
