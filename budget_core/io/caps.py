from __future__ import annotations

import dataclasses
import io
import json
import logging
import math
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Protocol

import pandas as pd

from budget_core.domain.models import MonthKey
from budget_core.domain.taxonomy import Taxonomy
from budget_core.io.ledger import parse_amount
from budget_core.services.aggregator import round_to_unit

logger = logging.getLogger(__name__)

CAP_CSV_COLUMNS = ["month", "childCategory", "cap"]


class CapStore(Protocol):
    def get_cap(self, month: MonthKey, leaf: str) -> float: ...

    def caps_for(self, month: MonthKey) -> Dict[str, float]: ...

    def set_cap(self, month: MonthKey, leaf: str, amount: float) -> None: ...

    def set_caps(self, month: MonthKey, caps: Mapping[str, float]) -> None: ...


def normalize_cap(amount: float) -> float:
    return round_to_unit(max(0.0, float(amount)))


class InMemoryCapStore:
    """month -> leaf -> cap; writes floor at 0 and round to the nearest 1,000."""

    def __init__(self, caps: Optional[Mapping[MonthKey, Mapping[str, float]]] = None):
        self._caps: Dict[MonthKey, Dict[str, float]] = {}
        for month, row in (caps or {}).items():
            self.set_caps(month, row)

    def get_cap(self, month: MonthKey, leaf: str) -> float:
        return self._caps.get(month, {}).get(leaf, 0.0)

    def caps_for(self, month: MonthKey) -> Dict[str, float]:
        return dict(self._caps.get(month, {}))

    def set_cap(self, month: MonthKey, leaf: str, amount: float) -> None:
        self._caps.setdefault(month, {})[leaf] = normalize_cap(amount)

    def set_caps(self, month: MonthKey, caps: Mapping[str, float]) -> None:
        row = self._caps.setdefault(month, {})
        for leaf, amount in caps.items():
            row[leaf] = normalize_cap(amount)

    def snapshot(self) -> Dict[MonthKey, Dict[str, float]]:
        return {month: dict(row) for month, row in self._caps.items()}


class JsonCapStore(InMemoryCapStore):
    """Cap store persisted as ``{month: {leaf: cap}}`` in a JSON file, saved on every write."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        super().__init__()
        if self.path.exists():
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f) or {}
            for month, row in data.items():
                InMemoryCapStore.set_caps(self, month, row)

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(self.snapshot(), f, indent=2, ensure_ascii=False)

    def set_cap(self, month: MonthKey, leaf: str, amount: float) -> None:
        super().set_cap(month, leaf, amount)
        self._save()

    def set_caps(self, month: MonthKey, caps: Mapping[str, float]) -> None:
        super().set_caps(month, caps)
        self._save()


def _amount_text(amount: float) -> str:
    value = float(amount)
    return str(int(value)) if value.is_integer() else repr(value)


def export_caps_csv(month: MonthKey, caps: Mapping[str, float], taxonomy: Optional[Taxonomy] = None) -> str:
    """Bulk cap CSV (``month,childCategory,cap``) for one month; taxonomy order first when given."""
    leaves: List[str] = []
    if taxonomy is not None:
        leaves = [leaf for leaf in taxonomy.leaves if leaf in caps]
    leaves += [leaf for leaf in caps if leaf not in leaves]
    frame = pd.DataFrame(
        [{"month": month, "childCategory": leaf, "cap": _amount_text(caps[leaf])} for leaf in leaves],
        columns=CAP_CSV_COLUMNS,
    )
    return frame.to_csv(index=False, lineterminator="\n")


@dataclasses.dataclass
class CapImport:
    month: MonthKey
    caps: Dict[str, float]
    skipped: int = 0
    other_months: int = 0

    @property
    def applied(self) -> int:
        return len(self.caps)


def _cell(value: object) -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ""
    return str(value).strip()


def parse_caps_csv(text: str, month: MonthKey, taxonomy: Optional[Taxonomy] = None) -> CapImport:
    """
    Read a bulk cap CSV, keeping rows whose month equals ``month`` exactly.

    Bad rows are skipped one by one; only a missing header column is an error.
    """
    try:
        df = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            on_bad_lines="skip",
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError as exc:
        raise ValueError("Cap CSV is empty") from exc
    df.columns = [str(c).strip() for c in df.columns]
    missing = set(CAP_CSV_COLUMNS) - set(df.columns)
    if missing:
        raise ValueError(f"Missing columns in cap CSV: {missing}")

    result = CapImport(month=month, caps={})
    for _, row in df.iterrows():
        # Cells are stripped first; " 2024-01 " matches 2024-01 but 2024-1 does not.
        row_month = _cell(row["month"])
        leaf = _cell(row["childCategory"])
        raw = _cell(row["cap"])
        if row_month != month:
            result.other_months += 1
            continue
        if not leaf or not raw:
            result.skipped += 1
            logger.warning("Skipping cap row with missing fields: %s", dict(row))
            continue
        if taxonomy is not None and not taxonomy.is_leaf(leaf):
            result.skipped += 1
            logger.warning("Skipping cap row for unknown category %r", leaf)
            continue
        try:
            amount = parse_amount(raw)
        except ValueError:
            amount = math.nan
        if not math.isfinite(amount):
            result.skipped += 1
            logger.warning("Skipping cap row for %r: bad amount %r", leaf, raw)
            continue
        result.caps[leaf] = normalize_cap(amount)
    return result


def import_caps_csv(store: CapStore, text: str, month: MonthKey, taxonomy: Optional[Taxonomy] = None) -> CapImport:
    result = parse_caps_csv(text, month, taxonomy)
    if result.caps:
        store.set_caps(month, result.caps)
    logger.info(
        "Imported %d caps for %s (%d skipped, %d for other months)",
        result.applied,
        month,
        result.skipped,
        result.other_months,
    )
    return result
