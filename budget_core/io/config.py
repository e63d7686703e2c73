from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

from budget_core.domain.models import DEFAULT_PARENT_INCOME_LIMITS, EngineConfig, SuggestionConfig
from budget_core.domain.taxonomy import Taxonomy, TaxonomyError


def load_engine_config(path: str | Path) -> EngineConfig:
    data = _read_json(path)
    rules = data.get("suggestion", {}) or {}
    defaults = SuggestionConfig()
    suggestion = SuggestionConfig(
        food_income_share=float(rules.get("food_income_share", defaults.food_income_share)),
        fixed_buffer_base=float(rules.get("fixed_buffer_base", defaults.fixed_buffer_base)),
        fixed_buffer_slope=float(rules.get("fixed_buffer_slope", defaults.fixed_buffer_slope)),
        fixed_buffer_min=float(rules.get("fixed_buffer_min", defaults.fixed_buffer_min)),
        fixed_buffer_max=float(rules.get("fixed_buffer_max", defaults.fixed_buffer_max)),
        savings_income_share=float(rules.get("savings_income_share", defaults.savings_income_share)),
        savings_floor=float(rules.get("savings_floor", defaults.savings_floor)),
        other_growth=float(rules.get("other_growth", defaults.other_growth)),
        rounding_unit=int(rules.get("rounding_unit", defaults.rounding_unit)),
        hold_tolerance=float(rules.get("hold_tolerance", defaults.hold_tolerance)),
    )
    limits = data.get("parent_income_limits")
    if limits is None:
        limits = DEFAULT_PARENT_INCOME_LIMITS
    return EngineConfig(
        suggestion=suggestion,
        parent_income_limits={str(k): float(v) for k, v in limits.items()},
    )


def load_taxonomy(path: str | Path) -> Taxonomy:
    """
    Accepts either
      {"parents": [{"name": ..., "class": ..., "children": [...]}, ...]}
    or
      {"classes": {parent: class}, "children": {leaf: parent}}
    """
    data = _read_json(path)
    if "parents" in data:
        mapping: Dict[str, list] = {}
        classes: Dict[str, Any] = {}
        for item in data["parents"]:
            name = item.get("name")
            if not name:
                raise TaxonomyError("Parent entry without a name")
            if name in mapping:
                raise TaxonomyError(f"Duplicate parent category: {name!r}")
            mapping[name] = list(item.get("children") or [])
            if item.get("class"):
                classes[name] = item["class"]
        return Taxonomy.from_mapping(mapping, classes)
    if "children" in data:
        return Taxonomy.from_child_map(data["children"], data.get("classes", {}) or {})
    raise TaxonomyError(f"Unrecognised taxonomy file: {path}")


def _read_json(path: str | Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
