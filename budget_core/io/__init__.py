from budget_core.io.caps import (  # noqa: F401
    CapStore,
    InMemoryCapStore,
    JsonCapStore,
    export_caps_csv,
    import_caps_csv,
    parse_caps_csv,
)
from budget_core.io.config import load_engine_config, load_taxonomy  # noqa: F401
from budget_core.io.ledger import build_actuals, income_by_month, load_ledger  # noqa: F401

__all__ = [
    "load_ledger",
    "build_actuals",
    "income_by_month",
    "load_engine_config",
    "load_taxonomy",
    "CapStore",
    "InMemoryCapStore",
    "JsonCapStore",
    "export_caps_csv",
    "parse_caps_csv",
    "import_caps_csv",
]
