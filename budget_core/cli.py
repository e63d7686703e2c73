from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from budget_core.domain.models import ActualsTable, BudgetSuggestion, EngineConfig, SuggestionStatus, UtilizationBucket
from budget_core.domain.taxonomy import DEFAULT_TAXONOMY, Taxonomy, TaxonomyError
from budget_core.io import caps as caps_io
from budget_core.io import config as config_io
from budget_core.io import ledger as ledger_io
from budget_core.services import guardrails
from budget_core.services import report as report_service
from budget_core.services import suggestions as suggestion_service
from budget_core.services.scope import AnalyticsScope, apply_scope

app = typer.Typer(help="Budget suggestions and guard-rails from monthly spending.")
console = Console()

_STATUS_STYLE = {
    SuggestionStatus.INCREASE: "green",
    SuggestionStatus.DECREASE: "red",
    SuggestionStatus.HOLD: "blue",
    SuggestionStatus.EXCLUDE: "dim",
}
_BUCKET_STYLE = {
    UtilizationBucket.OK: "green",
    UtilizationBucket.NEAR: "yellow",
    UtilizationBucket.OVER: "red",
}


@dataclasses.dataclass
class _Inputs:
    month: str
    taxonomy: Taxonomy
    config: EngineConfig
    actuals: ActualsTable
    income: float
    store: caps_io.InMemoryCapStore

    @property
    def caps(self) -> Dict[str, Dict[str, float]]:
        return {self.month: self.store.caps_for(self.month)}


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _save_json(path: Path, payload):
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)


def _write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def _fmt(amount: float) -> str:
    return f"{amount:,.0f}"


def _load_taxonomy(path: Optional[Path]) -> Taxonomy:
    if path is None:
        return DEFAULT_TAXONOMY
    try:
        return config_io.load_taxonomy(path)
    except TaxonomyError as exc:
        console.print(f"[red]Invalid taxonomy {path}: {exc}[/red]")
        raise typer.Exit(code=1)


def _open_store(caps: Optional[Path]) -> caps_io.InMemoryCapStore:
    return caps_io.JsonCapStore(caps) if caps else caps_io.InMemoryCapStore()


def _load_inputs(
    ledger: Path,
    month: str,
    income: Optional[float],
    caps: Optional[Path],
    taxonomy: Optional[Path],
    config: Optional[Path],
    exclude: Optional[List[str]] = None,
) -> _Inputs:
    tax = _load_taxonomy(taxonomy)
    engine_config = config_io.load_engine_config(config) if config else EngineConfig()
    entries = ledger_io.load_ledger(ledger)
    if income is None:
        income = ledger_io.income_by_month(entries).get(month, 0.0)
        logging.getLogger(__name__).debug("Using ledger income for %s: %s", month, income)
    actuals = ledger_io.build_actuals(entries, tax)
    if exclude:
        unknown = [leaf for leaf in exclude if not tax.is_leaf(leaf)]
        if unknown:
            raise typer.BadParameter(f"Unknown categories: {unknown}", param_hint="--exclude")
        actuals = apply_scope(actuals, month, AnalyticsScope(global_excluded=frozenset(exclude)))
    return _Inputs(
        month=month,
        taxonomy=tax,
        config=engine_config,
        actuals=actuals,
        income=float(income),
        store=_open_store(caps),
    )


def _suggest(inputs: _Inputs) -> List[BudgetSuggestion]:
    return suggestion_service.suggest(
        inputs.month,
        inputs.actuals,
        inputs.caps,
        inputs.income,
        taxonomy=inputs.taxonomy,
        config=inputs.config.suggestion,
    )


def _suggestion_table(month: str, items: List[BudgetSuggestion]) -> Table:
    table = Table(title=f"Budget suggestions {month}")
    for col in ("Parent", "Child", "Current", "Actual", "Suggested", "Delta", "Status", "Reasoning"):
        justify = "right" if col in ("Current", "Actual", "Suggested", "Delta") else "left"
        table.add_column(col, justify=justify)
    for s in items:
        style = _STATUS_STYLE[s.status]
        table.add_row(
            s.parent_category,
            s.child_category,
            _fmt(s.current_budget),
            _fmt(s.actual_spending),
            _fmt(s.suggested_budget),
            f"{'+' if s.delta >= 0 else ''}{_fmt(s.delta)}",
            f"[{style}]{s.status.value}[/{style}]",
            s.reasoning,
        )
    return table


LedgerOption = typer.Option(..., help="CSV ledger with date,amount,category,kind")
MonthOption = typer.Option(..., help="Month key, e.g. 2024-01")
IncomeOption = typer.Option(None, help="Net income for the month (defaults to ledger income)")
CapsOption = typer.Option(None, help="JSON cap store {month: {category: cap}}")
TaxonomyOption = typer.Option(None, help="Taxonomy JSON (defaults to the built-in one)")
ConfigOption = typer.Option(None, help="Engine config JSON")
ExcludeOption = typer.Option(None, "--exclude", help="Leave a category out of the analysis (repeatable)")


@app.command()
def suggest(
    ledger: Path = LedgerOption,
    month: str = MonthOption,
    income: Optional[float] = IncomeOption,
    caps: Optional[Path] = CapsOption,
    taxonomy: Optional[Path] = TaxonomyOption,
    config: Optional[Path] = ConfigOption,
    exclude: Optional[List[str]] = ExcludeOption,
    parent: Optional[str] = typer.Option(None, help="Only show one parent category"),
    out: Optional[Path] = typer.Option(None, help="Output path for suggestions JSON"),
):
    """Suggest next-month caps per category."""
    inputs = _load_inputs(ledger, month, income, caps, taxonomy, config, exclude)
    items = _suggest(inputs)
    if parent:
        items = [s for s in items if s.parent_category == parent]
    if out:
        _save_json(out, {"month": month, "income": inputs.income, "suggestions": [s.to_dict() for s in items]})
        typer.echo(f"Suggestions written to {out}")
    else:
        console.print(_suggestion_table(month, items))


@app.command(name="guardrails")
def guardrails_cmd(
    ledger: Path = LedgerOption,
    month: str = MonthOption,
    income: Optional[float] = IncomeOption,
    caps: Optional[Path] = CapsOption,
    taxonomy: Optional[Path] = TaxonomyOption,
    config: Optional[Path] = ConfigOption,
    exclude: Optional[List[str]] = ExcludeOption,
    leaves: bool = typer.Option(False, help="Include leaf categories"),
    out: Optional[Path] = typer.Option(None, help="Output path for guard-rail JSON"),
):
    """Cap and income utilization per category."""
    inputs = _load_inputs(ledger, month, income, caps, taxonomy, config, exclude)
    result = guardrails.evaluate(month, inputs.actuals, inputs.caps, inputs.income, inputs.taxonomy)
    warnings = guardrails.income_share_warnings(
        month, inputs.actuals, inputs.income, inputs.taxonomy, inputs.config.parent_income_limits
    )
    overspends = guardrails.top_overspends(result)

    if out:
        def row(r):
            return {
                "name": r.name,
                "cap": r.cap,
                "actual": r.actual,
                "ratio": r.ratio,
                "bucket": r.bucket.value,
                "incomeRatio": r.income_ratio,
                "incomeBucket": r.income_bucket.value,
            }

        _save_json(
            out,
            {
                "month": month,
                "income": inputs.income,
                "perParent": [row(r) for r in result.per_parent.values()],
                "perLeaf": [row(r) for r in result.per_leaf.values()],
                "warnings": [w.message() for w in warnings],
                "overspends": [r.name for r in overspends],
            },
        )
        typer.echo(f"Guard-rails written to {out}")
        return

    table = Table(title=f"Budget vs actual {month}")
    for col in ("Category", "Cap", "Actual", "Used", "Status", "Of income"):
        table.add_column(col, justify="left" if col == "Category" else "right")
    for name, r in result.per_parent.items():
        style = _BUCKET_STYLE[r.bucket]
        table.add_row(
            f"[bold]{name}[/bold]",
            _fmt(r.cap),
            _fmt(r.actual),
            f"{r.ratio * 100:.0f}%",
            f"[{style}]{r.bucket.value}[/{style}]",
            f"{r.income_ratio * 100:.1f}% ({r.income_bucket.value})",
        )
        if leaves:
            for leaf in inputs.taxonomy.children_of(name):
                lr = result.per_leaf[leaf]
                lstyle = _BUCKET_STYLE[lr.bucket]
                table.add_row(
                    f"  {leaf}",
                    _fmt(lr.cap),
                    _fmt(lr.actual),
                    f"{lr.ratio * 100:.0f}%",
                    f"[{lstyle}]{lr.bucket.value}[/{lstyle}]",
                    f"{lr.income_ratio * 100:.1f}%",
                )
    console.print(table)

    if not inputs.income:
        console.print("[yellow]No income for this month; income guard-rails are off.[/yellow]")
    elif warnings:
        for w in warnings:
            console.print(f"[yellow]! {w.message()}[/yellow]")
    else:
        console.print("[green]No guard-rail warnings[/green]")
    for r in overspends:
        pct = f" ({r.ratio * 100:.0f}% of cap)" if r.cap > 0 else ""
        console.print(f"{r.name}: over {_fmt(r.actual - r.cap)}{pct}")


@app.command(name="report")
def report_cmd(
    ledger: Path = LedgerOption,
    month: str = MonthOption,
    income: Optional[float] = IncomeOption,
    caps: Optional[Path] = CapsOption,
    taxonomy: Optional[Path] = TaxonomyOption,
    config: Optional[Path] = ConfigOption,
    exclude: Optional[List[str]] = ExcludeOption,
    out: Optional[Path] = typer.Option(None, help="Output path for the report CSV"),
):
    """Insights plus the full variance CSV."""
    inputs = _load_inputs(ledger, month, income, caps, taxonomy, config, exclude)
    result = report_service.report(month, _suggest(inputs), inputs.income, inputs.actuals, inputs.taxonomy)
    if out:
        _write_text(out, result.csv_content)
        for line in result.insights:
            console.print(f"- {line}")
        typer.echo(f"Report written to {out}")
    else:
        typer.echo(result.csv_content, nl=False)


@app.command()
def apply(
    ledger: Path = LedgerOption,
    month: str = MonthOption,
    caps: Path = typer.Option(..., help="JSON cap store to update"),
    income: Optional[float] = IncomeOption,
    taxonomy: Optional[Path] = TaxonomyOption,
    config: Optional[Path] = ConfigOption,
    parent: Optional[str] = typer.Option(None, help="Only apply suggestions for one parent category"),
):
    """Write accepted suggestions into the cap store."""
    inputs = _load_inputs(ledger, month, income, caps, taxonomy, config)
    accepted = suggestion_service.accepted_caps(_suggest(inputs), parent=parent)
    if not accepted:
        typer.echo("Nothing to apply")
        return
    inputs.store.set_caps(month, accepted)
    typer.echo(f"Applied {len(accepted)} budget suggestions for {month}")


@app.command()
def seed(
    ledger: Path = LedgerOption,
    month: str = MonthOption,
    caps: Path = typer.Option(..., help="JSON cap store to update"),
    income: Optional[float] = IncomeOption,
    taxonomy: Optional[Path] = TaxonomyOption,
    config: Optional[Path] = ConfigOption,
    force: bool = typer.Option(False, help="Seed even if the month already has caps"),
):
    """Seed initial caps from income limits and last month's spending."""
    inputs = _load_inputs(ledger, month, income, caps, taxonomy, config)
    if inputs.store.caps_for(month) and not force:
        typer.echo(f"{month} already has caps; use --force to overwrite")
        return
    seeded = suggestion_service.seed_caps(
        month,
        inputs.actuals,
        inputs.income,
        inputs.taxonomy,
        inputs.config.parent_income_limits,
        unit=inputs.config.suggestion.rounding_unit,
    )
    if not seeded:
        typer.echo("No income for this month; nothing seeded")
        return
    inputs.store.set_caps(month, seeded)
    typer.echo(f"Seeded {len(seeded)} caps for {month}")


@app.command(name="caps-export")
def caps_export(
    caps: Path = typer.Option(..., help="JSON cap store"),
    month: str = MonthOption,
    taxonomy: Optional[Path] = TaxonomyOption,
    out: Optional[Path] = typer.Option(None, help="Output path for caps CSV"),
):
    """Export one month of caps as month,childCategory,cap."""
    store = caps_io.JsonCapStore(caps)
    text = caps_io.export_caps_csv(month, store.caps_for(month), _load_taxonomy(taxonomy))
    if out:
        _write_text(out, text)
        typer.echo(f"Caps written to {out}")
    else:
        typer.echo(text, nl=False)


@app.command(name="caps-import")
def caps_import(
    caps: Path = typer.Option(..., help="JSON cap store to update"),
    month: str = MonthOption,
    csv: Path = typer.Option(..., help="Caps CSV with month,childCategory,cap"),
    taxonomy: Optional[Path] = TaxonomyOption,
):
    """Import caps for one month; rows for other months and bad rows are skipped."""
    if not csv.exists():
        raise typer.BadParameter(f"{csv} does not exist")
    store = caps_io.JsonCapStore(caps)
    try:
        result = caps_io.import_caps_csv(store, csv.read_text(encoding="utf-8"), month, _load_taxonomy(taxonomy))
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    typer.echo(f"Imported {result.applied} caps for {month} ({result.skipped} skipped)")


if __name__ == "__main__":
    app()
