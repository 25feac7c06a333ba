"""ETF investment planning CLI.

Examples:
    # Look up an ETF by ISIN
    etfplan search IE00B3ZW0K18

    # Track it with a 60% target and set the budget
    etfplan settings add IE00B3ZW0K18 --proportion 0.6
    etfplan settings budget 1000

    # Record current holdings
    etfplan holdings set IUSE.L 12

    # Get suggestions (proportional or knapsack planner)
    etfplan suggest
    etfplan --strategy knapsack suggest
"""

import click
from rich.console import Console
from rich.table import Table

from etfplan.api.planner_api import PlannerAPI
from etfplan.utils.config import load_config
from etfplan.utils.exceptions import ETFPlannerError
from etfplan.utils.logging import setup_logging

console = Console()


def _api(ctx: click.Context) -> PlannerAPI:
    return ctx.obj["api"]


def _fail(ctx: click.Context, error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    ctx.exit(1)


@click.group()
@click.option("--config", "config_path", type=click.Path(exists=True), help="YAML config file")
@click.option("--db", "db_path", type=str, help="SQLite database path")
@click.option(
    "--strategy",
    type=click.Choice(["proportional", "knapsack"]),
    help="Planner strategy",
)
@click.option("--log-level", type=str, help="Logging level")
@click.pass_context
def cli(ctx, config_path, db_path, strategy, log_level):
    """ETF Planner - suggest how to invest a budget across ETFs"""
    ctx.ensure_object(dict)
    if "api" in ctx.obj:
        return

    try:
        config = load_config(config_path)
        if db_path:
            config.set("database.path", db_path)
        if strategy:
            config.set("planner.strategy", strategy)
        setup_logging(level=log_level or config.get("logging.level", "INFO"))
        ctx.obj["api"] = PlannerAPI.from_config(config)
    except (ETFPlannerError, FileNotFoundError) as e:
        _fail(ctx, e)


@cli.command()
@click.argument("isin")
@click.pass_context
def search(ctx, isin):
    """Look up an ETF by ISIN."""
    try:
        info = _api(ctx).search_etf_info(isin)
    except ETFPlannerError as e:
        _fail(ctx, e)
        return

    table = Table(title="ETF", show_header=True, header_style="bold magenta")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("ISIN")
    table.add_row(info.id, info.name, info.isin)
    console.print(table)


@cli.command()
@click.argument("etf_ids", nargs=-1, required=True)
@click.pass_context
def price(ctx, etf_ids):
    """Show current prices of ETFs."""
    prices = _api(ctx).fetch_prices(list(etf_ids))

    table = Table(title="Prices", show_header=True, header_style="bold magenta")
    table.add_column("ID")
    table.add_column("Price", justify="right")
    for etf_id in etf_ids:
        value = prices.get(etf_id)
        table.add_row(etf_id, f"{value:,.2f}" if value is not None else "[red]unavailable[/red]")
    console.print(table)


@cli.group()
def settings():
    """View and edit investor settings."""
    pass


@settings.command("show")
@click.pass_context
def settings_show(ctx):
    """Show budget and tracked ETFs."""
    current = _api(ctx).get_settings()

    table = Table(title=f"Budget: {current.budget}", show_header=True, header_style="bold magenta")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("ISIN")
    table.add_column("Ideal", justify="right")
    table.add_column("Cumulative", justify="right")
    for s in current.etf_settings:
        table.add_row(s.id, s.name, s.isin, f"{s.ideal_proportion:.1%}", str(s.cumulative))
    console.print(table)

    total = sum(s.ideal_proportion for s in current.etf_settings)
    if total < 1:
        console.print(f"[dim]Cash reserve: {1 - total:.1%}[/dim]")


@settings.command("budget")
@click.argument("amount", type=int)
@click.pass_context
def settings_budget(ctx, amount):
    """Set the budget to invest."""
    try:
        _api(ctx).set_budget(amount)
    except ETFPlannerError as e:
        _fail(ctx, e)
        return
    console.print(f"[green]Budget set to {amount}[/green]")


@settings.command("add")
@click.argument("isin")
@click.option("--proportion", "-p", type=float, required=True, help="Ideal proportion in [0, 1]")
@click.option("--cumulative", type=int, default=0, help="Amount already invested")
@click.pass_context
def settings_add(ctx, isin, proportion, cumulative):
    """Track an ETF by ISIN."""
    try:
        etf_setting = _api(ctx).add_etf(isin, proportion, cumulative)
    except ETFPlannerError as e:
        _fail(ctx, e)
        return
    console.print(f"[green]Tracking {etf_setting.id} ({etf_setting.name}) at {proportion:.1%}[/green]")


@settings.command("remove")
@click.argument("etf_id")
@click.pass_context
def settings_remove(ctx, etf_id):
    """Stop tracking an ETF."""
    try:
        _api(ctx).remove_etf(etf_id)
    except ETFPlannerError as e:
        _fail(ctx, e)
        return
    console.print(f"[green]Removed {etf_id}[/green]")


@settings.command("proportion")
@click.argument("etf_id")
@click.argument("proportion", type=float)
@click.pass_context
def settings_proportion(ctx, etf_id, proportion):
    """Change the ideal proportion of a tracked ETF."""
    try:
        _api(ctx).set_proportion(etf_id, proportion)
    except ETFPlannerError as e:
        _fail(ctx, e)
        return
    console.print(f"[green]{etf_id} ideal proportion set to {proportion:.1%}[/green]")


@cli.group()
def holdings():
    """View and edit current holdings."""
    pass


@holdings.command("show")
@click.pass_context
def holdings_show(ctx):
    """Show holdings with current value and deviation."""
    df = _api(ctx).get_valuation()

    table = Table(title="Holdings", show_header=True, header_style="bold magenta")
    for column in ["ID", "Qty", "Price", "Value", "Current", "Ideal", "Deviation"]:
        table.add_column(column, justify="left" if column == "ID" else "right")
    for row in df.itertuples(index=False):
        if row.price is None or row.price != row.price:
            table.add_row(row.etf_id, str(row.quantity), "[red]n/a[/red]", "-", "-",
                          f"{row.ideal_proportion:.1%}", "-")
            continue
        table.add_row(
            row.etf_id,
            str(row.quantity),
            f"{row.price:,.2f}",
            f"{row.value:,.2f}",
            f"{row.current_proportion:.1%}",
            f"{row.ideal_proportion:.1%}",
            f"[green]{row.deviation:+.1%}[/green]" if row.eligible else f"{row.deviation:+.1%}",
        )
    console.print(table)


@holdings.command("set")
@click.argument("etf_id")
@click.argument("quantity", type=click.IntRange(min=0))
@click.pass_context
def holdings_set(ctx, etf_id, quantity):
    """Record how many shares of an ETF are held."""
    try:
        _api(ctx).set_holding(etf_id, quantity)
    except ETFPlannerError as e:
        _fail(ctx, e)
        return
    console.print(f"[green]{etf_id}: {quantity} shares[/green]")


@cli.command()
@click.option("--record", is_flag=True, help="Book the suggestion into holdings and cumulative")
@click.pass_context
def suggest(ctx, record):
    """Suggest investments for the current budget."""
    api = _api(ctx)
    try:
        plan = api.suggest_plan()
    except ETFPlannerError as e:
        _fail(ctx, e)
        return

    if plan.excluded:
        console.print(f"[yellow]No price for: {', '.join(plan.excluded)}[/yellow]")

    if not plan.investments:
        console.print("[yellow]Nothing to buy.[/yellow]")
    else:
        table = Table(title="Suggested Investments", show_header=True, header_style="bold magenta")
        table.add_column("ID")
        table.add_column("Name")
        table.add_column("Qty", justify="right")
        table.add_column("Price", justify="right")
        table.add_column("Cost", justify="right")
        for i in plan.investments:
            table.add_row(i.etf_id, i.name, str(i.quantity), f"{i.price:,.2f}", f"{i.cost:,.2f}")
        console.print(table)

    console.print(
        f"Budget: {plan.budget:,.2f}  Spent: {plan.total_cost:,.2f}  Leftover: {plan.leftover:,.2f}"
    )

    if record and plan.investments:
        try:
            api.record_investments(plan.investments)
        except ETFPlannerError as e:
            _fail(ctx, e)
            return
        console.print("[green]Recorded.[/green]")


if __name__ == "__main__":
    cli()
