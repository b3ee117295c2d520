"""StockBasket command line tool.

Previews the engine's calculations for a portfolio described in a YAML file:

    name: IT Leaders
    basket:
      - {exchange: NSE, symbol: TCS, weight: 50}
      - {exchange: NSE, symbol: INFY, weight: 50}
    prices:
      NSE:TCS: 3500
      NSE:INFY: 1500
    holdings:
      - {exchange: NSE, symbol: TCS, quantity: 3, average_price: 3400}

Examples:
    stockbasket min-investment portfolio.yaml
    stockbasket plan-buy portfolio.yaml --amount 25000
    stockbasket plan-rebalance portfolio.yaml --threshold 5
    stockbasket plan-sell portfolio.yaml --percentage 50
    stockbasket sip-next --frequency monthly --from 2025-01-31 --day-of-month 31

Nothing is submitted to a broker.
"""

from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

import click
import yaml
from rich.console import Console
from rich.table import Table

from stockbasket.basket.base import Basket
from stockbasket.basket.weights import WeightNormalizer
from stockbasket.portfolio.allocation import plan_buy
from stockbasket.portfolio.base import Holding, PriceSnapshot
from stockbasket.portfolio.exit import plan_sell
from stockbasket.portfolio.minimum import check_investment_amount, min_investment
from stockbasket.portfolio.rebalance import RebalancePlanner
from stockbasket.sip.models import Frequency
from stockbasket.sip.scheduler import market_today, next_execution_date
from stockbasket.utils.config import EngineSettings, load_config
from stockbasket.utils.exceptions import ConfigurationError
from stockbasket.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


@dataclass
class Portfolio:
    """Basket, prices and holdings read from a portfolio file."""

    basket: Basket
    prices: PriceSnapshot
    holdings: List[Holding]

    @classmethod
    def from_file(cls, filepath: str) -> "Portfolio":
        """Load a portfolio file.

        Raises:
            click.ClickException: If the file is not a valid portfolio
        """
        with open(filepath, "r") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise click.ClickException(f"Invalid YAML in {filepath}: {e}") from e

        if not isinstance(data, dict):
            raise click.ClickException(f"{filepath} must contain a mapping")

        try:
            basket = Basket.from_weights(
                [
                    (entry["exchange"], entry["symbol"], entry.get("weight", 0))
                    for entry in data.get("basket") or []
                ],
                name=str(data.get("name", Path(filepath).stem)),
            )
            holdings = [
                Holding(
                    symbol=entry["symbol"],
                    exchange=entry["exchange"],
                    quantity=int(entry["quantity"]),
                    average_price=entry.get("average_price", 0),
                )
                for entry in data.get("holdings") or []
            ]
            prices = PriceSnapshot.from_quotes(data.get("prices") or {})
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            raise click.ClickException(f"Invalid portfolio file {filepath}: {e}") from e

        return cls(basket, prices, holdings)


def _decimal_option(ctx: click.Context, param: click.Parameter, value: Optional[str]):
    if value is None:
        return None
    try:
        number = Decimal(value)
    except ArithmeticError:
        raise click.BadParameter(f"{value!r} is not a number")
    if not number.is_finite():
        raise click.BadParameter(f"{value!r} is not a finite number")
    return number


def _money(value) -> str:
    return f"{value:,.2f}"


def _load_portfolio(ctx: click.Context, filepath: str, require_valid: bool = True) -> Portfolio:
    portfolio = Portfolio.from_file(filepath)
    logger.debug(
        "Loaded %s: %d constituents, %d prices, %d holdings",
        filepath, len(portfolio.basket), len(portfolio.prices), len(portfolio.holdings),
    )
    if require_valid:
        error = WeightNormalizer.from_settings(ctx.obj["settings"]).validate(portfolio.basket)
        if error is not None:
            raise click.ClickException(f"Invalid basket: {error}")
    return portfolio


def _print_skipped(console: Console, skipped) -> None:
    for gap in skipped:
        console.print(f"[yellow]Skipped {gap.exchange}:{gap.symbol}: {gap.reason}[/yellow]")


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="YAML configuration file (default: config/default.yaml)",
)
@click.option("--log-level", default=None, help="Override the configured log level")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], log_level: Optional[str]):
    """StockBasket allocation and rebalancing engine"""
    try:
        settings = EngineSettings.from_config(load_config(config_path))
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    setup_logging(level=log_level or settings.log_level)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["console"] = Console()


@cli.command("min-investment")
@click.argument("portfolio_file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def min_investment_cmd(ctx: click.Context, portfolio_file: str):
    """Smallest amount that buys one share of every constituent.

    PORTFOLIO_FILE: YAML file with basket and prices
    """
    settings: EngineSettings = ctx.obj["settings"]
    console: Console = ctx.obj["console"]
    portfolio = _load_portfolio(ctx, portfolio_file)

    table = Table(title="Minimum Investment", show_header=True, header_style="bold magenta")
    table.add_column("Instrument", style="cyan", no_wrap=True)
    table.add_column("Weight %", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Needs", justify="right")

    for constituent in portfolio.basket:
        price = portfolio.prices.get_price(constituent.exchange, constituent.symbol)
        if price is None:
            table.add_row(
                f"{constituent.exchange}:{constituent.symbol}",
                str(constituent.weight_percentage), "n/a", "n/a", style="yellow",
            )
            continue
        table.add_row(
            f"{constituent.exchange}:{constituent.symbol}",
            str(constituent.weight_percentage),
            _money(price),
            _money(price * 100 / constituent.weight_percentage),
        )

    console.print(table)
    minimum = min_investment(
        portfolio.basket, portfolio.prices, settings.min_investment_rounding
    )
    console.print(f"Minimum investment: [bold green]{_money(minimum)}[/bold green]")


@cli.command("plan-buy")
@click.argument("portfolio_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--amount", type=str, required=True,
              callback=_decimal_option, help="Cash to invest")
@click.pass_context
def plan_buy_cmd(ctx: click.Context, portfolio_file: str, amount: Decimal):
    """Whole-share BUY orders for a new investment.

    PORTFOLIO_FILE: YAML file with basket and prices
    """
    settings: EngineSettings = ctx.obj["settings"]
    console: Console = ctx.obj["console"]
    portfolio = _load_portfolio(ctx, portfolio_file)

    error = check_investment_amount(
        portfolio.basket, portfolio.prices, amount, settings.min_investment_rounding
    )
    if error is not None:
        raise click.ClickException(str(error))

    plan = plan_buy(portfolio.basket, portfolio.prices, amount)

    table = Table(title="Buy Plan", show_header=True, header_style="bold magenta")
    table.add_column("Instrument", style="cyan", no_wrap=True)
    table.add_column("Quantity", justify="right")
    table.add_column("Value", justify="right")
    for order in plan.orders:
        table.add_row(
            f"{order.exchange}:{order.symbol}", str(order.quantity), _money(order.estimated_value)
        )
    table.add_row("", "", "", end_section=True)
    table.add_row("Spent", "", _money(plan.spent_amount), style="bold")
    table.add_row("Leftover", "", _money(plan.leftover_cash), style="bold")

    console.print(table)
    _print_skipped(console, plan.skipped)
    if plan.is_empty:
        raise click.ClickException(f"Amount {amount} does not buy a single share")


@cli.command("plan-rebalance")
@click.argument("portfolio_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--threshold", type=str, default=None,
              callback=_decimal_option, help="Drift tolerance in percentage points")
@click.pass_context
def plan_rebalance_cmd(ctx: click.Context, portfolio_file: str, threshold: Optional[Decimal]):
    """Corrective orders for holdings that drifted from the basket.

    PORTFOLIO_FILE: YAML file with basket, prices and holdings
    """
    settings: EngineSettings = ctx.obj["settings"]
    console: Console = ctx.obj["console"]
    portfolio = _load_portfolio(ctx, portfolio_file)

    planner = RebalancePlanner.from_settings(settings)
    plan = planner.plan_rebalance(
        portfolio.holdings, portfolio.basket, portfolio.prices, threshold
    )

    table = Table(title="Rebalance Analysis", show_header=True, header_style="bold magenta")
    table.add_column("Instrument", style="cyan", no_wrap=True)
    table.add_column("Target %", justify="right")
    table.add_column("Actual %", justify="right")
    table.add_column("Deviation", justify="right")
    table.add_column("Action")
    table.add_column("Quantity", justify="right")
    table.add_column("Amount", justify="right")

    action_styles = {"BUY": "green", "SELL": "red", "HOLD": "dim"}
    for rec in plan.recommendations:
        table.add_row(
            f"{rec.exchange}:{rec.symbol}",
            f"{rec.target_weight:.2f}",
            f"{rec.actual_weight:.2f}",
            f"{rec.deviation:+.2f}",
            rec.action.value,
            str(rec.quantity),
            _money(rec.amount),
            style=action_styles[rec.action.value],
        )

    console.print(table)
    console.print(f"Portfolio value: {_money(plan.total_value)}")
    console.print(
        f"Buy {_money(plan.total_buy_amount)} / Sell {_money(plan.total_sell_amount)}"
        f" (net {_money(plan.net_amount)})"
    )
    for exchange, symbol in plan.untracked:
        console.print(f"[yellow]{exchange}:{symbol} is not in the basket and is kept[/yellow]")
    _print_skipped(console, plan.skipped)
    if not plan.rebalance_needed:
        console.print("[green]Within threshold, no rebalance needed[/green]")


@cli.command("plan-sell")
@click.argument("portfolio_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--percentage", type=str, default="100",
              callback=_decimal_option, help="Share of each holding to sell")
@click.pass_context
def plan_sell_cmd(ctx: click.Context, portfolio_file: str, percentage: Decimal):
    """SELL orders for a partial or full exit.

    PORTFOLIO_FILE: YAML file with holdings (prices optional)
    """
    console: Console = ctx.obj["console"]
    portfolio = _load_portfolio(ctx, portfolio_file, require_valid=False)

    plan = plan_sell(portfolio.holdings, percentage, portfolio.prices)
    if plan.error is not None:
        raise click.ClickException(str(plan.error))

    table = Table(title="Sell Plan", show_header=True, header_style="bold magenta")
    table.add_column("Instrument", style="cyan", no_wrap=True)
    table.add_column("Quantity", justify="right")
    table.add_column("Est. Value", justify="right")
    for order in plan.orders:
        table.add_row(
            f"{order.exchange}:{order.symbol}", str(order.quantity), _money(order.estimated_value)
        )

    console.print(table)
    label = "Full exit" if plan.is_full_exit else f"Partial exit ({plan.percentage}%)"
    console.print(f"{label}, estimated proceeds {_money(plan.estimated_value)}")


@cli.command("sip-next")
@click.option(
    "--frequency",
    type=click.Choice([f.value for f in Frequency], case_sensitive=False),
    required=True,
)
@click.option("--from", "from_date", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Date to advance from (default: today in the market timezone)")
@click.option("--day-of-week", type=click.IntRange(0, 6), default=None,
              help="Monday=0 ... Sunday=6")
@click.option("--day-of-month", type=click.IntRange(1, 31), default=None)
@click.option("--count", type=click.IntRange(1, 60), default=1, help="Number of dates to list")
@click.pass_context
def sip_next_cmd(
    ctx: click.Context,
    frequency: str,
    from_date,
    day_of_week: Optional[int],
    day_of_month: Optional[int],
    count: int,
):
    """Upcoming SIP execution dates."""
    settings: EngineSettings = ctx.obj["settings"]
    console: Console = ctx.obj["console"]

    if from_date is None:
        current = market_today(settings.market_timezone)
    else:
        current = from_date.date()

    table = Table(
        title=f"Next {frequency} SIP dates", show_header=True, header_style="bold magenta"
    )
    table.add_column("#", justify="right")
    table.add_column("Date", style="cyan")
    table.add_column("Weekday")
    sip_frequency = Frequency(frequency.lower())
    for i in range(1, count + 1):
        current = next_execution_date(sip_frequency, current, day_of_week, day_of_month)
        table.add_row(str(i), current.isoformat(), current.strftime("%A"))

    console.print(table)


if __name__ == "__main__":
    cli()
