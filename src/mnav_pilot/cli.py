"""
Command-line interface for the treasury portfolio monitor.

Provides commands for:
- value: Value holdings and show allocation drift
- mnav: Calculate the mNAV valuation signal
- check: Run a drift check and raise alerts
- alerts: List or acknowledge drift alerts
- trend: Show a symbol's drift trend
- rebalance: Generate rebalance recommendations
- project: Run a Monte Carlo projection
- harvest: Find tax-loss harvesting opportunities
- add-lot: Record a purchase lot
"""

import logging
import sys
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

import click

from mnav_pilot.analytics import (
    DriftMonitor,
    calculate_mnav_from_prices,
    generate_harvest_alerts,
    summarize_harvest,
)
from mnav_pilot.config import ConfigurationError, MonitorConfig, load_config
from mnav_pilot.data import StoreError, open_json_stores
from mnav_pilot.data.providers import PriceProvider, PublicPriceProvider
from mnav_pilot.logging import DecisionLogger
from mnav_pilot.models import (
    AlertSeverity,
    RebalanceAction,
    RebalancePriority,
    TaxLot,
    TrendDirection,
    ValuationResult,
)
from mnav_pilot.notify import WebhookNotifier
from mnav_pilot.portfolio import REQUIRED_SYMBOLS, value_portfolio
from mnav_pilot.simulation import MEDIAN_MODES, run_projection
from mnav_pilot.trading import plan_rebalance


@dataclass
class CliState:
    """Shared state handed to every command."""
    config: MonitorConfig
    config_path: Optional[str]
    price_overrides: dict[str, float]

    @property
    def data_dir(self) -> Path:
        return Path(self.config.data_dir)

    def decision_logger(self) -> DecisionLogger:
        return DecisionLogger(self.data_dir / "decision_log.jsonl")

    def fetch_prices(
        self,
        extra_symbols: tuple[str, ...] = (),
        provider: Optional[PriceProvider] = None,
    ) -> dict[str, Optional[float]]:
        symbols = sorted(
            {h.symbol for h in self.config.holdings}
            | set(REQUIRED_SYMBOLS)
            | {s.upper() for s in extra_symbols}
        )
        missing = [s for s in symbols if s not in self.price_overrides]
        prices: dict[str, Optional[float]] = dict(self.price_overrides)
        if missing:
            provider = provider or PublicPriceProvider()
            prices.update(provider.get_prices(missing))
        return prices

    def valuation(self) -> ValuationResult:
        prices = self.fetch_prices()
        return value_portfolio(
            self.config.holdings,
            prices,
            self.config.thresholds.rebalance_trigger,
        )

    def drift_monitor(self) -> DriftMonitor:
        alert_store, history_store, _ = open_json_stores(self.data_dir)
        return DriftMonitor(self.config.alerts, alert_store, history_store)


def _parse_price_overrides(values: tuple[str, ...]) -> dict[str, float]:
    overrides = {}
    for item in values:
        symbol, sep, raw = item.partition("=")
        if not sep or not symbol:
            raise click.BadParameter(f"Expected SYMBOL=PRICE, got {item!r}", param_hint="--price")
        try:
            overrides[symbol.upper().strip()] = float(raw)
        except ValueError:
            raise click.BadParameter(f"Invalid price in {item!r}", param_hint="--price")
    return overrides


def _fail(message: str) -> None:
    click.echo(message, err=True)
    sys.exit(1)


def _require_snapshot(state: CliState):
    result = state.valuation()
    if not result.ok:
        _fail(f"Error: {result.error}")
    return result.snapshot


def _money(value) -> str:
    value = float(value)
    if value >= 1e9:
        return f"{value / 1e9:.2f}B"
    if value >= 1e6:
        return f"{value / 1e6:.2f}M"
    if value >= 1e3:
        return f"{value / 1e3:.2f}K"
    return f"{value:.2f}"


@click.group()
@click.version_option(version="0.1.0", prog_name="mnav-pilot")
@click.option(
    "--config", "-c",
    type=click.Path(),
    default=None,
    help="Path to configuration YAML file (default: ./config.yaml)",
)
@click.option(
    "--price", "-p",
    multiple=True,
    help="Override a price, e.g. --price BTC=100000 (repeatable)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, config: Optional[str], price: tuple[str, ...], verbose: bool):
    """
    Treasury portfolio monitor.

    Values a BTC/MSTR portfolio, tracks allocation drift, recommends
    rebalances and projects future value with Monte Carlo simulation.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        monitor_config = load_config(config)
    except ConfigurationError as e:
        _fail(f"Error loading config: {e}")

    ctx.obj = CliState(
        config=monitor_config,
        config_path=config,
        price_overrides=_parse_price_overrides(price),
    )


@main.command()
@click.pass_obj
def value(state: CliState):
    """
    Value holdings at current prices.

    Shows each position's value, actual vs target allocation and drift.
    """
    snapshot = _require_snapshot(state)
    logger = state.decision_logger()
    logger.log_config_loaded(state.config, state.config_path)
    logger.log_valuation_calculated(snapshot)

    click.echo(f"Portfolio Summary ({snapshot.timestamp:%Y-%m-%d %H:%M}):")
    click.echo(f"  Total Value: ${_money(snapshot.total_value)}")
    click.echo()
    click.echo(f"  {'Symbol':<8}{'Qty':>12}{'Price':>14}{'Value':>14}{'Target':>8}{'Actual':>8}{'Drift':>8}")
    for p in snapshot.positions:
        flag = " !" if p.needs_rebalance else ""
        click.echo(
            f"  {p.symbol:<8}{p.quantity:>12}{'$' + _money(p.price):>14}"
            f"{'$' + _money(p.value):>14}{p.target_allocation:>8.0%}"
            f"{p.actual_allocation:>8.0%}{p.drift_percent:>7.2f}%{flag}"
        )


@main.command()
@click.pass_obj
def mnav(state: CliState):
    """
    Calculate mNAV (MSTR market cap / BTC holdings value).
    """
    prices = state.fetch_prices()
    result = calculate_mnav_from_prices(prices, state.config.treasury, state.config.thresholds)
    if not result.ok:
        _fail(f"Error: {result.error}")

    analysis = result.analysis
    state.decision_logger().log_mnav_calculated(analysis)

    click.echo("mNAV Analysis:")
    click.echo(f"  mNAV Ratio:      {analysis.mnav:.2f}")
    click.echo(f"  Status:          {analysis.status.value}")
    click.echo(f"  MSTR Price:      ${analysis.mstr_price:,.2f}")
    click.echo(f"  MSTR Market Cap: ${_money(analysis.mstr_market_cap)}")
    click.echo(f"  BTC Price:       ${analysis.btc_price:,.2f}")
    click.echo(f"  BTC Holdings:    {_money(analysis.btc_holdings)}")
    click.echo(f"  BTC Value:       ${_money(analysis.btc_holdings_value)}")
    click.echo(f"  Thresholds:      low {analysis.mnav_low:.2f} / high {analysis.mnav_high:.2f}")


@main.command()
@click.pass_obj
def check(state: CliState):
    """
    Run a drift check.

    Records drift history, raises alerts beyond the warning/critical
    thresholds (subject to cooldown) and sends new alerts to the webhook.
    """
    snapshot = _require_snapshot(state)
    try:
        result = state.drift_monitor().check(snapshot)
    except StoreError as e:
        _fail(f"Error: {e}")

    state.decision_logger().log_drift_checked(
        snapshot, list(result.alerts), len(result.suppressed)
    )
    WebhookNotifier.from_settings(state.config.alerts).notify(result.alerts)

    settings = state.config.alerts
    click.echo(
        f"Drift trigger: {state.config.thresholds.drift_trigger:.1%}  "
        f"(warning {settings.warning:.1%}, critical {settings.critical:.1%})"
    )
    if not result.alerts:
        click.echo("No new drift alerts")
    for alert in result.alerts:
        marker = "CRITICAL" if alert.severity == AlertSeverity.CRITICAL else "WARNING"
        direction = "OVER" if alert.drift > 0 else "UNDER"
        click.echo(
            f"  [{marker}] {alert.symbol} {direction}weight by {abs(alert.drift):.1%} "
            f"(target {alert.target_allocation:.0%}, actual {alert.actual_allocation:.0%})"
        )
    if result.suppressed:
        click.echo(f"  {len(result.suppressed)} alert(s) suppressed by cooldown")


@main.command()
@click.option("--ack", "ack_id", default=None, help="Acknowledge the alert with this id")
@click.option("--all", "show_all", is_flag=True, help="Include acknowledged alerts")
@click.pass_obj
def alerts(state: CliState, ack_id: Optional[str], show_all: bool):
    """
    List active drift alerts, or acknowledge one.
    """
    monitor = state.drift_monitor()
    try:
        if ack_id:
            alert = monitor.acknowledge(ack_id)
            if alert is None:
                _fail(f"No alert with id {ack_id}")
            state.decision_logger().log_alert_acknowledged(alert)
            click.echo(f"Acknowledged {alert.id}")
            return

        listed = monitor.alert_store.load() if show_all else monitor.active_alerts()
    except StoreError as e:
        _fail(f"Error: {e}")

    if not listed:
        click.echo("No drift alerts")
        return
    for alert in listed:
        ack = " (ack)" if alert.acknowledged else ""
        click.echo(
            f"  {alert.id}  {alert.severity.value:<8} {alert.symbol:<6} "
            f"drift {alert.drift:+.2%}  {alert.timestamp:%Y-%m-%d %H:%M}{ack}"
        )


@main.command()
@click.argument("symbol")
@click.option("--days", "-d", default=7, show_default=True, help="Lookback window in days")
@click.pass_obj
def trend(state: CliState, symbol: str, days: int):
    """
    Show the drift trend for SYMBOL.
    """
    try:
        result = state.drift_monitor().drift_trend(symbol, days)
    except StoreError as e:
        _fail(f"Error: {e}")

    if result.trend == TrendDirection.INSUFFICIENT_DATA:
        click.echo(f"{result.symbol}: insufficient data ({result.data_points} point(s))")
        return

    click.echo(f"{result.symbol} drift trend over {days} days: {result.trend.value}")
    click.echo(f"  First: {result.first_drift:.2%}  Last: {result.last_drift:.2%}")
    click.echo(f"  Change: {result.change_percent:+.2f} pts over {result.data_points} checks")


@main.command()
@click.pass_obj
def rebalance(state: CliState):
    """
    Generate rebalance recommendations.

    Recommendations are advisory only. No trades are executed.
    """
    snapshot = _require_snapshot(state)
    plan = plan_rebalance(snapshot)
    state.decision_logger().log_rebalance_planned(plan)

    if not plan.needs_rebalance:
        click.echo("Portfolio is balanced - no rebalancing needed.")
        return

    click.echo("Rebalancing Recommendations:")
    for rec in plan.recommendations:
        tier = "HIGH" if rec.priority == RebalancePriority.HIGH else "MED"
        verb = "BUY " if rec.action == RebalanceAction.BUY else "SELL"
        click.echo(
            f"  [{tier:<4}] {rec.symbol:<6} {verb} ~{rec.shares:,.4f} units "
            f"(${_money(rec.difference)} to reach target)"
        )


@main.command()
@click.option("--simulations", "-n", type=int, default=None, help="Number of runs")
@click.option("--years", "-y", type=int, default=None, help="Horizon in years")
@click.option("--seed", type=int, default=None, help="Seed for reproducible runs")
@click.option("--workers", type=int, default=None, help="Threads used to run paths")
@click.option(
    "--median-mode",
    type=click.Choice(MEDIAN_MODES),
    default="middle_index",
    show_default=True,
    help="How the median is taken from the sorted values",
)
@click.option(
    "--output", "-o",
    type=click.Path(),
    default=None,
    help="Write the full projection to this JSON file",
)
@click.pass_obj
def project(
    state: CliState,
    simulations: Optional[int],
    years: Optional[int],
    seed: Optional[int],
    workers: Optional[int],
    median_mode: str,
    output: Optional[str],
):
    """
    Run a Monte Carlo projection of portfolio value.
    """
    settings = state.config.simulation
    overrides = {
        k: v for k, v in (("simulations", simulations), ("years", years), ("seed", seed))
        if v is not None
    }
    settings = replace(settings, **overrides)
    if settings.simulations < 1 or settings.years < 0:
        _fail("Error: simulations must be >= 1 and years >= 0")

    click.echo(f"Running {settings.simulations} simulations over {settings.years} years...")
    outcome = run_projection(
        state.valuation(), settings, median_mode=median_mode, max_workers=workers
    )
    if not outcome.ok:
        _fail(f"Error: {outcome.error}")

    result = outcome.result
    state.decision_logger().log_projection_run(result)
    if output:
        result.to_json(Path(output))
        click.echo(f"  Projection saved: {output}")

    click.echo(f"  Initial Value: ${_money(result.initial_value)}")
    for year, row in result.year_bands().iterrows():
        bands = "  ".join(f"{label} ${_money(value)}" for label, value in row.items())
        click.echo(f"  Year {int(year):>2}:  {bands}")

    final = result.final_stats
    click.echo()
    click.echo(f"  Mean Final Value:   ${_money(final.mean)}")
    click.echo(f"  Median Final Value: ${_money(final.median)}")
    click.echo(f"  Best / Worst:       ${_money(final.max)} / ${_money(final.min)}")
    click.echo(f"  P(loss): {final.prob_loss:.1%}  P(2x): {final.prob_double:.1%}  P(5x): {final.prob_5x:.1%}")
    cagr = result.cagr_stats
    click.echo(f"  CAGR mean {cagr.mean:.1%}  median {cagr.median:.1%}  range {cagr.min:.1%} .. {cagr.max:.1%}")


@main.command()
@click.option("--min-loss", type=float, default=500.0, show_default=True, help="Minimum dollar loss")
@click.option("--min-loss-pct", type=float, default=5.0, show_default=True, help="Minimum loss in percent")
@click.pass_obj
def harvest(state: CliState, min_loss: float, min_loss_pct: float):
    """
    Find tax-loss harvesting opportunities among recorded lots.
    """
    _, _, lot_store = open_json_stores(state.data_dir)
    try:
        lots = lot_store.load()
    except StoreError as e:
        _fail(f"Error: {e}")

    if not lots:
        click.echo("No tax lots recorded. Use add-lot first.")
        return

    prices = state.fetch_prices(tuple(lot.symbol for lot in lots))

    opportunities = generate_harvest_alerts(
        lots, prices, date.today(),
        min_loss=Decimal(str(min_loss)),
        min_loss_pct=Decimal(str(min_loss_pct)),
    )
    state.decision_logger().log_harvest_analyzed(opportunities)

    if not opportunities:
        click.echo("No tax loss harvesting opportunities found.")
        return

    summary = summarize_harvest(opportunities)
    click.echo("Tax Loss Harvesting Opportunities:")
    for opp in opportunities:
        urgent = " URGENT" if opp.urgent else ""
        term = "LT" if opp.is_long_term else "ST"
        click.echo(
            f"  {opp.lot.symbol:<6} {opp.lot.shares} @ ${opp.lot.cost_basis:,.2f}  "
            f"loss ${abs(opp.gain_loss):,.2f} ({opp.gain_loss_pct:.1f}%)  "
            f"{term} {opp.days_held}d  saves ~${opp.potential_tax_savings:,.2f}{urgent}"
        )
    click.echo(f"  Total potential tax savings: ${summary['total_tax_savings']:,.2f}")


@main.command("add-lot")
@click.argument("symbol")
@click.argument("shares")
@click.argument("cost_basis")
@click.option("--date", "-d", "purchase_date", default=None, help="Purchase date (YYYY-MM-DD)")
@click.option("--account", default="default", help="Account label")
@click.option("--notes", default="", help="Notes")
@click.pass_obj
def add_lot(
    state: CliState,
    symbol: str,
    shares: str,
    cost_basis: str,
    purchase_date: Optional[str],
    account: str,
    notes: str,
):
    """
    Record a purchase lot of SHARES units of SYMBOL at COST_BASIS per unit.
    """
    try:
        lot_date = (
            datetime.strptime(purchase_date, "%Y-%m-%d").date()
            if purchase_date else date.today()
        )
    except ValueError:
        _fail(f"Invalid date format: {purchase_date}. Use YYYY-MM-DD.")

    try:
        lot = TaxLot.create(
            symbol=symbol,
            shares=Decimal(shares),
            cost_basis=Decimal(cost_basis),
            purchase_date=lot_date,
            account=account,
            notes=notes,
        )
    except InvalidOperation:
        _fail("SHARES and COST_BASIS must be numbers")

    _, _, lot_store = open_json_stores(state.data_dir)
    lot_store.add(lot)
    click.echo(f"Added lot {lot.lot_id}: {lot.shares} {lot.symbol} @ ${lot.cost_basis:,.2f}")


if __name__ == "__main__":
    main()
