"""Click CLI commands for chartdesk."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import click
import httpx

from chartdesk.config import AppConfig
from chartdesk.engine.indicators import GUPPY_MIN_BARS, guppy, hull_suite, rsi
from chartdesk.engine.key_levels import countdown_timers, key_levels
from chartdesk.engine.mining_cost import MiningCostPoint, interpolate_costs, is_btc_symbol
from chartdesk.engine.volume_profile import visible_range_profile
from chartdesk.market.errors import MarketDataError
from chartdesk.market.fetcher import MultiSourceCandleFetcher
from chartdesk.market.registry import (
    build_fetcher,
    build_hash_rate_source,
    create_http_client,
)
from chartdesk.market.types import Candle, DataSource, SymbolMatch, Timeframe
from chartdesk.utils.logging import setup_logging
from chartdesk.utils.time import from_unix

TIMEFRAMES = [tf.value for tf in Timeframe]
SOURCES = [s.value for s in DataSource]


def _timeframe_option(default: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    return click.option(
        "--timeframe",
        "-t",
        default=default,
        type=click.Choice(TIMEFRAMES),
        help=f"Candle timeframe (default: {default}).",
    )


_source_option = click.option(
    "--source",
    "-s",
    default=DataSource.CRYPTO.value,
    type=click.Choice(SOURCES),
    help="Data source (default: crypto).",
)


def _build_fetcher(
    config: AppConfig,
    client: httpx.AsyncClient,
) -> MultiSourceCandleFetcher:
    return build_fetcher(config, client)


async def _load_candles(
    config: AppConfig,
    symbol: str,
    timeframe: Timeframe,
    source: DataSource,
) -> list[Candle]:
    async with create_http_client() as client:
        fetcher = _build_fetcher(config, client)
        return await fetcher.fetch(symbol, timeframe, source)


async def _search(
    config: AppConfig,
    query: str,
    source: DataSource,
) -> list[SymbolMatch]:
    async with create_http_client() as client:
        fetcher = _build_fetcher(config, client)
        return await fetcher.search_symbols(query, source)


async def _mining_costs(config: AppConfig) -> list[MiningCostPoint]:
    async with create_http_client() as client:
        return await build_hash_rate_source(config, client).production_costs()


def _candles_or_fail(
    config: AppConfig,
    symbol: str,
    timeframe: str,
    source: str,
) -> list[Candle]:
    try:
        return asyncio.run(
            _load_candles(config, symbol.upper(), Timeframe(timeframe), DataSource(source)),
        )
    except MarketDataError as e:
        raise click.ClickException(str(e)) from e


def _fmt_time(ts: int) -> str:
    return from_unix(ts).strftime("%Y-%m-%d %H:%M")


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """chartdesk: multi-source candles and chart overlays."""
    cfg = AppConfig()
    setup_logging(cfg.log_level, cfg.log_format)
    ctx.obj = cfg


@cli.command()
@click.argument("symbol")
@_timeframe_option("1h")
@_source_option
@click.option("--limit", default=20, show_default=True, help="Rows to print.")
@click.pass_obj
def candles(cfg: AppConfig, symbol: str, timeframe: str, source: str, limit: int) -> None:
    """Fetch and print the most recent candles."""
    series = _candles_or_fail(cfg, symbol, timeframe, source)

    click.echo(f"{symbol.upper()} {timeframe}: {len(series)} candles")
    click.echo(f"{'Time':<17} {'Open':>12} {'High':>12} {'Low':>12} {'Close':>12} {'Volume':>14}")
    for c in series[-limit:]:
        click.echo(
            f"{_fmt_time(c.time):<17} {c.open:>12.4f} {c.high:>12.4f} "
            f"{c.low:>12.4f} {c.close:>12.4f} {c.volume:>14.2f}"
        )


@cli.command()
@click.argument("symbol")
@_timeframe_option("1h")
@_source_option
@click.option("--rsi-period", type=int, default=None, help="RSI period.")
@click.option("--hull-period", type=int, default=None, help="Hull Suite period.")
@click.option("--limit", default=10, show_default=True, help="Rows to print.")
@click.pass_obj
def indicators(
    cfg: AppConfig,
    symbol: str,
    timeframe: str,
    source: str,
    rsi_period: int | None,
    hull_period: int | None,
    limit: int,
) -> None:
    """Print RSI, Hull Suite and Guppy values for the latest candles."""
    series = _candles_or_fail(cfg, symbol, timeframe, source)
    try:
        rsi_points = rsi(series, rsi_period or cfg.indicators.rsi_period)
        hull_points = hull_suite(series, hull_period or cfg.indicators.hull_period)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    guppy_points = guppy(series)

    rsi_by_time = {p.time: p.value for p in rsi_points}
    hull_by_time = {p.time: p for p in hull_points}
    guppy_by_time = {p.time: p for p in guppy_points}

    click.echo(f"{symbol.upper()} {timeframe}: {len(series)} candles")
    if len(series) < GUPPY_MIN_BARS:
        click.echo(f"Guppy needs {GUPPY_MIN_BARS} candles, got {len(series)}")
    click.echo(f"{'Time':<17} {'Close':>12} {'RSI':>7} {'Hull':>12} {'Trend':>6} {'Guppy':>8}")
    for c in series[-limit:]:
        rsi_value = rsi_by_time.get(c.time)
        hull = hull_by_time.get(c.time)
        gmma = guppy_by_time.get(c.time)
        rsi_text = f"{rsi_value:.2f}" if rsi_value is not None else "-"
        hull_text = f"{hull.hull_value:.4f}" if hull else "-"
        trend_text = hull.trend.value if hull else "-"
        guppy_text = ("bullish" if gmma.is_bullish else "mixed") if gmma else "-"
        click.echo(
            f"{_fmt_time(c.time):<17} {c.close:>12.4f} {rsi_text:>7} "
            f"{hull_text:>12} {trend_text:>6} {guppy_text:>8}"
        )


@cli.command()
@click.argument("symbol")
@_timeframe_option("1h")
@_source_option
@click.pass_obj
def levels(cfg: AppConfig, symbol: str, timeframe: str, source: str) -> None:
    """Print daily, weekly, monthly and yearly key levels."""
    series = _candles_or_fail(cfg, symbol, timeframe, source)
    found = key_levels(series)

    click.echo(f"{symbol.upper()} key levels ({len(series)} {timeframe} candles)")
    if not found:
        click.echo("  No levels (not enough history).")
    for level in sorted(found, key=lambda lv: lv.price, reverse=True):
        click.echo(f"  {level.label:<8} {level.price:>14.4f}  ({level.type.value})")

    timers = countdown_timers()
    click.echo("\nCloses in:")
    click.echo(f"  Daily:    {timers.daily}")
    click.echo(f"  Weekly:   {timers.weekly}")
    click.echo(f"  Monthly:  {timers.monthly}")
    click.echo(f"  Yearly:   {timers.yearly}")


@cli.command()
@click.argument("symbol")
@_timeframe_option("1h")
@_source_option
@click.option("--from-index", type=float, default=None, help="First visible index.")
@click.option("--to-index", type=float, default=None, help="Last visible index.")
@click.option("--rows", type=int, default=None, help="Profile rows.")
@click.option("--top", default=10, show_default=True, help="Highest-volume rows to print.")
@click.pass_obj
def profile(
    cfg: AppConfig,
    symbol: str,
    timeframe: str,
    source: str,
    from_index: float | None,
    to_index: float | None,
    rows: int | None,
    top: int,
) -> None:
    """Print the volume profile of a visible index range (default: all)."""
    series = _candles_or_fail(cfg, symbol, timeframe, source)
    start = 0.0 if from_index is None else from_index
    end = float(len(series) - 1) if to_index is None else to_index
    try:
        vp = visible_range_profile(
            series,
            start,
            end,
            rows=rows or cfg.volume_profile.rows,
            value_area_pct=cfg.volume_profile.value_area_pct,
        )
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"{symbol.upper()} {timeframe} volume profile [{start:g}, {end:g}]")
    if vp is None:
        click.echo("  Not enough visible volume to build a profile.")
        return

    click.echo(f"  POC:        {vp.poc:.4f}")
    click.echo(f"  Value Area: {vp.value_area_low:.4f} - {vp.value_area_high:.4f}")
    click.echo(f"  Volume:     {vp.total_volume:,.2f}")
    if vp.is_degenerate:
        return

    click.echo(f"\n  {'Price':>14} {'Volume':>14} {'Buy':>14} {'Sell':>14}")
    busiest = sorted(vp.levels, key=lambda lv: lv.volume, reverse=True)[:top]
    for lv in sorted(busiest, key=lambda lv: lv.price, reverse=True):
        click.echo(
            f"  {lv.price:>14.4f} {lv.volume:>14.2f} "
            f"{lv.buy_volume:>14.2f} {lv.sell_volume:>14.2f}"
        )


@cli.command("mining-cost")
@click.option("--symbol", default=None, help="Interpolate onto this BTC chart's candles.")
@_timeframe_option("1d")
@click.option("--limit", default=10, show_default=True, help="Rows to print.")
@click.pass_obj
def mining_cost(cfg: AppConfig, symbol: str | None, timeframe: str, limit: int) -> None:
    """Print Bitcoin electrical and production cost bands."""
    if symbol is not None and not is_btc_symbol(symbol):
        raise click.ClickException(f"Mining cost bands only apply to BTC charts, got {symbol.upper()}")
    points = asyncio.run(_mining_costs(cfg))
    if symbol is not None:
        series = _candles_or_fail(cfg, symbol, timeframe, DataSource.CRYPTO.value)
        points = interpolate_costs(points, [c.time for c in series])

    click.echo(f"{'Time':<17} {'Electrical':>14} {'Production':>14}")
    for p in points[-limit:]:
        click.echo(
            f"{_fmt_time(p.time):<17} {p.electrical_cost:>14,.2f} {p.production_cost:>14,.2f}"
        )


@cli.command()
@click.argument("query")
@_source_option
@click.pass_obj
def search(cfg: AppConfig, query: str, source: str) -> None:
    """Search symbols for autocomplete."""
    try:
        matches = asyncio.run(_search(cfg, query, DataSource(source)))
    except MarketDataError as e:
        raise click.ClickException(str(e)) from e

    if not matches:
        click.echo(f"No symbols match '{query}'.")
        return
    for m in matches:
        click.echo(f"  {m.symbol:<14} {m.name}")


@cli.command()
@click.pass_obj
def config(cfg: AppConfig) -> None:
    """Show current configuration."""
    click.echo("=== chartdesk Configuration ===\n")

    click.echo(f"Log Level:    {cfg.log_level}")
    click.echo(f"Log Format:   {cfg.log_format}")
    click.echo("")

    click.echo("[Fetch]")
    click.echo(f"  Min Bars:         {cfg.fetch.min_bars}")
    click.echo(f"  Max Attempts:     {cfg.fetch.max_attempts}")
    click.echo(f"  Backoff Base:     {cfg.fetch.backoff_base_seconds}s")
    click.echo(f"  Max Backoff:      {cfg.fetch.max_backoff_seconds}s")
    click.echo(f"  Candle TTL:       {cfg.fetch.candle_ttl_seconds}s")
    click.echo(f"  Symbol TTL:       {cfg.fetch.symbol_ttl_seconds}s")
    click.echo("")

    click.echo("[Providers]")
    click.echo(f"  Crypto Chain:     {', '.join(cfg.providers.crypto_chain)}")
    click.echo(f"  CoinGecko Gap:    {cfg.providers.coingecko_min_interval_seconds}s")
    click.echo("")

    click.echo("[Indicators]")
    click.echo(f"  RSI Period:       {cfg.indicators.rsi_period}")
    click.echo(f"  Hull Period:      {cfg.indicators.hull_period}")
    click.echo("")

    click.echo("[Volume Profile]")
    click.echo(f"  Rows:             {cfg.volume_profile.rows}")
    click.echo(f"  Value Area:       {cfg.volume_profile.value_area_pct:.0%}")
    click.echo("")

    click.echo("[Mining Cost]")
    click.echo(f"  Electricity:      ${cfg.mining_cost.electricity_cost_per_kwh}/kWh")
    click.echo(f"  Efficiency:       {cfg.mining_cost.miner_efficiency_j_per_th} J/TH")
    click.echo(f"  Overhead:         x{cfg.mining_cost.overhead_multiplier}")
