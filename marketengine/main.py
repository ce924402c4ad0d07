"""Market engine — application entry point.

Boots the FastAPI internal server and provides the CLI entry point for
the live engine and backtest modes.
"""

import logging

from fastapi import FastAPI

from marketengine.api.routers import router

app = FastAPI(title="Market Engine Internal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("marketengine")


# ── CLI ──────────────────────────────────────────────────────────────────


def _parse_time(value: str):
    """RFC 3339 timestamp → aware UTC ``datetime`` (argparse type)."""
    import argparse
    from datetime import datetime, timezone

    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid RFC3339 time: {value!r}") from None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _duration(value: str):
    """Duration string → ``timedelta`` (argparse type)."""
    import argparse

    from marketengine.config import parse_duration

    try:
        return parse_duration(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def build_parser(config):
    """CLI parser; live-mode defaults come from *config*."""
    import argparse

    from marketengine.config import BacktestConfig

    bt = BacktestConfig()
    parser = argparse.ArgumentParser(description="Realtime market signal engine")
    parser.add_argument(
        "--mode",
        choices=["engine", "backtest"],
        default="engine",
        help="Run the live engine + API, or a backtest (default: engine)",
    )
    parser.add_argument("--symbol", default=config.symbol, help="Binance symbol")
    parser.add_argument("--interval", default="1m", help="Backtest kline interval (e.g. 1m, 5m)")
    parser.add_argument("--start", type=_parse_time, help="Backtest start, RFC3339")
    parser.add_argument("--end", type=_parse_time, help="Backtest end, RFC3339")

    parser.add_argument("--equity", type=float, default=bt.initial_equity, help="Initial equity in quote currency")
    parser.add_argument("--fee", type=float, default=bt.fee_rate, help="Fee rate per side (0.001 = 0.1%%)")
    parser.add_argument("--slippage", type=float, default=bt.slippage_rate, help="Slippage rate per fill (0.0002 = 2 bps)")
    parser.add_argument("--short", action="store_true", help="Allow short trades")
    parser.add_argument("--sl", type=float, default=bt.stop_loss_pct, help="Stop loss fraction (0.003 = 0.3%%)")
    parser.add_argument("--tp", type=float, default=bt.take_profit_pct, help="Take profit fraction (0.006 = 0.6%%)")

    parser.add_argument("--ema-fast", type=int, default=bt.ema_fast, help="Fast EMA window (candles)")
    parser.add_argument("--ema-slow", type=int, default=bt.ema_slow, help="Slow EMA window (candles)")
    parser.add_argument("--trend-confirm", type=int, default=bt.trend_confirm, help="Confirm trend flip after N consecutive candles")
    parser.add_argument("--trend-min-diff", type=float, default=bt.trend_min_diff, help="Minimum relative EMA separation")
    parser.add_argument("--trend-cooldown", type=_duration, default=bt.trend_cooldown, help="Minimum time between trend flips")
    parser.add_argument("--breakout-lookback", type=_duration, default=bt.breakout_lookback, help="Breakout lookback window")
    parser.add_argument("--breakout-pct", type=float, default=bt.breakout_pct, help="Breakout threshold fraction")
    parser.add_argument("--breakout-cooldown", type=_duration, default=bt.breakout_cooldown, help="Minimum time between breakouts")
    return parser


def backtest_config_from_args(args):
    from marketengine.config import BacktestConfig

    return BacktestConfig(
        initial_equity=args.equity,
        fee_rate=args.fee,
        slippage_rate=args.slippage,
        allow_short=args.short,
        stop_loss_pct=args.sl,
        take_profit_pct=args.tp,
        ema_fast=args.ema_fast,
        ema_slow=args.ema_slow,
        trend_confirm=args.trend_confirm,
        trend_min_diff=args.trend_min_diff,
        trend_cooldown=args.trend_cooldown,
        breakout_lookback=args.breakout_lookback,
        breakout_pct=args.breakout_pct,
        breakout_cooldown=args.breakout_cooldown,
    )


def _run_cli() -> None:
    """Parse CLI arguments and dispatch to the appropriate mode."""
    import asyncio
    import sys

    from marketengine.config import load_config

    config = load_config()
    parser = build_parser(config)
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.mode == "backtest":
        if args.start is None or args.end is None:
            parser.error("--start and --end are required in backtest mode")
        sys.exit(_run_backtest(config, args))

    asyncio.run(_run_engine(config, args.symbol.upper()))


async def _run_engine(config, symbol: str) -> None:
    """Start the API server and the live signal engine concurrently."""
    import asyncio
    from dataclasses import replace

    import uvicorn

    from marketengine.api.hub import Hub
    from marketengine.api.routers import configure_routers
    from marketengine.engine import SignalEngine
    from marketengine.exchange.aggtrade import iter_agg_trades
    from marketengine.store import PriceStore

    config = replace(config, symbol=symbol)
    store = PriceStore()
    hub = Hub()
    configure_routers(price_store=store, hub=hub)
    engine = SignalEngine(config, store, hub)

    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=config.http_host,
            port=config.http_port,
            log_level=config.log_level.lower(),
        )
    )

    engine_task = asyncio.create_task(
        engine.run(iter_agg_trades(symbol, config.binance_ws_url))
    )
    logger.info("engine listening on %s:%d", config.http_host, config.http_port)
    try:
        await server.serve()
    finally:
        engine.stop()
        engine_task.cancel()
        hub.close()
        results = await asyncio.gather(engine_task, return_exceptions=True)
        logger.info("Market engine stopped. Results: %s", results)


def _run_backtest(config, args) -> int:
    """Fetch historical klines and run a backtest; returns an exit code."""
    import asyncio

    from marketengine.backtest.engine import BacktestEngine
    from marketengine.backtest.stats import calculate_stats
    from marketengine.config import ConfigError
    from marketengine.exchange.binance_client import BinanceClient

    client = BinanceClient(config.binance_rest_url)
    candles = asyncio.run(
        client.fetch_klines(args.symbol.upper(), args.interval, args.start, args.end)
    )
    if not candles:
        logger.error("no candles fetched")
        return 1

    try:
        result = BacktestEngine(backtest_config_from_args(args)).run(candles)
    except ConfigError as exc:
        logger.error("backtest: %s", exc)
        return 1

    stats = calculate_stats(result.trades)
    logger.info("Candles: %d", len(candles))
    logger.info(
        "Trades: %d (won %d, lost %d)",
        stats["total_trades"], stats["winning_trades"], stats["losing_trades"],
    )
    logger.info("Final equity: %.2f", result.final_equity)
    logger.info("Total return: %.2f%%", result.total_return * 100)
    logger.info("Max drawdown: %.2f%%", result.max_drawdown * 100)
    logger.info("Win rate: %.2f%%", result.win_rate * 100)
    logger.info("Profit factor: %.3f", result.profit_factor)
    return 0


if __name__ == "__main__":
    _run_cli()
