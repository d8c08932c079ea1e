from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Sequence

import httpx

from basisbot.config.loader import load_app_config
from basisbot.config.schema import AppConfig
from basisbot.engine.executor import DualLegExecutor
from basisbot.engine.spread import SpreadSynchronizer
from basisbot.errors import BasisBotError, ConfigurationError
from basisbot.models import RunMode, RunResult
from basisbot.util.env import load_env_file
from basisbot.util.logging import log_banner, setup_logging
from basisbot.util.symbols import normalise_symbol
from exchanges.aster_futures import AsterFuturesClient
from exchanges.aster_spot import AsterSpotClient
from services.close_position import ClosePositionStrategy
from services.open_position import OpenPositionStrategy


LOGGER = logging.getLogger("basisbot.cli")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="basisbot",
        description="Open or close a delta-neutral futures/spot position in lots",
    )
    parser.add_argument("--config", help="optional YAML configuration file")
    parser.add_argument("--env-file", default=".env", help="dotenv file with API credentials")
    parser.add_argument("--debug", action="store_true", help="log venue requests and responses")
    sub = parser.add_subparsers(dest="command", required=True)

    open_parser = sub.add_parser("open", help="short futures and buy spot")
    open_parser.add_argument("symbol", help="trading pair, e.g. BTCUSDT")
    open_parser.add_argument("total_size", help="total position size in USD")
    open_parser.add_argument("lot_size", help="maximum lot size in USD")

    close_parser = sub.add_parser("close", help="buy back futures and sell spot")
    close_parser.add_argument("symbol", help="trading pair, e.g. BTCUSDT")
    close_parser.add_argument("close_percent", help="percentage of the position to close")
    close_parser.add_argument("lot_percent", help="percentage of the position per lot")
    return parser


def _number(raw: str, name: str) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if value != value:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")
    return value


def validate_open_args(total_size: str, lot_size: str) -> tuple[float, float]:
    total = _number(total_size, "totalSizeUSD")
    lot = _number(lot_size, "lotSizeUSD")
    if total <= 0 or lot <= 0:
        raise ConfigurationError("totalSizeUSD and lotSizeUSD must be positive")
    if lot > total:
        raise ConfigurationError("lotSizeUSD cannot be larger than totalSizeUSD")
    return total, lot


def validate_close_args(close_percent: str, lot_percent: str) -> tuple[float, float]:
    close = _number(close_percent, "closePercent")
    lot = _number(lot_percent, "lotPercent")
    if not 0 < close <= 100:
        raise ConfigurationError("closePercent must be greater than 0 and at most 100")
    if not 0 < lot <= close:
        raise ConfigurationError("lotPercent must be greater than 0 and at most closePercent")
    return close, lot


def _summary_lines(result: RunResult) -> list[str]:
    summary = result.summary
    lines = [
        f"Symbol: {result.symbol}",
        f"Status: {result.status.value}",
        f"Lots executed: {summary.total_lots}",
        f"Futures: {summary.total_futures_qty:.8f} @ {summary.avg_futures_price:.6f} "
        f"(${summary.total_futures_value:.2f})",
        f"Spot: {summary.total_spot_qty:.8f} @ {summary.avg_spot_price:.6f} "
        f"(${summary.total_spot_value:.2f})",
        f"Combined value: ${summary.total_combined_value:.2f}",
        f"Average spread: {summary.avg_spread_percent:.4f}%",
    ]
    for order in result.unwind_orders:
        if order.order is not None:
            lines.append(
                f"Unwind {order.leg.value}: executed {order.order.executed_quantity:.8f} "
                f"of {order.requested_quantity:.8f}"
            )
        else:
            lines.append(f"Unwind {order.leg.value} failed: {order.error}")
    for action in result.manual_actions:
        lines.append(f"MANUAL: {action.describe()}")
    return lines


async def _run(args: argparse.Namespace, config: AppConfig, symbol: str, sizes: tuple[float, float]) -> RunResult:
    venue = config.venue
    engine = config.engine
    async with httpx.AsyncClient(timeout=venue.timeout_s) as http:
        futures = AsterFuturesClient(
            api_url=venue.futures_api_url,
            api_key=venue.api_key,
            api_secret=venue.api_secret,
            recv_window_ms=venue.recv_window_ms,
            timeout_s=venue.timeout_s,
            contracts=config.contracts,
            client=http,
        )
        spot = AsterSpotClient(
            api_url=venue.spot_api_url,
            api_key=venue.api_key,
            api_secret=venue.api_secret,
            recv_window_ms=venue.recv_window_ms,
            timeout_s=venue.timeout_s,
            client=http,
        )
        synchronizer = SpreadSynchronizer(
            futures,
            spot,
            max_diff_percent=engine.max_price_diff_percent,
            poll_interval=engine.retry_delay_s,
            max_attempts=config.spread.max_attempts,
        )
        executor = DualLegExecutor(
            futures, spot, synchronizer, followup_delay=engine.order_followup_delay_s
        )
        if args.command == RunMode.OPEN.value:
            strategy = OpenPositionStrategy(futures, spot, executor, engine=engine)
            return await strategy.run(symbol, *sizes)
        closer = ClosePositionStrategy(futures, spot, executor, engine=engine)
        return await closer.run(symbol, *sizes)


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    load_env_file(args.env_file)
    setup_logging(logging.DEBUG if args.debug else logging.INFO)

    try:
        symbol = normalise_symbol(args.symbol)
        if not symbol:
            raise ConfigurationError("symbol must not be empty")
        if args.command == RunMode.OPEN.value:
            sizes = validate_open_args(args.total_size, args.lot_size)
            details = [f"Total size: ${sizes[0]:.2f}", f"Lot size: ${sizes[1]:.2f}"]
        else:
            sizes = validate_close_args(args.close_percent, args.lot_percent)
            details = [f"Close: {sizes[0]:g}%", f"Lot: {sizes[1]:g}%"]
        config = load_app_config(args.config).data
        if not config.venue.has_credentials:
            raise ConfigurationError("ASTERDEX_API_KEY and ASTERDEX_API_SECRET must be set")
    except ConfigurationError as exc:
        LOGGER.error("%s", exc)
        return EXIT_FAILURE

    log_banner(
        LOGGER,
        f"{args.command.upper()} {symbol}",
        details
        + [
            f"Max price difference: {config.engine.max_price_diff_percent}%",
            f"Retry delay: {config.engine.retry_delay_ms}ms",
        ],
    )
    try:
        result = asyncio.run(_run(args, config, symbol, sizes))
    except KeyboardInterrupt:
        LOGGER.warning("interrupted by user")
        return EXIT_INTERRUPTED
    except BasisBotError as exc:
        LOGGER.error("%s failed: %s", args.command, exc)
        return EXIT_FAILURE

    log_banner(LOGGER, f"{args.command.upper()} SUMMARY", _summary_lines(result))
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
