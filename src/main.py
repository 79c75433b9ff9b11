"""
Coin Market Feed - Command line entry point.

Usage:
    # Refresh the full ranked market (all pages) and show the top 20
    python -m src.main refresh --currency eur --top 20
    
    # Look up coins by name, symbol or slug
    python -m src.main coin bitcoin eth "usd coin"
    
    # Current price of one coin
    python -m src.main price btc --currency usd
    
    # Global market stats
    python -m src.main global
    
    # Market cap history over the last 30 days, or one coin's price history
    python -m src.main chart --days 30
    python -m src.main chart --coin btc --days 7
    
    # Connectivity check, supported currencies, cache reset
    python -m src.main ping
    python -m src.main currencies
    python -m src.main clean
"""

import argparse
import asyncio
import sys
import time
from typing import NoReturn

from src.domain.entities.coin import CoinRecord
from src.domain.services.formatter import UNRANKED_RANK
from src.infrastructure.config import get_settings
from src.infrastructure.container import Container, cleanup_container, create_container
from src.infrastructure.logging import get_logger, setup_logging


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Coin Market Feed - Cached CoinGecko market data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: from config)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs as JSON",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Do not read or write the on-disk cache",
    )
    
    commands = parser.add_subparsers(dest="command", required=True)
    
    refresh = commands.add_parser("refresh", help="Fetch all ranked market pages")
    refresh.add_argument("--currency", default=None, help="Quote currency (default: from config)")
    refresh.add_argument("--top", type=int, default=20, help="Rows to print (default: 20)")
    refresh.add_argument(
        "--stale-only",
        action="store_true",
        help="Only show the cached record set, do not fetch",
    )
    
    coin = commands.add_parser("coin", help="Fetch specific coins")
    coin.add_argument("names", nargs="+", help="Names, symbols or slugs")
    coin.add_argument("--currency", default=None)
    
    price = commands.add_parser("price", help="Fetch the current price of a coin")
    price.add_argument("name")
    price.add_argument("--currency", default=None)
    
    market = commands.add_parser("global", help="Show global market stats")
    market.add_argument("--currency", default=None)
    
    chart = commands.add_parser("chart", help="Show market cap or coin price history")
    chart.add_argument("--coin", default=None, help="Coin to chart (default: whole market)")
    chart.add_argument("--days", type=int, default=7, help="Days of history (default: 7)")
    chart.add_argument("--currency", default=None)
    
    commands.add_parser("ping", help="Check connectivity to the provider")
    commands.add_parser("currencies", help="List supported currencies")
    commands.add_parser("clean", help="Remove the on-disk cache")
    
    return parser.parse_args()


def print_series(label: str, points: list[list[float]]) -> None:
    """Print the first and last point of a [timestamp_ms, value] series."""
    if not points:
        print(f"{label}: no data")
        return
    first, last = points[0], points[-1]
    change = (last[1] - first[1]) / first[1] * 100 if first[1] else 0.0
    print(f"{label}: {len(points)} points, {first[1]:,.2f} -> {last[1]:,.2f} ({change:+.2f}%)")


def print_records(records: list[CoinRecord], limit: int) -> None:
    """Print records as a fixed-width table."""
    print(f"{'#':>6}  {'NAME':<24} {'SYMBOL':<8} {'PRICE':>16} {'24H %':>8} {'7D %':>8} {'MARKET CAP':>20}")
    for record in records[:limit]:
        rank = "-" if record.rank == UNRANKED_RANK else str(record.rank)
        print(
            f"{rank:>6}  {record.name[:24]:<24} {record.symbol[:8]:<8} "
            f"{record.price:>16,.8g} {record.percent_change_24h:>8.2f} "
            f"{record.percent_change_7d:>8.2f} {record.market_cap:>20,.0f}"
        )


def needs_catalog(args: argparse.Namespace) -> bool:
    """Whether the command resolves user-typed coin names."""
    return args.command in ("coin", "price") or (args.command == "chart" and bool(args.coin))


async def run_command(container: Container, args: argparse.Namespace) -> int:
    """Dispatch one command."""
    logger = get_logger(__name__)
    service = container.market_data_service
    currency = getattr(args, "currency", None)
    
    if args.command == "clean":
        removed = service.clean()
        print(f"Removed {removed} cache file(s) from {container.settings.cache_path}")
        return 0
    
    if args.command == "currencies":
        print("\n".join(service.supported_currencies()))
        return 0
    
    if args.command == "ping":
        await service.ping()
        print("ok")
        return 0
    
    stale = service.bootstrap(currency)
    
    if args.command == "refresh" and args.stale_only:
        print_records(stale, args.top)
        return 0
    
    if args.command == "refresh":
        try:
            await service.refresh_catalog()
        except Exception as e:
            logger.warning("Catalog refresh failed, using restored snapshot", error=str(e))
    elif needs_catalog(args) and not container.resolver.is_loaded:
        await service.refresh_catalog()
    
    if args.command == "refresh":
        pages = 0
        
        def on_page(batch: list[CoinRecord]) -> None:
            nonlocal pages
            pages += 1
            print(f"page {pages}: {len(batch)} coins", file=sys.stderr)
        
        records = await service.refresh_all(currency, force=True, on_page=on_page)
        print_records(records, args.top)
        return 0
    
    if args.command == "coin":
        records = await service.get_coins(args.names, currency)
        if not records:
            print("No coins found")
            return 1
        print_records(records, len(records))
        for record in records:
            print(f"{record.symbol}: {service.coin_link(record.id)}")
        return 0
    
    if args.command == "price":
        value = await service.price(args.name, currency)
        print(f"{value} {(currency or container.settings.default_currency).upper()}")
        return 0
    
    if args.command == "global":
        market = await service.global_market(currency, force=True)
        print(f"Total market cap: {market.total_market_cap:,.0f}")
        print(f"24h volume: {market.total_volume_24h:,.0f}")
        print(f"BTC dominance: {market.bitcoin_dominance:.2f}%")
        print(f"Active currencies: {market.active_currencies}")
        print(f"Active markets: {market.active_markets}")
        return 0
    
    if args.command == "chart":
        end = int(time.time())
        start = end - args.days * 86400
        if args.coin:
            graph = await service.coin_graph(args.coin, start, end, currency)
            print_series(f"{args.coin} price", graph.price)
        else:
            market_graph = await service.global_market_graph(start, end, currency)
            print_series("Total market cap", market_graph.market_cap)
            print_series("Total volume", market_graph.volume)
        return 0
    
    return 1


async def run_async(args: argparse.Namespace) -> int:
    """Build the container and run the requested command."""
    logger = get_logger(__name__)
    
    settings = get_settings()
    if args.no_cache:
        settings = settings.model_copy(update={"no_cache": True})
    
    invalid = settings.validate_required()
    if invalid:
        logger.error("Invalid settings", invalid=invalid)
        print(f"Error: Invalid values for: {', '.join(invalid)}")
        return 1
    
    try:
        container = await create_container(settings)
        return await run_command(container, args)
    
    except Exception as e:
        logger.exception("Command failed", command=args.command, error=str(e))
        print(f"\nError: {e}")
        return 1
    
    finally:
        await cleanup_container()


def main() -> NoReturn:
    """Main entry point."""
    args = parse_args()
    settings = get_settings()
    
    setup_logging(
        log_level=args.log_level or settings.log_level,
        json_format=args.json_logs or settings.json_logs,
    )
    
    exit_code = asyncio.run(run_async(args))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
