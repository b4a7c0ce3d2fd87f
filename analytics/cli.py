import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path

from analytics.engine import HolderStatsEngine
from common.errors import EngineError
from common.logging_setup import setup_logging
from common.settings import load_settings
from scheduling.refresh import load_abi
from storage.manager import get_storage


def _print_report(report) -> None:
    print(f"Token {report.token_address} as of block {report.end_block}")
    print(f"Total supply: {report.total_supply}")
    if report.market_cap_usd is not None:
        print(f"Market cap (USD): {report.market_cap_usd:,.0f}")
    print(f"Holders: {report.holder_count}  average={report.average_balance}  median={report.median_balance}")
    print(f"Top holders hold {report.top_holders_concentration_pct:.2f}% of supply")
    for i, h in enumerate(report.top_holders, 1):
        print(f"{i:02d}. {h.address}  {h.balance}  {h.kind.value}")
    print("\nDistribution:")
    for b in report.buckets:
        print(f"{b.label:>8}  {b.holder_count:>8} holders  {b.cumulative_balance}  ({b.percent_of_supply:.2f}%)")
    print(f"\nGini={report.gini:.4f}  HHI={report.hhi:.4f}")


def _positive_int(value: str) -> int:
    n = int(value)
    if n < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return n


def main(argv=None):
    p = argparse.ArgumentParser(description="Token holder statistics from Transfer log replay")
    p.add_argument("--config", default="config.yaml", help="Path to config.yaml")
    p.add_argument("--token", required=True, help="ERC-20 contract address")
    p.add_argument("--start-block", type=int, default=0, help="First block to scan (token creation block)")
    p.add_argument("--decimals", type=int, default=None, help="Token decimals (looked up when omitted)")
    p.add_argument("--ticker", default=None, help="CoinGecko coin id for market cap")
    p.add_argument("--abi", default=None, help="Path to the token ABI JSON")
    p.add_argument("--window", type=_positive_int, default=None, help="Blocks per eth_getLogs request")
    p.add_argument("--count-only", action="store_true", help="Only print the current holder count")
    p.add_argument("--json", action="store_true", help="Print the report as JSON")
    p.add_argument("--save", action="store_true", help="Store the report in the snapshot DB")
    args = p.parse_args(argv)

    setup_logging()
    settings = load_settings(args.config)
    if args.window:
        settings.scan.window_size = args.window
    engine = HolderStatsEngine.from_settings(settings)
    abi = load_abi(args.abi)

    if args.count_only:
        try:
            n = engine.count_holders(args.token, abi, args.start_block, args.decimals)
        except (EngineError, ValueError) as e:
            print(f"ERROR {e}", file=sys.stderr)
            sys.exit(1)
        print(n)
        return

    result = engine.compute_holder_stats(args.token, abi, args.start_block, args.decimals, args.ticker)
    if not result.ok:
        print(f"ERROR holder stats failed while {result.transitions[-2]}: {result.error}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps(result.report.to_dict(), indent=2))
    else:
        _print_report(result.report)
    if result.diagnostics:
        print(f"\n{len(result.diagnostics)} items skipped (see warnings above)", file=sys.stderr)

    if args.save:
        Path(settings.db.sqlite_path).parent.mkdir(parents=True, exist_ok=True)
        store = get_storage(settings.db.driver, sqlite_path=settings.db.sqlite_path)
        store.setup()
        try:
            store.save_snapshot(result.report.token_address, result.report)
            store.append_holder_point(result.report.token_address, datetime.now(timezone.utc), result.report.holder_count)
        finally:
            store.close()


if __name__ == "__main__":
    main()
