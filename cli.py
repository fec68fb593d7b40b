#!/usr/bin/env python3
"""Simple CLI for looking up Substrate balances locally"""

import argparse
import asyncio
import sys
from typing import List

from dotfolio.logging_config import setup_logging
from dotfolio.services.balance_resolver import build_resolver, get_indexer_rate_limiter
from dotfolio.services.endpoint_health import EndpointReport, get_endpoint_health_checker
from dotfolio.services.portfolio import get_portfolio_service
from dotfolio.types.balance import ProviderAttempt, ResolutionOutcome


STATUS_ICONS = {"success": "✓", "query_failed": "⚠", "failed": "✗"}


def print_progress(message: str) -> None:
    print(f"   {message}")


def print_attempts(attempts: List[ProviderAttempt]) -> None:
    print("\nProviders:")
    print("-" * 50)
    for attempt in attempts:
        print(f"  {attempt.describe()}")


async def cli_balance(address: str, chain: str = None, compare: bool = False, parallel: bool = False):
    """CLI command to resolve one balance"""
    try:
        resolver = build_resolver(
            chain=chain,
            indexer_rate_limiter=get_indexer_rate_limiter(),
            parallel=parallel or None,
        )
    except ValueError as e:
        print(f"❌ Error: {e}")
        return

    if compare:
        print(f"🔍 Comparing providers for {address} on {resolver.chain}...")
        attempts = await resolver.compare_all_detailed(address)
        print_attempts(attempts)
        print(f"\n{sum(1 for a in attempts if a.succeeded)}/{len(attempts)} providers returned a balance")
        return

    print(f"🔍 Fetching {resolver.chain} balance for {address}...")
    resolution = await resolver.resolve_detailed(address, on_progress=print_progress)

    if resolution.outcome == ResolutionOutcome.FOUND and resolution.result is not None:
        result = resolution.result
        print(f"\n💰 Balance on {resolution.chain}")
        print("=" * 50)
        print(f"Free:     {result.free} {result.token}")
        print(f"Reserved: {result.reserved} {result.token}")
        print(f"Total:    {result.total} {result.token}")
        source = f"{result.provider} via {result.endpoint}" if result.endpoint else result.provider
        print(f"Source:   {source} ({result.response_time_ms}ms)")
    else:
        print(f"\n❌ No balance ({resolution.outcome.value})")
        print_attempts(resolution.attempts)


async def cli_portfolio(address: str):
    """CLI command to scan every essential chain"""
    print(f"🔍 Scanning portfolio for {address}...")

    try:
        portfolio = await get_portfolio_service().get_portfolio(address, on_progress=print_progress)
    except Exception as e:
        print(f"❌ Error: {e}")
        return

    print(f"\n📊 Portfolio ({len(portfolio.chains_queried)} chains queried)")
    print("=" * 50)
    if not portfolio.balances:
        print("No balances found across any chains")
    for i, balance in enumerate(portfolio.balances, 1):
        print(f"{i:2d}. {balance.chain:<22} {balance.total:>20} {balance.token}")


def print_endpoint_report(report: EndpointReport) -> None:
    icon = STATUS_ICONS.get(report.status, "?")
    timing = f"{report.connection_time_ms}ms" if report.connection_time_ms is not None else "-"
    detail = f"{report.balance} {report.token}" if report.balance is not None else (report.error or "")
    print(f"{icon} {report.chain:<12} {report.endpoint:<22} {timing:>8}  {detail}")


async def cli_endpoints(address: str, chain: str = None):
    """CLI command to test every RPC mirror"""
    print(f"🩺 Testing RPC endpoints with {address}...")
    try:
        reports = await get_endpoint_health_checker().check_all(address, chains=[chain] if chain else None)
    except ValueError as e:
        print(f"❌ Error: {e}")
        return

    print()
    for report in reports:
        print_endpoint_report(report)
    healthy = sum(1 for report in reports if report.status == "success")
    print(f"\n{healthy}/{len(reports)} endpoints healthy")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Dotfolio CLI")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    subparsers = parser.add_subparsers(dest="command")

    balance_parser = subparsers.add_parser("balance", help="Resolve a balance through the provider fallback")
    balance_parser.add_argument("address", help="SS58 or 0x-hex account")
    balance_parser.add_argument("--chain", help="Chain name (default: configured chain)")
    balance_parser.add_argument("--compare", action="store_true", help="Query every provider at once")
    balance_parser.add_argument("--parallel", action="store_true", help="Race all RPC endpoints")

    portfolio_parser = subparsers.add_parser("portfolio", help="Scan the indexer across essential chains")
    portfolio_parser.add_argument("address", help="SS58 or 0x-hex account")

    endpoints_parser = subparsers.add_parser("endpoints", help="Test every public RPC endpoint")
    endpoints_parser.add_argument("address", help="Account used for the balance query")
    endpoints_parser.add_argument("--chain", help="Limit the test to one chain")

    return parser


async def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    setup_logging(args.log_level, stream=sys.stderr)
    command = args.command.lower()

    try:
        if command == "balance":
            await cli_balance(args.address, args.chain, args.compare, args.parallel)

        elif command == "portfolio":
            await cli_portfolio(args.address)

        elif command == "endpoints":
            await cli_endpoints(args.address, args.chain)

        else:
            print(f"❌ Unknown command: {command}")
            parser.print_help()
    finally:
        get_indexer_rate_limiter().clear()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
