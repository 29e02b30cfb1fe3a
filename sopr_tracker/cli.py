"""
Command-line interface for the SOPR Tracker.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from sopr_tracker import __version__
from sopr_tracker.config.manager import ConfigManager
from sopr_tracker.config.models import TrackerConfig
from sopr_tracker.models.core import ProfitStatus, TokenReport
from sopr_tracker.utils.errors import (
    InvalidAddressError,
    SoprTrackerError,
    TokenNotFoundError,
)
from sopr_tracker.utils.structured_logging import logging_manager

logger = logging.getLogger(__name__)


def _add_init_command(subparsers):
    """Add init command parser."""
    init_parser = subparsers.add_parser(
        "init",
        help="Create a default configuration file",
        description="Write a default configuration file for the SOPR tracker"
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing configuration"
    )
    init_parser.set_defaults(func=init_command)


def _add_validate_command(subparsers):
    """Add validate command parser."""
    validate_parser = subparsers.add_parser(
        "validate",
        help="Validate configuration",
        description="Validate the configuration file and show a summary"
    )
    validate_parser.set_defaults(func=validate_command)


def _add_data_source_arguments(parser):
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use offline JSON fixtures instead of the live APIs"
    )
    parser.add_argument(
        "--fixtures",
        type=str,
        default="fixtures",
        help="Fixture directory used with --mock (default: fixtures)"
    )


def _add_search_command(subparsers):
    """Add search command parser."""
    search_parser = subparsers.add_parser(
        "search",
        help="Compute SOPR for a token",
        description="Look up a Solana token and compute SOPR across its holders"
    )
    search_parser.add_argument(
        "address",
        type=str,
        help="Token mint address"
    )
    search_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON"
    )
    _add_data_source_arguments(search_parser)
    search_parser.set_defaults(func=search_command)


def _add_watch_command(subparsers):
    """Add watch command parser."""
    watch_parser = subparsers.add_parser(
        "watch",
        help="Recompute SOPR for a token periodically",
        description="Repeat searches in one session so the rolling average and trend build up"
    )
    watch_parser.add_argument(
        "address",
        type=str,
        help="Token mint address"
    )
    watch_parser.add_argument(
        "--interval",
        type=float,
        default=300.0,
        help="Seconds between searches (default: 300)"
    )
    watch_parser.add_argument(
        "--iterations",
        type=int,
        default=0,
        help="Number of searches to run, 0 for no limit (default: 0)"
    )
    _add_data_source_arguments(watch_parser)
    watch_parser.set_defaults(func=watch_command)


def main(argv: Optional[list] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="SOPR Tracker CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  sopr-tracker init --force                 # Write default config
  sopr-tracker validate                     # Validate current configuration
  sopr-tracker search <MINT>                # Compute SOPR for a token
  sopr-tracker search <MINT> --json         # Same, as JSON
  sopr-tracker search <MINT> --mock         # Use offline fixtures
  sopr-tracker watch <MINT> --interval 60 --iterations 10
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"sopr-tracker {__version__}"
    )

    parser.add_argument(
        "--config",
        type=str,
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    _add_init_command(subparsers)
    _add_validate_command(subparsers)
    _add_search_command(subparsers)
    _add_watch_command(subparsers)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    _setup_logging(args)

    command_handlers = {
        "init": init_command,
        "validate": validate_command,
        "search": search_command,
        "watch": watch_command,
    }

    handler = command_handlers.get(args.command)
    if handler:
        try:
            if asyncio.iscoroutinefunction(handler):
                return asyncio.run(handler(args))
            else:
                return handler(args)
        except KeyboardInterrupt:
            print("\nOperation cancelled by user.")
            return 130
        except Exception as e:
            if args.verbose:
                import traceback
                traceback.print_exc()
            else:
                print(f"Error: {e}")
            return 1
        finally:
            logging_manager.shutdown()
    else:
        print(f"Unknown command: {args.command}")
        return 1


def _setup_logging(args, config: Optional[TrackerConfig] = None) -> None:
    """Configure logging from CLI flags, then from the config file once loaded."""
    if args.quiet:
        level = "ERROR"
    elif args.verbose:
        level = "DEBUG"
    elif config is not None:
        level = config.logging.level
    else:
        level = "WARNING"

    logging_manager.setup_logging(
        log_level=level,
        log_file=config.logging.file if config else None,
        structured_format=config.logging.structured if config else False,
        force=True
    )


def _load_config(args) -> TrackerConfig:
    """Load the configuration file, falling back to defaults when it is absent."""
    config_path = Path(args.config)
    if not config_path.exists():
        logger.debug(f"Configuration file {config_path} not found, using defaults")
        return TrackerConfig()
    return ConfigManager(str(config_path)).load_config()


def init_command(args):
    """Write a default configuration file."""
    config_path = Path(args.config)

    if config_path.exists() and not args.force:
        print(f"Configuration file {config_path} already exists. Use --force to overwrite.")
        return 1

    try:
        print(f"Initializing configuration at {config_path}...")

        manager = ConfigManager(str(config_path))
        manager.create_default_config()
        config = manager.load_config()

        print(f"✓ Configuration initialized at {config_path}")
        print(f"  Network: {config.api.network}")
        print(
            f"  Rate limit: {config.rate_limiting.max_requests} requests / "
            f"{config.rate_limiting.window_seconds}s"
        )
        print(f"  History size: {config.analysis.history_size}")
        return 0

    except Exception as e:
        print(f"Error initializing configuration: {e}")
        return 1


def validate_command(args):
    """Validate configuration file."""
    config_path = Path(args.config)

    if not config_path.exists():
        print(f"Configuration file {config_path} not found.")
        return 1

    try:
        print(f"Validating configuration: {config_path}")

        manager = ConfigManager(str(config_path))
        is_valid, errors = manager.validate_config_file()

        if is_valid:
            print("✓ Configuration is valid")
            config = manager.load_config()

            print(f"\nConfiguration Summary:")
            print(f"  Network: {config.api.network}")
            print(f"  DexScreener: {config.api.dexscreener_url}")
            print(f"  GeckoTerminal: {config.api.geckoterminal_url}")
            print(f"  Data API: {config.api.data_api_url} (key {'set' if config.api.data_api_key else 'not set'})")
            print(f"  Rate limiting:")
            print(f"    Max requests: {config.rate_limiting.max_requests}")
            print(f"    Window: {config.rate_limiting.window_seconds}s")
            print(f"    Inter-request delay: {config.rate_limiting.inter_request_delay}s")
            print(f"  Analysis:")
            print(f"    History size: {config.analysis.history_size}")
            print(f"    Trend window: {config.analysis.trend_window}")
            print(f"    Price match tolerance: {config.analysis.price_match_tolerance}s")
            print(f"    Max holders: {config.analysis.max_holders}")
            print(f"    Max trade pages: {config.analysis.max_trade_pages}")
            return 0
        else:
            print("✗ Configuration validation failed:")
            for error in errors:
                print(f"  - {error}")
            return 1

    except Exception as e:
        print(f"Error validating configuration: {e}")
        return 1


def _print_progress(processed: int, total: int) -> None:
    print(f"\rAnalysing holders: {processed}/{total}", end="", file=sys.stderr, flush=True)
    if processed == total:
        print(file=sys.stderr)


def _build_tracker(args, config: TrackerConfig):
    from sopr_tracker.clients.factory import create_data_client
    from sopr_tracker.tracker import SoprTracker

    client = create_data_client(config, use_mock=args.mock, fixtures_path=args.fixtures)
    return SoprTracker(config, client)


async def search_command(args):
    """Run one SOPR search and print the report."""
    config = _load_config(args)
    _setup_logging(args, config)

    show_progress = not (args.json or args.quiet)

    async with _build_tracker(args, config) as tracker:
        try:
            report = await tracker.search(
                args.address,
                progress_callback=_print_progress if show_progress else None
            )
        except (InvalidAddressError, TokenNotFoundError) as e:
            print(f"✗ {e}")
            return 1
        except SoprTrackerError as e:
            print(f"✗ Search failed: {e}")
            return 1

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(format_report(report))
    return 0


async def watch_command(args):
    """Repeat SOPR searches for one token in a single session."""
    if args.interval < 0:
        print("Interval must be non-negative")
        return 1

    config = _load_config(args)
    _setup_logging(args, config)

    async with _build_tracker(args, config) as tracker:
        iteration = 0
        while args.iterations <= 0 or iteration < args.iterations:
            if iteration > 0:
                await asyncio.sleep(args.interval)
            iteration += 1

            try:
                report = await tracker.search(args.address)
            except (InvalidAddressError, TokenNotFoundError) as e:
                print(f"✗ {e}")
                return 1
            except SoprTrackerError as e:
                # Transient provider failures do not end the watch
                print(f"✗ Iteration {iteration} failed: {e}")
                continue

            print(format_watch_line(iteration, report), flush=True)

    return 0


def _format_number(value: Optional[float], precision: int = 4) -> str:
    return "n/a" if value is None else f"{value:.{precision}f}"


def _format_usd(value: Optional[float]) -> str:
    if value is None:
        return "n/a"
    if value >= 1:
        return f"${value:,.2f}"
    return f"${value:.8f}"


def format_report(report: TokenReport) -> str:
    """Render a search report as text."""
    token = report.token
    sopr = report.sopr

    lines = [
        f"Token: {token.symbol} ({token.name})",
        f"  Address: {token.address}",
        f"  Price: {_format_usd(token.price_usd)}",
        f"  Liquidity: {_format_usd(token.liquidity_usd)}",
    ]
    if token.dex_id or token.pair_address:
        lines.append(f"  Pair: {token.dex_id or 'unknown'} {token.pair_address or ''}".rstrip())
    if token.url:
        lines.append(f"  Chart: {token.url}")

    lines.append("")
    lines.append("SOPR Analysis:")
    if sopr.is_defined:
        lines.append(f"  Current SOPR: {_format_number(sopr.current_sopr)} ({sopr.status.value})")
    else:
        lines.append("  Current SOPR: n/a (no holder with a priced buy and sell)")
    lines.append(f"  Average SOPR: {_format_number(sopr.average_sopr)}")
    lines.append(
        f"  Trend: {sopr.trend.direction.value.replace('_', ' ')} "
        f"(strength {sopr.trend.strength:.6f}, {len(sopr.trend.samples)} samples)"
    )
    lines.append(f"  Holders analysed: {sopr.holder_count}")
    lines.append(f"  Valid buy/sell pairs: {sopr.valid_pair_count}")

    skipped = sopr.skip_summary()
    if skipped:
        lines.append("  Excluded holders:")
        for reason, count in sorted(skipped.items(), key=lambda item: (-item[1], item[0])):
            lines.append(f"    {reason.replace('_', ' ')}: {count}")

    if sopr.status is ProfitStatus.IN_PROFIT:
        lines.append("\nHolders are, on average, selling in profit.")
    elif sopr.status is ProfitStatus.AT_LOSS:
        lines.append("\nHolders are, on average, selling at a loss.")

    return "\n".join(lines)


def format_watch_line(iteration: int, report: TokenReport) -> str:
    """Render one watch iteration as a single line."""
    sopr = report.sopr
    return (
        f"[{iteration}] {sopr.computed_at.strftime('%Y-%m-%d %H:%M:%S')} "
        f"{report.token.symbol}: SOPR={_format_number(sopr.current_sopr)} "
        f"avg={_format_number(sopr.average_sopr)} "
        f"trend={sopr.trend.direction.value} "
        f"pairs={sopr.valid_pair_count}/{sopr.holder_count}"
    )


if __name__ == "__main__":
    sys.exit(main())
