"""
CLI entry point for the SilverCharter pricing tools.

Provides commands for previewing prices, editing the per-condition pricing
settings, refreshing exchange rates and pricing a CSV of scraped cards.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import pandas as pd

from silvercharter.exceptions import SilverCharterError
from silvercharter.pricing.currency import BASE_CURRENCY, CurrencyConverter, format_currency
from silvercharter.pricing.display import describe_rounding, format_formula_for_display
from silvercharter.pricing.formula import sanitize_formula
from silvercharter.pricing.models import (
    ROUNDING_MODES,
    ConditionEntry,
    RoundingPolicy,
    with_condition,
    with_currency,
    without_condition,
)
from silvercharter.pricing.pricing_engine import PricingEngine
from silvercharter.storage.settings_store import PricingSettingsStore
from silvercharter.utils.config_loader import AppConfig, load_config, load_env
from silvercharter.utils.logging_setup import setup_logging

logger = logging.getLogger(__name__)

RULE = "=" * 60


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        argparse.Namespace: Parsed command line arguments.
    """
    parser = argparse.ArgumentParser(
        prog="silvercharter",
        description="SilverCharter card pricing tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    silvercharter preview 12.50 --condition "Grade 9"
    silvercharter set-condition Damaged --multiplier "*0.7" --rounding-mode down --targets 99
    silvercharter batch data/input/cards.csv --output data/output/priced.csv
        """,
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=Path("config/config.yaml"),
        help="Path to configuration file",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        help="Directory for settings and rate cache (default: from config)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    preview = subparsers.add_parser("preview", help="Preview the retail price for a USD price")
    preview.add_argument("price", type=float, help="Base price in USD")
    preview.add_argument("--condition", help="Condition name (default: Ungraded)")
    preview.add_argument("--formula", help="Formula to use instead of the condition's own")
    preview.add_argument("--no-formula", action="store_true", help="Skip the formula step")
    preview.add_argument("--refresh", action="store_true", help="Refresh exchange rates first")

    subparsers.add_parser("show", help="Show the pricing settings")

    set_currency = subparsers.add_parser("set-currency", help="Set the target currency")
    set_currency.add_argument("currency", help="Currency code, e.g. GBP, EUR, CAD")

    set_condition = subparsers.add_parser("set-condition", help="Add or edit a condition")
    set_condition.add_argument("name", help='Condition name, e.g. "Grade 9.5"')
    set_condition.add_argument("--multiplier", help='Formula, e.g. "*1.2" or "+3"')
    set_condition.add_argument("--rounding-mode", choices=ROUNDING_MODES, help="Rounding mode")
    set_condition.add_argument("--targets", nargs="+", help="Rounding targets, e.g. 99 50")
    set_condition.add_argument("--clear-rounding", action="store_true", help="Remove the condition's rounding")

    remove_condition = subparsers.add_parser("remove-condition", help="Remove a condition")
    remove_condition.add_argument("name", help="Condition name")

    subparsers.add_parser("refresh-rates", help="Fetch and cache the latest exchange rates")
    subparsers.add_parser("restore-defaults", help="Reset pricing settings to the defaults")

    batch = subparsers.add_parser("batch", help="Price a CSV of scraped cards")
    batch.add_argument("input", type=Path, help="CSV file with USD prices")
    batch.add_argument("--output", "-o", type=Path, help="Output CSV (default: <input>_priced.csv)")
    batch.add_argument("--price-column", default="price_usd", help="Column with USD prices")
    batch.add_argument("--condition-column", default="condition", help="Column with conditions")
    batch.add_argument("--refresh", action="store_true", help="Refresh exchange rates first")
    batch.add_argument("--dry-run", action="store_true", help="Run without writing the output file")

    return parser.parse_args(argv)


def _ensure_rates(converter: CurrencyConverter, currency: str, refresh: bool) -> None:
    """Fetch rates when asked to, or when no cache exists yet."""
    if currency.upper() == BASE_CURRENCY:
        return
    if refresh or not converter.cache_path.exists():
        converter.refresh_rates()


def run_preview(args: argparse.Namespace, store: PricingSettingsStore, converter: CurrencyConverter) -> int:
    settings = store.load()
    _ensure_rates(converter, settings.currency, args.refresh)

    engine = PricingEngine(settings, converter)
    result = engine.calculate_final_price(
        args.price,
        selected_condition=args.condition,
        override_formula=args.formula,
        apply_formula=not args.no_formula,
    )

    if args.condition and result.condition != args.condition:
        print(f'\n⚠ Condition "{args.condition}" not found, using "{result.condition}"')

    print(f'\nPreview for "{result.condition}":')
    print(f"  Base price: {format_currency(args.price, BASE_CURRENCY)}")
    print(f"  Converted: {format_currency(result.converted, settings.currency)}")
    print(f"  Formula used: {result.used_formula} ({format_formula_for_display(result.used_formula)})")
    print(f"  Rounding: {describe_rounding(result.rounding)}")
    print(f"  Retail price: {settings.currency} {result.final:.2f}\n")
    return 0


def run_show(store: PricingSettingsStore) -> int:
    settings = store.load()
    print("\n" + RULE)
    print("PRICING SETTINGS")
    print(RULE)
    print(f"  Currency: {settings.currency}")
    print(f"  Session: {settings.session_id}")
    for name, entry in settings.formula.items():
        print(
            f"  {name}: {entry.multiplier} ({format_formula_for_display(entry.multiplier)}), "
            f"rounding {describe_rounding(entry.rounding)}"
        )
    if settings.rounding_default is not None:
        print(f"  Default rounding: {describe_rounding(settings.rounding_default)}")
    print(RULE + "\n")
    return 0


def run_set_currency(args: argparse.Namespace, store: PricingSettingsStore) -> int:
    settings = store.save(with_currency(store.load(), args.currency))
    print(f"✓ Currency updated to {settings.currency}")
    return 0


def run_set_condition(args: argparse.Namespace, store: PricingSettingsStore) -> int:
    name = args.name.strip()
    settings = store.load()
    entry = settings.formula.get(name) or ConditionEntry()

    multiplier = entry.multiplier
    if args.multiplier is not None:
        safe = sanitize_formula(args.multiplier)
        if not safe or safe[0] not in "+-*/":
            print(f'✗ Error: Invalid formula "{args.multiplier}", expected to start with + - * or /')
            return 1
        multiplier = args.multiplier.strip()

    rounding = entry.rounding
    if args.clear_rounding:
        rounding = None
    elif args.rounding_mode or args.targets:
        current = rounding or RoundingPolicy()
        rounding = RoundingPolicy(
            mode=args.rounding_mode or current.mode,
            targets=tuple(args.targets) if args.targets else current.targets,
        )

    settings = store.save(
        with_condition(settings, name, ConditionEntry(multiplier=multiplier, rounding=rounding))
    )
    saved = settings.formula[name]
    print(f'✓ Condition "{name}": {saved.multiplier}, rounding {describe_rounding(saved.rounding)}')
    return 0


def run_remove_condition(args: argparse.Namespace, store: PricingSettingsStore) -> int:
    try:
        store.save(without_condition(store.load(), args.name))
    except KeyError:
        print(f'✗ Error: Condition "{args.name}" not found')
        return 1
    print(f'✓ Condition "{args.name}" removed')
    return 0


def run_refresh_rates(converter: CurrencyConverter) -> int:
    cache = converter.refresh_rates()
    if cache is None:
        print("✗ Error: Could not fetch exchange rates and no cache is available")
        return 1
    print(f"✓ {len(cache.get('rates') or {})} exchange rates available (updated {cache.get('lastUpdated')})")
    return 0


def run_restore_defaults(store: PricingSettingsStore) -> int:
    store.restore_defaults()
    print("✓ Pricing settings restored to defaults")
    return 0


def run_batch(args: argparse.Namespace, store: PricingSettingsStore, converter: CurrencyConverter) -> int:
    if not args.input.exists():
        print(f"\n✗ Error: Input file not found: {args.input}")
        return 1

    settings = store.load()
    _ensure_rates(converter, settings.currency, args.refresh)

    cards_df = pd.read_csv(args.input)
    logger.info(f"Loaded {len(cards_df)} cards from {args.input}")

    engine = PricingEngine(settings, converter)
    priced_df = engine.calculate_prices_batch(
        cards_df,
        price_column=args.price_column,
        condition_column=args.condition_column,
    )
    priced_count = int(priced_df["final_price"].notna().sum())

    print("\n" + RULE)
    print("PRICING SUMMARY")
    print(RULE)
    print(f"  Total cards: {len(priced_df)}")
    print(f"  Priced: {priced_count}")
    print(f"  Skipped: {len(priced_df) - priced_count}")
    print(f"  Currency: {settings.currency}")

    if args.dry_run:
        print("\n[DRY RUN] - No output file written")
    else:
        session_id = store.next_session_id()
        priced_df["session_id"] = session_id
        output_path = args.output or args.input.with_name(f"{args.input.stem}_priced.csv")
        output_path.parent.mkdir(parents=True, exist_ok=True)
        priced_df.to_csv(output_path, index=False)
        print(f"\n✓ Priced file written: {output_path} (session {session_id})")

    print(RULE + "\n")
    return 0


def run_cli(args: argparse.Namespace, config: AppConfig) -> int:
    """
    Dispatch a parsed command.

    Returns:
        int: Exit code (0 for success, non-zero for errors).
    """
    store = PricingSettingsStore(config.paths.data_dir)
    converter = CurrencyConverter.from_config(config)

    if args.command == "preview":
        return run_preview(args, store, converter)
    if args.command == "show":
        return run_show(store)
    if args.command == "set-currency":
        return run_set_currency(args, store)
    if args.command == "set-condition":
        return run_set_condition(args, store)
    if args.command == "remove-condition":
        return run_remove_condition(args, store)
    if args.command == "refresh-rates":
        return run_refresh_rates(converter)
    if args.command == "restore-defaults":
        return run_restore_defaults(store)
    if args.command == "batch":
        return run_batch(args, store, converter)

    print(f"✗ Unknown command: {args.command}")
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        int: Exit code.
    """
    load_env()
    args = parse_args(argv)

    config = load_config(args.config)
    if args.data_dir:
        config.paths.data_dir = str(args.data_dir)

    log_level = "DEBUG" if args.verbose else config.logging.level
    log_file = Path(config.logging.file) if config.logging.file else None
    setup_logging(level=log_level, log_format=config.logging.format, log_file=log_file)

    try:
        return run_cli(args, config)
    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user.")
        return 130
    except (SilverCharterError, ValueError) as e:
        logger.error(f"{e}")
        print(f"\n✗ Error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        print(f"\n✗ Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
