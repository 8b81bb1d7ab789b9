"""
CLI main entry point.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from ..config import Config, ConfigValidationError, create_default_config, load_config
from ..extractors import BillDetails, NoExtractorsRegisteredError, create_default_ensemble

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="bill-extract",
        description="Extract amount, provider, payment portal and due date from PDF bills",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # parse command
    parse_parser = subparsers.add_parser("parse", help="Parse bill details from a PDF file")
    parse_parser.add_argument("path", type=Path, help="Path to the PDF bill")
    parse_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON",
    )

    # strategies command
    subparsers.add_parser("strategies", help="List configured extraction strategies")

    # init-config command
    subparsers.add_parser("init-config", help="Write a default config file")

    return parser


def format_details(details: BillDetails) -> str:
    """Render bill details as aligned text lines."""
    rows = [
        ("Amount", f"{details.amount:.2f}" if details.amount is not None else "-"),
        ("Provider", details.service_provider or "-"),
        ("Payment portal", details.payment_portal or "-"),
        ("Due date", details.due_date or "-"),
        ("Confidence", f"{details.confidence:.0%}"),
    ]
    width = max(len(label) for label, _ in rows)
    return "\n".join(f"{label.ljust(width)}  {value}" for label, value in rows)


def cmd_parse(config: Config, path: Path, as_json: bool = False) -> int:
    """Parse one PDF bill and print the extracted details."""
    if not path.is_file():
        print(f"❌ File not found: {path}", file=sys.stderr)
        return 1

    pdf_bytes = path.read_bytes()
    ensemble = create_default_ensemble(config)

    try:
        details = ensemble.parse(pdf_bytes)
    except NoExtractorsRegisteredError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    finally:
        ensemble.close()

    if as_json:
        print(json.dumps(details.to_dict(), indent=2))
    else:
        print(format_details(details))
    return 0


def cmd_strategies(config: Config) -> int:
    """List the extractors the default ensemble would run."""
    ensemble = create_default_ensemble(config)
    try:
        for index, extractor in enumerate(ensemble.extractors, start=1):
            print(f"  {index}. {extractor.name}")
    finally:
        ensemble.close()
    return 0


def cmd_init_config(config_path: Path) -> int:
    """Write the default config file, refusing to overwrite."""
    if config_path.exists():
        print(f"❌ Config already exists: {config_path}", file=sys.stderr)
        return 1

    create_default_config(config_path)
    print(f"✓ Wrote default config to {config_path}")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init-config":
        return cmd_init_config(parsed.config)

    # Load config
    try:
        config = load_config(parsed.config)
    except (ConfigValidationError, OSError, ValueError) as e:
        print(f"❌ Failed to load config: {e}", file=sys.stderr)
        return 1

    # Route to command
    if parsed.command == "parse":
        return cmd_parse(config, parsed.path, parsed.json)
    elif parsed.command == "strategies":
        return cmd_strategies(config)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
