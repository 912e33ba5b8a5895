"""Command line for checking configuration records offline.

Usage:
    python -m metaconsole.forms forms
    python -m metaconsole.forms check record.yaml --form pipeline --catalog catalog.yaml
    python -m metaconsole.forms check record.yaml --form reconciliation -v

``check`` loads a persisted record into a form session backed by a YAML
metadata catalog, resolves its choice lists, reconciles the change-detection
columns, and prints the normalized record (exit 0) or the validation issues
(exit 1). Configuration problems exit 2.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from metaconsole.forms.models.field_metadata import MANIFESTS
from metaconsole.forms.session import FormSession
from metaconsole.forms.settings import ConsoleSettings, get_settings
from metaconsole.forms.utils.yaml_catalog import YamlCatalogProvider
from metaconsole.lib.errors import ConfigurationError, ConsoleError, ValidationError
from metaconsole.lib.logging import setup_logging

logger = logging.getLogger(__name__)


def list_forms() -> None:
    """Print the forms the engine knows about."""
    width = max(len(name) for name in MANIFESTS)
    print("Available forms:")
    print()
    print(f"  {'Name':<{width}}  {'Fields':>6}  Title")
    print(f"  {'-' * width}  {'-' * 6}  {'-' * 30}")
    for name, manifest in sorted(MANIFESTS.items()):
        print(f"  {name:<{width}}  {len(manifest.fields):>6}  {manifest.title}")


def read_record(path: Path) -> Dict[str, Any]:
    """Read a persisted record from a YAML file."""
    if not path.exists():
        raise ConfigurationError(f"Record file not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Record is not valid YAML: {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Record must be a mapping of column to value: {path}")
    return data


async def check_record(
    form: str,
    record: Dict[str, Any],
    provider: YamlCatalogProvider,
    settings: ConsoleSettings,
) -> int:
    """Run a record through a form session. Returns the exit code."""
    session = await FormSession.open(form, provider, record=record, settings=settings)

    for notice in session.notices:
        print(f"[{notice.level}] {notice.title}: {notice.message}")
    for field in session.enabled():
        choices = session.choices(field)
        if choices.status == "unavailable" and choices.error is not None:
            print(f"[warning] {field}: {choices.error.message}")

    try:
        normalized = await session.submit()
    except ValidationError as e:
        print(str(e))
        return 1

    print(yaml.safe_dump(normalized.model_dump(), sort_keys=False), end="")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Check data-pipeline configuration records",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # List the forms
    python -m metaconsole.forms forms

    # Check a pipeline record against a catalog
    python -m metaconsole.forms check orders.yaml --form pipeline --catalog catalog.yaml
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs in JSON format (for log aggregation systems)",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("forms", help="List available forms")

    check = subparsers.add_parser("check", help="Validate and normalize a record")
    check.add_argument("record", type=Path, help="YAML file holding one persisted record")
    check.add_argument(
        "--form",
        default="pipeline",
        choices=sorted(MANIFESTS),
        help="Form the record belongs to (default: pipeline)",
    )
    check.add_argument(
        "--catalog",
        type=Path,
        help="YAML metadata catalog (default: catalog_path from .metaconsole.yaml)",
    )

    args = parser.parse_args(argv)
    settings = get_settings()
    setup_logging(verbose=args.verbose, json_format=args.json_logs or settings.log_json)

    if args.command == "forms":
        list_forms()
        return 0
    if args.command != "check":
        parser.print_help()
        return 2

    try:
        catalog_path = args.catalog or settings.get_catalog_path()
        if catalog_path is None:
            raise ConfigurationError(
                "No metadata catalog given",
                suggestion="Pass --catalog or set catalog_path in .metaconsole.yaml",
            )
        provider = YamlCatalogProvider.from_file(catalog_path)
        record = read_record(args.record)
        return asyncio.run(check_record(args.form, record, provider, settings))
    except ConsoleError as e:
        logger.error("%s", e.message)
        print(str(e), file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
