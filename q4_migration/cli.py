"""Command line entry point.

Usage:
    q4-migrate --list-operations
    q4-migrate --operation scrape-faqs --site "Acme Corp"
    q4-migrate --operation delete-all --sites sites.json --max-concurrent 3 --headed
    q4-migrate --operation update-pr-links --link-updates updates.json

Credentials are read from CMS_USER and CMS_PASSWORD (a local .env file is
honoured). Exit codes: 0 all sites succeeded, 1 configuration or unexpected
error, 2 usage error, 3 at least one site failed.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Iterable, Optional

from .catalog import GLOBAL_SCOPE, OperationKind, grouped, operation_keys
from .errors import ConfigError
from .orchestrator import run_batch
from .settings import load_settings
from .sites import load_sites, select_sites
from .state import JsonFileStatePort, StateStore

logger = logging.getLogger(__name__)

DEFAULT_SITES_FILE = "sites.json"
STATE_FILE = Path("state") / "site_status.json"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_SITE_FAILED = 3


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT, force=True)


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Scrape, migrate and clean up content between Q4 admin sites."
    )
    parser.add_argument("--operation", choices=operation_keys(), help="Operation to run.")
    parser.add_argument("--list-operations", action="store_true", help="Print the operation catalog and exit.")
    parser.add_argument(
        "--site",
        action="append",
        default=[],
        help="Site name, source or destination subdomain (repeatable; default: all).",
    )
    parser.add_argument(
        "--sites",
        default=DEFAULT_SITES_FILE,
        help=f"Site registry file (default: {DEFAULT_SITES_FILE}).",
    )
    parser.add_argument("--data-dir", help="Snapshot and state directory (default: data).")
    parser.add_argument("--max-concurrent", type=int, help="Sites processed at the same time.")
    parser.add_argument("--timeout", type=int, help="Per-step timeout in seconds.")
    parser.add_argument("--headed", action="store_true", help="Show the browser windows.")
    parser.add_argument("--link-updates", type=Path, help="Link updates file for update-pr-links.")
    parser.add_argument("--fuzzy-high", type=float)
    parser.add_argument("--fuzzy-low", type=float)
    parser.add_argument("--ordered-min-tokens", type=int)
    parser.add_argument("--verbose", "-v", action="store_true")

    args = parser.parse_args(list(argv) if argv is not None else None)
    if not args.list_operations and not args.operation:
        parser.error("--operation is required unless --list-operations is given")
    args.headless = not args.headed
    return args


def print_catalog() -> None:
    for group, kinds in grouped().items():
        print(f"{group}:")
        for kind in kinds:
            scope = " (all sites at once)" if kind.spec.scope == GLOBAL_SCOPE else ""
            print(f"  {kind.key:32} {kind.spec.description}{scope}")


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)
    if args.list_operations:
        print_catalog()
        return EXIT_OK

    try:
        settings = load_settings(args)
        sites = select_sites(load_sites(Path(args.sites)), args.site)
    except ConfigError as exc:
        logger.error("%s", exc)
        return EXIT_ERROR

    kind = OperationKind.from_key(args.operation)
    store = StateStore(JsonFileStatePort(settings.data_dir / STATE_FILE))
    try:
        store.load()
        result = run_batch(kind, sites, settings, store, link_updates_path=args.link_updates)
    except Exception:
        logger.exception("Unexpected error running %s", kind.key)
        return EXIT_ERROR

    print(f"\n{kind.key}: {len(result.outcomes) - len(result.failed)}/{len(result.outcomes)} sites succeeded")
    names = {site.destination: site.name for site in sites}
    for destination in result.failed:
        print(f"  failed: {names.get(destination, destination)} ({destination}): {result.errors.get(destination, 'no details')}")
    return EXIT_OK if result.ok else EXIT_SITE_FAILED


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
