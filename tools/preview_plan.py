"""Preview restore plans for a JSON backup catalog without executing anything.

Usage:
    python -m tools.preview_plan <catalog.json> [options]

Examples:
    python -m tools.preview_plan backups.json
    python -m tools.preview_plan backups.json --time 2024-05-01T09:07:00 --data-dir D:\\Data
    python -m tools.preview_plan backups.json --continue-lsn 250
    python -m tools.preview_plan backups.json --pages Sales 1:1234 1:1240

Plans are printed as JSON on stdout; exit status is 1 when any database
could not be planned.
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

from restore_planner.config import Config
from restore_planner.context import create_context
from restore_planner.data.catalog import CatalogError, dump_results, load_catalog, page_result_to_dict
from restore_planner.models.backup_set import ContinuePoint, DamagedPage
from restore_planner.models.options import RestoreOptions


def _parse_page(text: str) -> DamagedPage:
    file_id, _, page_id = text.partition(":")
    return DamagedPage(file_id=int(file_id), page_id=int(page_id))


def build_options(args: argparse.Namespace) -> RestoreOptions:
    """Translate command-line arguments into RestoreOptions."""
    continue_from = None
    if args.continue_lsn is not None:
        continue_from = ContinuePoint(
            last_restored_lsn=args.continue_lsn,
            differential_base_lsn=args.diff_base_lsn,
        )
    return RestoreOptions(
        restore_time=datetime.fromisoformat(args.time) if args.time else None,
        ignore_differential=args.ignore_diff,
        ignore_log=args.ignore_log,
        no_recovery=args.no_recovery,
        stop_mark=args.stop_mark,
        stop_before=args.stop_before,
        stop_after_date=datetime.fromisoformat(args.stop_after) if args.stop_after else None,
        continue_from=continue_from,
        explicit_full=args.full,
        database_name=args.database_name,
        database_name_prefix=args.name_prefix,
        destination_data_dir=args.data_dir,
        destination_log_dir=args.log_dir,
        file_prefix=args.file_prefix,
        file_suffix=args.file_suffix,
        replace_db_name_in_file=args.replace_db_name,
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="Preview restore plans for a backup catalog.")
    parser.add_argument("catalog", help="Path to the JSON backup catalog")
    parser.add_argument("--config-dir", help="Planner config directory")
    parser.add_argument("--time", help="Point in time (ISO format); default: latest")
    parser.add_argument("--ignore-diff", action="store_true", help="Skip differential backups")
    parser.add_argument("--ignore-log", action="store_true", help="Skip log backups")
    parser.add_argument("--no-recovery", action="store_true", help="Leave the database restoring")
    parser.add_argument("--stop-mark", default="", help="Stop at this transaction mark")
    parser.add_argument("--stop-before", action="store_true", help="Stop before the mark")
    parser.add_argument("--stop-after", help="Only honour marks after this time (ISO format)")
    parser.add_argument("--continue-lsn", type=int, help="Continue a restore left at this LSN")
    parser.add_argument("--diff-base-lsn", type=int, help="Differential base of the restore being continued")
    parser.add_argument("--full", default="", help="Restore only this full backup (copy-only allowed)")
    parser.add_argument("--database-name", default="", help="Restore under this name")
    parser.add_argument("--name-prefix", default="", help="Prefix for restored database names")
    parser.add_argument("--data-dir", default="", help="Destination data directory")
    parser.add_argument("--log-dir", default="", help="Destination log directory")
    parser.add_argument("--file-prefix", default="", help="Prefix for restored file names")
    parser.add_argument("--file-suffix", default="", help="Suffix for restored file names")
    parser.add_argument("--replace-db-name", action="store_true", help="Replace the source name in file names")
    parser.add_argument(
        "--pages",
        nargs="+",
        metavar="DATABASE FILE:PAGE",
        help="Plan a page restore for DATABASE instead of a full restore",
    )
    args = parser.parse_args()

    config = Config(Path(args.config_dir)) if args.config_dir else None
    ctx = create_context(config)

    try:
        catalog = load_catalog(Path(args.catalog))
    except CatalogError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.pages:
        if len(args.pages) < 2:
            parser.error("--pages needs a database name and at least one FILE:PAGE")
        try:
            pages = [_parse_page(p) for p in args.pages[1:]]
        except ValueError:
            parser.error("pages must be given as FILE:PAGE")
        result = ctx.planner.plan_pages(catalog, ctx.page_request(args.pages[0], pages))
        print(json.dumps(page_result_to_dict(result), ensure_ascii=False, indent=2))
        return 0 if result.ok else 1

    try:
        options = build_options(args)
    except ValueError as e:
        parser.error(str(e))

    results = ctx.planner.plan(catalog, options)
    print(dump_results(results))
    return 0 if all(r.ok for r in results.values()) else 1


if __name__ == "__main__":
    sys.exit(main())
