# --- main.py ---

import argparse
import json
import logging
import sys
from dataclasses import asdict, replace
from pathlib import Path
from typing import List, Optional

from config import load_settings
from duplicates import select_all_but_newest
from models import ScanStatus, ScanViews
from orchestrator import ScanOrchestrator
from scan_cache import ScanCache


def views_summary(views: ScanViews) -> dict:
    """JSON-friendly summary of what a scan found."""
    return {
        "stats": asdict(views.stats),
        "categories": {
            cat.display_name: {"count": len(items), "size": sum(f.size for f in items)}
            for cat, items in views.by_category.items()
        },
        "duplicate_groups": len({f.duplicate_group for f in views.duplicates}),
        "reclaimable_duplicates": len(select_all_but_newest(views.duplicates)),
        "large_files": [{"path": f.path, "size": f.size} for f in views.large_files[:20]],
        "junk_files": len(views.junk_files),
    }


def cmd_scan(args, settings) -> int:
    if args.large_mb is not None:
        settings = replace(settings, large_file_threshold_mb=args.large_mb)
    cache = None if args.no_cache else ScanCache(settings.cache_path)
    orchestrator = ScanOrchestrator(settings, cache=cache)

    def on_event(event, payload):
        if event == "state" and payload.status is ScanStatus.SCANNING and payload.files_found:
            print(f"\rScanning... {payload.files_found} files", end="", file=sys.stderr, flush=True)

    orchestrator.subscribe(on_event)
    state = orchestrator.run_scan(args.root)
    print(file=sys.stderr)

    if state.status is ScanStatus.ERROR:
        print(f"Scan failed: {state.message}", file=sys.stderr)
        return 1
    print(json.dumps(views_summary(orchestrator.views), indent=2))
    return 0


def cmd_cache(args, settings) -> int:
    cache = ScanCache(settings.cache_path)
    if args.action == "clear":
        cache.clear()
        print(f"Removed {cache.path}")
        return 0

    result = cache.load()
    if not result.loaded:
        print(json.dumps({"status": result.status.value}))
        return 0
    orchestrator = ScanOrchestrator(settings)
    views = orchestrator.derive_views(result.snapshot)
    print(json.dumps({"status": result.status.value, **views_summary(views)}, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storage-analyzer",
                                     description="Analyze disk usage, duplicates and junk files.")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("--settings", type=Path, default=None, help="JSON settings file")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="scan a directory tree")
    scan.add_argument("root")
    scan.add_argument("--large-mb", type=int, default=None,
                      help="large file threshold in MiB")
    scan.add_argument("--no-cache", action="store_true", help="do not write the scan cache")
    scan.set_defaults(func=cmd_scan)

    cache = sub.add_parser("cache", help="inspect or clear the scan cache")
    cache.add_argument("action", choices=["show", "clear"])
    cache.set_defaults(func=cmd_cache)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = load_settings(args.settings)
    return args.func(args, settings)


if __name__ == "__main__":
    sys.exit(main())
