import argparse
import json
import logging
import sys
from pathlib import Path

from . import config
from .core import DriveCatalogApp
from .exceptions import DriveDriverError
from .reporting import ReportGenerator
from .scanning.drives import get_all_drives


def setup_logging(log_dir: Path, verbose: bool):
    """Sets up logging to both console and a file in the config directory."""
    log_level = logging.DEBUG if verbose else logging.INFO

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "drivedriver.log"

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )

    # Silence chatty libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="DriveDriver: catalog drives and find duplicate files")

    p.add_argument("--config-dir", type=Path, default=None, help="Config/data directory (default: ~/.drivedriver)")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    p.add_argument("--progress", action="store_true", help="Show progress bars")

    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("drives", help="List detected volume roots")

    scan = sub.add_parser("scan", help="Scan drives into the catalog")
    scan.add_argument("paths", type=Path, nargs="*", help="Roots to scan (default: all drives)")
    scan.add_argument("--workers", type=int, default=1, help="Drives to scan in parallel")

    sub.add_parser("stats", help="Print statistics of the latest scan")

    dups = sub.add_parser("duplicates", help="Find duplicate files in the catalog")
    dups.add_argument("--apply", action="store_true", help="Write duplicate flags back into the catalog")
    dups.add_argument("--csv", type=Path, default=None, help="Write a duplicate report CSV")
    dups.add_argument("--strict", action="store_true", help="Fail on unreadable catalog chunks instead of skipping them")

    return p.parse_args(argv)


def run(args) -> int:
    config_dir = args.config_dir.resolve() if args.config_dir else config.get_config_dir()

    if args.command == "drives":
        for drive in get_all_drives():
            print(drive)
        return 0

    app = DriveCatalogApp(config_dir)

    if args.command == "scan":
        results = app.scan(args.paths, max_workers=args.workers, show_progress=args.progress)
        failed = 0
        for drive, result in results.items():
            status = "saved" if result.persisted else f"NOT SAVED ({result.persist_error})"
            print(f"{drive}: {result.total_files} files, {result.total_size} bytes [{status}]")
            if not result.persisted:
                failed += 1
        return 1 if failed else 0

    if args.command == "stats":
        print(json.dumps(app.store.read_stats(), indent=2))
        summary = ReportGenerator(app.store.load(strict=False).catalog).category_summary()
        for category, (count, size) in sorted(summary.items()):
            print(f"{category}\t{count} files\t{size} bytes")
        return 0

    if args.command == "duplicates":
        pairs = app.find_duplicates(apply=args.apply, strict=args.strict, show_progress=args.progress)
        for a, b in pairs:
            print(f"{a}\t{b}")
        reporter = ReportGenerator(app.store.load(strict=False).catalog)
        print(f"Reclaimable: {reporter.reclaimable_bytes(pairs)} bytes")
        if args.csv:
            reporter.write_duplicate_report(pairs, args.csv)
        return 0

    return 2


def main(argv=None):
    args = parse_args(argv)
    config_dir = args.config_dir.resolve() if args.config_dir else config.get_config_dir()
    setup_logging(config_dir, args.verbose)

    logging.info("=== DriveDriver Started ===")
    try:
        sys.exit(run(args))
    except KeyboardInterrupt:
        logging.warning("Operation cancelled by user.")
        sys.exit(1)
    except DriveDriverError:
        logging.exception("Fatal error.")
        sys.exit(1)


if __name__ == "__main__":
    main()
