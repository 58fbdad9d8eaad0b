import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Optional, Union

from . import config
from .exceptions import CatalogError
from .models import ScanResult
from .scanning.drives import DriveEnumerator, get_all_drives
from .scanning.duplicates import DuplicateDetector, DuplicatePair, apply_duplicates
from .scanning.filesystem import DiskScanner
from .storage.chunks import CatalogStore

Settings = Union[config.Config, config.ConfigHandle]


def _snapshot(settings: Settings) -> config.Config:
    if isinstance(settings, config.ConfigHandle):
        return settings.snapshot()
    return settings


def scan_drive(drive_path: Path,
               settings: Settings,
               store: CatalogStore,
               show_progress: bool = False) -> ScanResult:
    """
    Walks one drive, persists the result, and returns it.

    A failed write is logged and recorded on the result; the caller still
    gets the populated ScanResult.
    """
    scanner = DiskScanner(_snapshot(settings))
    result = scanner.scan(Path(drive_path), show_progress=show_progress)

    try:
        store.save_scan_result(result)
        result.persisted = True
    except CatalogError as e:
        logging.error(f"Failed to persist scan of {result.root}: {e}")
        result.persist_error = str(e)

    return result


def start_initial_scan(settings: Settings,
                       store: CatalogStore,
                       enumerator: Optional[DriveEnumerator] = None,
                       max_workers: int = 1,
                       show_progress: bool = False) -> Dict[Path, ScanResult]:
    """
    Scans every enumerated drive once. Drives run in parallel when
    max_workers > 1; a single drive is always walked sequentially.
    """
    logging.info("Starting initial scan of all drives...")
    drives = get_all_drives(enumerator)
    return scan_drives(drives, settings, store, max_workers=max_workers, show_progress=show_progress)


def scan_drives(drives: List[Path],
                settings: Settings,
                store: CatalogStore,
                max_workers: int = 1,
                show_progress: bool = False) -> Dict[Path, ScanResult]:
    results: Dict[Path, ScanResult] = {}

    if max_workers <= 1:
        for drive in drives:
            results[drive] = scan_drive(drive, settings, store, show_progress)
        return results

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_drive = {
            executor.submit(scan_drive, drive, settings, store, show_progress): drive
            for drive in drives
        }
        for future in as_completed(future_to_drive):
            drive = future_to_drive[future]
            try:
                results[drive] = future.result()
            except Exception as e:
                logging.error(f"Failed to scan drive {drive}: {e}")
    return results


class DriveCatalogApp:
    def __init__(self, config_dir: Path, settings: Optional[config.Config] = None):
        self.config_dir = Path(config_dir)
        if settings is None:
            settings = config.load_config(self.config_dir / config.CONFIG_FILE_NAME)
        self.settings = config.ConfigHandle(settings)
        self.store = CatalogStore(self.config_dir)

    def scan(self, roots: Optional[List[Path]] = None, max_workers: int = 1, show_progress: bool = False) -> Dict[Path, ScanResult]:
        """Scans the given roots, or every drive on the host when none are given."""
        if roots:
            return scan_drives(roots, self.settings, self.store, max_workers, show_progress)
        return start_initial_scan(self.settings, self.store, max_workers=max_workers, show_progress=show_progress)

    def find_duplicates(self, apply: bool = False, strict: bool = False, show_progress: bool = False) -> List[DuplicatePair]:
        """
        Runs duplicate detection on the stored catalog. With apply=True the
        duplicate flags are written back into the catalog; entries rescanned
        since the load keep their fresh record.
        """
        loaded = self.store.load(strict=strict)
        catalog = loaded.catalog
        logging.info(f"Loaded {len(catalog)} catalog records.")

        pairs = DuplicateDetector(show_progress=show_progress).find_pairs(catalog)
        logging.info(f"Found {len(pairs)} duplicate pair(s).")

        if apply:
            changed = apply_duplicates(catalog, pairs)
            self.store.apply_duplicate_flags(changed)
        return pairs
