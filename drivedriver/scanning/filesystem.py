import os
import logging
from datetime import datetime, UTC
from pathlib import Path
from typing import Iterator, Optional, Tuple

from tqdm import tqdm

from .. import config
from ..models import ScanResult
from ..metadata.analyze import FileAnalyzer


class DiskScanner:
    """
    Walks one drive and builds a ScanResult.

    The walk is best-effort: unreadable directories and files are logged and
    skipped. Symlinks are never followed, so every entry is visited once.
    """

    def __init__(self, settings: Optional[config.Config] = None, analyzer: Optional[FileAnalyzer] = None):
        self.settings = settings or config.Config()
        self.analyzer = analyzer or FileAnalyzer(self.settings)

    def scan(self, root: Path, show_progress: bool = False, now: Optional[datetime] = None) -> ScanResult:
        """
        Args:
            now: Reference time for importance scoring. Fixed per walk so every
                 record is scored against the same clock.
        """
        root = Path(os.path.abspath(root))
        now = now or datetime.now(UTC)
        result = ScanResult(root=root)

        logging.info(f"Scanning drive: {root}")
        files = self._iter_files(root)
        for path, st in tqdm(files, desc=f"Scanning {root}", unit="file", disable=not show_progress):
            record = self.analyzer.analyze(path, st, now)
            result.add(record)

        logging.info(f"Scan of {root} complete: {result.total_files} files, {result.total_size} bytes.")
        return result

    def _iter_files(self, root: Path) -> Iterator[Tuple[Path, os.stat_result]]:
        """Depth-first walker using os.scandir for speed."""
        if self.settings.is_path_excluded(root):
            logging.info(f"Drive root {root} is excluded.")
            return

        stack = [root]
        while stack:
            current = stack.pop()

            try:
                with os.scandir(current) as it:
                    entries = list(it)
            except OSError as e:
                logging.warning(f"Cannot read directory {current}: {e}")
                continue

            # Sort for stable traversal order
            entries.sort(key=lambda e: e.name.lower())

            dirs = []
            for e in entries:
                path = Path(e.path)
                try:
                    is_dir = e.is_dir(follow_symlinks=False)
                    is_file = not is_dir and e.is_file(follow_symlinks=False)
                except OSError as err:
                    logging.debug(f"Cannot inspect {path}: {err}")
                    continue

                if not (is_dir or is_file):
                    continue
                if self.settings.is_path_excluded(path):
                    logging.debug(f"Excluded: {path}")
                    continue

                if is_dir:
                    dirs.append(path)
                    continue

                try:
                    st = e.stat(follow_symlinks=False)
                except OSError as err:
                    logging.debug(f"Cannot stat {path}: {err}")
                    continue
                yield path, st

            # Push dirs to stack (reversed so we process A before Z)
            for d in reversed(dirs):
                stack.append(d)
