"""
Chunked JSON persistence for the file catalog.

Layout under <config_dir>/data/:
    latest_stats.json         aggregate numbers from the most recent scan
    metadata_chunk_<n>.json   {path: record} shards, n starting at 1

Placement: a path already in the catalog stays in the chunk that holds it.
New paths are appended after the last record, filling the highest chunk up
to capacity and then opening the next one, so chunk assignment is stable
across rescans and a path lives in exactly one chunk.

Every chunk rewrite goes to a temp file that is renamed over the original,
and all writers of one data directory take the same lock. Readers therefore
only ever see whole chunks.
"""
import json
import logging
import os
import re
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .. import config
from ..exceptions import CatalogLoadError, CatalogWriteError
from ..models import FileMetadata, ScanResult

_CHUNK_NAME = re.compile(rf'^{re.escape(config.CHUNK_FILE_PREFIX)}(\d+)\.json$')

_WRITE_LOCKS: Dict[Path, threading.Lock] = {}
_WRITE_LOCKS_GUARD = threading.Lock()


def _writer_lock(data_dir: Path) -> threading.Lock:
    """One lock per data directory, shared by every CatalogStore in the process."""
    key = Path(os.path.abspath(data_dir))
    with _WRITE_LOCKS_GUARD:
        if key not in _WRITE_LOCKS:
            _WRITE_LOCKS[key] = threading.Lock()
        return _WRITE_LOCKS[key]


@dataclass
class LoadResult:
    catalog: Dict[Path, FileMetadata] = field(default_factory=dict)
    failed_chunks: List[Path] = field(default_factory=list)


class CatalogStore:
    def __init__(self, config_dir: Path, chunk_capacity: int = config.CHUNK_CAPACITY):
        if chunk_capacity < 1:
            raise ValueError("chunk_capacity must be positive")
        self.config_dir = Path(config_dir)
        self.data_dir = self.config_dir / config.DATA_DIR_NAME
        self.stats_path = self.data_dir / config.STATS_FILE_NAME
        self.chunk_capacity = chunk_capacity
        self._lock = _writer_lock(self.data_dir)

    def chunk_path(self, index: int) -> Path:
        return self.data_dir / f"{config.CHUNK_FILE_PREFIX}{index}.json"

    def chunk_files(self) -> List[Tuple[int, Path]]:
        """Chunk files sorted by index."""
        if not self.data_dir.is_dir():
            return []
        chunks = []
        for p in self.data_dir.iterdir():
            m = _CHUNK_NAME.match(p.name)
            if m and p.is_file():
                chunks.append((int(m.group(1)), p))
        chunks.sort()
        return chunks

    # --- Writing ---

    def save_scan_result(self, result: ScanResult, now: Optional[datetime] = None) -> int:
        """
        Writes the stats file and merges the scan's records into the chunks.
        Raises CatalogWriteError on failure.
        """
        self.write_stats(result, now)
        return self.save_records(result.metadata.values())

    def write_stats(self, result: ScanResult, now: Optional[datetime] = None):
        now = now or datetime.now(UTC)
        stats = {
            "timestamp": int(now.timestamp()),
            "total_files": result.total_files,
            "total_size": result.total_size,
            "file_types": result.file_types,
        }
        with self._lock:
            self._ensure_data_dir()
            self._write_json_atomic(self.stats_path, stats)

    def read_stats(self) -> Dict[str, Any]:
        """Latest scan statistics, or zeroed stats if none were written."""
        try:
            return json.loads(self.stats_path.read_text(encoding='utf-8'))
        except FileNotFoundError:
            pass
        except (OSError, ValueError) as e:
            logging.warning(f"Unreadable stats file {self.stats_path}: {e}")
        return {"timestamp": 0, "total_files": 0, "total_size": 0, "file_types": {}}

    def save_records(self, records: Iterable[FileMetadata]) -> int:
        """
        Upserts records by path. Each touched chunk is read and rewritten once.
        Returns the number of records written.
        """
        records = list(records)
        if not records:
            return 0

        with self._lock:
            self._ensure_data_dir()
            placement, fill, unusable = self._build_index()

            updates: Dict[int, Dict[str, Dict[str, Any]]] = {}
            last = max(fill, default=0)
            for rec in records:
                key = str(rec.path)
                idx = placement.get(key)
                if idx is None:
                    if last == 0 or last in unusable or fill.get(last, 0) >= self.chunk_capacity:
                        last += 1
                    idx = last
                    placement[key] = idx
                    fill[idx] = fill.get(idx, 0) + 1
                updates.setdefault(idx, {})[key] = rec.to_dict()

            for idx in sorted(updates):
                path = self.chunk_path(idx)
                chunk = self._read_chunk(path) if path.exists() else {}
                chunk.update(updates[idx])
                self._write_json_atomic(path, chunk)
                logging.debug(f"Wrote {len(updates[idx])} records to {path.name} ({len(chunk)} total)")

        return len(records)

    def apply_duplicate_flags(self, records: Iterable[FileMetadata]) -> int:
        """
        Patches is_duplicate/duplicate_of onto the stored entries of `records`.

        Only the two flag fields are written. An entry whose size or
        modification time no longer matches the given record was rescanned
        since the catalog was loaded and is left alone, as is a path that is
        gone or sits in an unreadable chunk. Returns the number of entries
        patched.
        """
        by_chunk: Dict[int, List[FileMetadata]] = {}
        with self._lock:
            placement, _, unusable = self._build_index()
            for rec in records:
                idx = placement.get(str(rec.path))
                if idx is None or idx in unusable:
                    logging.debug(f"Not flagging {rec.path}: no longer in a readable chunk")
                    continue
                by_chunk.setdefault(idx, []).append(rec)

            patched = 0
            for idx in sorted(by_chunk):
                path = self.chunk_path(idx)
                chunk = self._read_chunk(path)
                touched = 0
                for rec in by_chunk[idx]:
                    key = str(rec.path)
                    stored = chunk.get(key)
                    fresh = rec.to_dict()
                    if not isinstance(stored, dict) or any(stored.get(k) != fresh[k] for k in ('size', 'modified')):
                        logging.debug(f"Not flagging {rec.path}: catalog entry changed since it was loaded")
                        continue
                    stored['is_duplicate'] = fresh['is_duplicate']
                    stored['duplicate_of'] = fresh['duplicate_of']
                    touched += 1
                if touched:
                    self._write_json_atomic(path, chunk)
                    patched += touched

        logging.debug(f"Patched duplicate flags on {patched} catalog entries")
        return patched

    def _build_index(self) -> Tuple[Dict[str, int], Dict[int, int], Set[int]]:
        """
        Returns (path -> chunk index, chunk index -> record count, unreadable chunk indices).
        Unreadable chunks count as full and are never rewritten.
        """
        placement: Dict[str, int] = {}
        fill: Dict[int, int] = {}
        unusable: Set[int] = set()
        for idx, path in self.chunk_files():
            try:
                chunk = self._read_chunk(path)
            except CatalogLoadError as e:
                logging.warning(f"{e}; leaving it untouched")
                unusable.add(idx)
                fill[idx] = self.chunk_capacity
                continue
            fill[idx] = len(chunk)
            for key in chunk:
                # Later chunks win, same as on load
                placement[key] = idx
        return placement, fill, unusable

    def _ensure_data_dir(self):
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CatalogWriteError(f"Cannot create data directory {self.data_dir}: {e}") from e

    def _write_json_atomic(self, path: Path, payload: Any):
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                'w', encoding='utf-8', dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
            ) as tmp:
                tmp_name = tmp.name
                json.dump(payload, tmp, indent=2)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise CatalogWriteError(f"Failed to write {path}: {e}") from e

    # --- Reading ---

    def _read_chunk(self, path: Path) -> Dict[str, Dict[str, Any]]:
        try:
            data = json.loads(path.read_text(encoding='utf-8'))
        except (OSError, ValueError) as e:
            raise CatalogLoadError(path, e) from e
        if not isinstance(data, dict):
            raise CatalogLoadError(path, "chunk is not a JSON object")
        return data

    def load(self, strict: bool = True) -> LoadResult:
        """
        Merges every chunk into one catalog keyed by path, in chunk index order.

        strict=True raises CatalogLoadError on the first malformed chunk.
        strict=False skips it and reports it in LoadResult.failed_chunks.
        """
        result = LoadResult()
        for _, path in self.chunk_files():
            try:
                records = self._parse_chunk(path)
            except CatalogLoadError:
                if strict:
                    raise
                result.failed_chunks.append(path)
                continue
            for rec in records:
                result.catalog[rec.path] = rec

        if result.failed_chunks:
            logging.warning(
                f"Skipped {len(result.failed_chunks)} unreadable chunk(s): "
                + ", ".join(p.name for p in result.failed_chunks)
            )
        logging.debug(f"Loaded {len(result.catalog)} records from {self.data_dir}")
        return result

    def _parse_chunk(self, path: Path) -> List[FileMetadata]:
        chunk = self._read_chunk(path)
        try:
            return [FileMetadata.from_dict(raw) for raw in chunk.values()]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise CatalogLoadError(path, f"bad record: {e!r}") from e


def load_file_metadata(config_dir: Path, strict: bool = True) -> Dict[Path, FileMetadata]:
    return CatalogStore(config_dir).load(strict=strict).catalog
