import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from tqdm import tqdm

from .. import config
from ..models import FileMetadata

DuplicatePair = Tuple[Path, Path]


class DuplicateDetector:
    """
    Finds byte-identical files in a catalog.

    Strategy:
    1. Bucket by exact size. A size nobody else has can't be a duplicate.
    2. Inside a bucket, compare contents block by block. Equality is
       transitive, so each file is checked against one member of every
       group found so far instead of against every other file.
    3. A file we can't read matches nothing.
    """

    def __init__(self, block_size: int = config.COMPARE_BLOCK_SIZE, show_progress: bool = False):
        self.block_size = block_size
        self.show_progress = show_progress

    def find_groups(self, catalog: Dict[Path, FileMetadata]) -> List[List[Path]]:
        """Groups of two or more identical files, each sorted by path."""
        buckets: Dict[int, List[Path]] = defaultdict(list)
        for path, meta in catalog.items():
            buckets[meta.size].append(path)

        candidates = [sorted(paths) for paths in buckets.values() if len(paths) > 1]
        logging.info(f"Comparing {sum(len(c) for c in candidates)} files in {len(candidates)} size buckets...")

        groups: List[List[Path]] = []
        for bucket in tqdm(candidates, desc="Comparing", unit="bucket", disable=not self.show_progress):
            groups.extend(g for g in self._split_identical(bucket) if len(g) > 1)

        groups.sort()
        return groups

    def find_pairs(self, catalog: Dict[Path, FileMetadata]) -> List[DuplicatePair]:
        pairs = []
        for group in self.find_groups(catalog):
            for i in range(len(group)):
                for j in range(i + 1, len(group)):
                    pairs.append((group[i], group[j]))
        return sorted(pairs)

    def _split_identical(self, bucket: List[Path]) -> List[List[Path]]:
        groups: List[List[Path]] = []
        for path in bucket:
            for group in groups:
                match = self.files_identical(group[0], path)
                if match is None:
                    # The new file itself is unreadable; it can't join anything
                    break
                if match:
                    group.append(path)
                    break
            else:
                if self._readable(path):
                    groups.append([path])
        return groups

    def files_identical(self, a: Path, b: Path) -> Optional[bool]:
        """
        True/False for a content comparison, None if b can't be read.
        An unreadable a counts as a mismatch.
        """
        try:
            fb = open(b, 'rb')
        except OSError as e:
            logging.debug(f"Cannot open {b} for comparison: {e}")
            return None
        try:
            with fb, open(a, 'rb') as fa:
                while True:
                    block_a = fa.read(self.block_size)
                    block_b = fb.read(self.block_size)
                    if block_a != block_b:
                        return False
                    if not block_a:
                        return True
        except OSError as e:
            logging.debug(f"Comparison of {a} and {b} failed: {e}")
            return False

    def _readable(self, path: Path) -> bool:
        try:
            with open(path, 'rb') as f:
                f.read(1)
            return True
        except OSError as e:
            logging.debug(f"Cannot read {path}: {e}")
            return False


def find_duplicate_files(catalog: Dict[Path, FileMetadata]) -> List[DuplicatePair]:
    return DuplicateDetector().find_pairs(catalog)


def group_pairs(pairs: Iterable[DuplicatePair]) -> List[List[Path]]:
    """Merges pairs into connected groups (union-find), each sorted."""
    parent: Dict[Path, Path] = {}

    def find(p: Path) -> Path:
        parent.setdefault(p, p)
        while parent[p] != p:
            parent[p] = parent[parent[p]]
            p = parent[p]
        return p

    for a, b in pairs:
        ra, rb = find(a), find(b)
        if ra != rb:
            parent[max(ra, rb)] = min(ra, rb)

    groups: Dict[Path, List[Path]] = defaultdict(list)
    for p in list(parent):
        groups[find(p)].append(p)
    return sorted(sorted(g) for g in groups.values())


def apply_duplicates(catalog: Dict[Path, FileMetadata], pairs: Iterable[DuplicatePair]) -> List[FileMetadata]:
    """
    Writes detection results into the records' duplicate fields.

    In each group of identical files the lexicographically smallest path is
    the original; the rest point at it. Records flagged by an earlier run
    that are no longer duplicates are cleared. Returns the records that
    changed so the caller can persist them.
    """
    wanted: Dict[Path, Path] = {}
    for group in group_pairs(pairs):
        original = group[0]
        for p in group[1:]:
            wanted[p] = original

    changed = []
    for path, meta in catalog.items():
        target = wanted.get(path)
        if meta.duplicate_of != target or meta.is_duplicate != (target is not None):
            meta.mark_duplicate(target)
            changed.append(meta)

    logging.info(f"{len(wanted)} duplicate(s) flagged, {len(changed)} record(s) changed.")
    return changed
