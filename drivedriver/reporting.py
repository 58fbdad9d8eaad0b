import csv
import logging
from pathlib import Path
from typing import Dict, Iterable, Tuple

from .models import FileMetadata
from .scanning.duplicates import DuplicatePair, group_pairs


class ReportGenerator:
    def __init__(self, catalog: Dict[Path, FileMetadata]):
        self.catalog = catalog

    def write_duplicate_report(self, pairs: Iterable[DuplicatePair], output_csv: Path) -> int:
        """
        One row per redundant copy, pointing at the copy that would be kept
        (the smallest path of its group). Returns the number of rows.
        """
        headers = ["Original", "Duplicate", "Size", "Category"]
        rows = 0

        with open(output_csv, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(headers)

            for group in group_pairs(pairs):
                original = group[0]
                for dup in group[1:]:
                    meta = self.catalog.get(dup)
                    size = meta.size if meta else ""
                    category = meta.category if meta else ""
                    writer.writerow([str(original), str(dup), size, category])
                    rows += 1

        logging.info(f"Duplicate report complete: {rows} rows -> {output_csv}")
        return rows

    def category_summary(self) -> Dict[str, Tuple[int, int]]:
        """Returns {category: (file count, total bytes)}."""
        summary: Dict[str, Tuple[int, int]] = {}
        for meta in self.catalog.values():
            count, size = summary.get(meta.category, (0, 0))
            summary[meta.category] = (count + 1, size + meta.size)
        return summary

    def reclaimable_bytes(self, pairs: Iterable[DuplicatePair]) -> int:
        """Bytes freed if every copy but the original of each group were removed."""
        total = 0
        for group in group_pairs(pairs):
            for dup in group[1:]:
                meta = self.catalog.get(dup)
                if meta:
                    total += meta.size
        return total
