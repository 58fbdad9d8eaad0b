import logging
import os
import stat
from datetime import datetime, UTC
from pathlib import Path
from typing import Callable, Optional

from .. import config
from ..models import AIAnalysisResult, FileMetadata
from .ai import analyze_file_with_ai

AIClient = Callable[[Path, config.Config], Optional[AIAnalysisResult]]


class FileAnalyzer:
    """
    Derives a FileMetadata record from a path and its stat result.

    Classification and scoring only look at the extension, the stat result
    and the clock, so the same inputs always produce the same record. The
    only reads are a content sniff for extension-less files on Windows and
    the optional AI enrichment.

    `created` is the birth time where the platform reports one (macOS,
    BSD, Windows). Linux stat has none, so there it is st_ctime, the
    inode change time.
    """

    def __init__(self,
                 settings: Optional[config.Config] = None,
                 ai_client: Optional[AIClient] = None,
                 system: Optional[str] = None):
        self.settings = settings or config.Config()
        self.ai_client = ai_client or analyze_file_with_ai
        self.is_windows = (system or os.name).lower() in ('nt', 'windows')

    def analyze(self, path: Path, st: os.stat_result, now: Optional[datetime] = None) -> FileMetadata:
        now = now or datetime.now(UTC)
        ext = get_extension(path)

        modified = _to_datetime(st.st_mtime)
        birth = getattr(st, 'st_birthtime', None)
        created = _to_datetime(birth if birth is not None else st.st_ctime)

        category = self.determine_category(path, ext, st)

        record = FileMetadata(
            path=path,
            file_name=path.name,
            extension=ext,
            size=st.st_size,
            created=created,
            modified=modified,
            category=category,
            mime_type=get_mime_type(ext),
            importance_score=calculate_importance_score(category, modified, now),
            last_accessed=modified,
        )

        if self.settings.use_ai_analysis:
            record.ai_analysis = self._enrich(path)

        return record

    def determine_category(self, path: Path, ext: str, st: os.stat_result) -> str:
        if ext:
            return config.EXT_TO_CATEGORY.get(ext, 'other')
        return 'application' if self.is_executable(path, ext, st) else 'other'

    def is_executable(self, path: Path, ext: str, st: os.stat_result) -> bool:
        if not self.is_windows:
            return bool(st.st_mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))

        if ext:
            return ext in config.WINDOWS_EXECUTABLE_EXTS
        return _sniff_executable(path)

    def _enrich(self, path: Path) -> Optional[AIAnalysisResult]:
        try:
            return self.ai_client(path, self.settings)
        except Exception as e:
            # Enrichment must never cost us the record
            logging.warning(f"AI analysis failed for {path}: {e}")
            return None


def get_extension(path: Path) -> str:
    return path.suffix[1:].lower()


def get_mime_type(ext: str) -> str:
    return config.EXT_TO_MIME.get(ext, config.DEFAULT_MIME_TYPE)


def recency_bonus(days_since_modification: int) -> int:
    for max_days, bonus in config.RECENCY_BONUSES:
        if days_since_modification < max_days:
            return bonus
    return 0


def calculate_importance_score(category: str, modified: datetime, now: datetime) -> int:
    """Recency bonus plus category bonus, clamped to 0-100."""
    days = (now - modified).days
    score = recency_bonus(days) + config.CATEGORY_BONUSES.get(category, 0)
    return max(0, min(score, config.MAX_IMPORTANCE_SCORE))


def _to_datetime(ts: float) -> datetime:
    # Second resolution; pre-epoch times collapse to the epoch
    return datetime.fromtimestamp(max(0, int(ts)), UTC)


def _sniff_executable(path: Path) -> bool:
    try:
        with path.open('rb') as f:
            head = f.read(4)
    except OSError:
        return False
    return head.startswith(config.EXECUTABLE_MAGIC)
