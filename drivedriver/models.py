from dataclasses import dataclass, field
from datetime import datetime, UTC
from pathlib import Path
from typing import Optional, Dict, Any


def to_timestamp(dt: datetime) -> int:
    return int(dt.timestamp())


def from_timestamp(ts) -> datetime:
    return datetime.fromtimestamp(int(ts), UTC)


@dataclass
class AIAnalysisResult:
    """
    Enrichment returned by the local inference endpoint. Opaque to the catalog.
    """
    file_purpose: str
    importance_level: str   # low/medium/high
    potential_category: str
    deletion_recommendation: bool
    confidence_score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'file_purpose': self.file_purpose,
            'importance_level': self.importance_level,
            'potential_category': self.potential_category,
            'deletion_recommendation': self.deletion_recommendation,
            'confidence_score': self.confidence_score,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AIAnalysisResult':
        if not isinstance(data['deletion_recommendation'], bool):
            raise TypeError("deletion_recommendation must be a boolean")
        return cls(
            file_purpose=str(data['file_purpose']),
            importance_level=str(data['importance_level']),
            potential_category=str(data['potential_category']),
            deletion_recommendation=data['deletion_recommendation'],
            confidence_score=float(data['confidence_score']),
        )


@dataclass
class FileMetadata:
    """
    One catalogued file. The path is the record's identity.
    """
    path: Path
    file_name: str
    extension: str          # lowercase, no dot; '' when absent
    size: int
    created: datetime
    modified: datetime
    category: str           # image/video/audio/document/spreadsheet/presentation/application/archive/other
    mime_type: str
    importance_score: int   # 0-100
    last_accessed: datetime

    # Set only by duplicate detection, never at scan time
    is_duplicate: bool = False
    duplicate_of: Optional[Path] = None

    ai_analysis: Optional[AIAnalysisResult] = None

    def mark_duplicate(self, original: Optional[Path]):
        self.duplicate_of = original
        self.is_duplicate = original is not None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready form; timestamps as integer Unix seconds."""
        return {
            'path': str(self.path),
            'file_name': self.file_name,
            'extension': self.extension,
            'size': self.size,
            'created': to_timestamp(self.created),
            'modified': to_timestamp(self.modified),
            'category': self.category,
            'mime_type': self.mime_type,
            'importance_score': self.importance_score,
            'last_accessed': to_timestamp(self.last_accessed),
            'is_duplicate': self.is_duplicate,
            'duplicate_of': str(self.duplicate_of) if self.duplicate_of is not None else None,
            'ai_analysis': self.ai_analysis.to_dict() if self.ai_analysis else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FileMetadata':
        """Raises KeyError/TypeError/ValueError on malformed input."""
        duplicate_of = data.get('duplicate_of')
        ai = data.get('ai_analysis')
        return cls(
            path=Path(data['path']),
            file_name=data['file_name'],
            extension=data['extension'],
            size=int(data['size']),
            created=from_timestamp(data['created']),
            modified=from_timestamp(data['modified']),
            category=data['category'],
            mime_type=data['mime_type'],
            importance_score=int(data['importance_score']),
            last_accessed=from_timestamp(data['last_accessed']),
            is_duplicate=bool(data.get('is_duplicate', False)),
            duplicate_of=Path(duplicate_of) if duplicate_of is not None else None,
            ai_analysis=AIAnalysisResult.from_dict(ai) if ai is not None else None,
        )


@dataclass
class ScanResult:
    """
    Outcome of walking one drive. Totals cover this walk only.
    """
    root: Optional[Path] = None
    total_files: int = 0
    total_size: int = 0
    file_types: Dict[str, int] = field(default_factory=dict)
    metadata: Dict[Path, FileMetadata] = field(default_factory=dict)

    # Filled in after the catalog write; a failed write keeps the result usable
    persisted: bool = False
    persist_error: Optional[str] = None

    def add(self, record: FileMetadata):
        self.total_files += 1
        self.total_size += record.size
        if record.extension:
            self.file_types[record.extension] = self.file_types.get(record.extension, 0) + 1
        self.metadata[record.path] = record
