import pytest
from datetime import datetime, UTC
from pathlib import Path
from drivedriver.models import FileMetadata
from drivedriver.storage.chunks import CatalogStore

@pytest.fixture
def store(tmp_path):
    """Returns a CatalogStore rooted in a fresh temp config dir."""
    return CatalogStore(tmp_path / "cfg")

@pytest.fixture
def make_record():
    """Factory for FileMetadata records with sensible defaults."""
    def _make(path, size=10, category="other", **kwargs):
        path = Path(path)
        ts = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)
        fields = dict(
            path=path,
            file_name=path.name,
            extension=path.suffix[1:].lower(),
            size=size,
            created=ts,
            modified=ts,
            category=category,
            mime_type="application/octet-stream",
            importance_score=0,
            last_accessed=ts,
        )
        fields.update(kwargs)
        return FileMetadata(**fields)
    return _make
