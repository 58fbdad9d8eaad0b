import pytest
from pathlib import Path
from drivedriver import config
from drivedriver.core import DriveCatalogApp, scan_drive, start_initial_scan
from drivedriver.scanning.drives import DriveEnumerator
from drivedriver.storage.chunks import CatalogStore, load_file_metadata


class FakeEnumerator(DriveEnumerator):
    def __init__(self, drives):
        self.drives = drives

    def enumerate(self):
        return list(self.drives)


@pytest.fixture
def drive(tmp_path):
    root = tmp_path / "drive"
    root.mkdir()
    (root / "one.txt").write_bytes(b"same content")
    (root / "two.txt").write_bytes(b"same content")
    (root / "three.bin").write_bytes(b"unique")
    return root


def test_scan_drive_persists_and_returns(tmp_path, drive):
    store = CatalogStore(tmp_path / "cfg")
    result = scan_drive(drive, config.Config(), store)

    assert result.persisted is True
    assert result.persist_error is None
    assert result.total_files == 3
    assert store.read_stats()["total_files"] == 3
    assert load_file_metadata(tmp_path / "cfg") == result.metadata


def test_scan_drive_reports_write_failure(tmp_path, drive):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    store = CatalogStore(blocker)

    result = scan_drive(drive, config.Config(), store)

    assert result.persisted is False
    assert result.persist_error
    # The scan itself is still complete
    assert result.total_files == 3


def test_scan_drive_takes_config_snapshot(tmp_path, drive):
    handle = config.ConfigHandle(config.Config().with_exclusions(drive / "three.bin"))
    result = scan_drive(drive, handle, CatalogStore(tmp_path / "cfg"))
    assert drive / "three.bin" not in result.metadata


def test_initial_scan_covers_all_drives(tmp_path, drive):
    other = tmp_path / "other"
    other.mkdir()
    (other / "x.pdf").write_bytes(b"pdf")
    store = CatalogStore(tmp_path / "cfg", chunk_capacity=2)

    results = start_initial_scan(config.Config(), store, FakeEnumerator([drive, other]), max_workers=2)

    assert set(results) == {drive, other}
    assert results[drive].total_files == 3
    assert results[other].total_files == 1
    assert len(store.load().catalog) == 4


def test_initial_scan_with_no_drives(tmp_path):
    results = start_initial_scan(config.Config(), CatalogStore(tmp_path / "cfg"), FakeEnumerator([]))
    assert results == {}


def test_app_reads_config_file(tmp_path, drive):
    cfg_dir = tmp_path / "cfg"
    cfg_dir.mkdir()
    (cfg_dir / "config.toml").write_text(f'excluded_paths = ["{(drive / "one.txt").as_posix()}"]\n')

    app = DriveCatalogApp(cfg_dir)
    results = app.scan([drive])

    assert set(results[drive].metadata) == {drive / "two.txt", drive / "three.bin"}


def test_app_finds_and_applies_duplicates(tmp_path, drive):
    app = DriveCatalogApp(tmp_path / "cfg", settings=config.Config())
    app.scan([drive])

    pairs = app.find_duplicates(apply=False)
    assert pairs == [(drive / "one.txt", drive / "two.txt")]
    assert not any(r.is_duplicate for r in app.store.load().catalog.values())

    app.find_duplicates(apply=True)
    catalog = app.store.load().catalog
    assert catalog[drive / "two.txt"].is_duplicate is True
    assert catalog[drive / "two.txt"].duplicate_of == drive / "one.txt"
    assert catalog[drive / "one.txt"].is_duplicate is False


def test_rescan_keeps_duplicate_fields_fresh(tmp_path, drive):
    app = DriveCatalogApp(tmp_path / "cfg", settings=config.Config())
    app.scan([drive])
    app.find_duplicates(apply=True)

    (drive / "two.txt").write_bytes(b"now differs")
    app.scan([drive])
    app.find_duplicates(apply=True)

    catalog = app.store.load().catalog
    assert not any(r.is_duplicate for r in catalog.values())
    assert len(catalog) == 3


def test_applying_duplicates_keeps_concurrent_rescan(tmp_path, drive, monkeypatch):
    from drivedriver.scanning.duplicates import DuplicateDetector

    app = DriveCatalogApp(tmp_path / "cfg", settings=config.Config())
    app.scan([drive])
    original_find_pairs = DuplicateDetector.find_pairs

    def find_pairs_then_rescan(self, catalog):
        pairs = original_find_pairs(self, catalog)
        (drive / "two.txt").write_bytes(b"grew to twenty-one b.")
        app.scan([drive])
        return pairs

    monkeypatch.setattr(DuplicateDetector, "find_pairs", find_pairs_then_rescan)
    pairs = app.find_duplicates(apply=True)

    assert pairs == [(drive / "one.txt", drive / "two.txt")]
    record = app.store.load().catalog[drive / "two.txt"]
    assert record.size == 21
    assert record.is_duplicate is False
    assert record.duplicate_of is None
