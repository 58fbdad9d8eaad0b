import csv
import pytest
from drivedriver.main import parse_args, run
from drivedriver.storage.chunks import load_file_metadata


@pytest.fixture
def drive(tmp_path):
    root = tmp_path / "drive"
    root.mkdir()
    (root / "one.txt").write_bytes(b"same content")
    (root / "two.txt").write_bytes(b"same content")
    (root / "three.bin").write_bytes(b"unique")
    return root


def cli(*argv):
    return run(parse_args(list(argv)))


def test_scan_saves_catalog(tmp_path, drive, capsys):
    cfg = tmp_path / "cfg"
    assert cli("--config-dir", str(cfg), "scan", str(drive)) == 0

    out = capsys.readouterr().out
    assert "3 files, 30 bytes [saved]" in out
    assert len(load_file_metadata(cfg)) == 3


def test_scan_exits_nonzero_when_catalog_cannot_be_written(tmp_path, drive, capsys):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")

    assert cli("--config-dir", str(blocker), "scan", str(drive)) == 1
    assert "NOT SAVED" in capsys.readouterr().out


def test_stats_prints_latest_scan_and_categories(tmp_path, drive, capsys):
    cfg = str(tmp_path / "cfg")
    cli("--config-dir", cfg, "scan", str(drive))
    capsys.readouterr()

    assert cli("--config-dir", cfg, "stats") == 0
    out = capsys.readouterr().out
    assert '"total_files": 3' in out
    assert "document\t2 files\t24 bytes" in out
    assert "other\t1 files\t6 bytes" in out


def test_duplicates_prints_pairs_and_writes_csv(tmp_path, drive, capsys):
    cfg = tmp_path / "cfg"
    cli("--config-dir", str(cfg), "scan", str(drive))
    capsys.readouterr()
    report = tmp_path / "dups.csv"

    assert cli("--config-dir", str(cfg), "duplicates", "--apply", "--csv", str(report)) == 0

    lines = capsys.readouterr().out.splitlines()
    assert f"{drive / 'one.txt'}\t{drive / 'two.txt'}" in lines
    assert "Reclaimable: 12 bytes" in lines

    with open(report, "r", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert rows == [{
        "Original": str(drive / "one.txt"),
        "Duplicate": str(drive / "two.txt"),
        "Size": "12",
        "Category": "document",
    }]
    assert load_file_metadata(cfg)[drive / "two.txt"].is_duplicate is True


def test_duplicates_without_apply_leaves_catalog(tmp_path, drive, capsys):
    cfg = tmp_path / "cfg"
    cli("--config-dir", str(cfg), "scan", str(drive))

    assert cli("--config-dir", str(cfg), "duplicates") == 0
    assert not any(r.is_duplicate for r in load_file_metadata(cfg).values())
