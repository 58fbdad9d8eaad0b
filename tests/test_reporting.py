import csv
from pathlib import Path
from drivedriver.reporting import ReportGenerator


def test_duplicate_report_rows(tmp_path, make_record):
    a, b, c = Path("/v/a.jpg"), Path("/v/b.jpg"), Path("/v/c.jpg")
    catalog = {p: make_record(p, size=300, category="image") for p in (a, b, c)}
    pairs = [(a, b), (a, c), (b, c)]

    output_csv = tmp_path / "dups.csv"
    rows = ReportGenerator(catalog).write_duplicate_report(pairs, output_csv)

    with open(output_csv, "r", encoding="utf-8") as f:
        reader = list(csv.DictReader(f))

    assert rows == 2
    assert [(r["Original"], r["Duplicate"]) for r in reader] == [(str(a), str(b)), (str(a), str(c))]
    assert all(r["Size"] == "300" and r["Category"] == "image" for r in reader)


def test_empty_duplicate_report_has_header(tmp_path):
    output_csv = tmp_path / "dups.csv"
    assert ReportGenerator({}).write_duplicate_report([], output_csv) == 0
    assert output_csv.read_text(encoding="utf-8").strip() == "Original,Duplicate,Size,Category"


def test_category_summary(make_record):
    catalog = {
        Path("/a.pdf"): make_record("/a.pdf", size=10, category="document"),
        Path("/b.txt"): make_record("/b.txt", size=5, category="document"),
        Path("/c.mp3"): make_record("/c.mp3", size=7, category="audio"),
    }
    assert ReportGenerator(catalog).category_summary() == {"document": (2, 15), "audio": (1, 7)}


def test_reclaimable_bytes(make_record):
    a, b, c = Path("/x/a"), Path("/x/b"), Path("/x/c")
    catalog = {p: make_record(p, size=50) for p in (a, b, c)}
    assert ReportGenerator(catalog).reclaimable_bytes([(a, b), (b, c)]) == 100
