"""
Test CSV loading and header mapping.

Run with: pytest driver_reports/services/test_data_loader.py -v
"""
import json

import pytest

from driver_reports.core.exceptions import DataLoadError
from driver_reports.services.data_loader import DataLoaderService

DANISH_EXPORT = (
    "Chauffør;Køretøjer;Kørestrækning [km];Forbrug [l];Ø totalvægt [t];"
    "Motordriftstid [hh:mm:ss];Tomgang / stilstandstid [hh:mm:ss]\n"
    "Hans Ole Müller;AB12345;1234,5;400,0;38,5;10:00:00;00:30:00\n"
    ";;;;;;\n"
    "Anna Jensen;CD67890;800;250;40;08:00:00;00:20:00\n"
)

DB_EXPORT = (
    "driver_name,month,year,driving_distance,total_consumption,group\n"
    "Anna Jensen,5,2025,900,280,Nord\n"
    "Bo Nielsen,6,2025,,300,Syd\n"
)


@pytest.fixture
def loader(settings):
    return DataLoaderService(settings)


def test_danish_headers_latin1(loader, tmp_path):
    """Test Danish portal headers, semicolons, decimal commas and Latin-1."""
    path = tmp_path / "juni.csv"
    path.write_bytes(DANISH_EXPORT.encode("latin1"))

    records = loader.load_records(path, month=6, year=2025)

    assert [record.driver_name for record in records] == ["Hans Ole Müller", "Anna Jensen"]
    hans = records[0]
    assert hans.driving_distance == 1234.5
    assert hans.avg_total_weight == 38.5
    assert hans.engine_runtime == "10:00:00"
    assert hans.vehicles == "AB12345"
    assert (hans.month, hans.year) == (6, 2025)


def test_db_headers_utf8(loader, tmp_path):
    path = tmp_path / "db.csv"
    path.write_text(DB_EXPORT, encoding="utf-8")

    records = loader.load_records(path)

    assert [(r.driver_name, r.month, r.group) for r in records] == [
        ("Anna Jensen", 5, "Nord"),
        ("Bo Nielsen", 6, "Syd"),
    ]
    assert records[1].driving_distance is None


def test_utf16_export(loader, tmp_path):
    path = tmp_path / "utf16.csv"
    path.write_text(DANISH_EXPORT, encoding="utf-16")
    records = loader.load_records(path, month=6, year=2025)
    assert records[0].driver_name == "Hans Ole Müller"


def test_missing_period_columns(loader, tmp_path):
    path = tmp_path / "juni.csv"
    path.write_bytes(DANISH_EXPORT.encode("latin1"))
    with pytest.raises(DataLoadError):
        loader.load_records(path)


def test_missing_file(loader, tmp_path):
    with pytest.raises(FileNotFoundError):
        loader.load(tmp_path / "missing.csv")


def test_load_groups(loader, tmp_path):
    path = tmp_path / "groups.json"
    path.write_text(json.dumps({"Nord": ["Anna Jensen"], "Syd": []}), encoding="utf-8")
    assert loader.load_groups(path) == {"Nord": ["Anna Jensen"], "Syd": []}
    assert loader.load_groups(tmp_path / "none.json") == {}


def test_invalid_groups_file(loader, tmp_path):
    path = tmp_path / "groups.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(DataLoadError):
        loader.load_groups(path)


def test_rows_with_unreadable_period_are_skipped(loader, tmp_path):
    path = tmp_path / "db.csv"
    path.write_text(
        "driver_name,month,year,driving_distance\n"
        "Anna Jensen,inf,2025,900\n"
        "Bo Nielsen,6,ukendt,800\n"
        "Hans Ole Müller,6,2025,1000\n",
        encoding="utf-8",
    )

    records = loader.load_records(path)

    assert [record.driver_name for record in records] == ["Hans Ole Müller"]
