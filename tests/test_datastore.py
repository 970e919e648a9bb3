import json

import pytest

from yumiba import datastore as ds


def test_save_writes_record_and_index(data_root, make_entry):
    record = ds.save_period(data_root, 2025, 4, [make_entry(1, "山田", "person_001")])

    on_disk = json.loads((data_root / "seiseki" / "2025" / "04.json").read_text(encoding="utf-8"))
    assert on_disk == record
    assert on_disk["publishedAt"] == on_disk["updatedAt"]
    assert "山田" in (data_root / "seiseki" / "2025" / "04.json").read_text(encoding="utf-8")

    index = ds.load_index(data_root)
    assert index["archives"] == [
        {"year": 2025, "month": 4, "entryCount": 1, "publishedAt": record["publishedAt"]}
    ]
    assert index["lastUpdated"]


def test_resave_keeps_published_at_and_refreshes_updated_at(monkeypatch, data_root, make_entry):
    stamps = iter(["2025-01-01T00:00:00.000Z", "2025-02-01T00:00:00.000Z", "2025-02-01T00:00:00.000Z"])
    monkeypatch.setattr(ds, "now_iso", lambda: next(stamps, "2025-03-01T00:00:00.000Z"))

    ds.save_period(data_root, 2025, 1, [make_entry(1, "山田")])
    second = ds.save_period(data_root, 2025, 1, [make_entry(1, "山田"), make_entry(2, "佐藤")])

    assert second["publishedAt"] == "2025-01-01T00:00:00.000Z"
    assert second["updatedAt"] != second["publishedAt"]
    archives = ds.load_index(data_root)["archives"]
    assert len(archives) == 1
    assert archives[0]["entryCount"] == 2
    assert archives[0]["publishedAt"] == "2025-01-01T00:00:00.000Z"


def test_index_sorted_newest_first(data_root, make_entry):
    for year, month in [(2024, 11), (2025, 2), (2024, 3), (2025, 1)]:
        ds.save_period(data_root, year, month, [make_entry(1, "山田")])

    keys = [(a["year"], a["month"]) for a in ds.load_index(data_root)["archives"]]
    assert keys == [(2025, 2), (2025, 1), (2024, 11), (2024, 3)]
    assert ds.available_years(data_root) == [2025, 2024]


def test_delete_removes_file_and_index_entry(data_root, make_entry):
    ds.save_period(data_root, 2025, 1, [make_entry(1, "山田")])
    ds.save_period(data_root, 2025, 2, [make_entry(1, "山田")])

    assert ds.delete_period(data_root, 2025, 1) is True

    assert ds.load_period(data_root, 2025, 1) is None
    assert [(a["year"], a["month"]) for a in ds.load_index(data_root)["archives"]] == [(2025, 2)]


def test_delete_of_missing_file_still_cleans_index(data_root, make_entry):
    ds.save_period(data_root, 2025, 1, [make_entry(1, "山田")])
    ds.period_path(data_root, 2025, 1).unlink()

    assert ds.delete_period(data_root, 2025, 1) is False
    assert ds.load_index(data_root)["archives"] == []


@pytest.mark.parametrize("year, month", [(1999, 1), (2101, 1), (2025, 0), (2025, 13), ("2025", 1), (True, 1)])
def test_path_guard(data_root, year, month):
    with pytest.raises(ValueError):
        ds.period_path(data_root, year, month)
    assert ds.load_period(data_root, year, month) is None


def test_save_rejects_non_list_entries(data_root):
    with pytest.raises(ValueError):
        ds.save_period(data_root, 2025, 1, {"not": "a list"})


def test_missing_or_corrupt_index_reads_as_empty(data_root, write_raw):
    assert ds.load_index(data_root)["archives"] == []
    write_raw(data_root, "seiseki/index.json", "][")
    assert ds.load_index(data_root)["archives"] == []
    write_raw(data_root, "seiseki/index.json", {"archives": "nope"})
    assert ds.load_index(data_root)["archives"] == []


def test_latest_and_year_periods(data_root, make_entry):
    assert ds.latest_period(data_root) is None
    ds.save_period(data_root, 2024, 12, [make_entry(1, "山田")])
    ds.save_period(data_root, 2025, 1, [make_entry(1, "佐藤")])
    ds.save_period(data_root, 2025, 3, [make_entry(1, "鈴木")])

    assert ds.latest_period(data_root)["month"] == 3
    assert [r["month"] for r in ds.year_periods(data_root, 2025)] == [3, 1]


def test_year_periods_skips_empty_months(data_root):
    ds.save_period(data_root, 2025, 5, [])
    assert ds.year_periods(data_root, 2025) == []


def test_iter_period_files_walks_disk_oldest_first(data_root, make_entry, write_raw):
    ds.save_period(data_root, 2025, 2, [make_entry(1, "山田")])
    ds.save_period(data_root, 2024, 10, [make_entry(1, "山田")])
    write_raw(data_root, "seiseki/2024/notes.json", {})

    found = [(y, m) for y, m, _path in ds.iter_period_files(data_root)]
    assert found == [(2024, 10), (2025, 2)]


def test_save_tolerates_null_rows_in_index(data_root, make_entry, write_raw):
    write_raw(data_root, "seiseki/index.json", {
        "archives": [{"year": None, "month": None, "entryCount": 0}, {"year": 2024, "month": 12, "entryCount": 1}],
        "lastUpdated": "2025-01-01T00:00:00.000Z",
    })

    ds.save_period(data_root, 2025, 1, [make_entry(1, "山田")])

    archives = ds.load_index(data_root)["archives"]
    assert [(a["year"], a["month"]) for a in archives] == [(2025, 1), (2024, 12), (None, None)]
    assert ds.available_years(data_root) == [2025, 2024]
