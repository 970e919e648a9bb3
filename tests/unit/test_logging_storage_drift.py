import pathlib
import sys

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from yumiba.datastore import period_path, save_period  # noqa: E402
from yumiba.history import get_person_history  # noqa: E402


def test_stale_index_entry_is_logged_and_skipped(caplog, data_root, make_entry):
    save_period(data_root, 2025, 1, [make_entry(1, "佐藤", "person_002")])
    save_period(data_root, 2025, 2, [make_entry(1, "山田", "person_001")])
    period_path(data_root, 2025, 1).unlink()

    caplog.set_level("DEBUG")
    result = get_person_history(data_root, "person_001")

    assert [h["month"] for h in result["history"]] == [2]
    messages = [r.getMessage() for r in caplog.records]
    assert "Index lists 2025/01 but no readable record exists" in messages
    assert any(m.startswith("person_history person_id=person_001 scanned=1 found=1") for m in messages)


def test_person_endpoint_survives_stale_index(client, data_root, make_entry):
    save_period(data_root, 2024, 11, [make_entry(1, "山田", "person_001")])
    save_period(data_root, 2024, 12, [make_entry(1, "佐藤", "person_002")])
    save_period(data_root, 2025, 1, [make_entry(2, "山田", "person_001")])
    period_path(data_root, 2024, 12).unlink()

    res = client.get("/api/seiseki/person/person_001")

    assert res.status_code == 200
    assert [h["rank"] for h in res.get_json()["history"]] == [1, None, 2]
