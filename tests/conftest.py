import json
import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from yumiba import create_app  # noqa: E402

ADMIN_EMAIL = "admin@example.com"
FIXTURES_DIR = pathlib.Path(__file__).parent / "fixtures"


@pytest.fixture()
def data_root(tmp_path):
    root = tmp_path / "data"
    root.mkdir()
    return root


@pytest.fixture()
def make_entry():
    """Factory for result entries shaped like the JSON files on disk."""

    def _make(rank, name, person_id=None, target_size="1寸2分", **extra):
        entry = {
            "id": f"e-{rank}-{name}",
            "rank": rank,
            "name": name,
            "rankTitle": "初段",
            "targetSize": target_size,
            "updatedDate": "2025年1月10日",
            "expiryDate": "2025年4月9日",
        }
        if person_id is not None:
            entry["personId"] = person_id
        entry.update(extra)
        return entry

    return _make


@pytest.fixture()
def make_participant():
    def _make(rank, name, score1=8, score2=7, **extra):
        participant = {
            "id": f"p-{rank}-{name}",
            "rank": rank,
            "name": name,
            "rankTitle": "二段",
            "score1": score1,
            "score2": score2,
            "totalScore": score1 + score2,
        }
        participant.update(extra)
        return participant

    return _make


@pytest.fixture()
def write_raw():
    """Write arbitrary JSON (or text) below the data root, bypassing the stores."""

    def _write(root, relpath, data):
        path = pathlib.Path(root) / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, str):
            path.write_text(data, encoding="utf-8")
        else:
            path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def app(data_root):
    app = create_app({
        "TESTING": True,
        "DATA_DIR": str(data_root),
        "SECRET_KEY": "test-secret",
        "ALLOWED_ADMIN_EMAILS": [ADMIN_EMAIL],
    })
    return app


@pytest.fixture()
def client(app):
    # Not entered as a context manager: two preserved-context clients on the
    # same app interleave request contexts and break Flask's context stack.
    return app.test_client()


@pytest.fixture()
def admin_client(app):
    with app.test_client() as c:
        with c.session_transaction() as sess:
            sess["admin_email"] = ADMIN_EMAIL
        yield c


@pytest.fixture()
def legacy_results_html() -> str:
    return (FIXTURES_DIR / "legacy_seiseki.html").read_text(encoding="utf-8")
