"""Monthly ranking results stored as JSON files.

Layout under the storage root::

    seiseki/index.json        archive index, newest period first
    seiseki/<YYYY>/<MM>.json  one record per published month

Every write to a period file is followed by an update of the index so the
two stay in step. A crash between the two writes is the only way they drift,
and readers tolerate that drift.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

MIN_YEAR = 2000
MAX_YEAR = 2100


def now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string ending in ``Z``."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def read_json(path: Path) -> Any:
    with path.open(encoding="utf-8") as f:
        return json.load(f)


def write_json(path: Path, data: Any) -> None:
    """Write ``data`` to ``path`` via a sibling temp file and an atomic rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
        f.write("\n")
    os.replace(tmp, path)


def _seiseki_dir(root: Path) -> Path:
    return Path(root) / "seiseki"


def _index_path(root: Path) -> Path:
    return _seiseki_dir(root) / "index.json"


def validate_year_month(year: int, month: int) -> None:
    """Raise ``ValueError`` unless (year, month) is safe to turn into a path."""
    if not isinstance(year, int) or isinstance(year, bool) or not MIN_YEAR <= year <= MAX_YEAR:
        raise ValueError("Invalid year")
    if not isinstance(month, int) or isinstance(month, bool) or not 1 <= month <= 12:
        raise ValueError("Invalid month")


def period_path(root: Path, year: int, month: int) -> Path:
    validate_year_month(year, month)
    return _seiseki_dir(root) / str(year) / f"{month:02d}.json"


def _empty_index() -> Dict[str, Any]:
    return {"archives": [], "lastUpdated": now_iso()}


def load_index(root: Path) -> Dict[str, Any]:
    """Return the archive index, or an empty one when missing or unreadable.

    ``archives`` is sorted newest first by (year, month).
    """
    path = _index_path(root)
    if not path.exists():
        return _empty_index()
    try:
        index = read_json(path)
    except (OSError, ValueError):
        logger.exception("Error reading archive index %s", path)
        return _empty_index()
    if not isinstance(index, dict) or not isinstance(index.get("archives"), list):
        logger.error("Archive index %s has no archives list", path)
        return _empty_index()
    return index


def load_period(root: Path, year: int, month: int) -> Optional[Dict[str, Any]]:
    """Return the record for (year, month) or ``None``.

    ``None`` covers an absent file as well as one that cannot be read or
    parsed; callers treat both as "no data for this month".
    """
    try:
        path = period_path(root, year, month)
    except ValueError:
        logger.warning("Rejected period %s/%s", year, month)
        return None
    if not path.exists():
        return None
    try:
        record = read_json(path)
    except (OSError, ValueError):
        logger.exception("Error reading results for %s/%s", year, month)
        return None
    if not isinstance(record, dict) or not isinstance(record.get("entries"), list):
        logger.error("Results file %s has no entries list", path)
        return None
    return record


def as_int(value: Any) -> int:
    """Index rows written by hand may hold null or junk; those sort last."""
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _sort_archives(archives: List[Dict[str, Any]]) -> None:
    archives.sort(key=lambda a: (as_int(a.get("year")), as_int(a.get("month"))), reverse=True)


def _upsert_index(root: Path, record: Dict[str, Any]) -> None:
    entries = record.get("entries")
    if not isinstance(entries, list):
        raise ValueError("Invalid data structure: entries must be a list")
    year, month = record["year"], record["month"]
    index = load_index(root)
    meta = {
        "year": year,
        "month": month,
        "entryCount": len(entries),
        "publishedAt": record.get("publishedAt"),
    }
    archives = [
        a for a in index["archives"]
        if isinstance(a, dict) and not (a.get("year") == year and a.get("month") == month)
    ]
    archives.append(meta)
    _sort_archives(archives)
    index["archives"] = archives
    index["lastUpdated"] = now_iso()
    write_json(_index_path(root), index)


def _remove_from_index(root: Path, year: int, month: int) -> None:
    index = load_index(root)
    index["archives"] = [
        a for a in index["archives"]
        if isinstance(a, dict) and not (a.get("year") == year and a.get("month") == month)
    ]
    index["lastUpdated"] = now_iso()
    write_json(_index_path(root), index)


def save_period(root: Path, year: int, month: int, entries: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Replace the record for (year, month) with ``entries`` and update the index.

    ``publishedAt`` is kept from an existing record; ``updatedAt`` is always
    refreshed. Returns the record as written.
    """
    validate_year_month(year, month)
    if not isinstance(entries, list):
        raise ValueError("entries must be a list")

    now = now_iso()
    existing = load_period(root, year, month)
    record = {
        "year": year,
        "month": month,
        "entries": entries,
        "updatedAt": now,
        "publishedAt": (existing or {}).get("publishedAt") or now,
    }
    write_json(period_path(root, year, month), record)
    _upsert_index(root, record)
    logger.info("Saved results for %s/%02d (%d entries)", year, month, len(entries))
    return record


def delete_period(root: Path, year: int, month: int) -> bool:
    """Delete the record for (year, month) and drop it from the index.

    Returns whether a file was removed. The index is cleaned either way.
    """
    path = period_path(root, year, month)
    removed = False
    if path.exists():
        path.unlink()
        removed = True
    _remove_from_index(root, year, month)
    logger.info("Deleted results for %s/%02d (file_removed=%s)", year, month, removed)
    return removed


def latest_period(root: Path) -> Optional[Dict[str, Any]]:
    archives = load_index(root)["archives"]
    if not archives:
        return None
    latest = archives[0]
    return load_period(root, latest["year"], latest["month"])


def year_periods(root: Path, year: int) -> List[Dict[str, Any]]:
    """Return the year's records that have entries, December first."""
    months: List[Dict[str, Any]] = []
    for month in range(12, 0, -1):
        record = load_period(root, year, month)
        if record and record["entries"]:
            months.append(record)
    return months


def available_years(root: Path) -> List[int]:
    years = {as_int(a.get("year")) for a in load_index(root)["archives"] if isinstance(a, dict)}
    years.discard(0)
    return sorted(years, reverse=True)


def iter_period_files(root: Path) -> Iterator[Tuple[int, int, Path]]:
    """Yield (year, month, path) for every period file on disk, oldest first.

    This walks the directory tree rather than the index, so it also sees
    files the index has lost track of.
    """
    base = _seiseki_dir(root)
    if not base.is_dir():
        return
    years = sorted(int(p.name) for p in base.iterdir() if p.is_dir() and p.name.isdigit())
    for year in years:
        months = sorted(
            int(p.stem) for p in (base / str(year)).glob("*.json") if p.stem.isdigit()
        )
        for month in months:
            yield year, month, base / str(year) / f"{month:02d}.json"
