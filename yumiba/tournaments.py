"""Yearly tournament (taikai) results stored as JSON files.

Layout under the storage root::

    taikai/index.json   tournament index, newest year first
    taikai/<YYYY>.json  one record per tournament year
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .datastore import as_int, now_iso, read_json, write_json

logger = logging.getLogger(__name__)

MIN_YEAR = 1900
MAX_YEAR = 2100


def _taikai_dir(root: Path) -> Path:
    return Path(root) / "taikai"


def _index_path(root: Path) -> Path:
    return _taikai_dir(root) / "index.json"


def validate_year(year: int) -> None:
    if not isinstance(year, int) or isinstance(year, bool) or not MIN_YEAR <= year <= MAX_YEAR:
        raise ValueError("Invalid year")


def tournament_path(root: Path, year: int) -> Path:
    validate_year(year)
    return _taikai_dir(root) / f"{year}.json"


def _empty_index() -> Dict[str, Any]:
    return {"archives": [], "lastUpdated": now_iso()}


def load_tournament_index(root: Path) -> Dict[str, Any]:
    """Return the tournament index, newest year first; empty when unreadable."""
    path = _index_path(root)
    if not path.exists():
        return _empty_index()
    try:
        index = read_json(path)
    except (OSError, ValueError):
        logger.exception("Error reading tournament index %s", path)
        return _empty_index()
    if not isinstance(index, dict) or not isinstance(index.get("archives"), list):
        logger.error("Tournament index %s has no archives list", path)
        return _empty_index()
    return index


def load_tournament(root: Path, year: int) -> Optional[Dict[str, Any]]:
    try:
        path = tournament_path(root, year)
    except ValueError:
        logger.warning("Rejected tournament year %s", year)
        return None
    if not path.exists():
        return None
    try:
        record = read_json(path)
    except (OSError, ValueError):
        logger.exception("Error reading tournament data for %s", year)
        return None
    if not isinstance(record, dict) or not isinstance(record.get("participants"), list):
        logger.error("Tournament file %s has no participants list", path)
        return None
    return record


def _upsert_index(root: Path, record: Dict[str, Any]) -> None:
    participants = record.get("participants")
    if not isinstance(participants, list):
        raise ValueError("Invalid data structure: participants must be a list")
    year = record["year"]
    index = load_tournament_index(root)
    meta = {
        "year": year,
        "taikaiName": record.get("taikaiName", ""),
        "participantCount": len(participants),
        "eventDate": record.get("eventDate", ""),
        "publishedAt": record.get("publishedAt"),
    }
    archives = [a for a in index["archives"] if isinstance(a, dict) and a.get("year") != year]
    archives.append(meta)
    archives.sort(key=lambda a: as_int(a.get("year")), reverse=True)
    index["archives"] = archives
    index["lastUpdated"] = now_iso()
    write_json(_index_path(root), index)


def save_tournament(root: Path, year: int, record: Dict[str, Any]) -> Dict[str, Any]:
    """Replace the tournament record for ``year`` and update the index.

    Extra keys in ``record`` are stored as given; ``year``, ``publishedAt``
    and ``updatedAt`` are always set here.
    """
    validate_year(year)
    now = now_iso()
    existing = load_tournament(root, year)
    to_save = dict(record)
    to_save.update({
        "year": year,
        "updatedAt": now,
        "publishedAt": (existing or {}).get("publishedAt") or now,
    })
    write_json(tournament_path(root, year), to_save)
    _upsert_index(root, to_save)
    logger.info(
        "Saved tournament %s (%d participants)", year, len(to_save.get("participants") or [])
    )
    return to_save


def delete_tournament(root: Path, year: int) -> bool:
    path = tournament_path(root, year)
    removed = False
    if path.exists():
        path.unlink()
        removed = True
    index = load_tournament_index(root)
    index["archives"] = [a for a in index["archives"] if isinstance(a, dict) and a.get("year") != year]
    index["lastUpdated"] = now_iso()
    write_json(_index_path(root), index)
    logger.info("Deleted tournament %s (file_removed=%s)", year, removed)
    return removed


def latest_tournament(root: Path) -> Optional[Dict[str, Any]]:
    archives = load_tournament_index(root)["archives"]
    if not archives:
        return None
    return load_tournament(root, archives[0]["year"])
