"""Per-person result histories.

Monthly rankings are published sparsely: a person may appear in March, drop
out for two months and reappear in June. ``get_person_history`` turns those
scattered appearances into one row per calendar month between the first and
last appearance, so a chart can plot the series without handling missing
months itself.

Tournaments are held once a year at most and are not interpolated;
``get_person_tournament_history`` just lists the years a name appears in.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .datastore import load_index, load_period
from .targets import NO_DATA_LABEL, parse_target_size
from .tournaments import load_tournament, load_tournament_index

logger = logging.getLogger(__name__)


class InvalidIdentifier(ValueError):
    """Raised for a blank person id or name, before any storage is read."""


def _require(value: Optional[str], what: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidIdentifier(f"{what} is required")
    return value


def iter_months(start: Tuple[int, int], end: Tuple[int, int]) -> Iterator[Tuple[int, int]]:
    """Yield every (year, month) from ``start`` to ``end`` inclusive."""
    year, month = start
    while (year, month) <= end:
        yield year, month
        month += 1
        if month > 12:
            month = 1
            year += 1


def _find_entry(record: Dict[str, Any], person_id: str) -> Optional[Dict[str, Any]]:
    for entry in record.get("entries") or []:
        if isinstance(entry, dict) and entry.get("personId") == person_id:
            return entry
    return None


def _data_row(year: int, month: int, entry: Dict[str, Any]) -> Dict[str, Any]:
    label = entry.get("targetSize", "")
    numeric = parse_target_size(label)
    return {
        "year": year,
        "month": month,
        "rank": entry.get("rank"),
        "targetSizeLabel": label,
        # Present but unreadable sizes plot as 0; only gap months carry None.
        "targetSizeNumeric": numeric if numeric is not None else 0,
        "rankTitle": entry.get("rankTitle", ""),
    }


def _gap_row(year: int, month: int) -> Dict[str, Any]:
    return {
        "year": year,
        "month": month,
        "rank": None,
        "targetSizeLabel": NO_DATA_LABEL,
        "targetSizeNumeric": None,
        "rankTitle": "",
    }


def get_person_history(root: Path, person_id: str) -> Optional[Dict[str, Any]]:
    """Return ``{personId, name, history}`` for ``person_id`` or ``None``.

    Every indexed month is scanned oldest first. Months whose file is
    missing or unreadable are skipped, so a stale index entry never spoils
    the result. ``history`` has exactly one row per calendar month from the
    first to the last appearance; months without an entry become gap rows
    (``rank`` and ``targetSizeNumeric`` are ``None``).

    ``name`` is the name on the chronologically last appearance.

    Raises:
        InvalidIdentifier: ``person_id`` is empty or blank.
    """
    _require(person_id, "personId")

    archives = load_index(root)["archives"]
    points: Dict[Tuple[int, int], Dict[str, Any]] = {}
    scanned = 0
    for archive in reversed(archives):
        try:
            year, month = int(archive["year"]), int(archive["month"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping malformed index entry %r", archive)
            continue
        record = load_period(root, year, month)
        if record is None:
            logger.warning("Index lists %s/%02d but no readable record exists", year, month)
            continue
        scanned += 1
        entry = _find_entry(record, person_id)
        if entry is not None:
            points[(year, month)] = entry

    logger.debug("person_history person_id=%s scanned=%d found=%d", person_id, scanned, len(points))
    if not points:
        return None

    first, last = min(points), max(points)
    history: List[Dict[str, Any]] = []
    for year, month in iter_months(first, last):
        entry = points.get((year, month))
        if entry is None:
            history.append(_gap_row(year, month))
        else:
            history.append(_data_row(year, month, entry))

    return {
        "personId": person_id,
        "name": points[last].get("name", ""),
        "history": history,
    }


def get_person_tournament_history(root: Path, person_name: str) -> Optional[Dict[str, Any]]:
    """Return ``{name, history}`` of tournament results for ``person_name``.

    Names are matched exactly; there is no stable id for tournament
    participants, so two people sharing a name are merged. Years without a
    match are simply absent. ``history`` is newest year first. Returns
    ``None`` when the name never appears.
    """
    _require(person_name, "personName")

    history: List[Dict[str, Any]] = []
    for archive in load_tournament_index(root)["archives"]:
        try:
            year = int(archive["year"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping malformed tournament index entry %r", archive)
            continue
        record = load_tournament(root, year)
        if record is None:
            continue
        participant = next(
            (p for p in record["participants"] if isinstance(p, dict) and p.get("name") == person_name),
            None,
        )
        if participant is None:
            continue
        history.append({
            "year": year,
            "taikaiName": archive.get("taikaiName", record.get("taikaiName", "")),
            "rank": participant.get("rank"),
            "score1": participant.get("score1"),
            "score2": participant.get("score2"),
            "totalScore": participant.get("totalScore"),
            "rankTitle": participant.get("rankTitle", ""),
        })

    if not history:
        return None
    return {"name": person_name, "history": history}
