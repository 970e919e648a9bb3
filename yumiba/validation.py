"""Checks for admin submissions before anything is written to disk."""

from __future__ import annotations

import re
from typing import Any, Dict, List

MIN_YEAR = 2000
MAX_YEAR = 2100
MAX_ENTRIES = 10
MAX_NAME_LEN = 50
MAX_RANK_TITLE_LEN = 20
MAX_TARGET_SIZE_LEN = 20
MAX_TAIKAI_NAME_LEN = 50

_DATE_LABEL = re.compile(r"\d{4}年\d{1,2}月\d{1,2}日")
_EVENT_YEAR = re.compile(r"\d{4}年")


class ValidationError(ValueError):
    """A submission was rejected; the message is safe to show the admin."""


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_year(year: Any) -> None:
    if not _is_int(year) or not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationError(f"Year must be between {MIN_YEAR} and {MAX_YEAR}")


def _check_name(prefix: str, item: Dict[str, Any]) -> None:
    name = item.get("name")
    if not name or not isinstance(name, str):
        raise ValidationError(f"{prefix}: Name is required")
    if len(name) > MAX_NAME_LEN:
        raise ValidationError(f"{prefix}: Name must be max {MAX_NAME_LEN} characters")
    rank_title = item.get("rankTitle")
    if not isinstance(rank_title, str) or len(rank_title) > MAX_RANK_TITLE_LEN:
        raise ValidationError(f"{prefix}: Rank title must be max {MAX_RANK_TITLE_LEN} characters")


def validate_results(year: Any, month: Any, entries: Any) -> None:
    """Validate a monthly results submission.

    Raises:
        ValidationError: with a message naming the first offending entry.
    """
    _check_year(year)
    if not _is_int(month) or not 1 <= month <= 12:
        raise ValidationError("Month must be between 1 and 12")
    if not isinstance(entries, list) or not entries:
        raise ValidationError("At least one entry is required")
    if len(entries) > MAX_ENTRIES:
        raise ValidationError(f"Maximum {MAX_ENTRIES} entries allowed")

    ranks: set[int] = set()
    for num, entry in enumerate(entries, start=1):
        prefix = f"Entry {num}"
        if not isinstance(entry, dict):
            raise ValidationError(f"{prefix}: Invalid entry")
        if not entry.get("id") or not isinstance(entry.get("id"), str):
            raise ValidationError(f"{prefix}: Invalid ID")
        rank = entry.get("rank")
        if not _is_int(rank) or not 1 <= rank <= MAX_ENTRIES:
            raise ValidationError(f"{prefix}: Rank must be between 1 and {MAX_ENTRIES}")
        if rank in ranks:
            raise ValidationError(f"{prefix}: Duplicate rank {rank}")
        ranks.add(rank)
        _check_name(prefix, entry)
        target = entry.get("targetSize")
        if not target or not isinstance(target, str):
            raise ValidationError(f"{prefix}: Target size is required")
        if len(target) > MAX_TARGET_SIZE_LEN:
            raise ValidationError(f"{prefix}: Target size must be max {MAX_TARGET_SIZE_LEN} characters")
        for field in ("updatedDate", "expiryDate"):
            value = entry.get(field)
            if not isinstance(value, str) or not _DATE_LABEL.fullmatch(value):
                raise ValidationError(f"{prefix}: Invalid date format for {field}")


def validate_tournament(year: Any, taikai_name: Any, event_date: Any, participants: Any) -> None:
    """Validate a tournament submission.

    ``totalScore`` must equal ``score1 + score2`` for every participant.
    """
    _check_year(year)
    if not isinstance(taikai_name, str) or not taikai_name.strip():
        raise ValidationError("Tournament name is required")
    if len(taikai_name) > MAX_TAIKAI_NAME_LEN:
        raise ValidationError(f"Tournament name must be max {MAX_TAIKAI_NAME_LEN} characters")
    if not isinstance(event_date, str) or not _EVENT_YEAR.fullmatch(event_date):
        raise ValidationError("Event date format must be YYYY年")
    if not isinstance(participants, list) or not participants:
        raise ValidationError("At least one participant is required")

    ranks: set[int] = set()
    for num, participant in enumerate(participants, start=1):
        prefix = f"Participant {num}"
        if not isinstance(participant, dict):
            raise ValidationError(f"{prefix}: Invalid participant")
        if not participant.get("id") or not isinstance(participant.get("id"), str):
            raise ValidationError(f"{prefix}: Invalid ID")
        rank = participant.get("rank")
        if not _is_int(rank) or rank < 1:
            raise ValidationError(f"{prefix}: Rank must be a positive integer")
        if rank in ranks:
            raise ValidationError(f"{prefix}: Duplicate rank {rank}")
        ranks.add(rank)
        _check_name(prefix, participant)
        for i, field in enumerate(("score1", "score2"), start=1):
            score = participant.get(field)
            if not _is_number(score) or score < 0:
                raise ValidationError(f"{prefix}: Score {i} must be a non-negative number")
        total = participant.get("totalScore")
        if not _is_number(total):
            raise ValidationError(f"{prefix}: Total score must be a number")
        expected = participant["score1"] + participant["score2"]
        if total != expected:
            raise ValidationError(
                f"{prefix}: Total score mismatch (expected {expected}, got {total})"
            )


def sorted_by_rank(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(items, key=lambda item: item["rank"])
