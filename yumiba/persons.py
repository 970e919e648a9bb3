"""Person registry: the list of stable ``personId`` values.

Monthly result entries carry a ``personId`` so the same archer can be
followed across months even when names collide. Two people with the same
name are told apart by an optional ``personKey`` on their entries.

The registry lives at ``persons/persons.json`` under the storage root.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .datastore import iter_period_files, now_iso, read_json, write_json

logger = logging.getLogger(__name__)

REGISTRY_VERSION = "1.0.0"
PERSON_ID_PREFIX = "person_"
_PERSON_ID = re.compile(r"person_\d{3}")


class RegistryNotFound(FileNotFoundError):
    """Raised when ``persons.json`` has not been generated yet."""


def registry_path(root: Path) -> Path:
    return Path(root) / "persons" / "persons.json"


def format_person_id(number: int) -> str:
    return f"{PERSON_ID_PREFIX}{number:03d}"


def person_number(person_id: Any) -> Optional[int]:
    if not isinstance(person_id, str) or not person_id.startswith(PERSON_ID_PREFIX):
        return None
    try:
        return int(person_id[len(PERSON_ID_PREFIX):])
    except ValueError:
        return None


def _unique_key(name: str, person_key: Optional[str]) -> str:
    return f"{name}_{person_key}" if person_key else name


def _key_note(person_key: Optional[str]) -> str:
    return f'personKey="{person_key}" distinguishes a namesake' if person_key else ""


def load_registry(root: Path) -> Dict[str, Any]:
    path = registry_path(root)
    if not path.exists():
        raise RegistryNotFound(f"{path} not found; run 'flask persons build' first")
    return read_json(path)


def save_registry(root: Path, registry: Dict[str, Any]) -> None:
    registry["lastUpdated"] = now_iso()
    write_json(registry_path(root), registry)


def _read_record(path: Path) -> Dict[str, Any]:
    record = read_json(path)
    if not isinstance(record, dict) or not isinstance(record.get("entries", []), list):
        raise ValueError("not a results record")
    return record


def _scan_records(root: Path) -> List[Tuple[Dict[str, int], Path, Dict[str, Any]]]:
    """Return (when, path, record) for each usable period file, oldest first.

    ``when`` comes from the file's location, not its contents. Files that
    cannot be read or are not shaped like a results record are logged and
    skipped.
    """
    out: List[Tuple[Dict[str, int], Path, Dict[str, Any]]] = []
    for year, month, path in iter_period_files(root):
        try:
            record = _read_record(path)
        except (OSError, ValueError):
            logger.exception("Error reading %s", path)
            continue
        out.append(({"year": year, "month": month}, path, record))
    return out


def _real_entries(record: Dict[str, Any]):
    for entry in record.get("entries") or []:
        if isinstance(entry, dict) and not entry.get("isEmpty"):
            yield entry


def build_registry(root: Path) -> Dict[str, Any]:
    """Generate the registry from the person ids already present in the data.

    Overwrites any existing ``persons.json`` and returns the new registry.
    """
    people: Dict[str, Dict[str, Any]] = {}
    for when, _path, record in _scan_records(root):
        for entry in _real_entries(record):
            pid = entry.get("personId")
            if not pid:
                continue
            person = people.get(pid)
            if person is None:
                people[pid] = {
                    "personId": pid,
                    "name": entry.get("name", ""),
                    "personKey": entry.get("personKey") or None,
                    "firstAppearance": dict(when),
                    "lastAppearance": dict(when),
                    "appearanceCount": 1,
                    "createdAt": now_iso(),
                    "note": _key_note(entry.get("personKey")),
                }
                continue
            person["appearanceCount"] += 1
            last = person["lastAppearance"]
            if (when["year"], when["month"]) > (last["year"], last["month"]):
                person["lastAppearance"] = dict(when)

    numbers = [n for n in (person_number(pid) for pid in people) if n is not None]
    registry = {
        "version": REGISTRY_VERSION,
        "lastUpdated": now_iso(),
        "nextPersonId": max(numbers, default=0) + 1,
        "persons": sorted(people.values(), key=lambda p: (person_number(p["personId"]) or 0, p["personId"])),
    }
    save_registry(root, registry)
    logger.info("Built person registry with %d persons", len(people))
    return registry


def assign_person_ids(root: Path) -> Dict[str, Any]:
    """Give every entry without a ``personId`` one from the registry.

    Unknown (name, personKey) pairs get a freshly minted id. Modified period
    files are rewritten with a refreshed ``updatedAt``. Returns counts and
    the list of newly registered persons.
    """
    registry = load_registry(root)
    known = {
        _unique_key(p["name"], p.get("personKey")): p["personId"] for p in registry.get("persons", [])
    }
    next_number = int(registry.get("nextPersonId", 1))
    new_persons: List[Dict[str, Any]] = []
    files = 0
    entries = 0

    # The registry is saved even when a rewrite fails; minted ids must not be reissued.
    try:
        for when, path, record in _scan_records(root):
            modified = False
            for entry in _real_entries(record):
                if entry.get("personId"):
                    continue
                key = _unique_key(entry.get("name", ""), entry.get("personKey"))
                if key not in known:
                    pid = format_person_id(next_number)
                    next_number += 1
                    known[key] = pid
                    new_persons.append({
                        "personId": pid,
                        "name": entry.get("name", ""),
                        "personKey": entry.get("personKey") or None,
                        "firstAppearance": dict(when),
                        "lastAppearance": dict(when),
                        "appearanceCount": 1,
                        "createdAt": now_iso(),
                        "note": _key_note(entry.get("personKey")),
                    })
                    logger.info("New person %s -> %s", key, pid)
                entry["personId"] = known[key]
                modified = True
                entries += 1
            if modified:
                record["updatedAt"] = now_iso()
                write_json(path, record)
                files += 1
    finally:
        if new_persons:
            registry.setdefault("persons", []).extend(new_persons)
            registry["nextPersonId"] = next_number
            save_registry(root, registry)

    return {"files": files, "entries": entries, "new_persons": new_persons}


def _issue(kind: str, severity: str, message: str, **details: Any) -> Dict[str, Any]:
    return {"type": kind, "severity": severity, "message": message, "details": details}


def validate_person_ids(root: Path) -> List[Dict[str, Any]]:
    """Cross-check the registry against the period files.

    Returns a list of issues; each has ``type``, ``severity`` ("error" or
    "warning"), ``message`` and ``details``. An empty list means clean.
    """
    registry = load_registry(root)
    persons = registry.get("persons", [])
    issues: List[Dict[str, Any]] = []

    seen: set[str] = set()
    for p in persons:
        pid = p.get("personId")
        if pid in seen:
            issues.append(_issue("DUPLICATE_PERSON_ID", "error", f"Duplicate personId: {pid}", personId=pid, name=p.get("name")))
        if isinstance(pid, str):
            seen.add(pid)
        if not isinstance(pid, str) or not _PERSON_ID.fullmatch(pid):
            issues.append(_issue("INVALID_PERSON_ID_FORMAT", "error", f"Invalid personId format: {pid}", personId=pid, name=p.get("name")))

    numbers = [n for n in (person_number(p.get("personId")) for p in persons) if n is not None]
    if numbers and int(registry.get("nextPersonId", 0)) <= max(numbers):
        issues.append(_issue(
            "INVALID_NEXT_PERSON_ID", "error",
            f"nextPersonId ({registry.get('nextPersonId')}) is not above the largest personId ({max(numbers)})",
            nextPersonId=registry.get("nextPersonId"), maxPersonIdNum=max(numbers),
        ))

    by_id = {p["personId"]: p for p in persons if isinstance(p.get("personId"), str)}
    counts: Dict[str, int] = {}
    for year, month, path in iter_period_files(root):
        try:
            record = _read_record(path)
        except (OSError, ValueError) as e:
            issues.append(_issue("FILE_READ_ERROR", "error", f"Could not read {path}", file=str(path), error=str(e)))
            continue
        for entry in _real_entries(record):
            pid = entry.get("personId")
            if not pid:
                continue
            person = by_id.get(pid)
            if person is None:
                issues.append(_issue(
                    "MISSING_IN_REGISTRY", "error", f'personId "{pid}" is not in the registry',
                    file=str(path), personId=pid, name=entry.get("name"),
                    year=year, month=month,
                ))
                continue
            if person.get("name") != entry.get("name"):
                issues.append(_issue(
                    "NAME_MISMATCH", "warning", f'Name differs for personId "{pid}"',
                    file=str(path), personId=pid, registryName=person.get("name"), entryName=entry.get("name"),
                ))
            counts[pid] = counts.get(pid, 0) + 1

    for p in persons:
        pid = p.get("personId")
        actual = counts.get(pid, 0)
        if not actual:
            issues.append(_issue("UNUSED_PERSON_ID", "warning", f'personId "{pid}" ({p.get("name")}) is not used', personId=pid, name=p.get("name")))
        if actual != p.get("appearanceCount"):
            issues.append(_issue(
                "APPEARANCE_COUNT_MISMATCH", "warning", f'Appearance count differs for "{pid}" ({p.get("name")})',
                personId=pid, name=p.get("name"), registryCount=p.get("appearanceCount"), actualCount=actual,
            ))

    by_name: Dict[str, List[Dict[str, Any]]] = {}
    for p in persons:
        by_name.setdefault(p.get("name", ""), []).append(p)
    for name, group in by_name.items():
        if len(group) > 1 and any(not p.get("personKey") for p in group):
            issues.append(_issue(
                "MISSING_PERSON_KEY", "warning", f'Namesakes "{name}" exist but some lack a personKey',
                name=name, personIds=[p.get("personId") for p in group],
            ))

    return issues


def _year_month(when: Optional[Dict[str, Any]]) -> str:
    if not when:
        return "-"
    return f"{when.get('year')}/{int(when.get('month') or 0):02d}"


def registry_markdown(registry: Dict[str, Any]) -> str:
    """Render the registry as a markdown table with summary counts."""
    people = registry.get("persons", [])
    keyed = [p for p in people if p.get("personKey")]
    lines = [
        "# Person IDs",
        "",
        "> Generated from `persons.json` by `flask persons report`; do not edit.",
        "",
        f"**Last updated**: {registry.get('lastUpdated', '-')}",
        f"**Next personId**: {format_person_id(int(registry.get('nextPersonId', 1)))}",
        f"**Registered persons**: {len(people)}",
        "",
        "| personId | Name | personKey | First | Last | Count | Note |",
        "|---|---|---|---|---|---|---|",
    ]
    for p in people:
        lines.append(
            f"| {p.get('personId')} | {p.get('name', '')} | {p.get('personKey') or '-'} "
            f"| {_year_month(p.get('firstAppearance'))} | {_year_month(p.get('lastAppearance'))} "
            f"| {p.get('appearanceCount', 0)} | {p.get('note') or ''} |"
        )
    lines += ["", "## Totals", ""]
    lines.append(f"- Persons with a personKey: {len(keyed)}")
    lines.append(f"- Total appearances: {sum(int(p.get('appearanceCount') or 0) for p in people)}")
    if people:
        top = max(people, key=lambda p: int(p.get("appearanceCount") or 0))
        lines.append(f"- Most appearances: {top.get('name', '')} ({top.get('appearanceCount', 0)})")
    if keyed:
        lines += ["", "## Namesakes told apart by personKey", "", "| personId | Name | personKey |", "|---|---|---|"]
        lines += [f"| {p['personId']} | {p.get('name', '')} | {p['personKey']} |" for p in keyed]
    return "\n".join(lines) + "\n"


def write_registry_report(root: Path) -> Path:
    """Write ``persons/persons.md`` next to the registry and return its path."""
    path = registry_path(root).with_name("persons.md")
    path.write_text(registry_markdown(load_registry(root)), encoding="utf-8")
    logger.info("Wrote %s", path)
    return path
