"""Target size labels.

Target sizes are recorded as free text in sun (寸) and bu (分), where one sun
is ten bu, e.g. ``"1寸2分"``. Historical data entry is loose, so anything that
does not look like a size is simply reported as unparseable.
"""

from __future__ import annotations

import re
from typing import Optional

NO_DATA_LABEL = "-"

_SUN_BU = re.compile(r"(\d+)寸(\d+)分")
_SUN_ONLY = re.compile(r"(\d+)寸")
_BU_ONLY = re.compile(r"(\d+)分")


def parse_target_size(label: object) -> Optional[float]:
    """Return the size in sun, or ``None`` when ``label`` cannot be read.

    >>> parse_target_size("1寸2分")
    1.2
    >>> parse_target_size("1寸")
    1.0
    >>> parse_target_size("8分")
    0.8
    >>> parse_target_size("-") is None
    True
    """
    if not isinstance(label, str):
        return None

    match = _SUN_BU.search(label)
    if match:
        return int(match.group(1)) + int(match.group(2)) * 0.1

    match = _SUN_ONLY.search(label)
    if match:
        return float(int(match.group(1)))

    match = _BU_ONLY.fullmatch(label)
    if match:
        return int(match.group(1)) * 0.1

    return None
