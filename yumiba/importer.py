"""Import a month's ranking from the legacy results page.

The legacy site publishes the current ranking as an HTML table with one row
per archer: rank, name, rank title, target size. The page carries no dates,
so ``updatedDate`` is taken as the 24th of the previous month and
``expiryDate`` as the 1st of the third month after that.
"""

import logging
import re
import uuid

import requests
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

SOURCE_URL = "https://daikyujyo.com/seiseki.html"
HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "ja,en-US;q=0.9,en;q=0.8",
}
UPDATED_DAY = 24
VALID_MONTHS = 3

_DIGITS = re.compile(r"\d+")


class ImportFailed(Exception):
    """Raised when the legacy page cannot be fetched."""


def fetch_page(url: str = SOURCE_URL) -> str:
    logger.info("Fetching %s", url)
    try:
        resp = requests.get(url, headers=HEADERS, timeout=30)
    except requests.RequestException as e:
        raise ImportFailed(f"Connection error for {url}: {e}") from e
    if resp.status_code != 200:
        raise ImportFailed(f"HTTP {resp.status_code} for {url}")
    resp.encoding = resp.apparent_encoding or resp.encoding
    return resp.text


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def entry_dates(year: int, month: int) -> tuple[str, str]:
    """Return (updatedDate, expiryDate) for a ranking published in year/month."""
    uy, um = _shift_month(year, month, -1)
    ey, em = _shift_month(uy, um, VALID_MONTHS)
    return f"{uy}年{um}月{UPDATED_DAY}日", f"{ey}年{em}月1日"


def parse_results_page(html: str, year: int, month: int) -> list[dict]:
    """Return result entries from the largest table on the page, sorted by rank."""
    soup = BeautifulSoup(html, "html.parser")
    tables = soup.find_all("table")
    if not tables:
        logger.warning("No table found in results page")
        return []
    main = max(tables, key=lambda t: len(t.find_all("tr")))
    logger.debug("Using table with %d rows of %d tables", len(main.find_all("tr")), len(tables))

    updated, expiry = entry_dates(year, month)
    entries = []
    # First row is the header.
    for tr in main.find_all("tr")[1:]:
        cells = tr.find_all("td")
        if len(cells) < 4:
            continue
        rank_digits = "".join(_DIGITS.findall(cells[0].get_text(strip=True)))
        name = cells[1].get_text(strip=True)
        if not rank_digits or not int(rank_digits) or not name:
            continue
        entries.append({
            "id": str(uuid.uuid4()),
            "rank": int(rank_digits),
            "name": name,
            "rankTitle": cells[2].get_text(strip=True),
            "targetSize": cells[3].get_text(strip=True),
            "updatedDate": updated,
            "expiryDate": expiry,
        })

    entries.sort(key=lambda e: e["rank"])
    logger.info("Parsed %d entries for %s/%02d", len(entries), year, month)
    return entries
