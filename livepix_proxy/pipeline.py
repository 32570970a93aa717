"""pipeline.py – Donation record aggregation

Turns the LivePix paginated messages listing into a single, date-filtered,
de-duplicated list of records:

    fetch_all  ->  filter_by_range  ->  dedupe_by_id

Each stage consumes the previous stage's complete in-memory list.  Nothing is
retained between calls; every request builds its own accumulator and index.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import date, datetime, time, timedelta, timezone
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from livepix_proxy import cloud_logging as logging

__all__ = [
    "BOUNDARY_TZ",
    "InvalidDateRange",
    "MAX_PAGES",
    "PAGE_SIZE",
    "aggregate_messages",
    "date_boundaries",
    "dedupe_by_id",
    "fetch_all",
    "filter_by_range",
]

Record = Dict[str, Any]

PAGE_SIZE = 100
MAX_PAGES = 20  # at most 2000 raw records per request

# Calendar dates from callers are always read in UTC-03:00 (Brasilia time),
# never in the server's local zone.
BOUNDARY_TZ = timezone(timedelta(hours=-3))

_START_OF_DAY = time(0, 0, 0, tzinfo=BOUNDARY_TZ)
_END_OF_DAY = time(23, 59, 59, tzinfo=BOUNDARY_TZ)
_CALENDAR_DATE = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)


class InvalidDateRange(ValueError):
    """A ``startDate``/``endDate`` value is not a ``YYYY-MM-DD`` calendar date."""


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


def fetch_all(
    page_fetch: Callable[[int], List[Record]],
    page_size: int = PAGE_SIZE,
    max_pages: int = MAX_PAGES,
) -> List[Record]:
    """Concatenate pages ``1..n`` returned by ``page_fetch``.

    Stops after ``max_pages`` pages or as soon as a page holds fewer than
    ``page_size`` records, whichever comes first.  Pages are requested one at
    a time.  Any exception raised by ``page_fetch`` aborts the loop and
    propagates unchanged; the records collected so far are discarded.
    """
    if page_size < 1:
        raise ValueError("page_size must be at least 1")
    if max_pages < 1:
        raise ValueError("max_pages must be at least 1")

    records: List[Record] = []
    page = 1
    while page <= max_pages:
        batch = page_fetch(page)
        logging.log_text(f"Fetched page {page} with {len(batch)} records", severity="DEBUG")
        records.extend(batch)
        if len(batch) < page_size:
            break
        page += 1

    logging.log_text(
        f"Aggregated {len(records)} records from {min(page, max_pages)} page(s)",
        severity="INFO",
    )
    return records


# ---------------------------------------------------------------------------
# Range filter
# ---------------------------------------------------------------------------


def _parse_calendar_date(value: str, field: str) -> date:
    message = f"{field} must be a YYYY-MM-DD date, got {value!r}"
    # date.fromisoformat alone also takes "20240110" and ISO week dates.
    if not isinstance(value, str) or not _CALENDAR_DATE.fullmatch(value):
        raise InvalidDateRange(message)
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidDateRange(message) from exc


def date_boundaries(
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Expand calendar dates into inclusive instants at UTC-03:00.

    ``start_date`` maps to 00:00:00 and ``end_date`` to 23:59:59 of the given
    day.  Falsy values yield ``None`` for that side of the range.
    """
    start = end = None
    if start_date:
        start = datetime.combine(_parse_calendar_date(start_date, "startDate"), _START_OF_DAY)
    if end_date:
        end = datetime.combine(_parse_calendar_date(end_date, "endDate"), _END_OF_DAY)
    return start, end


def _parse_created_at(value: Any) -> Optional[datetime]:
    """Return an aware datetime for ``value`` or ``None`` when unparseable."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def filter_by_range(
    records: List[Record],
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> List[Record]:
    """Keep records whose ``createdAt`` lies within the inclusive date range.

    Without either boundary the input list is returned as is.  Records with a
    missing or malformed ``createdAt`` are dropped.
    """
    if not start_date and not end_date:
        return records

    start, end = date_boundaries(start_date, end_date)

    kept: List[Record] = []
    malformed = 0
    for record in records:
        created_at = _parse_created_at(record.get("createdAt"))
        if created_at is None:
            malformed += 1
            continue
        if start is not None and created_at < start:
            continue
        if end is not None and created_at > end:
            continue
        kept.append(record)

    if malformed:
        logging.log_text(
            f"Excluded {malformed} record(s) with an unreadable createdAt",
            severity="DEBUG",
        )
    return kept


# ---------------------------------------------------------------------------
# Deduplicator
# ---------------------------------------------------------------------------


def dedupe_by_id(records: Iterable[Record]) -> List[Record]:
    """Return the first record seen for each ``id``, in first-seen order."""
    first_seen: "OrderedDict[Any, Record]" = OrderedDict()
    for record in records:
        key = record.get("id")
        if key not in first_seen:
            first_seen[key] = record
    return list(first_seen.values())


# ---------------------------------------------------------------------------
# Full pipeline
# ---------------------------------------------------------------------------


def aggregate_messages(
    page_fetch: Callable[[int], List[Record]],
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    *,
    page_size: int = PAGE_SIZE,
    max_pages: int = MAX_PAGES,
) -> Dict[str, List[Record]]:
    """Run fetch, filter and dedupe; return the ``{"data": [...]}`` payload.

    Boundary dates are validated before the first upstream call so a bad
    ``startDate``/``endDate`` never costs a round trip.
    """
    date_boundaries(start_date, end_date)

    records = fetch_all(page_fetch, page_size=page_size, max_pages=max_pages)
    filtered = filter_by_range(records, start_date, end_date)
    unique = dedupe_by_id(filtered)

    logging.log_text(
        f"Returning {len(unique)} of {len(records)} records "
        f"(range {start_date or '-'}..{end_date or '-'})",
        severity="INFO",
    )
    return {"data": unique}
