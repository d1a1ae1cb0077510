"""Parse external iCalendar feeds into advisory occupancy blocks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional
from urllib.parse import urlparse

from icalendar import Calendar

from rental_sync.errors import FeedUnavailable

DEFAULT_LABEL = "Reserved"


@dataclass(frozen=True, order=True)
class ExternalBlock:
    """
    An occupancy interval read from a third-party calendar feed.

    Field order doubles as the sort key, which keeps merging independent of the
    order in which feeds answered.
    """

    start: date
    end: date  # Exclusive
    property_code: str
    source: str
    uid: str
    label: str


def source_tag(url: str) -> str:
    """
    Derive a short source tag from a feed URL.

    Example:
        >>> source_tag("https://www.airbnb.fr/calendar/ical/41095534.ics?s=abc")
        'airbnb.fr'
    """
    host = urlparse(url).hostname or url
    return host[4:] if host.startswith("www.") else host


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise ValueError(f"Unsupported date value {value!r}")


def _event_dates(component: Any) -> Optional[tuple[date, date]]:
    dtstart = component.get("DTSTART")
    if dtstart is None:
        return None
    start = _as_date(dtstart.dt)

    dtend = component.get("DTEND")
    duration = component.get("DURATION")
    if dtend is not None:
        end = _as_date(dtend.dt)
    elif duration is not None:
        end = _as_date(dtstart.dt + duration.dt)
    else:
        end = start + timedelta(days=1)

    # Same-day or inverted timed events still occupy their start date
    if end <= start:
        end = start + timedelta(days=1)
    return start, end


def parse_feed(text: str, property_code: str, url: str) -> list[ExternalBlock]:
    """
    Parse one feed body into ExternalBlocks.

    Timed events are truncated to dates. Events without DTSTART and cancelled
    events are skipped.

    Args:
        text: Raw iCalendar body
        property_code: Property the feed belongs to
        url: Feed URL (used for the source tag and error reporting)

    Returns:
        list[ExternalBlock]: Blocks in feed order

    Raises:
        FeedUnavailable: If the body is empty or not a calendar
    """
    if not text or not text.strip():
        raise FeedUnavailable(url, "empty body")

    try:
        calendar = Calendar.from_ical(text)
    except ValueError as e:
        raise FeedUnavailable(url, f"malformed calendar: {e}") from e

    if calendar.name != "VCALENDAR":
        raise FeedUnavailable(url, f"unexpected root component {calendar.name}")

    source = source_tag(url)
    blocks = []
    for component in calendar.walk("VEVENT"):
        if str(component.get("STATUS", "")).upper() == "CANCELLED":
            continue
        try:
            dates = _event_dates(component)
        except (ValueError, TypeError) as e:
            raise FeedUnavailable(url, f"invalid event dates: {e}") from e
        if dates is None:
            continue

        start, end = dates
        blocks.append(
            ExternalBlock(
                start=start,
                end=end,
                property_code=property_code,
                source=source,
                uid=str(component.get("UID", "")),
                label=str(component.get("SUMMARY", "")) or DEFAULT_LABEL,
            )
        )
    return blocks
