"""Open/closed status and next-transition prediction for weekly schedules.

All computations happen on a single reference clock, passed in as ``tz``
(``Settings.reference_timezone`` at runtime, America/New_York when omitted).
A place's own timezone is NOT taken into account: the upstream payload does
not reliably carry one, so a business in another region is judged by the
reference clock. Naive datetimes passed as ``now`` are read as reference
local time.

Days use the Google Places convention throughout: 0 is Sunday, 6 is
Saturday.
"""

import logging
from datetime import datetime, time, timedelta
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from places_proxy.config import DEFAULT_REFERENCE_TIMEZONE
from places_proxy.models import NextRelevantTime, OpeningHours, PeriodEndpoint

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = ZoneInfo(DEFAULT_REFERENCE_TIMEZONE)

WEEKDAY_NAMES = (
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
)

OpeningHoursLike = Union[OpeningHours, dict, None]
EndpointLike = Union[PeriodEndpoint, dict]


def _resolve_now(
    now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None
) -> datetime:
    """Return ``now`` expressed on the reference clock."""
    tz = tz or DEFAULT_TIMEZONE
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        return now.replace(tzinfo=tz)
    return now.astimezone(tz)


def sunday_weekday(moment: datetime) -> int:
    """Weekday index with Sunday as 0."""
    return (moment.weekday() + 1) % 7


def parse_hhmm(value: str) -> int:
    """Convert a ``HHMM`` string to minutes since midnight."""
    return int(value[:2]) * 60 + int(value[2:])


def _coerce_hours(opening_hours: OpeningHoursLike) -> Optional[OpeningHours]:
    if opening_hours is None or isinstance(opening_hours, OpeningHours):
        return opening_hours
    try:
        return OpeningHours.model_validate(opening_hours)
    except ValidationError as e:
        logger.warning(f"[HOURS] Ignoring malformed opening hours: {e}")
        return None


def is_open_now(
    opening_hours: OpeningHoursLike,
    now: Optional[datetime] = None,
    tz: Optional[ZoneInfo] = None,
) -> bool:
    """Check whether any period covers ``now``.

    Periods are half-open: the opening minute counts as open, the closing
    minute as closed. A period whose close day differs from its open day
    spans midnight.
    """
    hours = _coerce_hours(opening_hours)
    if hours is None or not hours.periods:
        return False

    now = _resolve_now(now, tz)
    today = sunday_weekday(now)
    now_minutes = now.hour * 60 + now.minute

    for period in hours.periods:
        if period.close is None:
            # Always open
            return True

        open_day, close_day = period.open.day, period.close.day
        open_minutes = parse_hhmm(period.open.time)
        close_minutes = parse_hhmm(period.close.time)

        if open_day == close_day:
            if today == open_day and open_minutes <= now_minutes < close_minutes:
                return True
        elif (today == open_day and now_minutes >= open_minutes) or (
            today == close_day and now_minutes < close_minutes
        ):
            return True

    return False


def next_occurrence(
    endpoint: EndpointLike,
    now: Optional[datetime] = None,
    tz: Optional[ZoneInfo] = None,
) -> datetime:
    """Next instant matching a weekly day + time, strictly after ``now``.

    An occurrence at exactly the current minute rolls over to next week.
    """
    if not isinstance(endpoint, PeriodEndpoint):
        endpoint = PeriodEndpoint.model_validate(endpoint)

    now = _resolve_now(now, tz)
    days_ahead = (endpoint.day - sunday_weekday(now)) % 7
    if days_ahead == 0 and endpoint.time <= now.strftime("%H%M"):
        days_ahead += 7

    target_date = now.date() + timedelta(days=days_ahead)
    minutes = parse_hhmm(endpoint.time)
    return datetime.combine(
        target_date, time(minutes // 60, minutes % 60), tzinfo=now.tzinfo
    )


def compute_next_label(
    target: datetime,
    now: Optional[datetime] = None,
    tz: Optional[ZoneInfo] = None,
) -> str:
    """Friendly label for when ``target`` happens relative to ``now``.

    Uses the calendar-day difference, not elapsed hours: 23:00 today to
    01:00 the next day is "tomorrow".
    """
    now = _resolve_now(now, tz)
    target = _resolve_now(target, tz)
    diff_days = (target.date() - now.date()).days

    if diff_days <= 0:
        if target.hour < 12:
            return "this morning"
        if target.hour < 18:
            return "this afternoon"
        return "tonight"
    if diff_days == 1:
        return "tomorrow"
    if diff_days < 7:
        target_day = sunday_weekday(target)
        weekday_name = WEEKDAY_NAMES[target_day]
        # Same or earlier index means the day falls in the following week.
        if target_day > sunday_weekday(now):
            return f"this {weekday_name}"
        return f"next {weekday_name}"
    return f"in {diff_days} days"


def format_clock_time(moment: datetime) -> str:
    return moment.strftime("%I:%M %p")


def calculate_next_relevant_time(
    record: Optional[dict[str, Any]],
    now: Optional[datetime] = None,
    tz: Optional[ZoneInfo] = None,
) -> NextRelevantTime:
    """Compute open state and the next open/close transition of a place.

    Never raises: a record without usable opening hours yields the neutral
    result (closed, no next date, empty strings).
    """
    hours = _coerce_hours((record or {}).get("opening_hours"))
    if hours is None or not hours.periods:
        return NextRelevantTime()

    now = _resolve_now(now, tz)
    open_now = is_open_now(hours, now, tz)

    candidates = []
    for period in hours.periods:
        candidates.append(next_occurrence(period.open, now, tz))
        if period.close is not None:
            candidates.append(next_occurrence(period.close, now, tz))
    next_date = min(candidates)
    next_label = compute_next_label(next_date, now, tz)

    formatted = format_clock_time(next_date)
    if open_now:
        human_string = f"Open until {formatted} today"
    else:
        human_string = f"Closed. Opening at {formatted} {next_label}"

    return NextRelevantTime(
        open_now=open_now,
        next_date=next_date,
        next_label=next_label,
        human_string=human_string,
    )


def refresh_open_now(
    record: dict[str, Any],
    now: Optional[datetime] = None,
    tz: Optional[ZoneInfo] = None,
) -> dict[str, Any]:
    """Overwrite the derived ``open_now`` flags of a record in place.

    ``current_opening_hours`` gets the value computed from the regular
    ``opening_hours`` periods. Records without ``opening_hours`` are left as is.
    """
    hours = record.get("opening_hours")
    if not isinstance(hours, dict):
        return record

    open_now = is_open_now(hours, now, tz)
    hours["open_now"] = open_now

    current = record.get("current_opening_hours")
    if isinstance(current, dict):
        current["open_now"] = open_now
    return record
