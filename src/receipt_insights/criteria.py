"""
Normalization of raw search parameters into SearchCriteria.

Malformed input never raises: unparseable values fall back to the most
permissive default so a search always returns a (possibly empty) page.
"""

import logging
import re
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .models import SearchCriteria, normalize_categories

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

TRUE_VALUES = {"true", "1", "yes", "on"}

# Explicit ranges: "2024-01-01/2024-01-31", "01/01/2024 - 01/31/2024", ...
RANGE_SEPARATORS = [" - ", " to ", ",", "/"]
DAY_FORMATS = ["%Y-%m-%d", "%m/%d/%Y"]


def _month_start(day: date) -> date:
    return day.replace(day=1)


def _next_month_start(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def _previous_month_start(day: date) -> date:
    if day.month == 1:
        return date(day.year - 1, 12, 1)
    return date(day.year, day.month - 1, 1)


# Each preset maps today's local date to [first day, day after last day).
DATE_RANGE_PRESETS = {
    "today": lambda d: (d, d + timedelta(days=1)),
    "yesterday": lambda d: (d - timedelta(days=1), d),
    "last7days": lambda d: (d - timedelta(days=6), d + timedelta(days=1)),
    "last30days": lambda d: (d - timedelta(days=29), d + timedelta(days=1)),
    "thisweek": lambda d: (d - timedelta(days=d.weekday()), d + timedelta(days=7 - d.weekday())),
    "thismonth": lambda d: (_month_start(d), _next_month_start(d)),
    "lastmonth": lambda d: (_previous_month_start(d), _month_start(d)),
    "thisyear": lambda d: (date(d.year, 1, 1), date(d.year + 1, 1, 1)),
}


def to_epoch_millis(moment: datetime) -> int:
    return (moment - EPOCH) // timedelta(milliseconds=1)


def resolve_time_zone(time_zone_id: Optional[str]) -> ZoneInfo:
    """Return the named IANA zone, falling back to UTC."""
    if time_zone_id:
        try:
            return ZoneInfo(time_zone_id.strip())
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown time zone {time_zone_id!r}, using UTC")
    return ZoneInfo("UTC")


def _parse_day(value: str) -> Optional[date]:
    for fmt in DAY_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue
    return None


def _parse_explicit_range(value: str) -> Optional[Tuple[date, date]]:
    for separator in RANGE_SEPARATORS:
        parts = value.split(separator)
        if len(parts) != 2:
            continue
        start, end = _parse_day(parts[0]), _parse_day(parts[1])
        if start and end:
            return start, end
    return None


def resolve_date_range(
    date_range: Optional[str], tz: ZoneInfo, now: Optional[datetime] = None
) -> Tuple[Optional[int], Optional[int]]:
    """Turn a preset name or explicit day range into ``[start, end)`` epoch milliseconds.

    Presets are resolved against the current local date in ``tz``. Explicit
    ranges cover whole days, both end days included. Anything else means no
    date bound.
    """
    if not date_range or not date_range.strip():
        return None, None

    preset = re.sub(r"[\s_\-]", "", date_range).lower()
    if preset == "alltime":
        return None, None

    if preset in DATE_RANGE_PRESETS:
        today = (now or datetime.now(timezone.utc)).astimezone(tz).date()
        first_day, after_last_day = DATE_RANGE_PRESETS[preset](today)
    else:
        explicit = _parse_explicit_range(date_range)
        if explicit is None:
            logger.warning(f"Ignoring unrecognized date range {date_range!r}")
            return None, None
        first_day, last_day = explicit
        if first_day > last_day:
            logger.warning(f"Ignoring date range {date_range!r}: start is after end")
            return None, None
        try:
            after_last_day = last_day + timedelta(days=1)
        except OverflowError:
            logger.warning(f"Ignoring date range {date_range!r}: end is out of range")
            return None, None

    try:
        start = datetime.combine(first_day, time.min, tzinfo=tz)
        end = datetime.combine(after_last_day, time.min, tzinfo=tz)
        return to_epoch_millis(start), to_epoch_millis(end)
    except (OverflowError, ValueError) as e:
        logger.warning(f"Ignoring date range {date_range!r}: {e}")
        return None, None


def parse_price(value: Any) -> Optional[Decimal]:
    """Parse a user-entered price bound; None if absent or unusable."""
    if value is None:
        return None
    cleaned = str(value).strip().replace("$", "").replace(",", "")
    if not cleaned:
        return None
    try:
        price = Decimal(cleaned)
    except InvalidOperation:
        logger.debug(f"Ignoring unparseable price bound {value!r}")
        return None
    if not price.is_finite() or price < 0:
        logger.debug(f"Ignoring out of range price bound {value!r}")
        return None
    return price


def parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return value is not None and str(value).strip().lower() in TRUE_VALUES


def parse_categories(value: Any):
    """Split a comma separated category parameter. Empty input means no filter."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.split(",")
    categories = normalize_categories(value)
    return categories or None


def parse_store(value: Any) -> Optional[str]:
    if value is None:
        return None
    store = str(value).strip().lower()
    return store or None


def parse_search_criteria(
    raw_params: Mapping[str, Any], now: Optional[datetime] = None
) -> SearchCriteria:
    """Build SearchCriteria from raw request parameters.

    Args:
        raw_params: Parameter mapping (timeZoneId, category, dateRange, store,
            min, max, isNewSearch, isPageLoad, pageToken)
        now: Reference time for date presets, defaults to the current time

    Returns:
        Normalized SearchCriteria
    """
    tz = resolve_time_zone(raw_params.get("timeZoneId"))
    start, end = resolve_date_range(raw_params.get("dateRange"), tz, now)

    min_price = parse_price(raw_params.get("min"))
    page_token = raw_params.get("pageToken") or None

    return SearchCriteria(
        time_zone_id=tz.key,
        categories=parse_categories(raw_params.get("category")),
        start_timestamp=start,
        end_timestamp=end,
        store=parse_store(raw_params.get("store")),
        min_price=min_price if min_price is not None else Decimal("0"),
        max_price=parse_price(raw_params.get("max")),
        is_new_search=parse_flag(raw_params.get("isNewSearch")),
        # Older clients send isNewLoad
        is_page_load=parse_flag(raw_params.get("isPageLoad")) or parse_flag(raw_params.get("isNewLoad")),
        page_token=str(page_token) if page_token else None,
    )
