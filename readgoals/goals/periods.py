"""Period boundaries, period keys and day arithmetic.

All periods are local-calendar, half-open ``[start, end)`` intervals whose
bounds are naive local datetimes at midnight.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Union

from readgoals._util import parse_timestamp

from .models import CustomGoal, CustomSelection, GoalPeriod, PeriodSelection

logger = logging.getLogger(__name__)

SEASON_NAMES = ("Winter", "Spring", "Summer", "Autumn")

MS_PER_DAY = 24 * 60 * 60 * 1000


# ----- date helpers -----


def start_of_day(dt: datetime) -> datetime:
    return datetime(dt.year, dt.month, dt.day)


def format_date(dt: Union[date, datetime]) -> str:
    """Format as YYYY-MM-DD (local)."""
    return f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}"


def parse_date(value: object) -> Optional[datetime]:
    """Parse a local YYYY-MM-DD date into midnight of that day."""
    if not isinstance(value, str):
        return None
    parts = value.split("-")
    if len(parts) != 3:
        return None
    year, month, day = (_to_int(part) for part in parts)
    if not year or not month or not day:
        return None
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def _to_int(part: str) -> Optional[int]:
    part = part.strip()
    # str.isdigit() also accepts digits such as "²" that int() rejects
    return int(part) if part.isascii() and part.isdigit() else None


def season_index(dt: datetime) -> int:
    return (dt.month - 1) // 3


def season_range(year: int, index: int) -> tuple[datetime, datetime]:
    start = datetime(year, index * 3 + 1, 1)
    return start, _add_months(start, 3)


def month_range(year: int, month: int) -> tuple[datetime, datetime]:
    """Range of a month (1-12)."""
    start = datetime(year, month, 1)
    return start, _add_months(start, 1)


def _add_months(dt: datetime, months: int) -> datetime:
    """First day of the month ``months`` away from ``dt``'s month."""
    year, month_index = divmod(dt.year * 12 + dt.month - 1 + months, 12)
    return datetime(year, month_index + 1, 1)


def days_into_year(now: datetime) -> int:
    """Day of the year, 1-indexed (Jan 1 = 1)."""
    return (start_of_day(now) - datetime(now.year, 1, 1)).days + 1


def days_in_year(now: datetime) -> int:
    year = now.year
    return 366 if (year % 4 == 0 and year % 100 != 0) or year % 400 == 0 else 365


def end_of_year(year: int) -> str:
    return f"{year}-12-31"


def is_within_range(timestamp: object, start: datetime, end: datetime) -> bool:
    """True if an ISO timestamp falls in ``[start, end)``."""
    dt = parse_timestamp(timestamp)
    if dt is None:
        return False
    return start <= dt < end


def calculate_days_remaining(deadline: Union[str, datetime], now: datetime) -> int:
    """
    Days from ``now`` until ``deadline``, inclusive on both ends.

    Example:
        now = Jan 5, deadline = Jan 8 -> 4 (the 5th, 6th, 7th and 8th)

    Returns 0 for an unparseable deadline or one that has passed.
    """
    end = deadline if isinstance(deadline, datetime) else parse_date(deadline)
    if end is None:
        return 0

    end_midnight = start_of_day(end) + timedelta(days=1)
    diff = end_midnight - start_of_day(now)
    return max(0, round(diff.total_seconds() * 1000 / MS_PER_DAY))


def days_remaining_in_period(period_end: datetime, now: datetime) -> int:
    """Whole days left before an exclusive period end, counting today."""
    diff = start_of_day(period_end) - start_of_day(now)
    return max(0, round(diff.total_seconds() * 1000 / MS_PER_DAY))


def expected_progress_percent(start: datetime, end: datetime, now: datetime) -> float:
    """Elapsed share of ``[start, end)`` as a percentage."""
    total = (end - start).total_seconds()
    if total <= 0:
        return 0.0
    elapsed = min(max((now - start).total_seconds(), 0.0), total)
    return elapsed / total * 100


# ----- period keys -----


def build_year_key(year: int) -> str:
    return f"{year}"


def build_season_key(year: int, index: int) -> str:
    name = SEASON_NAMES[index] if 0 <= index < len(SEASON_NAMES) else "Unknown"
    return f"{year}-{name}"


def build_month_key(year: int, month: int) -> str:
    """Key for a month (1-12), e.g. ``2024-03``."""
    return f"{year}-{month:02d}"


def build_today_key(dt: datetime) -> str:
    return format_date(dt)


def parse_year_key(period_key: str) -> Optional[int]:
    year = _to_int(period_key)
    # year + 1 must stay representable for the exclusive end
    if year is None or not 1 <= year < 9999:
        return None
    return year


def parse_season_key(period_key: str) -> Optional[tuple[int, int]]:
    """Parse ``YYYY-Season`` into (year, season index)."""
    year_part, _, season_part = period_key.partition("-")
    year = parse_year_key(year_part)
    if year is None or season_part not in SEASON_NAMES:
        return None
    return year, SEASON_NAMES.index(season_part)


def parse_month_key(period_key: str) -> Optional[tuple[int, int]]:
    """Parse ``YYYY-MM`` into (year, month 1-12)."""
    year_part, _, month_part = period_key.partition("-")
    year = parse_year_key(year_part)
    month = _to_int(month_part)
    if year is None or month is None or not 1 <= month <= 12:
        return None
    return year, month


def parse_today_key(period_key: str) -> Optional[datetime]:
    return parse_date(period_key)


def _month_label(start: datetime) -> str:
    return f"{start:%B} {start.year}"


def _day_label(start: datetime) -> str:
    # %-d is not portable
    return f"{start:%b} {start.day}, {start.year}"


def _year_period(year: int) -> GoalPeriod:
    return GoalPeriod(
        goal_type="year",
        period_key=build_year_key(year),
        label=f"{year}",
        start=datetime(year, 1, 1),
        end=datetime(year + 1, 1, 1),
    )


def _season_period(year: int, index: int) -> GoalPeriod:
    start, end = season_range(year, index)
    return GoalPeriod(
        goal_type="season",
        period_key=build_season_key(year, index),
        label=f"{SEASON_NAMES[index]} {year}",
        start=start,
        end=end,
    )


def _month_period(year: int, month: int) -> GoalPeriod:
    start, end = month_range(year, month)
    return GoalPeriod(
        goal_type="month",
        period_key=build_month_key(year, month),
        label=_month_label(start),
        start=start,
        end=end,
    )


def _day_period(day: datetime) -> GoalPeriod:
    start = start_of_day(day)
    return GoalPeriod(
        goal_type="today",
        period_key=build_today_key(start),
        label=_day_label(start),
        start=start,
        end=start + timedelta(days=1),
    )


def custom_period(goal: CustomGoal) -> Optional[GoalPeriod]:
    """Period of a custom goal; its end date is inclusive."""
    start = parse_date(goal.start_date)
    end = parse_date(goal.end_date)
    if start is None or end is None:
        return None
    return GoalPeriod(
        goal_type="custom",
        period_key=goal.id,
        label=goal.name,
        start=start,
        end=end + timedelta(days=1),
    )


def resolve_period(
    selection: Union[PeriodSelection, CustomSelection],
    custom_goals: Iterable[CustomGoal] = (),
) -> Optional[GoalPeriod]:
    """
    Resolve a goal selection into a concrete period.

    Args:
        selection: Active or requested goal selection
        custom_goals: Custom goals to look up custom selections in

    Returns:
        GoalPeriod, or None if the key is malformed or the custom goal is unknown
    """
    if selection.goal_type == "custom":
        goal = next((g for g in custom_goals if g.id == selection.custom_id), None)
        return custom_period(goal) if goal else None

    key = selection.period_key
    if selection.goal_type == "year":
        year = parse_year_key(key)
        return _year_period(year) if year is not None else None

    if selection.goal_type == "season":
        parsed = parse_season_key(key)
        return _season_period(*parsed) if parsed else None

    if selection.goal_type == "month":
        parsed = parse_month_key(key)
        return _month_period(*parsed) if parsed else None

    if selection.goal_type == "today":
        day = parse_today_key(key)
        return _day_period(day) if day else None

    logger.debug(f"Unknown goal type: {selection.goal_type}")
    return None


def get_current_period_key(goal_type: str, now: datetime) -> str:
    if goal_type == "year":
        return build_year_key(now.year)
    if goal_type == "season":
        return build_season_key(now.year, season_index(now))
    if goal_type == "month":
        return build_month_key(now.year, now.month)
    return build_today_key(now)


def get_recent_periods(goal_type: str, count: int, now: datetime) -> list[GoalPeriod]:
    """
    The ``count`` most recent periods of a type, newest first.

    Steps back one calendar unit at a time from the period containing
    ``now``, rolling over year boundaries. The walk stops early at year 1,
    so fewer than ``count`` periods may come back.
    """
    periods = []
    days_since_min = (start_of_day(now) - datetime.min).days

    for i in range(count):
        if goal_type == "year":
            year = now.year - i
            if year < 1:
                break
            periods.append(_year_period(year))
        elif goal_type == "season":
            year_offset, index = divmod(season_index(now) - i, 4)
            if now.year + year_offset < 1:
                break
            periods.append(_season_period(now.year + year_offset, index))
        elif goal_type == "month":
            year, month_index = divmod(now.year * 12 + now.month - 1 - i, 12)
            if year < 1:
                break
            periods.append(_month_period(year, month_index + 1))
        else:
            if i > days_since_min:
                break
            periods.append(_day_period(start_of_day(now) - timedelta(days=i)))

    return periods
