"""Temporal model: date ranges, column grids and bar geometry.

Everything here is a pure function of its inputs. Weekend policy only affects
calculate_work_days(); all other date math uses plain calendar days.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, timedelta

from .models import DateRange, DateSpan, ScheduleItem, ViewMode, WeekendSettings

MIN_BAR_WIDTH = 20  # px, keeps every bar visible and clickable

BASE_COLUMN_WIDTHS: dict[ViewMode, int] = {
    ViewMode.DAY: 40,
    ViewMode.WEEK: 80,
    ViewMode.MONTH: 120,
}

ZOOM_LEVELS: tuple[float, ...] = (0.5, 0.75, 1.0, 1.25, 1.5, 2.0)
DEFAULT_ZOOM_INDEX = 2  # 1x

# Padding (days) added around the items' envelope, per view mode
RANGE_START_PADDING: dict[ViewMode, int] = {
    ViewMode.DAY: 14,
    ViewMode.WEEK: 21,
    ViewMode.MONTH: 30,
}
RANGE_END_PADDING: dict[ViewMode, int] = {
    ViewMode.DAY: 30,
    ViewMode.WEEK: 60,
    ViewMode.MONTH: 90,
}

# Window used when there is nothing to show
EMPTY_RANGE_DAYS_BEFORE = 14
MIN_MONTHS_AHEAD = 3

MONTH_ABBREVIATIONS = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)

SATURDAY = 5
SUNDAY = 6


@dataclass(frozen=True, slots=True)
class Column:
    """One header column of the timeline grid."""

    date: date
    label: str
    is_today: bool
    is_weekend: bool


@dataclass(frozen=True, slots=True)
class ColumnGroup:
    """Consecutive columns sharing a month, for the upper header row."""

    label: str
    columns: tuple[Column, ...]


@dataclass(frozen=True, slots=True)
class BarGeometry:
    """Horizontal placement of an item's bar, in pixels."""

    left: float
    width: float

    @property
    def right(self) -> float:
        return self.left + self.width


def days_between(start: date, end: date) -> int:
    """Inclusive calendar days between two dates, order-independent."""
    return abs((end - start).days) + 1


def is_weekend(day: date) -> bool:
    return day.weekday() in (SATURDAY, SUNDAY)


def iso_week_number(day: date) -> int:
    """ISO 8601 week number (weeks start Monday, week 1 holds the first Thursday)."""
    return day.isocalendar()[1]


def add_months(day: date, months: int) -> date:
    """Shift a date by whole months, clamping the day to the target month's length."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def _column_label(day: date, view_mode: ViewMode) -> str:
    if view_mode is ViewMode.DAY:
        return str(day.day)
    if view_mode is ViewMode.WEEK:
        return f"W{iso_week_number(day)}"
    return MONTH_ABBREVIATIONS[day.month - 1]


def generate_columns(
    date_range: DateRange, view_mode: ViewMode, *, today: date | None = None
) -> list[Column]:
    """Build the column grid for a date range.

    One column per day, week or month, starting at range.start and stopping at
    the last step that does not pass range.end. Month steps keep the starting
    day-of-month (clamped), so dates are strictly increasing.

    Args:
        date_range: Inclusive range to cover
        view_mode: Column granularity
        today: Reference date for the is_today flag (defaults to date.today())

    Returns:
        Materialized list of columns
    """
    today = today or date.today()  # noqa: DTZ011
    columns: list[Column] = []

    step = 0
    current = date_range.start
    while current <= date_range.end:
        columns.append(
            Column(
                date=current,
                label=_column_label(current, view_mode),
                is_today=current == today,
                is_weekend=is_weekend(current),
            )
        )
        step += 1
        if view_mode is ViewMode.DAY:
            current = date_range.start + timedelta(days=step)
        elif view_mode is ViewMode.WEEK:
            current = date_range.start + timedelta(weeks=step)
        else:
            current = add_months(date_range.start, step)

    return columns


def group_columns_by_month(columns: Sequence[Column]) -> list[ColumnGroup]:
    """Group consecutive columns by calendar month ("Mar 2026")."""
    groups: list[ColumnGroup] = []
    current_label: str | None = None
    current: list[Column] = []

    for column in columns:
        label = f"{MONTH_ABBREVIATIONS[column.date.month - 1]} {column.date.year}"
        if label != current_label and current:
            groups.append(ColumnGroup(label=current_label or label, columns=tuple(current)))
            current = []
        current_label = label
        current.append(column)

    if current and current_label is not None:
        groups.append(ColumnGroup(label=current_label, columns=tuple(current)))
    return groups


def pixels_per_day(date_range: DateRange, total_width_px: float) -> float:
    """Horizontal scale of the chart: the whole range spans total_width_px."""
    return total_width_px / days_between(date_range.start, date_range.end)


def days_per_pixel(date_range: DateRange, total_width_px: float) -> float:
    """Inverse scale used to turn pointer deltas into day deltas."""
    if total_width_px <= 0:
        return 0.0
    return days_between(date_range.start, date_range.end) / total_width_px


def calculate_bar_position(
    item: ScheduleItem | DateSpan,
    date_range: DateRange,
    total_width_px: float,
    *,
    min_width: float = MIN_BAR_WIDTH,
) -> BarGeometry:
    """Place an item's bar inside the chart.

    left is the number of days from range.start to the item's start, width the
    item's inclusive duration (at least one day), both scaled by pixels-per-day.
    The width never drops below min_width.
    """
    span = item.span if isinstance(item, ScheduleItem) else item
    scale = pixels_per_day(date_range, total_width_px)

    offset_days = (span.start - date_range.start).days
    duration_days = max((span.end - span.start).days + 1, 1)

    return BarGeometry(
        left=offset_days * scale,
        width=max(duration_days * scale, min_width),
    )


def calculate_work_days(start: date, end: date, settings: WeekendSettings) -> int:
    """Count working days in an inclusive span under a weekend policy."""
    if settings.include_saturday and settings.include_sunday:
        return days_between(start, end)

    if end < start:
        start, end = end, start

    days = 0
    current = start
    while current <= end:
        weekday = current.weekday()
        if weekday == SATURDAY:
            counted = settings.include_saturday
        elif weekday == SUNDAY:
            counted = settings.include_sunday
        else:
            counted = True
        if counted:
            days += 1
        current += timedelta(days=1)

    return days


def default_date_range(today: date | None = None) -> DateRange:
    """Window shown when there are no items: two weeks back, three months ahead."""
    today = today or date.today()  # noqa: DTZ011
    return DateSpan(
        start=today - timedelta(days=EMPTY_RANGE_DAYS_BEFORE),
        end=add_months(today, MIN_MONTHS_AHEAD),
    )


def compute_date_range(
    items: Iterable[ScheduleItem], view_mode: ViewMode, *, today: date | None = None
) -> DateRange:
    """Chart window covering all items, padded per view mode.

    The end is extended to at least three months from today so the grid always
    shows some future.
    """
    today = today or date.today()  # noqa: DTZ011
    spans = [item.span for item in items]
    if not spans:
        return default_date_range(today)

    min_start = min(min(span.start, span.end) for span in spans)
    max_end = max(max(span.start, span.end) for span in spans)

    start = min_start - timedelta(days=RANGE_START_PADDING[view_mode])
    end = max(
        max_end + timedelta(days=RANGE_END_PADDING[view_mode]),
        add_months(today, MIN_MONTHS_AHEAD),
    )
    return DateSpan(start=start, end=end)


def zoom_level(zoom_index: int, levels: Sequence[float] = ZOOM_LEVELS) -> float:
    """Zoom multiplier for an index, clamped to the available levels."""
    return levels[max(0, min(zoom_index, len(levels) - 1))]


def column_width(
    view_mode: ViewMode,
    zoom: float = 1.0,
    base_widths: Mapping[ViewMode, int] = BASE_COLUMN_WIDTHS,
) -> int:
    """Pixel width of one column at a zoom multiplier."""
    return int(round(base_widths[view_mode] * zoom))
