"""Tests for the temporal model: columns, bar geometry and work days."""

from datetime import date, timedelta

import pytest

from ganttcore.models import DateSpan, ViewMode, WeekendSettings
from ganttcore.temporal import (
    MIN_BAR_WIDTH,
    add_months,
    calculate_bar_position,
    calculate_work_days,
    column_width,
    compute_date_range,
    days_between,
    days_per_pixel,
    generate_columns,
    group_columns_by_month,
    iso_week_number,
    pixels_per_day,
    zoom_level,
)
from tests.conftest import item

MARCH_1_10 = DateSpan(date(2026, 3, 1), date(2026, 3, 10))


class TestGenerateColumns:
    """Column grids per view mode."""

    def test_day_view_scenario(self) -> None:
        """Ten days at 40px give ten 40px columns labeled by day of month."""
        columns = generate_columns(MARCH_1_10, ViewMode.DAY, today=date(2026, 3, 4))

        assert len(columns) == 10
        assert column_width(ViewMode.DAY) == 40
        assert columns[0].label == "1"
        assert columns[9].label == "10"
        assert [c.is_today for c in columns].index(True) == 3

    def test_weekend_flags(self) -> None:
        """2026-03-01 is a Sunday and 2026-03-07 a Saturday."""
        columns = generate_columns(MARCH_1_10, ViewMode.DAY, today=date(2026, 1, 1))

        assert columns[0].is_weekend
        assert not columns[1].is_weekend
        assert columns[6].is_weekend

    def test_week_view_steps_seven_days(self) -> None:
        """Week columns start at range.start and carry ISO week labels."""
        date_range = DateSpan(date(2026, 3, 1), date(2026, 3, 31))
        columns = generate_columns(date_range, ViewMode.WEEK, today=date(2026, 1, 1))

        assert [c.date.day for c in columns] == [1, 8, 15, 22, 29]
        assert columns[0].label == f"W{iso_week_number(date(2026, 3, 1))}"

    def test_month_view_clamps_day_of_month(self) -> None:
        """Starting on the 31st steps through each month's last day."""
        date_range = DateSpan(date(2026, 1, 31), date(2026, 5, 1))
        columns = generate_columns(date_range, ViewMode.MONTH, today=date(2026, 1, 1))

        assert [c.date for c in columns] == [
            date(2026, 1, 31),
            date(2026, 2, 28),
            date(2026, 3, 31),
            date(2026, 4, 30),
        ]
        assert [c.label for c in columns] == ["Jan", "Feb", "Mar", "Apr"]

    @pytest.mark.parametrize("view_mode", list(ViewMode))
    def test_dates_strictly_increase_and_bound_range(self, view_mode: ViewMode) -> None:
        """First column is range.start; no column passes range.end."""
        date_range = DateSpan(date(2025, 11, 17), date(2026, 6, 3))
        columns = generate_columns(date_range, view_mode, today=date(2026, 1, 1))
        dates = [c.date for c in columns]

        assert dates[0] == date_range.start
        assert dates[-1] <= date_range.end
        assert all(a < b for a, b in zip(dates, dates[1:]))

    def test_single_day_range(self) -> None:
        """A one-day range still yields one column."""
        day = date(2026, 3, 5)
        assert len(generate_columns(DateSpan(day, day), ViewMode.DAY, today=day)) == 1


class TestIsoWeek:
    """ISO week numbers at year boundaries."""

    def test_year_boundaries(self) -> None:
        assert iso_week_number(date(2021, 1, 1)) == 53
        assert iso_week_number(date(2024, 12, 30)) == 1
        assert iso_week_number(date(2026, 12, 31)) == 53
        assert iso_week_number(date(2026, 1, 1)) == 1


class TestBarPosition:
    """Bar geometry."""

    def test_scenario(self) -> None:
        """3-day item two days into a 10-day, 400px range."""
        task = item("t", "2026-03-03", "2026-03-05")
        bar = calculate_bar_position(task, MARCH_1_10, 400)

        assert pixels_per_day(MARCH_1_10, 400) == 40
        assert bar.left == 80
        assert bar.width == 120
        assert bar.right == 200

    def test_minimum_width(self) -> None:
        """A one-day bar on a wide range is floored to the minimum width."""
        date_range = DateSpan(date(2026, 1, 1), date(2026, 12, 31))
        bar = calculate_bar_position(DateSpan(date(2026, 3, 3), date(2026, 3, 3)), date_range, 365)

        assert bar.width == MIN_BAR_WIDTH

    @pytest.mark.parametrize("offset", [0, 1, 5, 9])
    @pytest.mark.parametrize("length", [0, 1, 4])
    def test_left_non_negative_and_width_floor(self, offset: int, length: int) -> None:
        """Items starting inside the range never get negative left or tiny width."""
        start = MARCH_1_10.start + timedelta(days=offset)
        span = DateSpan(start, start + timedelta(days=length))
        bar = calculate_bar_position(span, MARCH_1_10, 120)

        assert bar.left >= 0
        assert bar.width >= MIN_BAR_WIDTH

    def test_days_per_pixel(self) -> None:
        assert days_per_pixel(MARCH_1_10, 400) == pytest.approx(0.025)
        assert days_per_pixel(MARCH_1_10, 0) == 0.0


class TestWorkDays:
    """Work-day counting under weekend policies."""

    MONDAY = date(2026, 3, 2)
    SUNDAY = date(2026, 3, 8)

    def test_all_days_count(self) -> None:
        assert calculate_work_days(self.MONDAY, self.SUNDAY, WeekendSettings()) == 7

    def test_excluding_saturday(self) -> None:
        settings = WeekendSettings(include_saturday=False)
        assert calculate_work_days(self.MONDAY, self.SUNDAY, settings) == 6

    def test_excluding_both(self) -> None:
        settings = WeekendSettings(include_saturday=False, include_sunday=False)
        assert calculate_work_days(self.MONDAY, self.SUNDAY, settings) == 5

    def test_reversed_span(self) -> None:
        settings = WeekendSettings(include_saturday=False, include_sunday=False)
        assert calculate_work_days(self.SUNDAY, self.MONDAY, settings) == 5

    def test_days_between_is_inclusive(self) -> None:
        assert days_between(self.MONDAY, self.MONDAY) == 1
        assert days_between(self.SUNDAY, self.MONDAY) == 7


class TestDateRange:
    """Chart window padding."""

    def test_empty(self) -> None:
        """No items: two weeks back, three months ahead."""
        date_range = compute_date_range([], ViewMode.DAY, today=date(2026, 3, 15))

        assert date_range == DateSpan(date(2026, 3, 1), date(2026, 6, 15))

    def test_day_padding_extends_to_three_months(self) -> None:
        items = [item("t", "2026-03-03", "2026-03-05")]
        date_range = compute_date_range(items, ViewMode.DAY, today=date(2026, 3, 1))

        assert date_range.start == date(2026, 2, 17)
        assert date_range.end == date(2026, 6, 1)

    def test_week_padding(self) -> None:
        items = [item("t", "2026-03-03", "2026-03-05")]
        date_range = compute_date_range(items, ViewMode.WEEK, today=date(2026, 3, 1))

        assert date_range.start == date(2026, 2, 10)

    def test_month_padding_past_minimum(self) -> None:
        items = [item("t", "2026-09-01", "2026-09-30")]
        date_range = compute_date_range(items, ViewMode.MONTH, today=date(2026, 3, 1))

        assert date_range.start == date(2026, 8, 2)
        assert date_range.end == date(2026, 12, 29)


class TestZoomAndWidths:
    """Zoom levels and column widths."""

    def test_column_widths(self) -> None:
        assert column_width(ViewMode.WEEK, 1.5) == 120
        assert column_width(ViewMode.MONTH, 0.75) == 90
        assert column_width(ViewMode.DAY, 1.25) == 50

    def test_zoom_level_clamped(self) -> None:
        assert zoom_level(2) == 1.0
        assert zoom_level(-3) == 0.5
        assert zoom_level(99) == 2.0


class TestHelpers:
    """Month arithmetic and header grouping."""

    def test_add_months(self) -> None:
        assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)
        assert add_months(date(2026, 11, 15), 3) == date(2027, 2, 15)

    def test_group_columns_by_month(self) -> None:
        date_range = DateSpan(date(2026, 2, 27), date(2026, 3, 2))
        groups = group_columns_by_month(generate_columns(date_range, ViewMode.DAY))

        assert [(g.label, len(g.columns)) for g in groups] == [("Feb 2026", 2), ("Mar 2026", 2)]
