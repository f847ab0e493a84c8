"""Tests for due-date window resolution."""

from datetime import date

import pytest

from barulogix.api.schemas.common import DateFilter
from barulogix.services.date_ranges import DateFilterType, DateRange, resolve_date_range
from barulogix.services.errors import ValidationError

TODAY = date(2026, 2, 20)


class TestResolveDateRange:
    """Tests for resolve_date_range()."""

    def test_all_is_unbounded(self):
        date_range = resolve_date_range(DateFilterType.ALL, today=TODAY)

        assert date_range == DateRange()
        assert not date_range.is_bounded

    def test_last_days_defaults_to_seven(self):
        date_range = resolve_date_range("lastDays", today=TODAY)

        assert date_range.start == date(2026, 2, 13)
        assert date_range.end is None

    def test_last_days_custom(self):
        assert resolve_date_range("lastDays", today=TODAY, last_days=30).start == date(
            2026, 1, 21
        )

    @pytest.mark.parametrize("days", [0, 31, -1])
    def test_last_days_out_of_range(self, days):
        with pytest.raises(ValidationError):
            resolve_date_range("lastDays", today=TODAY, last_days=days)

    def test_month_covers_whole_month(self):
        date_range = resolve_date_range("month", today=TODAY, month=2, year=2024)

        assert date_range.start == date(2024, 2, 1)
        assert date_range.end == date(2024, 2, 29)

    def test_month_defaults_to_current(self):
        date_range = resolve_date_range("month", today=TODAY)

        assert date_range.start == date(2026, 2, 1)
        assert date_range.end == date(2026, 2, 28)

    def test_invalid_month(self):
        with pytest.raises(ValidationError, match="Mes inválido"):
            resolve_date_range("month", today=TODAY, month=13)

    @pytest.mark.parametrize("year", [0, -5, 1999, 2101, 10000])
    def test_invalid_year(self, year):
        with pytest.raises(ValidationError, match="Año inválido"):
            resolve_date_range("month", today=TODAY, month=2, year=year)

    def test_range_is_inclusive(self):
        date_range = resolve_date_range(
            "range", today=TODAY, start=date(2026, 1, 1), end=date(2026, 1, 31)
        )

        assert date_range.contains(date(2026, 1, 1))
        assert date_range.contains(date(2026, 1, 31))
        assert not date_range.contains(date(2026, 2, 1))

    def test_range_end_before_start(self):
        with pytest.raises(ValidationError, match="Rango de fechas inválido"):
            resolve_date_range("range", today=TODAY, start=date(2026, 2, 1), end=date(2026, 1, 1))

    def test_unknown_filter_type(self):
        with pytest.raises(ValidationError, match="Tipo de filtro de fecha inválido"):
            resolve_date_range("week", today=TODAY)


class TestDateFilterSchema:
    """Tests for the DateFilter request schema."""

    def test_defaults_to_all(self):
        assert DateFilter().resolve(TODAY) == DateRange()

    def test_resolves_range(self):
        date_filter = DateFilter(filter_type="range", start="2026-01-01", end="2026-01-10")

        assert date_filter.resolve(TODAY) == DateRange(date(2026, 1, 1), date(2026, 1, 10))

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValueError):
            DateFilter(filter_type="all", weeks=2)
