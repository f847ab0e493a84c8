"""Due-date range resolution for search, stats, reports and exports.

Supported filter types:
- ``all``: no bound
- ``lastDays``: due date within the last N days (1-30, default 7)
- ``month``: one calendar month (defaults to the current one)
- ``range``: explicit inclusive bounds, either may be open
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum

from barulogix.services.errors import ValidationError

DEFAULT_LAST_DAYS = 7
MAX_LAST_DAYS = 30
MIN_YEAR = 2000
MAX_YEAR = 2100


class DateFilterType(str, Enum):
    """How the caller expressed the due-date window."""

    ALL = "all"
    LAST_DAYS = "lastDays"
    MONTH = "month"
    RANGE = "range"


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive due-date bounds; None means unbounded on that side."""

    start: date | None = None
    end: date | None = None

    @property
    def is_bounded(self) -> bool:
        return self.start is not None or self.end is not None

    def contains(self, value: date) -> bool:
        if self.start is not None and value < self.start:
            return False
        return not (self.end is not None and value > self.end)


def resolve_date_range(
    filter_type: DateFilterType | str = DateFilterType.ALL,
    *,
    today: date,
    last_days: int | None = None,
    month: int | None = None,
    year: int | None = None,
    start: date | None = None,
    end: date | None = None,
) -> DateRange:
    """Turn a filter description into concrete due-date bounds.

    Args:
        filter_type: One of all, lastDays, month, range.
        today: Reference date for relative filters.
        last_days: Window size for lastDays.
        month: Month number (1-12) for month.
        year: Year for month.
        start: Lower bound for range.
        end: Upper bound for range.

    Returns:
        The resolved DateRange.

    Raises:
        ValidationError: On unknown filter types or out-of-range values.
    """
    try:
        kind = DateFilterType(filter_type)
    except ValueError as e:
        raise ValidationError(
            "Tipo de filtro de fecha inválido",
            details=f"Valores permitidos: {', '.join(t.value for t in DateFilterType)}",
        ) from e

    if kind is DateFilterType.ALL:
        return DateRange()

    if kind is DateFilterType.LAST_DAYS:
        days = DEFAULT_LAST_DAYS if last_days is None else last_days
        if not 1 <= days <= MAX_LAST_DAYS:
            raise ValidationError(
                "Número de días inválido",
                details=f"Debe estar entre 1 y {MAX_LAST_DAYS}",
            )
        return DateRange(start=today - timedelta(days=days))

    if kind is DateFilterType.MONTH:
        month_num = today.month if month is None else month
        year_num = today.year if year is None else year
        if not 1 <= month_num <= 12:
            raise ValidationError("Mes inválido", details="Debe estar entre 1 y 12")
        if not MIN_YEAR <= year_num <= MAX_YEAR:
            raise ValidationError(
                "Año inválido", details=f"Debe estar entre {MIN_YEAR} y {MAX_YEAR}"
            )
        last_day = calendar.monthrange(year_num, month_num)[1]
        return DateRange(
            start=date(year_num, month_num, 1), end=date(year_num, month_num, last_day)
        )

    if start is not None and end is not None and end < start:
        raise ValidationError(
            "Rango de fechas inválido",
            details="La fecha final no puede ser anterior a la inicial",
        )
    return DateRange(start=start, end=end)
