"""Calendar dates and durations."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import TYPE_CHECKING, ClassVar

from linecalc.errors import InvalidOperationError
from linecalc.units.definitions import SECONDS_PER_DAY, SECONDS_PER_MONTH
from linecalc.values.base import SemanticValue, ValueType
from linecalc.values.formatting import format_number

if TYPE_CHECKING:
    from linecalc.config import CalcSettings

_CLOCK_PARTS: tuple[tuple[float, str, str], ...] = (
    (SECONDS_PER_DAY, "day", "days"),
    (3600.0, "h", "h"),
    (60.0, "min", "min"),
)


def add_months(value: date, months: int) -> date:
    """Shift a date by calendar months, clamping to the last day of the month."""
    index = value.month - 1 + months
    year = value.year + index // 12
    month = index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


@dataclass(frozen=True, slots=True)
class DurationValue(SemanticValue):
    """A span of time: whole calendar months plus seconds."""

    value_type: ClassVar[ValueType] = ValueType.DURATION

    seconds: float = 0.0
    months: int = 0

    @property
    def total_seconds(self) -> float:
        return self.seconds + self.months * SECONDS_PER_MONTH

    def scaled(self, factor: float) -> DurationValue:
        months = self.months * factor
        if months == int(months):
            return DurationValue(self.seconds * factor, int(months))
        return DurationValue(self.total_seconds * factor, 0)

    def format(self, settings: CalcSettings) -> str:
        parts: list[str] = []
        if self.months:
            years, months = divmod(abs(self.months), 12)
            if years:
                parts.append(f"{years} {'year' if years == 1 else 'years'}")
            if months:
                parts.append(f"{months} {'month' if months == 1 else 'months'}")
        remaining = abs(self.seconds)
        for size, singular, plural in _CLOCK_PARTS:
            count = int(remaining // size)
            if count:
                parts.append(f"{count} {singular if count == 1 else plural}")
                remaining -= count * size
        if remaining or not parts:
            parts.append(f"{format_number(remaining, settings)} s")
        sign = "-" if self.total_seconds < 0 else ""
        return sign + " ".join(parts)


@dataclass(frozen=True, slots=True)
class DateValue(SemanticValue):
    """A calendar date."""

    value_type: ClassVar[ValueType] = ValueType.DATE

    value: date

    def shifted(self, duration: DurationValue, sign: int = 1) -> DateValue:
        shifted = add_months(self.value, sign * duration.months) if duration.months else self.value
        try:
            return DateValue(shifted + timedelta(seconds=sign * duration.seconds))
        except OverflowError as e:
            raise InvalidOperationError("Date is out of range") from e

    def until(self, other: DateValue) -> DurationValue:
        return DurationValue(seconds=(self.value - other.value).total_seconds())

    def format(self, settings: CalcSettings) -> str:
        return self.value.isoformat()
