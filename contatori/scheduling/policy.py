"""Date and time-slot policy.

Pure functions: nothing here touches the store. ``today`` is always passed in so
callers decide which timezone "today" belongs to.
"""

import datetime as dt
from collections.abc import Iterator

from contatori.domain.models import AvailableDate, DateValidation, InvalidDate, ValidDate
from contatori.scheduling.datetime_helpers import date_to_it_long, weekday_it

# Verbatim contract with the voice-dialog configuration, do not reformat.
TIME_SLOTS: tuple[str, ...] = (
    "08:00-12:00",
    "09:00-12:00",
    "13:00-17:00",
    "14:00-17:00",
    "14:00-18:00",
)

SUGGESTION_HORIZON_DAYS = 7
MAX_SUGGESTIONS = 5


def is_past_or_today(date: dt.date, today: dt.date) -> bool:
    """Same-day appointments are not offerable."""
    return date <= today


def is_closed_day(date: dt.date) -> bool:
    """Sunday is the only closed day; Saturday is a working day."""
    return date.weekday() == 6


class AvailableDates:
    """Offerable dates starting the day after ``start``.

    Iterating twice yields the same sequence, each iteration is computed lazily.
    """

    def __init__(self, start: dt.date, horizon_days: int, exclude_closed: bool = True) -> None:
        self.start = start
        self.horizon_days = horizon_days
        self.exclude_closed = exclude_closed

    def __iter__(self) -> Iterator[AvailableDate]:
        for offset in range(1, self.horizon_days + 1):
            candidate = self.start + dt.timedelta(days=offset)
            if self.exclude_closed and is_closed_day(candidate):
                continue
            yield AvailableDate(
                date=candidate,
                display=date_to_it_long(candidate),
                weekday=weekday_it(candidate),
            )

    def take(self, count: int) -> list[AvailableDate]:
        dates: list[AvailableDate] = []
        for available in self:
            if len(dates) >= count:
                break
            dates.append(available)
        return dates


def enumerate_available_dates(
    start: dt.date, horizon_days: int, exclude_closed: bool = True
) -> AvailableDates:
    return AvailableDates(start, horizon_days, exclude_closed=exclude_closed)


def validate_proposed_date(date: dt.date, today: dt.date) -> DateValidation:
    """Check a proposed date against the policy.

    Past dates (and today) are reported before Sundays, so a past Sunday is
    ``past_date``. The time slot is not part of the check.
    """
    if is_past_or_today(date, today):
        reason = "past_date"
    elif is_closed_day(date):
        reason = "sunday"
    else:
        return ValidDate(date=date, time_slots=TIME_SLOTS)

    suggestions = enumerate_available_dates(today, SUGGESTION_HORIZON_DAYS).take(MAX_SUGGESTIONS)
    return InvalidDate(date=date, reason=reason, suggested_dates=tuple(suggestions))
