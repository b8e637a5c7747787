import datetime as dt
from zoneinfo import ZoneInfo

from loguru import logger

WEEKDAYS_IT: tuple[str, ...] = (
    "lunedì",
    "martedì",
    "mercoledì",
    "giovedì",
    "venerdì",
    "sabato",
    "domenica",
)

MONTHS_IT: tuple[str, ...] = (
    "gennaio",
    "febbraio",
    "marzo",
    "aprile",
    "maggio",
    "giugno",
    "luglio",
    "agosto",
    "settembre",
    "ottobre",
    "novembre",
    "dicembre",
)


def date_to_it_short(date: dt.date) -> str:
    """Convert ``date(2024, 8, 1)`` → ``1/8/2024``, the ``it-IT`` short locale format.

    Day and month carry no leading zero, which is what the voice platform reads aloud.
    """
    return f"{date.day}/{date.month}/{date.year}"


def date_to_it_long(date: dt.date) -> str:
    """Convert ``date(2024, 8, 1)`` → ``giovedì 1 agosto 2024``."""
    return f"{weekday_it(date)} {date.day} {MONTHS_IT[date.month - 1]} {date.year}"


def weekday_it(date: dt.date) -> str:
    return WEEKDAYS_IT[date.weekday()]


def resolve_timezone(name: str) -> dt.tzinfo:
    """Resolve a timezone name, falling back to UTC if invalid."""
    try:
        return ZoneInfo(name)
    except Exception:
        logger.warning("Invalid timezone '{}'; defaulting to UTC", name)
        return dt.timezone.utc
