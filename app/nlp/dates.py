# app/nlp/dates.py

"""Resolves Portuguese date/time phrases ("amanhã às 9", "em 2 horas", ...)
to absolute UTC instants.

Families are tried in a fixed order and the first one found anywhere in the
text wins. Day-based families work on the wall clock of the reference
datetime's timezone; the relative minute/hour family adds to the instant.
Numeric captures are not range-checked: an hour of 25 or a day of 32 rolls
over into the following day/month instead of being rejected.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

DEFAULT_HOUR = 8

_TIME = r"(?P<hour>\d{1,2})(?:[:h](?P<minute>\d{2})(?::(?P<second>\d{2}))?|h)?(?!\d)"

EXPLICIT_DATE_PATTERN = re.compile(
    r"\bdia\s+(?P<day>\d{1,2})/(?P<month>\d{1,2})(?:/(?P<year>\d{4}))?(?!\d)(?:\s+às\s+" + _TIME + r")?",
    re.IGNORECASE,
)
TOMORROW_PATTERN = re.compile(r"\bamanhã(?:\s+às)?\s+" + _TIME, re.IGNORECASE)
TODAY_PATTERN = re.compile(r"(?:\bhoje(?:\s+às)?|\bàs)\s+" + _TIME, re.IGNORECASE)
RELATIVE_DAYS_PATTERN = re.compile(r"\b(?:em|daqui(?:\s+a)?)\s+(?P<days>\d+)\s+dias?\b", re.IGNORECASE)
RELATIVE_SHORT_PATTERN = re.compile(
    r"\b(?:em|daqui(?:\s+a)?)\s+(?P<amount>\d+)\s+(?P<unit>minutos?|horas?)\b", re.IGNORECASE
)


@dataclass(frozen=True)
class DateTimeMatch:
    instant: datetime  # UTC
    start: int
    end: int
    family: str


def _as_aware(reference: datetime) -> datetime:
    if reference.tzinfo is None:
        return reference.replace(tzinfo=timezone.utc)
    return reference


def _clock(match: re.Match) -> Tuple[int, int, int]:
    return (
        int(match.group("hour")),
        int(match.group("minute") or 0),
        int(match.group("second") or 0),
    )


def _at(day: date, tzinfo, hour: int = DEFAULT_HOUR, minute: int = 0, second: int = 0) -> datetime:
    midnight = datetime(day.year, day.month, day.day, tzinfo=tzinfo)
    return midnight + timedelta(hours=hour, minutes=minute, seconds=second)


def _calendar_day(year: int, month: int, day: int) -> date:
    carry, month_index = divmod(month - 1, 12)
    return date(year + carry, month_index + 1, 1) + timedelta(days=day - 1)


def _explicit_date(match: re.Match, reference: datetime) -> datetime:
    year = int(match.group("year")) if match.group("year") else reference.year
    day = _calendar_day(year, int(match.group("month")), int(match.group("day")))
    if match.group("hour") is None:
        return _at(day, reference.tzinfo)
    hour, minute, _ = _clock(match)
    return _at(day, reference.tzinfo, hour, minute)


def _tomorrow(match: re.Match, reference: datetime) -> datetime:
    return _at(reference.date() + timedelta(days=1), reference.tzinfo, *_clock(match))


def _today(match: re.Match, reference: datetime) -> datetime:
    return _at(reference.date(), reference.tzinfo, *_clock(match))


def _relative_days(match: re.Match, reference: datetime) -> datetime:
    return _at(reference.date() + timedelta(days=int(match.group("days"))), reference.tzinfo)


def _relative_short(match: re.Match, reference: datetime) -> datetime:
    amount = int(match.group("amount"))
    if match.group("unit").lower().startswith("minuto"):
        delta = timedelta(minutes=amount)
    else:
        delta = timedelta(hours=amount)
    return reference.astimezone(timezone.utc) + delta


FAMILIES: List[Tuple[str, re.Pattern, Callable[[re.Match, datetime], datetime]]] = [
    ("explicit_date", EXPLICIT_DATE_PATTERN, _explicit_date),
    ("tomorrow", TOMORROW_PATTERN, _tomorrow),
    ("today", TODAY_PATTERN, _today),
    ("relative_days", RELATIVE_DAYS_PATTERN, _relative_days),
    ("relative_short", RELATIVE_SHORT_PATTERN, _relative_short),
]


def find_datetime(text: str, reference: datetime) -> Optional[DateTimeMatch]:
    """Locates the first recognized date/time phrase in ``text``.

    Returns None when no family matches, or when the captured numbers
    cannot be represented as a datetime at all (e.g. year 0).
    """
    if not text:
        return None
    reference = _as_aware(reference)

    for family, pattern, build in FAMILIES:
        match = pattern.search(text)
        if not match:
            continue
        try:
            instant = build(match, reference).astimezone(timezone.utc)
        except (ValueError, OverflowError):
            return None
        return DateTimeMatch(
            instant=instant,
            start=match.start(),
            end=match.end(),
            family=family,
        )
    return None


def resolve(fragment: str, reference: datetime) -> Optional[datetime]:
    """Maps a phrase to an absolute UTC instant, or None when unresolved."""
    found = find_datetime(fragment, reference)
    return found.instant if found else None
