# app/core/formatting.py

import logging
import re
from datetime import datetime, timedelta, timezone, tzinfo
from typing import List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.models.schemas import Event, Task

logger = logging.getLogger(__name__)

DISPLAY_FORMAT = "%d/%m/%Y %H:%M"

# "-3", "+05:30", "UTC-3", "GMT+2"
_OFFSET_PATTERN = re.compile(
    r"^(?:utc|gmt)?\s*(?P<sign>[+-])?\s*(?P<hours>\d{1,2})(?::?(?P<minutes>\d{2}))?$", re.IGNORECASE
)


def resolve_timezone(value) -> tzinfo:
    """Turns a configured timezone (IANA name or fixed UTC offset) into a tzinfo.

    Unknown names fall back to UTC with a warning.
    """
    if value is None or value == "":
        return timezone.utc
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)

    text = str(value).strip()
    if text.upper() in ("UTC", "GMT", "Z"):
        return timezone.utc

    match = _OFFSET_PATTERN.match(text)
    if match:
        offset = timedelta(hours=int(match.group("hours")), minutes=int(match.group("minutes") or 0))
        if match.group("sign") == "-":
            offset = -offset
        try:
            return timezone(offset)
        except ValueError:
            logger.warning("Timezone offset '%s' out of range, using UTC.", text)
            return timezone.utc

    try:
        return ZoneInfo(text)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        # "America" names a tzdata directory, not a zone.
        logger.warning("Unknown timezone '%s', using UTC.", text)
        return timezone.utc


def format_datetime(value: datetime, timezone_name) -> str:
    """Formats a UTC instant on the wall clock of the conversation's timezone."""
    return value.astimezone(resolve_timezone(timezone_name)).strftime(DISPLAY_FORMAT)


def format_lead_time(notify) -> str:
    if not notify or notify <= 0:
        return "na hora do evento"
    if notify == 1:
        return "1 minuto antes"
    return f"{notify} minutos antes"


def format_task_lines(tasks: List[Task]) -> str:
    return "\n".join(f"*{i + 1}.* {task.description}" for i, task in enumerate(tasks))


def format_event_entry(index: int, event: Event, timezone_name) -> str:
    return (
        f"*{index + 1}. {event.description}*\n"
        f"   {format_datetime(event.datetime, timezone_name)}\n"
        f"   _(notificar {format_lead_time(event.notify)})_"
    )


def format_event_lines(events: List[Event], timezone_name) -> str:
    return "\n".join(format_event_entry(i, event, timezone_name) for i, event in enumerate(events))
