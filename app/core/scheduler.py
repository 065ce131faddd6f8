# app/core/scheduler.py

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum

from app.core.formatting import format_datetime
from app.gateway.whatsapp_handler import WhatsAppSendError
from app.models.schemas import Event

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = timedelta(minutes=60)


class EventState(str, Enum):
    PENDING = "pending"
    DUE = "due"
    EXPIRED = "expired"


def notify_time(event: Event) -> datetime:
    return event.datetime - timedelta(minutes=event.notify or 0)


def event_state(event: Event, now: datetime, tolerance: timedelta = DEFAULT_TOLERANCE) -> EventState:
    """Derives an event's state from the clock; nothing is stored on the event."""
    fire_at = notify_time(event)
    if now < fire_at:
        return EventState.PENDING
    if now <= fire_at + tolerance:
        return EventState.DUE
    return EventState.EXPIRED


def format_reminder(event: Event, timezone_name) -> str:
    return f'⏰ "{event.description}"\nEm: {format_datetime(event.datetime, timezone_name)}.'


def _discard(record, event: Event):
    # By identity: the list may have been edited while the reminder was being sent.
    record.events = [item for item in record.events if item is not event]


class ReminderScheduler:
    """Periodic sweep that purges expired events and fires due reminders once."""

    def __init__(self, store, send, interval_seconds: int = 60, tolerance_minutes: int = 60, clock=None):
        self.store = store
        self.send = send
        self.interval_seconds = interval_seconds
        self.tolerance = timedelta(minutes=tolerance_minutes)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._task = None

    async def sweep(self, now: datetime = None) -> int:
        """Runs one pass over every conversation and returns how many reminders were attempted."""
        now = now or self._clock()
        attempted = 0

        for conversation_id, record in self.store.items():
            kept = [event for event in record.events
                    if event_state(event, now, self.tolerance) is not EventState.EXPIRED]
            purged = len(record.events) - len(kept)
            if purged:
                record.events = kept
                logger.info("Purged %d expired event(s) from %s.", purged, conversation_id)

            if not (self.store.config.notify and record.configs.notify):
                continue

            due = [event for event in record.events
                   if event_state(event, now, self.tolerance) is EventState.DUE]
            for event in due:
                # Messages handled during a previous send may have removed or rescheduled it.
                if not any(item is event for item in record.events):
                    continue
                if event_state(event, now, self.tolerance) is not EventState.DUE:
                    continue
                attempted += 1
                try:
                    await self.send(conversation_id, format_reminder(event, record.configs.timezone),
                                    expiration=record.configs.expiration or None)
                    logger.info('Reminder sent to %s: "%s"', conversation_id, event.description)
                except WhatsAppSendError as e:
                    logger.error("Error sending reminder to %s: %s", conversation_id, e)
                except Exception:
                    logger.exception("Unexpected error sending reminder to %s.", conversation_id)
                finally:
                    _discard(record, event)

        self.store.commit()
        return attempted

    async def run_forever(self):
        logger.info("Reminder scheduler started (every %ss).", self.interval_seconds)
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Reminder sweep failed.")

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever())
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Reminder scheduler stopped.")
