"""
Reminder Module

Append-only store of due-date reminders for loans and crop care. The
due-today check is a pure read: it never flips ``is_completed``, so a
reminder is returned by every poll on its day.
"""

from datetime import date, datetime
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Union
from enum import Enum

from .clock import Clock, SystemClock, TimestampIdFactory
from .errors import ValidationError
from .events import EventDispatcher, DomainEvent
from .logging_config import get_logger, log_action
from .storage import KeyValueStore, REMINDERS_KEY


logger = get_logger("krishibondhu.reminders")


class ReminderType(Enum):
    """What spawned the reminder"""
    LOAN = "loan"
    FERTILIZER = "fertilizer"
    GENERAL = "general"


@dataclass
class Reminder:
    """A scheduled notification for one calendar day"""
    id: str
    title: str
    body: str
    date: str                           # ISO calendar day, no time of day
    type: ReminderType = ReminderType.GENERAL
    related_id: Optional[str] = None    # loan id or crop id, lookup only
    is_completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "date": self.date,
            "type": self.type.value,
            "isCompleted": self.is_completed,
        }
        if self.related_id is not None:
            data["relatedId"] = self.related_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Reminder':
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            body=data.get("body", ""),
            date=data["date"],
            type=ReminderType(data.get("type", ReminderType.GENERAL.value)),
            related_id=data.get("relatedId"),
            is_completed=bool(data.get("isCompleted", False)),
        )


def normalize_day(value: Union[str, date, datetime]) -> str:
    """Reduce a date-like value to its ISO calendar day"""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        return date.fromisoformat(str(value).strip()).isoformat()
    except ValueError:
        raise ValidationError(f"Reminder date {value!r} is not an ISO date", "reminder_date_invalid")


class ReminderStore:
    """Persisted reminder collection shared by loans and crop care"""

    def __init__(
        self,
        store: KeyValueStore,
        clock: Optional[Clock] = None,
        events: Optional[EventDispatcher] = None
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.events = events
        self.ids = TimestampIdFactory(self.clock)
        for reminder in self.list():
            self.ids.observe(reminder.id)

    def save(self, reminder: Reminder) -> None:
        """Append a reminder; repeated requests for the same entity are kept"""
        records = self.store.get_json(REMINDERS_KEY, [])
        records.append(reminder.to_dict())
        self.store.set_json(REMINDERS_KEY, records)

        log_action(logger, "info", "Reminder saved", action="reminder.save", resource=reminder.id,
                   extra={"date": reminder.date, "type": reminder.type.value,
                          "related_id": reminder.related_id})
        if self.events is not None:
            self.events.emit(DomainEvent.REMINDER_SAVED, "reminder", reminder.id, reminder.to_dict())

    def create(
        self,
        title: str,
        body: str,
        when: Union[str, date, datetime],
        reminder_type: ReminderType = ReminderType.GENERAL,
        related_id: Optional[str] = None
    ) -> Reminder:
        """Build a reminder with a fresh id and save it"""
        reminder = Reminder(
            id=self.ids.next_id(),
            title=title,
            body=body,
            date=normalize_day(when),
            type=ReminderType(reminder_type),
            related_id=related_id,
            is_completed=False,
        )
        self.save(reminder)
        return replace(reminder)

    def list(self) -> List[Reminder]:
        return [Reminder.from_dict(d) for d in self.store.get_json(REMINDERS_KEY, [])]

    def due_today(self, now: Optional[Union[date, datetime]] = None) -> List[Reminder]:
        """Reminders dated today that are not completed"""
        today = normalize_day(now if now is not None else self.clock.now())
        return [r for r in self.list() if r.date == today and not r.is_completed]

    def for_entity(self, related_id: str) -> List[Reminder]:
        return [r for r in self.list() if r.related_id == related_id]
