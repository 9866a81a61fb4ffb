"""
Tests for the reminder store and the due-today check
"""

import pytest
from datetime import date, datetime

from krishibondhu.errors import ValidationError
from krishibondhu.reminders import Reminder, ReminderStore, ReminderType
from krishibondhu.storage import REMINDERS_KEY


@pytest.fixture
def reminders(store, clock):
    return ReminderStore(store, clock)


def make_reminder(reminder_id, day, completed=False, related_id=None):
    return Reminder(
        id=reminder_id,
        title="Loan Due",
        body="Lender: BRAC, Amount: 1000",
        date=day,
        type=ReminderType.LOAN,
        related_id=related_id,
        is_completed=completed,
    )


class TestReminderStore:

    def test_save_appends(self, reminders):
        """Test saved reminders are appended in order"""
        reminders.save(make_reminder("1", "2025-06-01"))
        reminders.save(make_reminder("2", "2025-06-02"))

        assert [r.id for r in reminders.list()] == ["1", "2"]

    def test_no_deduplication_by_related_id(self, reminders):
        """Test reminders for one entity are not merged"""
        reminders.save(make_reminder("1", "2025-06-01", related_id="loan-1"))
        reminders.save(make_reminder("2", "2025-06-01", related_id="loan-1"))

        assert len(reminders.for_entity("loan-1")) == 2

    def test_create_assigns_id_and_normalizes_date(self, reminders):
        """Test create assigns an id and a day"""
        reminder = reminders.create("Fertilizer for Rice", "Type: Urea",
                                    datetime(2025, 6, 3, 18, 0), ReminderType.FERTILIZER, "rice")

        assert reminder.id
        assert reminder.date == "2025-06-03"
        assert reminder.type == ReminderType.FERTILIZER
        assert not reminder.is_completed
        assert reminders.list() == [reminder]

    def test_create_rejects_bad_date(self, reminders):
        """Test malformed reminder dates are rejected"""
        with pytest.raises(ValidationError):
            reminders.create("Loan Due", "body", "someday")

    def test_stored_format(self, reminders, store):
        """Test persisted reminder format"""
        reminders.save(make_reminder("1", "2025-06-01", related_id="42"))

        assert store.get_json(REMINDERS_KEY) == [{
            "id": "1",
            "title": "Loan Due",
            "body": "Lender: BRAC, Amount: 1000",
            "date": "2025-06-01",
            "type": "loan",
            "relatedId": "42",
            "isCompleted": False,
        }]

    def test_persists_across_instances(self, store, clock, reminders):
        """Test reminders survive a reload"""
        reminders.save(make_reminder("1", "2025-06-01"))
        assert [r.id for r in ReminderStore(store, clock).list()] == ["1"]

    def test_ids_after_reload_sort_after_existing(self, store, clock):
        """Test new reminder ids sort after reloaded ones"""
        first = ReminderStore(store, clock).create("Loan Due", "body", "2025-06-01")

        clock.advance(seconds=-1)
        second = ReminderStore(store, clock).create("Loan Due", "body", "2025-06-01")

        assert int(second.id) > int(first.id)


class TestDueToday:

    def test_matches_today_only(self, reminders):
        """Test only today's open reminders are due"""
        reminders.save(make_reminder("today", "2025-05-20"))
        reminders.save(make_reminder("tomorrow", "2025-05-21"))
        reminders.save(make_reminder("done", "2025-05-20", completed=True))

        due = reminders.due_today(datetime(2025, 5, 20, 23, 59))

        assert [r.id for r in due] == ["today"]

    def test_accepts_date_argument(self, reminders):
        """Test due check with an explicit date"""
        reminders.save(make_reminder("today", "2025-05-20"))
        assert len(reminders.due_today(date(2025, 5, 20))) == 1

    def test_defaults_to_clock(self, reminders, clock):
        """Test due check uses the clock by default"""
        reminders.save(make_reminder("today", clock.today().isoformat()))
        assert len(reminders.due_today()) == 1

        clock.advance(days=1)
        assert reminders.due_today() == []

    def test_is_a_pure_read(self, reminders, store):
        """Test due check does not modify reminders"""
        reminders.save(make_reminder("today", "2025-05-20"))
        before = store.get(REMINDERS_KEY)

        first = reminders.due_today(date(2025, 5, 20))
        second = reminders.due_today(date(2025, 5, 20))

        assert first == second
        assert not first[0].is_completed
        assert store.get(REMINDERS_KEY) == before
