"""
Integration tests for the loan lifecycle manager

End-to-end scenarios across loans, payment sessions and reminders.
"""

import asyncio
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock

from krishibondhu.errors import (
    PreconditionError, MissingDueDateError, PermissionDeniedError, NotFoundError, ValidationError
)
from krishibondhu.lifecycle import LoanLifecycleManager
from krishibondhu.loans import LoanDraft, LoanStatus
from krishibondhu.notifications import LogNotificationAuthority
from krishibondhu.payments import PaymentMethod, PaymentStep, WalletCredentials
from krishibondhu.reminders import ReminderType


@pytest.fixture
def notifier():
    return LogNotificationAuthority(grant=True)


@pytest.fixture
def manager(store, clock, events, notifier):
    return LoanLifecycleManager.build(
        store, notifier, clock=clock, events=events, processing_delay=0, failure_sentinel="0000"
    )


@pytest.fixture
def grameen(manager):
    return manager.add_loan(LoanDraft(lender_name="Grameen Bank", amount=5000, due_date="2025-06-01"))


class TestEndToEnd:

    def test_wallet_payment_settles_loan(self, manager, grameen):
        """Test paying a loan by mobile wallet"""
        assert len(manager.active_loans) == 1
        assert manager.total_active_debt == Decimal("5000")

        manager.open_payment(grameen.id)
        manager.choose_payment_method(PaymentMethod.MOBILE_WALLET)
        outcome = asyncio.run(manager.submit_payment(WalletCredentials("1234")))

        assert outcome.step == PaymentStep.SUCCESS
        assert manager.get_loan(grameen.id).status == LoanStatus.PAID
        assert manager.total_paid == Decimal("5000")
        assert manager.total_active_debt == Decimal("0")
        assert manager.close_payment() == PaymentStep.SUCCESS
        assert manager.payment_session is None

    def test_declined_then_retried(self, manager, grameen):
        """Test a declined payment followed by a successful retry"""
        manager.open_payment(grameen.id)
        manager.choose_payment_method("mobile-wallet")

        declined = asyncio.run(manager.submit_payment({"pin": "0000"}))
        assert declined.step == PaymentStep.FAILURE
        assert manager.get_loan(grameen.id).status == LoanStatus.ACTIVE

        manager.retry_payment()
        accepted = asyncio.run(manager.submit_payment({"pin": "1234"}))
        assert accepted.step == PaymentStep.SUCCESS
        assert manager.get_loan(grameen.id).status == LoanStatus.PAID

    def test_cannot_pay_a_paid_loan(self, manager, grameen):
        """Test paid loans cannot be paid again"""
        manager.toggle_status(grameen.id)
        with pytest.raises(PreconditionError):
            manager.open_payment(grameen.id)

    def test_manual_and_payment_settlement_are_equivalent(self, manager, grameen):
        """Test manual and paid settlement leave the same state"""
        other = manager.add_loan(LoanDraft(lender_name="BRAC", amount=5000, due_date="2025-06-01"))

        manager.mark_paid(other.id)
        manager.mark_paid(other.id)
        manager.open_payment(grameen.id)
        manager.choose_payment_method(PaymentMethod.MOBILE_WALLET)
        asyncio.run(manager.submit_payment(WalletCredentials("1234")))

        a, b = manager.get_loan(grameen.id), manager.get_loan(other.id)
        assert (a.status, a.amount) == (b.status, b.amount)
        assert manager.summary() == {
            "active_count": 0, "paid_count": 2,
            "total_active_debt": Decimal("0"), "total_paid": Decimal("10000"),
        }


class TestEditAndDelete:

    def test_edit_active_loan(self, manager, grameen):
        """Test editing every field of an active loan"""
        edited = manager.edit_loan(grameen.id, LoanDraft(
            lender_name="Grameen Bank", amount="5500", due_date="2025-07-01", notes="extended"
        ))

        assert edited.amount == Decimal("5500")
        assert edited.due_date == "2025-07-01"
        assert manager.total_active_debt == Decimal("5500")

    def test_partial_edit_with_mapping(self, manager, grameen):
        """Test partial edits leave other fields alone"""
        assert manager.edit_loan(grameen.id, {"notes": "call first"}).amount == Decimal("5000")

    def test_edit_paid_loan_refused(self, manager, grameen):
        """Test paid loans cannot be edited"""
        manager.mark_paid(grameen.id)

        with pytest.raises(PreconditionError) as exc:
            manager.edit_loan(grameen.id, {"amount": "1"})
        assert exc.value.reason == "loan_paid"
        assert manager.get_loan(grameen.id).amount == Decimal("5000")

    def test_edit_validation_errors_surface(self, manager, grameen):
        """Test invalid edits raise validation errors"""
        with pytest.raises(ValidationError):
            manager.edit_loan(grameen.id, LoanDraft(lender_name="", amount="5000"))

    def test_delete_closes_payment_session_for_that_loan(self, manager, grameen):
        """Test deleting a loan closes its payment session"""
        manager.open_payment(grameen.id)
        manager.delete_loan(grameen.id)

        assert manager.payment_session is None
        assert manager.all_loans == []
        assert manager.total_active_debt == Decimal("0")

    def test_delete_keeps_unrelated_session(self, manager, grameen):
        """Test deleting another loan keeps the session open"""
        other = manager.add_loan(LoanDraft(lender_name="BRAC", amount=100))
        manager.open_payment(grameen.id)

        manager.delete_loan(other.id)

        assert manager.payment_session is not None
        assert manager.payment_session.loan_id == grameen.id

    def test_delete_twice(self, manager, grameen):
        """Test deleting a loan twice fails"""
        manager.delete_loan(grameen.id)
        with pytest.raises(NotFoundError):
            manager.delete_loan(grameen.id)


class TestReminders:

    def test_loan_reminder_saved_and_confirmed(self, manager, grameen, notifier):
        """Test loan reminder content and confirmation"""
        reminder = asyncio.run(manager.request_reminder(grameen.id))

        assert reminder.type == ReminderType.LOAN
        assert reminder.date == "2025-06-01"
        assert reminder.related_id == grameen.id
        assert reminder.title == "Loan Due"
        assert reminder.body == "Lender: Grameen Bank, Amount: 5000"
        assert manager.reminders.list() == [reminder]
        assert notifier.sent == [("Reminder Set", "Loan Due on 2025-06-01")]

    def test_repeated_requests_create_separate_reminders(self, manager, grameen):
        """Test repeated reminder requests are all kept"""
        asyncio.run(manager.request_reminder(grameen.id))
        asyncio.run(manager.request_reminder(grameen.id))

        assert len(manager.reminders.for_entity(grameen.id)) == 2

    def test_missing_due_date(self, manager):
        """Test reminder for a loan without a due date"""
        loan = manager.add_loan(LoanDraft(lender_name="BRAC", amount=100))

        with pytest.raises(MissingDueDateError):
            asyncio.run(manager.request_reminder(loan.id))
        assert manager.reminders.list() == []

    def test_permission_denied_saves_nothing_and_can_retry(self, manager, grameen):
        """Test denied permission saves nothing and can be retried"""
        manager.notifier = AsyncMock()
        manager.notifier.request_permission.return_value = False

        with pytest.raises(PermissionDeniedError):
            asyncio.run(manager.request_reminder(grameen.id))
        assert manager.reminders.list() == []
        manager.notifier.notify.assert_not_called()

        manager.notifier.request_permission.return_value = True
        asyncio.run(manager.request_reminder(grameen.id))
        assert len(manager.reminders.list()) == 1

    def test_crop_reminder(self, manager, notifier):
        """Test fertilizer reminder content and confirmation"""
        reminder = asyncio.run(manager.request_crop_reminder("rice", "Rice", "2025-06-10", "Urea"))

        assert reminder.type == ReminderType.FERTILIZER
        assert reminder.title == "Fertilizer for Rice"
        assert reminder.body == "Type: Urea"
        assert reminder.related_id == "rice"
        assert notifier.sent == [("Reminder Set", "Fertilizer for Rice on 2025-06-10")]

    @pytest.mark.parametrize("when,care_type", [("", "Urea"), ("2025-06-10", " ")])
    def test_crop_reminder_requires_date_and_type(self, manager, when, care_type):
        """Test crop reminders need a date and a care type"""
        with pytest.raises(ValidationError):
            asyncio.run(manager.request_crop_reminder("rice", "Rice", when, care_type))
