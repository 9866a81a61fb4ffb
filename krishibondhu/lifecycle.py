"""
Loan Lifecycle Module

Composition root for the loan tracker. Wires the loan repository, the
payment flow controller and the reminder store together and exposes the
operations a presentation layer calls, plus the read projections it shows.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from .clock import Clock, SystemClock
from .errors import PreconditionError, MissingDueDateError, PermissionDeniedError, ValidationError
from .events import EventDispatcher
from .loans import Loan, LoanDraft, LoanRepository, LoanStatus
from .logging_config import get_logger, log_action
from .notifications import NotificationAuthority
from .payments import (
    PaymentFlowController, PaymentMethod, PaymentOutcome, PaymentSession, PaymentStep, Credentials
)
from .reminders import Reminder, ReminderStore, ReminderType
from .storage import KeyValueStore


logger = get_logger("krishibondhu.lifecycle")

LOAN_REMINDER_TITLE = "Loan Due"
REMINDER_SET_TITLE = "Reminder Set"


class LoanLifecycleManager:
    """
    Orchestrates loans, the active payment session and due-date reminders
    """

    def __init__(
        self,
        loans: LoanRepository,
        reminders: ReminderStore,
        payments: PaymentFlowController,
        notifier: NotificationAuthority,
        events: Optional[EventDispatcher] = None
    ):
        self.loans = loans
        self.reminders = reminders
        self.payments = payments
        self.notifier = notifier
        self.events = events

    @classmethod
    def build(
        cls,
        store: KeyValueStore,
        notifier: NotificationAuthority,
        clock: Optional[Clock] = None,
        events: Optional[EventDispatcher] = None,
        processing_delay: Optional[float] = None,
        failure_sentinel: Optional[str] = None
    ) -> 'LoanLifecycleManager':
        """Construct every service over one store"""
        clock = clock or SystemClock()
        events = events or EventDispatcher()
        loans = LoanRepository(store, clock, events)
        reminders = ReminderStore(store, clock, events)
        payments = PaymentFlowController(
            loans,
            processing_delay=processing_delay,
            failure_sentinel=failure_sentinel,
            events=events
        )
        return cls(loans, reminders, payments, notifier, events)

    # Loan operations

    def add_loan(self, draft: LoanDraft) -> Loan:
        return self.loans.create(
            lender_name=draft.lender_name,
            amount=draft.amount,
            due_date=draft.due_date,
            notes=draft.notes
        )

    def edit_loan(self, loan_id: str, changes: Union[LoanDraft, Dict[str, Any]]) -> Loan:
        """Edit an active loan; settled loans keep their historical record"""
        loan = self.loans.get(loan_id)
        if loan.status == LoanStatus.PAID:
            raise PreconditionError(f"Loan {loan_id} is paid and can no longer be edited", "loan_paid")

        fields = changes.to_fields() if isinstance(changes, LoanDraft) else dict(changes)
        return self.loans.update(loan_id, fields)

    def delete_loan(self, loan_id: str) -> None:
        """Delete a loan, closing any payment session that targets it"""
        self.loans.get(loan_id)
        session = self.payments.session
        if session is not None and session.loan_id == loan_id:
            self.payments.close()
        self.loans.delete(loan_id)

    def toggle_status(self, loan_id: str) -> Loan:
        return self.loans.toggle_status(loan_id)

    def mark_paid(self, loan_id: str) -> Loan:
        return self.loans.set_status(loan_id, LoanStatus.PAID)

    def get_loan(self, loan_id: str) -> Loan:
        return self.loans.get(loan_id)

    # Payment operations

    @property
    def payment_session(self) -> Optional[PaymentSession]:
        return self.payments.session

    def open_payment(self, loan_id: str) -> PaymentSession:
        return self.payments.open(self.loans.get(loan_id))

    def choose_payment_method(self, method: Union[PaymentMethod, str]) -> PaymentSession:
        return self.payments.choose_method(method)

    async def submit_payment(self, credentials: Union[Credentials, Dict[str, Any]]) -> PaymentOutcome:
        return await self.payments.submit(credentials)

    def retry_payment(self) -> PaymentSession:
        return self.payments.retry()

    def close_payment(self) -> PaymentStep:
        return self.payments.close()

    # Reminders

    async def request_reminder(self, loan_id: str) -> Reminder:
        """
        Save a due-date reminder for a loan

        Raises:
            MissingDueDateError: the loan has no due date
            PermissionDeniedError: notifications were not allowed; nothing saved
        """
        loan = self.loans.get(loan_id)
        if not loan.has_due_date:
            raise MissingDueDateError(f"Loan {loan_id} has no due date to remind about")

        await self._require_permission(loan_id)

        reminder = self.reminders.create(
            title=LOAN_REMINDER_TITLE,
            body=f"Lender: {loan.lender_name}, Amount: {loan.amount}",
            when=loan.due_date,
            reminder_type=ReminderType.LOAN,
            related_id=loan.id
        )
        await self.notifier.notify(REMINDER_SET_TITLE, f"{LOAN_REMINDER_TITLE} on {loan.due_date}")
        return reminder

    async def request_crop_reminder(
        self,
        crop_id: str,
        crop_name: str,
        when: Union[str, date],
        care_type: str
    ) -> Reminder:
        """Save a fertilizer/crop-care reminder for a crop"""
        if not when:
            raise ValidationError("Reminder date is required", "reminder_date_required")
        if not (care_type or "").strip():
            raise ValidationError("Reminder type is required", "care_type_required")

        await self._require_permission(crop_id)

        reminder = self.reminders.create(
            title=f"Fertilizer for {crop_name}",
            body=f"Type: {care_type.strip()}",
            when=when,
            reminder_type=ReminderType.FERTILIZER,
            related_id=crop_id
        )
        await self.notifier.notify(REMINDER_SET_TITLE, f"Fertilizer for {crop_name} on {reminder.date}")
        return reminder

    async def _require_permission(self, resource: str) -> None:
        granted = await self.notifier.request_permission()
        if not granted:
            log_action(logger, "warning", "Notification permission denied",
                       action="reminder.permission_denied", resource=resource)
            raise PermissionDeniedError("Notification permission was denied")

    # Read projections

    @property
    def all_loans(self) -> List[Loan]:
        return self.loans.list()

    @property
    def active_loans(self) -> List[Loan]:
        return self.loans.active_loans

    @property
    def paid_loans(self) -> List[Loan]:
        return self.loans.paid_loans

    @property
    def total_active_debt(self) -> Decimal:
        return self.loans.total_active_debt

    @property
    def total_paid(self) -> Decimal:
        return self.loans.total_paid

    def summary(self) -> Dict[str, Any]:
        """Counts and totals for the active and history views"""
        return {
            "active_count": len(self.loans.active_loans),
            "paid_count": len(self.loans.paid_loans),
            "total_active_debt": self.loans.total_active_debt,
            "total_paid": self.loans.total_paid,
        }
