"""
Pydantic schemas for API requests and responses
"""

from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field

from ..loans import Loan, LoanDraft
from ..payments import PaymentOutcome, PaymentSession
from ..reminders import Reminder


# Loan schemas
class CreateLoanRequest(BaseModel):
    lender_name: str
    amount: Union[str, int, float] = Field(..., description="Positive amount; decimal string preferred")
    due_date: Optional[str] = Field("", description="ISO date (YYYY-MM-DD), empty for none")
    notes: Optional[str] = ""

    def to_draft(self) -> LoanDraft:
        return LoanDraft(
            lender_name=self.lender_name,
            amount=self.amount,
            due_date=self.due_date,
            notes=self.notes
        )


class UpdateLoanRequest(BaseModel):
    lender_name: Optional[str] = None
    amount: Optional[Union[str, int, float]] = None
    due_date: Optional[str] = None
    notes: Optional[str] = None

    def to_fields(self) -> Dict[str, Any]:
        """Only the fields the client actually sent"""
        return self.model_dump(exclude_unset=True)


class LoanModel(BaseModel):
    id: str
    lender_name: str
    amount: str
    start_date: str
    due_date: str
    status: str
    notes: str

    @classmethod
    def from_loan(cls, loan: Loan) -> 'LoanModel':
        return cls(
            id=loan.id,
            lender_name=loan.lender_name,
            amount=str(loan.amount),
            start_date=loan.start_date,
            due_date=loan.due_date,
            status=loan.status.value,
            notes=loan.notes
        )


class LoanSummaryModel(BaseModel):
    active_count: int
    paid_count: int
    total_active_debt: str
    total_paid: str


# Payment schemas
class OpenPaymentRequest(BaseModel):
    loan_id: str


class ChooseMethodRequest(BaseModel):
    method: str = Field(..., description="mobile-wallet or bank-transfer")


class SubmitPaymentRequest(BaseModel):
    pin: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    reference: Optional[str] = None

    def to_credentials(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class PaymentSessionModel(BaseModel):
    session_id: str
    loan_id: str
    lender_name: str
    amount: str
    step: str
    method: Optional[str] = None
    failure_reason: Optional[str] = None
    attempts: int = 0

    @classmethod
    def from_session(cls, session: PaymentSession) -> 'PaymentSessionModel':
        return cls(
            session_id=session.id,
            loan_id=session.loan_id,
            lender_name=session.lender_name,
            amount=str(session.amount),
            step=session.step.value,
            method=session.method.value if session.method else None,
            failure_reason=session.failure_reason,
            attempts=session.attempts
        )


class PaymentOutcomeModel(BaseModel):
    session_id: str
    loan_id: str
    step: str
    method: str
    reason: Optional[str] = None
    loan_status: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome: PaymentOutcome) -> 'PaymentOutcomeModel':
        return cls(
            session_id=outcome.session_id,
            loan_id=outcome.loan_id,
            step=outcome.step.value,
            method=outcome.method.value,
            reason=outcome.reason,
            loan_status=outcome.loan.status.value if outcome.loan else None
        )


# Reminder schemas
class CropReminderRequest(BaseModel):
    crop_id: str
    crop_name: str
    date: str = Field(..., description="ISO date (YYYY-MM-DD)")
    care_type: str = Field(..., description="e.g. Urea, Potash")


class ReminderModel(BaseModel):
    id: str
    title: str
    body: str
    date: str
    type: str
    related_id: Optional[str] = None
    is_completed: bool = False

    @classmethod
    def from_reminder(cls, reminder: Reminder) -> 'ReminderModel':
        return cls(
            id=reminder.id,
            title=reminder.title,
            body=reminder.body,
            date=reminder.date,
            type=reminder.type.value,
            related_id=reminder.related_id,
            is_completed=reminder.is_completed
        )


class ReminderListModel(BaseModel):
    reminders: List[ReminderModel]
