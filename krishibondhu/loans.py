"""
Loan Module

Owns the durable collection of loan records: creation, editing, status
toggling between active and paid, deletion, and the derived projections
(active/paid partitions and their totals). Amounts are Decimal, persisted
as strings.
"""

from decimal import Decimal, InvalidOperation
from datetime import date
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Union
from enum import Enum

from .clock import Clock, SystemClock, TimestampIdFactory
from .errors import ValidationError, NotFoundError
from .events import EventDispatcher, DomainEvent
from .logging_config import get_logger, log_action
from .storage import KeyValueStore, LOANS_KEY


logger = get_logger("krishibondhu.loans")

EDITABLE_FIELDS = ("lender_name", "amount", "due_date", "notes")


class LoanStatus(Enum):
    """Loan settlement states"""
    ACTIVE = "active"
    PAID = "paid"


@dataclass
class Loan:
    """A tracked debt obligation"""
    id: str
    lender_name: str
    amount: Decimal
    start_date: str                     # ISO date the loan was recorded
    due_date: str = ""                  # ISO date, "" means no due date
    status: LoanStatus = LoanStatus.ACTIVE
    notes: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == LoanStatus.ACTIVE

    @property
    def is_paid(self) -> bool:
        return self.status == LoanStatus.PAID

    @property
    def has_due_date(self) -> bool:
        return bool(self.due_date)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage"""
        return {
            "id": self.id,
            "lenderName": self.lender_name,
            "amount": str(self.amount),
            "startDate": self.start_date,
            "dueDate": self.due_date,
            "status": self.status.value,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Loan':
        """Create instance from a stored dictionary"""
        return cls(
            id=str(data["id"]),
            lender_name=data["lenderName"],
            amount=Decimal(str(data["amount"])),
            start_date=data["startDate"],
            due_date=data.get("dueDate") or "",
            status=LoanStatus(data.get("status", LoanStatus.ACTIVE.value)),
            notes=data.get("notes") or "",
        )


@dataclass
class LoanDraft:
    """
    Unvalidated loan form input.

    Values arrive as the user typed them (amount may be a string); they are
    validated once, when the draft is handed to the repository.
    """
    lender_name: str = ""
    amount: Union[str, int, float, Decimal, None] = None
    due_date: Union[str, date, None] = ""
    notes: Optional[str] = ""

    def to_fields(self) -> Dict[str, Any]:
        return {
            "lender_name": self.lender_name,
            "amount": self.amount,
            "due_date": self.due_date,
            "notes": self.notes,
        }

    @classmethod
    def from_loan(cls, loan: Loan) -> 'LoanDraft':
        """Pre-fill an edit form from an existing loan"""
        return cls(
            lender_name=loan.lender_name,
            amount=str(loan.amount),
            due_date=loan.due_date,
            notes=loan.notes,
        )


def parse_lender_name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Lender name is required", "lender_name_required")
    return value.strip()


def parse_amount(value: Any) -> Decimal:
    """Parse a user-supplied amount into a positive Decimal"""
    if value is None or isinstance(value, bool):
        raise ValidationError("Amount is required", "amount_invalid")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Amount {value!r} is not a number", "amount_invalid")
    if not amount.is_finite():
        raise ValidationError(f"Amount {value!r} is not a number", "amount_invalid")
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero", "amount_not_positive")
    return amount


def parse_due_date(value: Any) -> str:
    """Normalize an optional due date to an ISO string ("" for none)"""
    if value is None or value == "":
        return ""
    if isinstance(value, date):
        return value.isoformat()
    try:
        return date.fromisoformat(str(value).strip()).isoformat()
    except ValueError:
        raise ValidationError(f"Due date {value!r} is not an ISO date", "due_date_invalid")


class LoanRepository:
    """
    Durable loan collection.

    Most recently created loans come first; updates never reorder. Every
    mutation writes the whole collection to the store before returning.
    Business rules that depend on loan state (such as refusing to edit a
    paid loan) belong to the caller.
    """

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
        self._loans: List[Loan] = [Loan.from_dict(d) for d in store.get_json(LOANS_KEY, [])]
        for loan in self._loans:
            self.ids.observe(loan.id)

    def create(
        self,
        lender_name: str,
        amount: Any,
        due_date: Any = "",
        notes: Optional[str] = ""
    ) -> Loan:
        """
        Record a new active loan

        Args:
            lender_name: Who the money is owed to (required)
            amount: Positive amount, any numeric type or numeric string
            due_date: Optional ISO date or date
            notes: Optional free text

        Returns:
            Created Loan object
        """
        loan = Loan(
            id=self.ids.next_id(),
            lender_name=parse_lender_name(lender_name),
            amount=parse_amount(amount),
            start_date=self.clock.today().isoformat(),
            due_date=parse_due_date(due_date),
            status=LoanStatus.ACTIVE,
            notes=notes or "",
        )

        self._loans.insert(0, loan)
        self._persist()

        log_action(logger, "info", "Loan created", action="loan.create", resource=loan.id,
                   extra={"lender_name": loan.lender_name, "amount": str(loan.amount)})
        self._emit(DomainEvent.LOAN_CREATED, loan)
        return replace(loan)

    def update(self, loan_id: str, fields: Dict[str, Any]) -> Loan:
        """Apply a partial patch of editable fields; status is never touched"""
        index = self._index_of(loan_id)

        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(
                f"Fields not editable: {', '.join(sorted(unknown))}", "field_not_editable"
            )

        changes: Dict[str, Any] = {}
        if "lender_name" in fields:
            changes["lender_name"] = parse_lender_name(fields["lender_name"])
        if "amount" in fields:
            changes["amount"] = parse_amount(fields["amount"])
        if "due_date" in fields:
            changes["due_date"] = parse_due_date(fields["due_date"])
        if "notes" in fields:
            changes["notes"] = fields["notes"] or ""

        loan = replace(self._loans[index], **changes)
        self._loans[index] = loan
        self._persist()

        log_action(logger, "info", "Loan updated", action="loan.update", resource=loan.id,
                   extra={"fields": sorted(changes)})
        self._emit(DomainEvent.LOAN_UPDATED, loan)
        return replace(loan)

    def set_status(self, loan_id: str, status: LoanStatus) -> Loan:
        """Set the loan status; setting the current status again is a no-op"""
        index = self._index_of(loan_id)
        status = LoanStatus(status)
        current = self._loans[index]

        if current.status == status:
            return replace(current)

        loan = replace(current, status=status)
        self._loans[index] = loan
        self._persist()

        log_action(logger, "info", f"Loan marked {status.value}", action="loan.set_status",
                   resource=loan.id, extra={"from": current.status.value, "to": status.value})
        self._emit(DomainEvent.LOAN_STATUS_CHANGED, loan, {"previous_status": current.status.value})
        return replace(loan)

    def toggle_status(self, loan_id: str) -> Loan:
        """Flip active <-> paid"""
        loan = self.get(loan_id)
        target = LoanStatus.PAID if loan.is_active else LoanStatus.ACTIVE
        return self.set_status(loan_id, target)

    def delete(self, loan_id: str) -> None:
        """Remove a loan; deleting an id twice fails the second time"""
        index = self._index_of(loan_id)
        loan = self._loans.pop(index)
        self._persist()

        log_action(logger, "info", "Loan deleted", action="loan.delete", resource=loan.id)
        self._emit(DomainEvent.LOAN_DELETED, loan)

    def get(self, loan_id: str) -> Loan:
        return replace(self._loans[self._index_of(loan_id)])

    def list(self) -> List[Loan]:
        return [replace(loan) for loan in self._loans]

    # Projections, computed on every access

    @property
    def active_loans(self) -> List[Loan]:
        return [replace(loan) for loan in self._loans if loan.status == LoanStatus.ACTIVE]

    @property
    def paid_loans(self) -> List[Loan]:
        return [replace(loan) for loan in self._loans if loan.status == LoanStatus.PAID]

    @property
    def total_active_debt(self) -> Decimal:
        return sum((loan.amount for loan in self._loans if loan.status == LoanStatus.ACTIVE), Decimal("0"))

    @property
    def total_paid(self) -> Decimal:
        return sum((loan.amount for loan in self._loans if loan.status == LoanStatus.PAID), Decimal("0"))

    def _index_of(self, loan_id: str) -> int:
        for index, loan in enumerate(self._loans):
            if loan.id == loan_id:
                return index
        raise NotFoundError(f"Loan {loan_id} not found", "loan_not_found")

    def _persist(self) -> None:
        self.store.set_json(LOANS_KEY, [loan.to_dict() for loan in self._loans])

    def _emit(self, event_type: DomainEvent, loan: Loan, data: Optional[Dict[str, Any]] = None) -> None:
        if self.events is None:
            return
        payload = loan.to_dict()
        if data:
            payload.update(data)
        self.events.emit(event_type, "loan", loan.id, payload)
