"""
Payment Flow Module

Simulated settlement of a single loan, driven as a finite-state machine:

    select -> input -> processing -> success
                                  -> failure -> input (retry)

``close`` is accepted from every step. Once ``processing`` is entered the
simulated settlement always runs to completion; closing the session at that
point only detaches it from observers. Reaching ``success`` marks the loan
paid exactly once. A declined payment is a normal terminal step reported
through ``PaymentOutcome``, not an exception.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from enum import Enum
import uuid

from .config import get_config
from .errors import PreconditionError, InvalidTransitionError, ValidationError, NotFoundError
from .events import EventDispatcher, DomainEvent
from .loans import Loan, LoanRepository, LoanStatus
from .logging_config import get_logger, log_action


logger = get_logger("krishibondhu.payments")

INSUFFICIENT_FUNDS = "insufficient_funds"


class PaymentMethod(Enum):
    """Supported simulated payment channels"""
    MOBILE_WALLET = "mobile-wallet"
    BANK_TRANSFER = "bank-transfer"


class PaymentStep(Enum):
    """Steps of a payment session"""
    SELECT = "select"
    INPUT = "input"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILURE = "failure"
    CLOSED = "closed"


@dataclass
class WalletCredentials:
    """Mobile wallet PIN entry"""
    pin: str = ""

    def validate(self) -> None:
        pin = (self.pin or "").strip()
        if not pin:
            raise ValidationError("PIN is required", "pin_required")
        if not pin.isdigit() or not 4 <= len(pin) <= 6:
            raise ValidationError("PIN must be 4 to 6 digits", "pin_invalid")

    @property
    def secret(self) -> str:
        return (self.pin or "").strip()


@dataclass
class BankTransferCredentials:
    """Bank transfer details"""
    bank_name: str = ""
    account_number: str = ""
    reference: str = ""

    def validate(self) -> None:
        if not (self.bank_name or "").strip():
            raise ValidationError("Bank name is required", "bank_name_required")
        if not (self.account_number or "").strip():
            raise ValidationError("Account number is required", "account_number_required")

    @property
    def secret(self) -> str:
        return (self.account_number or "").strip()


Credentials = Union[WalletCredentials, BankTransferCredentials]

CREDENTIAL_TYPES = {
    PaymentMethod.MOBILE_WALLET: WalletCredentials,
    PaymentMethod.BANK_TRANSFER: BankTransferCredentials,
}


def parse_method(method: Union[PaymentMethod, str]) -> PaymentMethod:
    try:
        return PaymentMethod(method)
    except ValueError:
        raise ValidationError(f"Unsupported payment method: {method!r}", "method_invalid")


def coerce_credentials(method: PaymentMethod, credentials: Union[Credentials, Dict[str, Any]]) -> Credentials:
    """Accept either a credentials object or a plain mapping for the chosen method"""
    expected = CREDENTIAL_TYPES[method]
    if isinstance(credentials, dict):
        allowed = set(expected.__dataclass_fields__)
        unknown = set(credentials) - allowed
        if unknown:
            raise ValidationError(
                f"Unexpected credential fields for {method.value}: {', '.join(sorted(unknown))}",
                "credentials_mismatch"
            )
        return expected(**credentials)
    if not isinstance(credentials, expected):
        raise ValidationError(
            f"{method.value} payments need {expected.__name__}", "credentials_mismatch"
        )
    return credentials


def _require_active(loan: Loan) -> None:
    if loan.status != LoanStatus.ACTIVE:
        raise PreconditionError(
            f"Loan {loan.id} is {loan.status.value}; only active loans can be paid",
            "loan_not_active"
        )


@dataclass
class PaymentSession:
    """One payment attempt for one loan; never persisted"""
    loan_id: str
    lender_name: str
    amount: Any
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    step: PaymentStep = PaymentStep.SELECT
    method: Optional[PaymentMethod] = None
    credentials: Optional[Credentials] = None
    failure_reason: Optional[str] = None
    attempts: int = 0
    closed: bool = False

    def clear_credentials(self) -> None:
        self.credentials = None


@dataclass
class PaymentOutcome:
    """Terminal result of a submitted payment"""
    session_id: str
    loan_id: str
    step: PaymentStep
    method: PaymentMethod
    reason: Optional[str] = None
    loan: Optional[Loan] = None

    @property
    def succeeded(self) -> bool:
        return self.step == PaymentStep.SUCCESS


StepListener = Callable[[PaymentSession, PaymentStep], None]


class PaymentFlowController:
    """
    Drives the single active payment session.

    The only repository side effect is ``set_status(loan_id, PAID)`` when a
    session reaches ``success``; it is applied before listeners are told.
    """

    def __init__(
        self,
        loans: LoanRepository,
        processing_delay: Optional[float] = None,
        failure_sentinel: Optional[str] = None,
        events: Optional[EventDispatcher] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        config = get_config()
        self.loans = loans
        self.processing_delay = (
            config.payment_processing_delay_seconds if processing_delay is None else processing_delay
        )
        self.failure_sentinel = (
            config.payment_failure_sentinel if failure_sentinel is None else failure_sentinel
        )
        self.events = events
        self._sleep = sleep
        self._session: Optional[PaymentSession] = None
        self._listeners: List[StepListener] = []

    @property
    def session(self) -> Optional[PaymentSession]:
        return self._session

    @property
    def step(self) -> PaymentStep:
        return self._session.step if self._session else PaymentStep.CLOSED

    def subscribe(self, listener: StepListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: StepListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def open(self, loan: Loan) -> PaymentSession:
        """Start a session for an active loan; any previous session is closed"""
        _require_active(loan)
        if self._session is not None:
            self.close()

        session = PaymentSession(loan_id=loan.id, lender_name=loan.lender_name, amount=loan.amount)
        self._session = session
        log_action(logger, "info", "Payment session opened", action="payment.open",
                   resource=loan.id, extra={"session_id": session.id})
        self._notify(session)
        return session

    def choose_method(self, method: Union[PaymentMethod, str]) -> PaymentSession:
        session = self._require(PaymentStep.SELECT, "choose a payment method")
        session.method = parse_method(method)
        session.clear_credentials()
        self._advance(session, PaymentStep.INPUT)
        return session

    async def submit(self, credentials: Union[Credentials, Dict[str, Any]]) -> PaymentOutcome:
        """
        Validate credentials, simulate settlement and resolve to a terminal step.

        Raises ValidationError before entering ``processing`` when the
        credentials are malformed, and PreconditionError when the loan was
        settled since the session opened; either way the session stays at
        ``input``.
        """
        session = self._require(PaymentStep.INPUT, "submit a payment")
        creds = coerce_credentials(session.method, credentials)
        creds.validate()
        _require_active(self.loans.get(session.loan_id))

        session.credentials = creds
        session.failure_reason = None
        session.attempts += 1
        self._advance(session, PaymentStep.PROCESSING)

        await self._sleep(self.processing_delay)

        if creds.secret == self.failure_sentinel:
            return self._fail(session, INSUFFICIENT_FUNDS)
        return self._succeed(session)

    def retry(self) -> PaymentSession:
        """Go back to credential input after a failure, keeping the method"""
        session = self._require(PaymentStep.FAILURE, "retry a payment")
        session.clear_credentials()
        session.failure_reason = None
        self._advance(session, PaymentStep.INPUT)
        return session

    def close(self) -> PaymentStep:
        """
        Discard the current session.

        Returns the step the session had reached, so callers can decide
        whether to close views that led to the payment (e.g. on success).
        """
        session = self._session
        if session is None:
            return PaymentStep.CLOSED

        reached = session.step
        session.closed = True
        session.clear_credentials()
        self._session = None

        if reached == PaymentStep.PROCESSING:
            logger.warning(f"Payment session {session.id} closed while processing; settlement will still complete")
        log_action(logger, "info", "Payment session closed", action="payment.close",
                   resource=session.loan_id, extra={"session_id": session.id, "step": reached.value})
        self._emit(DomainEvent.PAYMENT_STEP_CHANGED, session, {"step": PaymentStep.CLOSED.value,
                                                               "reached": reached.value})
        for listener in list(self._listeners):
            self._call(listener, session, PaymentStep.CLOSED)
        return reached

    def _succeed(self, session: PaymentSession) -> PaymentOutcome:
        loan = None
        try:
            loan = self.loans.set_status(session.loan_id, LoanStatus.PAID)
        except NotFoundError:
            logger.warning(f"Loan {session.loan_id} was deleted before settlement of session {session.id}")

        session.clear_credentials()
        self._advance(session, PaymentStep.SUCCESS)
        self._emit(DomainEvent.PAYMENT_SUCCEEDED, session)
        log_action(logger, "info", "Payment succeeded", action="payment.success",
                   resource=session.loan_id, extra={"session_id": session.id,
                                                    "method": session.method.value})
        return PaymentOutcome(session.id, session.loan_id, PaymentStep.SUCCESS, session.method, loan=loan)

    def _fail(self, session: PaymentSession, reason: str) -> PaymentOutcome:
        session.failure_reason = reason
        self._advance(session, PaymentStep.FAILURE)
        self._emit(DomainEvent.PAYMENT_FAILED, session, {"reason": reason})
        log_action(logger, "warning", "Payment declined", action="payment.failure",
                   resource=session.loan_id, extra={"session_id": session.id, "reason": reason})
        return PaymentOutcome(session.id, session.loan_id, PaymentStep.FAILURE, session.method, reason=reason)

    def _require(self, step: PaymentStep, action: str) -> PaymentSession:
        session = self._session
        if session is None:
            raise InvalidTransitionError(f"Cannot {action}: no payment session is open")
        if session.step != step:
            raise InvalidTransitionError(
                f"Cannot {action} while payment is at '{session.step.value}'"
            )
        return session

    def _advance(self, session: PaymentSession, step: PaymentStep) -> None:
        session.step = step
        if session.closed:
            return
        self._emit(DomainEvent.PAYMENT_STEP_CHANGED, session, {"step": step.value})
        self._notify(session)

    def _notify(self, session: PaymentSession) -> None:
        for listener in list(self._listeners):
            self._call(listener, session, session.step)

    def _call(self, listener: StepListener, session: PaymentSession, step: PaymentStep) -> None:
        try:
            listener(session, step)
        except Exception as e:
            logger.error(f"Error in payment listener {getattr(listener, '__name__', repr(listener))}: {e}")

    def _emit(self, event_type: DomainEvent, session: PaymentSession,
              data: Optional[Dict[str, Any]] = None) -> None:
        if self.events is None:
            return
        payload = {
            "session_id": session.id,
            "step": session.step.value,
            "method": session.method.value if session.method else None,
        }
        if data:
            payload.update(data)
        self.events.emit(event_type, "loan", session.loan_id, payload)
