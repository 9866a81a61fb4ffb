"""
Payment session endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, status

from ..errors import KrishiError
from .schemas import (
    OpenPaymentRequest, ChooseMethodRequest, SubmitPaymentRequest,
    PaymentSessionModel, PaymentOutcomeModel
)
from .system import KrishiSystem, get_system, http_error


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def open_payment(request: OpenPaymentRequest, system: KrishiSystem = Depends(get_system)):
    """Open a payment session for an active loan"""
    try:
        session = system.manager.open_payment(request.loan_id)
    except KrishiError as e:
        raise http_error(e)
    return PaymentSessionModel.from_session(session).model_dump()


@router.get("/current")
async def get_current_payment(system: KrishiSystem = Depends(get_system)):
    """Current payment session"""
    session = system.manager.payment_session
    if session is None:
        raise HTTPException(status_code=404, detail="No payment session open")
    return PaymentSessionModel.from_session(session).model_dump()


@router.post("/current/method")
async def choose_method(request: ChooseMethodRequest, system: KrishiSystem = Depends(get_system)):
    """Pick mobile wallet or bank transfer"""
    try:
        session = system.manager.choose_payment_method(request.method)
    except KrishiError as e:
        raise http_error(e)
    return PaymentSessionModel.from_session(session).model_dump()


@router.post("/current/submit")
async def submit_payment(request: SubmitPaymentRequest, system: KrishiSystem = Depends(get_system)):
    """Submit credentials and wait for the simulated settlement"""
    try:
        outcome = await system.manager.submit_payment(request.to_credentials())
    except KrishiError as e:
        raise http_error(e)
    return PaymentOutcomeModel.from_outcome(outcome).model_dump()


@router.post("/current/retry")
async def retry_payment(system: KrishiSystem = Depends(get_system)):
    """Return to credential input after a declined payment"""
    try:
        session = system.manager.retry_payment()
    except KrishiError as e:
        raise http_error(e)
    return PaymentSessionModel.from_session(session).model_dump()


@router.delete("/current")
async def close_payment(system: KrishiSystem = Depends(get_system)):
    """Close the session; reports the step it had reached"""
    reached = system.manager.close_payment()
    return {"closed": True, "reached": reached.value}
