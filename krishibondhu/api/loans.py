"""
Loan endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from ..errors import KrishiError
from ..loans import LoanStatus
from .schemas import CreateLoanRequest, UpdateLoanRequest, LoanModel, LoanSummaryModel
from .system import KrishiSystem, get_system, http_error


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_loan(
    request: CreateLoanRequest,
    system: KrishiSystem = Depends(get_system)
):
    """Record a new loan"""
    try:
        loan = system.manager.add_loan(request.to_draft())
    except KrishiError as e:
        raise http_error(e)

    return {
        "loan": LoanModel.from_loan(loan).model_dump(),
        "message": "Loan created successfully"
    }


@router.get("")
async def list_loans(
    loan_status: Optional[LoanStatus] = Query(None, alias="status", description="active or paid"),
    system: KrishiSystem = Depends(get_system)
):
    """List loans, most recent first"""
    manager = system.manager
    if loan_status == LoanStatus.ACTIVE:
        loans = manager.active_loans
    elif loan_status == LoanStatus.PAID:
        loans = manager.paid_loans
    else:
        loans = manager.all_loans

    return {"loans": [LoanModel.from_loan(loan).model_dump() for loan in loans]}


@router.get("/summary")
async def get_summary(system: KrishiSystem = Depends(get_system)):
    """Totals for the active and history views"""
    summary = system.manager.summary()
    return LoanSummaryModel(
        active_count=summary["active_count"],
        paid_count=summary["paid_count"],
        total_active_debt=str(summary["total_active_debt"]),
        total_paid=str(summary["total_paid"])
    ).model_dump()


@router.get("/{loan_id}")
async def get_loan(loan_id: str, system: KrishiSystem = Depends(get_system)):
    """Get loan details"""
    try:
        return LoanModel.from_loan(system.manager.get_loan(loan_id)).model_dump()
    except KrishiError as e:
        raise http_error(e)


@router.patch("/{loan_id}")
async def update_loan(
    loan_id: str,
    request: UpdateLoanRequest,
    system: KrishiSystem = Depends(get_system)
):
    """Edit an active loan"""
    try:
        loan = system.manager.edit_loan(loan_id, request.to_fields())
    except KrishiError as e:
        raise http_error(e)
    return LoanModel.from_loan(loan).model_dump()


@router.post("/{loan_id}/toggle")
async def toggle_loan_status(loan_id: str, system: KrishiSystem = Depends(get_system)):
    """Flip a loan between active and paid"""
    try:
        loan = system.manager.toggle_status(loan_id)
    except KrishiError as e:
        raise http_error(e)
    return LoanModel.from_loan(loan).model_dump()


@router.delete("/{loan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_loan(loan_id: str, system: KrishiSystem = Depends(get_system)):
    """Delete a loan (the client confirms before calling)"""
    try:
        system.manager.delete_loan(loan_id)
    except KrishiError as e:
        raise http_error(e)


@router.post("/{loan_id}/reminder", status_code=status.HTTP_201_CREATED)
async def set_loan_reminder(loan_id: str, system: KrishiSystem = Depends(get_system)):
    """Schedule a due-date reminder for a loan"""
    try:
        reminder = await system.manager.request_reminder(loan_id)
    except KrishiError as e:
        raise http_error(e)
    return {"reminder_id": reminder.id, "date": reminder.date, "message": "Reminder set"}
