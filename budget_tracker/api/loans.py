"""
Loan endpoints
"""

from fastapi import APIRouter, Depends, status

from .dependencies import get_tracker
from .schemas import LoanPaymentRequest, PaymentPreviewRequest
from .. import amortization
from ..tracker import BudgetTracker


router = APIRouter()


@router.get("/{loan_id}/schedule")
async def get_schedule(loan_id: str, tracker: BudgetTracker = Depends(get_tracker)):
    """Amortization schedule from the original terms"""
    loan = await tracker.loans.get_loan(loan_id)
    return [entry.to_dict() for entry in amortization.schedule(loan)]


@router.get("/{loan_id}/next-payment")
async def get_next_payment(loan_id: str, tracker: BudgetTracker = Depends(get_tracker)):
    upcoming = amortization.next_payment(await tracker.loans.get_loan(loan_id))
    return {"amount": str(upcoming.amount), "due_date": upcoming.due_date}


@router.get("/{loan_id}/summary")
async def get_summary(loan_id: str, tracker: BudgetTracker = Depends(get_tracker)):
    """Payment, interest, progress and offset saving"""
    summary = amortization.loan_summary(await tracker.loans.get_loan(loan_id))
    summary["offset_saving"] = str(await tracker.loans.offset_saving(loan_id))
    return summary


@router.get("/{loan_id}/payments")
async def get_payments(loan_id: str, tracker: BudgetTracker = Depends(get_tracker)):
    return await tracker.loans.loan_payments(loan_id)


@router.post("/{loan_id}/payments", status_code=status.HTTP_201_CREATED)
async def make_payment(
    loan_id: str,
    request: LoanPaymentRequest,
    tracker: BudgetTracker = Depends(get_tracker)
):
    """Apply a payment from an account to the loan"""
    result = await tracker.loans.process_payment(
        loan_id=loan_id,
        amount=request.amount,
        from_account_id=request.from_account_id,
        payment_date=request.payment_date
    )
    return result.to_dict()


@router.post("/{loan_id}/payment-preview")
async def preview_payment(
    loan_id: str,
    request: PaymentPreviewRequest,
    tracker: BudgetTracker = Depends(get_tracker)
):
    principal, interest = await tracker.loans.preview_payment(loan_id, request.amount)
    return {"principal": str(principal), "interest": str(interest)}
