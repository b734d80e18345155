"""
Bill and posting job endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends

from .dependencies import get_tracker
from .schemas import MarkBillPaidRequest, RunJobsRequest
from ..models import parse_date
from ..tracker import BudgetTracker


bills_router = APIRouter()
jobs_router = APIRouter()


@bills_router.post("/{bill_id}/mark-paid")
async def mark_bill_paid(
    bill_id: str,
    request: Optional[MarkBillPaidRequest] = None,
    tracker: BudgetTracker = Depends(get_tracker)
):
    """Mark a bill paid by hand, posting it and scheduling repeats"""
    today = parse_date(request.date) if request else None
    return await tracker.jobs.mark_bill_paid(bill_id, today)


@jobs_router.post("/run")
async def run_jobs(
    request: Optional[RunJobsRequest] = None,
    tracker: BudgetTracker = Depends(get_tracker)
):
    """Run the recurring and due bill passes now"""
    today = parse_date(request.today) if request else None
    result = await tracker.jobs.run(today)
    return {
        "recurring_posted": len(result["recurring"]),
        "bills_paid": len(result["bills"]),
        "transactions": result["recurring"],
        "bills": result["bills"],
    }
