"""
Budget and category endpoints
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, status

from .dependencies import get_tracker
from ..budgets import convert_amount
from ..tracker import BudgetTracker


budgets_router = APIRouter()
categories_router = APIRouter()


@budgets_router.get("/convert")
async def convert(amount: str, from_frequency: str, to_frequency: str):
    """Re-express an amount in another budget frequency"""
    return {
        "amount": amount,
        "from_frequency": from_frequency,
        "to_frequency": to_frequency,
        "converted": str(convert_amount(amount, from_frequency, to_frequency)),
    }


@budgets_router.get("/progress")
async def progress(view_mode: str = "monthly", tracker: BudgetTracker = Depends(get_tracker)):
    """Spending against every budget in the current period"""
    return [p.to_dict() for p in await tracker.budget_overview(view_mode)]


@categories_router.get("/tree")
async def category_tree(type: Optional[str] = None, tracker: BudgetTracker = Depends(get_tracker)):
    return await tracker.categories.category_tree(type)


@categories_router.post("", status_code=status.HTTP_201_CREATED)
async def add_category(record: Dict[str, Any] = Body(...), tracker: BudgetTracker = Depends(get_tracker)):
    return await tracker.categories.add_category(record)


@categories_router.put("/{category_id}")
async def update_category(
    category_id: str,
    record: Dict[str, Any] = Body(...),
    tracker: BudgetTracker = Depends(get_tracker)
):
    return await tracker.categories.update_category(dict(record, id=category_id))


@categories_router.delete("/{category_id}")
async def delete_category(category_id: str, tracker: BudgetTracker = Depends(get_tracker)):
    """Delete a category and its subcategories"""
    return {"removed": await tracker.categories.delete_category(category_id)}


@categories_router.post("/defaults")
async def restore_defaults(tracker: BudgetTracker = Depends(get_tracker)):
    added = await tracker.categories.ensure_defaults()
    return {"added": len(added)}
