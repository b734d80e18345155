"""
Backup, restore and reset endpoints
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from .dependencies import get_tracker
from ..tracker import BudgetTracker


router = APIRouter()


@router.get("/export")
async def export_data(tracker: BudgetTracker = Depends(get_tracker)):
    """Full backup document"""
    return await tracker.store.export_snapshot()


@router.post("/import")
async def import_data(
    snapshot: Dict[str, Any] = Body(...),
    overwrite: bool = False,
    tracker: BudgetTracker = Depends(get_tracker)
):
    """Restore a backup; ?overwrite=true clears every collection first"""
    written = await tracker.store.import_snapshot(snapshot, overwrite=overwrite)
    return {"imported": written, "overwrite": overwrite}


@router.post("/reset")
async def reset_data(tracker: BudgetTracker = Depends(get_tracker)):
    """Empty every collection"""
    await tracker.store.clear_all()
    return {"status": "cleared"}
