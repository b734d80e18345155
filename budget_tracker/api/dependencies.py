"""
Request dependencies
"""

from fastapi import Request

from ..tracker import BudgetTracker


async def get_tracker(request: Request) -> BudgetTracker:
    """The app's tracker, with its store open (retrying a failed open)"""
    tracker: BudgetTracker = request.app.state.tracker
    if not tracker.store.is_open:
        await tracker.store.open()
    return tracker
