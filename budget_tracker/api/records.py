"""
Generic collection endpoints
"""

import json
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request, status

from .dependencies import get_tracker
from ..errors import NotFound
from ..tracker import BudgetTracker


router = APIRouter()


def _filter_value(raw: str) -> Any:
    """Booleans, integers and null match stored JSON types; anything else stays a string"""
    try:
        value = json.loads(raw)
    except ValueError:
        return raw
    return value if isinstance(value, (bool, int)) or value is None else raw


@router.get("/{collection}")
async def list_records(
    collection: str,
    request: Request,
    tracker: BudgetTracker = Depends(get_tracker)
):
    """All records of a collection; query parameters filter by field equality"""
    filters = {key: _filter_value(value) for key, value in request.query_params.items()}
    if filters:
        return await tracker.store.find(collection, **filters)
    return await tracker.store.get_all(collection)


@router.get("/{collection}/{record_id}")
async def get_record(
    collection: str,
    record_id: str,
    tracker: BudgetTracker = Depends(get_tracker)
):
    record = await tracker.store.get(collection, record_id)
    if record is None:
        raise NotFound(collection, record_id)
    return record


@router.post("/{collection}", status_code=status.HTTP_201_CREATED)
async def add_record(
    collection: str,
    record: Dict[str, Any] = Body(...),
    tracker: BudgetTracker = Depends(get_tracker)
):
    return await tracker.store.add(collection, record)


@router.put("/{collection}/{record_id}")
async def update_record(
    collection: str,
    record_id: str,
    record: Dict[str, Any] = Body(...),
    tracker: BudgetTracker = Depends(get_tracker)
):
    return await tracker.store.update(collection, dict(record, id=record_id))


@router.delete("/{collection}/{record_id}")
async def delete_record(
    collection: str,
    record_id: str,
    tracker: BudgetTracker = Depends(get_tracker)
):
    deleted = await tracker.store.delete(collection, record_id)
    return {"deleted": deleted, "id": record_id}
