"""
Property endpoints
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from .dependencies import get_tracker
from .schemas import LinkTenantRequest
from ..tracker import BudgetTracker


router = APIRouter()


@router.get("/{property_id}/summary")
async def property_summary(property_id: str, tracker: BudgetTracker = Depends(get_tracker)):
    return await tracker.properties.property_summary(property_id)


@router.delete("/{property_id}")
async def delete_property(property_id: str, tracker: BudgetTracker = Depends(get_tracker)):
    """Delete a property with its tenants and maintenance logs"""
    return {"deleted": await tracker.properties.delete_property(property_id), "id": property_id}


@router.post("/{property_id}/tenants")
async def link_tenant(
    property_id: str,
    request: LinkTenantRequest,
    tracker: BudgetTracker = Depends(get_tracker)
):
    return await tracker.properties.link_tenant(request.tenant_id, property_id)


@router.post("/{property_id}/maintenance")
async def save_maintenance(
    property_id: str,
    record: Dict[str, Any] = Body(...),
    tracker: BudgetTracker = Depends(get_tracker)
):
    """Create or update a maintenance log and its expense transaction"""
    return await tracker.properties.save_maintenance(dict(record, propertyId=property_id))


@router.delete("/maintenance/{maintenance_id}")
async def delete_maintenance(maintenance_id: str, tracker: BudgetTracker = Depends(get_tracker)):
    return {"deleted": await tracker.properties.delete_maintenance(maintenance_id)}
