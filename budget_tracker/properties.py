"""
Property Module

Rental property bookkeeping: tenants, maintenance logs and property
expenses. Each maintenance log is mirrored into one expense transaction
linked by maintenanceId, so property costs show up in budgets and reports.
"""

from typing import Any, Dict, List, Mapping
import logging

from .currency import ZERO, to_decimal
from .errors import NotFound
from .models import TransactionType
from .saga import WriteSaga
from .store import Collections, RecordStore


logger = logging.getLogger(__name__)


class PropertyManager:
    """
    Manages properties and their dependent records
    """

    def __init__(self, store: RecordStore):
        self.store = store

    async def get_property(self, property_id: str) -> Dict[str, Any]:
        prop = await self.store.get(Collections.PROPERTIES, property_id)
        if prop is None:
            raise NotFound(Collections.PROPERTIES, property_id)
        return prop

    async def add_property(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        if not (record.get("name") or "").strip():
            raise ValueError("Property name is required")
        return await self.store.add(Collections.PROPERTIES, record)

    async def delete_property(self, property_id: str) -> bool:
        """Delete a property; its tenants and maintenance go with it (best effort)"""
        return await self.store.delete(Collections.PROPERTIES, property_id)

    # ------------------------------------------------------------------
    # Tenants
    # ------------------------------------------------------------------

    async def link_tenant(self, tenant_id: str, property_id: str) -> Dict[str, Any]:
        """Attach an existing tenant to a property"""
        await self.get_property(property_id)
        tenant = await self.store.get(Collections.TENANTS, tenant_id)
        if tenant is None:
            raise NotFound(Collections.TENANTS, tenant_id)

        updated = await self.store.update(Collections.TENANTS, dict(tenant, propertyId=property_id))
        logger.info(f"Linked tenant {tenant_id} to property {property_id}")
        return updated

    async def property_tenants(self, property_id: str) -> List[Dict[str, Any]]:
        return await self.store.find(Collections.TENANTS, propertyId=property_id)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def _mirror(self, log: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "maintenanceId": log["id"],
            "type": TransactionType.EXPENSE.value,
            "categoryId": log.get("categoryId") or log.get("category"),
            "description": log.get("title") or "Maintenance Expense",
            "amount": str(to_decimal(log.get("cost"))),
            "date": log.get("date"),
            "propertyId": log.get("propertyId"),
        }

    async def save_maintenance(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Create or update a maintenance log and its mirrored expense transaction.

        Returns:
            {"maintenance": ..., "transaction": ...}
        """
        if record.get("propertyId"):
            await self.get_property(record["propertyId"])

        existing = None
        if record.get("id"):
            existing = await self.store.get(Collections.MAINTENANCE, record["id"])

        async with WriteSaga(self.store, "save maintenance") as saga:
            if existing is None:
                log = await saga.add(Collections.MAINTENANCE, record)
            else:
                log = await saga.update(Collections.MAINTENANCE, dict(existing, **record))

            linked = await self.store.find(Collections.TRANSACTIONS, maintenanceId=log["id"])
            if linked:
                transaction = await saga.update(Collections.TRANSACTIONS, dict(linked[0], **self._mirror(log)))
            else:
                transaction = await saga.add(Collections.TRANSACTIONS, self._mirror(log))

        return {"maintenance": log, "transaction": transaction}

    async def delete_maintenance(self, maintenance_id: str) -> bool:
        """Delete a maintenance log and any transaction mirrored from it"""
        deleted = await self.store.delete(Collections.MAINTENANCE, maintenance_id)
        for transaction in await self.store.find(Collections.TRANSACTIONS, maintenanceId=maintenance_id):
            await self.store.delete(Collections.TRANSACTIONS, transaction["id"])
        return deleted

    async def property_maintenance(self, property_id: str) -> List[Dict[str, Any]]:
        rows = await self.store.find(Collections.MAINTENANCE, propertyId=property_id)
        return sorted(rows, key=lambda r: r.get("date") or "", reverse=True)

    async def property_summary(self, property_id: str) -> Dict[str, Any]:
        """Tenant count and cost totals for a property"""
        prop = await self.get_property(property_id)
        tenants = await self.property_tenants(property_id)
        maintenance = await self.store.find(Collections.MAINTENANCE, propertyId=property_id)
        expenses = await self.store.find(Collections.EXPENSES, propertyId=property_id)

        maintenance_total = sum((to_decimal(m.get("cost")) for m in maintenance), ZERO)
        expense_total = sum((to_decimal(e.get("amount")) for e in expenses), ZERO)
        return {
            "id": prop["id"],
            "name": prop.get("name"),
            "tenants": len(tenants),
            "maintenance_count": len(maintenance),
            "maintenance_total": str(maintenance_total),
            "expense_total": str(expense_total),
        }
