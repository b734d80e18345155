"""
Tests for property bookkeeping
"""

import pytest
import pytest_asyncio
from decimal import Decimal

from budget_tracker.errors import NotFound
from budget_tracker.properties import PropertyManager
from budget_tracker.store import Collections


class TestPropertyManager:
    """Test properties, tenants and mirrored maintenance"""

    @pytest_asyncio.fixture
    async def manager(self, store):
        return PropertyManager(store)

    @pytest_asyncio.fixture
    async def house(self, manager):
        return await manager.add_property({"name": "12 Smith St", "address": "12 Smith St, Sydney"})

    @pytest.mark.asyncio
    async def test_property_requires_name(self, manager):
        with pytest.raises(ValueError):
            await manager.add_property({"address": "nowhere"})

    @pytest.mark.asyncio
    async def test_link_tenant(self, manager, store, house):
        tenant = await store.add(Collections.TENANTS, {"name": "Alex"})

        linked = await manager.link_tenant(tenant["id"], house["id"])

        assert linked["propertyId"] == house["id"]
        assert [t["id"] for t in await manager.property_tenants(house["id"])] == [tenant["id"]]

    @pytest.mark.asyncio
    async def test_link_missing_tenant(self, manager, house):
        with pytest.raises(NotFound):
            await manager.link_tenant("missing", house["id"])

    @pytest.mark.asyncio
    async def test_maintenance_is_mirrored(self, manager, store, house):
        result = await manager.save_maintenance({
            "propertyId": house["id"],
            "title": "Fix gutter",
            "cost": "350",
            "date": "2024-05-02",
            "category": "exp_housing",
        })

        log, txn = result["maintenance"], result["transaction"]
        assert txn["maintenanceId"] == log["id"]
        assert txn["type"] == "expense"
        assert txn["description"] == "Fix gutter"
        assert txn["categoryId"] == "exp_housing"
        assert txn["propertyId"] == house["id"]
        assert Decimal(txn["amount"]) == Decimal('350')

    @pytest.mark.asyncio
    async def test_maintenance_update_keeps_single_mirror(self, manager, store, house):
        first = await manager.save_maintenance({"propertyId": house["id"], "cost": "100", "date": "2024-05-02"})
        log = first["maintenance"]

        second = await manager.save_maintenance({"id": log["id"], "cost": "180"})

        mirrors = await store.find(Collections.TRANSACTIONS, maintenanceId=log["id"])
        assert len(mirrors) == 1
        assert mirrors[0]["id"] == first["transaction"]["id"]
        assert mirrors[0]["amount"] == "180"
        assert mirrors[0]["description"] == "Maintenance Expense"
        assert second["maintenance"]["propertyId"] == house["id"]

    @pytest.mark.asyncio
    async def test_maintenance_for_missing_property(self, manager, store):
        with pytest.raises(NotFound):
            await manager.save_maintenance({"propertyId": "missing", "cost": "1"})
        assert await store.count(Collections.MAINTENANCE) == 0

    @pytest.mark.asyncio
    async def test_delete_maintenance_removes_mirror(self, manager, store, house):
        result = await manager.save_maintenance({"propertyId": house["id"], "cost": "90"})

        assert await manager.delete_maintenance(result["maintenance"]["id"]) is True
        assert await store.count(Collections.TRANSACTIONS) == 0

    @pytest.mark.asyncio
    async def test_delete_property_cascades(self, manager, store, house):
        tenant = await store.add(Collections.TENANTS, {"name": "Sam", "propertyId": house["id"]})
        await manager.save_maintenance({"propertyId": house["id"], "cost": "50"})

        assert await manager.delete_property(house["id"]) is True

        assert await store.get(Collections.TENANTS, tenant["id"]) is None
        assert await store.count(Collections.MAINTENANCE) == 0

    @pytest.mark.asyncio
    async def test_summary(self, manager, store, house):
        await store.add(Collections.TENANTS, {"name": "Sam", "propertyId": house["id"]})
        await manager.save_maintenance({"propertyId": house["id"], "cost": "50", "date": "2024-01-01"})
        await manager.save_maintenance({"propertyId": house["id"], "cost": "25.5", "date": "2024-02-01"})
        await store.add(Collections.EXPENSES, {"propertyId": house["id"], "amount": "1200"})

        summary = await manager.property_summary(house["id"])

        assert summary["tenants"] == 1
        assert summary["maintenance_count"] == 2
        assert Decimal(summary["maintenance_total"]) == Decimal('75.5')
        assert Decimal(summary["expense_total"]) == Decimal('1200')

        history = await manager.property_maintenance(house["id"])
        assert [m["date"] for m in history] == ["2024-02-01", "2024-01-01"]
