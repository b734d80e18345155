"""
Tests for the category tree
"""

import pytest
import pytest_asyncio

from budget_tracker.categories import CategoryManager
from budget_tracker.defaults import DEFAULT_CATEGORIES
from budget_tracker.errors import NotFound
from budget_tracker.store import Collections


class TestCategoryManager:
    """Test one-level category nesting"""

    @pytest_asyncio.fixture
    async def manager(self, store):
        return CategoryManager(store)

    @pytest_asyncio.fixture
    async def food(self, manager):
        return await manager.add_category({"name": "Food", "type": "expense"})

    @pytest.mark.asyncio
    async def test_add_subcategory(self, manager, food):
        child = await manager.add_category({"name": "Groceries", "type": "expense", "parentId": food["id"]})

        assert child["parentId"] == food["id"]
        assert (await manager.get_category(child["id"]))["name"] == "Groceries"

    @pytest.mark.asyncio
    async def test_top_level_parent_is_none(self, manager):
        category = await manager.add_category({"name": "Salary", "type": "income", "parentId": ""})
        assert category["parentId"] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("record", [
        {"name": "", "type": "expense"},
        {"name": "Food", "type": "transfer"},
    ])
    async def test_invalid_category(self, manager, record):
        with pytest.raises(ValueError):
            await manager.add_category(record)

    @pytest.mark.asyncio
    async def test_no_grandchildren(self, manager, food):
        child = await manager.add_category({"name": "Groceries", "type": "expense", "parentId": food["id"]})

        with pytest.raises(ValueError):
            await manager.add_category({"name": "Fruit", "type": "expense", "parentId": child["id"]})

    @pytest.mark.asyncio
    async def test_parent_type_must_match(self, manager, food):
        with pytest.raises(ValueError):
            await manager.add_category({"name": "Refunds", "type": "income", "parentId": food["id"]})

    @pytest.mark.asyncio
    async def test_missing_parent(self, manager):
        with pytest.raises(NotFound):
            await manager.add_category({"name": "Orphan", "type": "expense", "parentId": "missing"})

    @pytest.mark.asyncio
    async def test_parent_with_children_cannot_be_nested(self, manager, food):
        await manager.add_category({"name": "Groceries", "type": "expense", "parentId": food["id"]})
        other = await manager.add_category({"name": "Living", "type": "expense"})

        with pytest.raises(ValueError):
            await manager.update_category({"id": food["id"], "parentId": other["id"]})

    @pytest.mark.asyncio
    async def test_cannot_parent_itself(self, manager, food):
        with pytest.raises(ValueError):
            await manager.update_category({"id": food["id"], "parentId": food["id"]})

    @pytest.mark.asyncio
    async def test_update_merges_fields(self, manager, food):
        updated = await manager.update_category({"id": food["id"], "icon": "🍔"})

        assert updated["name"] == "Food"
        assert updated["icon"] == "🍔"

    @pytest.mark.asyncio
    async def test_delete_removes_children(self, manager, store, food):
        await manager.add_category({"name": "Groceries", "type": "expense", "parentId": food["id"]})
        await manager.add_category({"name": "Takeaway", "type": "expense", "parentId": food["id"]})

        assert await manager.delete_category(food["id"]) == 3
        assert await store.count(Collections.CATEGORIES) == 0

    @pytest.mark.asyncio
    async def test_category_tree(self, manager, food):
        await manager.add_category({"name": "takeaway", "type": "expense", "parentId": food["id"]})
        await manager.add_category({"name": "Groceries", "type": "expense", "parentId": food["id"]})
        await manager.add_category({"name": "Bills", "type": "expense"})
        await manager.add_category({"name": "Salary", "type": "income"})

        tree = await manager.category_tree("expense")

        assert [node["name"] for node in tree] == ["Bills", "Food"]
        assert [child["name"] for child in tree[1]["children"]] == ["Groceries", "takeaway"]

    @pytest.mark.asyncio
    async def test_defaults(self, manager, store, food):
        added = await manager.ensure_defaults()
        assert len(added) == len(DEFAULT_CATEGORIES)
        assert await manager.ensure_defaults() == []

        reset = await manager.reset_to_defaults()
        assert len(reset) == len(DEFAULT_CATEGORIES)
        assert await store.get(Collections.CATEGORIES, food["id"]) is None
