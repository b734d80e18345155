"""
Category Module

Income and expense categories, nested at most one level deep.
"""

from typing import Any, Dict, List, Mapping, Optional
import logging

from .defaults import DEFAULT_CATEGORIES
from .errors import NotFound
from .models import CategoryType
from .store import Collections, RecordStore


logger = logging.getLogger(__name__)


class CategoryManager:
    """
    Manages the category tree
    """

    def __init__(self, store: RecordStore):
        self.store = store

    async def get_category(self, category_id: str) -> Dict[str, Any]:
        category = await self.store.get(Collections.CATEGORIES, category_id)
        if category is None:
            raise NotFound(Collections.CATEGORIES, category_id)
        return category

    async def _validate(self, record: Mapping[str, Any]) -> None:
        if not (record.get("name") or "").strip():
            raise ValueError("Category name is required")
        try:
            CategoryType(record.get("type"))
        except ValueError:
            raise ValueError(f"Invalid category type: {record.get('type')!r}")

        parent_id = record.get("parentId")
        if not parent_id:
            return
        if parent_id == record.get("id"):
            raise ValueError("A category cannot be its own parent")

        parent = await self.get_category(parent_id)
        if parent.get("parentId"):
            raise ValueError("Subcategories cannot have subcategories of their own")
        if parent.get("type") != record.get("type"):
            raise ValueError("Subcategory type must match its parent")

        if record.get("id"):
            children = await self.store.find(Collections.CATEGORIES, parentId=record["id"])
            if children:
                raise ValueError("A category with subcategories cannot become a subcategory")

    async def add_category(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Create a category

        Raises:
            ValueError: invalid type, missing name, or nesting deeper than one level
            NotFound: parentId does not exist
        """
        await self._validate(record)
        category = await self.store.add(Collections.CATEGORIES, dict(record, parentId=record.get("parentId") or None))
        logger.info(f"Created category {category['name']} ({category['id']})")
        return category

    async def update_category(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        if not record.get("id"):
            raise ValueError("Category id is required")
        existing = await self.get_category(record["id"])
        merged = dict(existing, **record)
        await self._validate(merged)
        merged["parentId"] = merged.get("parentId") or None
        return await self.store.update(Collections.CATEGORIES, merged)

    async def delete_category(self, category_id: str) -> int:
        """Delete a category and its subcategories. Returns how many were removed."""
        children = await self.store.find(Collections.CATEGORIES, parentId=category_id)
        for child in children:
            await self.store.delete(Collections.CATEGORIES, child["id"])
        deleted = await self.store.delete(Collections.CATEGORIES, category_id)
        removed = len(children) + (1 if deleted else 0)
        logger.info(f"Deleted category {category_id} ({removed} removed)")
        return removed

    async def ensure_defaults(self) -> List[Dict[str, Any]]:
        """Add any default category that is missing (matched by id)"""
        added = []
        for default in DEFAULT_CATEGORIES:
            if await self.store.get(Collections.CATEGORIES, default["id"]) is None:
                added.append(await self.store.add(Collections.CATEGORIES, default))
        if added:
            logger.info(f"Added {len(added)} default categories")
        return added

    async def reset_to_defaults(self) -> List[Dict[str, Any]]:
        """Replace every category with the default set"""
        for category in await self.store.get_all(Collections.CATEGORIES):
            await self.store.delete(Collections.CATEGORIES, category["id"])
        logger.warning("Categories reset to defaults")
        return await self.ensure_defaults()

    async def category_tree(self, category_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Top-level categories, each with a `children` list, sorted by name"""
        categories = await self.store.get_all(Collections.CATEGORIES)
        if category_type:
            categories = [c for c in categories if c.get("type") == category_type]

        by_name = sorted(categories, key=lambda c: (c.get("name") or "").lower())
        tree = [dict(c, children=[]) for c in by_name if not c.get("parentId")]
        index = {node["id"]: node for node in tree}
        for category in by_name:
            parent = index.get(category.get("parentId"))
            if parent is not None:
                parent["children"].append(category)
        return tree
