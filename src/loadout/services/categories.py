"""カテゴリの手動管理を行うサービス。"""

import logging

from loadout.models.catalog import Category, CategorySummary
from loadout.models.errors import DuplicateNameError, NotFoundError, ReferentialIntegrityError
from loadout.services.base import BaseService, service_operation

logger = logging.getLogger(__name__)


class CategoryService(BaseService):
    """カテゴリの作成・更新・論理削除・参照を行う。"""

    async def _require(self, category_id: str) -> Category:
        category = await self._storage.categories.get(category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        return category

    async def _summarize(self, category: Category) -> CategorySummary:
        stacks = await self._storage.get_tech_stacks_by_category(category.id)
        return CategorySummary(category=category, tech_stack_count=len(stacks))

    @service_operation("create category")
    async def create_category(self, name: str, description: str, display_order: int = 0) -> Category:
        """カテゴリを作成する。

        Raises:
            DuplicateNameError: 同名のカテゴリが既に存在する場合。
        """
        category = Category.create(name, description)
        category.set_display_order(display_order)
        if await self._storage.category_exists_by_name(category.name):
            raise DuplicateNameError("category", category.name)
        await self._storage.categories.add(category)
        await self._storage.save_changes()
        logger.info("Created category '%s' (%s)", category.name, category.id)
        return category

    @service_operation("update category")
    async def update_category(
        self,
        category_id: str,
        name: str | None = None,
        description: str | None = None,
        display_order: int | None = None,
        is_active: bool | None = None,
    ) -> Category:
        """指定された項目だけを更新する。名前を変更する場合は一意性を再確認する。"""
        category = await self._require(category_id)
        if name is not None and name.strip() != category.name:
            if await self._storage.category_exists_by_name(name, exclude_id=category.id):
                raise DuplicateNameError("category", name.strip())
        if name is not None:
            category.set_name(name)
        if description is not None:
            category.set_description(description)
        if display_order is not None:
            category.set_display_order(display_order)
        if is_active is True:
            category.activate()
        elif is_active is False:
            category.deactivate()
        await self._storage.categories.update(category)
        await self._storage.save_changes()
        return category

    @service_operation("delete category")
    async def delete_category(self, category_id: str) -> Category:
        """カテゴリを論理削除する。技術スタックを含むカテゴリは削除できない。

        Raises:
            ReferentialIntegrityError: カテゴリに技術スタックが存在する場合。
        """
        category = await self._require(category_id)
        stacks = await self._storage.get_tech_stacks_by_category(category.id)
        if stacks:
            raise ReferentialIntegrityError("category", category.name, f"it contains {len(stacks)} tech stack(s)")
        category.deactivate()
        await self._storage.categories.update(category)
        await self._storage.save_changes()
        logger.info("Deactivated category '%s' (%s)", category.name, category.id)
        return category

    @service_operation("get category")
    async def get_category(self, category_id: str) -> CategorySummary:
        return await self._summarize(await self._require(category_id))

    @service_operation("list categories")
    async def list_categories(self, include_inactive: bool = False) -> list[CategorySummary]:
        categories = await self._storage.categories.get_all()
        visible = [c for c in categories if include_inactive or c.is_active]
        visible.sort(key=lambda c: (c.display_order, c.name.casefold()))
        return [await self._summarize(c) for c in visible]

    @service_operation("reorder category")
    async def reorder_category(self, category_id: str, display_order: int) -> Category:
        category = await self._require(category_id)
        category.set_display_order(display_order)
        await self._storage.categories.update(category)
        await self._storage.save_changes()
        return category
