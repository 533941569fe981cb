"""技術スタックとパラメータ定義の手動管理を行うサービス。"""

import logging
from collections.abc import Iterable

from loadout.models.catalog import ParameterDefinition, TechStack
from loadout.models.errors import DuplicateNameError, NotFoundError, ReferentialIntegrityError
from loadout.models.values import ParameterType
from loadout.services.base import BaseService, service_operation

logger = logging.getLogger(__name__)


class TechStackService(BaseService):
    """技術スタックの作成・更新・削除と、パラメータ定義の追加・削除を行う。"""

    async def _require(self, tech_stack_id: str) -> TechStack:
        tech_stack = await self._storage.tech_stacks.get(tech_stack_id)
        if tech_stack is None:
            raise NotFoundError("TechStack", tech_stack_id)
        return tech_stack

    async def _require_category(self, category_id: str) -> None:
        if await self._storage.categories.get(category_id) is None:
            raise NotFoundError("Category", category_id)

    @service_operation("create tech stack")
    async def create_tech_stack(
        self,
        category_id: str,
        name: str,
        description: str,
        default_version: str | None = None,
        documentation_url: str | None = None,
        tags: str | None = None,
    ) -> TechStack:
        """技術スタックを作成する。

        Raises:
            NotFoundError: カテゴリが存在しない場合。
            DuplicateNameError: カテゴリ内に同名の技術スタックが既に存在する場合。
        """
        await self._require_category(category_id)
        tech_stack = TechStack.create(category_id, name, description)
        if await self._storage.tech_stack_exists_by_name(category_id, tech_stack.name):
            raise DuplicateNameError("tech stack", tech_stack.name)
        tech_stack.set_default_version(default_version)
        tech_stack.set_documentation_url(documentation_url)
        tech_stack.set_tags(tags)
        await self._storage.tech_stacks.add(tech_stack)
        await self._storage.save_changes()
        logger.info("Created tech stack '%s' (%s)", tech_stack.name, tech_stack.id)
        return tech_stack

    @service_operation("update tech stack")
    async def update_tech_stack(
        self,
        tech_stack_id: str,
        name: str | None = None,
        description: str | None = None,
        default_version: str | None = None,
        documentation_url: str | None = None,
        tags: str | None = None,
        category_id: str | None = None,
        is_active: bool | None = None,
    ) -> TechStack:
        """指定された項目だけを更新する。空文字は任意項目のクリアを意味する。"""
        tech_stack = await self._require(tech_stack_id)
        target_category = category_id or tech_stack.category_id
        target_name = name if name is not None else tech_stack.name
        if target_category != tech_stack.category_id:
            await self._require_category(target_category)
        if target_category != tech_stack.category_id or target_name.strip() != tech_stack.name:
            if await self._storage.tech_stack_exists_by_name(target_category, target_name, exclude_id=tech_stack.id):
                raise DuplicateNameError("tech stack", target_name.strip())
        if name is not None:
            tech_stack.set_name(name)
        if description is not None:
            tech_stack.set_description(description)
        if default_version is not None:
            tech_stack.set_default_version(default_version)
        if documentation_url is not None:
            tech_stack.set_documentation_url(documentation_url)
        if tags is not None:
            tech_stack.set_tags(tags)
        if target_category != tech_stack.category_id:
            tech_stack.change_category(target_category)
        if is_active is True:
            tech_stack.activate()
        elif is_active is False:
            tech_stack.deactivate()
        await self._storage.tech_stacks.update(tech_stack)
        await self._storage.save_changes()
        return tech_stack

    @service_operation("delete tech stack")
    async def delete_tech_stack(self, tech_stack_id: str) -> TechStack:
        """技術スタックをパラメータ定義ごと削除する。

        Raises:
            ReferentialIntegrityError: プロジェクトプロファイルから参照されている場合。
        """
        tech_stack = await self._require(tech_stack_id)
        profiles = await self._storage.profiles_referencing_tech_stack(tech_stack.id)
        if profiles:
            raise ReferentialIntegrityError(
                "tech stack", tech_stack.name, f"it is used by {len(profiles)} project profile(s)"
            )
        await self._storage.tech_stacks.delete(tech_stack.id)
        await self._storage.save_changes()
        logger.info("Deleted tech stack '%s' (%s)", tech_stack.name, tech_stack.id)
        return tech_stack

    @service_operation("get tech stack")
    async def get_tech_stack(self, tech_stack_id: str) -> TechStack:
        return await self._require(tech_stack_id)

    @service_operation("list tech stacks")
    async def list_tech_stacks_by_category(self, category_id: str, include_inactive: bool = False) -> list[TechStack]:
        await self._require_category(category_id)
        stacks = await self._storage.get_tech_stacks_by_category(category_id)
        visible = [s for s in stacks if include_inactive or s.is_active]
        return sorted(visible, key=lambda s: s.name.casefold())

    @service_operation("add parameter")
    async def add_parameter(
        self,
        tech_stack_id: str,
        name: str,
        description: str,
        parameter_type: ParameterType,
        is_required: bool = False,
        default_value: str | None = None,
        allowed_values: Iterable[str] | None = None,
        display_order: int | None = None,
    ) -> ParameterDefinition:
        """技術スタックにパラメータ定義を追加する。表示順の省略時は末尾に追加する。"""
        tech_stack = await self._require(tech_stack_id)
        parameter = ParameterDefinition.create(
            name,
            description,
            parameter_type,
            is_required=is_required,
            default_value=default_value,
            allowed_values=allowed_values,
            display_order=len(tech_stack.parameters) if display_order is None else display_order,
        )
        tech_stack.add_parameter(parameter)
        await self._storage.tech_stacks.update(tech_stack)
        await self._storage.save_changes()
        return parameter

    @service_operation("remove parameter")
    async def remove_parameter(self, tech_stack_id: str, parameter_id: str) -> TechStack:
        tech_stack = await self._require(tech_stack_id)
        tech_stack.remove_parameter(parameter_id)
        await self._storage.tech_stacks.update(tech_stack)
        await self._storage.save_changes()
        return tech_stack

    @service_operation("rename parameter")
    async def rename_parameter(self, tech_stack_id: str, parameter_id: str, name: str) -> ParameterDefinition:
        """パラメータ定義の名前を変更する。技術スタック内の他の名前とは大文字小文字を区別せず比較する。"""
        tech_stack = await self._require(tech_stack_id)
        parameter = tech_stack.rename_parameter(parameter_id, name)
        await self._storage.tech_stacks.update(tech_stack)
        await self._storage.save_changes()
        return parameter
