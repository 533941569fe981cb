"""プロジェクトプロファイルの管理を行うサービス。"""

import logging
from collections.abc import Mapping

from loadout.models.catalog import ArchitecturePattern, EngineeringRule, TechStack
from loadout.models.errors import NotFoundError, ProfileIncompleteError
from loadout.models.generation import ResolvedProfile, ResolvedTechStack
from loadout.models.profile import ProfileTechStack, ProjectProfile
from loadout.services.base import BaseService, service_operation

logger = logging.getLogger(__name__)


class ProjectProfileService(BaseService):
    """プロファイル集約の読み込み・更新・保存を行う。

    整合性チェックは ProjectProfile 側で行い、このサービスは参照先の存在確認と
    永続化だけを担う。
    """

    async def _require(self, profile_id: str) -> ProjectProfile:
        profile = await self._storage.profiles.get(profile_id)
        if profile is None:
            raise NotFoundError("ProjectProfile", profile_id)
        return profile

    async def _require_tech_stack(self, tech_stack_id: str) -> TechStack:
        tech_stack = await self._storage.tech_stacks.get(tech_stack_id)
        if tech_stack is None:
            raise NotFoundError("TechStack", tech_stack_id)
        return tech_stack

    async def _require_pattern(self, pattern_id: str) -> ArchitecturePattern:
        pattern = await self._storage.architecture_patterns.get(pattern_id)
        if pattern is None:
            raise NotFoundError("ArchitecturePattern", pattern_id)
        return pattern

    async def _require_rule(self, rule_id: str) -> EngineeringRule:
        rule = await self._storage.engineering_rules.get(rule_id)
        if rule is None:
            raise NotFoundError("EngineeringRule", rule_id)
        return rule

    async def _save(self, profile: ProjectProfile) -> ProjectProfile:
        await self._storage.profiles.update(profile)
        await self._storage.save_changes()
        return profile

    @service_operation("create project profile")
    async def create_profile(
        self,
        name: str,
        description: str,
        project_name: str | None = None,
        target_team_size: int | None = None,
    ) -> ProjectProfile:
        profile = ProjectProfile.create(name, description)
        profile.set_project_name(project_name)
        profile.set_target_team_size(target_team_size)
        await self._storage.profiles.add(profile)
        await self._storage.save_changes()
        logger.info("Created project profile '%s' (%s)", profile.name, profile.id)
        return profile

    @service_operation("update project profile")
    async def update_profile(
        self,
        profile_id: str,
        name: str | None = None,
        description: str | None = None,
        project_name: str | None = None,
        target_team_size: int | None = None,
        is_active: bool | None = None,
    ) -> ProjectProfile:
        profile = await self._require(profile_id)
        if name is not None:
            profile.set_name(name)
        if description is not None:
            profile.set_description(description)
        if project_name is not None:
            profile.set_project_name(project_name)
        if target_team_size is not None:
            profile.set_target_team_size(target_team_size)
        if is_active is True:
            profile.activate()
        elif is_active is False:
            profile.deactivate()
        return await self._save(profile)

    @service_operation("delete project profile")
    async def delete_profile(self, profile_id: str) -> ProjectProfile:
        profile = await self._require(profile_id)
        await self._storage.profiles.delete(profile.id)
        await self._storage.save_changes()
        logger.info("Deleted project profile '%s' (%s)", profile.name, profile.id)
        return profile

    @service_operation("get project profile")
    async def get_profile(self, profile_id: str) -> ProjectProfile:
        return await self._require(profile_id)

    @service_operation("list project profiles")
    async def list_profiles(self, include_inactive: bool = False) -> list[ProjectProfile]:
        profiles = await self._storage.profiles.find(lambda p: include_inactive or p.is_active)
        return sorted(profiles, key=lambda p: p.name.casefold())

    # --- 技術スタック ---

    @service_operation("add tech stack to profile")
    async def add_tech_stack(
        self,
        profile_id: str,
        tech_stack_id: str,
        values: Mapping[str, str] | None = None,
    ) -> ProfileTechStack:
        """技術スタックをパラメータ値付きでプロファイルに追加する。

        Args:
            profile_id: プロファイルID。
            tech_stack_id: 追加する技術スタックのID。
            values: パラメータ名から値文字列へのマッピング。必須パラメータは全て含める必要がある。

        Returns:
            追加されたプロファイル内の技術スタック。
        """
        profile = await self._require(profile_id)
        tech_stack = await self._require_tech_stack(tech_stack_id)
        entry = profile.add_tech_stack(tech_stack, values)
        await self._save(profile)
        return entry

    @service_operation("update tech stack parameters")
    async def update_tech_stack_parameters(
        self,
        profile_id: str,
        tech_stack_id: str,
        values: Mapping[str, str],
    ) -> ProfileTechStack:
        profile = await self._require(profile_id)
        tech_stack = await self._require_tech_stack(tech_stack_id)
        entry = profile.update_tech_stack_parameters(tech_stack, values)
        await self._save(profile)
        return entry

    @service_operation("remove tech stack from profile")
    async def remove_tech_stack(self, profile_id: str, tech_stack_id: str) -> ProjectProfile:
        profile = await self._require(profile_id)
        profile.remove_tech_stack(tech_stack_id)
        return await self._save(profile)

    # --- アーキテクチャパターン・ルール ---

    @service_operation("add architecture pattern to profile")
    async def add_architecture_pattern(self, profile_id: str, pattern_id: str) -> ProjectProfile:
        profile = await self._require(profile_id)
        await self._require_pattern(pattern_id)
        profile.add_architecture_pattern(pattern_id)
        return await self._save(profile)

    @service_operation("remove architecture pattern from profile")
    async def remove_architecture_pattern(self, profile_id: str, pattern_id: str) -> ProjectProfile:
        profile = await self._require(profile_id)
        profile.remove_architecture_pattern(pattern_id)
        return await self._save(profile)

    @service_operation("add engineering rule to profile")
    async def add_engineering_rule(self, profile_id: str, rule_id: str) -> ProjectProfile:
        profile = await self._require(profile_id)
        await self._require_rule(rule_id)
        profile.add_engineering_rule(rule_id)
        return await self._save(profile)

    @service_operation("remove engineering rule from profile")
    async def remove_engineering_rule(self, profile_id: str, rule_id: str) -> ProjectProfile:
        profile = await self._require(profile_id)
        profile.remove_engineering_rule(rule_id)
        return await self._save(profile)

    # --- 検証・解決 ---

    @service_operation("validate project profile")
    async def validate_profile(self, profile_id: str) -> ProjectProfile:
        """成果物生成の前提条件を確認する。

        Raises:
            ProfileIncompleteError: 技術スタック・アーキテクチャパターン・プロジェクト名のいずれかが欠けている場合。
        """
        profile = await self._require(profile_id)
        missing = profile.missing_requirements()
        if missing:
            raise ProfileIncompleteError(profile.name, missing)
        return profile

    async def load_resolved(self, profile_id: str) -> ResolvedProfile:
        """プロファイルの全参照を解決する。成果物生成サービスからも使う。

        Raises:
            NotFoundError: プロファイルまたは参照先が存在しない場合。
        """
        profile = await self._require(profile_id)
        tech_stacks: list[ResolvedTechStack] = []
        for entry in profile.tech_stacks:
            tech_stack = await self._require_tech_stack(entry.tech_stack_id)
            category = await self._storage.categories.get(tech_stack.category_id)
            tech_stacks.append(
                ResolvedTechStack(
                    tech_stack=tech_stack,
                    category=category,
                    parameter_values=dict(entry.parameter_values),
                )
            )
        patterns = [await self._require_pattern(p) for p in profile.architecture_pattern_ids]
        rules = [await self._require_rule(r) for r in profile.engineering_rule_ids]
        return ResolvedProfile(
            profile=profile,
            tech_stacks=tech_stacks,
            architecture_patterns=patterns,
            engineering_rules=rules,
        )

    @service_operation("resolve project profile")
    async def resolve_profile(self, profile_id: str) -> ResolvedProfile:
        return await self.load_resolved(profile_id)
