"""アーキテクチャパターンの手動管理を行うサービス。"""

import logging

from loadout.models.catalog import ArchitecturePattern
from loadout.models.errors import DuplicateNameError, NotFoundError, ReferentialIntegrityError
from loadout.services.base import BaseService, service_operation

logger = logging.getLogger(__name__)


class ArchitecturePatternService(BaseService):
    """アーキテクチャパターンの作成・更新・論理削除・参照を行う。"""

    async def _require(self, pattern_id: str) -> ArchitecturePattern:
        pattern = await self._storage.architecture_patterns.get(pattern_id)
        if pattern is None:
            raise NotFoundError("ArchitecturePattern", pattern_id)
        return pattern

    @service_operation("create architecture pattern")
    async def create_pattern(
        self,
        name: str,
        description: str,
        guidelines: str,
        complexity_level: int = 3,
        suitable_for_small_teams: bool = False,
        suitable_for_large_scale: bool = False,
        key_principles: str | None = None,
        anti_patterns: str | None = None,
    ) -> ArchitecturePattern:
        pattern = ArchitecturePattern.create(name, description, guidelines, complexity_level)
        if await self._storage.pattern_exists_by_name(pattern.name):
            raise DuplicateNameError("architecture pattern", pattern.name)
        pattern.set_team_size_suitability(suitable_for_small_teams, suitable_for_large_scale)
        pattern.set_key_principles(key_principles)
        pattern.set_anti_patterns(anti_patterns)
        await self._storage.architecture_patterns.add(pattern)
        await self._storage.save_changes()
        logger.info("Created architecture pattern '%s' (%s)", pattern.name, pattern.id)
        return pattern

    @service_operation("update architecture pattern")
    async def update_pattern(
        self,
        pattern_id: str,
        name: str | None = None,
        description: str | None = None,
        guidelines: str | None = None,
        complexity_level: int | None = None,
        suitable_for_small_teams: bool | None = None,
        suitable_for_large_scale: bool | None = None,
        key_principles: str | None = None,
        anti_patterns: str | None = None,
    ) -> ArchitecturePattern:
        pattern = await self._require(pattern_id)
        if name is not None and name.strip() != pattern.name:
            if await self._storage.pattern_exists_by_name(name, exclude_id=pattern.id):
                raise DuplicateNameError("architecture pattern", name.strip())
        if name is not None:
            pattern.set_name(name)
        if description is not None:
            pattern.set_description(description)
        if guidelines is not None:
            pattern.set_guidelines(guidelines)
        if complexity_level is not None:
            pattern.set_complexity_level(complexity_level)
        if suitable_for_small_teams is not None or suitable_for_large_scale is not None:
            pattern.set_team_size_suitability(
                pattern.suitable_for_small_teams if suitable_for_small_teams is None else suitable_for_small_teams,
                pattern.suitable_for_large_scale if suitable_for_large_scale is None else suitable_for_large_scale,
            )
        if key_principles is not None:
            pattern.set_key_principles(key_principles)
        if anti_patterns is not None:
            pattern.set_anti_patterns(anti_patterns)
        await self._storage.architecture_patterns.update(pattern)
        await self._storage.save_changes()
        return pattern

    @service_operation("delete architecture pattern")
    async def delete_pattern(self, pattern_id: str) -> ArchitecturePattern:
        """パターンを論理削除する。プロファイルから参照されている場合は削除できない。"""
        pattern = await self._require(pattern_id)
        profiles = await self._storage.profiles_referencing_pattern(pattern.id)
        if profiles:
            raise ReferentialIntegrityError(
                "architecture pattern", pattern.name, f"it is used by {len(profiles)} project profile(s)"
            )
        pattern.deactivate()
        await self._storage.architecture_patterns.update(pattern)
        await self._storage.save_changes()
        return pattern

    @service_operation("get architecture pattern")
    async def get_pattern(self, pattern_id: str) -> ArchitecturePattern:
        return await self._require(pattern_id)

    @service_operation("list architecture patterns")
    async def list_patterns(
        self,
        team_size: int | None = None,
        include_inactive: bool = False,
    ) -> list[ArchitecturePattern]:
        """パターン一覧を複雑度順に返す。team_size 指定時はそのチーム規模に適したものに絞る。"""
        patterns = await self._storage.architecture_patterns.find(
            lambda p: (include_inactive or p.is_active)
            and (team_size is None or p.is_suitable_for_team_size(team_size))
        )
        return sorted(patterns, key=lambda p: (p.complexity_level, p.name.casefold()))
