"""初期カタログデータの投入を行うサービス。"""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel

from loadout.models.catalog import (
    ArchitecturePattern,
    Category,
    EngineeringRule,
    ParameterDefinition,
    RuleConstraint,
    TechStack,
)
from loadout.models.errors import StorageError
from loadout.services.base import BaseService, service_operation
from loadout.storage.service import StorageService

logger = logging.getLogger(__name__)


class SeedSummary(BaseModel):
    """投入した件数。既存の名前と重複してスキップした件数も含む。"""

    categories: int = 0
    tech_stacks: int = 0
    architecture_patterns: int = 0
    engineering_rules: int = 0
    skipped: int = 0


class CatalogSeeder(BaseService):
    """config/seed-catalog.yaml の内容をカタログに投入する。

    既存の名前はスキップするため、何度実行しても結果は変わらない。
    """

    def __init__(self, storage: StorageService, config_dir: Path) -> None:
        super().__init__(storage)
        self._config_dir = config_dir
        self._seed_cache: dict[str, Any] | None = None

    def _load_seed(self) -> dict[str, Any]:
        """シードデータを読み込む。"""
        if self._seed_cache is not None:
            return self._seed_cache

        seed_file = self._config_dir / "seed-catalog.yaml"
        try:
            with open(seed_file, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            raise StorageError(f"Seed catalog file not found: {seed_file}") from None
        self._seed_cache = data or {}
        return self._seed_cache

    async def _seed_tech_stack(self, category: Category, data: dict[str, Any], summary: SeedSummary) -> None:
        if await self._storage.tech_stack_exists_by_name(category.id, data["name"]):
            summary.skipped += 1
            return
        tech_stack = TechStack.create(category.id, data["name"], data["description"])
        tech_stack.set_default_version(data.get("default_version"))
        tech_stack.set_documentation_url(data.get("documentation_url"))
        tech_stack.set_tags(data.get("tags"))
        for order, param in enumerate(data.get("parameters", [])):
            tech_stack.add_parameter(
                ParameterDefinition.create(
                    param["name"],
                    param["description"],
                    param["type"],
                    is_required=param.get("required", False),
                    default_value=param.get("default"),
                    allowed_values=param.get("allowed_values"),
                    display_order=order,
                )
            )
        await self._storage.tech_stacks.add(tech_stack)
        summary.tech_stacks += 1

    @service_operation("seed catalog")
    async def seed(self) -> SeedSummary:
        """シードデータを投入し、全件を1回の書き込みで反映する。"""
        data = self._load_seed()
        summary = SeedSummary()
        categories = await self._storage.categories.get_all()

        for order, entry in enumerate(data.get("categories", [])):
            category = next((c for c in categories if c.name == entry["name"].strip()), None)
            if category is None:
                category = Category.create(entry["name"], entry["description"])
                category.set_display_order(order)
                await self._storage.categories.add(category)
                categories.append(category)
                summary.categories += 1
            else:
                summary.skipped += 1
            for stack in entry.get("tech_stacks", []):
                await self._seed_tech_stack(category, stack, summary)

        for entry in data.get("architecture_patterns", []):
            if await self._storage.pattern_exists_by_name(entry["name"]):
                summary.skipped += 1
                continue
            pattern = ArchitecturePattern.create(
                entry["name"], entry["description"], entry["guidelines"], entry.get("complexity_level", 3)
            )
            pattern.set_team_size_suitability(
                entry.get("suitable_for_small_teams", False), entry.get("suitable_for_large_scale", False)
            )
            pattern.set_key_principles(entry.get("key_principles"))
            pattern.set_anti_patterns(entry.get("anti_patterns"))
            await self._storage.architecture_patterns.add(pattern)
            summary.architecture_patterns += 1

        for entry in data.get("engineering_rules", []):
            if await self._storage.rule_exists_by_name(entry["name"]):
                summary.skipped += 1
                continue
            rule = EngineeringRule.create(
                entry["name"],
                entry["description"],
                entry["rationale"],
                RuleConstraint(severity=entry["severity"], scope=entry["scope"]),
            )
            rule.set_implementation_guidance(entry.get("implementation_guidance"))
            rule.set_common_violations(entry.get("common_violations"))
            rule.set_example_code(entry.get("example_code"))
            await self._storage.engineering_rules.add(rule)
            summary.engineering_rules += 1

        await self._storage.save_changes()
        logger.info(
            "Seeded catalog: %d categories, %d tech stacks, %d patterns, %d rules (%d skipped)",
            summary.categories,
            summary.tech_stacks,
            summary.architecture_patterns,
            summary.engineering_rules,
            summary.skipped,
        )
        return summary
