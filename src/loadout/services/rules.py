"""エンジニアリングルールの手動管理を行うサービス。"""

import logging

from loadout.models.catalog import EngineeringRule, RuleConstraint, RuleScope, RuleSeverity
from loadout.models.errors import DuplicateNameError, NotFoundError, ReferentialIntegrityError
from loadout.services.base import BaseService, service_operation

logger = logging.getLogger(__name__)


class EngineeringRuleService(BaseService):
    """エンジニアリングルールの作成・更新・論理削除・参照を行う。"""

    async def _require(self, rule_id: str) -> EngineeringRule:
        rule = await self._storage.engineering_rules.get(rule_id)
        if rule is None:
            raise NotFoundError("EngineeringRule", rule_id)
        return rule

    @service_operation("create engineering rule")
    async def create_rule(
        self,
        name: str,
        description: str,
        rationale: str,
        severity: RuleSeverity,
        scope: RuleScope,
        implementation_guidance: str | None = None,
        common_violations: str | None = None,
        example_code: str | None = None,
        tags: str | None = None,
        is_enforced: bool = True,
    ) -> EngineeringRule:
        rule = EngineeringRule.create(name, description, rationale, RuleConstraint(severity=severity, scope=scope))
        if await self._storage.rule_exists_by_name(rule.name):
            raise DuplicateNameError("engineering rule", rule.name)
        rule.set_implementation_guidance(implementation_guidance)
        rule.set_common_violations(common_violations)
        rule.set_example_code(example_code)
        rule.set_tags(tags)
        rule.set_enforced(is_enforced)
        await self._storage.engineering_rules.add(rule)
        await self._storage.save_changes()
        logger.info("Created engineering rule '%s' (%s)", rule.name, rule.id)
        return rule

    @service_operation("update engineering rule")
    async def update_rule(
        self,
        rule_id: str,
        name: str | None = None,
        description: str | None = None,
        rationale: str | None = None,
        severity: RuleSeverity | None = None,
        scope: RuleScope | None = None,
        implementation_guidance: str | None = None,
        common_violations: str | None = None,
        example_code: str | None = None,
        tags: str | None = None,
        is_enforced: bool | None = None,
    ) -> EngineeringRule:
        rule = await self._require(rule_id)
        if name is not None and name.strip() != rule.name:
            if await self._storage.rule_exists_by_name(name, exclude_id=rule.id):
                raise DuplicateNameError("engineering rule", name.strip())
        if name is not None:
            rule.set_name(name)
        if description is not None:
            rule.set_description(description)
        if rationale is not None:
            rule.set_rationale(rationale)
        if severity is not None or scope is not None:
            rule.set_constraint(
                RuleConstraint(
                    severity=severity or rule.constraint.severity,
                    scope=scope or rule.constraint.scope,
                )
            )
        if implementation_guidance is not None:
            rule.set_implementation_guidance(implementation_guidance)
        if common_violations is not None:
            rule.set_common_violations(common_violations)
        if example_code is not None:
            rule.set_example_code(example_code)
        if tags is not None:
            rule.set_tags(tags)
        if is_enforced is not None:
            rule.set_enforced(is_enforced)
        await self._storage.engineering_rules.update(rule)
        await self._storage.save_changes()
        return rule

    @service_operation("delete engineering rule")
    async def delete_rule(self, rule_id: str) -> EngineeringRule:
        """ルールを論理削除する。プロファイルから参照されている場合は削除できない。"""
        rule = await self._require(rule_id)
        profiles = await self._storage.profiles_referencing_rule(rule.id)
        if profiles:
            raise ReferentialIntegrityError(
                "engineering rule", rule.name, f"it is used by {len(profiles)} project profile(s)"
            )
        rule.deactivate()
        await self._storage.engineering_rules.update(rule)
        await self._storage.save_changes()
        return rule

    @service_operation("get engineering rule")
    async def get_rule(self, rule_id: str) -> EngineeringRule:
        return await self._require(rule_id)

    @service_operation("list engineering rules")
    async def list_rules(self, scope: RuleScope | None = None, include_inactive: bool = False) -> list[EngineeringRule]:
        """ルール一覧を重大度の高い順に返す。scope 指定時は global ルールも含める。"""
        rules = await self._storage.engineering_rules.find(
            lambda r: (include_inactive or r.is_active) and (scope is None or r.constraint.applies_to(scope))
        )
        severity_order = {"critical": 0, "error": 1, "warning": 2, "info": 3}
        return sorted(rules, key=lambda r: (severity_order[r.constraint.severity], r.name.casefold()))
