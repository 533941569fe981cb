"""プロジェクトプロファイルからAIエージェント向け成果物を生成するサービス。"""

import json
import logging
from typing import Any, Literal, Protocol

import yaml

from loadout.models.errors import InvalidArgumentError, ProfileIncompleteError
from loadout.models.generation import GeneratedArtifact, ResolvedProfile
from loadout.services.base import BaseService, service_operation
from loadout.services.profiles import ProjectProfileService
from loadout.storage.service import StorageService

logger = logging.getLogger(__name__)

ConfigFormat = Literal["yaml", "json"]

INSTRUCTIONS_FILE = "copilot-instructions.md"
POLICY_FILE = "ENGINEERING_POLICY.md"

_SEVERITY_ORDER = {"critical": 0, "error": 1, "warning": 2, "info": 3}


class TemplateRenderer(Protocol):
    """解決済みプロファイルをテキストに変換するレンダラーのインターフェース。"""

    def render_instructions(self, profile: ResolvedProfile) -> str: ...

    def render_agent_config(self, profile: ResolvedProfile, fmt: ConfigFormat) -> str: ...

    def render_engineering_policy(self, profile: ResolvedProfile) -> str: ...


def agent_config_document(profile: ResolvedProfile) -> dict[str, Any]:
    """エージェント設定ファイルの内容を辞書として組み立てる。"""
    return {
        "project": {
            "name": profile.profile.project_name,
            "profile": profile.profile.name,
            "description": profile.profile.description,
            "team_size": profile.profile.target_team_size,
        },
        "tech_stacks": [
            {
                "name": entry.tech_stack.name,
                "category": entry.category.name if entry.category else None,
                "version": entry.tech_stack.default_version,
                "documentation": entry.tech_stack.documentation_url,
                "parameters": {name: value.raw_value for name, value in entry.parameter_values.items()},
            }
            for entry in profile.tech_stacks
        ],
        "architecture": [
            {"name": p.name, "complexity": p.complexity_level, "guidelines": p.guidelines}
            for p in profile.architecture_patterns
        ],
        "rules": [
            {
                "name": r.name,
                "severity": r.constraint.severity,
                "scope": r.constraint.scope,
                "enforced": r.is_enforced,
            }
            for r in profile.engineering_rules
        ],
    }


class MarkdownRenderer:
    """Markdown・YAML・JSONで成果物を描画するデフォルトレンダラー。"""

    def render_instructions(self, profile: ResolvedProfile) -> str:
        p = profile.profile
        lines = [f"# {p.project_name} - Copilot Instructions", "", p.description, ""]

        lines += ["## Technology Stack", ""]
        for entry in profile.tech_stacks:
            version = f" {entry.tech_stack.default_version}" if entry.tech_stack.default_version else ""
            category = f" ({entry.category.name})" if entry.category else ""
            lines.append(f"- **{entry.tech_stack.name}{version}**{category}: {entry.tech_stack.description}")
            for name, value in entry.parameter_values.items():
                lines.append(f"  - {name}: `{value.raw_value}`")
        lines.append("")

        lines += ["## Architecture", ""]
        for pattern in profile.architecture_patterns:
            lines += [f"### {pattern.name}", "", pattern.description, "", pattern.guidelines, ""]
            if pattern.key_principles:
                lines += ["Key principles:", "", pattern.key_principles, ""]
            if pattern.anti_patterns:
                lines += ["Avoid:", "", pattern.anti_patterns, ""]

        enforced = [r for r in profile.engineering_rules if r.is_enforced]
        if enforced:
            lines += ["## Engineering Rules", ""]
            for rule in sorted(enforced, key=lambda r: _SEVERITY_ORDER[r.constraint.severity]):
                lines.append(f"- [{rule.constraint.severity.upper()}] **{rule.name}**: {rule.description}")
            lines.append("")
        return "\n".join(lines)

    def render_agent_config(self, profile: ResolvedProfile, fmt: ConfigFormat) -> str:
        document = agent_config_document(profile)
        if fmt == "json":
            return json.dumps(document, ensure_ascii=False, indent=2)
        return yaml.safe_dump(document, allow_unicode=True, sort_keys=False)

    def render_engineering_policy(self, profile: ResolvedProfile) -> str:
        lines = [f"# Engineering Policy - {profile.profile.project_name}", ""]
        if not profile.engineering_rules:
            lines += ["No engineering rules have been selected for this project.", ""]
        for rule in sorted(profile.engineering_rules, key=lambda r: _SEVERITY_ORDER[r.constraint.severity]):
            status = "enforced" if rule.is_enforced else "advisory"
            lines += [
                f"## {rule.name}",
                "",
                f"Severity: {rule.constraint.severity} / Scope: {rule.constraint.scope} / {status}",
                "",
                rule.description,
                "",
                f"Rationale: {rule.rationale}",
                "",
            ]
            if rule.implementation_guidance:
                lines += ["### Guidance", "", rule.implementation_guidance, ""]
            if rule.common_violations:
                lines += ["### Common violations", "", rule.common_violations, ""]
            if rule.example_code:
                lines += ["### Example", "", "```", rule.example_code, "```", ""]
        return "\n".join(lines)


class ArtifactService(BaseService):
    """前提条件を満たしたプロファイルだけを成果物に変換する。

    テキストの整形はレンダラーに委譲し、このサービスは前提条件の確認と
    参照の解決だけを行う。
    """

    def __init__(
        self,
        storage: StorageService,
        profiles: ProjectProfileService,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        super().__init__(storage)
        self._profiles = profiles
        self._renderer = renderer if renderer is not None else MarkdownRenderer()

    async def _resolve_valid(self, profile_id: str) -> ResolvedProfile:
        resolved = await self._profiles.load_resolved(profile_id)
        if not resolved.profile.is_valid():
            raise ProfileIncompleteError(resolved.profile.name, resolved.profile.missing_requirements())
        return resolved

    def _instructions(self, resolved: ResolvedProfile) -> GeneratedArtifact:
        return GeneratedArtifact(
            file_name=INSTRUCTIONS_FILE,
            content=self._renderer.render_instructions(resolved),
            file_type="markdown",
        )

    def _agent_config(self, resolved: ResolvedProfile, fmt: str) -> GeneratedArtifact:
        if fmt not in ("yaml", "json"):
            raise InvalidArgumentError("fmt", f"Unsupported config format '{fmt}'. Supported: yaml, json.")
        return GeneratedArtifact(
            file_name=f"aiagent.config.{fmt}",
            content=self._renderer.render_agent_config(resolved, fmt),
            file_type=fmt,
        )

    def _policy(self, resolved: ResolvedProfile) -> GeneratedArtifact:
        return GeneratedArtifact(
            file_name=POLICY_FILE,
            content=self._renderer.render_engineering_policy(resolved),
            file_type="markdown",
        )

    @service_operation("generate copilot instructions")
    async def generate_instructions(self, profile_id: str) -> GeneratedArtifact:
        """copilot-instructions.md を生成する。

        Raises:
            ProfileIncompleteError: プロファイルが成果物生成の前提条件を満たしていない場合。
        """
        return self._instructions(await self._resolve_valid(profile_id))

    @service_operation("generate agent config")
    async def generate_agent_config(self, profile_id: str, fmt: str = "yaml") -> GeneratedArtifact:
        """aiagent.config.<fmt> を生成する。fmt は yaml または json。"""
        return self._agent_config(await self._resolve_valid(profile_id), fmt)

    @service_operation("generate engineering policy")
    async def generate_engineering_policy(self, profile_id: str) -> GeneratedArtifact:
        return self._policy(await self._resolve_valid(profile_id))

    @service_operation("generate artifacts")
    async def generate_all(self, profile_id: str, fmt: str = "yaml") -> list[GeneratedArtifact]:
        resolved = await self._resolve_valid(profile_id)
        artifacts = [self._instructions(resolved), self._agent_config(resolved, fmt), self._policy(resolved)]
        logger.info("Generated %d artifacts for profile '%s'", len(artifacts), resolved.profile.name)
        return artifacts
