"""カタログ管理のMCPツール定義。"""

from typing import Any

from fastmcp import FastMCP

from loadout.services.architecture import ArchitecturePatternService
from loadout.services.categories import CategoryService
from loadout.services.rules import EngineeringRuleService
from loadout.services.seed import CatalogSeeder
from loadout.services.tech_stacks import TechStackService


def register_category_tools(mcp: FastMCP, category_service: CategoryService) -> None:
    """カテゴリ関連のMCPツールを登録する。"""

    @mcp.tool()
    async def create_category(name: str, description: str, display_order: int = 0) -> dict[str, Any]:
        """カテゴリを作成する。

        Args:
            name: カテゴリ名（100文字以内、一意）。
            description: カテゴリの説明（500文字以内）。
            display_order: 表示順（0以上）。
        """
        result = await category_service.create_category(name, description, display_order)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def update_category(
        category_id: str,
        name: str | None = None,
        description: str | None = None,
        display_order: int | None = None,
        is_active: bool | None = None,
    ) -> dict[str, Any]:
        """カテゴリを更新する。指定した項目だけが変更されます。"""
        result = await category_service.update_category(category_id, name, description, display_order, is_active)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def delete_category(category_id: str) -> dict[str, Any]:
        """カテゴリを無効化する。

        技術スタックを含むカテゴリは削除できません。
        """
        result = await category_service.delete_category(category_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def get_category(category_id: str) -> dict[str, Any]:
        """カテゴリと所属する技術スタック数を取得する。"""
        result = await category_service.get_category(category_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def reorder_category(category_id: str, display_order: int) -> dict[str, Any]:
        """カテゴリの表示順を変更する。"""
        result = await category_service.reorder_category(category_id, display_order)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def list_categories(include_inactive: bool = False) -> dict[str, Any]:
        """カテゴリ一覧を表示順で取得する。"""
        result = await category_service.list_categories(include_inactive)
        return result.model_dump(mode="json")


def register_tech_stack_tools(mcp: FastMCP, tech_stack_service: TechStackService) -> None:
    """技術スタック関連のMCPツールを登録する。"""

    @mcp.tool()
    async def create_tech_stack(
        category_id: str,
        name: str,
        description: str,
        default_version: str | None = None,
        documentation_url: str | None = None,
        tags: str | None = None,
    ) -> dict[str, Any]:
        """カテゴリに技術スタックを作成する。

        Args:
            category_id: 所属カテゴリのID。
            name: 技術スタック名（200文字以内、カテゴリ内で一意）。
            description: 説明（1000文字以内）。
            default_version: 既定バージョン（例: "16.4"）。
            documentation_url: 公式ドキュメントのURL（http/https）。
            tags: カンマ区切りのタグ。
        """
        result = await tech_stack_service.create_tech_stack(
            category_id, name, description, default_version, documentation_url, tags
        )
        return result.model_dump(mode="json")

    @mcp.tool()
    async def update_tech_stack(
        tech_stack_id: str,
        name: str | None = None,
        description: str | None = None,
        default_version: str | None = None,
        documentation_url: str | None = None,
        tags: str | None = None,
        category_id: str | None = None,
        is_active: bool | None = None,
    ) -> dict[str, Any]:
        """技術スタックを更新する。任意項目に空文字を指定するとクリアされます。"""
        result = await tech_stack_service.update_tech_stack(
            tech_stack_id,
            name=name,
            description=description,
            default_version=default_version,
            documentation_url=documentation_url,
            tags=tags,
            category_id=category_id,
            is_active=is_active,
        )
        return result.model_dump(mode="json")

    @mcp.tool()
    async def delete_tech_stack(tech_stack_id: str) -> dict[str, Any]:
        """技術スタックをパラメータ定義ごと削除する。

        プロジェクトプロファイルから参照されている場合は削除できません。
        """
        result = await tech_stack_service.delete_tech_stack(tech_stack_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def get_tech_stack(tech_stack_id: str) -> dict[str, Any]:
        """技術スタックをパラメータ定義付きで取得する。"""
        result = await tech_stack_service.get_tech_stack(tech_stack_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def list_tech_stacks(category_id: str, include_inactive: bool = False) -> dict[str, Any]:
        """カテゴリに属する技術スタック一覧を取得する。"""
        result = await tech_stack_service.list_tech_stacks_by_category(category_id, include_inactive)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def add_stack_parameter(
        tech_stack_id: str,
        name: str,
        description: str,
        parameter_type: str,
        is_required: bool = False,
        default_value: str | None = None,
        allowed_values: list[str] | None = None,
    ) -> dict[str, Any]:
        """技術スタックにパラメータ定義を追加する。

        Args:
            tech_stack_id: 技術スタックID。
            name: パラメータ名（技術スタック内で一意）。
            description: 説明。
            parameter_type: "text", "number", "boolean", "choice", "version" のいずれか。
            is_required: プロファイル追加時に値の指定を必須にするか。
            default_value: 既定値。型に合う値である必要があります。
            allowed_values: choice型の選択肢。choice型では必須、それ以外では指定不可。
        """
        result = await tech_stack_service.add_parameter(
            tech_stack_id,
            name,
            description,
            parameter_type,  # type: ignore[arg-type]
            is_required=is_required,
            default_value=default_value,
            allowed_values=allowed_values,
        )
        return result.model_dump(mode="json")

    @mcp.tool()
    async def rename_stack_parameter(tech_stack_id: str, parameter_id: str, name: str) -> dict[str, Any]:
        """技術スタックのパラメータ定義の名前を変更する。名前は技術スタック内で一意である必要があります。"""
        result = await tech_stack_service.rename_parameter(tech_stack_id, parameter_id, name)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def remove_stack_parameter(tech_stack_id: str, parameter_id: str) -> dict[str, Any]:
        """技術スタックからパラメータ定義を削除する。"""
        result = await tech_stack_service.remove_parameter(tech_stack_id, parameter_id)
        return result.model_dump(mode="json")


def register_pattern_tools(mcp: FastMCP, pattern_service: ArchitecturePatternService) -> None:
    """アーキテクチャパターン関連のMCPツールを登録する。"""

    @mcp.tool()
    async def create_architecture_pattern(
        name: str,
        description: str,
        guidelines: str,
        complexity_level: int = 3,
        suitable_for_small_teams: bool = False,
        suitable_for_large_scale: bool = False,
        key_principles: str | None = None,
        anti_patterns: str | None = None,
    ) -> dict[str, Any]:
        """アーキテクチャパターンを作成する。

        Args:
            name: パターン名（100文字以内、一意）。
            description: 説明（1000文字以内）。
            guidelines: 実装ガイドライン（2000文字以内）。
            complexity_level: 複雑度（1〜5）。
            suitable_for_small_teams: 小規模チーム（5人以下）向きか。
            suitable_for_large_scale: 大規模チーム（21人以上）向きか。
            key_principles: 主要な原則。
            anti_patterns: 避けるべきアンチパターン。
        """
        result = await pattern_service.create_pattern(
            name,
            description,
            guidelines,
            complexity_level,
            suitable_for_small_teams,
            suitable_for_large_scale,
            key_principles,
            anti_patterns,
        )
        return result.model_dump(mode="json")

    @mcp.tool()
    async def update_architecture_pattern(
        pattern_id: str,
        name: str | None = None,
        description: str | None = None,
        guidelines: str | None = None,
        complexity_level: int | None = None,
        suitable_for_small_teams: bool | None = None,
        suitable_for_large_scale: bool | None = None,
    ) -> dict[str, Any]:
        """アーキテクチャパターンを更新する。"""
        result = await pattern_service.update_pattern(
            pattern_id,
            name=name,
            description=description,
            guidelines=guidelines,
            complexity_level=complexity_level,
            suitable_for_small_teams=suitable_for_small_teams,
            suitable_for_large_scale=suitable_for_large_scale,
        )
        return result.model_dump(mode="json")

    @mcp.tool()
    async def delete_architecture_pattern(pattern_id: str) -> dict[str, Any]:
        """アーキテクチャパターンを無効化する。プロファイルから参照されている場合は削除できません。"""
        result = await pattern_service.delete_pattern(pattern_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def get_architecture_pattern(pattern_id: str) -> dict[str, Any]:
        result = await pattern_service.get_pattern(pattern_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def list_architecture_patterns(team_size: int | None = None) -> dict[str, Any]:
        """アーキテクチャパターン一覧を取得する。team_size を指定するとその規模に適したものに絞ります。"""
        result = await pattern_service.list_patterns(team_size=team_size)
        return result.model_dump(mode="json")


def register_rule_tools(mcp: FastMCP, rule_service: EngineeringRuleService) -> None:
    """エンジニアリングルール関連のMCPツールを登録する。"""

    @mcp.tool()
    async def create_engineering_rule(
        name: str,
        description: str,
        rationale: str,
        severity: str,
        scope: str,
        implementation_guidance: str | None = None,
        common_violations: str | None = None,
        example_code: str | None = None,
        is_enforced: bool = True,
    ) -> dict[str, Any]:
        """エンジニアリングルールを作成する。

        Args:
            name: ルール名（200文字以内、一意）。
            description: 説明。
            rationale: ルールの理由。
            severity: "info", "warning", "error", "critical" のいずれか。
            scope: "global", "backend", "frontend", "database", "testing", "security", "devops" のいずれか。
            implementation_guidance: 実装ガイダンス。
            common_violations: よくある違反例。
            example_code: コード例（5000文字以内）。
            is_enforced: 強制するルールか。
        """
        result = await rule_service.create_rule(
            name,
            description,
            rationale,
            severity,  # type: ignore[arg-type]
            scope,  # type: ignore[arg-type]
            implementation_guidance=implementation_guidance,
            common_violations=common_violations,
            example_code=example_code,
            is_enforced=is_enforced,
        )
        return result.model_dump(mode="json")

    @mcp.tool()
    async def update_engineering_rule(
        rule_id: str,
        name: str | None = None,
        description: str | None = None,
        rationale: str | None = None,
        severity: str | None = None,
        scope: str | None = None,
        implementation_guidance: str | None = None,
        common_violations: str | None = None,
        example_code: str | None = None,
        is_enforced: bool | None = None,
    ) -> dict[str, Any]:
        """エンジニアリングルールを更新する。指定した項目だけが変更されます。"""
        result = await rule_service.update_rule(
            rule_id,
            name=name,
            description=description,
            rationale=rationale,
            severity=severity,  # type: ignore[arg-type]
            scope=scope,  # type: ignore[arg-type]
            implementation_guidance=implementation_guidance,
            common_violations=common_violations,
            example_code=example_code,
            is_enforced=is_enforced,
        )
        return result.model_dump(mode="json")

    @mcp.tool()
    async def get_engineering_rule(rule_id: str) -> dict[str, Any]:
        result = await rule_service.get_rule(rule_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def delete_engineering_rule(rule_id: str) -> dict[str, Any]:
        """エンジニアリングルールを無効化する。プロファイルから参照されている場合は削除できません。"""
        result = await rule_service.delete_rule(rule_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def list_engineering_rules(scope: str | None = None) -> dict[str, Any]:
        """エンジニアリングルール一覧を重大度順に取得する。scope 指定時は global ルールも含みます。"""
        result = await rule_service.list_rules(scope=scope)  # type: ignore[arg-type]
        return result.model_dump(mode="json")


def register_seed_tools(mcp: FastMCP, seeder: CatalogSeeder) -> None:
    """初期データ投入のMCPツールを登録する。"""

    @mcp.tool()
    async def seed_catalog() -> dict[str, Any]:
        """初期カタログデータを投入する。

        既に存在する名前はスキップされるため、何度実行しても安全です。
        """
        result = await seeder.seed()
        return result.model_dump(mode="json")
