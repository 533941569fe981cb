"""プロジェクトプロファイル関連のMCPツール定義。"""

from typing import Any

from fastmcp import FastMCP

from loadout.services.profiles import ProjectProfileService


def register_profile_tools(mcp: FastMCP, profile_service: ProjectProfileService) -> None:
    """プロジェクトプロファイル関連のMCPツールを登録する。"""

    @mcp.tool()
    async def create_profile(
        name: str,
        description: str,
        project_name: str | None = None,
        target_team_size: int | None = None,
    ) -> dict[str, Any]:
        """プロジェクトプロファイルを作成する。

        作成後に技術スタック・アーキテクチャパターン・エンジニアリングルールを追加してください。

        Args:
            name: プロファイル名（200文字以内）。
            description: 説明（1000文字以内）。
            project_name: 成果物に記載するプロジェクト名（100文字以内）。
            target_team_size: 想定チーム人数（1以上）。
        """
        result = await profile_service.create_profile(name, description, project_name, target_team_size)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def update_profile(
        profile_id: str,
        name: str | None = None,
        description: str | None = None,
        project_name: str | None = None,
        target_team_size: int | None = None,
        is_active: bool | None = None,
    ) -> dict[str, Any]:
        """プロジェクトプロファイルを更新する。"""
        result = await profile_service.update_profile(
            profile_id, name, description, project_name, target_team_size, is_active
        )
        return result.model_dump(mode="json")

    @mcp.tool()
    async def delete_profile(profile_id: str) -> dict[str, Any]:
        """プロジェクトプロファイルを削除する。"""
        result = await profile_service.delete_profile(profile_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def get_profile(profile_id: str) -> dict[str, Any]:
        """プロジェクトプロファイルを取得する。"""
        result = await profile_service.get_profile(profile_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def list_profiles(include_inactive: bool = False) -> dict[str, Any]:
        """プロジェクトプロファイル一覧を取得する。"""
        result = await profile_service.list_profiles(include_inactive)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def add_profile_tech_stack(
        profile_id: str,
        tech_stack_id: str,
        parameter_values: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """プロファイルに技術スタックを追加する。

        Args:
            profile_id: プロファイルID。
            tech_stack_id: 追加する技術スタックのID。
            parameter_values: パラメータ名と値のマッピング。値は全て文字列で指定し、
                必須パラメータは必ず含めてください（例: {"Version": "16.4"}）。
        """
        result = await profile_service.add_tech_stack(profile_id, tech_stack_id, parameter_values)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def update_profile_tech_stack(
        profile_id: str,
        tech_stack_id: str,
        parameter_values: dict[str, str],
    ) -> dict[str, Any]:
        """プロファイル内の技術スタックのパラメータ値を置き換える。"""
        result = await profile_service.update_tech_stack_parameters(profile_id, tech_stack_id, parameter_values)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def remove_profile_tech_stack(profile_id: str, tech_stack_id: str) -> dict[str, Any]:
        """プロファイルから技術スタックを外す。"""
        result = await profile_service.remove_tech_stack(profile_id, tech_stack_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def add_profile_architecture_pattern(profile_id: str, pattern_id: str) -> dict[str, Any]:
        """プロファイルにアーキテクチャパターンを追加する。"""
        result = await profile_service.add_architecture_pattern(profile_id, pattern_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def remove_profile_architecture_pattern(profile_id: str, pattern_id: str) -> dict[str, Any]:
        """プロファイルからアーキテクチャパターンを外す。"""
        result = await profile_service.remove_architecture_pattern(profile_id, pattern_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def add_profile_engineering_rule(profile_id: str, rule_id: str) -> dict[str, Any]:
        """プロファイルにエンジニアリングルールを追加する。"""
        result = await profile_service.add_engineering_rule(profile_id, rule_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def remove_profile_engineering_rule(profile_id: str, rule_id: str) -> dict[str, Any]:
        """プロファイルからエンジニアリングルールを外す。"""
        result = await profile_service.remove_engineering_rule(profile_id, rule_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def validate_profile(profile_id: str) -> dict[str, Any]:
        """プロファイルが成果物生成の前提条件を満たしているか確認する。

        技術スタック、アーキテクチャパターン、プロジェクト名が揃っていない場合は
        不足している項目がエラーメッセージに含まれます。
        """
        result = await profile_service.validate_profile(profile_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def resolve_profile(profile_id: str) -> dict[str, Any]:
        """プロファイルが参照する技術スタック・パターン・ルールの詳細をまとめて取得する。"""
        result = await profile_service.resolve_profile(profile_id)
        return result.model_dump(mode="json")
