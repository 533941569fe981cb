"""成果物生成のMCPツール定義。"""

from typing import Any

from fastmcp import FastMCP

from loadout.services.artifacts import ArtifactService


def register_artifact_tools(mcp: FastMCP, artifact_service: ArtifactService) -> None:
    """成果物生成のMCPツールを登録する。"""

    @mcp.tool()
    async def generate_copilot_instructions(profile_id: str) -> dict[str, Any]:
        """プロファイルから copilot-instructions.md を生成する。

        生成された `content` をリポジトリの `.github/copilot-instructions.md` に配置してください。
        """
        result = await artifact_service.generate_instructions(profile_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def generate_agent_config(profile_id: str, fmt: str = "yaml") -> dict[str, Any]:
        """プロファイルからAIエージェント設定ファイルを生成する。

        Args:
            profile_id: プロファイルID。
            fmt: 出力形式。"yaml" または "json"。
        """
        result = await artifact_service.generate_agent_config(profile_id, fmt)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def generate_engineering_policy(profile_id: str) -> dict[str, Any]:
        """プロファイルのエンジニアリングルールから ENGINEERING_POLICY.md を生成する。"""
        result = await artifact_service.generate_engineering_policy(profile_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def generate_all_artifacts(profile_id: str, fmt: str = "yaml") -> dict[str, Any]:
        """プロファイルから全ての成果物をまとめて生成する。"""
        result = await artifact_service.generate_all(profile_id, fmt)
        return result.model_dump(mode="json")
