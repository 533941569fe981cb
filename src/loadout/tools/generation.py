"""AI生成と監査ログのMCPツール定義。"""

from typing import Any

from fastmcp import FastMCP

from loadout.services.generation import GenerationService


def register_generation_tools(mcp: FastMCP, generation_service: GenerationService) -> None:
    """AI生成関連のMCPツールを登録する。"""

    @mcp.tool()
    async def generate_categories(count: int = 5, context_hint: str | None = None) -> dict[str, Any]:
        """AIにカテゴリ候補を生成させ、カタログに追加する。

        既存と同じ名前の候補はスキップされ、`skipped_duplicates` に計上されます。
        AIの応答は監査ログ（AIResponse）として必ず記録されます。

        Args:
            count: 生成する件数（1〜20）。
            context_hint: 生成の方向性を示す補足情報（500文字以内）。
        """
        result = await generation_service.generate_categories(count, context_hint)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def generate_tech_stacks(category_id: str, count: int = 5) -> dict[str, Any]:
        """AIにカテゴリ配下の技術スタック候補をパラメータ定義付きで生成させる。

        Args:
            category_id: 生成先カテゴリのID。
            count: 生成する件数（1〜20）。
        """
        result = await generation_service.generate_tech_stacks(category_id, count)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def generate_stack_parameters(tech_stack_id: str) -> dict[str, Any]:
        """AIに既存の技術スタックのパラメータ定義候補を生成させる。

        既に定義済みの名前はスキップされます。
        """
        result = await generation_service.generate_stack_parameters(tech_stack_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def validate_ai_connection() -> dict[str, Any]:
        """設定されたAIプロバイダに接続できるか確認する。"""
        result = await generation_service.validate_provider_connection()
        return result.model_dump(mode="json")


def register_audit_tools(mcp: FastMCP, generation_service: GenerationService) -> None:
    """AI応答の監査ログ関連のMCPツールを登録する。"""

    @mcp.tool()
    async def list_ai_responses(status: str | None = None, request_context: str | None = None) -> dict[str, Any]:
        """AI応答の監査ログを新しい順に取得する。

        Args:
            status: "pending", "validated", "rejected", "requires_review" のいずれかで絞り込む。
            request_context: "GenerateCategories" などの呼び出し種別で絞り込む。
        """
        result = await generation_service.list_ai_responses(status, request_context)  # type: ignore[arg-type]
        return result.model_dump(mode="json")

    @mcp.tool()
    async def get_ai_response(response_id: str) -> dict[str, Any]:
        """AI応答の監査レコードを取得する。プロンプトと応答の原文が含まれます。"""
        result = await generation_service.get_ai_response(response_id)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def flag_ai_response(response_id: str, reason: str) -> dict[str, Any]:
        """未検証のAI応答を要レビューに設定する。"""
        result = await generation_service.flag_for_review(response_id, reason)
        return result.model_dump(mode="json")

    @mcp.tool()
    async def review_ai_response(
        response_id: str,
        approve: bool,
        reviewer: str,
        reason: str | None = None,
    ) -> dict[str, Any]:
        """AI応答のレビュー結果を記録する。

        validated または rejected のレコードは変更できません。

        Args:
            response_id: 監査レコードID。
            approve: 承認する場合は true、却下する場合は false。
            reviewer: レビュー担当者名。
            reason: 却下理由。
        """
        result = await generation_service.review_ai_response(response_id, approve, reviewer, reason)
        return result.model_dump(mode="json")
