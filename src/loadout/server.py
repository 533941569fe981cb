"""FastMCPベースのMCPサーバーエントリポイント。"""

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from loadout.config import ServerConfig
from loadout.prompts.workflow import register_workflow_prompts
from loadout.providers.base import AIProvider
from loadout.providers.factory import create_provider
from loadout.resources.catalog import register_catalog_resources
from loadout.services.architecture import ArchitecturePatternService
from loadout.services.artifacts import ArtifactService
from loadout.services.categories import CategoryService
from loadout.services.generation import GenerationService
from loadout.services.profiles import ProjectProfileService
from loadout.services.rules import EngineeringRuleService
from loadout.services.seed import CatalogSeeder
from loadout.services.tech_stacks import TechStackService
from loadout.storage.service import StorageService
from loadout.tools.artifacts import register_artifact_tools
from loadout.tools.catalog import (
    register_category_tools,
    register_pattern_tools,
    register_rule_tools,
    register_seed_tools,
    register_tech_stack_tools,
)
from loadout.tools.generation import register_audit_tools, register_generation_tools
from loadout.tools.profiles import register_profile_tools


def create_server(config: ServerConfig | None = None, provider: AIProvider | None = None) -> FastMCP:
    """loadout MCPサーバーを作成し、ツール・リソース・プロンプトを登録する。

    Args:
        config: サーバー設定。Noneの場合はデフォルト設定を使用。
        provider: AIプロバイダ。Noneの場合は設定から生成する。

    Returns:
        設定済みのFastMCPインスタンス。
    """
    if config is None:
        config = ServerConfig()
    if provider is None:
        provider = create_provider(config)

    mcp = FastMCP("loadout")

    # データアクセス層
    storage = StorageService(data_dir=config.data_dir)

    # サービス層
    category_service = CategoryService(storage)
    tech_stack_service = TechStackService(storage)
    pattern_service = ArchitecturePatternService(storage)
    rule_service = EngineeringRuleService(storage)
    profile_service = ProjectProfileService(storage)
    artifact_service = ArtifactService(storage, profile_service)
    generation_service = GenerationService(storage, provider)
    seeder = CatalogSeeder(storage, config_dir=config.config_dir)

    # MCPインターフェース登録 — カタログ
    register_category_tools(mcp, category_service)
    register_tech_stack_tools(mcp, tech_stack_service)
    register_pattern_tools(mcp, pattern_service)
    register_rule_tools(mcp, rule_service)
    register_seed_tools(mcp, seeder)
    register_catalog_resources(mcp, config.config_dir)

    # MCPインターフェース登録 — プロファイルと成果物
    register_profile_tools(mcp, profile_service)
    register_artifact_tools(mcp, artifact_service)

    # MCPインターフェース登録 — AI生成と監査ログ
    register_generation_tools(mcp, generation_service)
    register_audit_tools(mcp, generation_service)

    # MCPインターフェース登録 — プロンプト
    register_workflow_prompts(mcp)

    # ヘルスチェックエンドポイント
    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "ai_provider": provider.provider_name})

    return mcp
