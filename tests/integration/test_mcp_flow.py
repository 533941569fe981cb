"""MCPプロトコル経由の統合テスト。"""

import json
from typing import Any

import httpx
import pytest
from fastmcp import Client, FastMCP

from loadout.config import ServerConfig
from loadout.server import create_server


@pytest.fixture
def mcp_server(server_config: ServerConfig, fake_provider: Any) -> FastMCP:
    """テスト用MCPサーバー。"""
    return create_server(server_config, provider=fake_provider)


def parse_tool_result(result: object) -> dict:
    """CallToolResultからJSONデータを抽出する。"""
    content = result.content  # type: ignore[union-attr]
    assert len(content) > 0
    return json.loads(content[0].text)  # type: ignore[union-attr]


async def _call(client: Client, tool: str, arguments: dict[str, Any] | None = None) -> dict:  # type: ignore[type-arg]
    return parse_tool_result(await client.call_tool(tool, arguments or {}))


async def _find_catalog_ids(client: Client) -> dict[str, str]:  # type: ignore[type-arg]
    """シード済みカタログから PostgreSQL・パターン・ルールのIDを取得する。"""
    categories = (await _call(client, "list_categories"))["value"]
    database = next(c["category"] for c in categories if c["category"]["name"] == "Database")
    stacks = (await _call(client, "list_tech_stacks", {"category_id": database["id"]}))["value"]
    patterns = (await _call(client, "list_architecture_patterns", {"team_size": 4}))["value"]
    rules = (await _call(client, "list_engineering_rules", {"scope": "security"}))["value"]
    return {
        "postgresql": next(s["id"] for s in stacks if s["name"] == "PostgreSQL"),
        "pattern": next(p["id"] for p in patterns if p["name"] == "Layered Monolith"),
        "rule": next(r["id"] for r in rules if r["name"] == "No Dynamic SQL"),
    }


class TestRegistration:
    async def test_tools_are_registered(self, mcp_server: FastMCP) -> None:
        async with Client(mcp_server) as client:
            tool_names = {t.name for t in await client.list_tools()}
            for name in (
                "seed_catalog",
                "create_category",
                "add_stack_parameter",
                "rename_stack_parameter",
                "create_profile",
                "add_profile_tech_stack",
                "validate_profile",
                "generate_all_artifacts",
                "generate_categories",
                "review_ai_response",
            ):
                assert name in tool_names

    async def test_list_resources_via_mcp(self, mcp_server: FastMCP) -> None:
        async with Client(mcp_server) as client:
            resource_uris = {str(r.uri) for r in await client.list_resources()}
            assert "loadout://catalog/seed" in resource_uris
            assert "loadout://catalog/parameter-types" in resource_uris
            assert "loadout://catalog/rule-constraints" in resource_uris

    async def test_read_rule_constraints(self, mcp_server: FastMCP) -> None:
        async with Client(mcp_server) as client:
            contents = await client.read_resource("loadout://catalog/rule-constraints")
            text = contents[0].text  # type: ignore[union-attr]
            assert "critical" in text
            assert "requires_review" in text

    async def test_prompts_are_registered(self, mcp_server: FastMCP) -> None:
        async with Client(mcp_server) as client:
            prompt_names = {p.name for p in await client.list_prompts()}
            assert {"build_agent_config", "expand_catalog_with_ai"} <= prompt_names

    async def test_build_agent_config_prompt(self, mcp_server: FastMCP) -> None:
        async with Client(mcp_server) as client:
            result = await client.get_prompt("build_agent_config", {})
            text = result.messages[0].content.text  # type: ignore[union-attr]
            assert "seed_catalog" in text
            assert "利用者に必ず提示" in text

    async def test_health_check(self, mcp_server: FastMCP) -> None:
        app = mcp_server.http_app(transport="streamable-http")
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "ai_provider": "Fake"}


class TestProfileFlow:
    async def test_seed_profile_and_artifacts(self, mcp_server: FastMCP) -> None:
        async with Client(mcp_server) as client:
            seeded = await _call(client, "seed_catalog")
            assert seeded["is_success"] is True
            assert seeded["value"]["tech_stacks"] == 5

            ids = await _find_catalog_ids(client)
            profile = await _call(
                client,
                "create_profile",
                {
                    "name": "payments-api",
                    "description": "Payment processing service",
                    "project_name": "Payments",
                    "target_team_size": 4,
                },
            )
            profile_id = profile["value"]["id"]

            incomplete = await _call(client, "validate_profile", {"profile_id": profile_id})
            assert incomplete["is_success"] is False
            assert "missing tech stack, architecture pattern" in incomplete["errors"][0]

            added = await _call(
                client,
                "add_profile_tech_stack",
                {"profile_id": profile_id, "tech_stack_id": ids["postgresql"], "parameter_values": {"version": "16.4"}},
            )
            assert added["is_success"] is True, added["errors"]
            await _call(client, "add_profile_architecture_pattern", {"profile_id": profile_id, "pattern_id": ids["pattern"]})
            await _call(client, "add_profile_engineering_rule", {"profile_id": profile_id, "rule_id": ids["rule"]})

            valid = await _call(client, "validate_profile", {"profile_id": profile_id})
            assert valid["is_success"] is True

            artifacts = await _call(client, "generate_all_artifacts", {"profile_id": profile_id})
            assert artifacts["is_success"] is True
            by_name = {a["file_name"]: a for a in artifacts["value"]}
            assert set(by_name) == {"copilot-instructions.md", "aiagent.config.yaml", "ENGINEERING_POLICY.md"}
            assert "**PostgreSQL 16.4** (Database)" in by_name["copilot-instructions.md"]["content"]
            assert "No Dynamic SQL" in by_name["ENGINEERING_POLICY.md"]["content"]

    async def test_missing_required_parameter_is_reported(self, mcp_server: FastMCP) -> None:
        async with Client(mcp_server) as client:
            await _call(client, "seed_catalog")
            ids = await _find_catalog_ids(client)
            profile = await _call(client, "create_profile", {"name": "reporting", "description": "Reports"})

            result = await _call(
                client,
                "add_profile_tech_stack",
                {"profile_id": profile["value"]["id"], "tech_stack_id": ids["postgresql"]},
            )

            assert result["is_success"] is False
            assert result["errors"] == ["Required parameter 'Version' is missing for tech stack 'PostgreSQL'."]

    async def test_referenced_tech_stack_cannot_be_deleted(self, mcp_server: FastMCP) -> None:
        async with Client(mcp_server) as client:
            await _call(client, "seed_catalog")
            ids = await _find_catalog_ids(client)
            profile = await _call(client, "create_profile", {"name": "ledger", "description": "Ledger"})
            await _call(
                client,
                "add_profile_tech_stack",
                {
                    "profile_id": profile["value"]["id"],
                    "tech_stack_id": ids["postgresql"],
                    "parameter_values": {"Version": "15"},
                },
            )

            result = await _call(client, "delete_tech_stack", {"tech_stack_id": ids["postgresql"]})

            assert result["is_success"] is False
            assert "used by 1 project profile(s)" in result["errors"][0]


class TestGenerationFlow:
    async def test_generate_and_review_via_mcp(self, mcp_server: FastMCP, fake_provider: Any) -> None:
        fake_provider.reply('[{"Name": "Observability", "Description": "Logging, metrics and tracing"}]')
        fake_provider.fail("Service unavailable")

        async with Client(mcp_server) as client:
            generated = await _call(client, "generate_categories", {"count": 1})
            assert generated["is_success"] is True
            assert [c["name"] for c in generated["value"]["items"]] == ["Observability"]

            failed = await _call(client, "generate_categories", {"count": 1})
            assert failed["errors"] == ["AI generation failed: Service unavailable"]

            rejected = (await _call(client, "list_ai_responses", {"status": "rejected"}))["value"]
            assert len(rejected) == 1
            assert rejected[0]["validated_by"] == "AI Provider"

            review = await _call(
                client,
                "review_ai_response",
                {"response_id": rejected[0]["id"], "approve": True, "reviewer": "alice"},
            )
            assert review["is_success"] is False
            assert review["errors"] == ["AI response status cannot change from 'rejected' to 'validated'."]

    async def test_validate_ai_connection(self, mcp_server: FastMCP) -> None:
        async with Client(mcp_server) as client:
            result = await _call(client, "validate_ai_connection")
            assert result == {"is_success": True, "value": True, "errors": []}
