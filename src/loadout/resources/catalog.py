"""カタログ関連のMCPリソース定義。"""

from pathlib import Path
from typing import get_args

import yaml
from fastmcp import FastMCP

from loadout.models.audit import AIResponseStatus
from loadout.models.catalog import RuleScope, RuleSeverity
from loadout.models.values import PARAMETER_TYPES

_PARAMETER_TYPE_DESCRIPTIONS = {
    "text": "任意の文字列。",
    "number": "数値。小数も可（例: 5432, 0.5）。",
    "boolean": "true または false（大文字小文字は区別しない）。",
    "choice": "allowed_values に定義された選択肢のいずれか（大文字小文字は区別しない）。",
    "version": "数字で始まるか '.' を含むバージョン文字列（例: 16.4, 3.12.1）。",
}


def register_catalog_resources(mcp: FastMCP, config_dir: Path) -> None:
    """カタログ関連のMCPリソースを登録する。"""

    @mcp.resource("loadout://catalog/seed")
    async def seed_catalog() -> str:
        """初期カタログデータを取得する。

        `seed_catalog` ツールで投入されるカテゴリ、技術スタック、
        アーキテクチャパターン、エンジニアリングルールの定義を返します。
        """
        seed_file = config_dir / "seed-catalog.yaml"
        with open(seed_file, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return yaml.dump(data, allow_unicode=True, default_flow_style=False, sort_keys=False)

    @mcp.resource("loadout://catalog/parameter-types")
    async def parameter_types() -> str:
        """技術スタックのパラメータで使用できる型と値の書式を取得する。"""
        data = {
            "parameter_types": [
                {"type": t, "description": _PARAMETER_TYPE_DESCRIPTIONS[t]} for t in PARAMETER_TYPES
            ]
        }
        return yaml.dump(data, allow_unicode=True, default_flow_style=False, sort_keys=False)

    @mcp.resource("loadout://catalog/rule-constraints")
    async def rule_constraints() -> str:
        """エンジニアリングルールの重大度・適用範囲と、監査ログのステータス一覧を取得する。"""
        data = {
            "severities": list(get_args(RuleSeverity)),
            "scopes": list(get_args(RuleScope)),
            "ai_response_statuses": list(get_args(AIResponseStatus)),
        }
        return yaml.dump(data, allow_unicode=True, default_flow_style=False, sort_keys=False)
