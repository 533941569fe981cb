"""ワークフロー統合MCPプロンプト定義。"""

from fastmcp import FastMCP


def register_workflow_prompts(mcp: FastMCP) -> None:
    """ワークフロー系のMCPプロンプトを登録する。"""

    def _catalog_phase() -> str:
        return (
            "## Phase 1: カタログの準備\n\n"
            "1. `list_categories` ツールでカテゴリ一覧を確認してください。\n"
            "2. カタログが空の場合は `seed_catalog` ツールで初期データを投入してください。\n"
            "3. 必要な技術が見つからない場合は `list_tech_stacks` で確認した上で、"
            "`create_tech_stack` で追加するか、`generate_tech_stacks` でAIに候補を生成させてください。\n"
            "4. パラメータの型と書式は `loadout://catalog/parameter-types` リソースで確認できます。\n\n"
        )

    def _generation_review_phase() -> str:
        return (
            "## Phase 1a: AI生成結果の確認\n\n"
            "1. 生成ツールの結果に含まれる `ai_response_id` を控えてください。\n"
            "2. `skipped_duplicates` と `skipped_invalid` の件数を利用者に伝えてください。\n"
            "3. 生成が失敗した場合は `get_ai_response` で監査レコードを開き、"
            "`validation_errors` を確認してください。\n"
            "4. 内容に疑問がある応答は `flag_ai_response` で要レビューにし、"
            "`review_ai_response` で承認または却下を記録してください。\n\n"
        )

    def _profile_phase() -> str:
        return (
            "## Phase 2: プロジェクトプロファイルの作成\n\n"
            "1. `create_profile` ツールでプロファイルを作成してください。\n"
            "2. **作成されたプロファイルID（`id`）を利用者に必ず提示してください。**\n"
            "3. 利用する技術スタックを `add_profile_tech_stack` で追加してください。"
            " 必須パラメータの値は全て文字列で指定してください。\n"
            "4. `list_architecture_patterns` でチーム規模に合うパターンを選び、"
            "`add_profile_architecture_pattern` で追加してください。\n"
            "5. `list_engineering_rules` から採用するルールを `add_profile_engineering_rule` で追加してください。\n"
            "6. `validate_profile` で不足項目がないことを確認してください。\n\n"
        )

    def _artifact_phase() -> str:
        return (
            "## Phase 3: 成果物の生成\n\n"
            "1. `generate_all_artifacts` ツールで成果物をまとめて生成してください。\n"
            "2. `copilot-instructions.md` は `.github/` 配下に、"
            "`aiagent.config.yaml` と `ENGINEERING_POLICY.md` はリポジトリのルートに配置してください。\n\n"
        )

    def _notes() -> str:
        return (
            "## 注意事項\n\n"
            "- 業務ルール違反はツールの結果に `is_success: false` と `errors` として返ります。"
            "エラー内容を利用者に伝えてください。\n"
            "- プロファイルから参照されている技術スタック・パターン・ルールは削除できません。\n"
            "- validated または rejected になった監査レコードは変更できません。\n"
        )

    @mcp.prompt()
    async def build_agent_config() -> str:
        """カタログからプロファイルを組み立て、AIエージェント設定を生成するワークフロー。"""
        return (
            "# AIエージェント設定作成ワークフロー\n\n"
            "技術スタックとエンジニアリングルールを選び、AIコーディングエージェント向けの設定ファイルを作成します。\n\n"
            + _catalog_phase()
            + _profile_phase()
            + _artifact_phase()
            + _notes()
        )

    @mcp.prompt()
    async def expand_catalog_with_ai() -> str:
        """AIでカタログを拡充し、生成結果をレビューするワークフロー。

        カテゴリ→技術スタック→パラメータの順に候補を生成し、監査ログで確認します。
        """
        return (
            "# AIによるカタログ拡充ワークフロー\n\n"
            "AIプロバイダを使ってカタログの候補を生成し、結果をレビューします。\n\n"
            "## Phase 0: 接続確認\n\n"
            "1. `validate_ai_connection` ツールでAIプロバイダに接続できることを確認してください。\n\n"
            "## Phase 1: 生成\n\n"
            "1. `generate_categories` で新しいカテゴリ候補を生成してください。\n"
            "2. 対象カテゴリごとに `generate_tech_stacks` で技術スタックを生成してください。\n"
            "3. パラメータが不足している技術スタックには `generate_stack_parameters` を実行してください。\n\n"
            + _generation_review_phase()
            + _notes()
        )
