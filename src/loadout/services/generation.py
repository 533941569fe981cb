"""AIによるカタログ生成と監査ログ管理を行うサービス。

生成は次の順で進む: リクエスト構築 → プロバイダ呼び出し → 監査レコード保存
→ 応答の解析 → 重複・不正候補の除外 → カタログへの一括反映 → 監査レコードの確定。
"""

import json
import logging
import re
from typing import TypeVar

from pydantic import TypeAdapter, ValidationError

from loadout.models.audit import AIResponse, AIResponseStatus
from loadout.models.catalog import Category, ParameterDefinition, TechStack
from loadout.models.errors import (
    InvalidArgumentError,
    LoadoutError,
    NotFoundError,
    ParseFailureError,
)
from loadout.models.generation import (
    Candidate,
    CategoryCandidate,
    ParameterCandidate,
    TechStackCandidate,
)
from loadout.models.result import GenerationBatch, OperationResult
from loadout.providers.base import AIProvider, ProviderRequest, ProviderResponse
from loadout.services.base import BaseService, service_operation
from loadout.storage.service import StorageService

logger = logging.getLogger(__name__)

C = TypeVar("C", bound=Candidate)

REQUEST_CATEGORIES = "GenerateCategories"
REQUEST_TECH_STACKS = "GenerateTechStacks"
REQUEST_PARAMETERS = "GenerateStackParameters"

PROVIDER_VALIDATOR = "AI Provider"
SYSTEM_VALIDATOR = "System"

MAX_GENERATION_COUNT = 20

_CATEGORY_SYSTEM_MESSAGE = "You are an expert in software engineering categorization and technology classification."
_TECH_STACK_SYSTEM_MESSAGE = "You are an expert in modern software development technologies and frameworks."
_PARAMETER_SYSTEM_MESSAGE = "You are an expert in software configuration and parameterization."

_PARAMETER_SCHEMA = """{
    "Name": "Parameter name (max 100 chars)",
    "Description": "What this parameter controls (max 500 chars)",
    "ParameterType": "Text|Number|Boolean|Choice|Version",
    "IsRequired": true,
    "DefaultValue": "Default value (optional)",
    "AllowedValues": ["option1", "option2"]
  }"""

_CODE_FENCE = re.compile(r"^\s*```[\w-]*\s*\n(?P<body>.*?)\n?\s*```\s*$", re.DOTALL)


def build_category_prompt(count: int, context_hint: str | None = None) -> str:
    context = f"Context: {context_hint.strip()}\n\n" if context_hint and context_hint.strip() else ""
    return f"""Generate {count} high-level technology categories for software engineering.

Each category should represent a major area of software development (e.g., Backend, Frontend, Database, DevOps).

{context}Return a JSON array with exactly this structure:
[
  {{
    "Name": "Category name (max 100 chars)",
    "Description": "What the category covers (max 500 chars)"
  }}
]

Requirements:
- Use widely recognized categories
- Names must be unique and concise
- Return valid JSON only"""


def build_tech_stack_prompt(category: Category, count: int) -> str:
    return f"""Generate {count} widely used technology stacks for the category: {category.name}

Category description: {category.description}

Return a JSON array with this structure:
[
  {{
    "Name": "Tech stack name (max 200 chars)",
    "Description": "What the technology is used for (max 1000 chars)",
    "DefaultVersion": "Current stable version, e.g. 3.12 (optional)",
    "DocumentationUrl": "Official documentation URL (optional)",
    "Parameters": [
  {_PARAMETER_SCHEMA}
    ]
  }}
]

Requirements:
- Use real, widely adopted technologies
- Add 2-5 meaningful parameters per tech stack
- AllowedValues is required for Choice parameters and must be omitted otherwise
- Return valid JSON only"""


def build_parameter_prompt(tech_stack: TechStack) -> str:
    return f"""Generate configuration parameters for the technology: {tech_stack.name}

Description: {tech_stack.description}

Return a JSON array:
[
  {_PARAMETER_SCHEMA}
]

Requirements:
- Generate 3-8 meaningful parameters
- Use the parameter type that fits each value
- AllowedValues is required for Choice parameters and must be omitted otherwise
- Provide sensible default values
- Return valid JSON only"""


def strip_code_fences(content: str) -> str:
    """Markdownのコードブロックで囲まれていれば中身だけを取り出す。"""
    match = _CODE_FENCE.match(content)
    return match.group("body").strip() if match else content.strip()


def parse_candidates(content: str, candidate_type: type[C], request_context: str) -> list[C]:
    """AI応答をJSON配列として解析し、候補モデルのリストに変換する。

    Raises:
        ParseFailureError: JSONとして不正、配列でない、空、またはスキーマに一致しない場合。
    """
    try:
        data = json.loads(strip_code_fences(content))
    except json.JSONDecodeError as e:
        raise ParseFailureError(request_context, f"Response is not valid JSON ({e.msg}).") from None
    if not isinstance(data, list):
        raise ParseFailureError(request_context, f"Expected a JSON array but got {type(data).__name__}.")
    if not data:
        raise ParseFailureError(request_context, "Response contained no items.")
    try:
        return TypeAdapter(list[candidate_type]).validate_python(data)
    except ValidationError as e:
        raise ParseFailureError(
            request_context, f"Response does not match the expected schema ({e.error_count()} error(s))."
        ) from None


def build_parameter(candidate: ParameterCandidate, display_order: int) -> ParameterDefinition:
    """候補からパラメータ定義を生成する。

    Raises:
        LoadoutError: 型名が未知、または値が定義の制約を満たさない場合。
    """
    parameter_type = candidate.resolved_type
    if parameter_type is None:
        raise InvalidArgumentError("parameter_type", f"Unknown parameter type '{candidate.parameter_type}'.")
    default_value = candidate.default_value if candidate.default_value and candidate.default_value.strip() else None
    return ParameterDefinition.create(
        candidate.name,
        candidate.description or "",
        parameter_type,
        is_required=candidate.is_required,
        default_value=default_value,
        allowed_values=candidate.allowed_values if parameter_type == "choice" else None,
        display_order=display_order,
    )


def _normalized_json(candidates: list[C]) -> str:
    return json.dumps([c.model_dump(mode="json") for c in candidates], ensure_ascii=False, indent=2)


class GenerationService(BaseService):
    """AIプロバイダにカタログ候補を生成させ、検証済みのデータだけをカタログに反映する。

    AI呼び出しごとに監査レコード（AIResponse）を必ず保存する。
    """

    def __init__(self, storage: StorageService, provider: AIProvider) -> None:
        super().__init__(storage)
        self._provider = provider

    async def _call_provider(self, request: ProviderRequest) -> tuple[AIResponse, ProviderResponse]:
        """プロバイダを呼び出し、結果にかかわらず監査レコードを保存する。"""
        response = await self._provider.send(request)
        record = AIResponse.record(
            request.prompt,
            response.content if response.is_success else "",
            request.request_context,
            model=response.model_used or self._provider.model_name,
        )
        record.set_performance_metrics(response.total_tokens, response.elapsed_ms)
        if not response.is_success:
            record.mark_rejected(response.error_message or "Unknown provider error.", PROVIDER_VALIDATOR)
        await self._storage.ai_responses.add(record)
        await self._storage.save_changes()
        logger.info(
            "Recorded AI response %s for %s (status=%s, tokens=%s, %dms)",
            record.id,
            record.request_context,
            record.status,
            record.token_count,
            response.elapsed_ms,
        )
        return record, response

    async def _reject(self, record: AIResponse, reason: str) -> None:
        """未反映のカタログ変更を破棄し、保存済みの監査レコードを rejected にする。"""
        self._storage.discard_changes()
        stored = await self._storage.ai_responses.get(record.id) or record
        stored.mark_rejected(reason, SYSTEM_VALIDATOR)
        await self._storage.ai_responses.update(stored)
        await self._storage.save_changes()
        logger.warning("Rejected AI response %s for %s: %s", stored.id, stored.request_context, reason)

    async def _commit(self, record: AIResponse, processed_content: str) -> None:
        """一時保存したカタログ変更と監査レコードの確定を1回の書き込みで反映する。"""
        record.set_processed_content(processed_content)
        record.mark_validated(SYSTEM_VALIDATOR)
        await self._storage.ai_responses.update(record)
        await self._storage.save_changes()

    @staticmethod
    def _check_count(count: int) -> None:
        if not 1 <= count <= MAX_GENERATION_COUNT:
            raise InvalidArgumentError("count", f"Count must be between 1 and {MAX_GENERATION_COUNT}.")

    # --- カテゴリ ---

    @service_operation("generate categories")
    async def generate_categories(
        self, count: int = 5, context_hint: str | None = None
    ) -> OperationResult[GenerationBatch[Category]]:
        """AIにカテゴリ候補を生成させ、既存と重複しないものを追加する。

        Args:
            count: 生成を依頼する件数。
            context_hint: プロンプトに含める補足情報。

        Returns:
            作成したカテゴリとスキップ件数。重複のみの場合も成功として返す。
        """
        self._check_count(count)
        if context_hint is not None and len(context_hint) > 500:
            raise InvalidArgumentError("context_hint", "Context hint cannot exceed 500 characters.")
        request = ProviderRequest(
            prompt=build_category_prompt(count, context_hint),
            request_context=REQUEST_CATEGORIES,
            system_message=_CATEGORY_SYSTEM_MESSAGE,
            max_tokens=2000,
            temperature=0.7,
            expected_format="json",
        )
        record, response = await self._call_provider(request)
        if not response.is_success:
            return OperationResult.failure(f"AI generation failed: {response.error_message}")

        try:
            candidates = parse_candidates(response.content, CategoryCandidate, REQUEST_CATEGORIES)
        except ParseFailureError as e:
            await self._reject(record, e.reason)
            return OperationResult.failure("AI response did not contain valid category data.")

        try:
            batch = GenerationBatch[Category](ai_response_id=record.id)
            existing = await self._storage.categories.get_all()
            seen: set[str] = set()
            for candidate in candidates:
                key = candidate.name.strip()
                if key in seen or await self._storage.category_exists_by_name(candidate.name):
                    batch.skipped_duplicates += 1
                    continue
                try:
                    category = Category.create(candidate.name, candidate.description or "", is_ai_generated=True)
                    category.set_display_order(len(existing) + len(batch.items))
                except LoadoutError as e:
                    batch.skipped_invalid += 1
                    logger.warning("Skipped invalid category candidate '%s': %s", candidate.name, e)
                    continue
                seen.add(key)
                batch.items.append(category)
                await self._storage.categories.add(category)
            await self._commit(record, _normalized_json(candidates))
        except (LoadoutError, OSError) as e:
            await self._reject(record, f"Failed to apply generated data: {e}")
            raise

        logger.info(
            "Generated %d categories (%d duplicate(s), %d invalid)",
            len(batch.items),
            batch.skipped_duplicates,
            batch.skipped_invalid,
        )
        return OperationResult.success(batch)

    # --- 技術スタック ---

    def _build_tech_stack(
        self, category_id: str, candidate: TechStackCandidate, batch: GenerationBatch[TechStack]
    ) -> TechStack:
        tech_stack = TechStack.create(category_id, candidate.name, candidate.description or "", is_ai_generated=True)
        tech_stack.set_default_version(candidate.default_version)
        tech_stack.set_documentation_url(candidate.documentation_url)
        for parameter_candidate in candidate.parameters:
            if tech_stack.get_parameter(parameter_candidate.name) is not None:
                batch.skipped_duplicates += 1
                continue
            try:
                tech_stack.add_parameter(build_parameter(parameter_candidate, len(tech_stack.parameters)))
            except LoadoutError as e:
                batch.skipped_invalid += 1
                logger.warning(
                    "Skipped invalid parameter '%s' for '%s': %s", parameter_candidate.name, tech_stack.name, e
                )
        return tech_stack

    @service_operation("generate tech stacks")
    async def generate_tech_stacks(
        self, category_id: str, count: int = 5
    ) -> OperationResult[GenerationBatch[TechStack]]:
        """AIにカテゴリ配下の技術スタック候補をパラメータ定義付きで生成させる。

        Raises:
            NotFoundError: カテゴリが存在しない場合（プロバイダは呼び出さない）。
        """
        self._check_count(count)
        category = await self._storage.categories.get(category_id)
        if category is None:
            raise NotFoundError("Category", category_id)
        request = ProviderRequest(
            prompt=build_tech_stack_prompt(category, count),
            request_context=REQUEST_TECH_STACKS,
            system_message=_TECH_STACK_SYSTEM_MESSAGE,
            max_tokens=3000,
            temperature=0.6,
            expected_format="json",
        )
        record, response = await self._call_provider(request)
        if not response.is_success:
            return OperationResult.failure(f"AI generation failed: {response.error_message}")

        try:
            candidates = parse_candidates(response.content, TechStackCandidate, REQUEST_TECH_STACKS)
        except ParseFailureError as e:
            await self._reject(record, e.reason)
            return OperationResult.failure("AI response did not contain valid tech stack data.")

        try:
            batch = GenerationBatch[TechStack](ai_response_id=record.id)
            seen: set[str] = set()
            for candidate in candidates:
                key = candidate.name.strip()
                if key in seen or await self._storage.tech_stack_exists_by_name(category.id, candidate.name):
                    batch.skipped_duplicates += 1
                    continue
                try:
                    tech_stack = self._build_tech_stack(category.id, candidate, batch)
                except LoadoutError as e:
                    batch.skipped_invalid += 1
                    logger.warning("Skipped invalid tech stack candidate '%s': %s", candidate.name, e)
                    continue
                seen.add(key)
                batch.items.append(tech_stack)
                await self._storage.tech_stacks.add(tech_stack)
            await self._commit(record, _normalized_json(candidates))
        except (LoadoutError, OSError) as e:
            await self._reject(record, f"Failed to apply generated data: {e}")
            raise

        logger.info(
            "Generated %d tech stacks for '%s' (%d duplicate(s), %d invalid)",
            len(batch.items),
            category.name,
            batch.skipped_duplicates,
            batch.skipped_invalid,
        )
        return OperationResult.success(batch)

    # --- パラメータ ---

    @service_operation("generate stack parameters")
    async def generate_stack_parameters(
        self, tech_stack_id: str
    ) -> OperationResult[GenerationBatch[ParameterDefinition]]:
        """AIに既存技術スタックのパラメータ定義候補を生成させ、未定義のものを追加する。

        Raises:
            NotFoundError: 技術スタックが存在しない場合（プロバイダは呼び出さない）。
        """
        tech_stack = await self._storage.tech_stacks.get(tech_stack_id)
        if tech_stack is None:
            raise NotFoundError("TechStack", tech_stack_id)
        request = ProviderRequest(
            prompt=build_parameter_prompt(tech_stack),
            request_context=REQUEST_PARAMETERS,
            system_message=_PARAMETER_SYSTEM_MESSAGE,
            max_tokens=1500,
            temperature=0.5,
            expected_format="json",
        )
        record, response = await self._call_provider(request)
        if not response.is_success:
            return OperationResult.failure(f"AI generation failed: {response.error_message}")

        try:
            candidates = parse_candidates(response.content, ParameterCandidate, REQUEST_PARAMETERS)
        except ParseFailureError as e:
            await self._reject(record, e.reason)
            return OperationResult.failure("AI response did not contain valid parameter data.")

        try:
            batch = GenerationBatch[ParameterDefinition](ai_response_id=record.id)
            for candidate in candidates:
                # 同一バッチ内の重複も追加済みの定義として検出される
                if tech_stack.get_parameter(candidate.name) is not None:
                    batch.skipped_duplicates += 1
                    continue
                try:
                    parameter = build_parameter(candidate, len(tech_stack.parameters))
                    tech_stack.add_parameter(parameter)
                except LoadoutError as e:
                    batch.skipped_invalid += 1
                    logger.warning("Skipped invalid parameter candidate '%s': %s", candidate.name, e)
                    continue
                batch.items.append(parameter)
            if batch.items:
                await self._storage.tech_stacks.update(tech_stack)
            await self._commit(record, _normalized_json(candidates))
        except (LoadoutError, OSError) as e:
            await self._reject(record, f"Failed to apply generated data: {e}")
            raise

        logger.info(
            "Generated %d parameters for '%s' (%d duplicate(s), %d invalid)",
            len(batch.items),
            tech_stack.name,
            batch.skipped_duplicates,
            batch.skipped_invalid,
        )
        return OperationResult.success(batch)

    # --- 監査ログ ---

    @service_operation("list AI responses")
    async def list_ai_responses(
        self,
        status: AIResponseStatus | None = None,
        request_context: str | None = None,
    ) -> list[AIResponse]:
        return await self._storage.list_ai_responses(status=status, request_context=request_context)

    @service_operation("get AI response")
    async def get_ai_response(self, response_id: str) -> AIResponse:
        record = await self._storage.ai_responses.get(response_id)
        if record is None:
            raise NotFoundError("AIResponse", response_id)
        return record

    @service_operation("flag AI response for review")
    async def flag_for_review(self, response_id: str, reason: str) -> AIResponse:
        """pending のレコードを requires_review に移す。"""
        record = await self._storage.ai_responses.get(response_id)
        if record is None:
            raise NotFoundError("AIResponse", response_id)
        record.mark_requires_review(reason)
        await self._storage.ai_responses.update(record)
        await self._storage.save_changes()
        return record

    @service_operation("review AI response")
    async def review_ai_response(
        self,
        response_id: str,
        approve: bool,
        reviewer: str,
        reason: str | None = None,
    ) -> AIResponse:
        """レビュー結果を記録する。終端状態のレコードは変更できない。

        Raises:
            InvalidStatusTransitionError: レコードが validated または rejected の場合。
        """
        if not reviewer or not reviewer.strip():
            raise InvalidArgumentError("reviewer", "Reviewer cannot be empty.")
        record = await self._storage.ai_responses.get(response_id)
        if record is None:
            raise NotFoundError("AIResponse", response_id)
        if approve:
            record.mark_validated(reviewer.strip())
        else:
            record.mark_rejected(reason or "Rejected by reviewer.", reviewer.strip())
        await self._storage.ai_responses.update(record)
        await self._storage.save_changes()
        logger.info("AI response %s reviewed by %s: %s", record.id, reviewer.strip(), record.status)
        return record

    @service_operation("validate provider connection")
    async def validate_provider_connection(self) -> bool:
        return await self._provider.validate_connection()
