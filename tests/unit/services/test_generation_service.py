"""GenerationServiceのユニットテスト。"""

import asyncio
import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from loadout.models.audit import AIResponse
from loadout.models.catalog import Category, TechStack
from loadout.models.errors import ParseFailureError, StorageError
from loadout.models.generation import CategoryCandidate, TechStackCandidate
from loadout.providers.base import ProviderRequest, ProviderResponse
from loadout.services.generation import (
    PROVIDER_VALIDATOR,
    REQUEST_CATEGORIES,
    SYSTEM_VALIDATOR,
    GenerationService,
    parse_candidates,
    strip_code_fences,
)
from loadout.storage.service import StorageService


async def _store_backend(storage: StorageService) -> Category:
    backend = Category.create("Backend", "Server-side technologies")
    await storage.categories.add(backend)
    await storage.save_changes()
    return backend


async def _store_postgresql(storage: StorageService, postgresql: TechStack) -> Category:
    database = Category.create("Database", "Data stores")
    database.id = postgresql.category_id
    await storage.categories.add(database)
    await storage.tech_stacks.add(postgresql)
    await storage.save_changes()
    return database


async def _only_record(storage: StorageService) -> AIResponse:
    records = await storage.list_ai_responses()
    assert len(records) == 1
    return records[0]


class TestParsing:
    def test_strip_code_fences(self) -> None:
        assert strip_code_fences('```json\n[{"Name": "A"}]\n```') == '[{"Name": "A"}]'
        assert strip_code_fences('  [1]  ') == "[1]"

    def test_keys_are_case_insensitive(self) -> None:
        candidates = parse_candidates(
            '[{"name": "Redis", "Default_Version": "7.2", "PARAMETERS": null}]', TechStackCandidate, "Test"
        )
        assert candidates[0].default_version == "7.2"
        assert candidates[0].parameters == []

    @pytest.mark.parametrize(
        ("content", "reason"),
        [
            ("not json", "not valid JSON"),
            ('{"Name": "A"}', "Expected a JSON array but got dict"),
            ("[]", "no items"),
            ('[{"Description": "no name"}]', "does not match the expected schema"),
        ],
    )
    def test_parse_failures(self, content: str, reason: str) -> None:
        with pytest.raises(ParseFailureError) as exc_info:
            parse_candidates(content, CategoryCandidate, REQUEST_CATEGORIES)
        assert reason in exc_info.value.reason


class TestGenerateCategories:
    async def test_creates_new_categories_and_skips_duplicates(
        self, generation_service: GenerationService, fake_provider: Any, storage: StorageService
    ) -> None:
        await _store_backend(storage)
        fake_provider.reply(
            json.dumps(
                [
                    {"Name": "Backend", "Description": "Duplicate of an existing category"},
                    {"Name": "Observability", "Description": "Logging, metrics and tracing"},
                    {"Name": " Observability ", "Description": "Duplicate inside the batch"},
                    {"Name": "", "Description": "Nameless"},
                ]
            )
        )

        result = await generation_service.generate_categories(count=4)

        assert result.is_success, result.errors
        batch = result.value
        assert [c.name for c in batch.items] == ["Observability"]
        assert batch.skipped_duplicates == 2
        assert batch.skipped_invalid == 1
        assert batch.items[0].is_ai_generated is True
        assert batch.items[0].display_order == 1

        request = fake_provider.requests[0]
        assert request.request_context == "GenerateCategories"
        assert request.max_tokens == 2000
        assert request.temperature == 0.7
        assert request.expected_format == "json"
        assert "Generate 4 high-level technology categories" in request.prompt

        record = await _only_record(storage)
        assert record.id == batch.ai_response_id
        assert record.status == "validated"
        assert record.validated_by == SYSTEM_VALIDATOR
        assert record.model == "fake-model"
        assert record.token_count == 42
        assert record.response_time_ms == 15
        assert json.loads(record.processed_content)[1]["name"] == "Observability"
        assert len(await storage.categories.get_all()) == 2

    async def test_code_fenced_response(
        self, generation_service: GenerationService, fake_provider: Any, storage: StorageService
    ) -> None:
        fake_provider.reply('```json\n[{"Name": "Security", "Description": "AppSec tooling"}]\n```')
        result = await generation_service.generate_categories(count=1, context_hint="fintech startup")
        assert [c.name for c in result.value.items] == ["Security"]
        assert "Context: fintech startup" in fake_provider.requests[0].prompt

    async def test_only_duplicates_is_still_success(
        self, generation_service: GenerationService, fake_provider: Any, storage: StorageService
    ) -> None:
        await _store_backend(storage)
        fake_provider.reply('[{"Name": "Backend", "Description": "Again"}]')

        result = await generation_service.generate_categories(count=1)

        assert result.is_success
        assert result.value.items == []
        assert result.value.skipped_duplicates == 1
        assert (await _only_record(storage)).status == "validated"

    async def test_name_match_is_case_sensitive(
        self, generation_service: GenerationService, fake_provider: Any, storage: StorageService
    ) -> None:
        await _store_backend(storage)
        fake_provider.reply('[{"Name": "backend", "Description": "Lower-case variant"}]')

        result = await generation_service.generate_categories(count=1)

        assert [c.name for c in result.value.items] == ["backend"]
        assert result.value.skipped_duplicates == 0
        assert len(await storage.categories.get_all()) == 2

    async def test_malformed_response_is_rejected(
        self, generation_service: GenerationService, fake_provider: Any, storage: StorageService
    ) -> None:
        fake_provider.reply("Here are some categories: Backend, Frontend")

        result = await generation_service.generate_categories()

        assert result.errors == ["AI response did not contain valid category data."]
        record = await _only_record(storage)
        assert record.status == "rejected"
        assert record.validated_by == SYSTEM_VALIDATOR
        assert "not valid JSON" in record.validation_errors
        assert record.raw_response == "Here are some categories: Backend, Frontend"
        assert await storage.categories.get_all() == []

    async def test_provider_failure_is_audited(
        self, generation_service: GenerationService, fake_provider: Any, storage: StorageService
    ) -> None:
        fake_provider.fail("Rate limit exceeded")

        result = await generation_service.generate_categories()

        assert result.errors == ["AI generation failed: Rate limit exceeded"]
        record = await _only_record(storage)
        assert record.status == "rejected"
        assert record.validated_by == PROVIDER_VALIDATOR
        assert record.validation_errors == "Rate limit exceeded"
        assert record.raw_response == ""

    @pytest.mark.parametrize("count", [0, 21])
    async def test_count_out_of_range(
        self, generation_service: GenerationService, fake_provider: Any, count: int
    ) -> None:
        result = await generation_service.generate_categories(count=count)
        assert result.errors == ["Count must be between 1 and 20."]
        assert fake_provider.requests == []

    async def test_long_context_hint(self, generation_service: GenerationService, fake_provider: Any) -> None:
        result = await generation_service.generate_categories(context_hint="x" * 501)
        assert result.is_failure
        assert fake_provider.requests == []

    async def test_storage_failure_while_applying_rejects_record(
        self,
        generation_service: GenerationService,
        fake_provider: Any,
        storage: StorageService,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        fake_provider.reply('[{"Name": "Observability", "Description": "Tracing"}]')
        real_save = storage.save_changes
        calls = {"count": 0}

        async def flaky_save() -> int:
            calls["count"] += 1
            if calls["count"] == 2:
                raise StorageError("disk full")
            return await real_save()

        monkeypatch.setattr(storage, "save_changes", flaky_save)

        result = await generation_service.generate_categories(count=1)

        assert result.errors == ["disk full"]
        record = await _only_record(storage)
        assert record.status == "rejected"
        assert record.validation_errors == "Failed to apply generated data: disk full"
        assert await storage.categories.get_all() == []

    async def test_write_failure_midway_leaves_no_categories(
        self,
        generation_service: GenerationService,
        fake_provider: Any,
        storage: StorageService,
        tmp_data_dir: Path,
        fail_on_write: Callable[[int], None],
    ) -> None:
        fake_provider.reply(
            json.dumps(
                [
                    {"Name": "Observability", "Description": "Tracing"},
                    {"Name": "Security", "Description": "AppSec tooling"},
                ]
            )
        )
        # 1回目は監査レコード、2回目以降がカテゴリと検証済みレコード
        fail_on_write(3)

        result = await generation_service.generate_categories(count=2)

        assert result.errors == ["Failed to save changes: disk full"]
        record = await _only_record(storage)
        assert record.status == "rejected"
        assert record.validation_errors == "Failed to apply generated data: Failed to save changes: disk full"
        assert await StorageService(data_dir=tmp_data_dir).categories.get_all() == []
        assert list(tmp_data_dir.rglob("*.tmp")) == []

    async def test_cancellation_leaves_nothing_staged(self, storage: StorageService) -> None:
        class CancelledProvider:
            provider_name = "Cancelled"
            model_name = "none"

            async def send(self, request: ProviderRequest) -> ProviderResponse:
                raise asyncio.CancelledError

            async def validate_connection(self) -> bool:
                return False

        service = GenerationService(storage, CancelledProvider())
        with pytest.raises(asyncio.CancelledError):
            await service.generate_categories()
        assert not storage.has_pending_changes
        assert await storage.list_ai_responses() == []


class TestGenerateTechStacks:
    async def test_unknown_category_does_not_call_provider(
        self, generation_service: GenerationService, fake_provider: Any
    ) -> None:
        result = await generation_service.generate_tech_stacks("missing")
        assert result.errors == ["Category with ID 'missing' not found."]
        assert fake_provider.requests == []

    async def test_creates_tech_stacks_with_parameters(
        self,
        generation_service: GenerationService,
        fake_provider: Any,
        storage: StorageService,
        postgresql: TechStack,
    ) -> None:
        database = await _store_postgresql(storage, postgresql)
        fake_provider.reply(
            json.dumps(
                [
                    {
                        "Name": "Redis",
                        "Description": "In-memory data store",
                        "DefaultVersion": 7.2,
                        "DocumentationUrl": "https://redis.io/docs/",
                        "Parameters": [
                            {"Name": "Port", "Description": "Listen port", "ParameterType": "Integer", "DefaultValue": 6379},
                            {"Name": "port", "Description": "Duplicate", "ParameterType": "Text"},
                            {"Name": "Eviction Policy", "Description": "Eviction", "ParameterType": "Choice"},
                        ],
                    },
                    {"Name": "PostgreSQL", "Description": "Already in the catalog"},
                    {"Name": "MongoDB", "Description": "Document database", "DefaultVersion": "latest"},
                ]
            )
        )

        result = await generation_service.generate_tech_stacks(database.id, count=3)

        assert result.is_success, result.errors
        batch = result.value
        assert [s.name for s in batch.items] == ["Redis"]
        assert batch.skipped_duplicates == 2
        assert batch.skipped_invalid == 2

        request = fake_provider.requests[0]
        assert request.request_context == "GenerateTechStacks"
        assert request.max_tokens == 3000
        assert request.temperature == 0.6
        assert "for the category: Database" in request.prompt

        redis = await storage.tech_stacks.get(batch.items[0].id)
        assert redis is not None
        assert redis.category_id == database.id
        assert redis.default_version == "7.2"
        assert redis.is_ai_generated
        port = redis.get_parameter("Port")
        assert port is not None
        assert port.parameter_type == "number"
        assert port.default_value == "6379"
        assert len(redis.parameters) == 1

    async def test_schema_mismatch_is_rejected(
        self, generation_service: GenerationService, fake_provider: Any, storage: StorageService
    ) -> None:
        backend = await _store_backend(storage)
        fake_provider.reply('[{"Description": "Missing name"}]')

        result = await generation_service.generate_tech_stacks(backend.id)

        assert result.errors == ["AI response did not contain valid tech stack data."]
        assert (await _only_record(storage)).status == "rejected"

    async def test_tech_stack_name_match_is_case_sensitive(
        self,
        generation_service: GenerationService,
        fake_provider: Any,
        storage: StorageService,
        postgresql: TechStack,
    ) -> None:
        database = await _store_postgresql(storage, postgresql)
        fake_provider.reply(
            '[{"Name": "PostgreSQL", "Description": "Same name"}, {"Name": "postgresql", "Description": "Other case"}]'
        )

        result = await generation_service.generate_tech_stacks(database.id, count=2)

        assert [s.name for s in result.value.items] == ["postgresql"]
        assert result.value.skipped_duplicates == 1


class TestGenerateStackParameters:
    async def test_adds_missing_parameters(
        self,
        generation_service: GenerationService,
        fake_provider: Any,
        storage: StorageService,
        postgresql: TechStack,
    ) -> None:
        await _store_postgresql(storage, postgresql)
        fake_provider.reply(
            json.dumps(
                [
                    {"Name": "version", "Description": "Already defined", "ParameterType": "Version"},
                    {"Name": "Max Connections", "Description": "Connection limit", "ParameterType": "Number", "DefaultValue": "100"},
                    {
                        "Name": "SSL Mode",
                        "Description": "TLS requirement",
                        "ParameterType": "Choice",
                        "IsRequired": True,
                        "AllowedValues": ["disable", "require"],
                        "DefaultValue": "require",
                    },
                    {"Name": "Started", "Description": "Start date", "ParameterType": "Date"},
                ]
            )
        )

        result = await generation_service.generate_stack_parameters(postgresql.id)

        assert result.is_success, result.errors
        batch = result.value
        assert [p.name for p in batch.items] == ["Max Connections", "SSL Mode"]
        assert batch.skipped_duplicates == 1
        assert batch.skipped_invalid == 1
        assert fake_provider.requests[0].max_tokens == 1500
        assert fake_provider.requests[0].temperature == 0.5

        stored = await storage.tech_stacks.get(postgresql.id)
        assert [p.name for p in stored.parameters] == ["Version", "Port", "Max Connections", "SSL Mode"]
        ssl_mode = stored.get_parameter("ssl mode")
        assert ssl_mode.allowed_values == ("disable", "require")
        assert ssl_mode.display_order == 3
        assert ssl_mode.is_required

    async def test_unknown_tech_stack(self, generation_service: GenerationService, fake_provider: Any) -> None:
        result = await generation_service.generate_stack_parameters("missing")
        assert result.errors == ["TechStack with ID 'missing' not found."]
        assert fake_provider.requests == []


class TestAuditLog:
    async def _pending(self, storage: StorageService) -> AIResponse:
        record = AIResponse.record("Generate categories", "[]", REQUEST_CATEGORIES)
        await storage.ai_responses.add(record)
        await storage.save_changes()
        return record

    async def test_flag_and_approve(self, generation_service: GenerationService, storage: StorageService) -> None:
        record = await self._pending(storage)

        flagged = await generation_service.flag_for_review(record.id, "Names look invented")
        assert flagged.value.status == "requires_review"
        assert (await generation_service.list_ai_responses(status="requires_review")).value[0].id == record.id

        approved = await generation_service.review_ai_response(record.id, approve=True, reviewer=" alice ")
        assert approved.value.status == "validated"
        assert approved.value.validated_by == "alice"

    async def test_reject_with_reason(self, generation_service: GenerationService, storage: StorageService) -> None:
        record = await self._pending(storage)
        result = await generation_service.review_ai_response(record.id, approve=False, reviewer="bob", reason="Off topic")
        assert result.value.status == "rejected"
        assert result.value.validation_errors == "Off topic"

    async def test_terminal_record_cannot_be_reviewed(
        self, generation_service: GenerationService, storage: StorageService
    ) -> None:
        record = await self._pending(storage)
        await generation_service.review_ai_response(record.id, approve=True, reviewer="alice")

        result = await generation_service.review_ai_response(record.id, approve=False, reviewer="bob")
        assert result.errors == ["AI response status cannot change from 'validated' to 'rejected'."]
        stored = (await generation_service.get_ai_response(record.id)).value
        assert stored.status == "validated"

    async def test_reviewer_is_required(self, generation_service: GenerationService, storage: StorageService) -> None:
        record = await self._pending(storage)
        result = await generation_service.review_ai_response(record.id, approve=True, reviewer=" ")
        assert result.errors == ["Reviewer cannot be empty."]

    async def test_get_unknown_response(self, generation_service: GenerationService) -> None:
        result = await generation_service.get_ai_response("missing")
        assert result.errors == ["AIResponse with ID 'missing' not found."]

    async def test_validate_provider_connection(self, generation_service: GenerationService) -> None:
        result = await generation_service.validate_provider_connection()
        assert result.is_success
        assert result.value is True
