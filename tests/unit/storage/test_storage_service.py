"""StorageServiceのユニットテスト。"""

from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import pytest

from loadout.models.audit import AIResponse
from loadout.models.catalog import Category, TechStack
from loadout.models.errors import DuplicateNameError, StorageError
from loadout.models.profile import ProjectProfile
from loadout.storage.service import StorageService


class TestUnitOfWork:
    async def test_staged_entity_is_visible_before_save(self, storage: StorageService, tmp_data_dir: Path) -> None:
        category = Category.create("Backend", "Server-side")
        await storage.categories.add(category)

        assert storage.has_pending_changes
        loaded = await storage.categories.get(category.id)
        assert loaded is not None
        assert loaded.name == "Backend"
        assert not (tmp_data_dir / "categories" / f"{category.id}.json").exists()

    async def test_save_changes_writes_files(self, storage: StorageService, tmp_data_dir: Path) -> None:
        category = Category.create("Backend", "Server-side")
        await storage.categories.add(category)

        assert await storage.save_changes() == 1
        assert not storage.has_pending_changes
        reloaded = await StorageService(data_dir=tmp_data_dir).categories.get(category.id)
        assert reloaded is not None
        assert reloaded.id == category.id
        assert reloaded.created_at == category.created_at

    async def test_discard_changes(self, storage: StorageService) -> None:
        category = Category.create("Backend", "Server-side")
        await storage.categories.add(category)
        storage.discard_changes()

        assert await storage.categories.get(category.id) is None
        assert await storage.save_changes() == 0

    async def test_delete(self, storage: StorageService, tmp_data_dir: Path) -> None:
        category = Category.create("Backend", "Server-side")
        await storage.categories.add(category)
        await storage.save_changes()

        await storage.categories.delete(category.id)
        assert await storage.categories.get(category.id) is None
        await storage.save_changes()
        assert not (tmp_data_dir / "categories" / f"{category.id}.json").exists()

    async def test_update_overwrites_existing(self, storage: StorageService) -> None:
        category = Category.create("Backend", "Server-side")
        await storage.categories.add(category)
        await storage.save_changes()

        category.set_description("APIs and services")
        await storage.categories.update(category)
        await storage.save_changes()

        loaded = await storage.categories.get(category.id)
        assert loaded is not None
        assert loaded.description == "APIs and services"

    async def test_get_all_merges_disk_and_staged(self, storage: StorageService) -> None:
        saved = Category.create("Backend", "Server-side")
        await storage.categories.add(saved)
        await storage.save_changes()
        staged = Category.create("Frontend", "Client-side")
        await storage.categories.add(staged)

        names = {c.name for c in await storage.categories.get_all()}
        assert names == {"Backend", "Frontend"}

    async def test_failed_write_leaves_disk_untouched(
        self, storage: StorageService, tmp_data_dir: Path, fail_on_write: Callable[[int], None]
    ) -> None:
        existing = Category.create("Backend", "Server-side")
        doomed = Category.create("Legacy", "Old stuff")
        await storage.categories.add(existing)
        await storage.categories.add(doomed)
        await storage.save_changes()

        existing.set_description("Changed")
        await storage.categories.update(existing)
        await storage.categories.delete(doomed.id)
        first = Category.create("Frontend", "Client-side")
        second = Category.create("Testing", "Test tooling")
        await storage.categories.add(first)
        await storage.categories.add(second)
        fail_on_write(3)

        with pytest.raises(StorageError, match="disk full"):
            await storage.save_changes()

        reloaded = StorageService(data_dir=tmp_data_dir)
        assert (await reloaded.categories.get(existing.id)).description == "Server-side"
        assert await reloaded.categories.get(doomed.id) is not None
        assert await reloaded.categories.get(first.id) is None
        assert await reloaded.categories.get(second.id) is None
        assert list((tmp_data_dir / "categories").glob("*.tmp")) == []

    async def test_entity_that_cannot_be_reloaded_is_not_staged(
        self, storage: StorageService, postgresql: TechStack
    ) -> None:
        await storage.tech_stacks.add(postgresql)
        await storage.save_changes()

        postgresql.parameters[1].set_name("version")
        with pytest.raises(DuplicateNameError):
            await storage.tech_stacks.update(postgresql)

        assert not storage.has_pending_changes
        stored = await storage.tech_stacks.get(postgresql.id)
        assert [p.name for p in stored.parameters] == ["Version", "Port"]

    async def test_get_nonexistent_returns_none(self, storage: StorageService) -> None:
        assert await storage.tech_stacks.get("nonexistent") is None

    @pytest.mark.parametrize("entity_id", ["../etc/passwd", "a/b", ".."])
    async def test_path_traversal_is_rejected(self, storage: StorageService, entity_id: str) -> None:
        with pytest.raises(StorageError):
            await storage.categories.get(entity_id)


class TestFinders:
    async def test_category_exists_by_name(self, storage: StorageService) -> None:
        category = Category.create("Backend", "Server-side")
        await storage.categories.add(category)

        assert await storage.category_exists_by_name(" Backend ")
        assert not await storage.category_exists_by_name("backend")
        assert not await storage.category_exists_by_name("Backend", exclude_id=category.id)
        assert not await storage.category_exists_by_name("Frontend")

    async def test_inactive_categories_still_count(self, storage: StorageService) -> None:
        category = Category.create("Backend", "Server-side")
        category.deactivate()
        await storage.categories.add(category)
        assert await storage.category_exists_by_name("Backend")

    async def test_tech_stack_names_are_scoped_to_category(self, storage: StorageService) -> None:
        await storage.tech_stacks.add(TechStack.create("cat-a", "Redis", "Cache"))

        assert await storage.tech_stack_exists_by_name("cat-a", "Redis")
        assert not await storage.tech_stack_exists_by_name("cat-a", "redis")
        assert not await storage.tech_stack_exists_by_name("cat-b", "Redis")
        assert len(await storage.get_tech_stacks_by_category("cat-a")) == 1

    async def test_profiles_referencing(self, storage: StorageService, postgresql: TechStack) -> None:
        profile = ProjectProfile.create("Payments", "Payments API")
        profile.add_tech_stack(postgresql, {"Version": "16.4"})
        profile.add_architecture_pattern("pattern-1")
        await storage.profiles.add(profile)
        await storage.save_changes()

        assert len(await storage.profiles_referencing_tech_stack(postgresql.id)) == 1
        assert len(await storage.profiles_referencing_pattern("pattern-1")) == 1
        assert await storage.profiles_referencing_rule("rule-1") == []

    async def test_list_ai_responses_newest_first(self, storage: StorageService) -> None:
        older = AIResponse(
            prompt="p1", request_context="GenerateCategories", requested_at=datetime(2024, 1, 1, tzinfo=UTC)
        )
        newer = AIResponse(
            prompt="p2", request_context="GenerateTechStacks", requested_at=datetime(2024, 2, 1, tzinfo=UTC)
        )
        newer.mark_rejected("bad json", "System")
        for record in (older, newer):
            await storage.ai_responses.add(record)
        await storage.save_changes()

        assert [r.id for r in await storage.list_ai_responses()] == [newer.id, older.id]
        assert [r.id for r in await storage.list_ai_responses(status="rejected")] == [newer.id]
        assert [r.id for r in await storage.list_ai_responses(request_context="GenerateCategories")] == [older.id]
