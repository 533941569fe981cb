"""ローカルファイルシステムベースのストレージサービス。"""

import json
import os
from collections.abc import Callable
from pathlib import Path
from typing import Generic, TypeVar

from loadout.models.audit import AIResponse, AIResponseStatus
from loadout.models.catalog import ArchitecturePattern, Category, EngineeringRule, TechStack
from loadout.models.common import Entity
from loadout.models.errors import StorageError
from loadout.models.profile import ProjectProfile

E = TypeVar("E", bound=Entity)

# 削除予定を表すマーカー
_DELETED = None


class Repository(Generic[E]):
    """1コレクション分のエンティティを読み書きするリポジトリ。

    書き込みは StorageService に一時保存され、save_changes() でまとめて
    ファイルへ反映される。読み込みは未反映の変更も含めて返す。
    """

    def __init__(self, storage: "StorageService", model: type[E], collection: str) -> None:
        self._storage = storage
        self._model = model
        self._collection = collection

    @property
    def collection(self) -> str:
        return self._collection

    async def get(self, entity_id: str) -> E | None:
        """IDでエンティティを取得する。存在しない場合はNoneを返す。"""
        key = (self._collection, entity_id)
        if key in self._storage._pending:
            staged = self._storage._pending[key]
            return None if staged is _DELETED else self._model.model_validate_json(staged)
        entity_file = self._storage._entity_file(self._collection, entity_id)
        if not entity_file.exists():
            return None
        return self._model.model_validate(json.loads(entity_file.read_text(encoding="utf-8")))

    async def get_all(self) -> list[E]:
        """コレクション内の全エンティティを作成日時順に返す。"""
        ids: set[str] = set()
        collection_dir = self._storage._collection_dir(self._collection)
        if collection_dir.exists():
            ids.update(f.stem for f in collection_dir.glob("*.json"))
        ids.update(entity_id for (collection, entity_id) in self._storage._pending if collection == self._collection)
        entities = [entity for entity_id in ids if (entity := await self.get(entity_id)) is not None]
        return sorted(entities, key=lambda e: e.created_at)

    async def find(self, predicate: Callable[[E], bool]) -> list[E]:
        return [entity for entity in await self.get_all() if predicate(entity)]

    async def exists(self, predicate: Callable[[E], bool]) -> bool:
        return any(predicate(entity) for entity in await self.get_all())

    async def add(self, entity: E) -> None:
        self._storage._stage(self._collection, entity.id, self._serialize(entity))

    async def update(self, entity: E) -> None:
        self._storage._stage(self._collection, entity.id, self._serialize(entity))

    async def delete(self, entity_id: str) -> None:
        self._storage._stage(self._collection, entity_id, _DELETED)

    def _serialize(self, entity: E) -> str:
        payload = entity.model_dump_json(indent=2)
        # 読み戻せない状態（子要素の直接変更による名前重複など）は保存しない
        self._model.model_validate_json(payload)
        return payload


def _same_name(left: str, right: str) -> bool:
    return left.strip() == right.strip()


class StorageService:
    """ローカルファイルシステムを利用したデータ永続化層。

    エンティティ1件を data_dir/<collection>/<id>.json に保存する。
    save_changes() は一時保存された全変更を中断点なしで書き込むため、
    キャンセルされた操作は全件反映か未反映のどちらかになる。
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._pending: dict[tuple[str, str], str | None] = {}
        self.categories = Repository(self, Category, "categories")
        self.tech_stacks = Repository(self, TechStack, "tech_stacks")
        self.architecture_patterns = Repository(self, ArchitecturePattern, "architecture_patterns")
        self.engineering_rules = Repository(self, EngineeringRule, "engineering_rules")
        self.profiles = Repository(self, ProjectProfile, "profiles")
        self.ai_responses = Repository(self, AIResponse, "ai_responses")

    def _collection_dir(self, collection: str) -> Path:
        return self._data_dir / collection

    def _entity_file(self, collection: str, entity_id: str) -> Path:
        # ディレクトリトラバーサル防止
        safe_id = Path(entity_id).name
        if not safe_id or safe_id != entity_id or safe_id in (".", ".."):
            raise StorageError(f"Invalid entity ID: {entity_id}")
        return self._collection_dir(collection) / f"{safe_id}.json"

    def _stage(self, collection: str, entity_id: str, payload: str | None) -> None:
        self._entity_file(collection, entity_id)
        self._pending[(collection, entity_id)] = payload

    @property
    def has_pending_changes(self) -> bool:
        return bool(self._pending)

    async def save_changes(self) -> int:
        """一時保存された変更をファイルシステムへ反映する。

        Returns:
            反映した変更の件数。

        Raises:
            StorageError: ファイルの書き込みに失敗した場合。
        """
        pending, self._pending = self._pending, {}
        # 全件を一時ファイルに書き終えてから置き換える
        staged: list[tuple[Path, Path]] = []
        deletions: list[Path] = []
        try:
            for (collection, entity_id), payload in pending.items():
                entity_file = self._entity_file(collection, entity_id)
                if payload is _DELETED:
                    deletions.append(entity_file)
                    continue
                entity_file.parent.mkdir(parents=True, exist_ok=True)
                tmp_file = entity_file.with_name(f"{entity_file.name}.tmp")
                staged.append((tmp_file, entity_file))
                tmp_file.write_text(payload, encoding="utf-8")
        except OSError as e:
            for tmp_file, _ in staged:
                tmp_file.unlink(missing_ok=True)
            raise StorageError(f"Failed to save changes: {e}") from e
        try:
            for tmp_file, entity_file in staged:
                os.replace(tmp_file, entity_file)
            for entity_file in deletions:
                entity_file.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to save changes: {e}") from e
        return len(pending)

    def discard_changes(self) -> None:
        """未反映の変更を破棄する。"""
        self._pending.clear()

    # --- カタログ検索 ---

    async def category_exists_by_name(self, name: str, exclude_id: str | None = None) -> bool:
        return await self.categories.exists(lambda c: c.id != exclude_id and _same_name(c.name, name))

    async def get_tech_stacks_by_category(self, category_id: str) -> list[TechStack]:
        return await self.tech_stacks.find(lambda s: s.category_id == category_id)

    async def tech_stack_exists_by_name(self, category_id: str, name: str, exclude_id: str | None = None) -> bool:
        return await self.tech_stacks.exists(
            lambda s: s.category_id == category_id and s.id != exclude_id and _same_name(s.name, name)
        )

    async def pattern_exists_by_name(self, name: str, exclude_id: str | None = None) -> bool:
        return await self.architecture_patterns.exists(lambda p: p.id != exclude_id and _same_name(p.name, name))

    async def rule_exists_by_name(self, name: str, exclude_id: str | None = None) -> bool:
        return await self.engineering_rules.exists(lambda r: r.id != exclude_id and _same_name(r.name, name))

    # --- 参照検索 ---

    async def profiles_referencing_tech_stack(self, tech_stack_id: str) -> list[ProjectProfile]:
        return await self.profiles.find(lambda p: p.references_tech_stack(tech_stack_id))

    async def profiles_referencing_pattern(self, pattern_id: str) -> list[ProjectProfile]:
        return await self.profiles.find(lambda p: pattern_id in p.architecture_pattern_ids)

    async def profiles_referencing_rule(self, rule_id: str) -> list[ProjectProfile]:
        return await self.profiles.find(lambda p: rule_id in p.engineering_rule_ids)

    # --- 監査ログ ---

    async def list_ai_responses(
        self,
        status: AIResponseStatus | None = None,
        request_context: str | None = None,
    ) -> list[AIResponse]:
        """監査レコードを新しい順に返す。"""
        responses = await self.ai_responses.find(
            lambda r: (status is None or r.status == status)
            and (request_context is None or r.request_context == request_context)
        )
        return sorted(responses, key=lambda r: r.requested_at, reverse=True)
