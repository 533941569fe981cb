"""テスト共通フィクスチャ。"""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from loadout.config import ServerConfig
from loadout.models.catalog import Category, ParameterDefinition, TechStack
from loadout.providers.base import ProviderRequest, ProviderResponse
from loadout.services.architecture import ArchitecturePatternService
from loadout.services.artifacts import ArtifactService
from loadout.services.categories import CategoryService
from loadout.services.generation import GenerationService
from loadout.services.profiles import ProjectProfileService
from loadout.services.rules import EngineeringRuleService
from loadout.services.seed import CatalogSeeder
from loadout.services.tech_stacks import TechStackService
from loadout.storage.service import StorageService


class FakeProvider:
    """あらかじめ登録した応答を順に返すテスト用プロバイダ。"""

    provider_name = "Fake"
    model_name = "fake-model"

    def __init__(self) -> None:
        self.responses: list[ProviderResponse] = []
        self.requests: list[ProviderRequest] = []

    def reply(self, content: str, total_tokens: int = 42) -> None:
        self.responses.append(
            ProviderResponse.success(content, total_tokens=total_tokens, elapsed_ms=15, model_used="fake-model")
        )

    def fail(self, message: str) -> None:
        self.responses.append(ProviderResponse.failure(message, elapsed_ms=5))

    async def send(self, request: ProviderRequest) -> ProviderResponse:
        self.requests.append(request)
        assert self.responses, "FakeProvider has no scripted response"
        return self.responses.pop(0)

    async def validate_connection(self) -> bool:
        return True


@pytest.fixture
def tmp_data_dir(tmp_path: Path) -> Path:
    """テスト用の一時データディレクトリ。"""
    return tmp_path / "loadout-test"


@pytest.fixture
def config_dir() -> Path:
    """設定ファイルディレクトリ。"""
    return Path(__file__).parent.parent / "config"


@pytest.fixture
def fail_on_write(monkeypatch: pytest.MonkeyPatch) -> Callable[[int], None]:
    """n回目の Path.write_text で OSError を送出させる関数を返す。"""

    def install(n: int) -> None:
        real_write_text = Path.write_text
        calls = {"count": 0}

        def write_text(self: Path, data: str, *args: Any, **kwargs: Any) -> int:
            calls["count"] += 1
            if calls["count"] == n:
                raise OSError("disk full")
            return real_write_text(self, data, *args, **kwargs)

        monkeypatch.setattr(Path, "write_text", write_text)

    return install


@pytest.fixture
def storage(tmp_data_dir: Path) -> StorageService:
    """テスト用StorageService。"""
    return StorageService(data_dir=tmp_data_dir)


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def category_service(storage: StorageService) -> CategoryService:
    return CategoryService(storage)


@pytest.fixture
def tech_stack_service(storage: StorageService) -> TechStackService:
    return TechStackService(storage)


@pytest.fixture
def pattern_service(storage: StorageService) -> ArchitecturePatternService:
    return ArchitecturePatternService(storage)


@pytest.fixture
def rule_service(storage: StorageService) -> EngineeringRuleService:
    return EngineeringRuleService(storage)


@pytest.fixture
def profile_service(storage: StorageService) -> ProjectProfileService:
    return ProjectProfileService(storage)


@pytest.fixture
def artifact_service(storage: StorageService, profile_service: ProjectProfileService) -> ArtifactService:
    return ArtifactService(storage, profile_service)


@pytest.fixture
def generation_service(storage: StorageService, fake_provider: FakeProvider) -> GenerationService:
    return GenerationService(storage, fake_provider)


@pytest.fixture
def seeder(storage: StorageService, config_dir: Path) -> CatalogSeeder:
    return CatalogSeeder(storage, config_dir=config_dir)


@pytest.fixture
def server_config(tmp_data_dir: Path, config_dir: Path) -> ServerConfig:
    """テスト用ServerConfig。"""
    return ServerConfig(data_dir=tmp_data_dir, config_dir=config_dir)


@pytest.fixture
def postgresql() -> TechStack:
    """必須の Version と既定値付きの Port を持つ技術スタック。"""
    database = Category.create("Database", "Data stores")
    stack = TechStack.create(database.id, "PostgreSQL", "Relational database")
    stack.add_parameter(ParameterDefinition.create("Version", "Server version", "version", is_required=True))
    stack.add_parameter(
        ParameterDefinition.create("Port", "Listen port", "number", default_value="5432", display_order=1)
    )
    return stack
