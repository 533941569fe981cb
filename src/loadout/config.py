"""loadoutサーバーの設定管理。"""

from pathlib import Path

from pydantic_settings import BaseSettings

_PACKAGE_ROOT = Path(__file__).parent
_REPO_ROOT = _PACKAGE_ROOT.parent.parent


class ServerConfig(BaseSettings):
    """サーバー設定。環境変数から読み込み可能。"""

    model_config = {"env_prefix": "LOADOUT_"}

    data_dir: Path = _REPO_ROOT / ".loadout"
    config_dir: Path = _REPO_ROOT / "config"
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # AIプロバイダ
    ai_provider: str = "openai"
    ai_model: str = "gpt-4"
    ai_api_key: str = ""
    ai_base_url: str = ""
    ai_organization: str = ""
    ai_temperature: float = 0.7
    ai_max_tokens: int = 2000
    ai_timeout_seconds: float = 60.0
    ai_max_retries: int = 3
    ai_retry_delay_ms: int = 1000

    # Azure OpenAI
    azure_endpoint: str = ""
    azure_deployment: str = ""
    azure_api_version: str = "2024-02-01"
