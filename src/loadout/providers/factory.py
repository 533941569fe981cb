"""設定からAIプロバイダを生成するファクトリ。"""

from loadout.config import ServerConfig
from loadout.models.errors import InvalidArgumentError
from loadout.providers.base import AIProvider, BackoffConfig
from loadout.providers.openai_chat import AzureOpenAIProvider, OpenAIProvider

SUPPORTED_PROVIDERS = ("openai", "azure_openai")


def backoff_from_config(config: ServerConfig) -> BackoffConfig:
    return BackoffConfig(
        max_retries=config.ai_max_retries,
        initial_delay_seconds=config.ai_retry_delay_ms / 1000,
        max_delay_seconds=max(30.0, config.ai_retry_delay_ms / 1000),
    )


def create_provider(config: ServerConfig) -> AIProvider:
    """config.ai_provider に応じたプロバイダを生成する。

    Raises:
        InvalidArgumentError: 未対応のプロバイダ名、または必須設定が欠けている場合。
    """
    name = config.ai_provider.strip().lower()
    backoff = backoff_from_config(config)
    if name == "openai":
        return OpenAIProvider(
            model=config.ai_model,
            api_key=config.ai_api_key,
            base_url=config.ai_base_url,
            organization=config.ai_organization,
            timeout_seconds=config.ai_timeout_seconds,
            backoff=backoff,
            default_temperature=config.ai_temperature,
            default_max_tokens=config.ai_max_tokens,
        )
    if name == "azure_openai":
        return AzureOpenAIProvider(
            endpoint=config.azure_endpoint,
            deployment=config.azure_deployment,
            api_key=config.ai_api_key,
            api_version=config.azure_api_version,
            timeout_seconds=config.ai_timeout_seconds,
            backoff=backoff,
            default_temperature=config.ai_temperature,
            default_max_tokens=config.ai_max_tokens,
        )
    raise InvalidArgumentError(
        "ai_provider",
        f"Unsupported AI provider '{config.ai_provider}'. Supported: {', '.join(SUPPORTED_PROVIDERS)}.",
    )
