"""OpenAI / Azure OpenAI のチャット補完APIを使うプロバイダ実装。"""

import asyncio
from typing import Any

import openai

from loadout.models.errors import (
    InvalidArgumentError,
    ProviderConnectionError,
    ProviderFailureError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderTimeoutError,
)
from loadout.providers.base import BackoffConfig, BaseProvider, ProviderRequest, ProviderResponse, SleepFn

JSON_INSTRUCTION = "Respond with valid JSON only. Do not wrap the JSON in Markdown or add commentary."


class OpenAIProvider(BaseProvider):
    """openai.AsyncOpenAI を使うプロバイダ。

    テストでは client にチャット補完APIを持つ任意のオブジェクトを渡せる。
    """

    provider_name = "OpenAI"

    def __init__(
        self,
        *,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        organization: str | None = None,
        timeout_seconds: float = 60.0,
        backoff: BackoffConfig | None = None,
        default_temperature: float | None = None,
        default_max_tokens: int | None = None,
        client: Any = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        super().__init__(
            model=model,
            timeout_seconds=timeout_seconds,
            backoff=backoff,
            default_temperature=default_temperature,
            default_max_tokens=default_max_tokens,
            sleep=sleep,
        )
        self._api_key = api_key
        self._base_url = base_url
        self._organization = organization
        self._client = client

    def _create_client(self) -> Any:
        # リトライは BaseProvider 側で行うため、SDKの自動リトライは無効にする
        return openai.AsyncOpenAI(
            api_key=self._api_key or None,
            base_url=self._base_url or None,
            organization=self._organization or None,
            max_retries=0,
        )

    def _ensure_client(self) -> Any:
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def _deployment(self) -> str:
        return self.model_name

    @staticmethod
    def _build_messages(request: ProviderRequest) -> list[dict[str, str]]:
        system_parts = [part for part in (request.system_message,) if part]
        if request.expected_format == "json":
            system_parts.append(JSON_INSTRUCTION)
        messages: list[dict[str, str]] = []
        if system_parts:
            messages.append({"role": "system", "content": "\n\n".join(system_parts)})
        messages.append({"role": "user", "content": request.prompt})
        return messages

    async def _complete(self, request: ProviderRequest) -> ProviderResponse:
        client = self._ensure_client()
        kwargs: dict[str, Any] = {
            "model": self._deployment(),
            "messages": self._build_messages(request),
        }
        if request.max_tokens is not None:
            kwargs["max_tokens"] = request.max_tokens
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature

        completion = await client.chat.completions.create(**kwargs)

        if not completion.choices:
            raise ProviderResponseError(self.provider_name, "Response contained no choices.")
        content = completion.choices[0].message.content
        if not content:
            raise ProviderResponseError(self.provider_name, "Response contained no content.")
        usage = getattr(completion, "usage", None)
        return ProviderResponse.success(
            content,
            prompt_tokens=getattr(usage, "prompt_tokens", None),
            completion_tokens=getattr(usage, "completion_tokens", None),
            total_tokens=getattr(usage, "total_tokens", None),
            model_used=getattr(completion, "model", None) or self.model_name,
        )

    def _map_exception(self, exc: Exception) -> ProviderFailureError:
        if isinstance(exc, openai.APITimeoutError):
            return ProviderTimeoutError(self.provider_name, self._timeout_seconds)
        if isinstance(exc, openai.APIConnectionError):
            return ProviderConnectionError(self.provider_name, f"Connection error: {exc}")
        if isinstance(exc, openai.RateLimitError):
            return ProviderRateLimitError(self.provider_name, f"Rate limit exceeded: {exc}")
        if isinstance(exc, openai.APIStatusError):
            return ProviderFailureError(
                self.provider_name,
                f"API error ({exc.status_code}): {exc.message}",
                retryable=exc.status_code >= 500,
            )
        return super()._map_exception(exc)


class AzureOpenAIProvider(OpenAIProvider):
    """openai.AsyncAzureOpenAI を使うプロバイダ。モデル名の代わりにデプロイ名で呼び出す。"""

    provider_name = "Azure OpenAI"

    def __init__(
        self,
        *,
        endpoint: str,
        deployment: str,
        api_key: str | None = None,
        api_version: str = "2024-02-01",
        model: str | None = None,
        timeout_seconds: float = 60.0,
        backoff: BackoffConfig | None = None,
        default_temperature: float | None = None,
        default_max_tokens: int | None = None,
        client: Any = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if not endpoint or not endpoint.strip():
            raise InvalidArgumentError("azure_endpoint", "Azure OpenAI endpoint is required.")
        if not deployment or not deployment.strip():
            raise InvalidArgumentError("azure_deployment", "Azure OpenAI deployment name is required.")
        super().__init__(
            model=model or deployment,
            api_key=api_key,
            timeout_seconds=timeout_seconds,
            backoff=backoff,
            default_temperature=default_temperature,
            default_max_tokens=default_max_tokens,
            client=client,
            sleep=sleep,
        )
        self._endpoint = endpoint.strip()
        self._deployment_name = deployment.strip()
        self._api_version = api_version

    def _create_client(self) -> Any:
        return openai.AsyncAzureOpenAI(
            azure_endpoint=self._endpoint,
            azure_deployment=self._deployment_name,
            api_key=self._api_key or None,
            api_version=self._api_version,
            max_retries=0,
        )

    def _deployment(self) -> str:
        return self._deployment_name
