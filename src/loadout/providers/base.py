"""AIプロバイダの抽象とリトライ・タイムアウト制御。"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal, Protocol, TypeVar, runtime_checkable

from pydantic import BaseModel

from loadout.models.errors import InvalidArgumentError, ProviderFailureError, ProviderTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")
SleepFn = Callable[[float], Awaitable[None]]


class ProviderRequest(BaseModel):
    """プロバイダへのリクエスト。"""

    prompt: str
    request_context: str
    system_message: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    expected_format: Literal["json", "text"] | None = None


class ProviderResponse(BaseModel):
    """プロバイダからのレスポンス。失敗時は error_message を持つ。"""

    is_success: bool
    content: str = ""
    error_message: str | None = None
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None
    elapsed_ms: int = 0
    model_used: str | None = None

    @classmethod
    def success(
        cls,
        content: str,
        *,
        prompt_tokens: int | None = None,
        completion_tokens: int | None = None,
        total_tokens: int | None = None,
        elapsed_ms: int = 0,
        model_used: str | None = None,
    ) -> "ProviderResponse":
        if total_tokens is None and prompt_tokens is not None:
            total_tokens = prompt_tokens + (completion_tokens or 0)
        return cls(
            is_success=True,
            content=content,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
            elapsed_ms=elapsed_ms,
            model_used=model_used,
        )

    @classmethod
    def failure(cls, error_message: str, *, elapsed_ms: int = 0) -> "ProviderResponse":
        return cls(is_success=False, error_message=error_message, elapsed_ms=elapsed_ms)


@runtime_checkable
class AIProvider(Protocol):
    """生成AIプロバイダのインターフェース。

    send() はリトライを内部で行い、最終的な失敗は ProviderResponse.failure() として返す。
    asyncio.CancelledError だけはそのまま伝播する。
    """

    provider_name: str
    model_name: str

    async def send(self, request: ProviderRequest) -> ProviderResponse: ...

    async def validate_connection(self) -> bool: ...


@dataclass(frozen=True)
class BackoffConfig:
    """指数バックオフの設定。"""

    max_retries: int = 3
    initial_delay_seconds: float = 1.0
    multiplier: float = 2.0
    max_delay_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise InvalidArgumentError("max_retries", "max_retries must be >= 0")
        if self.initial_delay_seconds < 0:
            raise InvalidArgumentError("initial_delay_seconds", "initial_delay_seconds must be >= 0")
        if self.multiplier < 1.0:
            raise InvalidArgumentError("multiplier", "multiplier must be >= 1.0")
        if self.max_delay_seconds < self.initial_delay_seconds:
            raise InvalidArgumentError("max_delay_seconds", "max_delay_seconds must be >= initial_delay_seconds")

    def delay_for(self, retry_number: int) -> float:
        """retry_number 回目（1始まり）のリトライ前の待機秒数。"""
        return min(self.initial_delay_seconds * (self.multiplier ** (retry_number - 1)), self.max_delay_seconds)


async def run_with_retries(
    operation: Callable[[], Awaitable[T]],
    *,
    map_exception: Callable[[Exception], ProviderFailureError],
    backoff: BackoffConfig,
    sleep: SleepFn = asyncio.sleep,
) -> T:
    """リトライ可能な ProviderFailureError の間だけ、指数バックオフで再実行する。

    Raises:
        ProviderFailureError: リトライ不可能なエラー、またはリトライ上限に達した場合。
    """
    retry_count = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            mapped = exc if isinstance(exc, ProviderFailureError) else map_exception(exc)
            if not mapped.retryable or retry_count >= backoff.max_retries:
                if mapped is exc:
                    raise
                raise mapped from exc
            retry_count += 1
            delay = backoff.delay_for(retry_count)
            logger.warning(
                "%s request failed (%s); retry %d/%d in %.2fs",
                mapped.provider,
                mapped,
                retry_count,
                backoff.max_retries,
                delay,
            )
            await sleep(delay)


class BaseProvider(ABC):
    """タイムアウト・リトライ・レスポンス整形を共通化したプロバイダ基底クラス。

    サブクラスは _complete() で1回分のAPI呼び出しを実装する。
    """

    provider_name: str = "provider"

    def __init__(
        self,
        *,
        model: str,
        timeout_seconds: float = 60.0,
        backoff: BackoffConfig | None = None,
        default_temperature: float | None = None,
        default_max_tokens: int | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if not model or not model.strip():
            raise InvalidArgumentError("model", "Model name cannot be empty.")
        if timeout_seconds <= 0:
            raise InvalidArgumentError("timeout_seconds", "timeout_seconds must be > 0")
        self.model_name = model.strip()
        self._timeout_seconds = timeout_seconds
        self._backoff = backoff if backoff is not None else BackoffConfig()
        self._default_temperature = default_temperature
        self._default_max_tokens = default_max_tokens
        self._sleep = sleep

    @abstractmethod
    async def _complete(self, request: ProviderRequest) -> ProviderResponse:
        """1回分のAPI呼び出しを行う。失敗時はSDKの例外をそのまま送出してよい。"""

    def _map_exception(self, exc: Exception) -> ProviderFailureError:
        return ProviderFailureError(self.provider_name, str(exc) or exc.__class__.__name__)

    async def _complete_with_timeout(self, request: ProviderRequest) -> ProviderResponse:
        try:
            async with asyncio.timeout(self._timeout_seconds):
                return await self._complete(request)
        except TimeoutError:
            raise ProviderTimeoutError(self.provider_name, self._timeout_seconds) from None

    async def send(self, request: ProviderRequest) -> ProviderResponse:
        """リクエストを送信する。リトライ後も失敗した場合は失敗レスポンスを返す。"""
        defaults: dict[str, float | int] = {}
        if request.temperature is None and self._default_temperature is not None:
            defaults["temperature"] = self._default_temperature
        if request.max_tokens is None and self._default_max_tokens is not None:
            defaults["max_tokens"] = self._default_max_tokens
        if defaults:
            request = request.model_copy(update=defaults)
        started = time.perf_counter()
        try:
            response = await run_with_retries(
                lambda: self._complete_with_timeout(request),
                map_exception=self._map_exception,
                backoff=self._backoff,
                sleep=self._sleep,
            )
        except ProviderFailureError as e:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            logger.warning("%s request for %s failed: %s", self.provider_name, request.request_context, e)
            return ProviderResponse.failure(str(e), elapsed_ms=elapsed_ms)
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        return response.model_copy(update={"elapsed_ms": elapsed_ms})

    async def validate_connection(self) -> bool:
        """最小限のリクエストを送り、接続と認証を確認する。"""
        response = await self.send(
            ProviderRequest(
                prompt="Reply with OK.",
                request_context="ValidateConnection",
                max_tokens=5,
                temperature=0.0,
                expected_format="text",
            )
        )
        return response.is_success
