"""AI呼び出しの監査レコード。"""

from datetime import datetime
from typing import Any, Literal

from pydantic import Field, field_validator

from loadout.models.common import Entity, require_non_negative, utc_now
from loadout.models.errors import InvalidArgumentError, InvalidStatusTransitionError

AIResponseStatus = Literal["pending", "validated", "rejected", "requires_review"]

MAX_PROMPT_LENGTH = 10000
MAX_RAW_RESPONSE_LENGTH = 50000

_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"validated", "rejected", "requires_review"}),
    "requires_review": frozenset({"validated", "rejected"}),
    "validated": frozenset(),
    "rejected": frozenset(),
}


class AIResponse(Entity):
    """AIへのリクエスト/レスポンス1往復分の監査レコード。

    prompt と raw_response は生成後に変更できない。ステータスは一方向にのみ
    遷移し、validated と rejected は終端状態。
    """

    prompt: str = Field(frozen=True)
    raw_response: str = Field(default="", frozen=True)
    processed_content: str | None = None
    request_context: str
    status: AIResponseStatus = "pending"
    requested_at: datetime = Field(default_factory=utc_now)
    validated_at: datetime | None = None
    validated_by: str | None = None
    validation_errors: str | None = None
    model: str | None = None
    token_count: int | None = None
    response_time_ms: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("prompt")
    @classmethod
    def _check_prompt(cls, value: str) -> str:
        if not value or not value.strip():
            raise InvalidArgumentError("prompt", "Prompt cannot be empty.")
        if len(value) > MAX_PROMPT_LENGTH:
            raise InvalidArgumentError("prompt", f"Prompt cannot exceed {MAX_PROMPT_LENGTH} characters.")
        return value

    @field_validator("request_context")
    @classmethod
    def _check_request_context(cls, value: str) -> str:
        if not value or not value.strip():
            raise InvalidArgumentError("request_context", "Request context cannot be empty.")
        return value.strip()

    @classmethod
    def record(
        cls,
        prompt: str,
        raw_response: str | None,
        request_context: str,
        model: str | None = None,
    ) -> "AIResponse":
        """pending 状態の監査レコードを生成する。

        上限を超える応答は切り詰め、metadata に元の長さを記録する。
        プロバイダ失敗時の応答は空文字として保存する。
        """
        raw = raw_response or ""
        metadata: dict[str, Any] = {}
        if len(raw) > MAX_RAW_RESPONSE_LENGTH:
            metadata = {"truncated": True, "original_length": len(raw)}
            raw = raw[:MAX_RAW_RESPONSE_LENGTH]
        return cls(
            prompt=prompt,
            raw_response=raw,
            request_context=request_context,
            model=model,
            metadata=metadata,
        )

    def _transition(self, status: AIResponseStatus) -> None:
        if status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStatusTransitionError(self.status, status)
        self.status = status
        self._touch()

    def mark_validated(self, validated_by: str) -> None:
        self._transition("validated")
        self.validated_at = utc_now()
        self.validated_by = validated_by
        self.validation_errors = None

    def mark_rejected(self, errors: str, rejected_by: str) -> None:
        self._transition("rejected")
        self.validated_at = utc_now()
        self.validated_by = rejected_by
        self.validation_errors = errors

    def mark_requires_review(self, reason: str) -> None:
        self._transition("requires_review")
        self.validation_errors = reason

    def set_processed_content(self, content: str) -> None:
        self.processed_content = content
        self._touch()

    def set_performance_metrics(self, token_count: int | None, response_time_ms: int | None) -> None:
        if token_count is not None:
            require_non_negative(token_count, "token_count", "Token count")
        if response_time_ms is not None:
            require_non_negative(response_time_ms, "response_time_ms", "Response time")
        self.token_count = token_count
        self.response_time_ms = response_time_ms
        self._touch()

    def is_usable(self) -> bool:
        return self.status == "validated" and bool(self.processed_content)

    def needs_attention(self) -> bool:
        return self.status in ("rejected", "requires_review")
