"""サービス層の戻り値。"""

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class OperationResult(BaseModel, Generic[T]):
    """成功/失敗と値またはエラーメッセージの組。

    業務ルール違反は例外ではなくこの型の失敗として呼び出し元へ返す。
    """

    is_success: bool
    value: T | None = None
    errors: list[str] = Field(default_factory=list)

    @classmethod
    def success(cls, value: T | None = None) -> "OperationResult[T]":
        return cls(is_success=True, value=value)

    @classmethod
    def failure(cls, *errors: str) -> "OperationResult[T]":
        return cls(is_success=False, errors=list(errors))

    @property
    def is_failure(self) -> bool:
        return not self.is_success

    @property
    def error_message(self) -> str:
        return "; ".join(self.errors)


class GenerationBatch(BaseModel, Generic[T]):
    """AI生成の結果。作成された項目と、スキップされた件数を保持する。"""

    items: list[T] = Field(default_factory=list)
    skipped_duplicates: int = 0
    skipped_invalid: int = 0
    ai_response_id: str
