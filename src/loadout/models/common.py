"""エンティティ共通の基底モデルと入力検証ヘルパー。"""

import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from loadout.models.errors import InvalidArgumentError


def utc_now() -> datetime:
    return datetime.now(UTC)


def new_id() -> str:
    return str(uuid.uuid4())


def require_text(value: str | None, field: str, label: str, max_length: int) -> str:
    """必須文字列を検証し、前後の空白を除去して返す。

    Raises:
        InvalidArgumentError: 空文字、または最大長を超える場合。
    """
    if value is None or not value.strip():
        raise InvalidArgumentError(field, f"{label} cannot be empty.")
    value = value.strip()
    if len(value) > max_length:
        raise InvalidArgumentError(field, f"{label} cannot exceed {max_length} characters.")
    return value


def optional_text(value: str | None, field: str, label: str, max_length: int) -> str | None:
    """任意文字列を検証する。空文字はNoneとして扱う。"""
    if value is None or not value.strip():
        return None
    return require_text(value, field, label, max_length)


def require_non_negative(value: int, field: str, label: str) -> int:
    if value < 0:
        raise InvalidArgumentError(field, f"{label} cannot be negative.")
    return value


class Entity(BaseModel):
    """カタログ・プロファイル・監査レコードの基底モデル。

    フィールドへの代入は常にバリデーションされる。更新は各エンティティの
    メソッド経由で行い、メソッドは updated_at を更新する。
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=new_id)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def _touch(self) -> None:
        self.updated_at = utc_now()


class ActivatableEntity(Entity):
    """有効/無効を切り替えられるカタログエンティティ。"""

    is_active: bool = True
    is_ai_generated: bool = False

    def activate(self) -> None:
        self.is_active = True
        self._touch()

    def deactivate(self) -> None:
        """論理削除する。既存の参照はそのまま残る。"""
        self.is_active = False
        self._touch()
