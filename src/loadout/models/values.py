"""パラメータ値の型システム。

TypedValue は型タグと文字列表現のペアで、生成時に型に応じた検証を行う。
"""

from collections.abc import Callable
from decimal import Decimal, InvalidOperation
from typing import Literal

from pydantic import BaseModel, ConfigDict, model_validator

from loadout.models.errors import InvalidOperationError, InvalidValueError

ParameterType = Literal["text", "number", "boolean", "choice", "version"]

PARAMETER_TYPES: tuple[ParameterType, ...] = ("text", "number", "boolean", "choice", "version")


def parse_boolean(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized == "true":
        return True
    if normalized == "false":
        return False
    raise InvalidValueError(f"'{value}' is not a valid boolean value.", value=value)


def parse_number(value: str) -> Decimal:
    try:
        number = Decimal(value.strip())
    except InvalidOperation:
        raise InvalidValueError(f"'{value}' is not a valid number.", value=value) from None
    if not number.is_finite():
        raise InvalidValueError(f"'{value}' is not a valid number.", value=value)
    return number


class StackVersion(BaseModel):
    """技術スタックのバージョン。

    "8.0"、"3.11.0"、"2024.1" のような形式を想定し、major.minor.patch として解釈する。
    数値として読めない要素は0とみなす。
    """

    model_config = ConfigDict(frozen=True)

    value: str

    @model_validator(mode="after")
    def _check_format(self) -> "StackVersion":
        text = self.value.strip()
        # 先頭が数字、または区切り文字を含むこと
        if not text or (not text[0].isdigit() and "." not in text):
            raise InvalidValueError(
                f"'{self.value}' is not a valid version (e.g., 8.0, 3.11.0).",
                value=self.value,
            )
        return self

    @classmethod
    def parse(cls, value: str) -> "StackVersion":
        return cls(value=value.strip())

    def _part(self, index: int) -> int:
        parts = self.value.split(".")
        if index >= len(parts):
            return 0
        return int(parts[index]) if parts[index].isdigit() else 0

    @property
    def major(self) -> int:
        return self._part(0)

    @property
    def minor(self) -> int:
        return self._part(1)

    @property
    def patch(self) -> int:
        return self._part(2)

    def is_compatible_with(self, other: "StackVersion") -> bool:
        """メジャーバージョンが一致すれば互換とみなす。"""
        return self.major == other.major

    def is_newer_than(self, other: "StackVersion") -> bool:
        return (self.major, self.minor, self.patch) > (other.major, other.minor, other.patch)

    def __str__(self) -> str:
        return self.value


def _require_present(value: str) -> str:
    if not value.strip():
        raise InvalidValueError("Value cannot be empty.", value=value)
    return value


_VALIDATORS: dict[str, Callable[[str], object]] = {
    "text": _require_present,
    "number": parse_number,
    "boolean": parse_boolean,
    "choice": _require_present,
    "version": StackVersion.parse,
}


class TypedValue(BaseModel):
    """型タグ付きの不変なパラメータ値。

    等価性とハッシュは (type, raw_value) で決まる。raw_value は入力文字列を
    そのまま保持し、型間の暗黙変換は行わない。
    """

    model_config = ConfigDict(frozen=True)

    type: ParameterType
    raw_value: str

    @model_validator(mode="after")
    def _check_payload(self) -> "TypedValue":
        _VALIDATORS[self.type](self.raw_value)
        return self

    @classmethod
    def create(cls, parameter_type: ParameterType, value: str) -> "TypedValue":
        """型タグに応じたファクトリで値を生成する。

        Raises:
            InvalidValueError: 値が型として解釈できない場合。
        """
        if value is None:
            raise InvalidValueError("Value cannot be empty.")
        return cls(type=parameter_type, raw_value=value)

    @classmethod
    def for_text(cls, value: str) -> "TypedValue":
        return cls.create("text", value)

    @classmethod
    def for_number(cls, value: str) -> "TypedValue":
        return cls.create("number", value)

    @classmethod
    def for_boolean(cls, value: str) -> "TypedValue":
        return cls.create("boolean", value)

    @classmethod
    def for_choice(cls, value: str) -> "TypedValue":
        return cls.create("choice", value)

    @classmethod
    def for_version(cls, value: str) -> "TypedValue":
        return cls.create("version", value)

    def as_bool(self) -> bool:
        if self.type != "boolean":
            raise InvalidOperationError(f"Cannot read a {self.type} value as boolean.")
        return parse_boolean(self.raw_value)

    def as_number(self) -> Decimal:
        if self.type != "number":
            raise InvalidOperationError(f"Cannot read a {self.type} value as number.")
        return parse_number(self.raw_value)

    def as_version(self) -> StackVersion:
        if self.type != "version":
            raise InvalidOperationError(f"Cannot read a {self.type} value as version.")
        return StackVersion.parse(self.raw_value)

    def __str__(self) -> str:
        return f"{self.type}: {self.raw_value}"
