"""AI生成の候補スキーマと、成果物生成に渡す解決済みプロファイルのデータモデル。"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from loadout.models.catalog import ArchitecturePattern, Category, EngineeringRule, TechStack
from loadout.models.common import utc_now
from loadout.models.profile import ProjectProfile
from loadout.models.values import ParameterType, TypedValue

# AI応答中の型名の表記ゆれを吸収する
PARAMETER_TYPE_ALIASES: dict[str, ParameterType] = {
    "text": "text",
    "string": "text",
    "number": "number",
    "integer": "number",
    "boolean": "boolean",
    "bool": "boolean",
    "choice": "choice",
    "enum": "choice",
    "version": "version",
}


def _stringify(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    return value


class Candidate(BaseModel):
    """AI応答の1要素。キーは大文字小文字・アンダースコアの有無を区別しない。"""

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        lookup = {name.replace("_", ""): name for name in cls.model_fields}
        normalized: dict[str, Any] = {}
        for key, value in data.items():
            field = lookup.get(str(key).replace("_", "").lower())
            if field is not None:
                normalized[field] = value
        return normalized


class CategoryCandidate(Candidate):
    name: str
    description: str | None = None


class ParameterCandidate(Candidate):
    name: str
    description: str | None = None
    parameter_type: str
    is_required: bool = False
    default_value: str | None = None
    allowed_values: list[str] = Field(default_factory=list)

    @field_validator("default_value", mode="before")
    @classmethod
    def _default_to_text(cls, value: Any) -> Any:
        return _stringify(value)

    @field_validator("allowed_values", mode="before")
    @classmethod
    def _allowed_to_text(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [_stringify(v) for v in value]
        return value

    @property
    def resolved_type(self) -> ParameterType | None:
        return PARAMETER_TYPE_ALIASES.get(self.parameter_type.strip().lower())


class TechStackCandidate(Candidate):
    name: str
    description: str | None = None
    default_version: str | None = None
    documentation_url: str | None = None
    parameters: list[ParameterCandidate] = Field(default_factory=list)

    @field_validator("default_version", mode="before")
    @classmethod
    def _version_to_text(cls, value: Any) -> Any:
        return _stringify(value)

    @field_validator("parameters", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class ResolvedTechStack(BaseModel):
    """参照を解決した技術スタックとパラメータ値。"""

    tech_stack: TechStack
    category: Category | None = None
    parameter_values: dict[str, TypedValue] = Field(default_factory=dict)


class ResolvedProfile(BaseModel):
    """テンプレート描画に渡す、全参照を解決済みのプロファイル。"""

    profile: ProjectProfile
    tech_stacks: list[ResolvedTechStack] = Field(default_factory=list)
    architecture_patterns: list[ArchitecturePattern] = Field(default_factory=list)
    engineering_rules: list[EngineeringRule] = Field(default_factory=list)


ArtifactFileType = Literal["markdown", "yaml", "json"]


class GeneratedArtifact(BaseModel):
    """生成された成果物ファイル。"""

    file_name: str
    content: str
    file_type: ArtifactFileType
    generated_at: datetime = Field(default_factory=utc_now)
