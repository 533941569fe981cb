"""カタログ（カテゴリ・技術スタック・アーキテクチャパターン・エンジニアリングルール）のデータモデル。"""

from collections.abc import Iterable
from typing import Literal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, field_validator

from loadout.models.common import (
    ActivatableEntity,
    Entity,
    optional_text,
    require_non_negative,
    require_text,
)
from loadout.models.errors import (
    DuplicateNameError,
    InvalidArgumentError,
    InvalidOperationError,
    InvalidValueError,
    NotFoundError,
)
from loadout.models.values import (
    ParameterType,
    StackVersion,
    TypedValue,
    parse_boolean,
    parse_number,
)

RuleSeverity = Literal["info", "warning", "error", "critical"]
RuleScope = Literal["global", "backend", "frontend", "database", "testing", "security", "devops"]

_SEVERITY_RANK: dict[str, int] = {"info": 1, "warning": 2, "error": 3, "critical": 4}


class Category(ActivatableEntity):
    """技術スタックを分類する上位カテゴリ（Backend、Frontend、Databaseなど）。"""

    name: str
    description: str
    display_order: int = 0

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return require_text(value, "name", "Category name", 100)

    @field_validator("description")
    @classmethod
    def _check_description(cls, value: str) -> str:
        return require_text(value, "description", "Category description", 500)

    @field_validator("display_order")
    @classmethod
    def _check_display_order(cls, value: int) -> int:
        return require_non_negative(value, "display_order", "Display order")

    @classmethod
    def create(cls, name: str, description: str, is_ai_generated: bool = False) -> "Category":
        return cls(name=name, description=description, is_ai_generated=is_ai_generated)

    def set_name(self, name: str) -> None:
        self.name = name
        self._touch()

    def set_description(self, description: str) -> None:
        self.description = description
        self._touch()

    def set_display_order(self, order: int) -> None:
        self.display_order = order
        self._touch()


class ParameterDefinition(Entity):
    """技術スタックの設定パラメータ定義（Version、Port、Environmentなど）。

    所属する TechStack の外では存在しない。
    """

    name: str
    description: str
    parameter_type: ParameterType
    is_required: bool = False
    default_value: str | None = None
    allowed_values: tuple[str, ...] = ()
    display_order: int = 0

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return require_text(value, "name", "Parameter name", 100)

    @field_validator("description")
    @classmethod
    def _check_description(cls, value: str) -> str:
        return require_text(value, "description", "Parameter description", 500)

    @field_validator("display_order")
    @classmethod
    def _check_display_order(cls, value: int) -> int:
        return require_non_negative(value, "display_order", "Display order")

    @classmethod
    def create(
        cls,
        name: str,
        description: str,
        parameter_type: ParameterType,
        *,
        is_required: bool = False,
        default_value: str | None = None,
        allowed_values: Iterable[str] | None = None,
        display_order: int = 0,
    ) -> "ParameterDefinition":
        """パラメータ定義を生成する。

        choice型は allowed_values を必須とし、それ以外の型では指定できない。

        Raises:
            InvalidArgumentError: 名前・説明が不正、またはchoice型で選択肢がない場合。
            InvalidOperationError: choice型以外で選択肢を指定した場合。
            InvalidValueError: デフォルト値が型に合わない場合。
        """
        parameter = cls(
            name=name,
            description=description,
            parameter_type=parameter_type,
            is_required=is_required,
            display_order=display_order,
        )
        values = list(allowed_values or [])
        if values:
            parameter.set_allowed_values(values)
        elif parameter_type == "choice":
            raise InvalidArgumentError("allowed_values", "Choice parameters must have at least one allowed value.")
        if default_value is not None:
            parameter.set_default_value(default_value)
        return parameter

    def set_name(self, name: str) -> None:
        self.name = name
        self._touch()

    def set_description(self, description: str) -> None:
        self.description = description
        self._touch()

    def set_required(self, is_required: bool) -> None:
        self.is_required = is_required
        self._touch()

    def set_display_order(self, order: int) -> None:
        self.display_order = order
        self._touch()

    def set_default_value(self, value: str | None) -> None:
        if value is not None:
            self.validate(value)
        self.default_value = value
        self._touch()

    def set_allowed_values(self, values: Iterable[str]) -> None:
        """choice型の選択肢を設定する。空白除去・重複除去した順序付き集合として保持する。"""
        if self.parameter_type != "choice":
            raise InvalidOperationError("Allowed values can only be set for choice parameters.")
        cleaned: list[str] = []
        for value in values:
            stripped = value.strip() if value else ""
            if stripped and stripped not in cleaned:
                cleaned.append(stripped)
        if not cleaned:
            raise InvalidArgumentError("allowed_values", "Choice parameters must have at least one allowed value.")
        self.allowed_values = tuple(cleaned)
        self._touch()

    def validate(self, candidate: str) -> None:
        """候補値をこのパラメータの型・制約に照らして検証する。

        Raises:
            InvalidValueError: 値が空、または型・選択肢に合わない場合。
        """
        if candidate is None or not candidate.strip():
            raise InvalidValueError("Value cannot be empty.", parameter_name=self.name, value=candidate)
        try:
            if self.parameter_type == "boolean":
                parse_boolean(candidate)
            elif self.parameter_type == "number":
                parse_number(candidate)
            elif self.parameter_type == "version":
                StackVersion.parse(candidate)
            elif self.parameter_type == "choice":
                allowed = {value.casefold() for value in self.allowed_values}
                if candidate.casefold() not in allowed:
                    raise InvalidValueError(f"'{candidate}' is not in the list of allowed values.", value=candidate)
        except InvalidValueError as e:
            raise InvalidValueError(str(e), parameter_name=self.name, value=candidate) from None

    def create_value(self, candidate: str) -> TypedValue:
        """候補値を検証し、型に対応する TypedValue を返す。"""
        self.validate(candidate)
        return TypedValue.create(self.parameter_type, candidate)


class TechStack(ActivatableEntity):
    """カテゴリに属する具体的な技術スタック（FastAPI、PostgreSQL、Reactなど）。

    パラメータ定義を所有し、パラメータの追加・削除は必ずこのクラス経由で行う。
    """

    category_id: str
    name: str
    description: str
    default_version: str | None = None
    documentation_url: str | None = None
    tags: str | None = None
    parameters: tuple[ParameterDefinition, ...] = ()

    @field_validator("category_id")
    @classmethod
    def _check_category_id(cls, value: str) -> str:
        return require_text(value, "category_id", "Category ID", 100)

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return require_text(value, "name", "Tech stack name", 200)

    @field_validator("description")
    @classmethod
    def _check_description(cls, value: str) -> str:
        return require_text(value, "description", "Tech stack description", 1000)

    @field_validator("default_version")
    @classmethod
    def _check_default_version(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return StackVersion.parse(value).value

    @field_validator("documentation_url")
    @classmethod
    def _check_documentation_url(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        parsed = urlparse(value.strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InvalidArgumentError("documentation_url", "Invalid URL format.")
        return value.strip()

    @field_validator("tags")
    @classmethod
    def _check_tags(cls, value: str | None) -> str | None:
        return optional_text(value, "tags", "Tags", 200)

    @field_validator("parameters")
    @classmethod
    def _check_unique_parameters(cls, value: tuple[ParameterDefinition, ...]) -> tuple[ParameterDefinition, ...]:
        seen: set[str] = set()
        for parameter in value:
            key = parameter.name.casefold()
            if key in seen:
                raise DuplicateNameError("parameter", parameter.name)
            seen.add(key)
        return value

    @classmethod
    def create(
        cls,
        category_id: str,
        name: str,
        description: str,
        is_ai_generated: bool = False,
    ) -> "TechStack":
        return cls(category_id=category_id, name=name, description=description, is_ai_generated=is_ai_generated)

    def set_name(self, name: str) -> None:
        self.name = name
        self._touch()

    def set_description(self, description: str) -> None:
        self.description = description
        self._touch()

    def set_default_version(self, version: str | None) -> None:
        self.default_version = version
        self._touch()

    def set_documentation_url(self, url: str | None) -> None:
        self.documentation_url = url
        self._touch()

    def set_tags(self, tags: str | None) -> None:
        self.tags = tags
        self._touch()

    def change_category(self, category_id: str) -> None:
        self.category_id = category_id
        self._touch()

    def add_parameter(self, parameter: ParameterDefinition) -> None:
        """パラメータ定義を追加する。

        Raises:
            DuplicateNameError: 同名（大文字小文字を区別しない）のパラメータが既にある場合。
        """
        if self.get_parameter(parameter.name) is not None:
            raise DuplicateNameError("parameter", parameter.name)
        self.parameters = (*self.parameters, parameter)
        self._touch()

    def remove_parameter(self, parameter_id: str) -> None:
        remaining = tuple(p for p in self.parameters if p.id != parameter_id)
        if len(remaining) == len(self.parameters):
            raise NotFoundError("Parameter", parameter_id)
        self.parameters = remaining
        self._touch()

    def rename_parameter(self, parameter_id: str, name: str) -> ParameterDefinition:
        """パラメータ定義の名前を変更する。

        保持中の定義は書き換えず、名前を変えた複製で置き換える。

        Raises:
            NotFoundError: 指定IDのパラメータがない場合。
            DuplicateNameError: 他のパラメータと名前が重複する場合。
        """
        current = next((p for p in self.parameters if p.id == parameter_id), None)
        if current is None:
            raise NotFoundError("Parameter", parameter_id)
        other = self.get_parameter(name.strip())
        if other is not None and other.id != parameter_id:
            raise DuplicateNameError("parameter", name.strip())
        renamed = current.model_copy()
        renamed.set_name(name)
        self.parameters = tuple(renamed if p.id == parameter_id else p for p in self.parameters)
        self._touch()
        return renamed

    def get_parameter(self, name: str) -> ParameterDefinition | None:
        key = name.casefold()
        return next((p for p in self.parameters if p.name.casefold() == key), None)

    def required_parameters(self) -> list[ParameterDefinition]:
        return [p for p in self.parameters if p.is_required]

    @property
    def version(self) -> StackVersion | None:
        return StackVersion.parse(self.default_version) if self.default_version else None


class ArchitecturePattern(ActivatableEntity):
    """アーキテクチャパターン（Monolith、Microservices、Hexagonalなど）。"""

    name: str
    description: str
    guidelines: str
    complexity_level: int = 3
    suitable_for_small_teams: bool = False
    suitable_for_large_scale: bool = False
    key_principles: str | None = None
    anti_patterns: str | None = None

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return require_text(value, "name", "Architecture pattern name", 100)

    @field_validator("description")
    @classmethod
    def _check_description(cls, value: str) -> str:
        return require_text(value, "description", "Architecture pattern description", 1000)

    @field_validator("guidelines")
    @classmethod
    def _check_guidelines(cls, value: str) -> str:
        return require_text(value, "guidelines", "Architecture guidelines", 2000)

    @field_validator("complexity_level")
    @classmethod
    def _check_complexity_level(cls, value: int) -> int:
        if not 1 <= value <= 5:
            raise InvalidArgumentError("complexity_level", "Complexity level must be between 1 and 5.")
        return value

    @field_validator("key_principles")
    @classmethod
    def _check_key_principles(cls, value: str | None) -> str | None:
        return optional_text(value, "key_principles", "Key principles", 500)

    @field_validator("anti_patterns")
    @classmethod
    def _check_anti_patterns(cls, value: str | None) -> str | None:
        return optional_text(value, "anti_patterns", "Anti-patterns", 500)

    @classmethod
    def create(
        cls,
        name: str,
        description: str,
        guidelines: str,
        complexity_level: int = 3,
        is_ai_generated: bool = False,
    ) -> "ArchitecturePattern":
        return cls(
            name=name,
            description=description,
            guidelines=guidelines,
            complexity_level=complexity_level,
            is_ai_generated=is_ai_generated,
        )

    def set_name(self, name: str) -> None:
        self.name = name
        self._touch()

    def set_description(self, description: str) -> None:
        self.description = description
        self._touch()

    def set_guidelines(self, guidelines: str) -> None:
        self.guidelines = guidelines
        self._touch()

    def set_complexity_level(self, level: int) -> None:
        self.complexity_level = level
        self._touch()

    def set_team_size_suitability(self, suitable_for_small_teams: bool, suitable_for_large_scale: bool) -> None:
        self.suitable_for_small_teams = suitable_for_small_teams
        self.suitable_for_large_scale = suitable_for_large_scale
        self._touch()

    def set_key_principles(self, principles: str | None) -> None:
        self.key_principles = principles
        self._touch()

    def set_anti_patterns(self, anti_patterns: str | None) -> None:
        self.anti_patterns = anti_patterns
        self._touch()

    def is_suitable_for_team_size(self, team_size: int) -> bool:
        if team_size <= 5:
            return self.suitable_for_small_teams
        if team_size > 20:
            return self.suitable_for_large_scale
        return True


class RuleConstraint(BaseModel):
    """エンジニアリングルールの重大度と適用範囲。"""

    model_config = ConfigDict(frozen=True)

    severity: RuleSeverity
    scope: RuleScope

    def is_more_restrictive_than(self, other: "RuleConstraint") -> bool:
        return _SEVERITY_RANK[self.severity] > _SEVERITY_RANK[other.severity]

    def applies_to(self, scope: RuleScope) -> bool:
        """globalスコープのルールは全スコープに適用される。"""
        return self.scope == "global" or self.scope == scope

    def __str__(self) -> str:
        return f"{self.severity} - {self.scope}"


class EngineeringRule(ActivatableEntity):
    """横断的なエンジニアリング規約（テスト必須、動的SQL禁止など）。"""

    name: str
    description: str
    rationale: str
    constraint: RuleConstraint
    implementation_guidance: str | None = None
    common_violations: str | None = None
    example_code: str | None = None
    tags: str | None = None
    is_enforced: bool = True

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return require_text(value, "name", "Engineering rule name", 200)

    @field_validator("description")
    @classmethod
    def _check_description(cls, value: str) -> str:
        return require_text(value, "description", "Engineering rule description", 1000)

    @field_validator("rationale")
    @classmethod
    def _check_rationale(cls, value: str) -> str:
        return require_text(value, "rationale", "Engineering rule rationale", 1000)

    @field_validator("implementation_guidance")
    @classmethod
    def _check_implementation_guidance(cls, value: str | None) -> str | None:
        return optional_text(value, "implementation_guidance", "Implementation guidance", 1000)

    @field_validator("common_violations")
    @classmethod
    def _check_common_violations(cls, value: str | None) -> str | None:
        return optional_text(value, "common_violations", "Common violations", 1000)

    @field_validator("example_code")
    @classmethod
    def _check_example_code(cls, value: str | None) -> str | None:
        return optional_text(value, "example_code", "Example code", 5000)

    @field_validator("tags")
    @classmethod
    def _check_tags(cls, value: str | None) -> str | None:
        return optional_text(value, "tags", "Tags", 200)

    @classmethod
    def create(
        cls,
        name: str,
        description: str,
        rationale: str,
        constraint: RuleConstraint,
        is_ai_generated: bool = False,
    ) -> "EngineeringRule":
        return cls(
            name=name,
            description=description,
            rationale=rationale,
            constraint=constraint,
            is_ai_generated=is_ai_generated,
        )

    def set_name(self, name: str) -> None:
        self.name = name
        self._touch()

    def set_description(self, description: str) -> None:
        self.description = description
        self._touch()

    def set_rationale(self, rationale: str) -> None:
        self.rationale = rationale
        self._touch()

    def set_constraint(self, constraint: RuleConstraint) -> None:
        self.constraint = constraint
        self._touch()

    def set_implementation_guidance(self, guidance: str | None) -> None:
        self.implementation_guidance = guidance
        self._touch()

    def set_common_violations(self, violations: str | None) -> None:
        self.common_violations = violations
        self._touch()

    def set_example_code(self, example_code: str | None) -> None:
        self.example_code = example_code
        self._touch()

    def set_tags(self, tags: str | None) -> None:
        self.tags = tags
        self._touch()

    def set_enforced(self, is_enforced: bool) -> None:
        self.is_enforced = is_enforced
        self._touch()

    def is_more_restrictive_than(self, other: "EngineeringRule") -> bool:
        return self.constraint.is_more_restrictive_than(other.constraint)

    def conflicts_with(self, other: "EngineeringRule") -> bool:
        """同名で制約が異なるルール同士は競合とみなす。"""
        return (
            self.id != other.id
            and self.name.casefold() == other.name.casefold()
            and self.constraint != other.constraint
        )


class CategorySummary(BaseModel):
    """カテゴリと所属する技術スタック数。"""

    category: Category
    tech_stack_count: int = 0
