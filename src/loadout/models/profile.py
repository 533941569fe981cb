"""プロジェクトプロファイル集約のデータモデル。"""

from collections.abc import Mapping
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from loadout.models.catalog import TechStack
from loadout.models.common import Entity, optional_text, require_text
from loadout.models.errors import (
    DuplicateReferenceError,
    InvalidArgumentError,
    InvalidValueError,
    MissingRequiredParameterError,
    NotFoundError,
)
from loadout.models.values import TypedValue


class ProfileTechStack(BaseModel):
    """プロファイルが所有する技術スタック参照とパラメータ値。

    ProjectProfile.add_tech_stack() からのみ生成される。parameter_values は
    読み取り専用のマッピングとして公開する。
    """

    model_config = ConfigDict(frozen=True)

    tech_stack_id: str
    parameter_values: Mapping[str, TypedValue] = Field(default_factory=dict, validate_default=True)

    @field_validator("parameter_values")
    @classmethod
    def _freeze_values(cls, value: Mapping[str, TypedValue]) -> Mapping[str, TypedValue]:
        return MappingProxyType(dict(value))

    @field_serializer("parameter_values")
    def _serialize_values(self, value: Mapping[str, TypedValue]) -> dict[str, TypedValue]:
        return dict(value)

    def get_value(self, parameter_name: str) -> TypedValue | None:
        key = parameter_name.casefold()
        return next((v for name, v in self.parameter_values.items() if name.casefold() == key), None)


def _resolve_values(tech_stack: TechStack, values: Mapping[str, str] | None) -> dict[str, TypedValue]:
    """入力値を技術スタックのパラメータ定義に照らして検証し、TypedValueに変換する。

    キーはパラメータ定義の正式名に正規化する。必須パラメータは値の指定が
    必要で、デフォルト値による補完は行わない。

    Raises:
        MissingRequiredParameterError: 必須パラメータの値がない場合。
        InvalidValueError: 未知のパラメータ名、または値が不正な場合。
    """
    values = values or {}
    resolved: dict[str, TypedValue] = {}
    for key, raw in values.items():
        parameter = tech_stack.get_parameter(key)
        if parameter is None:
            raise InvalidValueError(
                f"Tech stack '{tech_stack.name}' has no parameter named '{key}'.",
                parameter_name=key,
                value=raw,
            )
        resolved[parameter.name] = parameter.create_value(raw)
    for parameter in tech_stack.required_parameters():
        if parameter.name not in resolved:
            raise MissingRequiredParameterError(parameter.name, tech_stack.name)
    return resolved


class ProjectProfile(Entity):
    """プロジェクトプロファイル（集約ルート）。

    技術スタック・アーキテクチャパターン・エンジニアリングルールへの参照を
    保持し、重複参照の禁止と必須パラメータの充足を保証する。
    """

    name: str
    description: str
    project_name: str | None = None
    target_team_size: int | None = None
    tech_stacks: tuple[ProfileTechStack, ...] = ()
    architecture_pattern_ids: tuple[str, ...] = ()
    engineering_rule_ids: tuple[str, ...] = ()
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return require_text(value, "name", "Profile name", 200)

    @field_validator("description")
    @classmethod
    def _check_description(cls, value: str) -> str:
        return require_text(value, "description", "Profile description", 1000)

    @field_validator("project_name")
    @classmethod
    def _check_project_name(cls, value: str | None) -> str | None:
        return optional_text(value, "project_name", "Project name", 100)

    @field_validator("target_team_size")
    @classmethod
    def _check_target_team_size(cls, value: int | None) -> int | None:
        if value is not None and value <= 0:
            raise InvalidArgumentError("target_team_size", "Team size must be greater than 0.")
        return value

    @classmethod
    def create(cls, name: str, description: str) -> "ProjectProfile":
        return cls(name=name, description=description)

    def set_name(self, name: str) -> None:
        self.name = name
        self._touch()

    def set_description(self, description: str) -> None:
        self.description = description
        self._touch()

    def set_project_name(self, project_name: str | None) -> None:
        self.project_name = project_name
        self._touch()

    def set_target_team_size(self, team_size: int | None) -> None:
        self.target_team_size = team_size
        self._touch()

    def activate(self) -> None:
        self.is_active = True
        self._touch()

    def deactivate(self) -> None:
        self.is_active = False
        self._touch()

    # --- 技術スタック ---

    def references_tech_stack(self, tech_stack_id: str) -> bool:
        return any(entry.tech_stack_id == tech_stack_id for entry in self.tech_stacks)

    def get_tech_stack(self, tech_stack_id: str) -> ProfileTechStack | None:
        return next((entry for entry in self.tech_stacks if entry.tech_stack_id == tech_stack_id), None)

    def add_tech_stack(self, tech_stack: TechStack, values: Mapping[str, str] | None = None) -> ProfileTechStack:
        """技術スタックをパラメータ値付きでプロファイルに追加する。

        Args:
            tech_stack: 追加する技術スタック。パラメータ定義の参照に使う。
            values: パラメータ名から値文字列へのマッピング。

        Returns:
            追加されたプロファイル内の技術スタック。

        Raises:
            DuplicateReferenceError: 同じ技術スタックが既に追加されている場合。
            MissingRequiredParameterError: 必須パラメータの値がない場合。
            InvalidValueError: パラメータ値が不正な場合。
        """
        if self.references_tech_stack(tech_stack.id):
            raise DuplicateReferenceError("TechStack", tech_stack.id)
        entry = ProfileTechStack(
            tech_stack_id=tech_stack.id,
            parameter_values=_resolve_values(tech_stack, values),
        )
        self.tech_stacks = (*self.tech_stacks, entry)
        self._touch()
        return entry

    def update_tech_stack_parameters(self, tech_stack: TechStack, values: Mapping[str, str]) -> ProfileTechStack:
        """追加済み技術スタックのパラメータ値を置き換える。"""
        if not self.references_tech_stack(tech_stack.id):
            raise NotFoundError("TechStack", tech_stack.id)
        entry = ProfileTechStack(
            tech_stack_id=tech_stack.id,
            parameter_values=_resolve_values(tech_stack, values),
        )
        self.tech_stacks = tuple(
            entry if existing.tech_stack_id == tech_stack.id else existing for existing in self.tech_stacks
        )
        self._touch()
        return entry

    def remove_tech_stack(self, tech_stack_id: str) -> None:
        if not self.references_tech_stack(tech_stack_id):
            raise NotFoundError("TechStack", tech_stack_id)
        self.tech_stacks = tuple(e for e in self.tech_stacks if e.tech_stack_id != tech_stack_id)
        self._touch()

    # --- アーキテクチャパターン・ルール ---

    def add_architecture_pattern(self, pattern_id: str) -> None:
        if pattern_id in self.architecture_pattern_ids:
            raise DuplicateReferenceError("ArchitecturePattern", pattern_id)
        self.architecture_pattern_ids = (*self.architecture_pattern_ids, pattern_id)
        self._touch()

    def remove_architecture_pattern(self, pattern_id: str) -> None:
        if pattern_id not in self.architecture_pattern_ids:
            raise NotFoundError("ArchitecturePattern", pattern_id)
        self.architecture_pattern_ids = tuple(p for p in self.architecture_pattern_ids if p != pattern_id)
        self._touch()

    def add_engineering_rule(self, rule_id: str) -> None:
        if rule_id in self.engineering_rule_ids:
            raise DuplicateReferenceError("EngineeringRule", rule_id)
        self.engineering_rule_ids = (*self.engineering_rule_ids, rule_id)
        self._touch()

    def remove_engineering_rule(self, rule_id: str) -> None:
        if rule_id not in self.engineering_rule_ids:
            raise NotFoundError("EngineeringRule", rule_id)
        self.engineering_rule_ids = tuple(r for r in self.engineering_rule_ids if r != rule_id)
        self._touch()

    def clear_all_selections(self) -> None:
        self.tech_stacks = ()
        self.architecture_pattern_ids = ()
        self.engineering_rule_ids = ()
        self._touch()

    # --- 成果物生成の前提条件 ---

    def missing_requirements(self) -> list[str]:
        """成果物生成の前提条件のうち満たされていないものを返す。"""
        missing: list[str] = []
        if not self.tech_stacks:
            missing.append("tech stack")
        if not self.architecture_pattern_ids:
            missing.append("architecture pattern")
        if not self.project_name:
            missing.append("project name")
        return missing

    def is_valid(self) -> bool:
        return not self.missing_requirements()
