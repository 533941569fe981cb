"""loadoutのカスタム例外クラス。

いずれも ValueError を継承しないため、pydanticのバリデータ内で送出しても
ValidationError にラップされずにそのまま呼び出し元へ伝播する。
"""


class LoadoutError(Exception):
    """loadoutの基底例外クラス。"""


class InvalidArgumentError(LoadoutError):
    """生成時・更新時の入力値が不正な場合の例外（空文字、長さ超過など）。"""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class InvalidValueError(LoadoutError):
    """型付き値・パラメータ値のバリデーションに失敗した場合の例外。"""

    def __init__(self, message: str, parameter_name: str | None = None, value: str | None = None) -> None:
        if parameter_name:
            message = f"Invalid value for parameter '{parameter_name}': {message}"
        super().__init__(message)
        self.parameter_name = parameter_name
        self.value = value


class InvalidOperationError(LoadoutError):
    """現在の状態では許可されない操作の例外。"""


class DuplicateNameError(LoadoutError):
    """名前の一意性制約に違反した場合の例外。"""

    def __init__(self, entity_type: str, name: str) -> None:
        super().__init__(f"A {entity_type} with the name '{name}' already exists.")
        self.entity_type = entity_type
        self.name = name


class DuplicateReferenceError(LoadoutError):
    """プロファイルに同じ参照を二重に追加しようとした場合の例外。"""

    def __init__(self, entity_type: str, reference_id: str) -> None:
        super().__init__(f"{entity_type} with ID '{reference_id}' is already added to this profile.")
        self.entity_type = entity_type
        self.reference_id = reference_id


class MissingRequiredParameterError(LoadoutError):
    """必須パラメータの値が指定されていない場合の例外。"""

    def __init__(self, parameter_name: str, tech_stack_name: str) -> None:
        super().__init__(f"Required parameter '{parameter_name}' is missing for tech stack '{tech_stack_name}'.")
        self.parameter_name = parameter_name
        self.tech_stack_name = tech_stack_name


class NotFoundError(LoadoutError):
    """参照先のエンティティが見つからない場合の例外。"""

    def __init__(self, entity_type: str, entity_id: str) -> None:
        super().__init__(f"{entity_type} with ID '{entity_id}' not found.")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ReferentialIntegrityError(LoadoutError):
    """参照が残っているため削除できない場合の例外。"""

    def __init__(self, entity_type: str, name: str, reason: str) -> None:
        super().__init__(f"Cannot delete {entity_type} '{name}' because {reason}.")
        self.entity_type = entity_type
        self.name = name


class ProfileIncompleteError(LoadoutError):
    """プロファイルが成果物生成の前提条件を満たしていない場合の例外。"""

    def __init__(self, profile_name: str, missing: list[str]) -> None:
        super().__init__(f"Project profile '{profile_name}' is incomplete: missing {', '.join(missing)}.")
        self.profile_name = profile_name
        self.missing = missing


class InvalidStatusTransitionError(LoadoutError):
    """監査レコードのステータス遷移が許可されない場合の例外。"""

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"AI response status cannot change from '{current}' to '{requested}'.")
        self.current = current
        self.requested = requested


class ProviderFailureError(LoadoutError):
    """AIプロバイダ呼び出しの失敗。"""

    def __init__(self, provider: str, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.provider = provider
        self.retryable = retryable


class ProviderTimeoutError(ProviderFailureError):
    """AIプロバイダ呼び出しのタイムアウト（リトライ対象）。"""

    def __init__(self, provider: str, timeout_seconds: float) -> None:
        super().__init__(provider, f"Request to {provider} timed out after {timeout_seconds}s.", retryable=True)
        self.timeout_seconds = timeout_seconds


class ProviderRateLimitError(ProviderFailureError):
    """AIプロバイダのレート制限（リトライ対象）。"""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(provider, message, retryable=True)


class ProviderConnectionError(ProviderFailureError):
    """AIプロバイダへの接続失敗（リトライ対象）。"""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(provider, message, retryable=True)


class ProviderResponseError(ProviderFailureError):
    """AIプロバイダの応答が不正な場合の例外。"""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(provider, message, retryable=False)


class ParseFailureError(LoadoutError):
    """AI応答が期待するスキーマに一致しない場合の例外。"""

    def __init__(self, request_context: str, reason: str) -> None:
        super().__init__(f"Failed to parse AI response for '{request_context}': {reason}")
        self.request_context = request_context
        self.reason = reason


class StorageError(LoadoutError):
    """ストレージ操作のエラー。"""
