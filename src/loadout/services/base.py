"""サービス層の共通処理。"""

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from loadout.models.errors import LoadoutError
from loadout.models.result import OperationResult
from loadout.storage.service import StorageService

logger = logging.getLogger(__name__)


def service_operation(action: str) -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., Awaitable[OperationResult]]]:
    """サービスメソッドの戻り値を OperationResult に変換するデコレータ。

    LoadoutError はそのメッセージを持つ失敗に、それ以外の例外はログに記録した上で
    "Failed to <action>: <message>" の失敗に変換する。いずれの場合も未反映の
    変更は破棄する。asyncio.CancelledError は変更を破棄してから再送出する。
    メソッドが OperationResult を返した場合はそのまま返す。
    """

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[OperationResult]]:
        @functools.wraps(func)
        async def wrapper(self: "BaseService", *args: Any, **kwargs: Any) -> OperationResult:
            try:
                value = await func(self, *args, **kwargs)
            except asyncio.CancelledError:
                self._storage.discard_changes()
                raise
            except LoadoutError as e:
                self._storage.discard_changes()
                return OperationResult.failure(str(e))
            except Exception as e:
                self._storage.discard_changes()
                logger.exception("Failed to %s", action)
                return OperationResult.failure(f"Failed to {action}: {e}")
            if isinstance(value, OperationResult):
                return value
            return OperationResult.success(value)

        return wrapper

    return decorator


class BaseService:
    """ストレージを共有するサービスの基底クラス。"""

    def __init__(self, storage: StorageService) -> None:
        self._storage = storage
