"""シークレットストアの共通インターフェース。"""

from __future__ import annotations

from abc import ABC, abstractmethod
import threading
from typing import Generic, TypeVar

from vsts_auth.secret import Secret

E = TypeVar("E", bound=Secret)


class SecretStore(ABC, Generic[E]):
    """キーで識別されるシークレットの保存先。

    `lock` はインスタンスごとの再入可能ロックで、取得・保存・削除を直列化するために使う。
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()

    @abstractmethod
    def get(self, key: str) -> E | None:
        """キーに対応するシークレットを返す。存在しなければNone。"""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """キーに対応するシークレットを削除する。存在しないキーでもTrueを返す。"""

    @abstractmethod
    def add(self, key: str, secret: E) -> bool:
        """シークレットを保存する。既存の値は置き換える。成功時にTrue。"""
