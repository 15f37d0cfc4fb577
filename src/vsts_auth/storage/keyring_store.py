"""OSのキーチェーン（keyring）にシークレットを保存するストア。"""

from __future__ import annotations

import json
import logging
import warnings

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from vsts_auth.secret import secret_from_dict
from vsts_auth.storage.base import E, SecretStore

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_NAME = "vsts-auth"


class KeyringSecretStore(SecretStore[E]):
    """keyring を使うシークレットストア。

    シークレットはJSONに変換して保存する。keyringが使えない場合は警告を出し、
    フォールバックのストアに切り替える。フォールバックが無い場合は取得でNone、
    保存と削除でFalseを返す。
    """

    def __init__(
        self,
        service_name: str = DEFAULT_SERVICE_NAME,
        fallback: SecretStore[E] | None = None,
    ) -> None:
        """KeyringSecretStoreを初期化する。

        Args:
            service_name: keyringに保存する際のサービス名。
            fallback: keyringが使えない場合の保存先。
        """

        super().__init__()
        self._service_name = service_name
        self._fallback = fallback
        self._use_keyring = True

    def get(self, key: str) -> E | None:
        with self.lock:
            if self._use_keyring:
                try:
                    stored = keyring.get_password(self._service_name, key)
                except KeyringError as exc:
                    self._switch_to_fallback(exc)
                else:
                    return self._decode(key, stored)

            if self._fallback is not None:
                return self._fallback.get(key)
            return None

    def add(self, key: str, secret: E) -> bool:
        with self.lock:
            if self._use_keyring:
                try:
                    keyring.set_password(self._service_name, key, json.dumps(secret.to_dict(), ensure_ascii=False))
                    return True
                except KeyringError as exc:
                    self._switch_to_fallback(exc)

            if self._fallback is not None:
                return self._fallback.add(key, secret)
            return False

    def delete(self, key: str) -> bool:
        with self.lock:
            if self._use_keyring:
                try:
                    keyring.delete_password(self._service_name, key)
                    return True
                except PasswordDeleteError:
                    # 存在しないキーの削除は成功扱い
                    return True
                except KeyringError as exc:
                    self._switch_to_fallback(exc)

            if self._fallback is not None:
                return self._fallback.delete(key)
            return False

    def _decode(self, key: str, stored: str | None) -> E | None:
        if stored is None:
            return None
        try:
            return secret_from_dict(json.loads(stored))  # type: ignore[return-value]
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("keyringの値を復元できません (key=%s): %s", key, exc)
            return None

    def _switch_to_fallback(self, exc: Exception) -> None:
        logger.error("keyring が利用できません: %s", exc)
        if self._fallback is None:
            return
        if self._use_keyring:
            warnings.warn(
                "keyringが利用できないため、ローカルファイルに保存します。",
                RuntimeWarning,
                stacklevel=3,
            )
            self._use_keyring = False
