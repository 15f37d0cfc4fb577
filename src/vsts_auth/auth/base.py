"""認証器の共通基盤。

ストアの読み出し、検証、更新、取得、保存の順に進むシークレット取得の状態遷移と、
各認証器が共通で実装すべきインターフェースを定義する。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
import logging
from typing import Callable, Generic, TypeVar

from vsts_auth.errors import VstsAuthException
from vsts_auth.secret import (
    DEFAULT_URI_NAME_CONVERSION,
    Credential,
    Secret,
    Token,
    TokenPair,
    UriNameConversion,
    VsoTokenScope,
)
from vsts_auth.storage import SecretStore

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=Secret)


class PromptBehavior(Enum):
    """ストアの値と対話的な取得の使い分け。"""

    AUTO = "auto"
    ALWAYS = "always"
    NEVER = "never"


class SecretRetriever(Generic[S]):
    """キャッシュを考慮してシークレットを取得する。

    - ALWAYS: ストアを読まずに取得する。
    - NEVER: ストアの値をそのまま返し、ストアは変更しない。
    - AUTO: ストアの値を検証し、無効なら更新を試み、それでも駄目なら取得する。

    取得に成功した値はストアに保存される。
    """

    def __init__(
        self,
        do_retrieve: Callable[[], S | None],
        validate: Callable[[S], bool] | None = None,
        refresh: Callable[[S], S | None] | None = None,
    ) -> None:
        """SecretRetrieverを初期化する。

        Args:
            do_retrieve: ストアに有効な値が無い場合に呼ぶ取得処理。
            validate: ストアの値を検証する。省略時は常に有効とみなす。
            refresh: 検証に失敗した値から新しい値を得る。
        """

        self._do_retrieve = do_retrieve
        self._validate = validate
        self._refresh = refresh

    def read_from_store(self, key: str, store: SecretStore[S]) -> S | None:
        with store.lock:
            return store.get(key)

    def store(self, key: str, store: SecretStore[S], secret: S | None) -> None:
        if secret is None:
            return
        logger.debug("Storing secret for key: %s", key)
        with store.lock:
            store.add(key, secret)

    def try_get_validated(self, secret: S) -> tuple[bool, S | None]:
        """保存済みの値を検証し、必要なら更新する。

        Returns:
            (有効かどうか, 更新後の値)。更新していなければ値はNone。
        """

        if self._validate is None or self._validate(secret):
            return True, None
        if self._refresh is not None:
            renewed = self._refresh(secret)
            if renewed is not None:
                return True, renewed
        return False, None

    def retrieve(self, key: str, store: SecretStore[S], prompt_behavior: PromptBehavior) -> S | None:
        logger.debug("Retrieving secret with key: %s, and prompt behavior: %s.", key, prompt_behavior.name)

        secret: S | None = None
        if prompt_behavior is not PromptBehavior.ALWAYS:
            logger.debug("Reading secret from store for key: %s", key)
            secret = self.read_from_store(key, store)

        if prompt_behavior is PromptBehavior.NEVER:
            logger.debug("Returning whatever we retrieved from the store, do not prompt.")
            return secret

        if secret is not None:
            valid, renewed = self.try_get_validated(secret)
            if valid:
                if renewed is not None:
                    self.store(key, store, renewed)
                    return renewed
                return secret

        logger.debug("Retrieving secret.")
        try:
            secret = self._do_retrieve()
        except VstsAuthException as exc:
            logger.log(exc.log_level, "Failed to retrieve secret for key %s: %s", key, exc)
            secret = None
        self.store(key, store, secret)
        return secret


class Authenticator(ABC):
    """認証方式ごとのシークレット取得の窓口。

    対応しない種類のシークレットを要求された場合は例外ではなくNoneを返す。
    """

    @property
    @abstractmethod
    def auth_type(self) -> str:
        """`BasicAuth`、`OAuth2`、`PersonalAccessToken` のいずれか。"""

    @property
    @abstractmethod
    def uri_to_key_conversion(self) -> UriNameConversion:
        ...

    @abstractmethod
    def is_credential_supported(self) -> bool:
        ...

    @abstractmethod
    def is_oauth2_token_supported(self) -> bool:
        ...

    @abstractmethod
    def is_personal_access_token_supported(self) -> bool:
        ...

    def get_credential(
        self,
        uri: str,
        prompt_behavior: PromptBehavior = PromptBehavior.AUTO,
    ) -> Credential | None:
        return None

    def get_oauth2_token_pair(
        self,
        uri: str | None = None,
        prompt_behavior: PromptBehavior = PromptBehavior.AUTO,
    ) -> TokenPair | None:
        return None

    def get_personal_access_token(
        self,
        uri: str | None,
        token_scope: VsoTokenScope,
        display_name: str,
        prompt_behavior: PromptBehavior = PromptBehavior.AUTO,
        oauth2_token: TokenPair | None = None,
    ) -> Token | None:
        return None

    @abstractmethod
    def sign_out(self, uri: str | None = None) -> bool:
        """保存済みのシークレットを削除する。"""


class BaseAuthenticator(Authenticator, Generic[S]):
    """ストアを一つ持つ認証器の共通実装。"""

    def __init__(self, store: SecretStore[S]) -> None:
        self._store = store
        self._uri_to_key_conversion: UriNameConversion = DEFAULT_URI_NAME_CONVERSION

    @property
    def store(self) -> SecretStore[S]:
        return self._store

    @property
    def uri_to_key_conversion(self) -> UriNameConversion:
        return self._uri_to_key_conversion

    @uri_to_key_conversion.setter
    def uri_to_key_conversion(self, conversion: UriNameConversion) -> None:
        self._uri_to_key_conversion = conversion

    def is_credential_supported(self) -> bool:
        return False

    def is_oauth2_token_supported(self) -> bool:
        return False

    def is_personal_access_token_supported(self) -> bool:
        return False

    def get_key(self, target_uri: str) -> str:
        logger.debug("Getting secret for uri: %s", target_uri)
        return self._uri_to_key_conversion(target_uri, self.auth_type)

    def sign_out(self, uri: str | None = None) -> bool:
        if uri is None:
            return False
        logger.debug("Signing out from uri: %s", uri)
        key = self.get_key(uri)
        with self._store.lock:
            logger.debug("Deleting secret for %s", key)
            return self._store.delete(key)
