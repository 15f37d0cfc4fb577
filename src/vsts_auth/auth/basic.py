"""ユーザー名とパスワードによる認証。"""

from __future__ import annotations

from abc import ABC, abstractmethod
import getpass
import logging
from typing import Callable

from vsts_auth.auth.base import BaseAuthenticator, PromptBehavior, SecretRetriever
from vsts_auth.errors import InvalidInputException
from vsts_auth.secret import Credential
from vsts_auth.storage import InsecureInMemoryStore, SecretStore

logger = logging.getLogger(__name__)


class CredentialPrompt(ABC):
    """利用者に資格情報を尋ねる。"""

    @abstractmethod
    def prompt(self, target_uri: str) -> Credential | None:
        """入力された資格情報を返す。取り消された場合はNone。"""


class ConsoleCredentialPrompt(CredentialPrompt):
    """標準入力からユーザー名を、getpassでパスワードを読む。"""

    def __init__(
        self,
        input_func: Callable[[str], str] = input,
        password_func: Callable[[str], str] = getpass.getpass,
    ) -> None:
        self._input = input_func
        self._password = password_func

    def prompt(self, target_uri: str) -> Credential | None:
        try:
            username = self._input(f"Username for {target_uri}: ").strip()
            if not username:
                return None
            password = self._password(f"Password for {username}: ")
        except (EOFError, KeyboardInterrupt):
            logger.debug("Credential prompt cancelled for %s", target_uri)
            return None
        try:
            return Credential(username, password)
        except InvalidInputException as exc:
            logger.warning("入力された資格情報が不正です: %s", exc)
            return None


class BasicAuthAuthenticator(BaseAuthenticator[Credential]):
    """プロンプトで得た資格情報をストアにキャッシュする認証器。"""

    TYPE = "BasicAuth"

    def __init__(
        self,
        store: SecretStore[Credential] | None = None,
        prompter: CredentialPrompt | None = None,
    ) -> None:
        super().__init__(store if store is not None else InsecureInMemoryStore())
        self._prompter = prompter or ConsoleCredentialPrompt()

    @property
    def auth_type(self) -> str:
        return self.TYPE

    def is_credential_supported(self) -> bool:
        return True

    def get_credential(
        self,
        uri: str,
        prompt_behavior: PromptBehavior = PromptBehavior.AUTO,
    ) -> Credential | None:
        logger.debug("Retrieving credential for uri: %s with prompt behavior: %s.", uri, prompt_behavior.name)
        key = self.get_key(uri)

        def do_retrieve() -> Credential | None:
            logger.debug("Prompt user for credential for uri: %s", uri)
            return self._prompter.prompt(uri)

        return SecretRetriever(do_retrieve).retrieve(key, self.store, prompt_behavior)
