"""任意の認証器から Basic 認証用の資格情報を作る。"""

from __future__ import annotations

import logging

from vsts_auth.auth.base import Authenticator, PromptBehavior
from vsts_auth.provider.options import Options
from vsts_auth.secret import Credential

logger = logging.getLogger(__name__)


class UserPasswordCredentialProvider:
    """OAuth2 トークンやPATを、ユーザー名とパスワードの組として取り出す。

    トークン系の認証器ではユーザー名に認証種別、パスワードにトークンの値を使う。
    """

    def __init__(self, authenticator: Authenticator) -> None:
        self._authenticator = authenticator

    def get_credential(
        self,
        prompt_behavior: PromptBehavior = PromptBehavior.AUTO,
        options: Options | None = None,
    ) -> Credential | None:
        """組織を問わず使える資格情報を返す。"""

        options = options or Options.get_default_options()
        username = self._authenticator.auth_type
        password = None
        logger.info("Getting credential that works across multiple accounts. (OAuth2 token or PersonalAccessToken)")

        if self._authenticator.is_oauth2_token_supported():
            logger.info("Getting credential from OAuth2 token.")
            token_pair = self._authenticator.get_oauth2_token_pair(None, prompt_behavior)
            if token_pair is not None:
                password = token_pair.access_token.value
        elif self._authenticator.is_personal_access_token_supported():
            logger.info("Getting credential from PersonalAccessToken.")
            pat_options = options.pat_generation_options
            token = self._authenticator.get_personal_access_token(
                None, pat_options.token_scope, pat_options.display_name, prompt_behavior
            )
            if token is not None:
                password = token.value

        return self._create_credential(username, password)

    def get_credential_for(
        self,
        uri: str,
        prompt_behavior: PromptBehavior = PromptBehavior.AUTO,
        options: Options | None = None,
    ) -> Credential | None:
        """指定URIで使える資格情報を返す。"""

        options = options or Options.get_default_options()
        username = None
        password = None
        logger.info("Getting credential that works for uri: %s", uri)

        if self._authenticator.is_credential_supported():
            logger.info("Getting credential based on Basic Auth")
            credential = self._authenticator.get_credential(uri, prompt_behavior)
            if credential is not None:
                username, password = credential.username, credential.password
        elif self._authenticator.is_oauth2_token_supported():
            logger.info("Getting credential based on OAuth2 token")
            token_pair = self._authenticator.get_oauth2_token_pair(None, prompt_behavior)
            if token_pair is not None:
                username = self._authenticator.auth_type
                password = token_pair.access_token.value
        elif self._authenticator.is_personal_access_token_supported():
            logger.info("Getting credential based on PersonalAccessToken")
            pat_options = options.pat_generation_options
            token = self._authenticator.get_personal_access_token(
                uri, pat_options.token_scope, pat_options.display_name, prompt_behavior
            )
            if token is not None:
                username = self._authenticator.auth_type
                password = token.value

        return self._create_credential(username, password)

    @staticmethod
    def _create_credential(username: str | None, password: str | None) -> Credential | None:
        logger.info("Username exist? %s, password exists? %s", username is not None, password is not None)
        if username is None or password is None:
            return None
        return Credential(username, password)
