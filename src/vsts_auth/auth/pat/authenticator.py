"""Personal Access Token を取得する認証器。"""

from __future__ import annotations

import json
import logging
import re

from vsts_auth.auth.base import BaseAuthenticator, PromptBehavior, SecretRetriever
from vsts_auth.auth.oauth import APP_VSSPS_VISUALSTUDIO, OAuth2Authenticator, is_global_uri
from vsts_auth.auth.pat.vso_authority import VsoAzureAuthority
from vsts_auth.config import VstsAuthSettings
from vsts_auth.errors import ErrorCode, UpstreamException, VstsAuthException, create_upstream_error
from vsts_auth.helpers.http import HttpClient, HttpClientFactory
from vsts_auth.secret import Token, TokenPair, VsoTokenScope
from vsts_auth.storage import SecretStore

logger = logging.getLogger(__name__)

PROFILE_URL = "https://app.vssps.visualstudio.com/_apis/profile/profiles/me?api-version=1.0"
ACCOUNTS_URL_FORMAT = "https://app.vssps.visualstudio.com/_apis/Accounts?memberid={member_id}&api-version=1.0"
ACCOUNT_URL_FORMAT = "https://{account_name}.visualstudio.com/"

ID_PATTERN = re.compile(r'"id"\s*:\s*"([^"]+)"', re.IGNORECASE)


def parse_id_from_json(text: str) -> str | None:
    match = ID_PATTERN.search(text)
    return match.group(1) if match else None


def select_account_uri(accounts_json: str) -> str | None:
    """アカウント一覧から状態とURIを持つ最初のアカウントのURIを返す。"""

    try:
        account_list = json.loads(accounts_json)
    except json.JSONDecodeError:
        return None
    if not isinstance(account_list, dict):
        return None
    for account in account_list.get("value") or []:
        if not isinstance(account, dict):
            continue
        if account.get("accountStatus") is not None and account.get("accountUri") is not None:
            return ACCOUNT_URL_FORMAT.format(account_name=account.get("accountName"))
    return None


class VstsPatAuthenticator(BaseAuthenticator[Token]):
    """OAuth2 のアクセストークンからPATを発行し、ストアにキャッシュする。

    キャッシュ済みのPATは要求されたスコープと一致するかを確認せずに再利用する。
    """

    TYPE = "PersonalAccessToken"

    def __init__(
        self,
        oauth2_authenticator: OAuth2Authenticator,
        store: SecretStore[Token],
        vso_azure_authority: VsoAzureAuthority | None = None,
        http_client_factory: HttpClientFactory | None = None,
    ) -> None:
        super().__init__(store)
        self._oauth = oauth2_authenticator
        self._http_client_factory = http_client_factory or oauth2_authenticator.http_client_factory
        self._vso_azure_authority = vso_azure_authority or VsoAzureAuthority(
            http_client_factory=self._http_client_factory
        )

    @classmethod
    def create(
        cls,
        oauth_client_id: str,
        oauth_redirect_uri: str,
        oauth_token_store: SecretStore[TokenPair] | None,
        store: SecretStore[Token],
        settings: VstsAuthSettings | None = None,
    ) -> VstsPatAuthenticator:
        settings = settings or VstsAuthSettings()
        oauth = OAuth2Authenticator.get_authenticator(
            oauth_client_id, oauth_redirect_uri, oauth_token_store, settings=settings
        )
        return cls(oauth, store)

    @property
    def auth_type(self) -> str:
        return self.TYPE

    @property
    def oauth2_authenticator(self) -> OAuth2Authenticator:
        return self._oauth

    def is_personal_access_token_supported(self) -> bool:
        return True

    def get_personal_access_token(
        self,
        uri: str | None,
        token_scope: VsoTokenScope,
        display_name: str,
        prompt_behavior: PromptBehavior = PromptBehavior.AUTO,
        oauth2_token: TokenPair | None = None,
    ) -> Token | None:
        """PATを取得する。

        `uri` がNoneの場合はすべての組織で使えるグローバルPATを、
        `https://app.vssps.visualstudio.com` のキーで扱う。

        Args:
            uri: 対象の組織URI。
            token_scope: PATのスコープ。
            display_name: PATの表示名。
            prompt_behavior: ストアと対話的取得の使い分け。
            oauth2_token: 既に持っているOAuth2トークン。指定時は新たに取得しない。

        Returns:
            PAT。取得できなければNone。
        """

        if uri is None:
            logger.debug("Retrieving global Personal Access Token.")
            return self._get_token(
                APP_VSSPS_VISUALSTUDIO, True, token_scope, display_name, prompt_behavior, oauth2_token
            )
        logger.debug("Retrieving Personal Access Token for uri: %s", uri)
        return self._get_token(uri, False, token_scope, display_name, prompt_behavior, oauth2_token)

    def _get_token(
        self,
        uri: str,
        is_creating_global_pat: bool,
        token_scope: VsoTokenScope,
        display_name: str,
        prompt_behavior: PromptBehavior,
        oauth2_token: TokenPair | None,
    ) -> Token | None:
        logger.info(
            "Retrieving PersonalAccessToken for uri:%s with name:%s, and with scope:%s, prompt behavior: %s",
            uri,
            display_name,
            token_scope,
            prompt_behavior.name,
        )
        key = self.get_key(uri)

        def validate(token: Token) -> bool:
            client = self._http_client_factory.create_http_client()
            token.contribute_header(client.headers)
            try:
                client.get_response_text(uri.rstrip("/") + "/_apis/connectionData")
                valid = True
            except VstsAuthException as exc:
                logger.debug("Validation failed: %s", exc)
                valid = False
            logger.debug("Personal Access Token is %s.", "valid" if valid else "invalid")
            return valid

        def do_retrieve() -> Token | None:
            token_pair = oauth2_token or self._oauth.get_oauth2_token_pair(uri, PromptBehavior.AUTO)
            if token_pair is None:
                logger.debug("Failed to get an OAuth2 token, cannot generate PersonalAccessToken.")
                return None

            logger.debug("Got OAuth2 token, retrieving Personal Access Token with it.")
            account_specific_uri = self._create_account_specific_uri(uri, token_pair)
            return self._vso_azure_authority.generate_personal_access_token(
                account_specific_uri,
                token_pair.access_token,
                token_scope,
                True,
                is_creating_global_pat,
                display_name,
            )

        return SecretRetriever(do_retrieve, validate).retrieve(key, self.store, prompt_behavior)

    def _create_account_specific_uri(self, uri: str, token_pair: TokenPair) -> str:
        if not is_global_uri(uri):
            return uri

        logger.debug("Find an account level target url to generate Personal Access Token.")
        client = self._http_client_factory.create_http_client()
        token_pair.access_token.contribute_header(client.headers)
        profile_id = self._get_profile_id(client)
        account_uri = self._get_account_uri(client, profile_id)
        logger.debug("Found account: %s", account_uri)
        return account_uri

    @staticmethod
    def _get_profile_id(client: HttpClient) -> str:
        logger.debug("Getting user profile...")
        profile_id = parse_id_from_json(client.get_response_text(PROFILE_URL))
        if profile_id is None:
            raise UpstreamException(
                create_upstream_error("Failed to get profile id.", code=ErrorCode.UPSTREAM_MISSING_FIELD)
            )
        logger.debug("Profile id: %s", profile_id)
        return profile_id

    @staticmethod
    def _get_account_uri(client: HttpClient, profile_id: str) -> str:
        accounts_url = ACCOUNTS_URL_FORMAT.format(member_id=profile_id)
        logger.debug("Account API URL: %s", accounts_url)
        account_uri = select_account_uri(client.get_response_text(accounts_url))
        if account_uri is None:
            raise UpstreamException(
                create_upstream_error("Could not find any accounts.", code=ErrorCode.UPSTREAM_MISSING_FIELD)
            )
        return account_uri

    def sign_out(self, uri: str | None = None) -> bool:
        target = uri or APP_VSSPS_VISUALSTUDIO
        logger.info("Signing out from uri: %s", target)
        return super().sign_out(target) and self._oauth.sign_out()

    def assign_global_pat_to(self, uri: str) -> bool:
        """グローバルPATを指定URIのキーにも保存する。グローバルPATが無ければFalse。"""

        logger.debug("Assigning the global PAT to uri: %s", uri)
        global_key = self.get_key(APP_VSSPS_VISUALSTUDIO)
        with self.store.lock:
            token = self.store.get(global_key)
            if token is None:
                logger.debug("Could not find global PAT.")
                return False
            self.store.add(self.get_key(uri), token)
        logger.debug("Global PAT transferred to uri: %s", uri)
        return True
