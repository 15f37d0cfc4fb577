"""Azure AD の OAuth2 トークンを取得する認証器。"""

from __future__ import annotations

import logging
import time

from vsts_auth.auth.base import BaseAuthenticator, PromptBehavior, SecretRetriever
from vsts_auth.auth.oauth.authority import AzureAuthority
from vsts_auth.auth.oauth.authority_provider import APP_VSSPS_VISUALSTUDIO, AzureAuthorityProvider
from vsts_auth.auth.oauth.device_flow import Clock, DeviceFlowCallback, Sleep
from vsts_auth.auth.oauth.swt_loader import SwtJarLoader
from vsts_auth.auth.oauth.user_agent import (
    OAuth2UseragentValidator,
    SwtProvider,
    SystemBrowserProvider,
)
from vsts_auth.config import VstsAuthSettings
from vsts_auth.errors import (
    AuthorizationException,
    InvalidInputException,
    TransportException,
    VstsAuthException,
    create_input_error,
)
from vsts_auth.helpers.http import HttpClientFactory
from vsts_auth.secret import Token, TokenPair
from vsts_auth.storage import InsecureInMemoryStore, SecretStore

logger = logging.getLogger(__name__)

POPUP_QUERY_PARAM = "display=popup"
MANAGEMENT_CORE_RESOURCE = "https://management.core.windows.net/"
VSTS_RESOURCE = "499b84ac-1321-427f-aa17-267ca6975798"
VALIDATION_ENDPOINT = APP_VSSPS_VISUALSTUDIO + "/_apis/connectionData"


def create_useragent_validator(settings: VstsAuthSettings, swt_loader: SwtJarLoader) -> OAuth2UseragentValidator:
    providers = {
        SystemBrowserProvider.name: SystemBrowserProvider(),
        SwtProvider.name: SwtProvider(swt_loader.target, settings.swt_browser_options),
    }
    return OAuth2UseragentValidator(settings.user_agent_provider, providers)


class OAuth2Authenticator(BaseAuthenticator[TokenPair]):
    """OAuth2 のトークンの組を取得し、ストアにキャッシュする。

    トークンはアカウントによらず `https://app.vssps.visualstudio.com` のキーで保存する。
    取得は設定されたユーザーエージェント、デバイスフローの順に試みる。
    """

    TYPE = "OAuth2"
    POPUP_QUERY_PARAM = POPUP_QUERY_PARAM
    APP_VSSPS_VISUALSTUDIO = APP_VSSPS_VISUALSTUDIO
    MANAGEMENT_CORE_RESOURCE = MANAGEMENT_CORE_RESOURCE
    VSTS_RESOURCE = VSTS_RESOURCE
    VALIDATION_ENDPOINT = VALIDATION_ENDPOINT

    def __init__(
        self,
        resource: str,
        client_id: str,
        redirect_uri: str,
        store: SecretStore[TokenPair] | None = None,
        useragent_validator: OAuth2UseragentValidator | None = None,
        device_flow_callback: DeviceFlowCallback | None = None,
        *,
        settings: VstsAuthSettings | None = None,
        http_client_factory: HttpClientFactory | None = None,
        authority_provider: AzureAuthorityProvider | None = None,
        swt_loader: SwtJarLoader | None = None,
    ) -> None:
        """OAuth2Authenticatorを初期化する。

        Args:
            resource: 要求するリソース。
            client_id: クライアントID。
            redirect_uri: リダイレクトURI。
            store: トークンの保存先。省略時はメモリ上のストア。
            useragent_validator: ユーザーエージェントの利用可否の判定。
            device_flow_callback: デバイスフローのユーザーコードを通知する関数。
            settings: 設定。省略時は既定値。
            http_client_factory: HTTPクライアントの生成元。
            authority_provider: 対象URIに応じた AzureAuthority の生成元。
            swt_loader: SWTランタイムのダウンロード。
        """

        logger.debug("Using default SecretStore? %s", store is None)
        super().__init__(store if store is not None else InsecureInMemoryStore())
        self.resource = resource
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.device_flow_callback = device_flow_callback
        self._settings = settings or VstsAuthSettings()
        self._http_client_factory = http_client_factory or HttpClientFactory.from_settings(self._settings)
        self._swt_loader = swt_loader or SwtJarLoader(http_client_factory=self._http_client_factory)
        self._validator = useragent_validator or create_useragent_validator(self._settings, self._swt_loader)
        self._authority_provider = authority_provider or AzureAuthorityProvider(
            self._settings.authority_host,
            self._validator.create_user_agent(),
            self._http_client_factory,
        )

    @classmethod
    def get_authenticator(
        cls,
        client_id: str,
        redirect_uri: str,
        store: SecretStore[TokenPair] | None = None,
        device_flow_callback: DeviceFlowCallback | None = None,
        settings: VstsAuthSettings | None = None,
    ) -> OAuth2Authenticator:
        logger.debug("Authenticator manages resource: %s", MANAGEMENT_CORE_RESOURCE)
        builder = (
            OAuth2AuthenticatorBuilder()
            .manage(MANAGEMENT_CORE_RESOURCE)
            .with_client_id(client_id)
            .redirect_to(redirect_uri)
            .with_device_flow_callback(device_flow_callback)
        )
        if store is not None:
            builder.backed_by(store)
        if settings is not None:
            builder.with_settings(settings)
        return builder.build()

    @property
    def auth_type(self) -> str:
        return self.TYPE

    @property
    def http_client_factory(self) -> HttpClientFactory:
        return self._http_client_factory

    def is_oauth2_token_supported(self) -> bool:
        return True

    def get_azure_authority(self, uri: str) -> AzureAuthority:
        return self._authority_provider.get_azure_authority(uri)

    def get_oauth2_token_pair(
        self,
        uri: str | None = None,
        prompt_behavior: PromptBehavior = PromptBehavior.AUTO,
    ) -> TokenPair | None:
        target_uri = uri or APP_VSSPS_VISUALSTUDIO
        logger.debug("Retrieving OAuth2 TokenPair with prompt behavior: %s", prompt_behavior.name)
        key = self.get_key(APP_VSSPS_VISUALSTUDIO)

        def validate(token_pair: TokenPair) -> bool:
            logger.debug("Validating stored OAuth2 Access Token...")
            valid = self._validate_access_token(token_pair.access_token)
            logger.debug("OAuth2 Access Token is %s.", "valid" if valid else "invalid")
            return valid

        def refresh(token_pair: TokenPair) -> TokenPair | None:
            if token_pair.refresh_token is None:
                return None
            logger.debug("OAuth2 Access Token is not valid, and we have a refresh token, try refreshing...")
            renewed = self.get_azure_authority(target_uri).acquire_token_by_refresh_token(
                self.client_id, self.resource, token_pair.refresh_token
            )
            if renewed is None or renewed.refresh_token is None:
                return None
            logger.debug("OAuth2 Access Token refreshed successfully.")
            return renewed

        def do_retrieve() -> TokenPair | None:
            return self._acquire(target_uri)

        retriever = SecretRetriever(do_retrieve, validate, refresh)
        return retriever.retrieve(key, self.store, prompt_behavior)

    def _validate_access_token(self, access_token: Token) -> bool:
        client = self._http_client_factory.create_http_client()
        access_token.contribute_header(client.headers)
        try:
            return client.get_status(VALIDATION_ENDPOINT) == 200
        except TransportException as exc:
            logger.debug("Validation failed with transport error: %s", exc)
        return False

    def _acquire(self, uri: str) -> TokenPair | None:
        logger.debug("Ready to launch browser flow to retrieve oauth2 token.")
        provider_name = self._settings.user_agent_provider

        use_user_agent = False
        if provider_name == SwtProvider.name and self._validator.is_only_missing_runtime_from_swt_provider():
            logger.debug("Prefer SWT Browser, download SWT Runtime if it is not available.")
            use_user_agent = self._swt_loader.try_get_swt_jar() is not None
        if not use_user_agent and provider_name != "none":
            use_user_agent = self._validator.is_oauth2_provider_available()

        if use_user_agent:
            try:
                logger.info("Using user agent provider %s to retrieve AAD token.", provider_name)
                return self.get_azure_authority(uri).acquire_token(
                    self.client_id, self.resource, self.redirect_uri, POPUP_QUERY_PARAM
                )
            except AuthorizationException as exc:
                logger.error("Failed to launch user agent: %s", exc)
                # 起動自体に失敗した場合のみデバイスフローに進む
                if exc.oauth_code.lower() != "unknown_error":
                    return None

        if self.device_flow_callback is not None:
            logger.info("Fallback to Device Flow.")
            try:
                return self.get_azure_authority(uri).acquire_token_with_device_flow(
                    self.client_id, self.resource, self.redirect_uri, self.device_flow_callback
                )
            except VstsAuthException as exc:
                logger.log(exc.log_level, "Failed to use the Device Flow authenticator: %s", exc)
        return None

    def sign_out(self, uri: str | None = None) -> bool:
        return super().sign_out(APP_VSSPS_VISUALSTUDIO)


class OAuth2AuthenticatorBuilder:
    """OAuth2Authenticator を段階的に構築する。"""

    def __init__(self) -> None:
        self._resource: str | None = None
        self._client_id: str | None = None
        self._redirect_uri: str | None = None
        self._store: SecretStore[TokenPair] | None = None
        self._device_flow_callback: DeviceFlowCallback | None = None
        self._settings: VstsAuthSettings | None = None
        self._http_client_factory: HttpClientFactory | None = None
        self._sleep: Sleep = time.sleep
        self._clock: Clock = time.monotonic

    def manage(self, resource: str) -> OAuth2AuthenticatorBuilder:
        self._resource = resource
        return self

    def with_client_id(self, client_id: str) -> OAuth2AuthenticatorBuilder:
        self._client_id = str(client_id)
        return self

    def redirect_to(self, redirect_uri: str) -> OAuth2AuthenticatorBuilder:
        self._redirect_uri = redirect_uri
        return self

    def backed_by(self, store: SecretStore[TokenPair]) -> OAuth2AuthenticatorBuilder:
        self._store = store
        return self

    def with_device_flow_callback(self, callback: DeviceFlowCallback | None) -> OAuth2AuthenticatorBuilder:
        self._device_flow_callback = callback
        return self

    def with_settings(self, settings: VstsAuthSettings) -> OAuth2AuthenticatorBuilder:
        self._settings = settings
        return self

    def with_http_client_factory(self, factory: HttpClientFactory) -> OAuth2AuthenticatorBuilder:
        self._http_client_factory = factory
        return self

    def with_polling(self, sleep: Sleep, clock: Clock = time.monotonic) -> OAuth2AuthenticatorBuilder:
        self._sleep = sleep
        self._clock = clock
        return self

    def build(self) -> OAuth2Authenticator:
        """設定内容から認証器を生成する。

        Raises:
            InvalidInputException: クライアントID、リソース、リダイレクトURIのいずれかが未設定の場合。
        """

        if self._client_id is None:
            raise InvalidInputException(create_input_error("ClientId not set"))
        if self._resource is None:
            raise InvalidInputException(create_input_error("resource not set"))
        if self._redirect_uri is None:
            raise InvalidInputException(create_input_error("redirectUri not set"))

        settings = self._settings or VstsAuthSettings()
        factory = self._http_client_factory or HttpClientFactory.from_settings(settings)
        swt_loader = SwtJarLoader(http_client_factory=factory)
        validator = create_useragent_validator(settings, swt_loader)
        authority_provider = AzureAuthorityProvider(
            settings.authority_host,
            validator.create_user_agent(),
            factory,
            sleep=self._sleep,
            clock=self._clock,
        )
        return OAuth2Authenticator(
            self._resource,
            self._client_id,
            self._redirect_uri,
            self._store,
            validator,
            self._device_flow_callback,
            settings=settings,
            http_client_factory=factory,
            authority_provider=authority_provider,
            swt_loader=swt_loader,
        )
