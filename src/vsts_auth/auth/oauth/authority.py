"""Azure AD の OAuth 2.0 エンドポイントとの通信。"""

from __future__ import annotations

import logging
import time
from typing import Callable
import uuid

from vsts_auth.auth.base import PromptBehavior
from vsts_auth.auth.oauth.device_flow import AzureDeviceFlow, Clock, DeviceFlowCallback, Sleep
from vsts_auth.auth.oauth.user_agent import SystemBrowserUserAgent, UserAgent
from vsts_auth.errors import ErrorCode, InvalidInputException, VstsAuthException, create_input_error
from vsts_auth.helpers.http import HttpClientFactory, StringContent
from vsts_auth.helpers.uri import HOST_AZURE, is_well_formed_uri, serialize_parameters, split_authority
from vsts_auth.secret import NIL_UUID, Token, TokenPair

logger = logging.getLogger(__name__)

AUTHORITY_HOST_URL_BASE = "https://login.microsoftonline.com"
COMMON_TENANT = "common"
DEFAULT_AUTHORITY_HOST_URL = f"{AUTHORITY_HOST_URL_BASE}/{COMMON_TENANT}"

VSO_BASE_URL_HOST = "visualstudio.com"
VSS_RESOURCE_TENANT_HEADER = "X-VSS-ResourceTenant"

PROMPT_VALUES = {
    PromptBehavior.ALWAYS: "login",
    PromptBehavior.NEVER: "attempt_none",
}


def get_authority_url(tenant_id: uuid.UUID | str, base: str = AUTHORITY_HOST_URL_BASE) -> str:
    return f"{base.rstrip('/')}/{tenant_id}"


def detect_tenant_id(target_uri: str, http_client_factory: HttpClientFactory | None = None) -> uuid.UUID | None:
    """`X-VSS-ResourceTenant` ヘッダーから対象のテナントを調べる。

    visualstudio.com と azure.com 系のホストのみが対象。ヘッダーが無い、UUIDとして
    解釈できない、またはnil UUIDの場合はMSAアカウントとみなしてNoneを返す。
    """

    _, host, _ = split_authority(target_uri)
    lowered = host.lower()
    if not any(lowered == base or lowered.endswith("." + base) for base in (VSO_BASE_URL_HOST, HOST_AZURE)):
        logger.debug("tenant detection skipped for %s", host)
        return None

    client = (http_client_factory or HttpClientFactory()).create_http_client()
    try:
        tenant = client.get_header_field(target_uri, VSS_RESOURCE_TENANT_HEADER)
    except VstsAuthException as exc:
        logger.debug("tenant detection failed for %s: %s", target_uri, exc)
        return None

    if not tenant or not tenant.strip():
        return None
    try:
        tenant_id = uuid.UUID(tenant.strip())
    except ValueError:
        logger.debug("failed to parse tenant header: %s", tenant)
        return None
    return None if tenant_id == NIL_UUID else tenant_id


class AzureAuthority:
    """認可コードフロー、リフレッシュ、デバイスフローを実行する。

    認可コードフローとリフレッシュの失敗はNoneで返す。デバイスフローの終端エラーは
    呼び出し元に送出する。
    """

    def __init__(
        self,
        authority_host_url: str = DEFAULT_AUTHORITY_HOST_URL,
        user_agent: UserAgent | None = None,
        http_client_factory: HttpClientFactory | None = None,
        *,
        sleep: Sleep = time.sleep,
        clock: Clock = time.monotonic,
        state_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        """AzureAuthorityを初期化する。

        Args:
            authority_host_url: テナントを含む権限URL。
            user_agent: 認可コードを取得するユーザーエージェント。
            http_client_factory: HTTPクライアントの生成元。
            sleep: デバイスフローの待機関数。
            clock: デバイスフローの時計。
            state_factory: `state` パラメータの生成関数。
        """

        if not is_well_formed_uri(authority_host_url):
            raise InvalidInputException(
                create_input_error(
                    f"authority_host_url が不正です: {authority_host_url}",
                    ErrorCode.INPUT_MALFORMED_URI,
                )
            )
        self.authority_host_url = authority_host_url.rstrip("/")
        self._user_agent = user_agent
        self._http_client_factory = http_client_factory or HttpClientFactory()
        self._sleep = sleep
        self._clock = clock
        self._state_factory = state_factory

    @property
    def user_agent(self) -> UserAgent:
        if self._user_agent is None:
            self._user_agent = SystemBrowserUserAgent()
        return self._user_agent

    @property
    def token_endpoint(self) -> str:
        return f"{self.authority_host_url}/oauth2/token"

    @property
    def device_endpoint(self) -> str:
        return f"{self.authority_host_url}/oauth2/devicecode"

    def create_authorization_endpoint_uri(
        self,
        resource: str,
        client_id: str,
        redirect_uri: str,
        *,
        login_hint: str | None = None,
        state: str | None = None,
        prompt_behavior: PromptBehavior = PromptBehavior.AUTO,
        query_parameters: str | None = None,
    ) -> str:
        parameters: dict[str, str | None] = {
            "resource": resource,
            "client_id": client_id,
            "response_type": "code",
            "redirect_uri": redirect_uri,
        }
        if login_hint:
            parameters["login_hint"] = login_hint
        if state is not None:
            parameters["state"] = state
        prompt = PROMPT_VALUES.get(prompt_behavior)
        if prompt is not None:
            parameters["prompt"] = prompt

        uri = f"{self.authority_host_url}/oauth2/authorize?{serialize_parameters(parameters)}"
        if query_parameters and query_parameters.strip():
            uri += "&" + (query_parameters[1:] if query_parameters.startswith("&") else query_parameters)

        if not is_well_formed_uri(uri):
            raise InvalidInputException(
                create_input_error(f"認可URIを構築できません: {uri}", ErrorCode.INPUT_MALFORMED_URI)
            )
        return uri

    def create_token_request(
        self,
        resource: str,
        client_id: str,
        authorization_code: str,
        redirect_uri: str,
        correlation_id: uuid.UUID | None = None,
    ) -> StringContent:
        parameters: dict[str, str | None] = {
            "resource": resource,
            "client_id": client_id,
            "grant_type": "authorization_code",
            "code": authorization_code,
            "redirect_uri": redirect_uri,
        }
        if correlation_id is not None and correlation_id != NIL_UUID:
            parameters["correlation_id"] = str(correlation_id)
            parameters["return_client_request_id"] = "true"
        return StringContent.create_url_encoded(parameters)

    def acquire_token(
        self,
        client_id: str,
        resource: str,
        redirect_uri: str,
        query_parameters: str | None = None,
        correlation_id: uuid.UUID | None = None,
    ) -> TokenPair | None:
        """ユーザーエージェントで認可コードを取得し、トークンと交換する。

        Raises:
            AuthorizationException: ユーザーエージェントが認可エラーを返した場合。
        """

        self._require(client_id=client_id, resource=resource, redirect_uri=redirect_uri)
        logger.debug("AzureAuthority::acquire_token")

        authorization_code = self._acquire_authorization_code(resource, client_id, redirect_uri, query_parameters)
        if authorization_code is None:
            logger.debug("   token acquisition failed.")
            return None

        content = self.create_token_request(resource, client_id, authorization_code, redirect_uri, correlation_id)
        return self._post_for_token_pair(content)

    def _acquire_authorization_code(
        self,
        resource: str,
        client_id: str,
        redirect_uri: str,
        query_parameters: str | None,
    ) -> str | None:
        expected_state = self._state_factory()
        authorization_uri = self.create_authorization_endpoint_uri(
            resource,
            client_id,
            redirect_uri,
            state=expected_state,
            prompt_behavior=PromptBehavior.ALWAYS,
            query_parameters=query_parameters,
        )
        response = self.user_agent.request_authorization_code(authorization_uri, redirect_uri)
        if response.state != expected_state:
            logger.warning("authorization response state mismatch; ignoring authorization code")
            return None
        return response.code or None

    def acquire_token_by_refresh_token(
        self,
        client_id: str,
        resource: str,
        refresh_token: Token,
    ) -> TokenPair | None:
        """リフレッシュトークンで新しい組を取得する。

        応答にリフレッシュトークンが含まれない場合は、渡されたものを引き継ぐ。
        """

        self._require(client_id=client_id, resource=resource)
        logger.debug("AzureAuthority::acquire_token_by_refresh_token")
        content = StringContent.create_url_encoded(
            {
                "resource": resource,
                "client_id": client_id,
                "grant_type": "refresh_token",
                "refresh_token": refresh_token.value,
            }
        )
        token_pair = self._post_for_token_pair(content)
        if token_pair is not None and token_pair.refresh_token is None:
            token_pair = token_pair.with_refresh_token(refresh_token)
        return token_pair

    def acquire_token_with_device_flow(
        self,
        client_id: str,
        resource: str,
        redirect_uri: str | None,
        callback: DeviceFlowCallback,
    ) -> TokenPair:
        """デバイスフローでトークンを取得する。

        Raises:
            AuthorizationException: 中止、期限切れ、または認可エラーの場合。
            UpstreamException: エンドポイントがエラーを返した場合。
            TransportException: 通信に失敗した場合。
        """

        self._require(client_id=client_id, resource=resource)
        logger.debug("AzureAuthority::acquire_token_with_device_flow")
        device_flow = AzureDeviceFlow(
            self._http_client_factory,
            resource=resource,
            redirect_uri=redirect_uri,
            sleep=self._sleep,
            clock=self._clock,
        )
        response = device_flow.request_authorization(self.device_endpoint, client_id)
        callback(response)
        return device_flow.request_token(self.token_endpoint, client_id, response)

    def _post_for_token_pair(self, content: StringContent) -> TokenPair | None:
        client = self._http_client_factory.create_http_client()
        try:
            response_text = client.post_response_text(self.token_endpoint, content)
            token_pair = TokenPair.from_json(response_text)
        except VstsAuthException as exc:
            logger.debug("   token acquisition failed: %s", exc)
            return None
        logger.debug("   token acquisition succeeded.")
        return token_pair

    @staticmethod
    def _require(**values: str | None) -> None:
        for name, value in values.items():
            if not value or not value.strip():
                raise InvalidInputException(create_input_error(f"{name} が空です。"))

    def __repr__(self) -> str:
        return f"AzureAuthority({self.authority_host_url!r})"
