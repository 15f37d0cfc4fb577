"""Team Services の session token エンドポイントでPATを発行する。"""

from __future__ import annotations

import json
import logging
import re
import uuid

from vsts_auth.auth.oauth.authority import AzureAuthority
from vsts_auth.errors import (
    ErrorCode,
    InvalidInputException,
    UpstreamException,
    VstsAuthException,
    create_input_error,
    create_upstream_error,
)
from vsts_auth.helpers.http import HttpClient, StringContent
from vsts_auth.helpers.uri import get_full_account, require_absolute_uri
from vsts_auth.secret import Token, TokenType, VsoTokenScope

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15.0
ALL_ACCOUNTS = "all_accounts"

LOCATION_SERVICE_URL_FORMAT = (
    "https://{host}/_apis/ServiceDefinitions/LocationService2/"
    "951917AC-A960-4999-8464-E3F0AA25B381?api-version=1.0"
)
CONNECTION_DATA_URL_FORMAT = "https://{host}/_apis/connectiondata"
SESSION_TOKEN_URL = "_apis/token/sessiontokens?api-version=1.0"
COMPACT_TOKEN_URL = SESSION_TOKEN_URL + "&tokentype=compact"


def _json_string_pattern(name: str) -> re.Pattern[str]:
    return re.compile(rf'"{name}"\s*:\s*"([^"]+)"', re.IGNORECASE)


TOKEN_PATTERN = _json_string_pattern("token")
INSTANCE_ID_PATTERN = _json_string_pattern("instanceId")
LOCATION_PATTERN = _json_string_pattern("location")


def _find(pattern: re.Pattern[str], text: str | None) -> str | None:
    if not text or not text.strip():
        return None
    match = pattern.search(text)
    return match.group(1) if match else None


def parse_personal_access_token(text: str | None) -> Token | None:
    value = _find(TOKEN_PATTERN, text)
    return Token(value, TokenType.PERSONAL) if value else None


def parse_instance_id(text: str | None) -> str | None:
    return _find(INSTANCE_ID_PATTERN, text)


def parse_location(text: str | None) -> str | None:
    return _find(LOCATION_PATTERN, text)


class VsoAzureAuthority(AzureAuthority):
    """アクセストークンを使ってPATを発行する AzureAuthority。"""

    def generate_personal_access_token(
        self,
        target_uri: str,
        access_token: Token,
        token_scope: VsoTokenScope,
        require_compact_token: bool,
        should_create_global_token: bool,
        display_name: str,
    ) -> Token | None:
        """PATを発行する。

        グローバルでない場合は接続データから組織のIDを取得してアクセストークンに紐付け、
        取得できなければ発行しない。

        Args:
            target_uri: 対象の組織URI。
            access_token: OAuth2 のアクセストークン。
            token_scope: PATのスコープ。
            require_compact_token: compact 形式を要求するか。
            should_create_global_token: すべての組織で使えるPATにするか。
            display_name: PATの表示名。

        Returns:
            発行されたPAT。組織を特定できない場合、または応答に含まれない場合はNone。

        Raises:
            UpstreamException: エンドポイントがエラーを返した、または identity service が見つからない場合。
            TransportException: 通信に失敗した場合。
        """

        require_absolute_uri(target_uri)
        if access_token.type not in (TokenType.ACCESS, TokenType.FEDERATED):
            raise InvalidInputException(create_input_error("アクセストークンの種別が不正です。"))
        logger.debug("VsoAzureAuthority::generate_personal_access_token")

        client = self._http_client_factory.create_http_client()
        access_token.contribute_header(client.headers)

        if not should_create_global_token and not self.populate_token_target_id(target_uri, access_token):
            return None

        request_url = self._create_personal_access_token_request_uri(client, target_uri, require_compact_token)
        content = self._get_access_token_request_body(
            access_token, token_scope, should_create_global_token, display_name
        )
        token = parse_personal_access_token(client.post_response_text(request_url, content))
        if token is not None:
            logger.debug("   personal access token acquisition succeeded.")
        return token

    def populate_token_target_id(self, target_uri: str, access_token: Token) -> bool:
        """接続データの `instanceId` をアクセストークンの紐付け先に設定する。"""

        logger.debug("VsoAzureAuthority::populate_token_target_id")
        client = self._http_client_factory.create_http_client()
        access_token.contribute_header(client.headers)
        request_uri = CONNECTION_DATA_URL_FORMAT.format(host=get_full_account(target_uri))

        result_id = None
        try:
            result_id = parse_instance_id(client.get_response_text(request_uri, REQUEST_TIMEOUT))
        except VstsAuthException as exc:
            logger.debug("   server returned %s", exc)

        if not result_id:
            return False
        try:
            instance_id = uuid.UUID(result_id)
        except ValueError:
            return False
        logger.debug("   target identity is %s", instance_id)
        access_token.target_identity = instance_id
        return True

    def _create_personal_access_token_request_uri(
        self,
        client: HttpClient,
        target_uri: str,
        require_compact_token: bool,
    ) -> str:
        identity_service_uri = self._get_identity_service_uri(client, target_uri)
        if identity_service_uri is None:
            raise UpstreamException(
                create_upstream_error(
                    f"Failed to find Identity Service for {target_uri}",
                    code=ErrorCode.UPSTREAM_MISSING_FIELD,
                )
            )
        if not identity_service_uri.endswith("/"):
            identity_service_uri += "/"
        return identity_service_uri + (COMPACT_TOKEN_URL if require_compact_token else SESSION_TOKEN_URL)

    def _get_identity_service_uri(self, client: HttpClient, target_uri: str) -> str | None:
        location_service_url = LOCATION_SERVICE_URL_FORMAT.format(host=get_full_account(target_uri))
        identity_service_uri = parse_location(client.get_response_text(location_service_url))
        if identity_service_uri is not None:
            logger.debug("   parsed identity service url: %s", identity_service_uri)
        return identity_service_uri

    @staticmethod
    def _get_access_token_request_body(
        access_token: Token,
        token_scope: VsoTokenScope,
        should_create_global_token: bool,
        display_name: str,
    ) -> StringContent:
        target_identity = ALL_ACCOUNTS if should_create_global_token else str(access_token.target_identity)
        logger.debug("   creating access token scoped to '%s' for '%s'", token_scope, target_identity)
        payload = {
            "scope": token_scope.serialize(),
            "targetAccounts": [target_identity],
            "displayName": display_name,
        }
        return StringContent.create_json(json.dumps(payload, ensure_ascii=False, separators=(",", ":")))
