"""OAuth 2.0 デバイスフロー。

デバイスコードを取得し、利用者が別端末で認可を終えるまでトークンエンドポイントを
ポーリングする。ポーリング間隔は `slow_down` のたびに倍になり、有効期限を過ぎると
`code_expired` で終了する。
"""

from __future__ import annotations

from enum import Enum
import json
import logging
import threading
import time
from typing import Any, Callable

from vsts_auth.errors import (
    AuthorizationException,
    ErrorCode,
    UpstreamException,
    create_authorization_error,
    create_upstream_error,
)
from vsts_auth.helpers.http import HttpClientFactory, StringContent
from vsts_auth.secret import TokenPair

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 600
DEFAULT_INTERVAL = 5

ERROR_AUTHORIZATION_PENDING = "authorization_pending"
ERROR_SLOW_DOWN = "slow_down"
UNKNOWN_ERROR = "unknown_error"

Clock = Callable[[], float]
Sleep = Callable[[float], None]


class DeviceFlowState(Enum):
    WAITING_FOR_USER = "waiting_for_user"
    CANCEL_REQUESTED = "cancel_requested"
    TOKEN_ACQUIRED = "token_acquired"


def _read_json(text: str | None) -> dict[str, Any]:
    if not text:
        return {}
    try:
        bag = json.loads(text)
    except json.JSONDecodeError:
        return {}
    return bag if isinstance(bag, dict) else {}


def _read_int(bag: dict[str, Any], name: str, default: int) -> int:
    value = bag.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class DeviceFlowResponse:
    """デバイス認可エンドポイントの応答とポーリングの状態。

    状態は WAITING_FOR_USER から CANCEL_REQUESTED または TOKEN_ACQUIRED に一度だけ遷移する。
    """

    def __init__(
        self,
        device_code: str,
        user_code: str,
        verification_uri: str,
        expires_in: int = DEFAULT_EXPIRES_IN,
        interval: int = DEFAULT_INTERVAL,
        clock: Clock = time.monotonic,
    ) -> None:
        self.device_code = device_code
        self.user_code = user_code
        self.verification_uri = verification_uri
        self.expires_in = expires_in
        self.expires_at = clock() + expires_in
        self.interval = interval
        self._state = DeviceFlowState.WAITING_FOR_USER
        self._lock = threading.Lock()

    @classmethod
    def from_json(cls, text: str, clock: Clock = time.monotonic) -> DeviceFlowResponse:
        bag = _read_json(text)
        return cls(**cls._required_fields(bag), clock=clock)

    @classmethod
    def _required_fields(
        cls,
        bag: dict[str, Any],
        verification_keys: tuple[str, ...] = ("verification_uri",),
    ) -> dict[str, Any]:
        verification_uri = next((bag[key] for key in verification_keys if bag.get(key)), None)
        device_code = bag.get("device_code")
        user_code = bag.get("user_code")
        if not device_code or not user_code or not verification_uri:
            raise UpstreamException(
                create_upstream_error(
                    "デバイス認可応答に必須項目がありません。",
                    code=ErrorCode.UPSTREAM_MISSING_FIELD,
                )
            )
        return {
            "device_code": str(device_code),
            "user_code": str(user_code),
            "verification_uri": str(verification_uri),
            "expires_in": _read_int(bag, "expires_in", DEFAULT_EXPIRES_IN),
            "interval": _read_int(bag, "interval", DEFAULT_INTERVAL),
        }

    @property
    def state(self) -> DeviceFlowState:
        with self._lock:
            return self._state

    def _transition(self, new_state: DeviceFlowState) -> None:
        with self._lock:
            if self._state is DeviceFlowState.WAITING_FOR_USER:
                self._state = new_state

    def request_cancel(self) -> None:
        """ポーリングの中止を要求する。次のポーリング前に検知される。"""
        self._transition(DeviceFlowState.CANCEL_REQUESTED)

    def set_token_acquired(self) -> None:
        self._transition(DeviceFlowState.TOKEN_ACQUIRED)

    @property
    def is_cancel_requested(self) -> bool:
        return self.state is DeviceFlowState.CANCEL_REQUESTED

    @property
    def is_token_acquired(self) -> bool:
        return self.state is DeviceFlowState.TOKEN_ACQUIRED

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(user_code={self.user_code!r}, "
            f"verification_uri={self.verification_uri!r}, state={self.state.name})"
        )


class AzureDeviceFlowResponse(DeviceFlowResponse):
    """Azure AD の応答。`verification_url` と `message` も受け付ける。"""

    def __init__(self, *args: Any, message: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.message = message

    @classmethod
    def from_json(cls, text: str, clock: Clock = time.monotonic) -> AzureDeviceFlowResponse:
        bag = _read_json(text)
        fields = cls._required_fields(bag, ("verification_uri", "verification_url"))
        message = bag.get("message")
        return cls(**fields, clock=clock, message=str(message) if message else None)


DeviceFlowCallback = Callable[[DeviceFlowResponse], None]


class DeviceFlow:
    """RFC 8628 相当のデバイスフロー。"""

    def __init__(
        self,
        http_client_factory: HttpClientFactory | None = None,
        *,
        sleep: Sleep = time.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self._http_client_factory = http_client_factory or HttpClientFactory()
        self._sleep = sleep
        self._clock = clock

    def request_authorization(self, device_endpoint: str, client_id: str, scope: str | None = None) -> DeviceFlowResponse:
        parameters: dict[str, str | None] = {
            "response_type": "device_code",
            "client_id": client_id,
        }
        if scope:
            parameters["scope"] = scope
        self.contribute_authorization_request_parameters(parameters)

        client = self._http_client_factory.create_http_client()
        response_text = client.post_response_text(device_endpoint, StringContent.create_url_encoded(parameters))
        return self.build_device_flow_response(response_text)

    def contribute_authorization_request_parameters(self, parameters: dict[str, str | None]) -> None:
        return None

    def build_device_flow_response(self, response_text: str) -> DeviceFlowResponse:
        return DeviceFlowResponse.from_json(response_text, clock=self._clock)

    def request_token(self, token_endpoint: str, client_id: str, response: DeviceFlowResponse) -> TokenPair:
        """利用者の認可が完了するまでトークンエンドポイントをポーリングする。

        Args:
            token_endpoint: トークンエンドポイント。
            client_id: クライアントID。
            response: `request_authorization` の結果。

        Returns:
            取得したトークンの組。

        Raises:
            AuthorizationException: 中止要求、期限切れ、または認可エラーの場合。
            UpstreamException: 400以外のエラー応答の場合。
            TransportException: 通信に失敗した場合。
        """

        parameters: dict[str, str | None] = {
            "grant_type": "device_code",
            "code": response.device_code,
            "client_id": client_id,
        }
        self.contribute_token_request_parameters(parameters)
        content = StringContent.create_url_encoded(parameters)
        interval = response.interval
        client = self._http_client_factory.create_http_client()

        while True:
            if response.is_cancel_requested:
                raise AuthorizationException(
                    create_authorization_error("request_cancelled", "Stop polling for Token.")
                )

            result = client.post_response(token_endpoint, content)
            if result.status == 200:
                token_pair = self.build_token_pair(result.response_text or "")
                response.set_token_acquired()
                return token_pair

            if result.status != 400:
                raise UpstreamException(
                    create_upstream_error(
                        f"Token endpoint returned HTTP {result.status}:\n{result.error_text}",
                        status=result.status,
                        body=result.error_text,
                    )
                )

            bag = _read_json(result.error_text)
            error_code = bag.get("error") or UNKNOWN_ERROR
            if error_code == ERROR_AUTHORIZATION_PENDING:
                logger.debug("authorization pending, waiting %s seconds", interval)
            elif error_code == ERROR_SLOW_DOWN:
                interval *= 2
                logger.debug("slow down requested, waiting %s seconds", interval)
            else:
                raise AuthorizationException(
                    create_authorization_error(error_code, bag.get("error_description"), bag.get("error_uri"))
                )
            self._sleep(interval)

            if self._clock() >= response.expires_at:
                break

        raise AuthorizationException(create_authorization_error("code_expired", "The verification code expired."))

    def contribute_token_request_parameters(self, parameters: dict[str, str | None]) -> None:
        return None

    def build_token_pair(self, response_text: str) -> TokenPair:
        return TokenPair.from_json(response_text)


class AzureDeviceFlow(DeviceFlow):
    """Azure AD 向けに `resource` と `redirect_uri` を付加するデバイスフロー。"""

    def __init__(
        self,
        http_client_factory: HttpClientFactory | None = None,
        *,
        resource: str | None = None,
        redirect_uri: str | None = None,
        sleep: Sleep = time.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        super().__init__(http_client_factory, sleep=sleep, clock=clock)
        self.resource = resource
        self.redirect_uri = redirect_uri

    def contribute_authorization_request_parameters(self, parameters: dict[str, str | None]) -> None:
        if self.resource is not None:
            parameters["resource"] = self.resource
        if self.redirect_uri is not None:
            parameters["redirect_uri"] = self.redirect_uri

    def build_device_flow_response(self, response_text: str) -> DeviceFlowResponse:
        return AzureDeviceFlowResponse.from_json(response_text, clock=self._clock)
