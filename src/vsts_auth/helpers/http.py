"""認証フローが利用する同期HTTPクライアント。"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import ssl
from typing import Any, Mapping

import httpx

from vsts_auth import __version__
from vsts_auth.errors import (
    TransportException,
    UpstreamException,
    create_transport_error,
    create_upstream_error,
)
from vsts_auth.helpers.uri import serialize_parameters

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = f"vsts-auth/{__version__}"

FORM_URLENCODED = "application/x-www-form-urlencoded"
APPLICATION_JSON = "application/json"


@dataclass(slots=True, frozen=True)
class StringContent:
    """リクエスト本文とContent-Type。"""

    body: str
    content_type: str

    @classmethod
    def create_url_encoded(cls, parameters: Mapping[str, str | None]) -> StringContent:
        return cls(serialize_parameters(parameters), FORM_URLENCODED)

    @classmethod
    def create_json(cls, payload: Any) -> StringContent:
        if isinstance(payload, str):
            return cls(payload, APPLICATION_JSON)
        return cls(json.dumps(payload, ensure_ascii=False), APPLICATION_JSON)


@dataclass(slots=True)
class HttpResponse:
    """ステータスと本文。2xxなら `response_text`、それ以外は `error_text` に入る。"""

    status: int
    response_text: str | None = None
    error_text: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300


class HttpClient:
    """httpxの同期クライアントを包む。

    リクエストごとにクライアントを開閉し、`headers` に積まれた既定ヘッダーを付与する。
    通信失敗は TransportException、2xx以外は UpstreamException として扱う。
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        *,
        timeout: float | None = 30.0,
        proxy: str | None = None,
        verify: bool | str = True,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """HttpClientを初期化する。

        Args:
            user_agent: User-Agentヘッダー値。
            timeout: 既定のタイムアウト秒数。
            proxy: プロキシURL。
            verify: TLS検証設定、またはCAバンドルのパス。
            transport: テスト用に差し替えるトランスポート。
        """

        self.headers: dict[str, str] = {"User-Agent": user_agent}
        self._timeout = timeout
        self._proxy = proxy
        self._verify = verify
        self._transport = transport

    def _open(self, timeout: float | None = None, follow_redirects: bool = True) -> httpx.Client:
        verify: bool | ssl.SSLContext = self._verify if isinstance(self._verify, bool) else True
        if isinstance(self._verify, str):
            verify = ssl.create_default_context(cafile=self._verify)
        kwargs: dict[str, Any] = {
            "headers": self.headers,
            "timeout": timeout if timeout is not None else self._timeout,
            "follow_redirects": follow_redirects,
            "verify": verify,
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        elif self._proxy:
            kwargs["proxy"] = self._proxy
        return httpx.Client(**kwargs)

    def _send(
        self,
        method: str,
        uri: str,
        *,
        content: StringContent | None = None,
        timeout: float | None = None,
        follow_redirects: bool = True,
    ) -> httpx.Response:
        logger.debug("%s %s", method, uri)
        headers = {"Content-Type": content.content_type} if content is not None else None
        try:
            with self._open(timeout, follow_redirects) as client:
                return client.request(
                    method,
                    uri,
                    content=content.body.encode("utf-8") if content is not None else None,
                    headers=headers,
                )
        except httpx.TimeoutException as exc:
            raise TransportException(
                create_transport_error(f"{method} {uri} がタイムアウトしました。", timeout=True)
            ) from exc
        except httpx.TransportError as exc:
            raise TransportException(create_transport_error(f"{method} {uri} に失敗しました: {exc}")) from exc

    @staticmethod
    def ensure_ok(response: httpx.Response) -> None:
        """ステータスが2xxでなければ UpstreamException を送出する。"""

        if not response.is_success:
            body = response.text
            raise UpstreamException(
                create_upstream_error(
                    f"HTTP request failed with code {response.status_code}: {body}",
                    status=response.status_code,
                    body=body,
                )
            )

    def get_header_field(self, uri: str, header: str) -> str | None:
        """リダイレクトを辿らずにHEADし、指定ヘッダーの値を返す。"""

        response = self._send("HEAD", uri, follow_redirects=False)
        return response.headers.get(header)

    def get_status(self, uri: str, timeout: float | None = None) -> int:
        return self._send("GET", uri, timeout=timeout).status_code

    def get_response_text(self, uri: str, timeout: float | None = None) -> str:
        response = self._send("GET", uri, timeout=timeout)
        self.ensure_ok(response)
        return response.text

    def get_response_content(self, uri: str, timeout: float | None = None) -> bytes:
        response = self._send("GET", uri, timeout=timeout)
        self.ensure_ok(response)
        return response.content

    def post_response_text(self, uri: str, content: StringContent) -> str:
        response = self._send("POST", uri, content=content)
        self.ensure_ok(response)
        return response.text

    def post_response(self, uri: str, content: StringContent) -> HttpResponse:
        response = self._send("POST", uri, content=content)
        result = HttpResponse(status=response.status_code, headers=dict(response.headers))
        if result.is_success:
            result.response_text = response.text
        else:
            result.error_text = response.text
        return result


class HttpClientFactory:
    """設定値からHttpClientを生成する。"""

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        *,
        timeout: float | None = 30.0,
        proxy: str | None = None,
        verify: bool | str = True,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.user_agent = user_agent
        self.timeout = timeout
        self.proxy = proxy
        self.verify = verify
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Any, transport: httpx.BaseTransport | None = None) -> HttpClientFactory:
        """VstsAuthSettings相当の値からファクトリを作る。"""

        return cls(
            timeout=settings.http_timeout,
            proxy=settings.proxy_url(),
            verify=str(settings.trust_store) if settings.trust_store else True,
            transport=transport,
        )

    def create_http_client(self) -> HttpClient:
        return HttpClient(
            self.user_agent,
            timeout=self.timeout,
            proxy=self.proxy,
            verify=self.verify,
            transport=self.transport,
        )
