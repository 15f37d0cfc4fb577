"""認可コードを取得する対話的なユーザーエージェント。

システムブラウザで認可エンドポイントを開き、ループバックのHTTPサーバーで
リダイレクトを受け取る。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer
import logging
from pathlib import Path
import threading
from typing import Callable
from urllib.parse import parse_qs, urlsplit
import webbrowser

from vsts_auth.errors import AuthorizationException, create_authorization_error

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = {"localhost", "127.0.0.1"}
SWT_RUNTIME_REQUIREMENT = "SWT runtime"


@dataclass(slots=True)
class AuthorizationResponse:
    """認可エンドポイントからのリダイレクト内容。"""

    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None


class UserAgent(ABC):
    """認可コードを取得する手段。"""

    @abstractmethod
    def request_authorization_code(self, authorization_uri: str, redirect_uri: str) -> AuthorizationResponse:
        """認可エンドポイントを開き、リダイレクトの内容を返す。

        Raises:
            AuthorizationException: 認可を開始できない、または認可エラーが返された場合。
        """


class _RedirectServer(HTTPServer):
    def __init__(self, server_address: tuple[str, int], path: str) -> None:
        super().__init__(server_address, _RedirectHandler)
        self.expected_path = path
        self.response: AuthorizationResponse | None = None
        self.event = threading.Event()


class _RedirectHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:  # noqa: N802
        parsed = urlsplit(self.path)
        server = self.server
        if not isinstance(server, _RedirectServer) or parsed.path != server.expected_path:
            self.send_response(404)
            self.end_headers()
            self.wfile.write(b"Not Found")
            return

        query = parse_qs(parsed.query)
        server.response = AuthorizationResponse(
            code=query.get("code", [None])[0],
            state=query.get("state", [None])[0],
            error=query.get("error", [None])[0],
            error_description=query.get("error_description", [None])[0],
        )
        server.event.set()

        self.send_response(200)
        self.end_headers()
        self.wfile.write(b"Authentication complete. You can close this window.")

    def log_message(self, format: str, *args: object) -> None:  # noqa: A003
        return


class SystemBrowserUserAgent(UserAgent):
    """システムブラウザとループバックのリダイレクト受信による UserAgent。"""

    def __init__(
        self,
        timeout_seconds: float = 300.0,
        opener: Callable[[str], bool] = webbrowser.open,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._opener = opener

    def request_authorization_code(self, authorization_uri: str, redirect_uri: str) -> AuthorizationResponse:
        parsed = urlsplit(redirect_uri)
        if parsed.scheme != "http" or (parsed.hostname or "") not in LOOPBACK_HOSTS:
            raise AuthorizationException(
                create_authorization_error(
                    "unknown_error",
                    f"リダイレクトURIがループバックではありません: {redirect_uri}",
                )
            )

        server = _RedirectServer((parsed.hostname or "127.0.0.1", parsed.port or 80), parsed.path or "/")
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        try:
            logger.debug("Opening browser for authorization")
            if not self._opener(authorization_uri):
                raise AuthorizationException(
                    create_authorization_error("unknown_error", "ブラウザを起動できませんでした。")
                )
            if not server.event.wait(self._timeout_seconds):
                raise AuthorizationException(
                    create_authorization_error("request_cancelled", "認可のリダイレクトがタイムアウトしました。")
                )
        finally:
            server.shutdown()
            server.server_close()
            thread.join(timeout=1)

        response = server.response or AuthorizationResponse()
        if response.error:
            raise AuthorizationException(create_authorization_error(response.error, response.error_description))
        return response


class UserAgentProvider(ABC):
    """ユーザーエージェントの実装と、その利用に必要な条件。"""

    name: str

    @abstractmethod
    def check_requirements(self) -> list[str]:
        """満たされていない条件の一覧を返す。空なら利用できる。"""

    def create_user_agent(self) -> UserAgent:
        return SystemBrowserUserAgent()


class SystemBrowserProvider(UserAgentProvider):
    """既定のブラウザを使う（`jfx` の枠）。"""

    name = "jfx"

    def check_requirements(self) -> list[str]:
        try:
            webbrowser.get()
        except webbrowser.Error as exc:
            return [f"ブラウザが見つかりません: {exc}"]
        return []


class SwtProvider(UserAgentProvider):
    """SWTランタイムを必要とするブラウザ（`swt` の枠）。"""

    name = "swt"

    def __init__(self, runtime_path: Path, browser_options: dict[str, str] | None = None) -> None:
        self.runtime_path = runtime_path
        self.browser_options = dict(browser_options or {})

    def check_requirements(self) -> list[str]:
        requirements = []
        if not self.runtime_path.is_file():
            requirements.append(SWT_RUNTIME_REQUIREMENT)
        try:
            webbrowser.get()
        except webbrowser.Error as exc:
            requirements.append(f"ブラウザが見つかりません: {exc}")
        return requirements


class OAuth2UseragentValidator:
    """設定されたユーザーエージェントが利用可能かを判定する。"""

    def __init__(self, provider_name: str, providers: dict[str, UserAgentProvider]) -> None:
        self.provider_name = provider_name
        self._providers = providers

    @property
    def provider(self) -> UserAgentProvider | None:
        return self._providers.get(self.provider_name)

    def is_oauth2_provider_available(self) -> bool:
        provider = self.provider
        if provider is None:
            return False
        unmet = provider.check_requirements()
        if unmet:
            logger.debug("User agent provider %s is not available: %s", provider.name, unmet)
        return not unmet

    def is_only_missing_runtime_from_swt_provider(self) -> bool:
        swt = self._providers.get(SwtProvider.name)
        if swt is None:
            return False
        return swt.check_requirements() == [SWT_RUNTIME_REQUIREMENT]

    def create_user_agent(self) -> UserAgent:
        provider = self.provider or SystemBrowserProvider()
        return provider.create_user_agent()
