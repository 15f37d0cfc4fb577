"""
VstsAuthCLIメインモジュール

解析済みのコマンドを認証器の呼び出しに変換する
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Dict, List, Optional, TextIO, cast

from vsts_auth.auth import (
    ConsoleCredentialPrompt,
    DeviceFlowResponse,
    OAuth2Authenticator,
    PromptBehavior,
    VstsPatAuthenticator,
    get_authenticator,
)
from vsts_auth.auth.oauth import AzureDeviceFlowResponse
from vsts_auth.config import VstsAuthSettings
from vsts_auth.errors import VstsAuthException
from vsts_auth.provider import Options, UserPasswordCredentialProvider
from vsts_auth.storage import (
    InsecureFileBackedCredentialStore,
    InsecureFileBackedTokenStore,
    InsecureFileBackend,
    InsecureInMemoryStore,
    KeyringSecretStore,
    SecretStore,
)

logger = logging.getLogger(__name__)

# 公開サンプルアプリのクライアント登録
DEFAULT_CLIENT_ID = "502ea21d-e545-4c66-9129-c352ec902969"
DEFAULT_REDIRECT_URI = "https://xplatalm.com"


class StoreSet:
    """資格情報、OAuth2トークン、PATの保存先の組"""

    def __init__(
        self,
        credentials: SecretStore,
        token_pairs: SecretStore,
        tokens: SecretStore,
    ) -> None:
        self.credentials = credentials
        self.token_pairs = token_pairs
        self.tokens = tokens

    @classmethod
    def create(cls, kind: str, settings: VstsAuthSettings) -> StoreSet:
        """種別に応じた保存先を作る

        ファイルの保存形式はトークンの組を持たないため、`file` ではOAuth2トークンのみ
        プロセス内に保持する。

        Args:
            kind: `memory`、`file`、`keyring` のいずれか
            settings: 設定

        Returns:
            StoreSet: 保存先の組
        """
        if kind == "memory":
            return cls(InsecureInMemoryStore(), InsecureInMemoryStore(), InsecureInMemoryStore())

        backend = InsecureFileBackend.get_instance(settings.insecure_store_path)
        credentials = InsecureFileBackedCredentialStore(backend)
        tokens = InsecureFileBackedTokenStore(backend)
        if kind == "file":
            return cls(credentials, InsecureInMemoryStore(), tokens)

        return cls(
            KeyringSecretStore(fallback=credentials),
            KeyringSecretStore(fallback=InsecureInMemoryStore()),
            KeyringSecretStore(fallback=tokens),
        )


class VstsAuthCLI:
    """vsts-auth のコマンドハンドラー"""

    def __init__(
        self,
        settings: VstsAuthSettings,
        store: str = "file",
        prompt_behavior: PromptBehavior = PromptBehavior.AUTO,
        client_id: Optional[str] = None,
        redirect_uri: Optional[str] = None,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
        stores: Optional[StoreSet] = None,
    ):
        """初期化

        Args:
            settings: 設定
            store: 保存先の種別
            prompt_behavior: ストアと対話的取得の使い分け
            client_id: OAuth2 のクライアントID
            redirect_uri: OAuth2 のリダイレクトURI
            stdout: 結果の出力先
            stderr: メッセージの出力先
            stores: 保存先（テスト用に差し替え可能）
        """
        self.settings = settings
        self.prompt_behavior = prompt_behavior
        self.client_id = client_id or DEFAULT_CLIENT_ID
        self.redirect_uri = redirect_uri or DEFAULT_REDIRECT_URI
        self.stdout = stdout or sys.stdout
        self.stderr = stderr or sys.stderr
        self.stores = stores or StoreSet.create(store, settings)

    def run(self, command: str, args: List[str], options: Dict[str, Any] | None = None) -> int:
        """コマンドを実行し、Exit Codeを返す

        Args:
            command: コマンド名
            args: コマンド引数
            options: 解析済みオプション辞書

        Returns:
            int: 終了コード（0: 成功、1: エラー）
        """
        if options is None:
            options = {}

        handlers = {
            "credential": self._run_credential,
            "oauth": self._run_oauth,
            "pat": self._run_pat,
            "assign-global-pat": self._run_assign_global_pat,
            "sign-out": self._run_sign_out,
        }
        handler = handlers.get(command)
        if handler is None:
            print(f"Unknown command: '{command}'", file=self.stderr)
            return 1

        try:
            return handler(args)
        except VstsAuthException as exc:
            logger.debug("Command %s failed", command, exc_info=True)
            print(f"Error: {exc}", file=self.stderr)
            return 1

    def _run_credential(self, args: List[str]) -> int:
        uri = args[0]
        authenticator = get_authenticator(
            "basic",
            credential_store=self.stores.credentials,
            prompter=ConsoleCredentialPrompt(),
        )
        provider = UserPasswordCredentialProvider(authenticator)
        credential = provider.get_credential_for(uri, self.prompt_behavior)
        if credential is None:
            print(f"No credential available for {uri}", file=self.stderr)
            return 1
        print(f"username={credential.username}", file=self.stdout)
        print(f"password={credential.password}", file=self.stdout)
        return 0

    def _run_oauth(self, args: List[str]) -> int:
        authenticator = self._create_oauth_authenticator()
        token_pair = authenticator.get_oauth2_token_pair(None, self.prompt_behavior)
        if token_pair is None:
            print("Failed to acquire an OAuth2 access token.", file=self.stderr)
            return 1
        print(token_pair.access_token.value, file=self.stdout)
        return 0

    def _run_pat(self, args: List[str]) -> int:
        uri = args[0] if args else None
        options = Options.get_default_options().pat_generation_options
        authenticator = self._create_pat_authenticator()
        token = authenticator.get_personal_access_token(
            uri, options.token_scope, options.display_name, self.prompt_behavior
        )
        if token is None:
            print("Failed to acquire a Personal Access Token.", file=self.stderr)
            return 1
        print(token.value, file=self.stdout)
        return 0

    def _run_assign_global_pat(self, args: List[str]) -> int:
        uri = args[0]
        if not self._create_pat_authenticator().assign_global_pat_to(uri):
            print("No global Personal Access Token is stored. Run 'vsts-auth pat' first.", file=self.stderr)
            return 1
        print(f"Assigned the global Personal Access Token to {uri}", file=self.stdout)
        return 0

    def _run_sign_out(self, args: List[str]) -> int:
        uri = args[0] if args else None
        signed_out = self._create_pat_authenticator().sign_out(uri)
        if uri is not None:
            basic = get_authenticator("basic", credential_store=self.stores.credentials)
            signed_out = basic.sign_out(uri) and signed_out
        if not signed_out:
            print("Failed to remove stored secrets.", file=self.stderr)
            return 1
        print(f"Signed out from {uri or 'all accounts'}", file=self.stdout)
        return 0

    def _create_oauth_authenticator(self) -> OAuth2Authenticator:
        authenticator = get_authenticator(
            "oauth2",
            client_id=self.client_id,
            redirect_uri=self.redirect_uri,
            token_pair_store=self.stores.token_pairs,
            device_flow_callback=self._print_device_code,
            settings=self.settings,
        )
        return cast(OAuth2Authenticator, authenticator)

    def _create_pat_authenticator(self) -> VstsPatAuthenticator:
        authenticator = get_authenticator(
            "pat",
            client_id=self.client_id,
            redirect_uri=self.redirect_uri,
            token_pair_store=self.stores.token_pairs,
            token_store=self.stores.tokens,
            device_flow_callback=self._print_device_code,
            settings=self.settings,
        )
        return cast(VstsPatAuthenticator, authenticator)

    def _print_device_code(self, response: DeviceFlowResponse) -> None:
        """デバイスフローのユーザーコードを表示する"""
        message = response.message if isinstance(response, AzureDeviceFlowResponse) else None
        if message:
            print(message, file=self.stderr)
        else:
            print(
                f"To sign in, open {response.verification_uri} and enter the code {response.user_code}",
                file=self.stderr,
            )
        self.stderr.flush()
