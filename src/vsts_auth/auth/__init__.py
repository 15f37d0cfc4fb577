"""認証器の公開API。"""

from __future__ import annotations

from vsts_auth.auth.base import Authenticator, BaseAuthenticator, PromptBehavior, SecretRetriever
from vsts_auth.auth.basic import BasicAuthAuthenticator, ConsoleCredentialPrompt, CredentialPrompt
from vsts_auth.auth.oauth import (
    APP_VSSPS_VISUALSTUDIO,
    DeviceFlowCallback,
    DeviceFlowResponse,
    OAuth2Authenticator,
    OAuth2AuthenticatorBuilder,
)
from vsts_auth.auth.pat import VstsPatAuthenticator
from vsts_auth.config import VstsAuthSettings
from vsts_auth.secret import Credential, Token, TokenPair
from vsts_auth.storage import InsecureInMemoryStore, SecretStore

__all__ = [
    "APP_VSSPS_VISUALSTUDIO",
    "Authenticator",
    "BaseAuthenticator",
    "BasicAuthAuthenticator",
    "ConsoleCredentialPrompt",
    "CredentialPrompt",
    "DeviceFlowResponse",
    "OAuth2Authenticator",
    "OAuth2AuthenticatorBuilder",
    "PromptBehavior",
    "SecretRetriever",
    "VstsPatAuthenticator",
    "get_authenticator",
]


def get_authenticator(
    kind: str,
    *,
    client_id: str | None = None,
    redirect_uri: str | None = None,
    credential_store: SecretStore[Credential] | None = None,
    token_pair_store: SecretStore[TokenPair] | None = None,
    token_store: SecretStore[Token] | None = None,
    prompter: CredentialPrompt | None = None,
    device_flow_callback: DeviceFlowCallback | None = None,
    settings: VstsAuthSettings | None = None,
) -> Authenticator:
    """認証器を生成する。

    Args:
        kind: `basic`、`oauth2`、`pat` のいずれか（認証種別名も可）。
        client_id: OAuth2 のクライアントID。
        redirect_uri: OAuth2 のリダイレクトURI。
        credential_store: 資格情報の保存先。
        token_pair_store: OAuth2 トークンの保存先。
        token_store: PATの保存先。
        prompter: 資格情報の入力方法。
        device_flow_callback: デバイスフローの通知先。
        settings: 設定。

    Returns:
        認証器のインスタンス。

    Raises:
        ValueError: 未対応の種別が指定された場合。
    """

    normalized = kind.lower().replace("-", "_")
    if normalized in {"basic", "basicauth"}:
        return BasicAuthAuthenticator(credential_store, prompter)

    if normalized not in {"oauth2", "oauth", "pat", "personalaccesstoken", "personal_access_token"}:
        raise ValueError(f"未対応の認証種別です: {kind}")
    if not client_id or not redirect_uri:
        raise ValueError("OAuth2 と PAT には client_id と redirect_uri が必要です。")

    oauth = OAuth2Authenticator.get_authenticator(
        client_id,
        redirect_uri,
        token_pair_store,
        device_flow_callback,
        settings=settings,
    )
    if normalized in {"oauth2", "oauth"}:
        return oauth
    return VstsPatAuthenticator(oauth, token_store if token_store is not None else InsecureInMemoryStore())
