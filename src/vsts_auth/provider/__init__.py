"""認証器の結果を呼び出し側の形式に変換する。"""

from vsts_auth.provider.credential_provider import UserPasswordCredentialProvider
from vsts_auth.provider.options import DEFAULT_PAT_DISPLAY_NAME, Options, PatGenerationOptions

__all__ = [
    "DEFAULT_PAT_DISPLAY_NAME",
    "Options",
    "PatGenerationOptions",
    "UserPasswordCredentialProvider",
]
