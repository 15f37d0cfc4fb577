"""シークレットの型定義。"""

from __future__ import annotations

from typing import Any

from vsts_auth.secret.base import (
    DEFAULT_URI_NAME_CONVERSION,
    PrefixedUriNameConversion,
    Secret,
    UriNameConversion,
    parse_name,
    uri_to_name,
)
from vsts_auth.secret.credential import Credential
from vsts_auth.secret.scope import VsoTokenScope, parse_scope
from vsts_auth.secret.token import NIL_UUID, TOKEN_MAX_LENGTH, Token, TokenType
from vsts_auth.secret.token_pair import TokenPair

__all__ = [
    "DEFAULT_URI_NAME_CONVERSION",
    "NIL_UUID",
    "TOKEN_MAX_LENGTH",
    "Credential",
    "PrefixedUriNameConversion",
    "Secret",
    "Token",
    "TokenPair",
    "TokenType",
    "UriNameConversion",
    "VsoTokenScope",
    "parse_name",
    "parse_scope",
    "secret_from_dict",
    "uri_to_name",
]

_KINDS = {
    "credential": Credential,
    "token": Token,
    "token_pair": TokenPair,
}


def secret_from_dict(data: dict[str, Any]) -> Secret:
    """`Secret.to_dict` の出力から対応するシークレットを復元する。

    Raises:
        ValueError: 未知の種別が指定された場合。
    """

    kind = data.get("kind")
    secret_cls = _KINDS.get(str(kind))
    if secret_cls is None:
        raise ValueError(f"未対応のシークレット種別です: {kind}")
    return secret_cls.from_dict(data)
