"""シークレットの共通基盤とURIからキーへの変換。"""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import Any, Callable, MutableMapping
from urllib.parse import urlsplit

from vsts_auth.helpers.uri import explicit_port, get_full_account, require_absolute_uri

logger = logging.getLogger(__name__)

UriNameConversion = Callable[[str, str], str]


def uri_to_name(target_uri: str, namespace: str) -> str:
    """対象URIと名前空間からストア用のキーを生成する。

    形式は `{namespace}:{scheme}://{fullAccount}` で、既定以外のポートを持つ場合のみ
    `:{port}` を付加する。

    Args:
        target_uri: 対象URI。
        namespace: 認証方式などの名前空間。

    Returns:
        キー文字列。
    """

    require_absolute_uri(target_uri)
    scheme = urlsplit(target_uri).scheme
    trimmed_host = get_full_account(target_uri).rstrip("/\\")
    port = explicit_port(target_uri)
    if port is None:
        name = f"{namespace}:{scheme}://{trimmed_host}"
    else:
        name = f"{namespace}:{scheme}://{trimmed_host}:{port}"
    logger.debug("target name = %s", name)
    return name


def parse_name(name: str) -> tuple[str, str, str, int | None]:
    """`uri_to_name` が生成したキーを (namespace, scheme, host, port) に戻す。"""

    namespace, _, rest = name.partition(":")
    scheme, _, host = rest.partition("://")
    port: int | None = None
    head, sep, tail = host.rpartition(":")
    if sep and tail.isdigit() and "/" not in tail:
        host, port = head, int(tail)
    return namespace, scheme, host, port


DEFAULT_URI_NAME_CONVERSION: UriNameConversion = uri_to_name


class PrefixedUriNameConversion:
    """名前空間の前に固定の接頭辞を付けるキー変換。"""

    def __init__(self, prefix: str) -> None:
        self._prefix = prefix

    def __call__(self, target_uri: str, namespace: str) -> str:
        return uri_to_name(target_uri, f"{self._prefix}{namespace}")


class Secret(ABC):
    """ストアに保存できる秘密情報の基底クラス。"""

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """JSON化可能な辞書を返す。"""

    def contribute_header(self, headers: MutableMapping[str, str]) -> None:
        """HTTPヘッダーに認証情報を追加する。既定では何もしない。"""
