"""URIの正規化とクエリ文字列の変換を提供する。"""

from __future__ import annotations

from typing import Mapping
from urllib.parse import quote_plus, unquote_plus, urlsplit

from vsts_auth.errors import ErrorCode, InvalidInputException, create_input_error

HOST_AZURE = "azure.com"
HOST_AZURE_ORG = ".azure.com"

DEFAULT_PORTS = {"http": 80, "https": 443}


def split_authority(uri: str) -> tuple[str | None, str, int | None]:
    """URIの権限部を (userinfo, host, port) に分解する。

    `urllib.parse` の `hostname` は小文字化されるため、ホストの大文字小文字を保つ目的で
    netloc を直接分解する。

    Args:
        uri: 絶対URI。

    Returns:
        ユーザー情報（無ければNone）、ホスト、明示ポート（無ければNone）。

    Raises:
        InvalidInputException: URIが解釈できない場合。
    """

    try:
        parts = urlsplit(uri)
        port = parts.port
    except ValueError as exc:
        raise InvalidInputException(
            create_input_error(f"URIが不正です: {uri}", ErrorCode.INPUT_MALFORMED_URI)
        ) from exc

    userinfo, _, hostport = parts.netloc.rpartition("@")
    if hostport.startswith("["):
        host = hostport[: hostport.find("]") + 1]
    else:
        host = hostport.split(":", 1)[0]
    return (userinfo or None), host, port


def is_well_formed_uri(uri: str | None) -> bool:
    """スキームとホストを備えた絶対URIかどうかを返す。"""

    if not uri or any(ch.isspace() for ch in uri):
        return False
    try:
        parts = urlsplit(uri)
        parts.port
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.netloc)


def require_absolute_uri(uri: str) -> str:
    """絶対URIでなければ InvalidInputException を送出する。"""

    if not is_well_formed_uri(uri):
        raise InvalidInputException(
            create_input_error(f"URIが不正です: {uri}", ErrorCode.INPUT_MALFORMED_URI)
        )
    return uri


def is_azure_host(uri: str | None) -> bool:
    if not uri:
        return False
    _, host, _ = split_authority(uri)
    lowered = host.lower()
    return bool(host) and (lowered == HOST_AZURE or lowered.endswith(HOST_AZURE_ORG))


def get_full_account(uri: str) -> str:
    """シークレットのキーと組織スコープのエンドポイントに使うホストを返す。

    `azure.com` 系のホストでは組織名（パスの先頭要素、無ければユーザー情報）を付加する。
    それ以外はホストをそのまま返す。

    Args:
        uri: 対象URI。

    Returns:
        `host` または `host/organization`。
    """

    userinfo, host, _ = split_authority(uri)
    if is_azure_host(uri):
        segments = [segment for segment in urlsplit(uri).path.split("/") if segment]
        if segments:
            return f"{host}/{segments[0]}"
        if userinfo and userinfo.strip():
            return f"{host}/{userinfo}"
    return host


def explicit_port(uri: str) -> int | None:
    """スキーム既定値ではない明示ポートを返す。"""

    scheme = urlsplit(uri).scheme.lower()
    _, _, port = split_authority(uri)
    if port is None or DEFAULT_PORTS.get(scheme) == port:
        return None
    return port


def serialize_parameters(parameters: Mapping[str, str | None]) -> str:
    """順序付きパラメータを `application/x-www-form-urlencoded` 形式に変換する。

    値がNoneのエントリは名前のみを出力する。
    """

    pairs = []
    for name, value in parameters.items():
        encoded = quote_plus(name, safe="*")
        if value is not None:
            encoded += "=" + quote_plus(value, safe="*")
        pairs.append(encoded)
    return "&".join(pairs)


def deserialize_parameters(text: str | None) -> dict[str, str | None]:
    """クエリ文字列を順序付き辞書に変換する。値の無い名前はNoneになる。"""

    result: dict[str, str | None] = {}
    if not text or not text.strip():
        return result

    for pair in text.strip().split("&"):
        if not pair.strip():
            continue
        name, separator, value = pair.partition("=")
        result[unquote_plus(name)] = unquote_plus(value) if separator else None
    return result
