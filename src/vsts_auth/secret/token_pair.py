"""OAuth2のアクセストークンとリフレッシュトークンの組。"""

from __future__ import annotations

import json
from types import MappingProxyType
from typing import Any, Mapping
import xml.etree.ElementTree as ET

from vsts_auth.errors import InvalidInputException, create_input_error
from vsts_auth.secret.base import Secret
from vsts_auth.secret.token import Token, TokenType

ACCESS_TOKEN = "access_token"
REFRESH_TOKEN = "refresh_token"


def _stringify(value: Any) -> str:
    # 数値は常に浮動小数点表記（3600 -> "3600.0"）
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(float(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


class TokenPair(Secret):
    """トークンエンドポイントの応答から得られるトークンの組。

    `parameters` には `access_token` と `refresh_token` 以外の応答項目が文字列として入る。
    等価性はアクセストークンとリフレッシュトークンのみで判定する。
    """

    __slots__ = ("access_token", "refresh_token", "parameters")

    def __init__(
        self,
        access_token: str | None,
        refresh_token: str | None,
        parameters: Mapping[str, str] | None = None,
    ) -> None:
        """TokenPairを初期化する。

        Args:
            access_token: アクセストークン文字列。
            refresh_token: リフレッシュトークン文字列。応答に無い場合はNone。
            parameters: その他の応答パラメータ。
        """

        if not access_token:
            raise InvalidInputException(create_input_error("access_tokenが空です。"))
        self.access_token = Token(access_token, TokenType.ACCESS)
        self.refresh_token = Token(refresh_token, TokenType.REFRESH) if refresh_token else None
        self.parameters: Mapping[str, str] = MappingProxyType(dict(parameters or {}))

    @classmethod
    def from_json(cls, response_text: str) -> TokenPair:
        """RFC 6749 形式のJSON応答から生成する。"""

        try:
            bag = json.loads(response_text)
        except json.JSONDecodeError as exc:
            raise InvalidInputException(create_input_error("トークン応答がJSONではありません。")) from exc
        if not isinstance(bag, dict):
            raise InvalidInputException(create_input_error("トークン応答がオブジェクトではありません。"))
        return cls.from_mapping(bag)

    @classmethod
    def from_mapping(cls, bag: Mapping[str, Any]) -> TokenPair:
        access_token = None
        refresh_token = None
        parameters: dict[str, str] = {}
        for name, value in bag.items():
            if name == ACCESS_TOKEN:
                access_token = value
            elif name == REFRESH_TOKEN:
                refresh_token = value
            elif value is not None:
                parameters[name] = _stringify(value)
        return cls(access_token, refresh_token, parameters)

    def with_refresh_token(self, refresh_token: Token | None) -> TokenPair:
        """リフレッシュトークンを差し替えた新しい組を返す。"""

        return TokenPair(
            self.access_token.value,
            refresh_token.value if refresh_token else None,
            self.parameters,
        )

    def to_xml(self) -> ET.Element:
        value = ET.Element("value")
        ET.SubElement(value, "accessToken").text = self.access_token.value
        ET.SubElement(value, "refreshToken").text = self.refresh_token.value if self.refresh_token else ""
        return value

    @classmethod
    def from_xml(cls, element: ET.Element) -> TokenPair:
        return cls(element.findtext("accessToken"), element.findtext("refreshToken") or None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "token_pair",
            ACCESS_TOKEN: self.access_token.value,
            REFRESH_TOKEN: self.refresh_token.value if self.refresh_token else None,
            "parameters": dict(self.parameters),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TokenPair:
        return cls(data.get(ACCESS_TOKEN), data.get(REFRESH_TOKEN), data.get("parameters") or {})

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TokenPair):
            return NotImplemented
        return self.access_token == other.access_token and self.refresh_token == other.refresh_token

    def __hash__(self) -> int:
        refresh = self.refresh_token.value if self.refresh_token else None
        return hash((self.access_token.value, refresh))

    def __repr__(self) -> str:
        return f"TokenPair(parameters={list(self.parameters)})"
