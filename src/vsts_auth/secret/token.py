"""ベアラートークンとそのバイナリ/XML表現。"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
import struct
from typing import Any, MutableMapping
import uuid
import xml.etree.ElementTree as ET

from vsts_auth.errors import ErrorCode, InvalidInputException, create_input_error
from vsts_auth.secret.base import Secret

logger = logging.getLogger(__name__)

TOKEN_MAX_LENGTH = 2047

NIL_UUID = uuid.UUID(int=0)

# 種別(uint32 LE) + GUID(16バイト)
_HEADER = struct.Struct("<I16s")


class TokenType(Enum):
    """トークン種別。値はバイナリ表現の序数。"""

    UNKNOWN = 0
    ACCESS = 1
    REFRESH = 2
    PERSONAL = 3
    FEDERATED = 4
    TEST = 5

    @property
    def xml_name(self) -> str:
        return self.name.capitalize()

    @classmethod
    def from_xml_name(cls, name: str) -> TokenType:
        try:
            return cls[name.strip().upper()]
        except KeyError as exc:
            raise InvalidInputException(create_input_error(f"未知のトークン種別です: {name}")) from exc


@dataclass(slots=True)
class Token(Secret):
    """アクセストークン、リフレッシュトークン、PATなどの値を保持する。

    Attributes:
        value: トークン文字列（2047文字以内）。
        type: トークン種別。
        target_identity: 紐付いた組織のID。未割り当てはnil UUID。
    """

    value: str
    type: TokenType
    target_identity: uuid.UUID = field(default=NIL_UUID, compare=False)

    def __post_init__(self) -> None:
        self.validate(self)

    @staticmethod
    def validate(token: Token) -> None:
        """値の妥当性を検証する。

        Raises:
            InvalidInputException: 値が空、または最大長を超える場合。
        """

        if not token.value or not token.value.strip():
            raise InvalidInputException(create_input_error("トークンの値が空です。"))
        if len(token.value) > TOKEN_MAX_LENGTH:
            raise InvalidInputException(
                create_input_error(
                    f"トークンは{TOKEN_MAX_LENGTH}文字以内である必要があります。",
                    ErrorCode.INPUT_TOKEN_TOO_LONG,
                    {"length": len(token.value)},
                )
            )

    def contribute_header(self, headers: MutableMapping[str, str]) -> None:
        headers["Authorization"] = f"Bearer {self.value}"

    def serialize(self) -> bytes:
        """`uint32 LE 種別 || GUID(mixed-endian) || UTF-8値` に変換する。"""

        return _HEADER.pack(self.type.value, self.target_identity.bytes_le) + self.value.encode("utf-8")

    @classmethod
    def deserialize(cls, data: bytes, token_type: TokenType) -> Token:
        """バイト列からトークンを復元する。

        先頭4バイトが期待する種別と一致しない場合は、値だけを格納した旧形式とみなす。

        Args:
            data: シリアライズ済みのバイト列。
            token_type: 期待するトークン種別。

        Returns:
            復元したトークン。
        """

        if len(data) > _HEADER.size:
            ordinal, guid = _HEADER.unpack_from(data)
            if ordinal == token_type.value:
                value = data[_HEADER.size:].decode("utf-8")
                return cls(value, token_type, uuid.UUID(bytes_le=guid))

        logger.debug("Token::deserialize: legacy format")
        return cls(data.decode("utf-8"), token_type)

    def to_xml(self) -> ET.Element:
        value = ET.Element("value")
        ET.SubElement(value, "Type").text = self.type.xml_name
        ET.SubElement(value, "Value").text = self.value
        if self.target_identity != NIL_UUID:
            ET.SubElement(value, "targetIdentity").text = str(self.target_identity)
        return value

    @classmethod
    def from_xml(cls, element: ET.Element) -> Token:
        token_type = TokenType.from_xml_name(element.findtext("Type", default="Unknown"))
        value = element.findtext("Value", default="")
        target = element.findtext("targetIdentity")
        target_identity = uuid.UUID(target.strip()) if target and target.strip() else NIL_UUID
        return cls(value, token_type, target_identity)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "token",
            "type": self.type.xml_name,
            "value": self.value,
            "targetIdentity": str(self.target_identity),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Token:
        return cls(
            str(data["value"]),
            TokenType.from_xml_name(str(data.get("type", "Unknown"))),
            uuid.UUID(str(data.get("targetIdentity") or NIL_UUID)),
        )

    def __repr__(self) -> str:
        return f"Token(type={self.type.xml_name}, target_identity={self.target_identity})"
