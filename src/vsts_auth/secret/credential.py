"""ユーザー名とパスワードの組。"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, MutableMapping
import xml.etree.ElementTree as ET

from vsts_auth.errors import InvalidInputException, create_input_error
from vsts_auth.secret.base import Secret

USERNAME_MAX_LENGTH = 511
PASSWORD_MAX_LENGTH = 2047


@dataclass(slots=True, frozen=True)
class Credential(Secret):
    """Basic認証に使う資格情報。"""

    username: str
    password: str

    def __post_init__(self) -> None:
        if not self.username:
            raise InvalidInputException(create_input_error("usernameが空です。"))
        if self.password is None:
            raise InvalidInputException(create_input_error("passwordがNoneです。"))
        if len(self.username) > USERNAME_MAX_LENGTH:
            raise InvalidInputException(
                create_input_error(f"usernameは{USERNAME_MAX_LENGTH}文字以内である必要があります。")
            )
        if len(self.password) > PASSWORD_MAX_LENGTH:
            raise InvalidInputException(
                create_input_error(f"passwordは{PASSWORD_MAX_LENGTH}文字以内である必要があります。")
            )

    def contribute_header(self, headers: MutableMapping[str, str]) -> None:
        raw = f"{self.username}:{self.password}".encode("utf-8")
        headers["Authorization"] = "Basic " + base64.b64encode(raw).decode("ascii")

    def to_xml(self) -> ET.Element:
        value = ET.Element("value")
        ET.SubElement(value, "Password").text = self.password
        ET.SubElement(value, "Username").text = self.username
        return value

    @classmethod
    def from_xml(cls, element: ET.Element) -> Credential:
        password = element.findtext("Password", default="")
        username = element.findtext("Username", default="")
        return cls(username=username, password=password)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "credential", "username": self.username, "password": self.password}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Credential:
        return cls(username=str(data["username"]), password=str(data["password"]))

    def __repr__(self) -> str:
        return f"Credential(username={self.username!r}, password='***')"
