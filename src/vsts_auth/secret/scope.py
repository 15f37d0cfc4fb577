"""Personal Access Token のスコープ。"""

from __future__ import annotations

from typing import ClassVar, Iterable


class VsoTokenScope:
    """名前付きスコープの集合。`|` で合成でき、空白区切りで直列化される。"""

    __slots__ = ("_scopes",)

    NONE: ClassVar[VsoTokenScope]
    ALL_SCOPES: ClassVar[VsoTokenScope]
    ALL: ClassVar[VsoTokenScope]
    BUILD_ACCESS: ClassVar[VsoTokenScope]
    BUILD_EXECUTE: ClassVar[VsoTokenScope]
    CHAT_MANAGE: ClassVar[VsoTokenScope]
    CHAT_WRITE: ClassVar[VsoTokenScope]
    CODE_MANAGE: ClassVar[VsoTokenScope]
    CODE_READ: ClassVar[VsoTokenScope]
    CODE_WRITE: ClassVar[VsoTokenScope]
    ENTITLEMENTS_READ: ClassVar[VsoTokenScope]
    EXTENSION_MANAGE: ClassVar[VsoTokenScope]
    EXTENSION_READ: ClassVar[VsoTokenScope]
    EXTENSION_DATA_READ: ClassVar[VsoTokenScope]
    EXTENSION_DATA_WRITE: ClassVar[VsoTokenScope]
    IDENTITY_READ: ClassVar[VsoTokenScope]
    PACKAGING_READ: ClassVar[VsoTokenScope]
    PACKAGING_WRITE: ClassVar[VsoTokenScope]
    PACKAGING_MANAGE: ClassVar[VsoTokenScope]
    PROFILE_READ: ClassVar[VsoTokenScope]
    PROJECT_READ: ClassVar[VsoTokenScope]
    PROJECT_WRITE: ClassVar[VsoTokenScope]
    PROJECT_MANAGE: ClassVar[VsoTokenScope]
    RELEASE_READ: ClassVar[VsoTokenScope]
    RELEASE_EXECUTE: ClassVar[VsoTokenScope]
    RELEASE_MANAGE: ClassVar[VsoTokenScope]
    TEST_READ: ClassVar[VsoTokenScope]
    TEST_WRITE: ClassVar[VsoTokenScope]
    WORK_READ: ClassVar[VsoTokenScope]
    WORK_WRITE: ClassVar[VsoTokenScope]

    def __init__(self, scopes: str | Iterable[str] = ()) -> None:
        if isinstance(scopes, str):
            scopes = scopes.split()
        # 順序を保ったまま重複を除く
        self._scopes: tuple[str, ...] = tuple(dict.fromkeys(s for s in scopes if s))

    @property
    def scopes(self) -> tuple[str, ...]:
        return self._scopes

    def serialize(self) -> str:
        return " ".join(self._scopes)

    def __or__(self, other: VsoTokenScope) -> VsoTokenScope:
        if not isinstance(other, VsoTokenScope):
            return NotImplemented
        return VsoTokenScope(self._scopes + other._scopes)

    def __contains__(self, other: object) -> bool:
        if not isinstance(other, VsoTokenScope):
            return False
        return set(other._scopes) <= set(self._scopes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VsoTokenScope):
            return NotImplemented
        return set(self._scopes) == set(other._scopes)

    def __hash__(self) -> int:
        return hash(frozenset(self._scopes))

    def __bool__(self) -> bool:
        return bool(self._scopes)

    def __str__(self) -> str:
        return self.serialize()

    def __repr__(self) -> str:
        return f"VsoTokenScope({self.serialize()!r})"


_NAMED_SCOPES = {
    "BUILD_ACCESS": "vso.build",
    "BUILD_EXECUTE": "vso.build_execute",
    "CHAT_MANAGE": "vso.chat_manage",
    "CHAT_WRITE": "vso.chat_write",
    "CODE_MANAGE": "vso.code_manage",
    "CODE_READ": "vso.code",
    "CODE_WRITE": "vso.code_write",
    "ENTITLEMENTS_READ": "vso.entitlements",
    "EXTENSION_MANAGE": "vso.extension_manage",
    "EXTENSION_READ": "vso.extension",
    "EXTENSION_DATA_READ": "vso.extension.data",
    "EXTENSION_DATA_WRITE": "vso.extension.data_write",
    "IDENTITY_READ": "vso.identity",
    "PACKAGING_READ": "vso.packaging",
    "PACKAGING_WRITE": "vso.packaging_write",
    "PACKAGING_MANAGE": "vso.packaging_manage",
    "PROFILE_READ": "vso.profile",
    "PROJECT_READ": "vso.project",
    "PROJECT_WRITE": "vso.project_write",
    "PROJECT_MANAGE": "vso.project_manage",
    "RELEASE_READ": "vso.release",
    "RELEASE_EXECUTE": "vso.release_execute",
    "RELEASE_MANAGE": "vso.release_manage",
    "TEST_READ": "vso.test",
    "TEST_WRITE": "vso.test_write",
    "WORK_READ": "vso.work",
    "WORK_WRITE": "vso.work_write",
}

for _name, _value in _NAMED_SCOPES.items():
    setattr(VsoTokenScope, _name, VsoTokenScope(_value))

VsoTokenScope.NONE = VsoTokenScope()
VsoTokenScope.ALL_SCOPES = VsoTokenScope("app_token")
VsoTokenScope.ALL = VsoTokenScope(_NAMED_SCOPES.values())


def parse_scope(text: str) -> VsoTokenScope:
    """スコープ名（例: CODE_READ）または生のスコープ文字列から生成する。"""

    named = getattr(VsoTokenScope, text.strip().upper(), None)
    if isinstance(named, VsoTokenScope):
        return named
    return VsoTokenScope(text)
