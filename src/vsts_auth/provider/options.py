"""資格情報プロバイダのオプション。"""

from __future__ import annotations

from dataclasses import dataclass, field

from vsts_auth.secret import VsoTokenScope

DEFAULT_PAT_DISPLAY_NAME = "Personal Access Token"


@dataclass(slots=True)
class PatGenerationOptions:
    """PAT発行時の表示名とスコープ。"""

    display_name: str = DEFAULT_PAT_DISPLAY_NAME
    token_scope: VsoTokenScope = field(default_factory=lambda: VsoTokenScope.ALL_SCOPES)


@dataclass(slots=True)
class Options:
    pat_generation_options: PatGenerationOptions = field(default_factory=PatGenerationOptions)

    @classmethod
    def get_default_options(cls) -> Options:
        return cls(PatGenerationOptions(DEFAULT_PAT_DISPLAY_NAME, VsoTokenScope.ALL_SCOPES))
