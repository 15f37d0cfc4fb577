"""vsts-auth のコマンドラインインターフェース"""

from vsts_auth.cli.main import StoreSet, VstsAuthCLI
from vsts_auth.cli.parser import ArgumentParser, ParsedCommand, ValidationResult

__all__ = [
    "ArgumentParser",
    "ParsedCommand",
    "StoreSet",
    "ValidationResult",
    "VstsAuthCLI",
]
