"""
コマンドライン引数の解析

コマンドとオプションを解析し、妥当性を検証する
"""

from dataclasses import dataclass
from typing import Any, Dict, List

# 有効なコマンド一覧
VALID_COMMANDS = {"credential", "oauth", "pat", "assign-global-pat", "sign-out"}

# URIを必須とするコマンド
URI_REQUIRED_COMMANDS = {"credential", "assign-global-pat"}

VALID_STORES = {"memory", "file", "keyring"}
VALID_PROMPTS = {"auto", "always", "never"}

# 値を取るオプションとオプション辞書のキー
VALUE_OPTIONS = {
    "--store": "store",
    "--prompt": "prompt",
    "--client-id": "client_id",
    "--redirect-uri": "redirect_uri",
}


@dataclass
class ParsedCommand:
    """解析済みコマンド

    Attributes:
        command: コマンド名
        args: コマンド引数
        options: オプション辞書
    """

    command: str
    args: List[str]
    options: Dict[str, Any]


@dataclass
class ValidationResult:
    """バリデーション結果

    Attributes:
        is_valid: 有効かどうか
        errors: エラーメッセージのリスト
    """

    is_valid: bool
    errors: List[str]


class ArgumentParser:
    """コマンドライン引数の解析"""

    def parse(self, argv: List[str]) -> ParsedCommand:
        """引数を解析してParsedCommandを返す

        Args:
            argv: コマンドライン引数リスト

        Returns:
            ParsedCommand: 解析結果
        """
        options: Dict[str, Any] = {}
        args: List[str] = []
        command: str = ""

        i = 0
        while i < len(argv):
            arg = argv[i]

            # ヘルプオプション
            if arg in ("-h", "--help"):
                options["help"] = True
                i += 1
                continue

            # バージョンオプション
            if arg in ("-v", "--version"):
                options["version"] = True
                i += 1
                continue

            # 設定チェックオプション
            if arg == "--config-check":
                options["config_check"] = True
                i += 1
                continue

            if arg == "--verbose":
                options["verbose"] = True
                i += 1
                continue

            # 値を取るオプション（--name value と --name=value の両方を受け付ける）
            name, separator, inline_value = arg.partition("=")
            if name in VALUE_OPTIONS:
                key = VALUE_OPTIONS[name]
                if separator:
                    options[key] = inline_value
                    i += 1
                    continue
                if i + 1 < len(argv) and not argv[i + 1].startswith("-"):
                    options[key] = argv[i + 1]
                    i += 2
                    continue
                options[key] = None
                i += 1
                continue

            # コマンドまたは引数
            if not command and not arg.startswith("-"):
                command = arg.lower()
            elif not arg.startswith("-"):
                args.append(arg)

            i += 1

        for key in ("store", "prompt"):
            if isinstance(options.get(key), str):
                options[key] = options[key].lower()

        return ParsedCommand(command=command, args=args, options=options)

    def validate(self, parsed: ParsedCommand) -> ValidationResult:
        """解析結果の妥当性を検証

        Args:
            parsed: 解析済みコマンド

        Returns:
            ValidationResult: バリデーション結果
        """
        errors: List[str] = []

        # ヘルプ・バージョンオプションは常に有効
        if parsed.options.get("help") or parsed.options.get("version"):
            return ValidationResult(is_valid=True, errors=[])

        for name, key in VALUE_OPTIONS.items():
            if key in parsed.options and not parsed.options[key]:
                errors.append(f"Option '{name}' requires a value.")

        store = parsed.options.get("store")
        if store and store not in VALID_STORES:
            errors.append(
                f"Unknown store: '{store}'. Available stores: {', '.join(sorted(VALID_STORES))}"
            )

        prompt = parsed.options.get("prompt")
        if prompt and prompt not in VALID_PROMPTS:
            errors.append(
                f"Unknown prompt behavior: '{prompt}'. "
                f"Available values: {', '.join(sorted(VALID_PROMPTS))}"
            )

        if errors:
            return ValidationResult(is_valid=False, errors=errors)

        if parsed.options.get("config_check"):
            return ValidationResult(is_valid=True, errors=[])

        # コマンドが空の場合
        if not parsed.command:
            errors.append("Command is required. Use --help for usage information.")
            return ValidationResult(is_valid=False, errors=errors)

        # 不明なコマンドの場合
        if parsed.command not in VALID_COMMANDS:
            errors.append(
                f"Unknown command: '{parsed.command}'. "
                f"Available commands: {', '.join(sorted(VALID_COMMANDS))}"
            )
            return ValidationResult(is_valid=False, errors=errors)

        if parsed.command in URI_REQUIRED_COMMANDS and not parsed.args:
            errors.append(f"Command '{parsed.command}' requires a URI argument.")
            return ValidationResult(is_valid=False, errors=errors)

        return ValidationResult(is_valid=True, errors=[])
