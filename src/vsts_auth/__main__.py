"""vsts-auth のCLIエントリーポイント"""

import json
import logging
import sys
from typing import List

from vsts_auth import __version__
from vsts_auth.auth import PromptBehavior
from vsts_auth.cli.main import VstsAuthCLI
from vsts_auth.cli.parser import ArgumentParser
from vsts_auth.config import load_settings
from vsts_auth.errors import VstsAuthException


def main(args: List[str] | None = None) -> int:
    """
    vsts-auth のメインエントリーポイント

    Args:
        args: コマンドライン引数（Noneの場合はsys.argvを使用）

    Returns:
        終了コード（0: 成功、1: エラー）
    """
    if args is None:
        args = sys.argv[1:]

    # 引数解析
    parser = ArgumentParser()
    parsed = parser.parse(args)

    # バージョン表示
    if parsed.options.get("version"):
        print(f"vsts-auth {__version__}")
        return 0

    # ヘルプ表示
    if parsed.options.get("help") or not args:
        _print_help()
        return 0

    # バリデーション
    validation = parser.validate(parsed)
    if not validation.is_valid:
        for error in validation.errors:
            print(error, file=sys.stderr)
        return 1

    if parsed.options.get("verbose"):
        logging.basicConfig(level=logging.DEBUG)

    # 設定読み込み
    try:
        settings = load_settings()
    except VstsAuthException as exc:
        print(f"Configuration error: {exc.error.message}", file=sys.stderr)
        return 1

    if parsed.options.get("config_check"):
        dumped = settings.model_dump(mode="json")
        print(json.dumps(dumped, ensure_ascii=False, indent=2))
        return 0

    # CLI実行
    cli = VstsAuthCLI(
        settings,
        store=parsed.options.get("store") or "file",
        prompt_behavior=PromptBehavior(parsed.options.get("prompt") or "auto"),
        client_id=parsed.options.get("client_id"),
        redirect_uri=parsed.options.get("redirect_uri"),
    )
    return cli.run(parsed.command, parsed.args, options=parsed.options)


def _print_help() -> None:
    """ヘルプメッセージを表示"""
    help_text = f"""vsts-auth v{__version__} - Azure DevOps / Team Services の資格情報を取得するCLIツール

Usage:
    vsts-auth <command> [args] [options]

Commands:
    credential <uri>         ユーザー名とパスワードを入力し、保存する
    oauth                    OAuth2 アクセストークンを取得する（デバイスフロー）
    pat [uri]                Personal Access Token を取得する（URI省略時はグローバル）
    assign-global-pat <uri>  グローバルPATを指定URIに割り当てる
    sign-out [uri]           保存済みのシークレットを削除する

Options:
    -h, --help               ヘルプメッセージを表示
    -v, --version            バージョン情報を表示
    --config-check           設定内容を検証して表示（パスワードはマスク）
    --store <kind>           保存先を指定（memory, file, keyring。既定: file）
    --prompt <behavior>      プロンプト動作を指定（auto, always, never。既定: auto）
    --client-id <id>         OAuth2 のクライアントID
    --redirect-uri <uri>     OAuth2 のリダイレクトURI
    --verbose                デバッグログを出力

Examples:
    vsts-auth pat https://myaccount.visualstudio.com
    vsts-auth --store keyring oauth
    vsts-auth sign-out
"""
    print(help_text)


if __name__ == "__main__":
    sys.exit(main())
