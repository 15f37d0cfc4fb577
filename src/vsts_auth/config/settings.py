"""pydantic-settings ベースの設定モデルと `settings.properties` の読み込み"""

import logging
import os
from pathlib import Path
import sys
from typing import Any, Dict, Literal, Mapping, Optional, Tuple

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from vsts_auth.errors import ConfigurationException, create_config_error

logger = logging.getLogger(__name__)

VENDOR_FOLDER = "Microsoft"
PROGRAM_FOLDER = "VstsAuthLib4J"
SETTINGS_FILE_NAME = "settings.properties"

DEFAULT_AUTHORITY_HOST = "https://login.microsoftonline.com"

SWT_BROWSER_PREFIX = "org.eclipse.swt.browser."

# settings.properties のキー名とフィールド名の対応
PROPERTY_FIELDS: Dict[str, str] = {
    "userAgentProvider": "user_agent_provider",
    "doNotSetSystemEnv": "do_not_set_system_env",
    "http.proxyHost": "http_proxy_host",
    "http.proxyPort": "http_proxy_port",
    "javax.net.ssl.trustStore": "trust_store",
    "authorityHost": "authority_host",
    "httpTimeout": "http_timeout",
    "insecureStorePath": "insecure_store_path",
}


def default_settings_folder() -> Path:
    """プラットフォームごとの設定フォルダを返す"""
    if sys.platform.startswith("win"):
        base = os.environ.get("LOCALAPPDATA") or str(Path.home())
        return Path(base) / VENDOR_FOLDER / PROGRAM_FOLDER
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / VENDOR_FOLDER / PROGRAM_FOLDER
    return Path.home() / f".{VENDOR_FOLDER.lower()}" / PROGRAM_FOLDER


def default_settings_file() -> Path:
    return default_settings_folder() / SETTINGS_FILE_NAME


def parse_properties(text: str) -> Dict[str, str]:
    """Javaのproperties形式のテキストを辞書に変換する

    `key=value` と `key:value` を受け付け、`#` と `!` で始まる行はコメントとして扱う。
    行末の `\\` は次の行への継続とみなす。

    Args:
        text: propertiesファイルの内容

    Returns:
        Dict[str, str]: 出現順を保ったキーと値
    """
    properties: Dict[str, str] = {}
    pending = ""
    for raw_line in text.splitlines():
        line = raw_line.lstrip()
        if not pending and (not line or line[0] in "#!"):
            continue
        if line.endswith("\\") and not line.endswith("\\\\"):
            pending += line[:-1]
            continue
        line = pending + line
        pending = ""

        separator = len(line)
        for index, char in enumerate(line):
            if char in "=:" or char.isspace():
                separator = index
                break
        key = line[:separator].strip()
        value = line[separator:].lstrip()
        if value[:1] in ("=", ":"):
            value = value[1:].lstrip()
        if key:
            properties[key] = value
    if pending:
        key, _, value = pending.partition("=")
        properties[key.strip()] = value.strip()
    return properties


def properties_to_fields(properties: Mapping[str, str]) -> Dict[str, Any]:
    """properties のキーを VstsAuthSettings のフィールド名に変換する"""
    fields: Dict[str, Any] = {}
    browser_options: Dict[str, str] = {}
    for key, value in properties.items():
        if key in PROPERTY_FIELDS:
            fields[PROPERTY_FIELDS[key]] = value
        elif key.startswith(SWT_BROWSER_PREFIX):
            browser_options[key] = value
    if browser_options:
        fields["swt_browser_options"] = browser_options
    return fields


class VstsAuthSettings(BaseSettings):
    """認証ライブラリの設定

    優先順位は settings.properties（初期化引数）、環境変数、既定値の順。
    """

    model_config = SettingsConfigDict(
        env_prefix="VSTS_AUTH_",
        extra="ignore",
    )

    # ユーザーエージェント設定
    user_agent_provider: Literal["jfx", "swt", "none"] = "jfx"
    swt_browser_options: Dict[str, str] = Field(default_factory=dict)

    # 環境変数への反映
    do_not_set_system_env: bool = True

    # 通信設定
    http_proxy_host: Optional[str] = None
    http_proxy_port: Optional[int] = Field(default=None, ge=1, le=65535)
    # PEM形式のCAバンドル。パスワード付きのキーストアは扱わない
    trust_store: Optional[Path] = None
    authority_host: str = DEFAULT_AUTHORITY_HOST
    http_timeout: float = Field(default=30.0, gt=0)

    # ストア設定
    insecure_store_path: Optional[Path] = None

    # 読み込んだ properties の生の値
    raw_properties: Dict[str, str] = Field(default_factory=dict, exclude=True)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ) -> Tuple[Any, ...]:
        """settings.properties（初期化引数）と環境変数のみを使い、前者を優先する

        .env ファイルとシークレットディレクトリは読まない。
        """
        return (init_settings, env_settings)

    @field_validator("user_agent_provider", mode="before")
    @classmethod
    def normalize_provider(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("authority_host")
    @classmethod
    def strip_authority_host(cls, value: str) -> str:
        value = value.rstrip("/")
        if not value.startswith(("https://", "http://")):
            raise ValueError(f"authority_host は絶対URLである必要があります: {value}")
        return value

    def proxy_url(self) -> Optional[str]:
        """プロキシ設定をURL形式で返す。未設定ならNone"""
        if not self.http_proxy_host:
            return None
        host = self.http_proxy_host
        if "://" not in host:
            host = f"http://{host}"
        if self.http_proxy_port:
            return f"{host}:{self.http_proxy_port}"
        return host

    def export_to_environ(self, environ: Optional[Dict[str, str]] = None) -> int:
        """読み込んだ properties を環境変数へ書き出す

        `do_not_set_system_env` が偽の場合のみ動作する。

        Args:
            environ: 書き出し先。省略時は `os.environ`

        Returns:
            int: 書き出した項目数
        """
        if self.do_not_set_system_env:
            return 0
        target = os.environ if environ is None else environ
        for key, value in self.raw_properties.items():
            logger.info("Setting environment variable %s", key)
            target[key] = value
        return len(self.raw_properties)


def read_properties_file(path: Path) -> Dict[str, str]:
    """properties ファイルを読み込む。読めない場合は空の辞書を返す"""
    logger.info("Searching for %s", path)
    if not path.is_file():
        return {}
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Failed to load properties from %s: %s", path, exc)
        return {}
    logger.info("Found setting file, loaded properties from %s", path)
    return parse_properties(text)


def load_settings(path: Optional[Path] = None, **overrides: Any) -> VstsAuthSettings:
    """settings.properties と環境変数から設定を構築する

    Args:
        path: properties ファイル。省略時はプラットフォーム既定の場所
        **overrides: ファイルよりも優先する値

    Returns:
        VstsAuthSettings: 検証済みの設定

    Raises:
        ConfigurationException: 値の検証に失敗した場合
    """
    properties = read_properties_file(path or default_settings_file())
    data = properties_to_fields(properties)
    data.update(overrides)
    data["raw_properties"] = properties
    try:
        settings = VstsAuthSettings(**data)
    except ValidationError as exc:
        raise ConfigurationException(
            create_config_error(
                f"設定値が不正です: {exc.error_count()}件のエラー",
                details={"errors": exc.errors(include_url=False)},
            )
        ) from exc
    settings.export_to_environ()
    return settings
