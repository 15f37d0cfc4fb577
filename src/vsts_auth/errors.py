"""
エラー定義

認証ライブラリで使用されるエラーコードと例外クラス
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """エラーコード

    カテゴリ別にエラーコードを定義:
    - INPUT_xxx: 入力エラー
    - UPSTREAM_xxx: サーバー応答エラー
    - AUTH_xxx: 認可エラー
    - TRANSPORT_xxx: 通信エラー
    - STORE_xxx: シークレットストアエラー
    - CONFIG_xxx: 設定エラー
    """
    # 入力エラー
    INPUT_INVALID = "INPUT_001"
    INPUT_TOKEN_TOO_LONG = "INPUT_002"
    INPUT_MALFORMED_URI = "INPUT_003"

    # サーバー応答エラー
    UPSTREAM_HTTP_ERROR = "UPSTREAM_001"
    UPSTREAM_MISSING_FIELD = "UPSTREAM_002"

    # 認可エラー
    AUTH_OAUTH_ERROR = "AUTH_001"
    AUTH_REQUEST_CANCELLED = "AUTH_002"
    AUTH_CODE_EXPIRED = "AUTH_003"

    # 通信エラー
    TRANSPORT_ERROR = "TRANSPORT_001"
    TRANSPORT_TIMEOUT = "TRANSPORT_002"

    # ストアエラー
    STORE_BACKEND_ERROR = "STORE_001"
    STORE_CORRUPTED = "STORE_002"

    # 設定エラー
    CONFIG_INVALID_VALUE = "CONFIG_001"


@dataclass
class AuthError:
    """認証エラー情報

    Attributes:
        code: エラーコード文字列
        message: エラーメッセージ
        details: 追加のエラー詳細情報
        recoverable: 復旧可能かどうか
    """
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None
    recoverable: bool = False
    log_level: int = logging.ERROR


class VstsAuthException(Exception):
    """認証ライブラリの例外基底クラス

    AuthErrorをラップする例外クラス
    """

    def __init__(self, error: AuthError):
        """VstsAuthExceptionを初期化

        Args:
            error: AuthErrorインスタンス
        """
        self.error = error
        self.log_level = error.log_level
        super().__init__(f"[{error.code}] {error.message}")


class InvalidInputException(VstsAuthException, ValueError):
    """必須項目の欠落や不正な値による例外"""


class UpstreamException(VstsAuthException):
    """サーバーが2xx以外を返した場合の例外"""

    @property
    def status(self) -> Optional[int]:
        return (self.error.details or {}).get("status")

    @property
    def body(self) -> Optional[str]:
        return (self.error.details or {}).get("body")


class AuthorizationException(VstsAuthException):
    """OAuthのerror応答やデバイスフロー終了時の例外"""

    @property
    def oauth_code(self) -> str:
        return (self.error.details or {}).get("oauth_code", "unknown_error")

    @property
    def description(self) -> Optional[str]:
        return (self.error.details or {}).get("description")

    @property
    def uri(self) -> Optional[str]:
        return (self.error.details or {}).get("uri")


class TransportException(VstsAuthException):
    """ネットワークI/O・タイムアウト・TLSの例外"""


class StoreException(VstsAuthException):
    """シークレットストアのバックエンド例外"""


class ConfigurationException(VstsAuthException):
    """設定値の読み込み・検証例外"""


ERROR_CODE_LOG_LEVEL: Dict[ErrorCode, int] = {
    ErrorCode.AUTH_REQUEST_CANCELLED: logging.INFO,
    ErrorCode.AUTH_CODE_EXPIRED: logging.WARNING,
    ErrorCode.STORE_CORRUPTED: logging.WARNING,
    ErrorCode.TRANSPORT_TIMEOUT: logging.WARNING,
    ErrorCode.INPUT_TOKEN_TOO_LONG: logging.ERROR,
    ErrorCode.UPSTREAM_HTTP_ERROR: logging.ERROR,
}


# よく使用されるエラーのファクトリ関数
def create_input_error(
    message: str,
    code: ErrorCode = ErrorCode.INPUT_INVALID,
    details: Optional[Dict[str, Any]] = None,
) -> AuthError:
    """入力エラーを作成

    Args:
        message: エラーメッセージ
        code: エラーコード
        details: 追加詳細

    Returns:
        AuthError: 入力エラー
    """
    return AuthError(
        code=code.value,
        message=message,
        details=details,
        recoverable=False,
        log_level=ERROR_CODE_LOG_LEVEL.get(code, logging.ERROR),
    )


def create_upstream_error(
    message: str,
    status: Optional[int] = None,
    body: Optional[str] = None,
    code: ErrorCode = ErrorCode.UPSTREAM_HTTP_ERROR,
) -> AuthError:
    """サーバー応答エラーを作成

    Args:
        message: エラーメッセージ
        status: HTTPステータスコード
        body: サーバーが返した本文
        code: エラーコード

    Returns:
        AuthError: サーバー応答エラー
    """
    return AuthError(
        code=code.value,
        message=message,
        details={"status": status, "body": body},
        recoverable=True,
        log_level=ERROR_CODE_LOG_LEVEL.get(code, logging.ERROR),
    )


def create_authorization_error(
    oauth_code: str,
    description: Optional[str] = None,
    uri: Optional[str] = None,
) -> AuthError:
    """認可エラーを作成

    OAuthのエラーコードに応じてErrorCodeを割り当てる。

    Args:
        oauth_code: OAuthの `error` 値（例: access_denied）
        description: `error_description` 値
        uri: `error_uri` 値

    Returns:
        AuthError: 認可エラー
    """
    if oauth_code == "request_cancelled":
        code = ErrorCode.AUTH_REQUEST_CANCELLED
    elif oauth_code == "code_expired":
        code = ErrorCode.AUTH_CODE_EXPIRED
    else:
        code = ErrorCode.AUTH_OAUTH_ERROR

    message = oauth_code if not description else f"{oauth_code}: {description}"
    return AuthError(
        code=code.value,
        message=message,
        details={"oauth_code": oauth_code, "description": description, "uri": uri},
        recoverable=False,
        log_level=ERROR_CODE_LOG_LEVEL.get(code, logging.ERROR),
    )


def create_transport_error(message: str, timeout: bool = False) -> AuthError:
    """通信エラーを作成"""
    code = ErrorCode.TRANSPORT_TIMEOUT if timeout else ErrorCode.TRANSPORT_ERROR
    return AuthError(
        code=code.value,
        message=message,
        recoverable=True,
        log_level=ERROR_CODE_LOG_LEVEL.get(code, logging.ERROR),
    )


def create_store_error(
    message: str,
    code: ErrorCode = ErrorCode.STORE_BACKEND_ERROR,
    details: Optional[Dict[str, Any]] = None,
) -> AuthError:
    """ストアエラーを作成"""
    return AuthError(
        code=code.value,
        message=message,
        details=details,
        recoverable=True,
        log_level=ERROR_CODE_LOG_LEVEL.get(code, logging.ERROR),
    )


def create_config_error(message: str, details: Optional[Dict[str, Any]] = None) -> AuthError:
    """設定エラーを作成

    Args:
        message: エラーメッセージ
        details: 追加詳細

    Returns:
        AuthError: 設定エラー
    """
    return AuthError(
        code=ErrorCode.CONFIG_INVALID_VALUE.value,
        message=message,
        details=details,
        recoverable=False,
        log_level=logging.ERROR,
    )
