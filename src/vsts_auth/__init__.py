"""Team Services 向け認証ライブラリ。

Basic認証、OAuth2（Azure AD）、Personal Access Token の取得とキャッシュを提供する。
"""

__version__ = "0.3.0"
