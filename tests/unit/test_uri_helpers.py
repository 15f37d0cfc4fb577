"""
URI補助関数のユニットテスト
"""

import unittest

from vsts_auth.errors import InvalidInputException
from vsts_auth.helpers.uri import (
    deserialize_parameters,
    explicit_port,
    get_full_account,
    is_azure_host,
    is_well_formed_uri,
    require_absolute_uri,
    serialize_parameters,
)


class TestFullAccount(unittest.TestCase):
    """get_full_accountのテスト"""

    def test_azure_with_path(self):
        """azure.comではパスの先頭要素が組織名になること"""
        self.assertEqual(get_full_account("https://azure.com/acct/x"), "azure.com/acct")

    def test_azure_with_userinfo(self):
        """パスが無い場合はユーザー情報が組織名になること"""
        self.assertEqual(get_full_account("https://user@azure.com"), "azure.com/user")

    def test_azure_preserves_case(self):
        """ホストの大文字小文字が保たれること"""
        self.assertEqual(get_full_account("https://AZURE.COM/acct/"), "AZURE.COM/acct")

    def test_dev_azure_subdomain(self):
        """サブドメインもazure.com系として扱われること"""
        self.assertEqual(get_full_account("https://dev.azure.com/org/project"), "dev.azure.com/org")

    def test_visualstudio_host_only(self):
        """visualstudio.comはホストのみになること"""
        self.assertEqual(get_full_account("https://visualstudio.com/DefaultCollection"), "visualstudio.com")

    def test_other_host(self):
        """その他のホストはそのまま返ること"""
        self.assertEqual(get_full_account("https://google.com"), "google.com")

    def test_not_azure_suffix(self):
        """azure.comで終わるだけの別ドメインは対象外であること"""
        self.assertFalse(is_azure_host("https://notazure.com/acct"))


class TestWellFormed(unittest.TestCase):
    """絶対URI判定のテスト"""

    def test_absolute(self):
        self.assertTrue(is_well_formed_uri("https://example.com/path"))

    def test_relative(self):
        self.assertFalse(is_well_formed_uri("/relative/path"))

    def test_none_and_space(self):
        self.assertFalse(is_well_formed_uri(None))
        self.assertFalse(is_well_formed_uri("https://exa mple.com"))

    def test_require_absolute_raises(self):
        """絶対URIでない場合に例外となること"""
        with self.assertRaises(InvalidInputException):
            require_absolute_uri("not a uri")

    def test_explicit_port(self):
        """既定ポートは無視されること"""
        self.assertIsNone(explicit_port("https://example.com:443/"))
        self.assertEqual(explicit_port("https://example.com:8080/"), 8080)


class TestParameters(unittest.TestCase):
    """クエリ文字列変換のテスト"""

    def test_serialize_keeps_order(self):
        """挿入順が保たれ、値がエンコードされること"""
        text = serialize_parameters(
            {"resource": "a", "redirect_uri": "https://example.com", "flag": None}
        )
        self.assertEqual(text, "resource=a&redirect_uri=https%3A%2F%2Fexample.com&flag")

    def test_deserialize(self):
        """値の無い名前がNoneになること"""
        self.assertEqual(
            deserialize_parameters("a=1&b=x+y&c"),
            {"a": "1", "b": "x y", "c": None},
        )

    def test_deserialize_empty(self):
        self.assertEqual(deserialize_parameters("  "), {})


if __name__ == "__main__":
    unittest.main()
