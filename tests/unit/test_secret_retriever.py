"""
SecretRetrieverと認証器の共通基盤のユニットテスト
"""

import unittest
from unittest.mock import MagicMock

from vsts_auth.auth.base import BaseAuthenticator, PromptBehavior, SecretRetriever
from vsts_auth.errors import UpstreamException, create_upstream_error
from vsts_auth.secret import Token, TokenType
from vsts_auth.storage import InsecureInMemoryStore

KEY = "PersonalAccessToken:https://ms.visualstudio.com"


def _token(value):
    return Token(value, TokenType.PERSONAL)


class TestSecretRetriever(unittest.TestCase):
    """ストアと取得処理の組み合わせのテスト"""

    def setUp(self):
        self.store = InsecureInMemoryStore()
        self.do_retrieve = MagicMock(return_value=_token("new"))

    def test_auto_returns_valid_stored(self):
        """AUTOで有効な値があれば取得しないこと"""
        self.store.add(KEY, _token("stored"))
        retriever = SecretRetriever(self.do_retrieve, validate=lambda secret: True)

        result = retriever.retrieve(KEY, self.store, PromptBehavior.AUTO)

        self.assertEqual(result.value, "stored")
        self.do_retrieve.assert_not_called()

    def test_auto_without_validator(self):
        """検証関数が無い場合は常に有効とみなすこと"""
        self.store.add(KEY, _token("stored"))
        result = SecretRetriever(self.do_retrieve).retrieve(KEY, self.store, PromptBehavior.AUTO)
        self.assertEqual(result.value, "stored")

    def test_auto_retrieves_and_stores_on_miss(self):
        """AUTOでストアが空なら取得し、保存すること"""
        result = SecretRetriever(self.do_retrieve).retrieve(KEY, self.store, PromptBehavior.AUTO)
        self.assertEqual(result.value, "new")
        self.assertEqual(self.store.get(KEY).value, "new")

    def test_auto_refreshes_invalid(self):
        """検証に失敗した値を更新できれば保存して返すこと"""
        self.store.add(KEY, _token("stale"))
        retriever = SecretRetriever(
            self.do_retrieve,
            validate=lambda secret: False,
            refresh=lambda secret: _token("refreshed"),
        )

        result = retriever.retrieve(KEY, self.store, PromptBehavior.AUTO)

        self.assertEqual(result.value, "refreshed")
        self.assertEqual(self.store.get(KEY).value, "refreshed")
        self.do_retrieve.assert_not_called()

    def test_auto_retrieves_when_refresh_fails(self):
        """更新に失敗した場合は取得し直すこと"""
        self.store.add(KEY, _token("stale"))
        retriever = SecretRetriever(self.do_retrieve, validate=lambda secret: False, refresh=lambda secret: None)

        result = retriever.retrieve(KEY, self.store, PromptBehavior.AUTO)

        self.assertEqual(result.value, "new")
        self.assertEqual(self.store.get(KEY).value, "new")

    def test_always_skips_store(self):
        """ALWAYSではストアを読まずに取得すること"""
        self.store.add(KEY, _token("stored"))
        validate = MagicMock(return_value=True)
        result = SecretRetriever(self.do_retrieve, validate).retrieve(KEY, self.store, PromptBehavior.ALWAYS)

        self.assertEqual(result.value, "new")
        validate.assert_not_called()
        self.assertEqual(self.store.get(KEY).value, "new")

    def test_never_returns_stored_without_mutation(self):
        """NEVERではストアの値をそのまま返し、変更しないこと"""
        self.store.add(KEY, _token("stale"))
        retriever = SecretRetriever(self.do_retrieve, validate=lambda secret: False)

        result = retriever.retrieve(KEY, self.store, PromptBehavior.NEVER)

        self.assertEqual(result.value, "stale")
        self.do_retrieve.assert_not_called()

    def test_never_with_empty_store(self):
        result = SecretRetriever(self.do_retrieve).retrieve(KEY, self.store, PromptBehavior.NEVER)
        self.assertIsNone(result)
        self.assertIsNone(self.store.get(KEY))

    def test_retrieve_returns_none(self):
        """取得結果がNoneなら保存しないこと"""
        retriever = SecretRetriever(lambda: None)
        self.assertIsNone(retriever.retrieve(KEY, self.store, PromptBehavior.AUTO))
        self.assertEqual(len(self.store), 0)

    def test_upstream_error_becomes_none(self):
        """取得処理の例外はNoneとして扱うこと"""

        def failing():
            raise UpstreamException(create_upstream_error("boom", status=500))

        self.assertIsNone(SecretRetriever(failing).retrieve(KEY, self.store, PromptBehavior.AUTO))


class _TokenAuthenticator(BaseAuthenticator[Token]):
    @property
    def auth_type(self):
        return "Test"


class TestBaseAuthenticator(unittest.TestCase):
    """BaseAuthenticatorのテスト"""

    def test_key_and_sign_out(self):
        """キーの生成と削除ができること"""
        store = InsecureInMemoryStore()
        authenticator = _TokenAuthenticator(store)
        key = authenticator.get_key("https://server:8080/tfs")
        self.assertEqual(key, "Test:https://server:8080")

        store.add(key, _token("x"))
        self.assertTrue(authenticator.sign_out("https://server:8080/tfs"))
        self.assertIsNone(store.get(key))

    def test_sign_out_without_uri(self):
        self.assertFalse(_TokenAuthenticator(InsecureInMemoryStore()).sign_out())

    def test_unsupported_secrets(self):
        """未対応のシークレットはNoneを返すこと"""
        authenticator = _TokenAuthenticator(InsecureInMemoryStore())
        self.assertFalse(authenticator.is_credential_supported())
        self.assertIsNone(authenticator.get_credential("https://example.com"))
        self.assertIsNone(authenticator.get_oauth2_token_pair())

    def test_custom_key_conversion(self):
        authenticator = _TokenAuthenticator(InsecureInMemoryStore())
        authenticator.uri_to_key_conversion = lambda uri, namespace: f"custom:{namespace}"
        self.assertEqual(authenticator.get_key("https://example.com"), "custom:Test")


if __name__ == "__main__":
    unittest.main()
