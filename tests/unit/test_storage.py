"""
シークレットストアのユニットテスト
"""

import os
import tempfile
import unittest
import uuid
import warnings
from pathlib import Path
from unittest.mock import MagicMock, patch

from keyring.errors import KeyringError, PasswordDeleteError

from vsts_auth.auth import BasicAuthAuthenticator, CredentialPrompt, PromptBehavior
from vsts_auth.secret import Credential, Token, TokenPair, TokenType
from vsts_auth.storage import (
    InsecureFileBackedCredentialStore,
    InsecureFileBackedTokenStore,
    InsecureFileBackend,
    InsecureInMemoryStore,
    KeyringSecretStore,
)


class TestInsecureInMemoryStore(unittest.TestCase):
    """InsecureInMemoryStoreのテスト"""

    def test_add_returns_true(self):
        """新規追加でもTrueを返すこと"""
        store = InsecureInMemoryStore()
        self.assertTrue(store.add("key", Credential("user", "pass")))
        self.assertTrue(store.add("key", Credential("user", "other")))
        self.assertEqual(store.get("key").password, "other")

    def test_delete_missing_key(self):
        """存在しないキーの削除もTrueを返すこと"""
        store = InsecureInMemoryStore()
        self.assertTrue(store.delete("missing"))
        self.assertIsNone(store.get("missing"))

    def test_len(self):
        store = InsecureInMemoryStore()
        store.add("a", Token("t", TokenType.ACCESS))
        self.assertEqual(len(store), 1)


class TestInsecureFileBackend(unittest.TestCase):
    """InsecureFileBackendのテスト"""

    def setUp(self):
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp_dir.name) / "store" / "insecureStore.xml"

    def tearDown(self):
        self.tmp_dir.cleanup()

    def test_write_and_reload(self):
        """書き込んだ内容が別インスタンスで読み込めること"""
        target = uuid.UUID("8602283e-2ed6-4960-adaa-97be7d9913de")
        backend = InsecureFileBackend(self.path)
        backend.write_token("PersonalAccessToken:https://a.visualstudio.com", Token("tok", TokenType.PERSONAL, target))
        backend.write_credential("BasicAuth:https://server", Credential("user", "pass"))

        reloaded = InsecureFileBackend(self.path)
        token = reloaded.read_token("PersonalAccessToken:https://a.visualstudio.com")
        self.assertEqual(token.value, "tok")
        self.assertEqual(token.target_identity, target)
        self.assertEqual(reloaded.read_credential("BasicAuth:https://server"), Credential("user", "pass"))

    @unittest.skipIf(os.name == "nt", "POSIXの権限のみ検証する")
    def test_file_permissions(self):
        """保存ファイルが所有者のみ読み書き可能であること"""
        backend = InsecureFileBackend(self.path)
        backend.write_token("k", Token("tok", TokenType.ACCESS))
        self.assertTrue(self.path.is_file())
        self.assertEqual(self.path.stat().st_mode & 0o777, 0o600)

    def test_xml_layout(self):
        """XMLが Tokens と Credentials の節を持つこと"""
        backend = InsecureFileBackend(None)
        backend.write_token("k", Token("tok", TokenType.ACCESS))
        xml = backend.to_xml()
        self.assertTrue(xml.startswith('<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'))
        self.assertIn("<Tokens>", xml)
        self.assertIn("<Type>Access</Type>", xml)
        self.assertIn("<Credentials />", xml)

    def test_corrupted_file(self):
        """破損したファイルは警告を出して空として扱い、削除しないこと"""
        self.path.parent.mkdir(parents=True)
        self.path.write_text("<insecureStore><Tokens>", encoding="utf-8")
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            backend = InsecureFileBackend(self.path)
        self.assertEqual(backend.tokens, {})
        self.assertTrue(self.path.exists())
        self.assertTrue(any(issubclass(w.category, RuntimeWarning) for w in caught))

    def test_delete(self):
        backend = InsecureFileBackend(self.path)
        backend.write_credential("c", Credential("user", "pass"))
        self.assertTrue(backend.delete("c"))
        self.assertIsNone(InsecureFileBackend(self.path).read_credential("c"))

    def test_get_instance_shared(self):
        """同じパスでは同じインスタンスが返ること"""
        first = InsecureFileBackend.get_instance(self.path)
        second = InsecureFileBackend.get_instance(self.path)
        self.assertIs(first, second)

    def test_stores_share_backend(self):
        """トークンと資格情報のストアが同じファイルを使うこと"""
        backend = InsecureFileBackend(self.path)
        tokens = InsecureFileBackedTokenStore(backend)
        credentials = InsecureFileBackedCredentialStore(backend)
        self.assertTrue(tokens.add("t", Token("tok", TokenType.PERSONAL)))
        self.assertTrue(credentials.add("c", Credential("user", "pass")))

        reloaded = InsecureFileBackend(self.path)
        self.assertEqual(reloaded.read_token("t").value, "tok")
        self.assertEqual(reloaded.read_credential("c").username, "user")
        self.assertTrue(tokens.delete("t"))
        self.assertIsNone(tokens.get("t"))


class TestInsecureFileBackendWriteFailure(unittest.TestCase):
    """保存先に書き込めない場合のテスト"""

    def setUp(self):
        self.tmp_dir = tempfile.TemporaryDirectory()
        blocker = Path(self.tmp_dir.name) / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        self.path = blocker / "insecureStore.xml"

    def tearDown(self):
        self.tmp_dir.cleanup()

    def test_add_returns_false(self):
        """書き込みに失敗した add はFalseを返し、メモリ上にも残さないこと"""
        backend = InsecureFileBackend(self.path)
        credentials = InsecureFileBackedCredentialStore(backend)
        tokens = InsecureFileBackedTokenStore(backend)

        self.assertFalse(credentials.add("c", Credential("u", "p")))
        self.assertFalse(tokens.add("t", Token("tok", TokenType.PERSONAL)))
        self.assertIsNone(credentials.get("c"))
        self.assertIsNone(tokens.get("t"))
        self.assertEqual(backend.credentials, {})

    def test_failed_overwrite_keeps_previous(self):
        backend = InsecureFileBackend(self.path)
        backend.tokens["t"] = Token("old", TokenType.PERSONAL)

        self.assertFalse(backend.write_token("t", Token("new", TokenType.PERSONAL)))
        self.assertEqual(backend.read_token("t").value, "old")

    def test_delete_returns_false(self):
        """書き込みに失敗した delete はFalseを返し、値を残すこと"""
        backend = InsecureFileBackend(self.path)
        backend.credentials["c"] = Credential("u", "p")

        self.assertFalse(InsecureFileBackedCredentialStore(backend).delete("c"))
        self.assertEqual(backend.read_credential("c"), Credential("u", "p"))

    def test_retriever_returns_acquired_secret(self):
        """保存に失敗しても取得した資格情報は返されること"""
        prompter = MagicMock(spec=CredentialPrompt)
        prompter.prompt.return_value = Credential("user", "secret")
        authenticator = BasicAuthAuthenticator(
            InsecureFileBackedCredentialStore(InsecureFileBackend(self.path)), prompter
        )

        credential = authenticator.get_credential("https://server.example", PromptBehavior.AUTO)

        self.assertEqual(credential, Credential("user", "secret"))


class TestKeyringSecretStore(unittest.TestCase):
    """KeyringSecretStoreのテスト"""

    @patch("vsts_auth.storage.keyring_store.keyring")
    def test_add_and_get(self, mock_keyring):
        """JSONとして保存し、取得時に復元すること"""
        saved = {}
        mock_keyring.set_password.side_effect = lambda service, key, value: saved.__setitem__(key, value)
        mock_keyring.get_password.side_effect = lambda service, key: saved.get(key)

        store = KeyringSecretStore(service_name="test-service")
        self.assertTrue(store.add("k", TokenPair("access", "refresh")))
        restored = store.get("k")

        self.assertEqual(restored, TokenPair("access", "refresh"))
        mock_keyring.set_password.assert_called_once()
        self.assertEqual(mock_keyring.set_password.call_args[0][0], "test-service")

    @patch("vsts_auth.storage.keyring_store.keyring")
    def test_missing_value(self, mock_keyring):
        mock_keyring.get_password.return_value = None
        self.assertIsNone(KeyringSecretStore().get("k"))

    @patch("vsts_auth.storage.keyring_store.keyring")
    def test_undecodable_value(self, mock_keyring):
        """復元できない値はNoneになること"""
        mock_keyring.get_password.return_value = "not json"
        self.assertIsNone(KeyringSecretStore().get("k"))

    @patch("vsts_auth.storage.keyring_store.keyring")
    def test_delete_missing_password(self, mock_keyring):
        """存在しないキーの削除は成功扱いであること"""
        mock_keyring.delete_password.side_effect = PasswordDeleteError("missing")
        self.assertTrue(KeyringSecretStore().delete("k"))

    @patch("vsts_auth.storage.keyring_store.keyring")
    def test_fallback_on_error(self, mock_keyring):
        """keyringが使えない場合はフォールバックに切り替えること"""
        mock_keyring.set_password.side_effect = KeyringError("no backend")
        fallback = InsecureInMemoryStore()
        store = KeyringSecretStore(fallback=fallback)

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            self.assertTrue(store.add("k", Credential("user", "pass")))

        self.assertEqual(fallback.get("k"), Credential("user", "pass"))
        self.assertTrue(any(issubclass(w.category, RuntimeWarning) for w in caught))
        # 以後はkeyringを使わない
        self.assertEqual(store.get("k"), Credential("user", "pass"))
        mock_keyring.get_password.assert_not_called()

    @patch("vsts_auth.storage.keyring_store.keyring")
    def test_error_without_fallback(self, mock_keyring):
        """フォールバックが無い場合はFalseとNoneを返すこと"""
        mock_keyring.set_password.side_effect = KeyringError("no backend")
        mock_keyring.get_password.side_effect = KeyringError("no backend")
        store = KeyringSecretStore()
        self.assertFalse(store.add("k", Credential("user", "pass")))
        self.assertIsNone(store.get("k"))


if __name__ == "__main__":
    unittest.main()
