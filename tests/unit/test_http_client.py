"""
HTTPクライアントのユニットテスト

httpx.MockTransport で通信を置き換える
"""

import unittest

import httpx

from vsts_auth.config import VstsAuthSettings
from vsts_auth.errors import TransportException, UpstreamException
from vsts_auth.helpers.http import HttpClient, HttpClientFactory, StringContent


class TestHttpClient(unittest.TestCase):
    """HttpClientのテスト"""

    def setUp(self):
        self.requests = []

    def _client(self, handler):
        def recording(request):
            self.requests.append(request)
            return handler(request)

        return HttpClient(transport=httpx.MockTransport(recording))

    def test_get_response_text(self):
        """本文が返り、既定ヘッダーが付与されること"""
        client = self._client(lambda request: httpx.Response(200, text="hello"))
        client.headers["Authorization"] = "Bearer abc"

        self.assertEqual(client.get_response_text("https://example.com/a"), "hello")
        request = self.requests[0]
        self.assertEqual(request.headers["Authorization"], "Bearer abc")
        self.assertTrue(request.headers["User-Agent"].startswith("vsts-auth/"))

    def test_non_2xx_raises(self):
        """2xx以外はUpstreamExceptionになること"""
        client = self._client(lambda request: httpx.Response(401, text="denied"))
        with self.assertRaises(UpstreamException) as ctx:
            client.get_response_text("https://example.com/a")
        self.assertEqual(ctx.exception.status, 401)
        self.assertEqual(ctx.exception.body, "denied")

    def test_transport_error(self):
        """通信失敗はTransportExceptionになること"""

        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = self._client(handler)
        with self.assertRaises(TransportException):
            client.get_status("https://example.com/a")

    def test_timeout(self):
        """タイムアウトは専用のコードになること"""

        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        client = self._client(handler)
        with self.assertRaises(TransportException) as ctx:
            client.get_status("https://example.com/a")
        self.assertEqual(ctx.exception.error.code, "TRANSPORT_002")

    def test_get_header_field_uses_head(self):
        """HEADで取得し、リダイレクトを辿らないこと"""
        client = self._client(
            lambda request: httpx.Response(
                302, headers={"X-VSS-ResourceTenant": "abc", "Location": "https://other.example.com/"}
            )
        )
        self.assertEqual(client.get_header_field("https://example.com", "X-VSS-ResourceTenant"), "abc")
        self.assertEqual(len(self.requests), 1)
        self.assertEqual(self.requests[0].method, "HEAD")

    def test_post_response_error_text(self):
        """エラー応答の本文がerror_textに入ること"""
        client = self._client(lambda request: httpx.Response(400, text='{"error":"authorization_pending"}'))
        response = client.post_response("https://example.com/token", StringContent.create_url_encoded({"a": "b"}))
        self.assertEqual(response.status, 400)
        self.assertFalse(response.is_success)
        self.assertIsNone(response.response_text)
        self.assertIn("authorization_pending", response.error_text)

    def test_post_form_body(self):
        """フォーム形式の本文とContent-Typeが送られること"""
        client = self._client(lambda request: httpx.Response(200, text="ok"))
        client.post_response_text(
            "https://example.com/token",
            StringContent.create_url_encoded({"grant_type": "refresh_token", "refresh_token": "a b"}),
        )
        request = self.requests[0]
        self.assertEqual(request.headers["Content-Type"], "application/x-www-form-urlencoded")
        self.assertEqual(request.content, b"grant_type=refresh_token&refresh_token=a+b")

    def test_get_response_content(self):
        client = self._client(lambda request: httpx.Response(200, content=b"\x00\x01"))
        self.assertEqual(client.get_response_content("https://example.com/file.jar"), b"\x00\x01")


class TestStringContent(unittest.TestCase):
    """StringContentのテスト"""

    def test_json_from_mapping(self):
        content = StringContent.create_json({"a": 1})
        self.assertEqual(content.content_type, "application/json")
        self.assertEqual(content.body, '{"a": 1}')

    def test_json_from_string(self):
        """文字列はそのまま本文になること"""
        self.assertEqual(StringContent.create_json('{"a":1}').body, '{"a":1}')


class TestHttpClientFactory(unittest.TestCase):
    """HttpClientFactoryのテスト"""

    def test_from_settings(self):
        """プロキシとタイムアウトが設定から反映されること"""
        settings = VstsAuthSettings(http_proxy_host="proxy.local", http_proxy_port=8888, http_timeout=5)
        factory = HttpClientFactory.from_settings(settings)
        self.assertEqual(factory.proxy, "http://proxy.local:8888")
        self.assertEqual(factory.timeout, 5)
        self.assertTrue(factory.verify)

    def test_from_settings_trust_store(self):
        """トラストストアはCAバンドルとして検証に使われること"""
        settings = VstsAuthSettings(trust_store="/etc/ssl/corp-ca.pem")
        factory = HttpClientFactory.from_settings(settings)
        self.assertEqual(factory.verify, "/etc/ssl/corp-ca.pem")

    def test_create_http_client(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(204))
        client = HttpClientFactory(transport=transport).create_http_client()
        self.assertEqual(client.get_status("https://example.com"), 204)


if __name__ == "__main__":
    unittest.main()
