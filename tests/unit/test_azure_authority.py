"""
AzureAuthorityとAzureAuthorityProviderのユニットテスト
"""

import unittest
import uuid
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlsplit

import httpx

from vsts_auth.auth import PromptBehavior
from vsts_auth.auth.oauth import (
    AuthorizationResponse,
    AzureAuthority,
    AzureAuthorityProvider,
    detect_tenant_id,
    is_global_uri,
)
from vsts_auth.errors import InvalidInputException
from vsts_auth.helpers.http import HttpClientFactory
from vsts_auth.secret import Token, TokenType

AUTHORITY = "https://login.microsoftonline.com/common"
TENANT = "e3e2a9a3-9c49-4e0a-9b4b-1f5b0c4d7a11"
TOKEN_JSON = '{"access_token":"access","refresh_token":"refresh"}'


def _factory(handler, requests=None):
    def recording(request):
        if requests is not None:
            requests.append(request)
        return handler(request)

    return HttpClientFactory(transport=httpx.MockTransport(recording))


class TestAuthorizationUri(unittest.TestCase):
    """認可URIの構築のテスト"""

    def setUp(self):
        self.authority = AzureAuthority(AUTHORITY)

    def test_parameter_order(self):
        """パラメータが決まった順序で並ぶこと"""
        uri = self.authority.create_authorization_endpoint_uri(
            "resource", "client", "https://redirect.test", login_hint="user@example.com", state="s"
        )
        self.assertEqual(
            uri,
            "https://login.microsoftonline.com/common/oauth2/authorize?resource=resource&client_id=client"
            "&response_type=code&redirect_uri=https%3A%2F%2Fredirect.test&login_hint=user%40example.com&state=s",
        )

    def test_prompt_values(self):
        """ALWAYS は login、NEVER は attempt_none、AUTO は指定なしであること"""
        always = self.authority.create_authorization_endpoint_uri(
            "r", "c", "https://redirect.test", prompt_behavior=PromptBehavior.ALWAYS
        )
        never = self.authority.create_authorization_endpoint_uri(
            "r", "c", "https://redirect.test", prompt_behavior=PromptBehavior.NEVER
        )
        auto = self.authority.create_authorization_endpoint_uri("r", "c", "https://redirect.test")
        self.assertTrue(always.endswith("&prompt=login"))
        self.assertTrue(never.endswith("&prompt=attempt_none"))
        self.assertNotIn("prompt=", auto)

    def test_extra_query_parameters(self):
        """追加パラメータの先頭の & が取り除かれること"""
        uri = self.authority.create_authorization_endpoint_uri(
            "r", "c", "https://redirect.test", query_parameters="&display=popup"
        )
        self.assertTrue(uri.endswith("&display=popup"))
        self.assertNotIn("&&", uri)

    def test_invalid_authority(self):
        with self.assertRaises(InvalidInputException):
            AzureAuthority("not a url")

    def test_endpoints(self):
        self.assertEqual(self.authority.token_endpoint, AUTHORITY + "/oauth2/token")
        self.assertEqual(self.authority.device_endpoint, AUTHORITY + "/oauth2/devicecode")

    def test_token_request_with_correlation_id(self):
        correlation_id = uuid.UUID("06ac412b-8cc0-4ca5-b943-d9dc218abee6")
        content = self.authority.create_token_request("r", "c", "code", "https://redirect.test", correlation_id)
        body = parse_qs(content.body)
        self.assertEqual(body["grant_type"], ["authorization_code"])
        self.assertEqual(body["correlation_id"], [str(correlation_id)])
        self.assertEqual(body["return_client_request_id"], ["true"])


class TestAcquireToken(unittest.TestCase):
    """認可コードフローのテスト"""

    def setUp(self):
        self.requests = []
        self.user_agent = MagicMock()

    def _authority(self, handler):
        return AzureAuthority(
            AUTHORITY,
            self.user_agent,
            _factory(handler, self.requests),
            state_factory=lambda: "right",
        )

    def test_exchanges_code(self):
        """認可コードをトークンと交換すること"""
        self.user_agent.request_authorization_code.return_value = AuthorizationResponse(code="abc", state="right")
        authority = self._authority(lambda request: httpx.Response(200, text=TOKEN_JSON))

        token_pair = authority.acquire_token("client", "resource", "https://redirect.test", "display=popup")

        self.assertEqual(token_pair.access_token.value, "access")
        authorization_uri = self.user_agent.request_authorization_code.call_args[0][0]
        query = parse_qs(urlsplit(authorization_uri).query)
        self.assertEqual(query["state"], ["right"])
        self.assertEqual(query["prompt"], ["login"])
        self.assertEqual(query["display"], ["popup"])
        body = parse_qs(self.requests[0].content.decode())
        self.assertEqual(body["code"], ["abc"])
        self.assertEqual(str(self.requests[0].url), AUTHORITY + "/oauth2/token")

    def test_state_mismatch(self):
        """state が一致しない場合はトークンエンドポイントを呼ばないこと"""
        self.user_agent.request_authorization_code.return_value = AuthorizationResponse(code="abc", state="wrong")
        authority = self._authority(lambda request: httpx.Response(200, text=TOKEN_JSON))

        self.assertIsNone(authority.acquire_token("client", "resource", "https://redirect.test"))
        self.assertEqual(self.requests, [])

    def test_token_endpoint_error(self):
        """トークンエンドポイントのエラーはNoneになること"""
        self.user_agent.request_authorization_code.return_value = AuthorizationResponse(code="abc", state="right")
        authority = self._authority(lambda request: httpx.Response(400, text='{"error":"invalid_grant"}'))
        self.assertIsNone(authority.acquire_token("client", "resource", "https://redirect.test"))

    def test_requires_client_id(self):
        authority = self._authority(lambda request: httpx.Response(200, text=TOKEN_JSON))
        with self.assertRaises(InvalidInputException):
            authority.acquire_token("", "resource", "https://redirect.test")


class TestRefresh(unittest.TestCase):
    """リフレッシュのテスト"""

    def test_refresh_request(self):
        """refresh_token グラントを送ること"""
        requests = []
        authority = AzureAuthority(AUTHORITY, http_client_factory=_factory(
            lambda request: httpx.Response(200, text='{"access_token":"new","refresh_token":"new-refresh"}'),
            requests,
        ))

        token_pair = authority.acquire_token_by_refresh_token("client", "resource", Token("old", TokenType.REFRESH))

        self.assertEqual(token_pair.refresh_token.value, "new-refresh")
        body = parse_qs(requests[0].content.decode())
        self.assertEqual(body["grant_type"], ["refresh_token"])
        self.assertEqual(body["refresh_token"], ["old"])

    def test_refresh_keeps_previous_refresh_token(self):
        """応答にリフレッシュトークンが無ければ以前のものを引き継ぐこと"""
        authority = AzureAuthority(
            AUTHORITY, http_client_factory=_factory(lambda request: httpx.Response(200, text='{"access_token":"new"}'))
        )
        token_pair = authority.acquire_token_by_refresh_token("client", "resource", Token("old", TokenType.REFRESH))
        self.assertEqual(token_pair.access_token.value, "new")
        self.assertEqual(token_pair.refresh_token.value, "old")

    def test_refresh_failure(self):
        authority = AzureAuthority(
            AUTHORITY, http_client_factory=_factory(lambda request: httpx.Response(401, text="denied"))
        )
        self.assertIsNone(
            authority.acquire_token_by_refresh_token("client", "resource", Token("old", TokenType.REFRESH))
        )


class TestDeviceFlowAcquisition(unittest.TestCase):
    """デバイスフローによる取得のテスト"""

    def test_callback_receives_response(self):
        """コールバックにユーザーコードが渡され、トークンが返ること"""
        responses = [
            httpx.Response(
                200, json={"device_code": "d", "user_code": "ABC", "verification_url": "https://aka.ms/devicelogin"}
            ),
            httpx.Response(400, json={"error": "authorization_pending"}),
            httpx.Response(200, text=TOKEN_JSON),
        ]
        requests = []
        sleeps = []
        authority = AzureAuthority(
            AUTHORITY,
            http_client_factory=_factory(lambda request: responses.pop(0), requests),
            sleep=sleeps.append,
            clock=lambda: 0.0,
        )
        callback = MagicMock()

        token_pair = authority.acquire_token_with_device_flow("client", "resource", "https://redirect.test", callback)

        self.assertEqual(token_pair.access_token.value, "access")
        self.assertEqual(callback.call_args[0][0].user_code, "ABC")
        self.assertEqual(str(requests[0].url), AUTHORITY + "/oauth2/devicecode")
        self.assertEqual(sleeps, [5])


class TestTenantDetection(unittest.TestCase):
    """テナント検出のテスト"""

    def test_tenant_header(self):
        requests = []
        factory = _factory(lambda request: httpx.Response(200, headers={"X-VSS-ResourceTenant": TENANT}), requests)
        self.assertEqual(detect_tenant_id("https://account.visualstudio.com", factory), uuid.UUID(TENANT))
        self.assertEqual(requests[0].method, "HEAD")

    def test_not_a_uuid(self):
        """UUIDでないヘッダーはMSAとして扱うこと"""
        factory = _factory(lambda request: httpx.Response(200, headers={"X-VSS-ResourceTenant": "nope"}))
        self.assertIsNone(detect_tenant_id("https://account.visualstudio.com", factory))

    def test_nil_uuid(self):
        factory = _factory(
            lambda request: httpx.Response(200, headers={"X-VSS-ResourceTenant": str(uuid.UUID(int=0))})
        )
        self.assertIsNone(detect_tenant_id("https://dev.azure.com/org", factory))

    def test_other_host_skipped(self):
        """対象外のホストには問い合わせないこと"""
        requests = []
        factory = _factory(lambda request: httpx.Response(200), requests)
        self.assertIsNone(detect_tenant_id("https://github.com/org", factory))
        self.assertEqual(requests, [])

    def test_lookalike_host_skipped(self):
        """visualstudio.com で終わるだけの別ドメインには問い合わせないこと"""
        requests = []
        factory = _factory(lambda request: httpx.Response(200), requests)
        self.assertIsNone(detect_tenant_id("https://evilvisualstudio.com", factory))
        self.assertIsNone(detect_tenant_id("https://notazure.com/org", factory))
        self.assertEqual(requests, [])

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        self.assertIsNone(detect_tenant_id("https://account.visualstudio.com", _factory(handler)))


class TestAzureAuthorityProvider(unittest.TestCase):
    """AzureAuthorityProviderのテスト"""

    def test_global_uri_uses_common(self):
        requests = []
        provider = AzureAuthorityProvider(http_client_factory=_factory(lambda request: httpx.Response(200), requests))
        authority = provider.get_azure_authority("https://app.vssps.visualstudio.com/")
        self.assertEqual(authority.authority_host_url, AUTHORITY)
        self.assertEqual(requests, [])

    def test_tenant_authority(self):
        """テナントが検出されればその権限URLを使うこと"""
        provider = AzureAuthorityProvider(
            http_client_factory=_factory(lambda request: httpx.Response(200, headers={"X-VSS-ResourceTenant": TENANT}))
        )
        authority = provider.get_azure_authority("https://account.visualstudio.com")
        self.assertEqual(authority.authority_host_url, f"https://login.microsoftonline.com/{TENANT}")

    def test_msa_uses_common(self):
        provider = AzureAuthorityProvider(http_client_factory=_factory(lambda request: httpx.Response(200)))
        self.assertEqual(provider.get_azure_authority("https://account.visualstudio.com").authority_host_url, AUTHORITY)

    def test_is_global_uri(self):
        self.assertTrue(is_global_uri("https://APP.vssps.visualstudio.com"))
        self.assertFalse(is_global_uri("https://account.visualstudio.com"))
        self.assertFalse(is_global_uri(None))


if __name__ == "__main__":
    unittest.main()
