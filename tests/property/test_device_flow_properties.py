"""
デバイスフローのポーリング間隔のプロパティテスト

authorization_pending では同じ間隔で待ち、slow_down のたびに間隔が倍になることを検証する
"""

import json
import unittest

import httpx
from hypothesis import given, settings
from hypothesis import strategies as st

from vsts_auth.auth.oauth.device_flow import DeviceFlow, DeviceFlowResponse
from vsts_auth.helpers.http import HttpClientFactory

TOKEN_ENDPOINT = "https://login.example.com/common/oauth2/token"
TOKEN_JSON = '{"access_token":"access","refresh_token":"refresh"}'


class TestPollingIntervalProperty(unittest.TestCase):
    """DeviceFlow.request_token の待ち時間のプロパティテスト"""

    @given(
        interval=st.integers(min_value=1, max_value=10),
        errors=st.lists(st.sampled_from(["authorization_pending", "slow_down"]), max_size=8),
    )
    @settings(max_examples=100)
    def test_sleep_sequence(self, interval, errors):
        """待ち時間の列は応答のエラー種別だけで決まる"""
        responses = [httpx.Response(400, text=json.dumps({"error": error})) for error in errors]
        responses.append(httpx.Response(200, text=TOKEN_JSON))
        remaining = iter(responses)

        def handler(request):
            return next(remaining)

        sleeps = []
        flow = DeviceFlow(
            HttpClientFactory(transport=httpx.MockTransport(handler)),
            sleep=sleeps.append,
            clock=lambda: 0.0,
        )
        response = DeviceFlowResponse("device", "user", "https://aka.ms/devicelogin", 600, interval, clock=lambda: 0.0)

        token_pair = flow.request_token(TOKEN_ENDPOINT, "client", response)

        expected = []
        current = interval
        for error in errors:
            if error == "slow_down":
                current *= 2
            expected.append(current)
        self.assertEqual(sleeps, expected)
        self.assertEqual(token_pair.access_token.value, "access")
        self.assertTrue(response.is_token_acquired)


if __name__ == "__main__":
    unittest.main()
