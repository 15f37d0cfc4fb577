"""対象URIに応じた AzureAuthority の選択。"""

from __future__ import annotations

import logging
import time

from vsts_auth.auth.oauth.authority import (
    AUTHORITY_HOST_URL_BASE,
    COMMON_TENANT,
    AzureAuthority,
    detect_tenant_id,
    get_authority_url,
)
from vsts_auth.auth.oauth.device_flow import Clock, Sleep
from vsts_auth.auth.oauth.user_agent import UserAgent
from vsts_auth.helpers.http import HttpClientFactory

logger = logging.getLogger(__name__)

APP_VSSPS_VISUALSTUDIO = "https://app.vssps.visualstudio.com"


def is_global_uri(uri: str | None) -> bool:
    """アカウントを特定しないグローバルURIかどうか。"""

    return uri is not None and uri.rstrip("/").lower() == APP_VSSPS_VISUALSTUDIO


class AzureAuthorityProvider:
    """テナントを検出し、対応する AzureAuthority を返す。

    グローバルURIとMSAアカウントには `common` テナントを使う。
    """

    def __init__(
        self,
        authority_host: str = AUTHORITY_HOST_URL_BASE,
        user_agent: UserAgent | None = None,
        http_client_factory: HttpClientFactory | None = None,
        *,
        sleep: Sleep = time.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self._authority_host = authority_host.rstrip("/")
        self._user_agent = user_agent
        self._http_client_factory = http_client_factory or HttpClientFactory()
        self._sleep = sleep
        self._clock = clock

    @property
    def default_authority(self) -> AzureAuthority:
        return self._create(get_authority_url(COMMON_TENANT, self._authority_host))

    def get_azure_authority(self, uri: str) -> AzureAuthority:
        if is_global_uri(uri):
            return self.default_authority

        logger.debug("Lookup tenant id for %s", uri)
        tenant_id = detect_tenant_id(uri, self._http_client_factory)
        logger.debug("tenant id for %s is %s", uri, tenant_id)
        if tenant_id is None:
            return self.default_authority
        return self._create(get_authority_url(tenant_id, self._authority_host))

    def _create(self, authority_host_url: str) -> AzureAuthority:
        return AzureAuthority(
            authority_host_url,
            self._user_agent,
            self._http_client_factory,
            sleep=self._sleep,
            clock=self._clock,
        )
