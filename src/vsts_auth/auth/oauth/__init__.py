"""Azure AD の OAuth 2.0 クライアント。"""

from vsts_auth.auth.oauth.authenticator import (
    MANAGEMENT_CORE_RESOURCE,
    POPUP_QUERY_PARAM,
    VALIDATION_ENDPOINT,
    VSTS_RESOURCE,
    OAuth2Authenticator,
    OAuth2AuthenticatorBuilder,
)
from vsts_auth.auth.oauth.authority import (
    AUTHORITY_HOST_URL_BASE,
    COMMON_TENANT,
    DEFAULT_AUTHORITY_HOST_URL,
    AzureAuthority,
    detect_tenant_id,
    get_authority_url,
)
from vsts_auth.auth.oauth.authority_provider import (
    APP_VSSPS_VISUALSTUDIO,
    AzureAuthorityProvider,
    is_global_uri,
)
from vsts_auth.auth.oauth.device_flow import (
    AzureDeviceFlow,
    AzureDeviceFlowResponse,
    DeviceFlow,
    DeviceFlowCallback,
    DeviceFlowResponse,
    DeviceFlowState,
)
from vsts_auth.auth.oauth.swt_loader import SwtJarLoader
from vsts_auth.auth.oauth.user_agent import (
    AuthorizationResponse,
    OAuth2UseragentValidator,
    SwtProvider,
    SystemBrowserProvider,
    SystemBrowserUserAgent,
    UserAgent,
    UserAgentProvider,
)

__all__ = [
    "APP_VSSPS_VISUALSTUDIO",
    "AUTHORITY_HOST_URL_BASE",
    "COMMON_TENANT",
    "DEFAULT_AUTHORITY_HOST_URL",
    "MANAGEMENT_CORE_RESOURCE",
    "POPUP_QUERY_PARAM",
    "VALIDATION_ENDPOINT",
    "VSTS_RESOURCE",
    "AuthorizationResponse",
    "AzureAuthority",
    "AzureAuthorityProvider",
    "AzureDeviceFlow",
    "AzureDeviceFlowResponse",
    "DeviceFlow",
    "DeviceFlowCallback",
    "DeviceFlowResponse",
    "DeviceFlowState",
    "OAuth2Authenticator",
    "OAuth2AuthenticatorBuilder",
    "OAuth2UseragentValidator",
    "SwtJarLoader",
    "SwtProvider",
    "SystemBrowserProvider",
    "SystemBrowserUserAgent",
    "UserAgent",
    "UserAgentProvider",
    "detect_tenant_id",
    "get_authority_url",
    "is_global_uri",
]
