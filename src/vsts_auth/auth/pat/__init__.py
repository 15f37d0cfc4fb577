"""Personal Access Token の発行。"""

from vsts_auth.auth.pat.authenticator import VstsPatAuthenticator
from vsts_auth.auth.pat.vso_authority import ALL_ACCOUNTS, VsoAzureAuthority

__all__ = [
    "ALL_ACCOUNTS",
    "VsoAzureAuthority",
    "VstsPatAuthenticator",
]
