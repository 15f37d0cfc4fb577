"""シークレットストアの実装。"""

from vsts_auth.storage.base import SecretStore
from vsts_auth.storage.file_backend import (
    InsecureFileBackedCredentialStore,
    InsecureFileBackedTokenStore,
    InsecureFileBackend,
    default_backing_file,
)
from vsts_auth.storage.keyring_store import KeyringSecretStore
from vsts_auth.storage.memory import InsecureInMemoryStore

__all__ = [
    "InsecureFileBackedCredentialStore",
    "InsecureFileBackedTokenStore",
    "InsecureFileBackend",
    "InsecureInMemoryStore",
    "KeyringSecretStore",
    "SecretStore",
    "default_backing_file",
]
