"""プロセス内のみで保持するシークレットストア。"""

from __future__ import annotations

from vsts_auth.storage.base import E, SecretStore


class InsecureInMemoryStore(SecretStore[E]):
    """辞書に保持するだけのストア。永続化しない。"""

    def __init__(self) -> None:
        super().__init__()
        self._store: dict[str, E] = {}

    def get(self, key: str) -> E | None:
        with self.lock:
            return self._store.get(key)

    def delete(self, key: str) -> bool:
        with self.lock:
            self._store.pop(key, None)
            return True

    def add(self, key: str, secret: E) -> bool:
        with self.lock:
            self._store[key] = secret
            return True

    def __len__(self) -> int:
        return len(self._store)
