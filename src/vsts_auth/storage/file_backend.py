"""平文XMLファイルにトークンと資格情報を保存するバックエンド。"""

from __future__ import annotations

import logging
import os
from pathlib import Path
import threading
from typing import ClassVar
import warnings
import xml.etree.ElementTree as ET

from vsts_auth.errors import InvalidInputException
from vsts_auth.secret import Credential, Token
from vsts_auth.storage.base import SecretStore

logger = logging.getLogger(__name__)

PROGRAM_FOLDER_NAME = "VSTeamServicesAuthPlugin"
INSECURE_STORE_FILE_NAME = "insecureStore.xml"

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'


def _first_valid_folder(*candidates: str | None) -> Path:
    for candidate in candidates:
        if candidate and Path(candidate).is_dir():
            return Path(candidate)
    return Path.home()


def default_backing_file() -> Path:
    """プラットフォームごとの既定の保存先を返す。

    Windowsでは `%LocalAppData%`、`%AppData%`、`%UserProfile%` の順に探す。
    それ以外ではホームディレクトリ直下の隠しフォルダを使う。
    """

    if os.name == "nt":
        parent = _first_valid_folder(
            os.environ.get("LOCALAPPDATA"),
            os.environ.get("APPDATA"),
            os.environ.get("USERPROFILE"),
        )
        folder = parent / PROGRAM_FOLDER_NAME
    else:
        parent = _first_valid_folder(os.environ.get("HOME"))
        folder = parent / f".{PROGRAM_FOLDER_NAME}"
    return folder / INSECURE_STORE_FILE_NAME


class InsecureFileBackend:
    """`insecureStore.xml` の読み書きを担う。

    変更のたびにファイル全体を書き直し、所有者のみ読み書き可能な権限に絞る。
    破損したファイルは警告を出して空のストアとして扱い、削除はしない。
    """

    _instances: ClassVar[dict[Path, InsecureFileBackend]] = {}
    _instances_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, backing_file: Path | None) -> None:
        """InsecureFileBackendを初期化する。

        Args:
            backing_file: 保存先ファイル。Noneの場合はメモリ上のみで保持する。
        """

        self._backing_file = backing_file
        self._lock = threading.RLock()
        self.tokens: dict[str, Token | None] = {}
        self.credentials: dict[str, Credential | None] = {}
        self.reload()

    @classmethod
    def get_instance(cls, backing_file: Path | None = None) -> InsecureFileBackend:
        """保存先ごとに共有されるインスタンスを返す。"""

        path = (backing_file or default_backing_file()).expanduser().resolve()
        with cls._instances_lock:
            instance = cls._instances.get(path)
            if instance is None:
                instance = cls(path)
                cls._instances[path] = instance
            return instance

    @property
    def backing_file(self) -> Path | None:
        return self._backing_file

    def reload(self) -> None:
        path = self._backing_file
        if path is None or not path.is_file() or path.stat().st_size == 0:
            return

        try:
            data = path.read_bytes()
        except FileNotFoundError:
            logger.info("backing file %s did not exist", path)
            return

        clone = self.from_xml(data)
        if clone is not None:
            with self._lock:
                self.tokens = dict(clone.tokens)
                self.credentials = dict(clone.credentials)

    def save(self) -> bool:
        """内容をファイルに書き出す。書き込めなければ記録してFalseを返す。"""

        path = self._backing_file
        if path is None:
            return True

        try:
            path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as file:
                file.write(self.to_xml())
        except OSError as exc:
            logger.error("Failed to write secrets to %s: %s", path, exc)
            return False
        try:
            os.chmod(path, 0o600)
        except OSError:
            logger.warning("Unable to restrict file permissions to owner: %s", path)
        return True

    @classmethod
    def from_xml(cls, source: bytes | str) -> InsecureFileBackend | None:
        """XML文書から内容を復元する。解釈できない場合はNone。"""

        if isinstance(source, str):
            source = source.encode("utf-8")

        result = cls(None)
        try:
            root = ET.fromstring(source)
            for section in root:
                if section.tag == "Tokens":
                    result.tokens.clear()
                    for entry in section.iter("entry"):
                        key = entry.findtext("key")
                        node = entry.find("value")
                        result.tokens[key] = Token.from_xml(node) if node is not None else None
                elif section.tag == "Credentials":
                    result.credentials.clear()
                    for entry in section.iter("entry"):
                        key = entry.findtext("key")
                        node = entry.find("value")
                        result.credentials[key] = Credential.from_xml(node) if node is not None else None
        except (ET.ParseError, InvalidInputException, ValueError) as exc:
            logger.warning("unable to deserialize InsecureFileBackend. Is the file corrupted? %s", exc)
            warnings.warn(
                "シークレット保存ファイルの形式が不正です。空として扱います。",
                RuntimeWarning,
                stacklevel=2,
            )
            return None
        return result

    def to_xml(self) -> str:
        root = ET.Element("insecureStore")
        tokens_node = ET.SubElement(root, "Tokens")
        with self._lock:
            for key, token in self.tokens.items():
                entry = ET.SubElement(tokens_node, "entry")
                ET.SubElement(entry, "key").text = key
                if token is not None:
                    entry.append(token.to_xml())
            credentials_node = ET.SubElement(root, "Credentials")
            for key, credential in self.credentials.items():
                entry = ET.SubElement(credentials_node, "entry")
                ET.SubElement(entry, "key").text = key
                if credential is not None:
                    entry.append(credential.to_xml())
        ET.indent(root, space="    ")
        return XML_DECLARATION + ET.tostring(root, encoding="unicode") + "\n"

    def delete(self, target_name: str) -> bool:
        with self._lock:
            for entries in (self.tokens, self.credentials):
                if target_name in entries:
                    previous = entries.pop(target_name)
                    if not self.save():
                        entries[target_name] = previous
                        return False
                    break
            return True

    def read_credential(self, target_name: str) -> Credential | None:
        with self._lock:
            return self.credentials.get(target_name)

    def read_token(self, target_name: str) -> Token | None:
        with self._lock:
            return self.tokens.get(target_name)

    def write_credential(self, target_name: str, credential: Credential | None) -> bool:
        return self._write(self.credentials, target_name, credential)

    def write_token(self, target_name: str, token: Token | None) -> bool:
        return self._write(self.tokens, target_name, token)

    def _write(self, entries: dict, target_name: str, secret: Token | Credential | None) -> bool:
        # 書き込みに失敗した場合はメモリ上の値も元に戻す
        with self._lock:
            existed = target_name in entries
            previous = entries.get(target_name)
            entries[target_name] = secret
            if self.save():
                return True
            if existed:
                entries[target_name] = previous
            else:
                del entries[target_name]
            return False


class InsecureFileBackedTokenStore(SecretStore[Token]):
    """InsecureFileBackend を使うトークンストア。"""

    def __init__(self, backend: InsecureFileBackend | None = None) -> None:
        super().__init__()
        self._backend = backend or InsecureFileBackend.get_instance()

    def get(self, key: str) -> Token | None:
        with self.lock:
            return self._backend.read_token(key)

    def delete(self, key: str) -> bool:
        with self.lock:
            return self._backend.delete(key)

    def add(self, key: str, secret: Token) -> bool:
        with self.lock:
            return self._backend.write_token(key, secret)


class InsecureFileBackedCredentialStore(SecretStore[Credential]):
    """InsecureFileBackend を使う資格情報ストア。"""

    def __init__(self, backend: InsecureFileBackend | None = None) -> None:
        super().__init__()
        self._backend = backend or InsecureFileBackend.get_instance()

    def get(self, key: str) -> Credential | None:
        with self.lock:
            return self._backend.read_credential(key)

    def delete(self, key: str) -> bool:
        with self.lock:
            return self._backend.delete(key)

    def add(self, key: str, secret: Credential) -> bool:
        with self.lock:
            return self._backend.write_credential(key, secret)
