"""API key storage, one key per feed source."""

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path

import yaml

from feedpublish.exceptions import CredentialStoreError
from feedpublish.sources import normalize_source

logger = logging.getLogger(__name__)


class CredentialStore(ABC):
    """Maps a feed source to the API key last used with it."""

    @abstractmethod
    def read(self, source: str) -> str:
        """Return the stored key for source, or an empty string."""

    @abstractmethod
    def write(self, source: str, api_key: str) -> None:
        """Store api_key for source. An empty key removes the entry."""


class MemoryCredentialStore(CredentialStore):
    def __init__(self, keys: dict[str, str] | None = None) -> None:
        self._keys = {normalize_source(k): v for k, v in (keys or {}).items()}

    def read(self, source: str) -> str:
        return self._keys.get(normalize_source(source), "")

    def write(self, source: str, api_key: str) -> None:
        if api_key:
            self._keys[normalize_source(source)] = api_key
        else:
            self._keys.pop(normalize_source(source), None)


class FileCredentialStore(CredentialStore):
    """Credential store persisted as a YAML mapping readable only by the owner.

    The file is re-read on every access so that several sessions can share it.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def read(self, source: str) -> str:
        return self._load().get(normalize_source(source), "")

    def write(self, source: str, api_key: str) -> None:
        keys = self._load()
        if api_key:
            keys[normalize_source(source)] = api_key
        else:
            keys.pop(normalize_source(source), None)
        self._dump(keys)
        logger.debug("Stored API key for %s in %s", source, self.path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise CredentialStoreError(
                f"Invalid YAML in {self.path}",
                details=str(e),
                fix_hint="Fix or delete the credentials file and set the keys again",
            ) from e
        except OSError as e:
            raise CredentialStoreError(
                f"Cannot read credentials from {self.path}", details=str(e)
            ) from e
        if not data:
            return {}
        if not isinstance(data, dict):
            raise CredentialStoreError(
                f"Credentials file {self.path} must contain a mapping",
                details=f"Found {type(data).__name__}",
            )
        return {str(k): str(v) for k, v in data.items() if v}

    def _dump(self, keys: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(keys, f, default_flow_style=False)
            os.chmod(self.path, 0o600)
        except OSError as e:
            raise CredentialStoreError(
                f"Cannot write credentials to {self.path}", details=str(e)
            ) from e
