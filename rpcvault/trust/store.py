"""
Trust Store Module

Pinning of confirmed server identities so later runs can skip the
confirmation prompt.

- MemoryTrustStore: process-lifetime pins (also handy to pre-seed a key
  known in advance)
- FileTrustStore: JSON file mapping server URL -> compressed key hex

Only identities that already passed confirmation may be saved.

File Format:
    {
        "version": 1,
        "servers": {"https://rpc.example": "02ab..."}
    }
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional

from ..errors import KeyAgreementError
from ..identity.keys import ServerIdentity, public_key_from_hex


logger = logging.getLogger(__name__)

STORE_VERSION = 1


def _normalize_url(url: str) -> str:
    return url.rstrip('/')


class TrustStore:
    """Interface for pinned server identities."""

    def load(self, url: str) -> Optional[ServerIdentity]:
        raise NotImplementedError

    def save(self, identity: ServerIdentity) -> None:
        raise NotImplementedError

    def forget(self, url: str) -> bool:
        raise NotImplementedError


class MemoryTrustStore(TrustStore):
    """Pins held in a dict for the life of the process."""

    def __init__(self):
        self._pins: Dict[str, bytes] = {}

    def load(self, url: str) -> Optional[ServerIdentity]:
        key = self._pins.get(_normalize_url(url))
        if key is None:
            return None
        return ServerIdentity(url=url, public_key=key)

    def save(self, identity: ServerIdentity) -> None:
        self._pins[_normalize_url(identity.url)] = identity.public_key

    def forget(self, url: str) -> bool:
        return self._pins.pop(_normalize_url(url), None) is not None

    def __len__(self) -> int:
        return len(self._pins)


class FileTrustStore(TrustStore):
    """
    Pins persisted as JSON.

    Writes go to a temporary file in the same directory and are renamed
    into place, so a crash never leaves a half-written store. The file is
    created with mode 0600.
    """

    def __init__(self, path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        with self._path.open('r', encoding='utf-8') as f:
            data = json.load(f)
        if data.get('version') != STORE_VERSION:
            raise ValueError(f"Unsupported trust store version: {data.get('version')}")
        return dict(data.get('servers', {}))

    def _write(self, servers: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix='.trust-')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump({'version': STORE_VERSION, 'servers': servers}, f, indent=2)
            os.chmod(tmp, 0o600)
            os.replace(tmp, self._path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def load(self, url: str) -> Optional[ServerIdentity]:
        """
        Pinned identity for `url`, or None.

        Raises:
            KeyAgreementError: If the pinned key is corrupted
        """
        key_hex = self._read().get(_normalize_url(url))
        if key_hex is None:
            return None
        try:
            key = public_key_from_hex(key_hex)
        except KeyAgreementError:
            logger.error("Pinned key for %s in %s is corrupted", url, self._path)
            raise
        return ServerIdentity(url=url, public_key=key)

    def save(self, identity: ServerIdentity) -> None:
        servers = self._read()
        servers[_normalize_url(identity.url)] = identity.public_hex
        self._write(servers)
        logger.info("Pinned server key for %s in %s", identity.url, self._path)

    def forget(self, url: str) -> bool:
        servers = self._read()
        if servers.pop(_normalize_url(url), None) is None:
            return False
        self._write(servers)
        return True
