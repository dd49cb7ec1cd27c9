"""
rpcvault configuration

Client settings with defaults, optionally overridden from RPCVAULT_*
environment variables.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional


ENV_PREFIX = "RPCVAULT_"

# Default location for pinned server keys (used by the CLI)
DEFAULT_TRUST_STORE_PATH = Path.home() / ".rpcvault" / "trusted_servers.json"


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or value.strip() == "":
        return None
    return float(value)


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() == "":
        return None
    return int(value)


@dataclass
class ClientConfig:
    """
    Client configuration.

    No timeout is applied by default: callers impose their own deadline
    or set request_timeout.
    """
    request_timeout: Optional[float] = None   # seconds, total per HTTP call
    fixed_request_id: Optional[int] = None    # None = increasing ids
    trust_store_path: Optional[Path] = None   # None = in-memory pinning only

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'ClientConfig':
        """
        Build a config from environment variables.

        RPCVAULT_REQUEST_TIMEOUT, RPCVAULT_FIXED_REQUEST_ID,
        RPCVAULT_TRUST_STORE.

        Raises:
            ValueError: If a numeric variable does not parse
        """
        env = os.environ if environ is None else environ
        store = env.get(ENV_PREFIX + "TRUST_STORE")
        return cls(
            request_timeout=_optional_float(env.get(ENV_PREFIX + "REQUEST_TIMEOUT")),
            fixed_request_id=_optional_int(env.get(ENV_PREFIX + "FIXED_REQUEST_ID")),
            trust_store_path=Path(store).expanduser() if store else None,
        )
