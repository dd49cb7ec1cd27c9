# rpcvault
"""
Encrypted JSON-RPC client channel.

- P-256 ephemeral client identity
- Server key discovery + explicit confirmation (trust-on-confirm)
- ECDH + HKDF-SHA256 session key
- AES-256-GCM frames: [nonce (12) | ciphertext | tag (16)]
- JSON-RPC 2.0 envelopes sent over HTTP with a Public-Key header
"""

from .config import ClientConfig
from .errors import (
    RpcVaultError,
    DiscoveryError,
    TrustRejectedError,
    KeyAgreementError,
    AuthenticationError,
    TransportError,
    ChannelStateError,
)
from .identity.keys import ClientIdentity, ServerIdentity, fingerprint
from .messaging.key_agreement import derive_session_key
from .messaging.secure_channel import CryptoProvider, EncryptedFrame, SecureChannel
from .rpc.client import Client, ClientState
from .rpc.envelope import build_request
from .rpc.transport import RpcResponse
from .trust.store import FileTrustStore, MemoryTrustStore, TrustStore

__version__ = "0.1.0"

__all__ = [
    'ClientConfig',
    'RpcVaultError',
    'DiscoveryError',
    'TrustRejectedError',
    'KeyAgreementError',
    'AuthenticationError',
    'TransportError',
    'ChannelStateError',
    'ClientIdentity',
    'ServerIdentity',
    'fingerprint',
    'derive_session_key',
    'CryptoProvider',
    'EncryptedFrame',
    'SecureChannel',
    'Client',
    'ClientState',
    'build_request',
    'RpcResponse',
    'FileTrustStore',
    'MemoryTrustStore',
    'TrustStore',
]
