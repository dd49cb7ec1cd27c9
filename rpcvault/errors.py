"""
Exception hierarchy for rpcvault.

Every error raised by the channel derives from RpcVaultError so callers
can catch the whole family at the edge of their application.
"""


class RpcVaultError(Exception):
    """Base class for all rpcvault errors."""


class DiscoveryError(RpcVaultError):
    """The server's public key could not be fetched or parsed."""


class TrustRejectedError(RpcVaultError):
    """The candidate server key was declined by the confirmation callback."""


class KeyAgreementError(RpcVaultError):
    """Key material is not a valid point on the curve."""


class AuthenticationError(RpcVaultError):
    """AEAD tag verification failed. No plaintext is released."""


class TransportError(RpcVaultError):
    """Network failure while issuing an RPC call."""


class ChannelStateError(RpcVaultError):
    """Operation attempted in a state that does not allow it."""
