"""
Secure Channel Module

Per-message authenticated encryption under the derived session key:
- AES-256-GCM (96-bit nonce, 128-bit tag), no associated data
- Fresh random nonce for every frame

Frame Format:
    [nonce (12 bytes) | ciphertext | tag (16 bytes)]

The sender's compressed public key travels next to the frame (in the
Public-Key header), so the receiver can recompute the session key
without a handshake.

Randomness and the AEAD primitive come from a CryptoProvider chosen once
when the channel is built.
"""

import secrets
from dataclasses import dataclass
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..errors import AuthenticationError


# Constants
AES_KEY_SIZE = 32   # 256 bits
NONCE_SIZE = 12     # 96 bits for GCM
TAG_SIZE = 16       # 128 bits for GCM tag


class CryptoProvider:
    """
    Secure random source and AEAD factory.

    The default implementation reads the OS CSPRNG through `secrets` and
    uses AES-GCM from `cryptography`. Subclass to plug in another source
    (an HSM, a deterministic source for interop vectors).
    """

    def random_bytes(self, length: int) -> bytes:
        """Cryptographically secure random bytes."""
        return secrets.token_bytes(length)

    def aead(self, key: bytes) -> AESGCM:
        """AES-GCM instance bound to `key`."""
        return AESGCM(key)


DEFAULT_PROVIDER = CryptoProvider()


@dataclass(frozen=True)
class EncryptedFrame:
    """
    Self-describing ciphertext frame.

    Format: [nonce | ciphertext_with_tag]
    """
    nonce: bytes                 # 12 bytes
    ciphertext_with_tag: bytes   # len(plaintext) + 16

    def to_bytes(self) -> bytes:
        return self.nonce + self.ciphertext_with_tag

    @classmethod
    def from_bytes(cls, data: bytes) -> 'EncryptedFrame':
        """
        Split wire bytes into nonce and ciphertext.

        Raises:
            AuthenticationError: If the frame is too short to hold a
                nonce and a tag
        """
        data = bytes(data)
        if len(data) < NONCE_SIZE + TAG_SIZE:
            raise AuthenticationError(
                f"Frame too short: {len(data)} bytes, need at least {NONCE_SIZE + TAG_SIZE}"
            )
        return cls(data[:NONCE_SIZE], data[NONCE_SIZE:])

    @property
    def tag(self) -> bytes:
        return self.ciphertext_with_tag[-TAG_SIZE:]


def _check_key(key: bytes) -> None:
    if len(key) != AES_KEY_SIZE:
        raise ValueError(f"Key must be {AES_KEY_SIZE} bytes")


class SecureChannel:
    """
    AES-256-GCM frame encryption.

    Stateless apart from the provider: the session key is passed on each
    call, so concurrent calls never share mutable state and each draws
    its own nonce.

    Example:
        channel = SecureChannel()
        frame = channel.encrypt(b"payload", session_key)
        assert channel.decrypt(frame, session_key) == b"payload"
    """

    def __init__(self, provider: Optional[CryptoProvider] = None):
        self._provider = provider or DEFAULT_PROVIDER

    @property
    def provider(self) -> CryptoProvider:
        return self._provider

    def generate_nonce(self) -> bytes:
        """
        12 random bytes for AES-GCM.

        CRITICAL: Never reuse a nonce with the same key!
        """
        return self._provider.random_bytes(NONCE_SIZE)

    def encrypt(self, plaintext: bytes, key: bytes) -> EncryptedFrame:
        """
        Encrypt plaintext under `key` with a fresh nonce.

        Args:
            plaintext: Data to encrypt
            key: 32-byte session key

        Returns:
            EncryptedFrame holding nonce and ciphertext+tag
        """
        _check_key(key)
        nonce = self.generate_nonce()
        ciphertext_with_tag = self._provider.aead(key).encrypt(nonce, bytes(plaintext), None)
        return EncryptedFrame(nonce, ciphertext_with_tag)

    def decrypt(self, frame: EncryptedFrame, key: bytes) -> bytes:
        """
        Verify and decrypt a frame.

        Raises:
            AuthenticationError: If the tag does not verify
        """
        _check_key(key)
        if len(frame.nonce) != NONCE_SIZE or len(frame.ciphertext_with_tag) < TAG_SIZE:
            raise AuthenticationError("Malformed frame")
        try:
            return self._provider.aead(key).decrypt(frame.nonce, frame.ciphertext_with_tag, None)
        except InvalidTag:
            raise AuthenticationError("Frame authentication failed") from None

    def encrypt_bytes(self, plaintext: bytes, key: bytes) -> bytes:
        """Encrypt and serialize to wire bytes."""
        return self.encrypt(plaintext, key).to_bytes()

    def decrypt_bytes(self, data: bytes, key: bytes) -> bytes:
        """Parse wire bytes and decrypt."""
        return self.decrypt(EncryptedFrame.from_bytes(data), key)
