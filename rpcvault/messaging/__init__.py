# Secure Messaging Module
"""
Session key agreement and frame encryption:
- ECDH (P-256) between static client and server keys
- HKDF-SHA256 key derivation (no salt, no info, 32 bytes)
- AES-256-GCM authenticated encryption

Frame format: [nonce | ciphertext | tag]
"""

from .key_agreement import (
    derive_session_key,
    derive_from_keys,
    hkdf_derive_key,
    shared_secret,
)
from .secure_channel import (
    CryptoProvider,
    EncryptedFrame,
    SecureChannel,
)

__all__ = [
    'derive_session_key',
    'derive_from_keys',
    'hkdf_derive_key',
    'shared_secret',
    'CryptoProvider',
    'EncryptedFrame',
    'SecureChannel',
]
