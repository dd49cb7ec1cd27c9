"""
Key Agreement Module

Static-static ECDH (P-256) followed by HKDF-SHA256.

    shared = ECDH(client_private, server_public)   # x-coordinate, 32 bytes
    key    = HKDF-SHA256(shared, salt=None, info=None, length=32)

Both sides hold long-lived keys, so the same session key covers the
whole client/server relationship. Per-message uniqueness comes from the
random AES-GCM nonce in the secure channel.
"""

import logging
from typing import Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from ..errors import KeyAgreementError
from ..identity.keys import ClientIdentity, ServerIdentity, load_public_key


logger = logging.getLogger(__name__)

SESSION_KEY_SIZE = 32  # 256 bits for AES-256-GCM


def hkdf_derive_key(shared_secret: bytes,
                    salt: Optional[bytes] = None,
                    info: Optional[bytes] = None,
                    length: int = SESSION_KEY_SIZE) -> bytes:
    """
    Derive a symmetric key from a shared secret using HKDF (RFC 5869).

    Args:
        shared_secret: Input key material (ECDH x-coordinate)
        salt: Optional salt; None means a zero-filled salt
        info: Optional context string; None means empty
        length: Output key length in bytes

    Returns:
        Derived key bytes
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=length,
        salt=salt,
        info=info,
    )
    return hkdf.derive(shared_secret)


def shared_secret(private_key: ec.EllipticCurvePrivateKey,
                  peer_public_key: ec.EllipticCurvePublicKey) -> bytes:
    """
    ECDH shared secret.

    cryptography returns only the x-coordinate of the shared point, which
    is the SEC1 point with its leading format byte dropped.
    """
    try:
        return private_key.exchange(ec.ECDH(), peer_public_key)
    except ValueError as e:
        raise KeyAgreementError(f"ECDH failed: {e}") from e


def derive_from_keys(private_key: ec.EllipticCurvePrivateKey,
                     peer_public_bytes: bytes) -> bytes:
    """Session key from a private key and the peer's encoded point."""
    peer_key = load_public_key(peer_public_bytes)
    return hkdf_derive_key(shared_secret(private_key, peer_key))


def derive_session_key(client_identity: ClientIdentity,
                       server_identity: ServerIdentity) -> bytes:
    """
    Derive the 32-byte session key for a client/server pair.

    Deterministic: the same identity pair always yields the same key, and
    the server derives the same value from its private key and the
    client's public key.

    Raises:
        KeyAgreementError: If the server key is not a valid P-256 point
    """
    key = derive_from_keys(client_identity.private_key, server_identity.public_key)
    logger.debug("Derived session key for %s", server_identity.url)
    return key
