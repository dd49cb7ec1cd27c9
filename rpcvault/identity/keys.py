"""
Identity Module

Client and server identities on the P-256 curve.

- ClientIdentity: ephemeral keypair generated once per client instance
- ServerIdentity: confirmed server URL + public key (immutable)
- Public key codecs (compressed SEC1 point, lowercase hex)
- SHA-256 fingerprints for human comparison

The client private key never leaves this object: only the compressed
public point is ever serialized.
"""

from dataclasses import dataclass

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from ..errors import KeyAgreementError


# Constants
CURVE = ec.SECP256R1()      # P-256 curve
PRIVATE_KEY_SIZE = 32       # 256-bit scalar
COMPRESSED_POINT_SIZE = 33  # format byte + x-coordinate


def load_public_key(data: bytes) -> ec.EllipticCurvePublicKey:
    """
    Decode a SEC1-encoded P-256 point (compressed or uncompressed).

    Args:
        data: Encoded point bytes

    Returns:
        Public key object

    Raises:
        KeyAgreementError: If the bytes are not a valid point on the curve
    """
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(CURVE, bytes(data))
    except (ValueError, TypeError) as e:
        raise KeyAgreementError(f"Invalid P-256 public key: {e}") from e


def compress_public_key(public_key: ec.EllipticCurvePublicKey) -> bytes:
    """Encode a public key as a 33-byte compressed point."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.CompressedPoint
    )


def public_key_from_hex(hex_str: str) -> bytes:
    """
    Decode a hex public key and normalize it to compressed form.

    Raises:
        KeyAgreementError: If the string is not hex or not a valid point
    """
    try:
        raw = bytes.fromhex(hex_str)
    except (ValueError, TypeError) as e:
        raise KeyAgreementError(f"Public key is not valid hex: {e}") from e
    return compress_public_key(load_public_key(raw))


def fingerprint(key_bytes: bytes) -> str:
    """
    SHA-256 fingerprint of raw public key bytes, as lowercase hex.

    Display helper for out-of-band comparison. Trust decisions never
    use it.
    """
    digest = hashes.Hash(hashes.SHA256())
    digest.update(bytes(key_bytes))
    return digest.finalize().hex()


@dataclass(frozen=True)
class ClientIdentity:
    """Client keypair. Generated once, never serialized."""
    private_key: ec.EllipticCurvePrivateKey
    public_key: ec.EllipticCurvePublicKey

    @classmethod
    def generate(cls) -> 'ClientIdentity':
        """Generate a new P-256 keypair from the OS CSPRNG."""
        private_key = ec.generate_private_key(CURVE)
        return cls(private_key, private_key.public_key())

    def public_bytes(self) -> bytes:
        """Public key as a compressed point."""
        return compress_public_key(self.public_key)

    def public_hex(self) -> str:
        """Public key as lowercase hex, the form sent in headers."""
        return self.public_bytes().hex()

    def __repr__(self) -> str:
        return f"ClientIdentity(public_key={self.public_hex()})"


@dataclass(frozen=True)
class ServerIdentity:
    """
    A server URL bound to a confirmed public key.

    Instances are only created after the key passed confirmation (or
    come from a trust store, which only ever stores confirmed ones).
    """
    url: str
    public_key: bytes  # compressed point

    @property
    def public_hex(self) -> str:
        return self.public_key.hex()

    @property
    def fingerprint(self) -> str:
        return fingerprint(self.public_key)

    def load_key(self) -> ec.EllipticCurvePublicKey:
        """Decode the stored point. Raises KeyAgreementError if invalid."""
        return load_public_key(self.public_key)
