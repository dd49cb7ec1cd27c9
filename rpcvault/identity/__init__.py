# Identity Module
"""
P-256 client/server identities and public key codecs.
"""

from .keys import (
    ClientIdentity,
    ServerIdentity,
    fingerprint,
    load_public_key,
    compress_public_key,
    public_key_from_hex,
)

__all__ = [
    'ClientIdentity',
    'ServerIdentity',
    'fingerprint',
    'load_public_key',
    'compress_public_key',
    'public_key_from_hex',
]
