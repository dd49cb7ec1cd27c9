# Trust Module
"""
Server key discovery, confirmation and pinning.
"""

from .bootstrap import discover, confirm, candidate_key
from .store import TrustStore, MemoryTrustStore, FileTrustStore

__all__ = [
    'discover',
    'confirm',
    'candidate_key',
    'TrustStore',
    'MemoryTrustStore',
    'FileTrustStore',
]
