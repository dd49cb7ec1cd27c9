# Integration Module
"""
Channel event log (discovery, trust decisions, requests) with key
fingerprints in place of raw keys.
"""

from .event_logger import ChannelEvent, EventLogger, EventType, short_fingerprint

__all__ = [
    'ChannelEvent',
    'EventLogger',
    'EventType',
    'short_fingerprint',
]
