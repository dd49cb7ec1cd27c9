"""
Event Logger Module

Structured audit trail for security-relevant channel events:
- Server discovery (success / failure)
- Trust decisions (confirmed / rejected / loaded from pin)
- Session key derivation
- Encrypted requests sent
- Frame authentication failures

Keys are recorded by short SHA-256 fingerprint, never raw, and private
keys or plaintext bodies are never recorded at all. Every event is also
forwarded to the standard logging module.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..identity.keys import fingerprint


logger = logging.getLogger(__name__)


# ============================================================================
# Constants
# ============================================================================

EVENT_VERSION = "1.0"
SHORT_FINGERPRINT_LEN = 16


def short_fingerprint(key_bytes: bytes) -> str:
    """First 16 hex chars of the key fingerprint, for log readability."""
    return fingerprint(key_bytes)[:SHORT_FINGERPRINT_LEN]


# ============================================================================
# Event Types
# ============================================================================

class EventType(Enum):
    """Types of channel events that can be logged."""

    # Trust bootstrap
    DISCOVERY_SUCCESS = "discovery_success"
    DISCOVERY_FAILED = "discovery_failed"
    TRUST_CONFIRMED = "trust_confirmed"
    TRUST_REJECTED = "trust_rejected"
    TRUST_PINNED = "trust_pinned"

    # Channel
    KEY_DERIVED = "key_derived"
    REQUEST_SENT = "request_sent"
    REQUEST_FAILED = "request_failed"
    AUTH_FAILED = "auth_failed"


_LEVELS = {
    EventType.DISCOVERY_FAILED: logging.WARNING,
    EventType.TRUST_REJECTED: logging.WARNING,
    EventType.REQUEST_FAILED: logging.WARNING,
    EventType.AUTH_FAILED: logging.ERROR,
    EventType.REQUEST_SENT: logging.DEBUG,
    EventType.KEY_DERIVED: logging.DEBUG,
}


# ============================================================================
# Event Structure
# ============================================================================

@dataclass
class ChannelEvent:
    """A single channel event."""
    event_type: EventType
    server_url: str
    timestamp: float
    details: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        """Compact JSON record."""
        return json.dumps({
            'version': EVENT_VERSION,
            'type': self.event_type.value,
            'server': self.server_url,
            'time': self.timestamp,
            'iso_time': datetime.fromtimestamp(self.timestamp).isoformat(),
            'details': self.details,
        }, separators=(',', ':'))

    @classmethod
    def from_json(cls, record: str) -> 'ChannelEvent':
        data = json.loads(record)
        return cls(
            event_type=EventType(data['type']),
            server_url=data['server'],
            timestamp=data['time'],
            details=data.get('details', {}),
        )

    def __str__(self) -> str:
        dt = datetime.fromtimestamp(self.timestamp)
        return (
            f"[{dt.strftime('%Y-%m-%d %H:%M:%S')}] "
            f"{self.event_type.value} | {self.server_url}"
        )


# ============================================================================
# Event Logger
# ============================================================================

class EventLogger:
    """
    In-memory channel event log with subscriber callbacks.

    Keeps at most `max_events` records (oldest dropped first).
    """

    def __init__(self, max_events: Optional[int] = 1000):
        self._events: List[ChannelEvent] = []
        self._max_events = max_events
        self._callbacks: List[Callable[[ChannelEvent], None]] = []

    def subscribe(self, callback: Callable[[ChannelEvent], None]) -> None:
        """Register a callback invoked for every new event."""
        self._callbacks.append(callback)

    def unsubscribe(self, callback: Callable[[ChannelEvent], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def log(self, event_type: EventType, server_url: str, **details) -> ChannelEvent:
        """Record an event."""
        event = ChannelEvent(
            event_type=event_type,
            server_url=server_url,
            timestamp=time.time(),
            details=details,
        )
        self._events.append(event)
        if self._max_events is not None and len(self._events) > self._max_events:
            del self._events[:len(self._events) - self._max_events]

        logger.log(_LEVELS.get(event_type, logging.INFO), "%s %s",
                   event.event_type.value, event.to_json())

        for callback in self._callbacks:
            try:
                callback(event)
            except Exception:
                # subscriber errors never reach the caller
                logger.exception("Event subscriber failed on %s", event_type.value)
        return event

    # ------------------------------------------------------------------
    # Convenience loggers
    # ------------------------------------------------------------------

    def log_discovery(self, server_url: str, key_bytes: bytes) -> ChannelEvent:
        return self.log(EventType.DISCOVERY_SUCCESS, server_url,
                        key=short_fingerprint(key_bytes))

    def log_discovery_failed(self, server_url: str, reason: str) -> ChannelEvent:
        return self.log(EventType.DISCOVERY_FAILED, server_url, reason=reason)

    def log_trust(self, server_url: str, key_bytes: bytes, accepted: bool) -> ChannelEvent:
        event_type = EventType.TRUST_CONFIRMED if accepted else EventType.TRUST_REJECTED
        return self.log(event_type, server_url, key=short_fingerprint(key_bytes))

    def log_request(self, server_url: str, method: str, request_id: int,
                    frame_size: int) -> ChannelEvent:
        return self.log(EventType.REQUEST_SENT, server_url,
                        method=method, id=request_id, frame_size=frame_size)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_events(self, event_type: Optional[EventType] = None) -> List[ChannelEvent]:
        """All events, optionally filtered by type."""
        if event_type is None:
            return list(self._events)
        return [e for e in self._events if e.event_type == event_type]

    def count(self, event_type: Optional[EventType] = None) -> int:
        return len(self.get_events(event_type))

    def clear(self) -> None:
        self._events.clear()
