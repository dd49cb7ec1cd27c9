"""
Unit tests for the channel event log.
"""

import logging

from rpcvault.identity.keys import fingerprint
from rpcvault.integration.event_logger import (
    ChannelEvent, EventLogger, EventType, short_fingerprint,
)


URL = "http://rpc.test"
KEY = bytes.fromhex("02" + "11" * 32)


class TestEventLogger:
    """Tests for event recording."""

    def test_log_and_query(self):
        events = EventLogger()
        events.log_discovery(URL, KEY)
        events.log_trust(URL, KEY, accepted=True)
        events.log_request(URL, "transfer", 1, 80)

        assert events.count() == 3
        assert events.count(EventType.TRUST_CONFIRMED) == 1
        request = events.get_events(EventType.REQUEST_SENT)[0]
        assert request.details == {'method': 'transfer', 'id': 1, 'frame_size': 80}

    def test_keys_recorded_by_short_fingerprint(self):
        events = EventLogger()
        event = events.log_discovery(URL, KEY)
        assert event.details['key'] == fingerprint(KEY)[:16]
        assert KEY.hex() not in event.to_json()

    def test_callbacks(self):
        events = EventLogger()
        seen = []
        events.subscribe(seen.append)
        events.log_trust(URL, KEY, accepted=False)
        events.unsubscribe(seen.append)
        events.log_trust(URL, KEY, accepted=False)

        assert [e.event_type for e in seen] == [EventType.TRUST_REJECTED]

    def test_max_events(self):
        events = EventLogger(max_events=3)
        for i in range(5):
            events.log(EventType.REQUEST_SENT, URL, id=i)
        assert [e.details['id'] for e in events.get_events()] == [2, 3, 4]

    def test_clear(self):
        events = EventLogger()
        events.log_discovery_failed(URL, "timeout")
        events.clear()
        assert events.count() == 0

    def test_forwarded_to_logging(self, caplog):
        events = EventLogger()
        with caplog.at_level(logging.WARNING, logger="rpcvault.integration.event_logger"):
            events.log_trust(URL, KEY, accepted=False)
        assert "trust_rejected" in caplog.text


class TestChannelEvent:
    """Tests for event serialization."""

    def test_json_roundtrip(self):
        event = ChannelEvent(EventType.KEY_DERIVED, URL, 1700000000.0, {'a': 1})
        parsed = ChannelEvent.from_json(event.to_json())
        assert parsed == event

    def test_str(self):
        event = ChannelEvent(EventType.AUTH_FAILED, URL, 1700000000.0)
        assert "auth_failed" in str(event)
        assert URL in str(event)

    def test_short_fingerprint(self):
        assert len(short_fingerprint(KEY)) == 16


class TestSubscribers:
    """Tests for subscriber isolation."""

    def test_failing_subscriber_is_isolated(self, caplog):
        events = EventLogger()
        seen = []

        def broken(event):
            raise RuntimeError("subscriber broke")

        events.subscribe(broken)
        events.subscribe(seen.append)
        with caplog.at_level(logging.ERROR, logger="rpcvault.integration.event_logger"):
            event = events.log_trust(URL, KEY, accepted=True)

        assert seen == [event]
        assert events.count(EventType.TRUST_CONFIRMED) == 1
        assert "Event subscriber failed" in caplog.text
        assert "subscriber broke" in caplog.text
