"""
Unit tests for trust bootstrapping and pinning.

Tests:
- Discovery parsing and failure modes
- Confirmation (sync and async decision functions)
- Memory and file trust stores
"""

import asyncio
import json
import os

import pytest

from rpcvault.errors import DiscoveryError, KeyAgreementError, TrustRejectedError
from rpcvault.identity.keys import ServerIdentity
from rpcvault.integration.event_logger import EventLogger, EventType
from rpcvault.trust.bootstrap import candidate_key, confirm, discover, discovery_url
from rpcvault.trust.store import FileTrustStore, MemoryTrustStore

from .fakes import FakeServerKey, FakeTransport


URL = "http://rpc.test"


def run(coro):
    return asyncio.run(coro)


class TestDiscover:
    """Tests for the discovery call."""

    def test_discovery_url(self):
        assert discovery_url("http://rpc.test") == "http://rpc.test/discovery"
        assert discovery_url("http://rpc.test/") == "http://rpc.test/discovery"

    def test_success(self):
        server = FakeServerKey()
        transport = FakeTransport(discovery=server.discovery_payload())
        result = run(discover(URL, transport))

        assert result.pubkey == server.public_hex
        assert candidate_key(result) == server.public_bytes
        assert transport.gets == [URL + "/discovery"]

    def test_missing_pubkey(self):
        transport = FakeTransport(discovery={'jsonrpc': '2.0', 'id': 1, 'result': {}})
        with pytest.raises(DiscoveryError):
            run(discover(URL, transport))

    def test_missing_result(self):
        transport = FakeTransport(discovery={'jsonrpc': '2.0', 'id': 1})
        with pytest.raises(DiscoveryError):
            run(discover(URL, transport))

    def test_error_envelope(self):
        transport = FakeTransport(discovery={
            'jsonrpc': '2.0', 'id': 1,
            'error': {'code': -32603, 'message': 'key unavailable'},
        })
        with pytest.raises(DiscoveryError, match="key unavailable"):
            run(discover(URL, transport))

    def test_non_2xx(self):
        server = FakeServerKey()
        transport = FakeTransport(discovery=server.discovery_payload(), discovery_status=503)
        with pytest.raises(DiscoveryError, match="503"):
            run(discover(URL, transport))

    def test_malformed_json(self):
        transport = FakeTransport(discovery=b"<html>not json</html>")
        with pytest.raises(DiscoveryError):
            run(discover(URL, transport))

    def test_network_failure(self):
        transport = FakeTransport(fail_get=True)
        with pytest.raises(DiscoveryError):
            run(discover(URL, transport))

    @pytest.mark.parametrize("pubkey", ["", "zz", "02" + "ff" * 32, "1234"])
    def test_invalid_key(self, pubkey):
        transport = FakeTransport(discovery={'jsonrpc': '2.0', 'id': 1, 'result': {'pubkey': pubkey}})
        with pytest.raises(DiscoveryError):
            run(discover(URL, transport))

    def test_failure_logged(self):
        events = EventLogger()
        transport = FakeTransport(fail_get=True)
        with pytest.raises(DiscoveryError):
            run(discover(URL, transport, events))
        assert events.count(EventType.DISCOVERY_FAILED) == 1


class TestConfirm:
    """Tests for the confirmation step."""

    def test_accept_sync(self):
        server = FakeServerKey()
        seen = []

        def confirm_fn(key):
            seen.append(key)
            return True

        identity = run(confirm(URL, server.public_bytes, confirm_fn))
        assert identity == ServerIdentity(url=URL, public_key=server.public_bytes)
        assert seen == [server.public_bytes]

    def test_accept_async(self):
        server = FakeServerKey()

        async def confirm_fn(key):
            await asyncio.sleep(0)
            return True

        identity = run(confirm(URL, server.public_bytes, confirm_fn))
        assert identity.public_key == server.public_bytes

    def test_reject(self):
        server = FakeServerKey()
        with pytest.raises(TrustRejectedError):
            run(confirm(URL, server.public_bytes, lambda key: False))

    def test_reject_async(self):
        server = FakeServerKey()

        async def confirm_fn(key):
            return False

        with pytest.raises(TrustRejectedError):
            run(confirm(URL, server.public_bytes, confirm_fn))

    def test_truthy_non_bool_rejected(self):
        """Only an explicit True accepts."""
        server = FakeServerKey()
        with pytest.raises(TrustRejectedError):
            run(confirm(URL, server.public_bytes, lambda key: "no"))

    def test_invalid_key_never_offered(self):
        offered = []
        with pytest.raises(KeyAgreementError):
            run(confirm(URL, b"\x02" + b"\xff" * 32, lambda key: offered.append(key) or True))
        assert offered == []

    def test_decisions_logged(self):
        server = FakeServerKey()
        events = EventLogger()
        run(confirm(URL, server.public_bytes, lambda key: True, events))
        with pytest.raises(TrustRejectedError):
            run(confirm(URL, server.public_bytes, lambda key: False, events))

        assert events.count(EventType.TRUST_CONFIRMED) == 1
        assert events.count(EventType.TRUST_REJECTED) == 1
        recorded = events.get_events()[0].details['key']
        assert recorded != server.public_hex
        assert len(recorded) == 16


class TestMemoryTrustStore:
    """Tests for in-memory pinning."""

    def test_save_load(self):
        store = MemoryTrustStore()
        identity = ServerIdentity(url=URL, public_key=FakeServerKey().public_bytes)
        store.save(identity)
        assert store.load(URL) == identity
        assert store.load(URL + "/") is not None
        assert len(store) == 1

    def test_missing(self):
        assert MemoryTrustStore().load(URL) is None

    def test_forget(self):
        store = MemoryTrustStore()
        store.save(ServerIdentity(url=URL, public_key=FakeServerKey().public_bytes))
        assert store.forget(URL)
        assert not store.forget(URL)
        assert store.load(URL) is None


class TestFileTrustStore:
    """Tests for JSON file pinning."""

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "pins" / "trusted.json"
        identity = ServerIdentity(url=URL, public_key=FakeServerKey().public_bytes)
        FileTrustStore(path).save(identity)

        assert FileTrustStore(path).load(URL) == identity

    def test_file_format(self, tmp_path):
        path = tmp_path / "trusted.json"
        key = FakeServerKey().public_bytes
        FileTrustStore(path).save(ServerIdentity(url=URL + "/", public_key=key))

        data = json.loads(path.read_text())
        assert data == {'version': 1, 'servers': {URL: key.hex()}}

    def test_file_permissions(self, tmp_path):
        path = tmp_path / "trusted.json"
        FileTrustStore(path).save(ServerIdentity(url=URL, public_key=FakeServerKey().public_bytes))
        assert (os.stat(path).st_mode & 0o777) == 0o600

    def test_missing_file(self, tmp_path):
        assert FileTrustStore(tmp_path / "none.json").load(URL) is None

    def test_corrupted_key(self, tmp_path):
        path = tmp_path / "trusted.json"
        path.write_text(json.dumps({'version': 1, 'servers': {URL: "02" + "ff" * 32}}))
        with pytest.raises(KeyAgreementError):
            FileTrustStore(path).load(URL)

    def test_unknown_version(self, tmp_path):
        path = tmp_path / "trusted.json"
        path.write_text(json.dumps({'version': 99, 'servers': {}}))
        with pytest.raises(ValueError):
            FileTrustStore(path).load(URL)

    def test_forget(self, tmp_path):
        store = FileTrustStore(tmp_path / "trusted.json")
        store.save(ServerIdentity(url=URL, public_key=FakeServerKey().public_bytes))
        assert store.forget(URL)
        assert store.load(URL) is None
        assert not store.forget(URL)
