"""
Unit tests for JSON-RPC envelopes.

Tests:
- Calling conventions (positional vs named)
- Compact serialization in envelope key order
- Request id assignment
"""

import json
from dataclasses import dataclass

import pytest

from rpcvault.rpc.envelope import (
    RequestIds, build_request, normalize_params, serialize_request,
)


@dataclass
class TransferParams:
    to: str
    amount: int


class TestCallingConvention:
    """Tests for params shaping per method."""

    def test_transfer_positional(self):
        request = build_request("transfer", {"to": "X", "amount": 5}, 1)
        assert request.params == ["X", 5]

    @pytest.mark.parametrize("method", ["deploy", "transfer", "join", "split"])
    def test_positional_methods(self, method):
        assert normalize_params(method, {"a": 1, "b": 2}) == [1, 2]

    def test_positional_keeps_insertion_order(self):
        assert normalize_params("split", {"z": 1, "a": 2, "m": 3}) == [1, 2, 3]

    def test_execute_named(self):
        params = {"contract": "c1", "args": [1, 2]}
        assert build_request("execute", params, 1).params == params

    def test_execute_rejects_list(self):
        with pytest.raises(TypeError):
            normalize_params("execute", [1, 2])

    def test_dataclass_params(self):
        assert normalize_params("transfer", TransferParams("X", 5)) == ["X", 5]

    def test_unknown_method_list(self):
        assert normalize_params("echo", ("a", 1)) == ["a", 1]

    def test_unknown_method_mapping(self):
        assert normalize_params("echo", {"a": 1}) == {"a": 1}

    def test_none_params(self):
        assert normalize_params("transfer", None) == []
        assert normalize_params("execute", None) == {}

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            normalize_params("echo", 42)


class TestSerialization:
    """Tests for wire serialization."""

    def test_exact_transfer_body(self):
        request = build_request("transfer", {"to": "X", "amount": 5}, 1)
        assert serialize_request(request) == (
            b'{"jsonrpc":"2.0","method":"transfer","params":["X",5],"id":1}'
        )

    def test_named_body(self):
        request = build_request("execute", {"code": "f()"}, 7)
        assert serialize_request(request) == (
            b'{"jsonrpc":"2.0","method":"execute","params":{"code":"f()"},"id":7}'
        )

    def test_non_ascii_kept_utf8(self):
        request = build_request("transfer", {"to": "Zoë", "amount": 1}, 1)
        data = serialize_request(request)
        assert "Zoë".encode("utf-8") in data
        assert json.loads(data)["params"] == ["Zoë", 1]


class TestRequestIds:
    """Tests for id assignment."""

    def test_increasing_from_one(self):
        ids = RequestIds()
        assert [ids.next() for _ in range(4)] == [1, 2, 3, 4]

    def test_fixed(self):
        ids = RequestIds(fixed=1)
        assert [ids.next() for _ in range(3)] == [1, 1, 1]
