"""
JSON-RPC envelope construction.

Each method has a fixed calling convention agreed with the server:
positional methods carry their parameters as an ordered list (the
values of the parameter mapping, in insertion order), named methods
carry the mapping itself.
"""

import dataclasses
import itertools
import json
from typing import Any, Iterator, Mapping, Optional

from .protocol import JsonRpcRequest


POSITIONAL_METHODS = frozenset({"deploy", "transfer", "join", "split"})
NAMED_METHODS = frozenset({"execute"})


def _as_params(params: Any) -> Any:
    if dataclasses.is_dataclass(params) and not isinstance(params, type):
        return dataclasses.asdict(params)
    return params


def normalize_params(method: str, params: Any):
    """
    Shape `params` according to the calling convention of `method`.

    Raises:
        TypeError: If params cannot be expressed in the method's convention
    """
    params = _as_params(params)
    if params is None:
        params = {} if method in NAMED_METHODS else []

    if method in NAMED_METHODS:
        if not isinstance(params, Mapping):
            raise TypeError(f"{method!r} takes named parameters, got {type(params).__name__}")
        return dict(params)

    if isinstance(params, Mapping):
        if method in POSITIONAL_METHODS:
            return list(params.values())
        return dict(params)

    if isinstance(params, (list, tuple)):
        return list(params)

    raise TypeError(f"Unsupported params type: {type(params).__name__}")


class RequestIds:
    """
    Request id source.

    Ids increase from 1 for each client. With `fixed` set every request
    carries that id, which is what servers written against a
    constant-id client expect.
    """

    def __init__(self, fixed: Optional[int] = None, start: int = 1):
        self._fixed = fixed
        self._counter: Iterator[int] = itertools.count(start)

    def next(self) -> int:
        if self._fixed is not None:
            return self._fixed
        return next(self._counter)


def build_request(method: str, params: Any = None, request_id: int = 1) -> JsonRpcRequest:
    """Wrap parameters into a JSON-RPC 2.0 request."""
    return JsonRpcRequest(
        method=method,
        params=normalize_params(method, params),
        id=request_id,
    )


def serialize_request(request: JsonRpcRequest) -> bytes:
    """
    Compact UTF-8 JSON, keys in envelope order.

    `{"jsonrpc":"2.0","method":"transfer","params":["X",5],"id":1}`
    """
    return json.dumps(
        request.model_dump(),
        separators=(',', ':'),
        ensure_ascii=False,
    ).encode('utf-8')
