"""
Pydantic models for the JSON-RPC messages exchanged with the server.

- JsonRpcRequest: the encrypted call body
- JsonRpcError / JsonRpcResponse: server replies
- DiscoveryResult / DiscoveryResponse: the unauthenticated key lookup
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel


JSONRPC_VERSION = "2.0"

# HTTP header carrying the client public key (compressed point, hex)
PUBLIC_KEY_HEADER = "Public-Key"

# Standard JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class JsonRpcRequest(BaseModel):
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    method: str
    params: Union[List[Any], Dict[str, Any]]
    id: int


class JsonRpcError(BaseModel):
    code: int
    message: str
    data: Optional[Any] = None


class JsonRpcResponse(BaseModel):
    jsonrpc: str = JSONRPC_VERSION
    id: Optional[int] = None
    result: Optional[Any] = None
    error: Optional[JsonRpcError] = None


class DiscoveryResult(BaseModel):
    pubkey: str   # hex-encoded compressed point, untrusted


class DiscoveryResponse(BaseModel):
    jsonrpc: str = JSONRPC_VERSION
    id: Optional[int] = None
    result: Optional[DiscoveryResult] = None
    error: Optional[JsonRpcError] = None
