"""
Reference RPC server (aiohttp).

The collaborator side of the channel: advertises its public key on
/discovery, recomputes the session key from each request's Public-Key
header, decrypts the frame, and dispatches the JSON-RPC call to a
registered handler. Replies are plaintext JSON-RPC envelopes.

Positional params are passed as *args, named params as **kwargs.
Handlers may be plain functions or coroutine functions.
"""

import inspect
import json
import logging
from typing import Any, Callable, Dict, Iterable, Optional

from aiohttp import web
from cryptography.hazmat.primitives.asymmetric import ec
from pydantic import ValidationError

from ..errors import AuthenticationError, KeyAgreementError
from ..identity.keys import CURVE, compress_public_key
from ..integration.event_logger import EventLogger, EventType
from ..messaging.key_agreement import derive_from_keys
from ..messaging.secure_channel import CryptoProvider, SecureChannel
from .protocol import (
    INTERNAL_ERROR, INVALID_PARAMS, INVALID_REQUEST, JSONRPC_VERSION,
    METHOD_NOT_FOUND, PARSE_ERROR, PUBLIC_KEY_HEADER, JsonRpcRequest,
)


logger = logging.getLogger(__name__)

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': f'Content-Type, {PUBLIC_KEY_HEADER}',
    'Access-Control-Allow-Methods': 'GET, POST, OPTIONS',
}


def _error(code: int, message: str, request_id: Optional[int] = None,
           status: int = 200) -> web.Response:
    body = {
        'jsonrpc': JSONRPC_VERSION,
        'id': request_id,
        'error': {'code': code, 'message': message},
    }
    return web.json_response(body, status=status, headers=CORS_HEADERS)


def _check_arguments(handler: Callable[..., Any], args, kwargs) -> None:
    """Raise TypeError if the params do not fit the handler signature."""
    try:
        signature = inspect.signature(handler)
    except (TypeError, ValueError):
        # no introspectable signature (some builtins)
        return
    signature.bind(*args, **kwargs)


class RpcServer:
    """
    JSON-RPC endpoint behind the encrypted channel.

    Example:
        server = RpcServer()

        @server.method("transfer")
        def transfer(to, amount):
            return {"ok": True}

        web.run_app(server.make_app(), port=8080)
    """

    def __init__(self,
                 private_key: Optional[ec.EllipticCurvePrivateKey] = None,
                 crypto: Optional[CryptoProvider] = None,
                 events: Optional[EventLogger] = None):
        self._private_key = private_key or ec.generate_private_key(CURVE)
        self._channel = SecureChannel(crypto)
        self._events = events
        self._methods: Dict[str, Callable[..., Any]] = {}

    @property
    def public_bytes(self) -> bytes:
        return compress_public_key(self._private_key.public_key())

    @property
    def public_hex(self) -> str:
        return self.public_bytes.hex()

    def register(self, name: str, handler: Callable[..., Any]) -> None:
        self._methods[name] = handler

    def method(self, name: str):
        """Decorator form of register()."""
        def decorator(handler):
            self.register(name, handler)
            return handler
        return decorator

    def session_key_for(self, client_public_bytes: bytes) -> bytes:
        """Session key shared with the holder of `client_public_bytes`."""
        return derive_from_keys(self._private_key, client_public_bytes)

    def decrypt_request(self, client_public_hex: str, body: bytes) -> bytes:
        """
        Recover the plaintext JSON of an encrypted request.

        Raises:
            KeyAgreementError: Bad Public-Key header
            AuthenticationError: Frame does not verify
        """
        try:
            client_key = bytes.fromhex(client_public_hex)
        except ValueError as e:
            raise KeyAgreementError(f"Public-Key header is not hex: {e}") from e
        return self._channel.decrypt_bytes(body, self.session_key_for(client_key))

    # ------------------------------------------------------------------
    # HTTP handlers
    # ------------------------------------------------------------------

    async def handle_discovery(self, request: web.Request) -> web.Response:
        body = {
            'jsonrpc': JSONRPC_VERSION,
            'id': 1,
            'result': {'pubkey': self.public_hex},
        }
        return web.json_response(body, headers=CORS_HEADERS)

    async def handle_options(self, request: web.Request) -> web.Response:
        return web.Response(headers=CORS_HEADERS)

    async def handle_rpc(self, request: web.Request) -> web.Response:
        client_hex = request.headers.get(PUBLIC_KEY_HEADER)
        if not client_hex:
            return _error(INVALID_REQUEST, f"Missing {PUBLIC_KEY_HEADER} header", status=400)

        body = await request.read()
        try:
            plaintext = self.decrypt_request(client_hex, body)
        except KeyAgreementError as e:
            logger.warning("Rejected request with bad client key: %s", e)
            return _error(INVALID_REQUEST, "Invalid client public key", status=400)
        except AuthenticationError:
            logger.warning("Rejected request: frame authentication failed")
            if self._events is not None:
                self._events.log(EventType.AUTH_FAILED, str(request.url), client=client_hex[:16])
            return _error(INVALID_REQUEST, "Frame authentication failed", status=400)

        try:
            rpc = JsonRpcRequest.model_validate(json.loads(plaintext))
        except ValueError as e:
            code = INVALID_REQUEST if isinstance(e, ValidationError) else PARSE_ERROR
            return _error(code, "Invalid JSON-RPC request")

        handler = self._methods.get(rpc.method)
        if handler is None:
            return _error(METHOD_NOT_FOUND, f"Method not found: {rpc.method}", rpc.id)

        if isinstance(rpc.params, list):
            args, kwargs = rpc.params, {}
        else:
            args, kwargs = [], rpc.params
        try:
            _check_arguments(handler, args, kwargs)
        except TypeError as e:
            return _error(INVALID_PARAMS, str(e), rpc.id)

        try:
            result = handler(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            logger.exception("Handler for %s failed", rpc.method)
            return _error(INTERNAL_ERROR, "Internal error", rpc.id)

        body = {'jsonrpc': JSONRPC_VERSION, 'id': rpc.id, 'result': result}
        return web.json_response(body, headers=CORS_HEADERS)

    def make_app(self, middlewares: Iterable = ()) -> web.Application:
        app = web.Application(middlewares=list(middlewares))
        app.add_routes([
            web.get('/discovery', self.handle_discovery),
            web.post('/', self.handle_rpc),
            web.options('/', self.handle_options),
            web.options('/discovery', self.handle_options),
        ])
        return app
