"""
Secure RPC Client

Ties the channel together:

    ClientIdentity -> discover/confirm -> derive_session_key -> encrypt -> POST

State machine (per instance, no way back):

    UNINITIALIZED -> TRUST_PENDING -> TRUSTED -> READY
                          |
                          +-> REJECTED | DISCOVERY_FAILED

A rejected or failed client must be discarded; build a new one.

Example:
    async def ask(key: bytes) -> bool:
        answer = await asyncio.to_thread(input, f"Trust {fingerprint(key)}? [y/N] ")
        return answer == "y"

    async with await Client.create("https://rpc.example", ask) as client:
        result = await client.transfer({"to": "X", "amount": 5})
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Optional

from ..config import ClientConfig
from ..errors import (
    ChannelStateError, DiscoveryError, TransportError, TrustRejectedError,
)
from ..identity.keys import ClientIdentity, ServerIdentity, fingerprint
from ..integration.event_logger import EventLogger, EventType, short_fingerprint
from ..messaging.key_agreement import derive_session_key
from ..messaging.secure_channel import CryptoProvider, SecureChannel
from ..trust.bootstrap import ConfirmFn, candidate_key, confirm, discover
from ..trust.store import FileTrustStore, TrustStore
from .envelope import RequestIds, build_request, serialize_request
from .protocol import PUBLIC_KEY_HEADER, JsonRpcRequest
from .transport import OCTET_STREAM, HttpTransport, RpcResponse


logger = logging.getLogger(__name__)


class ClientState(Enum):
    UNINITIALIZED = "uninitialized"
    TRUST_PENDING = "trust_pending"
    TRUSTED = "trusted"
    READY = "ready"
    REJECTED = "rejected"
    DISCOVERY_FAILED = "discovery_failed"


TERMINAL_STATES = frozenset({ClientState.REJECTED, ClientState.DISCOVERY_FAILED})


class Client:
    """
    Encrypted JSON-RPC client bound to a single server.

    The client keypair is generated at construction and lives exactly as
    long as the instance. The server key is only set once the
    confirmation callback accepted it (or it was pinned in the trust
    store by an earlier confirmation).
    """

    fingerprint = staticmethod(fingerprint)

    def __init__(self,
                 server_url: str,
                 config: Optional[ClientConfig] = None,
                 transport: Optional[HttpTransport] = None,
                 trust_store: Optional[TrustStore] = None,
                 crypto: Optional[CryptoProvider] = None,
                 events: Optional[EventLogger] = None):
        self._config = config or ClientConfig()
        self._server_url = server_url
        self._identity = ClientIdentity.generate()

        self._owns_transport = transport is None
        self._transport = transport or HttpTransport(timeout=self._config.request_timeout)

        if trust_store is None and self._config.trust_store_path is not None:
            trust_store = FileTrustStore(self._config.trust_store_path)
        self._trust_store = trust_store

        self._channel = SecureChannel(crypto)
        self._events = events or EventLogger()
        self._ids = RequestIds(fixed=self._config.fixed_request_id)

        self._state = ClientState.UNINITIALIZED
        self._server: Optional[ServerIdentity] = None
        self._session_key: Optional[bytes] = None
        self._bootstrap_lock = asyncio.Lock()
        self._bootstrap_done = asyncio.Event()
        self._failure: Optional[BaseException] = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    async def create(cls, server_url: str, confirm_fn: ConfirmFn, **kwargs) -> 'Client':
        """Build a client and run the trust bootstrap. Raises on failure."""
        client = cls(server_url, **kwargs)
        try:
            await client.connect(confirm_fn)
        except BaseException:
            await client.close()
            raise
        return client

    async def connect(self, confirm_fn: ConfirmFn) -> ServerIdentity:
        """
        Establish trust in the server key.

        A key pinned in the trust store is used without discovery.
        Otherwise the key is discovered and handed to `confirm_fn`; an
        accepted key is pinned for later runs.

        Raises:
            DiscoveryError: The key could not be fetched
            TrustRejectedError: `confirm_fn` declined the key

        Any other failure also ends in DISCOVERY_FAILED and propagates
        unchanged. Later calls then raise ChannelStateError chained to it.
        A trust store that cannot be written only loses the pin.
        """
        async with self._bootstrap_lock:
            if self._state is ClientState.READY:
                return self._server
            if self._state in TERMINAL_STATES:
                self._raise_terminal()

            self._state = ClientState.TRUST_PENDING
            try:
                server = await self._establish_trust(confirm_fn)
                self._server = server
                self._state = ClientState.TRUSTED
                self._get_session_key()
                self._state = ClientState.READY
                logger.info("Channel to %s ready (server key %s)",
                            self._server_url, short_fingerprint(server.public_key))
                return server
            except TrustRejectedError:
                self._state = ClientState.REJECTED
                raise
            except BaseException as e:
                self._state = ClientState.DISCOVERY_FAILED
                self._failure = e
                self._server = None
                raise
            finally:
                self._bootstrap_done.set()

    async def _establish_trust(self, confirm_fn: ConfirmFn) -> ServerIdentity:
        if self._trust_store is not None:
            pinned = self._trust_store.load(self._server_url)
            if pinned is not None:
                self._events.log(EventType.TRUST_PINNED, self._server_url,
                                 key=short_fingerprint(pinned.public_key))
                return pinned

        result = await discover(self._server_url, self._transport, self._events)
        server = await confirm(self._server_url, candidate_key(result), confirm_fn, self._events)
        if self._trust_store is not None:
            try:
                self._trust_store.save(server)
            except (OSError, ValueError):
                # key stays trusted for this session
                logger.exception("Could not pin server key for %s", self._server_url)
        return server

    def _raise_terminal(self) -> None:
        if self._state is ClientState.REJECTED:
            raise TrustRejectedError(f"Server key for {self._server_url} was rejected")
        failure = self._failure
        if failure is None or isinstance(failure, DiscoveryError):
            raise DiscoveryError(f"Trust bootstrap for {self._server_url} failed")
        raise ChannelStateError(
            f"Trust bootstrap for {self._server_url} failed: "
            f"{type(failure).__name__}: {failure}"
        ) from failure

    async def _require_ready(self) -> None:
        if self._state is ClientState.TRUST_PENDING:
            await self._bootstrap_done.wait()
        if self._state is ClientState.READY:
            return
        if self._state in TERMINAL_STATES:
            self._raise_terminal()
        raise ChannelStateError("Channel not established. Call connect() first.")

    def _get_session_key(self) -> bytes:
        if self._session_key is None:
            self._session_key = derive_session_key(self._identity, self._server)
            self._events.log(EventType.KEY_DERIVED, self._server_url)
        return self._session_key

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def server_url(self) -> str:
        return self._server_url

    @property
    def server_identity(self) -> Optional[ServerIdentity]:
        return self._server

    @property
    def server_public_key(self) -> Optional[bytes]:
        """Confirmed server key, None until trust is established."""
        return self._server.public_key if self._server is not None else None

    @property
    def public_key(self) -> bytes:
        """Client public key (compressed point)."""
        return self._identity.public_bytes()

    @property
    def events(self) -> EventLogger:
        return self._events

    # ------------------------------------------------------------------
    # RPC
    # ------------------------------------------------------------------

    def build_request(self, method: str, params: Any = None) -> JsonRpcRequest:
        """Envelope for `method` with the next request id."""
        return build_request(method, params, self._ids.next())

    async def send(self, request: JsonRpcRequest) -> RpcResponse:
        """
        Encrypt a request and POST it to the server.

        Returns:
            The raw response; the body schema is up to the caller

        Raises:
            ChannelStateError / TrustRejectedError / DiscoveryError: If the
                channel is not ready
            TransportError: Network failure (no automatic retry)
        """
        await self._require_ready()
        key = self._get_session_key()

        frame = self._channel.encrypt_bytes(serialize_request(request), key)
        headers = {
            'Content-Type': OCTET_STREAM,
            PUBLIC_KEY_HEADER: self._identity.public_hex(),
        }
        try:
            response = await self._transport.post(self._server_url, frame, headers)
        except TransportError as e:
            self._events.log(EventType.REQUEST_FAILED, self._server_url,
                             method=request.method, id=request.id, reason=str(e))
            raise

        self._events.log_request(self._server_url, request.method, request.id, len(frame))
        return response

    async def call(self, method: str, params: Any = None) -> RpcResponse:
        """Build and send a request in one step."""
        return await self.send(self.build_request(method, params))

    async def _call_json(self, method: str, params: Any) -> Any:
        response = await self.call(method, params)
        return response.json()

    async def deploy(self, params) -> Any:
        return await self._call_json("deploy", params)

    async def execute(self, params) -> Any:
        return await self._call_json("execute", params)

    async def transfer(self, params) -> Any:
        return await self._call_json("transfer", params)

    async def join(self, params) -> Any:
        return await self._call_json("join", params)

    async def split(self, params) -> Any:
        return await self._call_json("split", params)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        if self._owns_transport:
            await self._transport.close()

    async def __aenter__(self) -> 'Client':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"Client({self._server_url!r}, state={self._state.value})"


__all__ = ['Client', 'ClientState', 'PUBLIC_KEY_HEADER']
