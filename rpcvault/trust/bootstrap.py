"""
Trust Bootstrap Module

Obtaining the server's public key and deciding whether to trust it:

1. discover(): unauthenticated GET <server_url>/discovery
2. confirm(): hand the candidate key to a caller-supplied decision
   function (a human comparing fingerprints out of band)

The discovered key is attacker-controlled until confirm() accepts it.
The decision function is the only trust anchor; there is no automatic
trust-on-first-use.
"""

import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from pydantic import ValidationError

from ..errors import DiscoveryError, KeyAgreementError, TrustRejectedError, TransportError
from ..identity.keys import ServerIdentity, fingerprint, public_key_from_hex
from ..integration.event_logger import EventLogger
from ..rpc.protocol import DiscoveryResponse, DiscoveryResult
from ..rpc.transport import HttpTransport


logger = logging.getLogger(__name__)

DISCOVERY_PATH = "/discovery"

ConfirmFn = Callable[[bytes], Union[bool, Awaitable[bool]]]


def discovery_url(server_url: str) -> str:
    return server_url.rstrip('/') + DISCOVERY_PATH


def _fail(message: str, server_url: str, events: Optional[EventLogger],
          cause: Optional[BaseException] = None) -> DiscoveryError:
    if events is not None:
        events.log_discovery_failed(server_url, message)
    error = DiscoveryError(message)
    error.__cause__ = cause
    return error


def candidate_key(result: DiscoveryResult) -> bytes:
    """
    Raw bytes of the advertised key.

    Raises:
        DiscoveryError: If the key is not hex or not a valid P-256 point
    """
    if not result.pubkey:
        raise DiscoveryError("Discovery result has an empty pubkey")
    try:
        raw = bytes.fromhex(result.pubkey)
        public_key_from_hex(result.pubkey)
    except (ValueError, KeyAgreementError) as e:
        raise DiscoveryError(f"Discovery returned an invalid public key: {e}") from e
    return raw


async def discover(server_url: str,
                   transport: HttpTransport,
                   events: Optional[EventLogger] = None) -> DiscoveryResult:
    """
    Fetch the server's advertised public key.

    Args:
        server_url: Base URL of the server
        transport: HTTP transport used for the GET
        events: Optional event log

    Returns:
        DiscoveryResult with a syntactically valid key (still untrusted)

    Raises:
        DiscoveryError: Network failure, non-2xx status, malformed body,
            JSON-RPC error envelope, or missing/invalid key
    """
    url = discovery_url(server_url)
    try:
        response = await transport.get(url)
    except TransportError as e:
        raise _fail(f"Discovery request failed: {e}", server_url, events, e)

    if not response.ok:
        raise _fail(f"Discovery returned HTTP {response.status}", server_url, events)

    try:
        envelope = DiscoveryResponse.model_validate(response.json())
    except (ValueError, ValidationError) as e:
        raise _fail(f"Malformed discovery response: {e}", server_url, events, e)

    if envelope.error is not None:
        raise _fail(
            f"Discovery error {envelope.error.code}: {envelope.error.message}",
            server_url, events,
        )
    if envelope.result is None:
        raise _fail("Discovery response has no result", server_url, events)

    try:
        key = candidate_key(envelope.result)
    except DiscoveryError as e:
        raise _fail(str(e), server_url, events, e.__cause__)

    logger.info("Discovered key %s for %s", fingerprint(key)[:16], server_url)
    if events is not None:
        events.log_discovery(server_url, key)
    return envelope.result


async def confirm(server_url: str,
                  key_bytes: bytes,
                  confirm_fn: ConfirmFn,
                  events: Optional[EventLogger] = None) -> ServerIdentity:
    """
    Ask the decision function whether to trust `key_bytes`.

    `confirm_fn` receives the raw candidate key and may be a plain or a
    coroutine function. Only a result of exactly True accepts.

    Returns:
        The confirmed ServerIdentity (key in compressed form)

    Raises:
        TrustRejectedError: If the function declines
        KeyAgreementError: If the key is not a valid point
    """
    compressed = public_key_from_hex(bytes(key_bytes).hex())

    decision = confirm_fn(bytes(key_bytes))
    if inspect.isawaitable(decision):
        decision = await decision

    accepted = decision is True
    if events is not None:
        events.log_trust(server_url, key_bytes, accepted)

    if not accepted:
        logger.warning("Server key for %s rejected", server_url)
        raise TrustRejectedError(f"User rejected the server key for {server_url}")

    logger.info("Server key for %s confirmed", server_url)
    return ServerIdentity(url=server_url, public_key=compressed)
