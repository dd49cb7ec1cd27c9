"""
HTTP transport over aiohttp.

Two calls are needed: the discovery GET and the encrypted POST. Bodies
are read completely before the response is released, so the returned
RpcResponse stays usable after the connection is gone.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import aiohttp

from ..errors import TransportError


logger = logging.getLogger(__name__)

OCTET_STREAM = "application/octet-stream"


@dataclass
class RpcResponse:
    """Raw HTTP response. Interpreting the body is up to the caller."""
    status: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self, encoding: str = 'utf-8') -> str:
        return self.body.decode(encoding)

    def json(self) -> Any:
        """Parse the body as JSON. Raises ValueError on malformed JSON."""
        return json.loads(self.body)


class HttpTransport:
    """
    Thin async HTTP client.

    Owns its aiohttp session unless one is passed in. The session is
    created lazily inside the running event loop.
    """

    def __init__(self,
                 timeout: Optional[float] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def _request(self, method: str, url: str, **kwargs) -> RpcResponse:
        session = self._get_session()
        try:
            async with session.request(method, url, **kwargs) as response:
                body = await response.read()
                return RpcResponse(
                    status=response.status,
                    body=body,
                    headers=dict(response.headers),
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise TransportError(f"{method} {url} failed: {e}") from e

    async def get(self, url: str) -> RpcResponse:
        return await self._request("GET", url)

    async def post(self, url: str, body: bytes,
                   headers: Optional[Mapping[str, str]] = None) -> RpcResponse:
        return await self._request("POST", url, data=body, headers=dict(headers or {}))

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> 'HttpTransport':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
