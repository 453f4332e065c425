"""
Exchange Client - HTTP Transport.

============================================================
PURPOSE
============================================================
The boundary between the client and the network.

    await transport.send(request) -> TransportResponse

One call per logical fetch, single completion. Network failures are
returned in TransportResponse.error rather than raised, so the
executor can log them and still inspect whatever body arrived.

IMPLEMENTATIONS:
- AiohttpTransport: production transport on aiohttp.ClientSession
- MockTransport: in-process routes for tests and offline runs

============================================================
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

import aiohttp

from .signing import PreparedRequest


logger = logging.getLogger(__name__)


# ============================================================
# RESPONSE
# ============================================================

@dataclass
class TransportResponse:
    """Raw outcome of one HTTP exchange."""

    body: Optional[bytes] = None
    status: Optional[int] = None
    headers: Dict[str, str] = field(default_factory=dict)
    url: Optional[str] = None
    error: Optional[BaseException] = None


class Transport(ABC):
    """Asynchronous HTTP transport."""

    @abstractmethod
    async def send(self, request: PreparedRequest) -> TransportResponse:
        """Dispatch request; never raises for network failures."""
        pass

    async def close(self) -> None:
        """Release transport resources."""
        pass

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


# ============================================================
# AIOHTTP TRANSPORT
# ============================================================

class AiohttpTransport(Transport):
    """
    aiohttp-backed transport.

    Creates its own ClientSession lazily unless one is supplied; a
    borrowed session is never closed by the transport.
    """

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize transport.

        Args:
            timeout_seconds: Total request timeout
            session: Existing session to borrow
        """
        self._timeout = timeout_seconds
        self._session = session
        self._owns_session = session is None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def send(self, request: PreparedRequest) -> TransportResponse:
        session = await self._ensure_session()

        try:
            async with session.request(
                request.method,
                request.url,
                headers=request.headers,
                data=request.body,
            ) as resp:
                body = await resp.read()
                return TransportResponse(
                    body=body,
                    status=resp.status,
                    headers=dict(resp.headers),
                    url=str(resp.url),
                )
        except aiohttp.ClientError as e:
            return TransportResponse(url=request.url, error=e)
        except asyncio.TimeoutError as e:
            return TransportResponse(url=request.url, error=e)

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None


# ============================================================
# MOCK TRANSPORT
# ============================================================

@dataclass
class MockRoute:
    """Canned response for one method+path."""

    status: int = 200
    body: Union[bytes, str, Dict[str, Any], List[Any], None] = None
    headers: Dict[str, str] = field(default_factory=dict)
    delay_seconds: float = 0.0
    error: Optional[BaseException] = None

    def encoded_body(self) -> Optional[bytes]:
        if self.body is None:
            return None
        if isinstance(self.body, bytes):
            return self.body
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return json.dumps(self.body).encode("utf-8")


class MockTransport(Transport):
    """
    In-process transport serving canned responses.

    A route may hold a list of responses, served in order with the last
    one repeated. Unrouted requests get a 404 with a JSON message.
    """

    def __init__(self):
        self._routes: Dict[Tuple[str, str], List[MockRoute]] = {}
        self.requests: List[PreparedRequest] = []

    def add_route(
        self,
        path: str,
        body: Any = None,
        status: int = 200,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        delay_seconds: float = 0.0,
        error: Optional[BaseException] = None,
    ) -> "MockTransport":
        """Append a canned response for method+path."""
        route = MockRoute(
            status=status,
            body=body,
            headers=headers or {"Content-Type": "application/json"},
            delay_seconds=delay_seconds,
            error=error,
        )
        self._routes.setdefault((method.upper(), path), []).append(route)
        return self

    def set_route(self, path: str, body: Any = None, **kwargs) -> "MockTransport":
        """Replace all canned responses for a path."""
        method = kwargs.get("method", "GET").upper()
        self._routes.pop((method, path), None)
        return self.add_route(path, body, **kwargs)

    def requests_for(self, path: str) -> List[PreparedRequest]:
        return [r for r in self.requests if r.path == path]

    def _next_route(self, method: str, path: str) -> Optional[MockRoute]:
        queue = self._routes.get((method, path))
        if not queue:
            return None
        if len(queue) > 1:
            return queue.pop(0)
        return queue[0]

    async def send(self, request: PreparedRequest) -> TransportResponse:
        self.requests.append(request)
        route = self._next_route(request.method.upper(), request.path)

        if route is None:
            return TransportResponse(
                body=b'{"message": "NotFound"}',
                status=404,
                url=request.url,
            )

        if route.delay_seconds:
            await asyncio.sleep(route.delay_seconds)

        return TransportResponse(
            body=route.encoded_body(),
            status=None if route.error and route.body is None else route.status,
            headers=dict(route.headers),
            url=request.url,
            error=route.error,
        )


__all__ = [
    "TransportResponse",
    "Transport",
    "AiohttpTransport",
    "MockRoute",
    "MockTransport",
]
