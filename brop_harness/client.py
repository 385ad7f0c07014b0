"""Correlating websocket client for the BROP bridge.

One ``BridgeClient`` owns one websocket. Any number of ``invoke`` calls can be
outstanding at once; replies are matched back to callers by request id, in
whatever order the bridge sends them.
"""

from __future__ import annotations

import asyncio
import itertools
import os
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import websockets
from loguru import logger

from brop_harness.envelope import (
    RequestEnvelope,
    RequestId,
    ResponseEnvelope,
    decode_response,
    encode_request,
)
from brop_harness.errors import (
    BridgeConnectionError,
    ConnectionClosed,
    ParseError,
    RemoteError,
    RequestTimeout,
)

DEFAULT_WS_URL = os.environ.get("BROP_WS_URL", "ws://localhost:9225")
DEFAULT_TIMEOUT = float(os.environ.get("BROP_TIMEOUT", "30"))
CONNECT_TIMEOUT = float(os.environ.get("BROP_CONNECT_TIMEOUT", "5"))

MAX_FRAME_SIZE = 10 * 1024 * 1024  # screenshots can exceed 1MB


def build_url(base: str, name: str | None = None) -> str:
    """Attach the client-identifying ``name`` query value to a bridge URL."""
    if not name:
        return base
    parts = urlsplit(base)
    query = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k != "name"
    ]
    query.append(("name", name))
    return urlunsplit(parts._replace(query=urlencode(query)))


@dataclass
class _PendingRequest:
    id: RequestId
    method: str
    future: asyncio.Future
    timer: asyncio.TimerHandle | None = None


class BridgeClient:
    """Multiplexes independent request/response exchanges over one websocket."""

    def __init__(
        self,
        url: str = DEFAULT_WS_URL,
        name: str | None = None,
        default_timeout: float = DEFAULT_TIMEOUT,
        connect_timeout: float = CONNECT_TIMEOUT,
    ):
        self.url = build_url(url, name)
        self.name = name
        self.default_timeout = default_timeout
        self.connect_timeout = connect_timeout
        self.malformed_frames = 0
        self._ws = None
        self._reader: asyncio.Task | None = None
        self._pending: dict[RequestId, _PendingRequest] = {}
        self._counter = itertools.count(1)
        self._id_prefix = name or "req"

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def __aenter__(self) -> BridgeClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.disconnect()

    async def connect(self) -> None:
        """Open the websocket and start the receive loop."""
        if self._ws is not None:
            raise RuntimeError("BridgeClient is already connected")
        try:
            ws = await asyncio.wait_for(
                websockets.connect(self.url, max_size=MAX_FRAME_SIZE),
                timeout=self.connect_timeout,
            )
        except asyncio.TimeoutError as exc:
            raise BridgeConnectionError(
                f"Timed out connecting to {self.url} after {self.connect_timeout}s"
            ) from exc
        except (OSError, websockets.exceptions.WebSocketException) as exc:
            raise BridgeConnectionError(
                f"Cannot connect to BROP bridge at {self.url}: {exc}"
            ) from exc

        self._ws = ws
        self._reader = asyncio.create_task(self._receive_loop(ws))
        logger.info("Connected to BROP bridge at {}", self.url)

    async def invoke(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
        request_id: RequestId | None = None,
    ) -> Any:
        """Send a command and wait for its reply.

        Returns the ``result`` of a successful reply. Raises RemoteError when
        the bridge reports failure, RequestTimeout when no reply arrives
        within ``timeout`` seconds, and ConnectionClosed when the connection
        goes away first.
        """
        ws = self._ws
        if ws is None:
            raise ConnectionClosed(f"Cannot send {method}: not connected")
        if request_id is None:
            request_id = f"{self._id_prefix}_{next(self._counter)}"
            while request_id in self._pending:
                request_id = f"{self._id_prefix}_{next(self._counter)}"
        elif request_id in self._pending:
            raise ValueError(f"Request id {request_id!r} is already outstanding")
        if timeout is None:
            timeout = self.default_timeout

        frame = encode_request(RequestEnvelope(request_id, method, params or {}))
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        pending = _PendingRequest(id=request_id, method=method, future=future)
        pending.timer = loop.call_later(
            timeout, self._expire, request_id, future, timeout
        )
        self._pending[request_id] = pending
        logger.debug("-> {} {}", request_id, method)

        try:
            try:
                await ws.send(frame)
            except (websockets.exceptions.ConnectionClosed, OSError) as exc:
                if self._pop(request_id, future) is not None:
                    raise ConnectionClosed(
                        f"Connection closed while sending {method}"
                    ) from exc
            return await future
        except asyncio.CancelledError:
            self._pop(request_id, future)
            raise

    async def disconnect(self) -> None:
        """Close the connection, failing every outstanding request."""
        ws, reader = self._ws, self._reader
        self._ws = None
        self._reader = None
        self._fail_all("Connection closed by client")

        if reader is not None and not reader.done():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass
        if ws is not None:
            await _close_quietly(ws)
            logger.info("Disconnected from BROP bridge at {}", self.url)

    # ── internals ────────────────────────────────────────────────

    def _pop(
        self, request_id: RequestId, future: asyncio.Future | None = None
    ) -> _PendingRequest | None:
        """Remove one pending record and cancel its timer."""
        pending = self._pending.get(request_id)
        if pending is None:
            return None
        if future is not None and pending.future is not future:
            return None
        del self._pending[request_id]
        if pending.timer is not None:
            pending.timer.cancel()
        return pending

    def _expire(
        self, request_id: RequestId, future: asyncio.Future, timeout: float
    ) -> None:
        pending = self._pop(request_id, future)
        if pending is None or pending.future.done():
            return
        logger.debug("Request {} ({}) timed out", request_id, pending.method)
        pending.future.set_exception(
            RequestTimeout(f"{pending.method} timed out after {timeout}s")
        )

    def _fail_all(self, reason: str) -> None:
        pending, self._pending = self._pending, {}
        for record in pending.values():
            if record.timer is not None:
                record.timer.cancel()
            if not record.future.done():
                record.future.set_exception(
                    ConnectionClosed(f"{reason} ({record.method} was pending)")
                )

    def _dispatch(self, raw: str | bytes) -> None:
        try:
            response = decode_response(raw)
        except ParseError as exc:
            self.malformed_frames += 1
            logger.warning("Dropping malformed frame: {}", exc)
            return

        pending = self._pop(response.id)
        if pending is None:
            logger.debug("Dropping response for unknown id {!r}", response.id)
            return
        logger.debug("<- {} success={}", response.id, response.success)
        if pending.future.done():
            return
        self._settle(pending, response)

    @staticmethod
    def _settle(pending: _PendingRequest, response: ResponseEnvelope) -> None:
        if response.success:
            pending.future.set_result(response.result)
        else:
            pending.future.set_exception(
                RemoteError(response.error or "Unknown error", method=pending.method)
            )

    async def _receive_loop(self, ws) -> None:
        failed = False
        try:
            async for raw in ws:
                self._dispatch(raw)
        except websockets.exceptions.ConnectionClosed as exc:
            logger.warning("Connection to {} lost: {}", self.url, exc)
        except Exception:
            failed = True
            logger.exception("Receive loop for {} failed", self.url)
        finally:
            if self._ws is ws:
                self._ws = None
                self._fail_all("Connection to bridge lost")
                # the transport may still be open
                if failed:
                    await _close_quietly(ws)


async def _close_quietly(ws) -> None:
    try:
        await ws.close()
    except Exception as exc:
        logger.debug("Error while closing websocket: {}", exc)


async def probe(
    url: str = DEFAULT_WS_URL,
    timeout: float = CONNECT_TIMEOUT,
    name: str = "test_runner_check",
) -> None:
    """Check that the bridge accepts connections; raises BridgeConnectionError."""
    client = BridgeClient(url, name=name, connect_timeout=timeout)
    await client.connect()
    await client.disconnect()
