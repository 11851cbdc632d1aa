"""
Kaspa wRPC (JSON encoding) broadcaster over a persistent WebSocket.

Requests are ``{"id", "method": "submitTransaction", "params"}``; a response
carries the same id with either a result or an ``error`` object. Every
submission is bounded by a timeout. On timeout or a dropped connection the
socket is closed and TransportError raised; the signed bytes are never
resubmitted from here. Concurrent submissions on one broadcaster are
serialized, so replies are always read by the request that expects them.
"""

from __future__ import annotations

import asyncio
import json
from itertools import count
from typing import Any

import aiohttp
from loguru import logger

from kaswallet.backends.base import BroadcastResult, Broadcaster
from kaswallet.backends.rest import extract_error_message
from kaswallet.errors import TransportError

DEFAULT_WRPC_URL = "wss://kaspa.aspectron.com/v2/kaspa/mainnet/tls/wrpc/json"

_CLOSED_TYPES = (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED)


class WrpcBroadcaster(Broadcaster):
    def __init__(
        self,
        url: str = DEFAULT_WRPC_URL,
        timeout: float = 30.0,
        session: aiohttp.ClientSession | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._ws: Any = None
        self._ids = count(1)
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self) -> None:
        if self.connected:
            return
        if self._session is None:
            self._session = aiohttp.ClientSession()
        try:
            self._ws = await self._session.ws_connect(self.url)
        except (aiohttp.ClientError, OSError) as e:
            raise TransportError(f"Failed to connect to {self.url}: {e}") from e
        logger.info(f"Connected to wRPC endpoint {self.url}")

    async def _roundtrip(self, request: dict[str, Any]) -> dict[str, Any]:
        await self.connect()
        await self._ws.send_json(request)

        while True:
            msg = await self._ws.receive()
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    data = json.loads(msg.data)
                except ValueError:
                    logger.warning("Ignoring non-JSON wRPC frame")
                    continue
                if isinstance(data, dict) and data.get("id") == request["id"]:
                    return data
                logger.debug(f"Discarding wRPC frame not addressed to request {request['id']}")
                continue
            if msg.type in _CLOSED_TYPES:
                raise TransportError("wRPC connection closed before a response arrived")
            if msg.type == aiohttp.WSMsgType.ERROR:
                raise TransportError(f"wRPC connection error: {msg.data}")

    async def submit(self, serialized_tx: dict[str, Any]) -> BroadcastResult:
        request = {
            "id": next(self._ids),
            "method": "submitTransaction",
            "params": {"transaction": serialized_tx, "allowOrphan": False},
        }

        # One request in flight per socket; aiohttp allows a single reader
        async with self._lock:
            try:
                response = await asyncio.wait_for(self._roundtrip(request), timeout=self.timeout)
            except TimeoutError as e:
                logger.warning(f"wRPC submit timed out after {self.timeout}s")
                await self.close()
                raise TransportError(f"Submission timed out after {self.timeout}s") from e
            except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
                await self.close()
                raise TransportError(f"wRPC transport failure: {e}") from e
            except TransportError:
                await self.close()
                raise

        if response.get("error"):
            reason = extract_error_message(response["error"])
            logger.warning(f"Transaction rejected: {reason}")
            return BroadcastResult.reject(reason)

        # rusty-kaspa's JSON wRPC replies under "params"; JSON-RPC style under "result"
        result = response.get("result") or response.get("params")
        if isinstance(result, dict) and result.get("transactionId"):
            txid = str(result["transactionId"])
            logger.info(f"Transaction accepted: {txid}")
            return BroadcastResult.accept(txid)

        async with self._lock:
            await self.close()
        raise TransportError(f"Malformed wRPC response: {response!r}")

    async def close(self) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
