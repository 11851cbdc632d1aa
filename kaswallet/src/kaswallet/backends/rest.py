"""
Kaspa REST API backend (api.kaspa.org compatible).

Used for UTXO and balance queries and, by default, for broadcasting via
``POST /transactions``.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
from loguru import logger

from kaswallet.backends.base import BroadcastResult, Broadcaster, UtxoSource, parse_utxo_entry
from kaswallet.errors import TransportError
from kaswallet.wallet.models import UtxoEntry

DEFAULT_API_URL = "https://api.kaspa.org"
REJECTION_STATUSES = frozenset({400, 409, 422})


def extract_error_message(body: Any) -> str:
    """Pick the human-readable reason out of an error body."""
    if isinstance(body, dict):
        for key in ("detail", "error", "message"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and isinstance(value.get("message"), str):
                return value["message"]
    if isinstance(body, str) and body:
        return body
    return json.dumps(body)


class KaspaRestBackend(UtxoSource, Broadcaster):
    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def _request(
        self, method: str, endpoint: str, data: dict[str, Any] | None = None
    ) -> httpx.Response:
        url = f"{self.api_url}/{endpoint}"
        try:
            if method == "GET":
                return await self.client.get(url)
            elif method == "POST":
                return await self.client.post(url, json=data)
            else:
                raise ValueError(f"Unsupported HTTP method: {method}")
        except httpx.TimeoutException as e:
            logger.warning(f"Kaspa API timeout: {endpoint}")
            raise TransportError(f"Request to {endpoint} timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"Kaspa API call failed: {endpoint} - {e}")
            raise TransportError(f"Request to {endpoint} failed: {e}") from e

    async def _get_json(self, endpoint: str) -> Any:
        response = await self._request("GET", endpoint)
        if response.status_code != 200:
            raise TransportError(f"{endpoint} returned HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"{endpoint} returned invalid JSON") from e

    async def get_utxos(self, address: str) -> list[UtxoEntry]:
        data = await self._get_json(f"addresses/{address}/utxos")
        if not isinstance(data, list):
            raise TransportError("UTXO response is not a list")

        utxos = [parse_utxo_entry(item) for item in data]
        logger.debug(f"Fetched {len(utxos)} UTXO(s) for {address}")
        return utxos

    async def get_balance(self, address: str) -> int:
        data = await self._get_json(f"addresses/{address}/balance")
        try:
            return int(data["balance"])
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError(f"Malformed balance response: {data!r}") from e

    async def submit(self, serialized_tx: dict[str, Any]) -> BroadcastResult:
        response = await self._request(
            "POST", "transactions", {"transaction": serialized_tx, "allowOrphan": False}
        )

        try:
            body = response.json()
        except ValueError:
            body = response.text

        # Only these statuses carry a verdict on the transaction itself; anything
        # else (5xx, 404, 429, ...) means the endpoint did not judge it
        if not response.is_success and response.status_code not in REJECTION_STATUSES:
            raise TransportError(
                f"Broadcast endpoint error HTTP {response.status_code}: "
                f"{extract_error_message(body)}"
            )

        if response.is_success:
            if isinstance(body, dict) and body.get("transactionId"):
                txid = str(body["transactionId"])
                logger.info(f"Transaction accepted: {txid}")
                return BroadcastResult.accept(txid)
            raise TransportError(f"Broadcast response missing transactionId: {body!r}")

        reason = extract_error_message(body)
        logger.warning(f"Transaction rejected (HTTP {response.status_code}): {reason}")
        return BroadcastResult.reject(reason)

    async def close(self) -> None:
        await self.client.aclose()
