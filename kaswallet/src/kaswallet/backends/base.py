"""
Base interfaces for UTXO sources and transaction broadcasters.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from kaswallet.errors import ConsensusRejection, TransportError
from kaswallet.wallet.models import Outpoint, ScriptPublicKey, UtxoEntry


@dataclass(frozen=True)
class BroadcastResult:
    """
    Outcome of a submission that reached the network.

    Transport failures are never represented here; they raise TransportError.
    """

    accepted: bool
    transaction_id: str | None = None
    reason: str | None = None

    @classmethod
    def accept(cls, transaction_id: str) -> BroadcastResult:
        return cls(accepted=True, transaction_id=transaction_id)

    @classmethod
    def reject(cls, reason: str) -> BroadcastResult:
        return cls(accepted=False, reason=reason)

    @property
    def rejected(self) -> bool:
        return not self.accepted

    def raise_for_rejection(self) -> BroadcastResult:
        if not self.accepted:
            raise ConsensusRejection(self.reason or "no reason given")
        return self


def _parse_amount(value: Any) -> int:
    amount = int(value)
    if amount < 0:
        raise ValueError(f"Negative amount: {value}")
    return amount


def parse_utxo_entry(raw: dict[str, Any]) -> UtxoEntry:
    """
    Parse one UTXO from the indexer's JSON shape:

        {"outpoint": {"transactionId", "index"},
         "utxoEntry": {"amount", "scriptPublicKey": {"scriptPublicKey", "version"?},
                       "blockDaaScore", "isCoinbase"}}

    Integer fields may arrive as strings.
    """
    try:
        outpoint = raw["outpoint"]
        entry = raw["utxoEntry"]
        spk = entry["scriptPublicKey"]
        if isinstance(spk, str):
            script_hex, script_version = spk, 0
        else:
            script_hex, script_version = spk["scriptPublicKey"], int(spk.get("version", 0))

        return UtxoEntry(
            outpoint=Outpoint.from_hex(outpoint["transactionId"], int(outpoint.get("index", 0))),
            amount=_parse_amount(entry["amount"]),
            script_public_key=ScriptPublicKey(script_version, bytes.fromhex(script_hex)),
            block_daa_score=int(entry.get("blockDaaScore", 0)),
            is_coinbase=bool(entry.get("isCoinbase", False)),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise TransportError(f"Malformed UTXO entry from data service: {e}") from e


class UtxoSource(ABC):
    """Point-in-time view of the spendable outputs of an address."""

    @abstractmethod
    async def get_utxos(self, address: str) -> list[UtxoEntry]:
        """Fetch spendable outputs for an address"""

    async def get_balance(self, address: str) -> int:
        """Balance in sompi. Default sums the UTXO set."""
        return sum(u.amount for u in await self.get_utxos(address))

    async def close(self) -> None:
        """Close backend connection"""
        pass


class Broadcaster(ABC):
    @abstractmethod
    async def submit(self, serialized_tx: dict[str, Any]) -> BroadcastResult:
        """
        Submit a fully signed transaction (``Transaction.to_rpc_json()``).

        Returns an accepted or rejected BroadcastResult.

        Raises:
            TransportError: if no definitive answer was received.
        """

    async def close(self) -> None:
        """Close transport. Aborts any in-flight submission."""
        pass
