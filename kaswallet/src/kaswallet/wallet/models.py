"""
Wallet data models.
"""

from __future__ import annotations

from dataclasses import dataclass


def encode_varint(value: int) -> bytes:
    """Minimal-width compact size integer."""
    if value < 0:
        raise ValueError(f"varint cannot be negative: {value}")
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + value.to_bytes(2, "little")
    if value <= 0xFFFFFFFF:
        return b"\xfe" + value.to_bytes(4, "little")
    return b"\xff" + value.to_bytes(8, "little")


@dataclass(frozen=True)
class Outpoint:
    transaction_id: bytes
    index: int

    def __post_init__(self) -> None:
        if len(self.transaction_id) != 32:
            raise ValueError(f"Transaction id must be 32 bytes, got {len(self.transaction_id)}")
        if not 0 <= self.index <= 0xFFFFFFFF:
            raise ValueError(f"Output index out of range: {self.index}")

    @classmethod
    def from_hex(cls, txid: str, index: int) -> Outpoint:
        return cls(bytes.fromhex(txid), index)

    @property
    def txid(self) -> str:
        return self.transaction_id.hex()

    def serialize(self) -> bytes:
        """txid ++ index (u32 LE). The id is used in its natural byte order."""
        return self.transaction_id + self.index.to_bytes(4, "little")

    def __str__(self) -> str:
        return f"{self.txid}:{self.index}"


@dataclass(frozen=True)
class ScriptPublicKey:
    version: int
    script: bytes

    def serialize(self) -> bytes:
        """version (u16 LE) ++ varint(len) ++ script"""
        return self.version.to_bytes(2, "little") + encode_varint(len(self.script)) + self.script


@dataclass(frozen=True)
class UtxoEntry:
    """Spendable output as reported by the UTXO index. Read-only."""

    outpoint: Outpoint
    amount: int
    script_public_key: ScriptPublicKey
    block_daa_score: int = 0
    is_coinbase: bool = False


@dataclass
class CoinSelection:
    """Result of coin selection"""

    utxos: list[UtxoEntry]
    total_input: int
    spend_amount: int
    change_amount: int
    fee: int  # effective fee, including any change absorbed as dust
    absorbed_dust: int = 0

    @property
    def has_change(self) -> bool:
        return self.change_amount > 0
