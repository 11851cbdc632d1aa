"""
Shared fixtures for kaswallet tests.
"""

from __future__ import annotations

import pytest

from kaswallet.backends.base import BroadcastResult, Broadcaster, UtxoSource
from kaswallet.wallet.address import pay_to_pubkey_script
from kaswallet.wallet.keys import KeyPair, from_raw_key
from kaswallet.wallet.models import Outpoint, UtxoEntry


class FakeNode(UtxoSource, Broadcaster):
    """
    Serves a fixed UTXO snapshot and judges submissions like a node would:
    spending an outpoint twice is rejected.
    """

    def __init__(self, utxos):
        self.utxos = list(utxos)
        self.spent: set[tuple[str, int]] = set()
        self.submitted: list[dict] = []
        self.closed = 0

    async def get_utxos(self, address: str):
        return list(self.utxos)

    async def submit(self, serialized_tx: dict) -> BroadcastResult:
        self.submitted.append(serialized_tx)
        outpoints = {
            (inp["previousOutpoint"]["transactionId"], inp["previousOutpoint"]["index"])
            for inp in serialized_tx["inputs"]
        }
        if outpoints & self.spent:
            return BroadcastResult.reject("transaction input already spent")
        self.spent |= outpoints
        return BroadcastResult.accept(f"{len(self.submitted):064x}")

    async def close(self) -> None:
        self.closed += 1


@pytest.fixture
def sample_mnemonic() -> str:
    return (
        "abandon abandon abandon abandon abandon abandon "
        "abandon abandon abandon abandon abandon about"
    )


@pytest.fixture
def keypair() -> KeyPair:
    """Private key 1; its x-only public key is the secp256k1 generator x."""
    return from_raw_key("00" * 31 + "01")


@pytest.fixture
def other_keypair() -> KeyPair:
    return from_raw_key("00" * 31 + "02")


@pytest.fixture
def make_utxo():
    """Factory for UTXOs locked to a keypair's P2PK script."""

    def _make_utxo(
        amount: int,
        keypair: KeyPair,
        txid_byte: int = 0x11,
        index: int = 0,
    ) -> UtxoEntry:
        return UtxoEntry(
            outpoint=Outpoint(bytes([txid_byte]) * 32, index),
            amount=amount,
            script_public_key=pay_to_pubkey_script(keypair.x_only_public_key),
        )

    return _make_utxo


@pytest.fixture
def fake_node():
    """Factory for a FakeNode serving the given UTXOs."""
    return FakeNode
