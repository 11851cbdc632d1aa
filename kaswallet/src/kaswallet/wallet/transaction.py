"""
Kaspa transaction model and builder.

Builds the unsigned transaction skeleton for a publish:
- Inputs: the selected UTXOs, in selection order
- Outputs: spend output(s) in caller order, then change
- Payload: the application event, carried at transaction level
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from kaswallet.constants import (
    DEFAULT_SEQUENCE,
    DEFAULT_SIG_OP_COUNT,
    GAS,
    LOCK_TIME,
    SUBNETWORK_ID_NATIVE,
    TX_VERSION,
)
from kaswallet.wallet.models import CoinSelection, Outpoint, ScriptPublicKey, UtxoEntry

U64_MAX = 0xFFFFFFFFFFFFFFFF


@dataclass
class TransactionInput:
    """Transaction input. signature_script stays empty until signed."""

    previous_outpoint: Outpoint
    signature_script: bytes = b""
    sequence: int = DEFAULT_SEQUENCE
    sig_op_count: int = DEFAULT_SIG_OP_COUNT

    @property
    def is_signed(self) -> bool:
        return bool(self.signature_script)


@dataclass(frozen=True)
class TransactionOutput:
    """Transaction output."""

    amount: int
    script_public_key: ScriptPublicKey


@dataclass
class Transaction:
    version: int
    inputs: list[TransactionInput]
    outputs: list[TransactionOutput]
    lock_time: int = LOCK_TIME
    subnetwork_id: bytes = SUBNETWORK_ID_NATIVE
    gas: int = GAS
    payload: bytes = field(default=b"")

    def is_fully_signed(self) -> bool:
        return all(inp.is_signed for inp in self.inputs)

    @property
    def output_total(self) -> int:
        return sum(out.amount for out in self.outputs)

    def to_rpc_json(self) -> dict[str, Any]:
        """
        Broadcast JSON shape. u64 fields are decimal strings so that values
        beyond 2**53 survive JSON parsers that use doubles.
        """
        return {
            "version": self.version,
            "inputs": [
                {
                    "previousOutpoint": {
                        "transactionId": inp.previous_outpoint.txid,
                        "index": inp.previous_outpoint.index,
                    },
                    "signatureScript": inp.signature_script.hex(),
                    "sequence": str(inp.sequence),
                    "sigOpCount": inp.sig_op_count,
                }
                for inp in self.inputs
            ],
            "outputs": [
                {
                    "amount": str(out.amount),
                    "scriptPublicKey": {
                        "version": out.script_public_key.version,
                        "scriptPublicKey": out.script_public_key.script.hex(),
                    },
                }
                for out in self.outputs
            ],
            "lockTime": str(self.lock_time),
            "subnetworkId": self.subnetwork_id.hex(),
            "gas": str(self.gas),
            "payload": self.payload.hex(),
        }


class TransactionBuilder:
    """
    Builds unsigned Kaspa transactions.

    Input order follows the selected UTXO list exactly; it is committed to by
    every input's signature hash and must not change once signing starts.
    """

    def __init__(self, version: int = TX_VERSION):
        self.version = version

    def build(
        self,
        selected_utxos: list[UtxoEntry],
        outputs: list[TransactionOutput],
        payload: bytes = b"",
    ) -> Transaction:
        if not selected_utxos:
            raise ValueError("Transaction needs at least one input")
        if not outputs:
            raise ValueError("Transaction needs at least one output")

        seen: set[Outpoint] = set()
        for utxo in selected_utxos:
            if utxo.outpoint in seen:
                raise ValueError(f"Duplicate input {utxo.outpoint}")
            seen.add(utxo.outpoint)

        for out in outputs:
            if not 0 < out.amount <= U64_MAX:
                raise ValueError(f"Output amount out of range: {out.amount}")

        inputs = [TransactionInput(previous_outpoint=u.outpoint) for u in selected_utxos]

        return Transaction(
            version=self.version,
            inputs=inputs,
            outputs=list(outputs),
            lock_time=LOCK_TIME,
            subnetwork_id=SUBNETWORK_ID_NATIVE,
            gas=GAS,
            payload=bytes(payload),
        )

    def build_from_selection(
        self,
        selection: CoinSelection,
        spend_outputs: list[TransactionOutput],
        change_script: ScriptPublicKey,
        payload: bytes = b"",
    ) -> Transaction:
        """Spend outputs first, then a change output when the selection has one."""
        spend_total = sum(out.amount for out in spend_outputs)
        if spend_total != selection.spend_amount:
            raise ValueError(
                f"Spend outputs total {spend_total} does not match selection "
                f"spend amount {selection.spend_amount}"
            )

        outputs = list(spend_outputs)
        if selection.has_change:
            outputs.append(TransactionOutput(selection.change_amount, change_script))

        return self.build(selection.utxos, outputs, payload)
