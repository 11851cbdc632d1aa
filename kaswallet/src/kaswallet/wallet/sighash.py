"""
Kaspa Schnorr signature hash.

The digest is a keyed BLAKE2b-256 (key = b"TransactionSigningHash") over:

    version                u16 LE
    previous_outputs_hash  keyed hash of every input's outpoint
    sequences_hash         keyed hash of every input's sequence (u64 LE)
    sig_op_counts_hash     keyed hash of every input's sig op count (u8)
    outpoint               the signed input's txid ++ index (u32 LE)
    script_public_key      spent output: version (u16 LE) ++ varint(len) ++ script
    amount                 spent output amount (u64 LE)
    sequence               the signed input's sequence (u64 LE)
    sig_op_count           the signed input's sig op count (u8)
    outputs_hash           keyed hash of every output
    lock_time              u64 LE
    subnetwork_id          20 raw bytes
    gas                    u64 LE
    payload_hash           zero hash for a native transaction without payload
    sighash_type           u8

The BLAKE2b key is the literal domain string, and the same key is used for
every sub-hash.
"""

from __future__ import annotations

import hashlib

from kaswallet.constants import SIG_HASH_ALL, SIGHASH_DOMAIN, SUBNETWORK_ID_NATIVE
from kaswallet.errors import SigningError
from kaswallet.wallet.models import UtxoEntry, encode_varint
from kaswallet.wallet.transaction import Transaction

ZERO_HASH = bytes(32)


def signing_hasher() -> hashlib.blake2b:
    return hashlib.blake2b(key=SIGHASH_DOMAIN, digest_size=32)


def _keyed_hash(data: bytes) -> bytes:
    hasher = signing_hasher()
    hasher.update(data)
    return hasher.digest()


def u16(value: int) -> bytes:
    return value.to_bytes(2, "little")


def u64(value: int) -> bytes:
    return value.to_bytes(8, "little")


def hash_previous_outputs(tx: Transaction) -> bytes:
    return _keyed_hash(b"".join(inp.previous_outpoint.serialize() for inp in tx.inputs))


def hash_sequences(tx: Transaction) -> bytes:
    return _keyed_hash(b"".join(u64(inp.sequence) for inp in tx.inputs))


def hash_sig_op_counts(tx: Transaction) -> bytes:
    return _keyed_hash(bytes(inp.sig_op_count for inp in tx.inputs))


def hash_outputs(tx: Transaction) -> bytes:
    return _keyed_hash(
        b"".join(u64(out.amount) + out.script_public_key.serialize() for out in tx.outputs)
    )


def hash_payload(tx: Transaction) -> bytes:
    """
    A native-subnetwork transaction with no payload commits to the all-zero
    placeholder, not to the hash of an empty byte string.
    """
    if tx.subnetwork_id == SUBNETWORK_ID_NATIVE and not tx.payload:
        return ZERO_HASH
    return _keyed_hash(encode_varint(len(tx.payload)) + tx.payload)


def signature_preimage(
    tx: Transaction,
    input_index: int,
    spent_utxo: UtxoEntry,
    sighash_type: int = SIG_HASH_ALL,
) -> bytes:
    """Byte string fed to the signing hasher for one input."""
    if not 0 <= input_index < len(tx.inputs):
        raise SigningError(f"Input index {input_index} out of range ({len(tx.inputs)} inputs)")

    target = tx.inputs[input_index]
    if target.previous_outpoint != spent_utxo.outpoint:
        raise SigningError(
            f"Spent UTXO {spent_utxo.outpoint} does not match input {input_index} "
            f"({target.previous_outpoint})"
        )
    if len(tx.subnetwork_id) != 20:
        raise SigningError(f"Subnetwork id must be 20 bytes, got {len(tx.subnetwork_id)}")

    try:
        return b"".join(
            [
                u16(tx.version),
                hash_previous_outputs(tx),
                hash_sequences(tx),
                hash_sig_op_counts(tx),
                target.previous_outpoint.serialize(),
                spent_utxo.script_public_key.serialize(),
                u64(spent_utxo.amount),
                u64(target.sequence),
                bytes([target.sig_op_count]),
                hash_outputs(tx),
                u64(tx.lock_time),
                tx.subnetwork_id,
                u64(tx.gas),
                hash_payload(tx),
                bytes([sighash_type]),
            ]
        )
    except (OverflowError, ValueError) as e:
        raise SigningError(f"Failed to compute sighash: {e}") from e


def compute_digest(
    tx: Transaction,
    input_index: int,
    spent_utxo: UtxoEntry,
    sighash_type: int = SIG_HASH_ALL,
) -> bytes:
    """32-byte signature hash for input ``input_index`` spending ``spent_utxo``."""
    return _keyed_hash(signature_preimage(tx, input_index, spent_utxo, sighash_type))
