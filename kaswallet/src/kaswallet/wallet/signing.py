"""
Schnorr signing for Kaspa P2PK inputs.

Each input is signed over its own signature hash and the result is written
into the input as ``OP_DATA_65 <64-byte signature ++ sighash type>``. Every
signature is verified against the x-only public key before it is accepted.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from coincurve import PrivateKey, PublicKeyXOnly
from loguru import logger

from kaswallet.constants import OP_DATA_65, SIG_HASH_ALL
from kaswallet.errors import SigningError, UnsupportedSignerOperation
from kaswallet.wallet.keys import KeyPair
from kaswallet.wallet.models import UtxoEntry
from kaswallet.wallet.sighash import compute_digest
from kaswallet.wallet.transaction import Transaction


def sign(private_key: PrivateKey, digest: bytes) -> bytes:
    """64-byte BIP340 Schnorr signature over a 32-byte digest."""
    if len(digest) != 32:
        raise SigningError(f"Digest must be 32 bytes, got {len(digest)}")
    try:
        return private_key.sign_schnorr(digest)
    except ValueError as e:
        raise SigningError(f"Schnorr signing failed: {e}") from e


def verify(signature: bytes, x_only_pubkey: bytes, digest: bytes) -> bool:
    if len(signature) != 64 or len(x_only_pubkey) != 32 or len(digest) != 32:
        return False
    try:
        return PublicKeyXOnly(x_only_pubkey).verify(signature, digest)
    except ValueError:
        return False


def build_signature_script(signature: bytes, sighash_type: int = SIG_HASH_ALL) -> bytes:
    if len(signature) != 64:
        raise SigningError(f"Schnorr signature must be 64 bytes, got {len(signature)}")
    return bytes([OP_DATA_65]) + signature + bytes([sighash_type])


class SigningBackend(ABC):
    """Anything that can produce Schnorr signatures for one x-only key."""

    @property
    @abstractmethod
    def x_only_public_key(self) -> bytes:
        """32-byte x-only public key the signatures verify against"""

    @abstractmethod
    def sign_digest(self, digest: bytes) -> bytes:
        """Return a 64-byte Schnorr signature over ``digest``"""


class LocalSigningBackend(SigningBackend):
    def __init__(self, keypair: KeyPair):
        self.keypair = keypair

    @property
    def x_only_public_key(self) -> bytes:
        return self.keypair.x_only_public_key

    def sign_digest(self, digest: bytes) -> bytes:
        return sign(self.keypair.private_key(), digest)


class ExternalSigner(SigningBackend):
    """
    Signer living outside this process (for example a browser wallet extension).

    Implementations declare what they support in ``capabilities``; calling
    anything else raises UnsupportedSignerOperation.
    """

    SIGN_DIGEST = "sign_digest"
    SEND_PAYLOAD = "send_payload"

    capabilities: frozenset[str] = frozenset()

    def supports(self, capability: str) -> bool:
        return capability in self.capabilities

    def require(self, capability: str) -> None:
        if not self.supports(capability):
            raise UnsupportedSignerOperation(
                f"{type(self).__name__} does not support {capability!r}"
            )

    def sign_digest(self, digest: bytes) -> bytes:
        self.require(self.SIGN_DIGEST)
        return self._sign_digest(digest)

    async def send_payload(self, destination: str, amount: int, payload: bytes) -> str:
        """Delegate building, signing and broadcasting entirely to the signer."""
        self.require(self.SEND_PAYLOAD)
        return await self._send_payload(destination, amount, payload)

    def _sign_digest(self, digest: bytes) -> bytes:
        raise UnsupportedSignerOperation(f"{type(self).__name__} cannot sign digests")

    async def _send_payload(self, destination: str, amount: int, payload: bytes) -> str:
        raise UnsupportedSignerOperation(f"{type(self).__name__} cannot send payloads")


def sign_input(
    tx: Transaction,
    input_index: int,
    spent_utxo: UtxoEntry,
    backend: SigningBackend,
) -> bytes:
    """
    Sign one input in place.

    Returns the signature script that was written into the input.
    """
    if not 0 <= input_index < len(tx.inputs):
        raise SigningError(f"Input index {input_index} out of range ({len(tx.inputs)} inputs)")
    target = tx.inputs[input_index]
    if target.is_signed:
        raise SigningError(f"Input {input_index} is already signed")

    script = _signature_script_for(tx, input_index, spent_utxo, backend)
    target.signature_script = script
    return script


def _signature_script_for(
    tx: Transaction,
    input_index: int,
    spent_utxo: UtxoEntry,
    backend: SigningBackend,
) -> bytes:
    """Sign and verify one input without touching the transaction."""
    digest = compute_digest(tx, input_index, spent_utxo)
    logger.debug(f"SigHash for input {input_index}: {digest.hex()}")

    signature = backend.sign_digest(digest)
    if not verify(signature, backend.x_only_public_key, digest):
        raise SigningError(f"Local verification failed for input {input_index}")
    return build_signature_script(signature)


def sign_transaction(
    tx: Transaction,
    spent_utxos: list[UtxoEntry],
    backend: SigningBackend,
) -> Transaction:
    """
    Sign every input; ``spent_utxos[i]`` is the output spent by input ``i``.

    All-or-nothing: every signature is produced and verified before any is
    written, so on failure the transaction is left exactly as it was.
    """
    if len(spent_utxos) != len(tx.inputs):
        raise SigningError(
            f"Got {len(spent_utxos)} spent UTXOs for {len(tx.inputs)} inputs"
        )
    for index, tx_input in enumerate(tx.inputs):
        if tx_input.is_signed:
            raise SigningError(f"Input {index} is already signed")

    scripts = [
        _signature_script_for(tx, index, utxo, backend)
        for index, utxo in enumerate(spent_utxos)
    ]
    for tx_input, script in zip(tx.inputs, scripts):
        tx_input.signature_script = script

    logger.debug(f"Signed {len(tx.inputs)} input(s)")
    return tx
