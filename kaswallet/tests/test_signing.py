"""
Tests for Schnorr signing and signature scripts.
"""

import pytest

from kaswallet.errors import SigningError, UnsupportedSignerOperation, WalletClosedError
from kaswallet.wallet.address import pay_to_pubkey_script
from kaswallet.wallet.sighash import compute_digest
from kaswallet.wallet.signing import (
    ExternalSigner,
    LocalSigningBackend,
    build_signature_script,
    sign,
    sign_input,
    sign_transaction,
    verify,
)
from kaswallet.wallet.transaction import TransactionBuilder, TransactionOutput

# BIP340 test vector 0
BIP340_PUBKEY = bytes.fromhex("f9308a019258c31049344f85f89d5229b531c845836f99b08601f113bce036f9")
BIP340_MESSAGE = bytes(32)
BIP340_SIGNATURE = bytes.fromhex(
    "e907831f80848d1069a5371b402410364bdf1c5f8307b0084c55f1ce2dca8215"
    "25f66a4a85ea8b71e482a74f382d2ce5ebeee8fdb2172f477df4900d310536c0"
)


@pytest.fixture
def unsigned_tx(make_utxo):
    def _unsigned_tx(keypair, amounts=(100_000_000,)):
        utxos = [make_utxo(a, keypair, txid_byte=i + 1) for i, a in enumerate(amounts)]
        script = pay_to_pubkey_script(keypair.x_only_public_key)
        tx = TransactionBuilder().build(
            utxos, [TransactionOutput(sum(amounts) - 1_000, script)], b"KC|GI|g1|abc"
        )
        return tx, utxos

    return _unsigned_tx


class DigestOnlySigner(ExternalSigner):
    capabilities = frozenset({ExternalSigner.SIGN_DIGEST})

    def __init__(self, keypair):
        self.keypair = keypair

    @property
    def x_only_public_key(self) -> bytes:
        return self.keypair.x_only_public_key

    def _sign_digest(self, digest: bytes) -> bytes:
        return sign(self.keypair.private_key(), digest)


class NothingSigner(ExternalSigner):
    @property
    def x_only_public_key(self) -> bytes:
        return bytes(32)


class WrongKeySigner(LocalSigningBackend):
    def __init__(self, keypair, other):
        super().__init__(keypair)
        self.other = other

    def sign_digest(self, digest: bytes) -> bytes:
        return sign(self.other.private_key(), digest)


class FailsOnSecondSigner(LocalSigningBackend):
    """Signs correctly once, then returns a corrupted signature."""

    def __init__(self, keypair):
        super().__init__(keypair)
        self.calls = 0

    def sign_digest(self, digest: bytes) -> bytes:
        self.calls += 1
        signature = super().sign_digest(digest)
        if self.calls == 2:
            return bytes([signature[0] ^ 0x01]) + signature[1:]
        return signature


class TestVerify:
    def test_bip340_vector(self):
        assert verify(BIP340_SIGNATURE, BIP340_PUBKEY, BIP340_MESSAGE)

    def test_bip340_vector_tampered(self):
        tampered = bytes([BIP340_SIGNATURE[0] ^ 1]) + BIP340_SIGNATURE[1:]
        assert not verify(tampered, BIP340_PUBKEY, BIP340_MESSAGE)

    def test_sign_then_verify(self, keypair):
        digest = bytes(range(32))
        signature = sign(keypair.private_key(), digest)
        assert len(signature) == 64
        assert verify(signature, keypair.x_only_public_key, digest)

    def test_mutated_digest_fails(self, keypair):
        digest = bytes(range(32))
        signature = sign(keypair.private_key(), digest)
        mutated = bytes([digest[0] ^ 0x80]) + digest[1:]
        assert not verify(signature, keypair.x_only_public_key, mutated)

    def test_mutated_signature_fails(self, keypair):
        digest = bytes(range(32))
        signature = sign(keypair.private_key(), digest)
        for index in (0, 31, 32, 63):
            mutated = bytearray(signature)
            mutated[index] ^= 0x01
            assert not verify(bytes(mutated), keypair.x_only_public_key, digest)

    def test_wrong_key_fails(self, keypair, other_keypair):
        digest = bytes(range(32))
        signature = sign(keypair.private_key(), digest)
        assert not verify(signature, other_keypair.x_only_public_key, digest)

    def test_bad_lengths(self, keypair):
        assert not verify(bytes(63), keypair.x_only_public_key, bytes(32))
        assert not verify(bytes(64), keypair.public_key, bytes(32))

    def test_sign_rejects_short_digest(self, keypair):
        with pytest.raises(SigningError):
            sign(keypair.private_key(), bytes(31))


class TestSignatureScript:
    def test_layout(self):
        script = build_signature_script(bytes([0x5A]) * 64)
        assert len(script) == 66
        assert script[0] == 0x41
        assert script[1:65] == bytes([0x5A]) * 64
        assert script[65] == 0x01

    def test_wrong_signature_length(self):
        with pytest.raises(SigningError):
            build_signature_script(bytes(65))


class TestSignTransaction:
    def test_signs_every_input(self, keypair, unsigned_tx):
        tx, utxos = unsigned_tx(keypair, (60_000, 50_000))
        sign_transaction(tx, utxos, LocalSigningBackend(keypair))

        assert tx.is_fully_signed()
        for index, (inp, utxo) in enumerate(zip(tx.inputs, utxos)):
            digest = compute_digest(tx, index, utxo)
            assert verify(inp.signature_script[1:65], keypair.x_only_public_key, digest)

    def test_inputs_commit_to_their_own_outpoint(self, keypair, unsigned_tx):
        tx, utxos = unsigned_tx(keypair, (60_000, 50_000))
        assert compute_digest(tx, 0, utxos[0]) != compute_digest(tx, 1, utxos[1])

    def test_spent_utxo_count_mismatch(self, keypair, unsigned_tx):
        tx, utxos = unsigned_tx(keypair, (60_000, 50_000))
        with pytest.raises(SigningError, match="spent UTXOs"):
            sign_transaction(tx, utxos[:1], LocalSigningBackend(keypair))

    def test_already_signed_input(self, keypair, unsigned_tx):
        tx, utxos = unsigned_tx(keypair)
        backend = LocalSigningBackend(keypair)
        sign_input(tx, 0, utxos[0], backend)
        with pytest.raises(SigningError, match="already signed"):
            sign_input(tx, 0, utxos[0], backend)

    def test_input_index_out_of_range(self, keypair, unsigned_tx):
        tx, utxos = unsigned_tx(keypair)
        with pytest.raises(SigningError, match="out of range"):
            sign_input(tx, 3, utxos[0], LocalSigningBackend(keypair))

    def test_self_verification_failure(self, keypair, other_keypair, unsigned_tx):
        tx, utxos = unsigned_tx(keypair)
        with pytest.raises(SigningError, match="verification failed"):
            sign_transaction(tx, utxos, WrongKeySigner(keypair, other_keypair))
        assert not tx.is_fully_signed()

    def test_failure_on_later_input_leaves_all_unsigned(self, keypair, unsigned_tx):
        tx, utxos = unsigned_tx(keypair, (60_000, 50_000, 40_000))
        signer = FailsOnSecondSigner(keypair)
        with pytest.raises(SigningError, match="input 1"):
            sign_transaction(tx, utxos, signer)

        assert signer.calls == 2
        assert all(not inp.is_signed for inp in tx.inputs)

        # The untouched transaction can still be signed afterwards
        sign_transaction(tx, utxos, LocalSigningBackend(keypair))
        assert tx.is_fully_signed()

    def test_partially_signed_transaction_rejected_untouched(self, keypair, unsigned_tx):
        tx, utxos = unsigned_tx(keypair, (60_000, 50_000))
        backend = LocalSigningBackend(keypair)
        script = sign_input(tx, 1, utxos[1], backend)

        with pytest.raises(SigningError, match="Input 1 is already signed"):
            sign_transaction(tx, utxos, backend)
        assert not tx.inputs[0].is_signed
        assert tx.inputs[1].signature_script == script

    def test_wiped_key_cannot_sign(self, keypair, unsigned_tx):
        tx, utxos = unsigned_tx(keypair)
        backend = LocalSigningBackend(keypair)
        keypair.zeroize()
        with pytest.raises(WalletClosedError):
            sign_transaction(tx, utxos, backend)


class TestExternalSigner:
    def test_declared_capability(self, keypair, unsigned_tx):
        signer = DigestOnlySigner(keypair)
        tx, utxos = unsigned_tx(keypair)
        sign_transaction(tx, utxos, signer)
        assert tx.is_fully_signed()

    def test_supports(self, keypair):
        signer = DigestOnlySigner(keypair)
        assert signer.supports(ExternalSigner.SIGN_DIGEST)
        assert not signer.supports(ExternalSigner.SEND_PAYLOAD)

    @pytest.mark.asyncio
    async def test_undeclared_send_payload(self, keypair):
        signer = DigestOnlySigner(keypair)
        with pytest.raises(UnsupportedSignerOperation, match="send_payload"):
            await signer.send_payload(keypair.address, 1_000, b"")

    def test_undeclared_sign_digest(self):
        with pytest.raises(UnsupportedSignerOperation, match="sign_digest"):
            NothingSigner().sign_digest(bytes(32))
