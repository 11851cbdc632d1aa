"""
Tests for the transaction model and builder.
"""

import pytest

from kaswallet.wallet.address import pay_to_pubkey_script
from kaswallet.wallet.models import Outpoint, ScriptPublicKey, encode_varint
from kaswallet.wallet.selection import select_utxos
from kaswallet.wallet.transaction import TransactionBuilder, TransactionOutput


class TestVarint:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (0, "00"),
            (0xFC, "fc"),
            (0xFD, "fdfd00"),
            (0xFFFF, "fdffff"),
            (0x10000, "fe00000100"),
            (0x100000000, "ff0000000001000000"),
        ],
    )
    def test_encode(self, value, expected):
        assert encode_varint(value).hex() == expected

    def test_negative(self):
        with pytest.raises(ValueError):
            encode_varint(-1)


class TestOutpoint:
    def test_serialize(self):
        outpoint = Outpoint(bytes([0xAB]) * 32, 3)
        assert outpoint.serialize() == bytes([0xAB]) * 32 + bytes([3, 0, 0, 0])
        assert str(outpoint) == "ab" * 32 + ":3"

    def test_from_hex(self):
        assert Outpoint.from_hex("cd" * 32, 1).transaction_id == bytes([0xCD]) * 32

    def test_bad_length(self):
        with pytest.raises(ValueError):
            Outpoint(bytes(31), 0)

    def test_bad_index(self):
        with pytest.raises(ValueError):
            Outpoint(bytes(32), 1 << 32)


class TestTransactionBuilder:
    def test_build_preserves_order(self, keypair, make_utxo):
        utxos = [make_utxo(5_000, keypair, txid_byte=b) for b in (0x03, 0x01, 0x02)]
        script = pay_to_pubkey_script(keypair.x_only_public_key)
        tx = TransactionBuilder().build(utxos, [TransactionOutput(1_000, script)])

        assert [inp.previous_outpoint for inp in tx.inputs] == [u.outpoint for u in utxos]
        assert all(inp.signature_script == b"" for inp in tx.inputs)
        assert all(inp.sequence == 0 and inp.sig_op_count == 1 for inp in tx.inputs)
        assert tx.version == 0
        assert tx.lock_time == 0
        assert tx.gas == 0
        assert tx.subnetwork_id == bytes(20)
        assert not tx.is_fully_signed()

    def test_build_rejects_empty_inputs(self, keypair):
        script = pay_to_pubkey_script(keypair.x_only_public_key)
        with pytest.raises(ValueError, match="input"):
            TransactionBuilder().build([], [TransactionOutput(1_000, script)])

    def test_build_rejects_empty_outputs(self, keypair, make_utxo):
        with pytest.raises(ValueError, match="output"):
            TransactionBuilder().build([make_utxo(5_000, keypair)], [])

    def test_build_rejects_duplicate_inputs(self, keypair, make_utxo):
        utxo = make_utxo(5_000, keypair)
        script = pay_to_pubkey_script(keypair.x_only_public_key)
        with pytest.raises(ValueError, match="Duplicate"):
            TransactionBuilder().build([utxo, utxo], [TransactionOutput(1_000, script)])

    def test_build_rejects_zero_output(self, keypair, make_utxo):
        script = pay_to_pubkey_script(keypair.x_only_public_key)
        with pytest.raises(ValueError, match="out of range"):
            TransactionBuilder().build([make_utxo(5_000, keypair)], [TransactionOutput(0, script)])

    def test_from_selection_appends_change_last(self, keypair, other_keypair, make_utxo):
        utxos = [make_utxo(100_000_000, keypair)]
        selection = select_utxos(utxos, 1_000, 1_000)
        dest = pay_to_pubkey_script(other_keypair.x_only_public_key)
        change = pay_to_pubkey_script(keypair.x_only_public_key)

        tx = TransactionBuilder().build_from_selection(
            selection, [TransactionOutput(1_000, dest)], change, payload=b"hi"
        )

        assert [out.amount for out in tx.outputs] == [1_000, 99_998_000]
        assert tx.outputs[0].script_public_key == dest
        assert tx.outputs[1].script_public_key == change
        assert tx.payload == b"hi"
        # Fee is implicit: inputs minus outputs
        assert selection.total_input - tx.output_total == 1_000

    def test_from_selection_without_change(self, keypair, other_keypair, make_utxo):
        utxos = [make_utxo(11_100, keypair, txid_byte=0x01), make_utxo(500, keypair, txid_byte=0x02)]
        selection = select_utxos(utxos, 10_000, 1_000)
        dest = pay_to_pubkey_script(other_keypair.x_only_public_key)
        change = pay_to_pubkey_script(keypair.x_only_public_key)

        tx = TransactionBuilder().build_from_selection(
            selection, [TransactionOutput(10_000, dest)], change
        )
        assert len(tx.outputs) == 1

    def test_from_selection_amount_mismatch(self, keypair, make_utxo):
        selection = select_utxos([make_utxo(100_000, keypair)], 1_000, 1_000)
        script = pay_to_pubkey_script(keypair.x_only_public_key)
        with pytest.raises(ValueError, match="does not match"):
            TransactionBuilder().build_from_selection(
                selection, [TransactionOutput(2_000, script)], script
            )


class TestRpcJson:
    def test_shape(self, keypair, make_utxo):
        utxo = make_utxo(100_000, keypair)
        script = ScriptPublicKey(0, bytes([0x20]) + keypair.x_only_public_key + bytes([0xAC]))
        tx = TransactionBuilder().build([utxo], [TransactionOutput(99_000, script)], b"\x01\x02")
        tx.inputs[0].signature_script = bytes([0x41]) + bytes(65)

        data = tx.to_rpc_json()

        assert data["version"] == 0
        assert data["inputs"] == [
            {
                "previousOutpoint": {"transactionId": "11" * 32, "index": 0},
                "signatureScript": "41" + "00" * 65,
                "sequence": "0",
                "sigOpCount": 1,
            }
        ]
        assert data["outputs"] == [
            {
                "amount": "99000",
                "scriptPublicKey": {"version": 0, "scriptPublicKey": script.script.hex()},
            }
        ]
        assert data["lockTime"] == "0"
        assert data["gas"] == "0"
        assert data["subnetworkId"] == "00" * 20
        assert data["payload"] == "0102"

    def test_large_amount_is_string(self, keypair, make_utxo):
        script = pay_to_pubkey_script(keypair.x_only_public_key)
        amount = 2**60
        tx = TransactionBuilder().build(
            [make_utxo(amount + 10_000, keypair)], [TransactionOutput(amount, script)]
        )
        assert tx.to_rpc_json()["outputs"][0]["amount"] == str(amount)
