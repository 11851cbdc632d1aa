"""
Kaspa address encoding.

Kaspa uses a CashAddr-style bech32 variant: ``<prefix>:<payload><checksum>``
where the payload is a version byte followed by the key (or script hash)
regrouped into 5-bit symbols, and the checksum is eight symbols produced by a
40-bit BCH polymod. There is no separator character inside the data part.
"""

from __future__ import annotations

from dataclasses import dataclass

from kaswallet.constants import (
    ADDRESS_PAYLOAD_LENGTHS,
    ADDRESS_VERSION_PUBKEY,
    ADDRESS_VERSION_PUBKEY_ECDSA,
    ADDRESS_VERSION_SCRIPT_HASH,
    NETWORK_PREFIXES,
    OP_BLAKE2B,
    OP_CHECKSIG,
    OP_CHECKSIG_ECDSA,
    OP_DATA_32,
    OP_DATA_33,
    OP_EQUAL,
    SCRIPT_VERSION,
)
from kaswallet.errors import InvalidAddress
from kaswallet.wallet.models import ScriptPublicKey

CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
CHARSET_REV = {c: i for i, c in enumerate(CHARSET)}
CHECKSUM_LENGTH = 8

POLYMOD_GENERATORS = (
    0x98F2BC8E61,
    0x79B76D99E2,
    0xF33E5FB3C4,
    0xAE2EABE2A8,
    0x1E4F43E470,
)


@dataclass(frozen=True)
class Address:
    prefix: str
    version: int
    payload: bytes

    def __str__(self) -> str:
        return encode_address(self.payload, self.prefix, self.version)


def polymod(values: list[int]) -> int:
    """40-bit BCH checksum over 5-bit values, finalized with XOR 1."""
    c = 1
    for d in values:
        c0 = c >> 35
        c = ((c & 0x07FFFFFFFF) << 5) ^ d
        for i, gen in enumerate(POLYMOD_GENERATORS):
            if (c0 >> i) & 1:
                c ^= gen
    return c ^ 1


def prefix_expand(prefix: str) -> list[int]:
    """Lower 5 bits of each prefix character, followed by the zero separator."""
    return [ord(ch) & 0x1F for ch in prefix] + [0]


def create_checksum(prefix: str, data: list[int]) -> list[int]:
    checksum = polymod(prefix_expand(prefix) + data + [0] * CHECKSUM_LENGTH)
    return [(checksum >> 5 * (CHECKSUM_LENGTH - 1 - i)) & 0x1F for i in range(CHECKSUM_LENGTH)]


def convertbits(data: bytes | list[int], frombits: int, tobits: int, pad: bool = True) -> list[int]:
    """Regroup a sequence of ``frombits``-wide values into ``tobits``-wide values (MSB first)."""
    acc = 0
    bits = 0
    ret = []
    maxv = (1 << tobits) - 1
    max_acc = (1 << (frombits + tobits - 1)) - 1

    for value in data:
        if value < 0 or value >> frombits:
            raise ValueError(f"Value out of range for {frombits}-bit group: {value}")
        acc = ((acc << frombits) | value) & max_acc
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            ret.append((acc >> bits) & maxv)

    if pad:
        if bits:
            ret.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits or ((acc << (tobits - bits)) & maxv):
        raise ValueError("Invalid padding bits")

    return ret


def encode_address(
    payload: bytes, prefix: str = "kaspa", version: int = ADDRESS_VERSION_PUBKEY
) -> str:
    """Encode a key or script-hash payload under the given prefix and version tag."""
    if prefix not in NETWORK_PREFIXES.values():
        raise InvalidAddress(f"Unknown address prefix: {prefix!r}")

    expected = ADDRESS_PAYLOAD_LENGTHS.get(version)
    if expected is None:
        raise InvalidAddress(f"Unknown address version: {version:#04x}")
    if len(payload) != expected:
        raise InvalidAddress(
            f"Payload for version {version:#04x} must be {expected} bytes, got {len(payload)}"
        )

    data = convertbits(bytes([version]) + payload, 8, 5)
    combined = data + create_checksum(prefix, data)
    return prefix + ":" + "".join(CHARSET[d] for d in combined)


def parse_address(address: str) -> Address:
    """
    Decode an address string into its prefix, version tag and payload.

    Raises:
        InvalidAddress: on a missing or unknown prefix, a character outside the
            alphabet, a checksum mismatch, or a payload of the wrong width.
    """
    if address.lower() != address and address.upper() != address:
        raise InvalidAddress("Mixed-case address")
    address = address.lower()

    prefix, sep, body = address.partition(":")
    if not sep:
        raise InvalidAddress("Missing prefix separator ':'")
    if prefix not in NETWORK_PREFIXES.values():
        raise InvalidAddress(f"Unknown address prefix: {prefix!r}")

    try:
        symbols = [CHARSET_REV[ch] for ch in body]
    except KeyError as e:
        raise InvalidAddress(f"Invalid character in address: {e.args[0]!r}") from e

    if len(symbols) <= CHECKSUM_LENGTH:
        raise InvalidAddress("Address too short")

    data, checksum = symbols[:-CHECKSUM_LENGTH], symbols[-CHECKSUM_LENGTH:]
    if create_checksum(prefix, data) != checksum:
        raise InvalidAddress("Address checksum mismatch")

    try:
        raw = bytes(convertbits(data, 5, 8, pad=False))
    except ValueError as e:
        raise InvalidAddress(f"Malformed address payload: {e}") from e

    version, payload = raw[0], raw[1:]
    expected = ADDRESS_PAYLOAD_LENGTHS.get(version)
    if expected is None:
        raise InvalidAddress(f"Unknown address version: {version:#04x}")
    if len(payload) != expected:
        raise InvalidAddress(
            f"Payload for version {version:#04x} must be {expected} bytes, got {len(payload)}"
        )

    return Address(prefix=prefix, version=version, payload=payload)


def decode_address(address: str) -> bytes:
    """Return the key payload of an address, with the version byte stripped."""
    return parse_address(address).payload


def pubkey_to_address(pubkey: bytes, network: str = "mainnet") -> str:
    """
    Schnorr P2PK address for a public key.

    Kaspa addresses carry the raw 32-byte x-only key, not a hash of it. A
    33-byte compressed key is reduced to its x coordinate.
    """
    if len(pubkey) == 33:
        pubkey = pubkey[1:]
    elif len(pubkey) != 32:
        raise InvalidAddress(f"Invalid public key length: {len(pubkey)}")

    prefix = NETWORK_PREFIXES.get(network)
    if prefix is None:
        raise InvalidAddress(f"Unknown network: {network}")
    return encode_address(pubkey, prefix, ADDRESS_VERSION_PUBKEY)


def pay_to_pubkey_script(x_only_pubkey: bytes) -> ScriptPublicKey:
    """OP_DATA_32 <x-only key> OP_CHECKSIG"""
    if len(x_only_pubkey) != 32:
        raise ValueError(f"x-only public key must be 32 bytes, got {len(x_only_pubkey)}")
    return ScriptPublicKey(
        SCRIPT_VERSION, bytes([OP_DATA_32]) + x_only_pubkey + bytes([OP_CHECKSIG])
    )


def address_to_script_public_key(address: str) -> ScriptPublicKey:
    """Locking script that pays to the given address."""
    parsed = parse_address(address)

    if parsed.version == ADDRESS_VERSION_PUBKEY:
        return pay_to_pubkey_script(parsed.payload)
    if parsed.version == ADDRESS_VERSION_PUBKEY_ECDSA:
        # OP_DATA_33 <compressed key> OP_CHECKSIGECDSA
        script = bytes([OP_DATA_33]) + parsed.payload + bytes([OP_CHECKSIG_ECDSA])
        return ScriptPublicKey(SCRIPT_VERSION, script)
    if parsed.version == ADDRESS_VERSION_SCRIPT_HASH:
        # OP_BLAKE2B OP_DATA_32 <script hash> OP_EQUAL
        script = bytes([OP_BLAKE2B, OP_DATA_32]) + parsed.payload + bytes([OP_EQUAL])
        return ScriptPublicKey(SCRIPT_VERSION, script)

    raise InvalidAddress(f"Unsupported address version: {parsed.version:#04x}")
