"""
BIP32 hierarchical key derivation over secp256k1.

Kaspa wallets derive their signing key at m/44'/111111'/0'/0/0.
"""

from __future__ import annotations

import hashlib
import hmac

from coincurve import PrivateKey

from kaswallet.errors import InvalidKey

# secp256k1 curve order
SECP256K1_N = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)
HARDENED_OFFSET = 0x80000000


def parse_path(path: str) -> list[int]:
    """
    Parse derivation path notation into child indexes.

    "m/44'/111111'/0'/0/0" -> [0x8000002C, 0x8001B207, 0x80000000, 0, 0]
    Both ' and h mark a hardened level.
    """
    parts = path.split("/")
    if parts[0] != "m":
        raise InvalidKey("Derivation path must start with 'm'")

    indexes = []
    for part in parts[1:]:
        hardened = part.endswith(("'", "h"))
        digits = part.rstrip("'h")
        if not digits.isdigit():
            raise InvalidKey(f"Invalid derivation path component: {part!r}")
        index = int(digits)
        if index >= HARDENED_OFFSET:
            raise InvalidKey(f"Derivation index out of range: {index}")
        indexes.append(index + HARDENED_OFFSET if hardened else index)
    return indexes


class HDKey:
    """Extended private key (secret + chain code)."""

    def __init__(self, secret: bytes, chain_code: bytes, depth: int = 0):
        self._private_key = PrivateKey(secret)
        self.chain_code = chain_code
        self.depth = depth

    @property
    def secret(self) -> bytes:
        return self._private_key.secret

    @property
    def compressed_public_key(self) -> bytes:
        return self._private_key.public_key.format(compressed=True)

    @classmethod
    def from_seed(cls, seed: bytes) -> HDKey:
        """Master key from a BIP39 seed"""
        digest = hmac.new(b"Bitcoin seed", seed, hashlib.sha512).digest()
        master = int.from_bytes(digest[:32], "big")
        if not 0 < master < SECP256K1_N:
            raise InvalidKey("Seed produced an invalid master key")
        return cls(digest[:32], digest[32:], depth=0)

    def derive(self, path: str) -> HDKey:
        key = self
        for index in parse_path(path):
            key = key.child(index)
        return key

    def child(self, index: int) -> HDKey:
        if index >= HARDENED_OFFSET:
            data = b"\x00" + self.secret + index.to_bytes(4, "big")
        else:
            data = self.compressed_public_key + index.to_bytes(4, "big")

        digest = hmac.new(self.chain_code, data, hashlib.sha512).digest()
        tweak = int.from_bytes(digest[:32], "big")
        if tweak >= SECP256K1_N:
            raise InvalidKey(f"Invalid child tweak at index {index}")

        child_int = (int.from_bytes(self.secret, "big") + tweak) % SECP256K1_N
        if child_int == 0:
            raise InvalidKey(f"Derived zero key at index {index}")

        return HDKey(child_int.to_bytes(32, "big"), digest[32:], depth=self.depth + 1)
