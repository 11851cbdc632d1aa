"""
Signing key management.

Keys come either from a BIP39 recovery phrase (derived at the Kaspa BIP44
path) or from a raw 32-byte hex private key. Key material lives in a
bytearray so it can be overwritten when the owning session is closed.
"""

from __future__ import annotations

import re

from coincurve import PrivateKey
from loguru import logger
from mnemonic import Mnemonic

from kaswallet.constants import DERIVATION_PATH
from kaswallet.errors import InvalidKey, WalletClosedError
from kaswallet.wallet.address import pubkey_to_address
from kaswallet.wallet.bip32 import SECP256K1_N, HDKey

VALID_WORD_COUNTS = (12, 24)
_HEX_KEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")

_mnemonic = Mnemonic("english")


class KeyPair:
    """secp256k1 keypair with its Kaspa address."""

    def __init__(self, secret: bytes, network: str = "mainnet", mnemonic: str | None = None):
        self._secret = bytearray(secret)
        self._mnemonic = mnemonic
        self.network = network

        public_key = PrivateKey(secret).public_key.format(compressed=True)
        self.public_key = public_key
        self.x_only_public_key = public_key[1:]
        self.address = pubkey_to_address(public_key, network)
        self._zeroized = False

    def __repr__(self) -> str:
        return f"KeyPair(address={self.address!r})"

    @property
    def is_zeroized(self) -> bool:
        return self._zeroized

    @property
    def mnemonic(self) -> str | None:
        return self._mnemonic

    def private_key(self) -> PrivateKey:
        if self._zeroized:
            raise WalletClosedError("Key material has been wiped")
        return PrivateKey(bytes(self._secret))

    def private_key_hex(self) -> str:
        if self._zeroized:
            raise WalletClosedError("Key material has been wiped")
        return self._secret.hex()

    def zeroize(self) -> None:
        for i in range(len(self._secret)):
            self._secret[i] = 0
        self._mnemonic = None
        self._zeroized = True


def normalize_mnemonic(phrase: str) -> str:
    return " ".join(phrase.strip().lower().split())


def validate_mnemonic(phrase: str) -> list[str]:
    """
    Check word count and wordlist membership.

    Returns the normalized word list. The BIP39 checksum is not enforced;
    a phrase with a bad checksum still derives a key, with a warning.
    """
    words = normalize_mnemonic(phrase).split(" ")
    if len(words) not in VALID_WORD_COUNTS:
        raise InvalidKey(f"Mnemonic must be 12 or 24 words (got {len(words)})")

    wordlist = set(_mnemonic.wordlist)
    invalid = [w for w in words if w not in wordlist]
    if invalid:
        raise InvalidKey(f"Invalid mnemonic words: {', '.join(invalid)}")
    return words


def generate_mnemonic(word_count: int = 12) -> str:
    if word_count not in VALID_WORD_COUNTS:
        raise InvalidKey(f"Word count must be 12 or 24, got {word_count}")
    strength = 256 if word_count == 24 else 128
    return _mnemonic.generate(strength=strength)


def from_mnemonic(
    phrase: str,
    network: str = "mainnet",
    passphrase: str = "",
    path: str = DERIVATION_PATH,
) -> KeyPair:
    words = validate_mnemonic(phrase)
    normalized = " ".join(words)
    if not _mnemonic.check(normalized):
        logger.warning("Mnemonic checksum does not validate; deriving anyway")

    seed = Mnemonic.to_seed(normalized, passphrase)
    leaf = HDKey.from_seed(seed).derive(path)

    keypair = KeyPair(leaf.secret, network=network, mnemonic=normalized)
    logger.info(f"Derived wallet at {path}: {keypair.address}")
    return keypair


def from_raw_key(key_hex: str, network: str = "mainnet") -> KeyPair:
    key_hex = key_hex.strip()
    if key_hex.lower().startswith("0x"):
        key_hex = key_hex[2:]

    if not _HEX_KEY_RE.match(key_hex):
        raise InvalidKey("Invalid private key format. Expected 64-character hex string.")

    secret = bytes.fromhex(key_hex)
    value = int.from_bytes(secret, "big")
    if not 0 < value < SECP256K1_N:
        raise InvalidKey("Private key out of range for secp256k1")

    keypair = KeyPair(secret, network=network)
    logger.info(f"Imported private key for {keypair.address}")
    return keypair
