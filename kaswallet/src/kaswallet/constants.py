"""
Kaspa chain and wallet policy constants.

Amounts are expressed in sompi, the smallest unit (1 KAS = 100,000,000 sompi).
"""

from __future__ import annotations

SOMPI_PER_KAS = 100_000_000

# Address prefixes by network
NETWORK_PREFIXES: dict[str, str] = {
    "mainnet": "kaspa",
    "testnet": "kaspatest",
    "simnet": "kaspasim",
    "devnet": "kaspadev",
}

# Address version tags and the payload width each one carries
ADDRESS_VERSION_PUBKEY = 0x00  # Schnorr P2PK, 32-byte x-only key
ADDRESS_VERSION_PUBKEY_ECDSA = 0x01  # ECDSA P2PK, 33-byte compressed key
ADDRESS_VERSION_SCRIPT_HASH = 0x08  # P2SH, 32-byte BLAKE2b script hash

ADDRESS_PAYLOAD_LENGTHS: dict[int, int] = {
    ADDRESS_VERSION_PUBKEY: 32,
    ADDRESS_VERSION_PUBKEY_ECDSA: 33,
    ADDRESS_VERSION_SCRIPT_HASH: 32,
}

# BIP44 path registered for Kaspa (coin type 111111)
DERIVATION_PATH = "m/44'/111111'/0'/0/0"

# Fee policy
# The minimum relay fee accepted by public nodes for a small 1-in/2-out transaction
DEFAULT_FEE = 1_000  # sompi
# Smallest output the wallet will create; smaller change is absorbed into the fee
DUST_THRESHOLD = 294  # sompi

# Transaction layout
TX_VERSION = 0
DEFAULT_SEQUENCE = 0
DEFAULT_SIG_OP_COUNT = 1  # single-signature P2PK spend
LOCK_TIME = 0
GAS = 0
SUBNETWORK_ID_NATIVE = bytes(20)
SCRIPT_VERSION = 0

# Signature hashing
SIG_HASH_ALL = 0x01
SIGHASH_DOMAIN = b"TransactionSigningHash"

# Script opcodes used by the standard locking scripts
OP_DATA_32 = 0x20
OP_DATA_33 = 0x21
OP_DATA_65 = 0x41
OP_CHECKSIG = 0xAC
OP_CHECKSIG_ECDSA = 0xAB
OP_BLAKE2B = 0xAA
OP_EQUAL = 0x87

# Application payload budget per transaction
MAX_PAYLOAD_BYTES = 150
