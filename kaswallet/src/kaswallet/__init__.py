"""
kaswallet - Client-side Kaspa wallet for on-chain chess events

Builds, signs and broadcasts Kaspa transactions that carry game events in
their payload.
"""

__version__ = "0.1.0"

from kaswallet.backends import BroadcastResult, KaspaRestBackend, WrpcBroadcaster
from kaswallet.errors import (
    BackupAlreadyExported,
    ConsensusRejection,
    InsufficientFunds,
    InvalidAddress,
    InvalidKey,
    KasWalletError,
    PayloadError,
    SigningError,
    TransportError,
    UnsupportedSignerOperation,
    UtxoMismatch,
    WalletClosedError,
)
from kaswallet.protocol import EventKind, GameEvent, decode_event, encode_event
from kaswallet.wallet.address import decode_address, encode_address, pubkey_to_address
from kaswallet.wallet.keys import KeyPair, from_mnemonic, from_raw_key, generate_mnemonic
from kaswallet.wallet.service import KeyBackup, WalletSession

__all__ = [
    "BackupAlreadyExported",
    "BroadcastResult",
    "ConsensusRejection",
    "EventKind",
    "GameEvent",
    "InsufficientFunds",
    "InvalidAddress",
    "InvalidKey",
    "KasWalletError",
    "KaspaRestBackend",
    "KeyBackup",
    "KeyPair",
    "PayloadError",
    "SigningError",
    "TransportError",
    "UnsupportedSignerOperation",
    "UtxoMismatch",
    "WalletClosedError",
    "WalletSession",
    "WrpcBroadcaster",
    "decode_address",
    "decode_event",
    "encode_address",
    "encode_event",
    "from_mnemonic",
    "from_raw_key",
    "generate_mnemonic",
    "pubkey_to_address",
]
