"""
Error taxonomy for wallet operations.

Every failed operation surfaces as exactly one of these kinds. A transport
failure is never reported as a consensus rejection.
"""

from __future__ import annotations


class KasWalletError(Exception):
    pass


class InvalidAddress(KasWalletError):
    """Bad prefix, character, checksum or payload width."""


class InvalidKey(KasWalletError):
    """Malformed recovery phrase or raw private key."""


class InsufficientFunds(KasWalletError):
    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        self.shortfall = required - available
        super().__init__(
            f"Insufficient funds: need {required} sompi, have {available} "
            f"(short by {self.shortfall})"
        )


class UtxoMismatch(KasWalletError):
    """A UTXO's locking script is not spendable by the session key."""


class SigningError(KasWalletError):
    """Local hashing or signing failure, including a failed self-verification."""


class TransportError(KasWalletError):
    """Network failure or timeout. Retry with a fresh UTXO fetch."""


class ConsensusRejection(KasWalletError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Transaction rejected: {reason}")


class PayloadError(KasWalletError):
    pass


class WalletClosedError(KasWalletError):
    pass


class UnsupportedSignerOperation(KasWalletError):
    pass


class BackupAlreadyExported(KasWalletError):
    pass
