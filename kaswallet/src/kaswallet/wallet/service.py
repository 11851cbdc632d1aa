"""
Wallet session: one signing key, one UTXO source, one broadcaster.

A session is created per active connection and passed explicitly to every
operation. Closing it wipes the key material; every call afterwards raises
WalletClosedError.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from kaswallet.backends.base import BroadcastResult, Broadcaster, UtxoSource
from kaswallet.constants import DEFAULT_FEE, DUST_THRESHOLD, MAX_PAYLOAD_BYTES, NETWORK_PREFIXES
from kaswallet.errors import (
    BackupAlreadyExported,
    InvalidAddress,
    InvalidKey,
    PayloadError,
    SigningError,
    UtxoMismatch,
    WalletClosedError,
)
from kaswallet.protocol import GameEvent, encode_event, is_payload_safe
from kaswallet.wallet.address import (
    address_to_script_public_key,
    parse_address,
    pay_to_pubkey_script,
)
from kaswallet.wallet.keys import KeyPair
from kaswallet.wallet.models import UtxoEntry
from kaswallet.wallet.selection import select_utxos
from kaswallet.wallet.signing import LocalSigningBackend, SigningBackend, sign_transaction
from kaswallet.wallet.transaction import Transaction, TransactionBuilder, TransactionOutput


@dataclass(frozen=True)
class KeyBackup:
    mnemonic: str | None
    private_key_hex: str

    def __repr__(self) -> str:
        return "KeyBackup(<redacted>)"


class WalletSession:
    """
    Publish and send flow for a single address.

    Every spend re-fetches the UTXO set; nothing is cached between calls, so a
    failed or rejected broadcast is retried by simply calling again.
    """

    def __init__(
        self,
        keypair: KeyPair,
        utxo_source: UtxoSource,
        broadcaster: Broadcaster,
        fee: int = DEFAULT_FEE,
        dust_threshold: int = DUST_THRESHOLD,
        signer: SigningBackend | None = None,
    ):
        self.keypair = keypair
        self.utxo_source = utxo_source
        self.broadcaster = broadcaster
        self.fee = fee
        self.dust_threshold = dust_threshold
        self.signer = signer or LocalSigningBackend(keypair)
        if self.signer.x_only_public_key != keypair.x_only_public_key:
            raise InvalidKey("Signer key does not match the session key")

        self.builder = TransactionBuilder()
        self._closed = False
        self._backup_exported = False

        logger.info(f"Opened wallet session for {keypair.address}")

    async def __aenter__(self) -> WalletSession:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def address(self) -> str:
        self._ensure_open()
        return self.keypair.address

    def _ensure_open(self) -> None:
        if self._closed:
            raise WalletClosedError("Wallet session is closed")

    async def fetch_utxos(self) -> list[UtxoEntry]:
        """Current UTXO set of the session address, fetched fresh."""
        self._ensure_open()
        return await self.utxo_source.get_utxos(self.keypair.address)

    async def balance(self) -> int:
        utxos = await self.fetch_utxos()
        return sum(u.amount for u in utxos)

    def _check_ownership(self, utxos: list[UtxoEntry]) -> None:
        expected = pay_to_pubkey_script(self.keypair.x_only_public_key)
        for utxo in utxos:
            if utxo.script_public_key != expected:
                raise UtxoMismatch(
                    f"UTXO {utxo.outpoint} is locked by script "
                    f"{utxo.script_public_key.script.hex()}, not by the session key"
                )

    async def publish(self, event: GameEvent) -> BroadcastResult:
        """
        Publish a game event as the payload of a self-send.

        The transaction has a single output, the change back to the session
        address; the payload is carried at transaction level.
        """
        payload = encode_event(event)
        logger.info(f"Publishing {event.kind.name} event for game {event.game_id}")
        return await self._spend([], payload, require_change=True)

    async def send(self, destination: str, amount: int, payload: bytes = b"") -> BroadcastResult:
        self._ensure_open()
        if amount <= 0:
            raise ValueError(f"Amount must be positive, got {amount}")

        parsed = parse_address(destination)
        if parsed.prefix != NETWORK_PREFIXES[self.keypair.network]:
            raise InvalidAddress(
                f"Destination {destination} is not a {self.keypair.network} address"
            )

        output = TransactionOutput(amount, address_to_script_public_key(destination))
        logger.info(f"Sending {amount} sompi to {destination}")
        return await self._spend([output], payload)

    async def _spend(
        self,
        spend_outputs: list[TransactionOutput],
        payload: bytes,
        require_change: bool = False,
    ) -> BroadcastResult:
        self._ensure_open()
        if not is_payload_safe(payload):
            raise PayloadError(f"Payload too large: {len(payload)} > {MAX_PAYLOAD_BYTES} bytes")

        utxos = await self.fetch_utxos()
        spend_amount = sum(out.amount for out in spend_outputs)
        selection = select_utxos(
            utxos,
            spend_amount,
            self.fee,
            dust_threshold=self.dust_threshold,
            require_change=require_change,
        )
        self._check_ownership(selection.utxos)

        change_script = pay_to_pubkey_script(self.keypair.x_only_public_key)
        tx = self.builder.build_from_selection(selection, spend_outputs, change_script, payload)
        self.sign(tx, selection.utxos)

        result = await self.broadcaster.submit(tx.to_rpc_json())
        if result.accepted:
            logger.info(f"Broadcast accepted: {result.transaction_id}")
        else:
            logger.warning(f"Broadcast rejected: {result.reason}")
        return result

    def sign(self, tx: Transaction, spent_utxos: list[UtxoEntry]) -> Transaction:
        self._ensure_open()
        sign_transaction(tx, spent_utxos, self.signer)
        if not tx.is_fully_signed():
            raise SigningError("Transaction has unsigned inputs")
        return tx

    def export_backup(self) -> KeyBackup:
        """Recovery phrase (if any) and raw key. Available once per session."""
        self._ensure_open()
        if self._backup_exported:
            raise BackupAlreadyExported("Backup has already been exported for this session")
        self._backup_exported = True
        logger.warning("Key backup exported")
        return KeyBackup(
            mnemonic=self.keypair.mnemonic,
            private_key_hex=self.keypair.private_key_hex(),
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.keypair.zeroize()
        try:
            await self.utxo_source.close()
        finally:
            if self.broadcaster is not self.utxo_source:
                await self.broadcaster.close()
        logger.info("Wallet session closed")
