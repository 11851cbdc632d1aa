"""
Kaspa wallet CLI - Generate keys, check balances and publish chess events.
"""

from __future__ import annotations

import asyncio
import sys

import typer
from loguru import logger

from kaswallet.backends.base import Broadcaster
from kaswallet.backends.rest import KaspaRestBackend
from kaswallet.backends.wrpc import WrpcBroadcaster
from kaswallet.config import WalletSettings, get_settings
from kaswallet.constants import SOMPI_PER_KAS
from kaswallet.errors import KasWalletError
from kaswallet.protocol import GameEvent
from kaswallet.wallet.keys import KeyPair, from_mnemonic, from_raw_key, generate_mnemonic
from kaswallet.wallet.service import WalletSession

app = typer.Typer(
    name="kaswallet",
    help="Kaspa wallet for on-chain chess events",
    add_completion=False,
)

EVENT_KINDS = ("init", "join", "move", "chat", "resign", "draw")


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def _load_keypair(mnemonic: str | None, private_key: str | None, network: str) -> KeyPair:
    if mnemonic and private_key:
        logger.error("Use either --mnemonic or --private-key, not both")
        raise typer.Exit(1)
    if mnemonic:
        return from_mnemonic(mnemonic, network=network)
    if private_key:
        return from_raw_key(private_key, network=network)
    logger.error(
        "Key required. Use --mnemonic / KASWALLET_MNEMONIC or --private-key / KASWALLET_PRIVATE_KEY"
    )
    raise typer.Exit(1)


def _open_session(settings: WalletSettings, keypair: KeyPair) -> WalletSession:
    rest = KaspaRestBackend(api_url=settings.api_url, timeout=settings.request_timeout)
    broadcaster: Broadcaster = rest
    if settings.broadcast_transport == "wrpc":
        broadcaster = WrpcBroadcaster(url=settings.wrpc_url, timeout=settings.request_timeout)
    return WalletSession(
        keypair,
        utxo_source=rest,
        broadcaster=broadcaster,
        fee=settings.fee,
        dust_threshold=settings.dust_threshold,
    )


def _build_event(
    kind: str,
    game_id: str,
    player: str,
    ply: int,
    move: str,
    seq: int,
    message: str,
) -> GameEvent:
    if kind == "move":
        return GameEvent.make_move(game_id, ply, move)
    if kind == "chat":
        return GameEvent.chat(game_id, seq, message)
    factory = {
        "init": GameEvent.init,
        "join": GameEvent.join,
        "resign": GameEvent.resign,
        "draw": GameEvent.draw,
    }[kind]
    return factory(game_id, player)


@app.command()
def generate(
    word_count: int = typer.Option(24, "--words", "-w", help="Number of words (12 or 24)"),
) -> None:
    """Generate a new BIP39 recovery phrase."""
    setup_logging()

    try:
        mnemonic = generate_mnemonic(word_count)
    except KasWalletError as e:
        logger.error(f"Failed to generate mnemonic: {e}")
        raise typer.Exit(1)

    typer.echo("\n" + "=" * 80)
    typer.echo("GENERATED MNEMONIC - WRITE THIS DOWN AND KEEP IT SAFE!")
    typer.echo("=" * 80)
    typer.echo(f"\n{mnemonic}\n")
    typer.echo("=" * 80)
    typer.echo("Anyone with this phrase can spend your KAS.")
    typer.echo("=" * 80 + "\n")


@app.command()
def address(
    mnemonic: str = typer.Option(None, "--mnemonic", envvar="KASWALLET_MNEMONIC"),
    private_key: str = typer.Option(None, "--private-key", envvar="KASWALLET_PRIVATE_KEY"),
    network: str = typer.Option(None, "--network", "-n", help="mainnet | testnet | simnet | devnet"),
    log_level: str = typer.Option("WARNING", "--log-level", "-l"),
) -> None:
    """Show the address for a recovery phrase or raw private key."""
    setup_logging(log_level)
    settings = get_settings()

    try:
        keypair = _load_keypair(mnemonic, private_key, network or settings.network)
    except KasWalletError as e:
        logger.error(f"Invalid key: {e}")
        raise typer.Exit(1)

    typer.echo(keypair.address)
    keypair.zeroize()


@app.command()
def balance(
    mnemonic: str = typer.Option(None, "--mnemonic", envvar="KASWALLET_MNEMONIC"),
    private_key: str = typer.Option(None, "--private-key", envvar="KASWALLET_PRIVATE_KEY"),
    network: str = typer.Option(None, "--network", "-n"),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Show the spendable balance of the wallet address."""
    setup_logging(log_level)
    settings = get_settings()

    try:
        keypair = _load_keypair(mnemonic, private_key, network or settings.network)
        total = asyncio.run(_show_balance(settings, keypair))
    except KasWalletError as e:
        logger.error(f"Balance query failed: {e}")
        raise typer.Exit(1)

    typer.echo(f"{keypair.address}: {total:,} sompi ({total / SOMPI_PER_KAS:.8f} KAS)")


async def _show_balance(settings: WalletSettings, keypair: KeyPair) -> int:
    async with _open_session(settings, keypair) as session:
        return await session.balance()


@app.command()
def publish(
    kind: str = typer.Argument(..., help=f"Event kind: {' | '.join(EVENT_KINDS)}"),
    game_id: str = typer.Argument(..., help="Game identifier"),
    move: str = typer.Option("", "--move", help="UCI move (move events)"),
    ply: int = typer.Option(0, "--ply", help="Ply number (move events)"),
    seq: int = typer.Option(0, "--seq", help="Fragment number (chat events)"),
    message: str = typer.Option("", "--message", help="Chat text (chat events)"),
    mnemonic: str = typer.Option(None, "--mnemonic", envvar="KASWALLET_MNEMONIC"),
    private_key: str = typer.Option(None, "--private-key", envvar="KASWALLET_PRIVATE_KEY"),
    network: str = typer.Option(None, "--network", "-n"),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Publish a chess event in the payload of a self-send."""
    setup_logging(log_level)
    settings = get_settings()

    kind = kind.lower()
    if kind not in EVENT_KINDS:
        logger.error(f"Unknown event kind {kind!r}. Use one of: {', '.join(EVENT_KINDS)}")
        raise typer.Exit(1)

    try:
        keypair = _load_keypair(mnemonic, private_key, network or settings.network)
        event = _build_event(kind, game_id, keypair.address, ply, move, seq, message)
        txid = asyncio.run(_publish(settings, keypair, event))
    except ValueError as e:
        logger.error(f"Invalid event: {e}")
        raise typer.Exit(1)
    except KasWalletError as e:
        logger.error(f"Publish failed: {e}")
        raise typer.Exit(1)

    typer.echo(txid)


async def _publish(settings: WalletSettings, keypair: KeyPair, event: GameEvent) -> str:
    async with _open_session(settings, keypair) as session:
        result = await session.publish(event)
    return result.raise_for_rejection().transaction_id


@app.command()
def send(
    destination: str = typer.Argument(..., help="Destination address"),
    amount: int = typer.Argument(..., help="Amount in sompi"),
    payload: str = typer.Option("", "--payload", help="Hex-encoded payload"),
    mnemonic: str = typer.Option(None, "--mnemonic", envvar="KASWALLET_MNEMONIC"),
    private_key: str = typer.Option(None, "--private-key", envvar="KASWALLET_PRIVATE_KEY"),
    network: str = typer.Option(None, "--network", "-n"),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Send an amount to an address, optionally with a payload."""
    setup_logging(log_level)
    settings = get_settings()

    try:
        payload_bytes = bytes.fromhex(payload)
    except ValueError:
        logger.error("Payload must be hex")
        raise typer.Exit(1)

    try:
        keypair = _load_keypair(mnemonic, private_key, network or settings.network)
        txid = asyncio.run(_send(settings, keypair, destination, amount, payload_bytes))
    except ValueError as e:
        logger.error(f"Invalid request: {e}")
        raise typer.Exit(1)
    except KasWalletError as e:
        logger.error(f"Send failed: {e}")
        raise typer.Exit(1)

    typer.echo(txid)


async def _send(
    settings: WalletSettings, keypair: KeyPair, destination: str, amount: int, payload: bytes
) -> str:
    async with _open_session(settings, keypair) as session:
        result = await session.send(destination, amount, payload)
    return result.raise_for_rejection().transaction_id


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
