"""
UTXO selection and fee accounting.
"""

from __future__ import annotations

from loguru import logger

from kaswallet.constants import DUST_THRESHOLD
from kaswallet.errors import InsufficientFunds
from kaswallet.wallet.models import CoinSelection, UtxoEntry


def select_utxos(
    utxos: list[UtxoEntry],
    spend_amount: int,
    fee: int,
    dust_threshold: int = DUST_THRESHOLD,
    require_change: bool = False,
) -> CoinSelection:
    """
    Greedy selection, largest outputs first.

    The wallet as a whole must hold spend + fee + dust_threshold. Selection
    stops as soon as spend + fee is covered. Change below the dust threshold
    is not emitted as an output; it is added to the fee instead, so that
    total_input == spend_amount + change_amount + fee always holds.

    With require_change, selection continues until the change clears the
    dust threshold and is at least one sompi. A self-send that carries only a
    payload needs this, since its change output is its only output.
    """
    if spend_amount < 0 or fee < 0:
        raise ValueError("Spend amount and fee must be non-negative")

    change_floor = max(dust_threshold, 1) if require_change else dust_threshold
    available = sum(u.amount for u in utxos)
    required = spend_amount + fee + change_floor
    if available < required:
        raise InsufficientFunds(required=required, available=available)

    target = spend_amount + fee
    stop_at = target + change_floor if require_change else target
    ordered = sorted(utxos, key=lambda u: u.amount, reverse=True)

    selected: list[UtxoEntry] = []
    total = 0
    for utxo in ordered:
        selected.append(utxo)
        total += utxo.amount
        if total >= stop_at:
            break

    change = total - target
    absorbed = 0
    if change < dust_threshold:
        absorbed = change
        change = 0
        logger.debug(f"Change of {absorbed} sompi is below dust threshold; absorbed into fee")

    selection = CoinSelection(
        utxos=selected,
        total_input=total,
        spend_amount=spend_amount,
        change_amount=change,
        fee=fee + absorbed,
        absorbed_dust=absorbed,
    )
    logger.debug(
        f"Selected {len(selected)} UTXO(s): input={total} spend={spend_amount} "
        f"change={selection.change_amount} fee={selection.fee}"
    )
    return selection
