"""
UTXO sources and broadcasters for the Kaspa network.
"""

from kaswallet.backends.base import BroadcastResult, Broadcaster, UtxoSource
from kaswallet.backends.rest import KaspaRestBackend
from kaswallet.backends.wrpc import WrpcBroadcaster

__all__ = [
    "BroadcastResult",
    "Broadcaster",
    "KaspaRestBackend",
    "UtxoSource",
    "WrpcBroadcaster",
]
