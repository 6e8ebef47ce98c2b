"""
UTxO resolution: fetch the outputs a transaction's inputs and reference
inputs point to, concurrently and fail-fast, from an output resolution
service (Blockfrost by default).
"""

from nawi.resolver.blockfrost import BlockfrostService
from nawi.resolver.utxo import OutputResolutionService, UtxoSet, resolve_utxos

__all__ = [
    "BlockfrostService",
    "OutputResolutionService",
    "UtxoSet",
    "resolve_utxos",
]
