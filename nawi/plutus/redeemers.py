"""
Redeemer normalization and selection.

The CLI index is a position in the canonical redeemer list: sorted by
(tag, index), one entry per (tag, index). Both wire encodings (legacy array,
Conway map) decode to the same list, so they select the same redeemer.
"""

from __future__ import annotations

from collections.abc import Iterable

from nawi.core.exceptions import NoRedeemersError, RedeemerIndexError
from nawi.ledger.models import Redeemer, Transaction
from nawi.nawi_logging import get_logger

logger = get_logger(__name__)


def normalize_redeemers(redeemers: Iterable[Redeemer]) -> tuple[Redeemer, ...]:
    """Sort by (tag, index); on duplicate keys the first occurrence wins."""
    seen: dict[tuple[int, int], Redeemer] = {}
    for redeemer in redeemers:
        seen.setdefault(redeemer.key, redeemer)
    return tuple(seen[key] for key in sorted(seen))


def select_redeemer(source: Transaction | Iterable[Redeemer] | None, index: int) -> Redeemer:
    """
    Pick the redeemer at `index` of the normalized list.

    Args:
        source: A decoded transaction, or its redeemers (None when the witness
            set has no redeemer field).
        index: Zero-based position in the normalized list.

    Raises:
        NoRedeemersError: no redeemers at all.
        RedeemerIndexError: index beyond the normalized list.
    """
    if isinstance(source, Transaction):
        source = source.witness_set.redeemers
    if source is None:
        raise NoRedeemersError()
    normalized = normalize_redeemers(source)
    if not normalized:
        raise NoRedeemersError()
    if index < 0 or index >= len(normalized):
        raise RedeemerIndexError(index, len(normalized))
    selected = normalized[index]
    logger.debug(
        "redeemer_selected",
        position=index,
        purpose=selected.tag.label,
        redeemer_index=selected.index,
    )
    return selected
