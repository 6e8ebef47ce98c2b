"""
Spending datum resolution.

For a Spend redeemer the datum comes from the output the redeemer's input
points to. The result distinguishes "not a spend" from "spend without datum"
so the V3 builder can emit Nothing for the latter and skip the field for the
former.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from nawi.core.exceptions import MissingSpendingUtxoError, SpendingInputIndexError
from nawi.ledger.models import (
    DatumKind,
    InputReference,
    Redeemer,
    RedeemerTag,
    ResolvedOutput,
    Transaction,
)
from nawi.plutus.data import PlutusBytes, PlutusData


class DatumResolutionKind(Enum):
    NOT_APPLICABLE = "not_applicable"
    ABSENT = "absent"
    PRESENT = "present"


@dataclass(frozen=True)
class DatumResolution:
    kind: DatumResolutionKind
    data: PlutusData | None = None

    @classmethod
    def present(cls, data: PlutusData) -> "DatumResolution":
        return cls(DatumResolutionKind.PRESENT, data)

    @property
    def is_present(self) -> bool:
        return self.kind is DatumResolutionKind.PRESENT


NOT_APPLICABLE = DatumResolution(DatumResolutionKind.NOT_APPLICABLE)
ABSENT = DatumResolution(DatumResolutionKind.ABSENT)


def spending_input(redeemer: Redeemer, tx: Transaction) -> InputReference:
    """The input a Spend redeemer points at, in ledger (sorted) input order."""
    inputs = tx.sorted_inputs()
    if redeemer.index >= len(inputs):
        raise SpendingInputIndexError(redeemer.index, len(inputs))
    return inputs[redeemer.index]


def resolve_datum(
    redeemer: Redeemer,
    tx: Transaction,
    utxos: Mapping[InputReference, ResolvedOutput],
) -> DatumResolution:
    """
    Datum for the redeemer's script.

    A hash-only datum resolves to the hash itself as Bytes (the witness datum
    is not looked up); an inline datum resolves to its value.
    """
    if redeemer.tag is not RedeemerTag.SPEND:
        return NOT_APPLICABLE
    reference = spending_input(redeemer, tx)
    output = utxos.get(reference)
    if output is None:
        raise MissingSpendingUtxoError(reference)
    datum = output.datum
    if datum.kind is DatumKind.HASH:
        return DatumResolution.present(PlutusBytes(datum.hash))
    if datum.kind is DatumKind.INLINE:
        return DatumResolution.present(datum.data)
    return ABSENT
