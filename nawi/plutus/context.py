"""
Script context assembly.

One builder per Plutus version, picked from a closed table. Every builder
consumes the same decoded transaction, UtxoSet and selected redeemer; the
version only decides which fields are read, how they are encoded and what is
rejected. The Plutus data value is computed while building, so a context that
exists can always be rendered.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Union

from nawi.core.exceptions import AssemblyError, MissingUtxoError, VersionNotImplementedError
from nawi.ledger.models import (
    Certificate,
    GovActionId,
    InputReference,
    MultiAsset,
    ProposalProcedure,
    Redeemer,
    RedeemerTag,
    ResolvedOutput,
    StakeAddress,
    Transaction,
    TransactionOutput,
    Vote,
    Voter,
)
from nawi.ledger.slots import SlotConfig, TimeHorizonError
from nawi.nawi_logging import get_logger
from nawi.plutus import translate
from nawi.plutus.data import Constr, PlutusBytes, PlutusData, PlutusInt, constr, plist, pmap
from nawi.plutus.datum import NOT_APPLICABLE, DatumResolution, resolve_datum
from nawi.plutus.redeemers import normalize_redeemers
from nawi.plutus.translate import NotRepresentable

logger = get_logger(__name__)


class PlutusVersion(Enum):
    V1 = "PlutusV1"
    V2 = "PlutusV2"
    V3 = "PlutusV3"

    @property
    def number(self) -> int:
        return int(self.value[-1])

    @classmethod
    def parse(cls, raw: str) -> "PlutusVersion":
        """Parse PlutusV1 | PlutusV2 | PlutusV3 (case-insensitive)."""
        for version in cls:
            if version.value.lower() == raw.strip().lower():
                return version
        raise ValueError(f"Unknown Plutus version: {raw}. Valid options: PlutusV1, PlutusV2, PlutusV3")


PurposeTarget = Union[InputReference, bytes, Certificate, StakeAddress, Voter, ProposalProcedure]

_PURPOSE_TARGETS = {
    RedeemerTag.SPEND: "input",
    RedeemerTag.MINT: "minting policy",
    RedeemerTag.CERT: "certificate",
    RedeemerTag.REWARD: "withdrawal",
    RedeemerTag.VOTE: "voter",
    RedeemerTag.PROPOSE: "proposal",
}


@dataclass(frozen=True)
class ScriptPurpose:
    """What a redeemer is for. `target` is None when its index points past the relevant list."""

    tag: RedeemerTag
    index: int
    target: PurposeTarget | None = None


def resolve_purpose(tx: Transaction, tag: RedeemerTag, index: int) -> ScriptPurpose:
    """Look up the item a (tag, index) pair points at, using the ledger's ordering of each list."""
    candidates: list = {
        RedeemerTag.SPEND: tx.sorted_inputs,
        RedeemerTag.MINT: tx.sorted_mint_policies,
        RedeemerTag.CERT: lambda: list(tx.body.certificates),
        RedeemerTag.REWARD: lambda: [account for account, _ in tx.sorted_withdrawals()],
        RedeemerTag.VOTE: tx.sorted_voters,
        RedeemerTag.PROPOSE: lambda: list(tx.body.proposal_procedures),
    }[tag]()
    target = candidates[index] if 0 <= index < len(candidates) else None
    return ScriptPurpose(tag, index, target)


@dataclass(frozen=True)
class ResolvedInput:
    reference: InputReference
    output: ResolvedOutput


@dataclass(frozen=True)
class ValidityRange:
    """POSIX millisecond bounds; None means unbounded on that side."""

    lower_ms: int | None = None
    upper_ms: int | None = None


@dataclass(frozen=True)
class TxInfo:
    """Transaction view a script sees, with every list in ledger order."""

    id: bytes
    inputs: tuple[ResolvedInput, ...]
    """Spent inputs, sorted by reference, each with the output it consumes."""
    reference_inputs: tuple[ResolvedInput, ...]
    outputs: tuple[TransactionOutput, ...]
    fee: int
    mint: MultiAsset
    """Minted (positive) and burned (negative) quantities, policies sorted."""
    certificates: tuple[Certificate, ...]
    withdrawals: tuple[tuple[StakeAddress, int], ...]
    """Script credentials before key credentials."""
    valid_range: ValidityRange
    signatories: tuple[bytes, ...]
    redeemers: tuple[tuple[ScriptPurpose, Redeemer], ...]
    """Normalized redeemers with what each one is for."""
    data: tuple[tuple[bytes, PlutusData], ...]
    """Witness datums by hash."""
    votes: tuple[tuple[Voter, tuple[tuple[GovActionId, Vote], ...]], ...]
    proposals: tuple[ProposalProcedure, ...]
    current_treasury_amount: int | None = None
    treasury_donation: int | None = None


@dataclass(frozen=True)
class ScriptContext:
    version: PlutusVersion
    tx_info: TxInfo
    redeemer: Redeemer
    purpose: ScriptPurpose
    datum: DatumResolution
    data: PlutusData

    def to_plutus_data(self) -> PlutusData:
        return self.data


@contextmanager
def _field(version: PlutusVersion, name: str) -> Iterator[None]:
    """Attribute translation failures to the context field being built."""
    try:
        yield
    except (NotRepresentable, TimeHorizonError) as e:
        raise AssemblyError(version.value, name, str(e)) from e


def _target(purpose: ScriptPurpose) -> PurposeTarget:
    if purpose.target is None:
        raise NotRepresentable(
            f"{purpose.tag.label} redeemer index {purpose.index} "
            f"has no matching {_PURPOSE_TARGETS[purpose.tag]}"
        )
    return purpose.target


def _resolved(utxos: Mapping[InputReference, ResolvedOutput], refs: list[InputReference]) -> tuple[ResolvedInput, ...]:
    out = []
    for ref in refs:
        output = utxos.get(ref)
        if output is None:
            raise MissingUtxoError(ref)
        out.append(ResolvedInput(ref, output))
    return tuple(out)


def build_tx_info(
    version: PlutusVersion,
    tx: Transaction,
    utxos: Mapping[InputReference, ResolvedOutput],
    slot_config: SlotConfig,
    tip_slot: int | None = None,
) -> TxInfo:
    """Collect the version-independent transaction view; slots become POSIX time here."""
    body = tx.body
    with _field(version, "valid_range"):
        valid_range = ValidityRange(
            lower_ms=None if body.validity_start is None
            else slot_config.slot_to_posix_ms(body.validity_start, tip_slot),
            upper_ms=None if body.ttl is None else slot_config.slot_to_posix_ms(body.ttl, tip_slot),
        )
    redeemers = normalize_redeemers(tx.witness_set.redeemers or ())
    return TxInfo(
        id=tx.id,
        inputs=_resolved(utxos, tx.sorted_inputs()),
        reference_inputs=_resolved(utxos, tx.sorted_reference_inputs()),
        outputs=body.outputs,
        fee=body.fee,
        mint={policy: body.mint[policy] for policy in tx.sorted_mint_policies()},
        certificates=body.certificates,
        withdrawals=tuple(tx.sorted_withdrawals()),
        valid_range=valid_range,
        signatories=tuple(sorted(body.required_signers)),
        redeemers=tuple((resolve_purpose(tx, r.tag, r.index), r) for r in redeemers),
        data=tuple(sorted(tx.witness_set.datums.items())),
        votes=tuple(
            (voter, tuple(sorted(body.voting_procedures[voter].items())))
            for voter in tx.sorted_voters()
        ),
        proposals=body.proposal_procedures,
        current_treasury_amount=body.current_treasury_value,
        treasury_donation=body.donation,
    )


# --- PlutusV1 ------------------------------------------------------------


def _purpose_v1(purpose: ScriptPurpose) -> Constr:
    target = _target(purpose)
    if purpose.tag is RedeemerTag.MINT:
        return constr(0, PlutusBytes(target))
    if purpose.tag is RedeemerTag.SPEND:
        return constr(1, translate.out_ref_v1(target))
    if purpose.tag is RedeemerTag.REWARD:
        return constr(2, translate.staking_credential(target.credential))
    if purpose.tag is RedeemerTag.CERT:
        return constr(3, translate.certificate_v1(target))
    raise NotRepresentable(f"{purpose.tag.label} purposes are not supported")


def _tx_info_v1(info: TxInfo) -> Constr:
    v = PlutusVersion.V1
    unsupported = (
        ("reference_inputs", bool(info.reference_inputs)),
        ("votes", bool(info.votes)),
        ("proposal_procedures", bool(info.proposals)),
        ("current_treasury_amount", info.current_treasury_amount is not None),
        ("treasury_donation", info.treasury_donation is not None),
    )
    for name, present in unsupported:
        if present:
            raise AssemblyError(v.value, name, "not supported")
    with _field(v, "inputs"):
        inputs = plist(translate.tx_in_info_v1(i.reference, i.output) for i in info.inputs)
    with _field(v, "outputs"):
        outputs = plist(translate.output_v1(o) for o in info.outputs)
    with _field(v, "certificates"):
        certificates = plist(translate.certificate_v1(c) for c in info.certificates)
    return constr(
        0,
        inputs,
        outputs,
        translate.lovelace(info.fee),
        translate.mint_v1(info.mint),
        certificates,
        translate.withdrawals_v1(info.withdrawals),
        translate.interval(info.valid_range.lower_ms, info.valid_range.upper_ms),
        plist(PlutusBytes(s) for s in info.signatories),
        plist(constr(0, PlutusBytes(h), d) for h, d in info.data),
        translate.tx_id_v1(info.id),
    )


def _build_v1(
    tx: Transaction,
    utxos: Mapping[InputReference, ResolvedOutput],
    redeemer: Redeemer,
    slot_config: SlotConfig,
    tip_slot: int | None,
) -> ScriptContext:
    v = PlutusVersion.V1
    purpose = resolve_purpose(tx, redeemer.tag, redeemer.index)
    with _field(v, "purpose"):
        purpose_data = _purpose_v1(purpose)
    info = build_tx_info(v, tx, utxos, slot_config, tip_slot)
    data = constr(0, _tx_info_v1(info), purpose_data)
    return ScriptContext(v, info, redeemer, purpose, NOT_APPLICABLE, data)


def _build_v2(
    tx: Transaction,
    utxos: Mapping[InputReference, ResolvedOutput],
    redeemer: Redeemer,
    slot_config: SlotConfig,
    tip_slot: int | None,
) -> ScriptContext:
    raise VersionNotImplementedError(PlutusVersion.V2.value)


# --- PlutusV3 ------------------------------------------------------------


def _purpose_v3(purpose: ScriptPurpose) -> Constr:
    target = _target(purpose)
    if purpose.tag is RedeemerTag.MINT:
        return constr(0, PlutusBytes(target))
    if purpose.tag is RedeemerTag.SPEND:
        return constr(1, translate.out_ref_v3(target))
    if purpose.tag is RedeemerTag.REWARD:
        return constr(2, translate.credential(target.credential))
    if purpose.tag is RedeemerTag.CERT:
        return constr(3, PlutusInt(purpose.index), translate.certificate_v3(target))
    if purpose.tag is RedeemerTag.VOTE:
        return constr(4, translate.voter(target))
    return constr(5, PlutusInt(purpose.index), translate.proposal(target))


def _script_info_v3(purpose: ScriptPurpose, datum: DatumResolution) -> Constr:
    """Same shapes as the purpose, except spending also carries the optional datum."""
    if purpose.tag is RedeemerTag.SPEND:
        return constr(
            1,
            translate.out_ref_v3(_target(purpose)),
            translate.maybe(datum.data if datum.is_present else None),
        )
    return _purpose_v3(purpose)


def _tx_info_v3(info: TxInfo) -> Constr:
    v = PlutusVersion.V3
    with _field(v, "inputs"):
        inputs = plist(translate.tx_in_info_v3(i.reference, i.output) for i in info.inputs)
    with _field(v, "reference_inputs"):
        reference_inputs = plist(
            translate.tx_in_info_v3(i.reference, i.output) for i in info.reference_inputs
        )
    with _field(v, "outputs"):
        outputs = plist(translate.output_v3(o) for o in info.outputs)
    with _field(v, "certificates"):
        certificates = plist(translate.certificate_v3(c) for c in info.certificates)
    with _field(v, "redeemers"):
        redeemers = pmap((_purpose_v3(p), r.data) for p, r in info.redeemers)
    with _field(v, "proposal_procedures"):
        proposals = plist(translate.proposal(p) for p in info.proposals)
    votes = pmap(
        (
            translate.voter(voter),
            pmap((translate.gov_action_id(a), translate.vote(vote)) for a, vote in actions),
        )
        for voter, actions in info.votes
    )
    treasury = None if info.current_treasury_amount is None else PlutusInt(info.current_treasury_amount)
    donation = None if info.treasury_donation is None else PlutusInt(info.treasury_donation)
    return constr(
        0,
        inputs,
        reference_inputs,
        outputs,
        PlutusInt(info.fee),
        translate.mint_v3(info.mint),
        certificates,
        translate.withdrawals_v3(info.withdrawals),
        translate.interval(info.valid_range.lower_ms, info.valid_range.upper_ms),
        plist(PlutusBytes(s) for s in info.signatories),
        redeemers,
        pmap((PlutusBytes(h), d) for h, d in info.data),
        PlutusBytes(info.id),
        votes,
        proposals,
        translate.maybe(treasury),
        translate.maybe(donation),
    )


def _build_v3(
    tx: Transaction,
    utxos: Mapping[InputReference, ResolvedOutput],
    redeemer: Redeemer,
    slot_config: SlotConfig,
    tip_slot: int | None,
) -> ScriptContext:
    v = PlutusVersion.V3
    purpose = resolve_purpose(tx, redeemer.tag, redeemer.index)
    datum = resolve_datum(redeemer, tx, utxos)
    with _field(v, "purpose"):
        script_info = _script_info_v3(purpose, datum)
    info = build_tx_info(v, tx, utxos, slot_config, tip_slot)
    data = constr(0, _tx_info_v3(info), redeemer.data, script_info)
    return ScriptContext(v, info, redeemer, purpose, datum, data)


_Builder = Callable[
    [Transaction, Mapping[InputReference, ResolvedOutput], Redeemer, SlotConfig, Union[int, None]],
    ScriptContext,
]

_BUILDERS: dict[PlutusVersion, _Builder] = {
    PlutusVersion.V1: _build_v1,
    PlutusVersion.V2: _build_v2,
    PlutusVersion.V3: _build_v3,
}


def build_script_context(
    version: PlutusVersion,
    tx: Transaction,
    utxos: Mapping[InputReference, ResolvedOutput],
    redeemer: Redeemer,
    slot_config: SlotConfig,
    tip_slot: int | None = None,
) -> ScriptContext:
    """
    Assemble the script context the validator bound to `redeemer` receives.

    Args:
        version: Target Plutus ledger API version.
        tx: Decoded transaction.
        utxos: Resolved outputs for every spent and reference input.
        redeemer: Selected redeemer (see select_redeemer).
        slot_config: Slot to POSIX time conversion for the network.
        tip_slot: Current slot; validity bounds beyond its stability window
            are rejected. None skips the horizon check.

    Raises:
        VersionNotImplementedError: PlutusV2.
        AssemblyError: a field cannot be expressed in the requested version.
        MissingUtxoError / DatumError: the UtxoSet does not cover what the
            context needs.
    """
    context = _BUILDERS[version](tx, utxos, redeemer, slot_config, tip_slot)
    logger.info(
        "script_context_built",
        tx_id=tx.id.hex(),
        version=version.value,
        purpose=redeemer.tag.label,
        redeemer_index=redeemer.index,
    )
    return context
