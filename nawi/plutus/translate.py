"""
Ledger entities to Plutus data, per ledger API version.

V3 follows the Conway ledger API (PlutusLedgerApi.V3); V1 follows the Alonzo
one. Anything a version cannot express raises NotRepresentable with a short
reason; the context builder attaches the version and the field it was
building.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from fractions import Fraction
from typing import Any

from nawi.ledger.models import (
    ByronAddress,
    Certificate,
    CertificateKind,
    Credential,
    CredentialKind,
    Datum,
    DatumKind,
    DRep,
    DRepKind,
    GovActionId,
    GovActionKind,
    GovernanceAction,
    InputReference,
    MultiAsset,
    Pointer,
    ProposalProcedure,
    ShelleyAddress,
    StakeAddress,
    TransactionOutput,
    Value,
    Vote,
    Voter,
    VoterKind,
)
from nawi.plutus.data import (
    NOTHING,
    Constr,
    PlutusBytes,
    PlutusData,
    PlutusInt,
    PlutusList,
    PlutusMap,
    constr,
    just,
    plist,
    pmap,
)

ADA_POLICY = b""
ADA_NAME = b""


class NotRepresentable(ValueError):
    """A ledger value has no encoding in the target ledger API version."""


def maybe(value: PlutusData | None) -> Constr:
    return NOTHING if value is None else just(value)


def credential(cred: Credential) -> Constr:
    return constr(0 if cred.kind is CredentialKind.KEY else 1, PlutusBytes(cred.hash))


def staking_credential(delegation: Credential | Pointer) -> Constr:
    if isinstance(delegation, Pointer):
        return constr(
            1,
            PlutusInt(delegation.slot),
            PlutusInt(delegation.tx_index),
            PlutusInt(delegation.cert_index),
        )
    return constr(0, credential(delegation))


def address(addr: ShelleyAddress | ByronAddress) -> Constr:
    if isinstance(addr, ByronAddress):
        raise NotRepresentable("Byron addresses have no Plutus representation")
    staking = None if addr.delegation is None else staking_credential(addr.delegation)
    return constr(0, credential(addr.payment), maybe(staking))


def multi_asset(assets: MultiAsset) -> list[tuple[PlutusData, PlutusData]]:
    return [
        (
            PlutusBytes(policy),
            pmap((PlutusBytes(name), PlutusInt(amount)) for name, amount in names.items()),
        )
        for policy, names in assets.items()
    ]


def value(val: Value) -> PlutusMap:
    """Value map with the lovelace entry first, under the empty policy and asset name."""
    ada = (PlutusBytes(ADA_POLICY), pmap([(PlutusBytes(ADA_NAME), PlutusInt(val.coin))]))
    return pmap([ada, *multi_asset(val.assets)])


def lovelace(amount: int) -> PlutusMap:
    return value(Value(amount))


def mint_v3(mint: MultiAsset) -> PlutusMap:
    """Minted value without an ada entry, policies in ledger order."""
    return pmap(multi_asset({policy: mint[policy] for policy in sorted(mint)}))


def mint_v1(mint: MultiAsset) -> PlutusMap:
    """Minted value with the zero-ada entry the Alonzo API always carries."""
    ada = (PlutusBytes(ADA_POLICY), pmap([(PlutusBytes(ADA_NAME), PlutusInt(0))]))
    return pmap([ada, *mint_v3(mint).pairs])


# --- outputs -------------------------------------------------------------


def output_datum(datum: Datum) -> Constr:
    if datum.kind is DatumKind.HASH:
        return constr(1, PlutusBytes(datum.hash))
    if datum.kind is DatumKind.INLINE:
        return constr(2, datum.data)
    return constr(0)


def output_v3(output: TransactionOutput) -> Constr:
    script_hash = None if output.script is None else PlutusBytes(output.script.hash)
    return constr(
        0,
        address(output.address),
        value(output.value),
        output_datum(output.datum),
        maybe(script_hash),
    )


def output_v1(output: TransactionOutput) -> Constr:
    if output.datum.kind is DatumKind.INLINE:
        raise NotRepresentable("inline datums are not supported")
    if output.script is not None:
        raise NotRepresentable("reference scripts are not supported")
    datum_hash = PlutusBytes(output.datum.hash) if output.datum.kind is DatumKind.HASH else None
    return constr(0, address(output.address), value(output.value), maybe(datum_hash))


def out_ref_v3(ref: InputReference) -> Constr:
    return constr(0, PlutusBytes(ref.transaction_id), PlutusInt(ref.index))


def tx_id_v1(transaction_id: bytes) -> Constr:
    return constr(0, PlutusBytes(transaction_id))


def out_ref_v1(ref: InputReference) -> Constr:
    return constr(0, tx_id_v1(ref.transaction_id), PlutusInt(ref.index))


def tx_in_info_v3(ref: InputReference, output: TransactionOutput) -> Constr:
    return constr(0, out_ref_v3(ref), output_v3(output))


def tx_in_info_v1(ref: InputReference, output: TransactionOutput) -> Constr:
    return constr(0, out_ref_v1(ref), output_v1(output))


# --- time ----------------------------------------------------------------


def interval(lower_ms: int | None, upper_ms: int | None) -> Constr:
    """
    POSIX time range: lower bound closed (or -inf), upper bound open (or +inf).
    Infinite bounds are encoded closed.
    """
    if lower_ms is None:
        lower = constr(0, constr(0), constr(1))
    else:
        lower = constr(0, constr(1, PlutusInt(lower_ms)), constr(1))
    if upper_ms is None:
        upper = constr(0, constr(2), constr(1))
    else:
        upper = constr(0, constr(1, PlutusInt(upper_ms)), constr(0))
    return constr(0, lower, upper)


# --- certificates --------------------------------------------------------


def drep(d: DRep) -> Constr:
    if d.kind is DRepKind.KEY:
        return constr(0, credential(Credential(CredentialKind.KEY, d.hash)))
    if d.kind is DRepKind.SCRIPT:
        return constr(0, credential(Credential(CredentialKind.SCRIPT, d.hash)))
    if d.kind is DRepKind.ABSTAIN:
        return constr(1)
    return constr(2)


def _delegatee(cert: Certificate) -> Constr:
    if cert.drep is None:
        return constr(0, PlutusBytes(cert.pool))
    if cert.pool is None:
        return constr(1, drep(cert.drep))
    return constr(2, PlutusBytes(cert.pool), drep(cert.drep))


def certificate_v3(cert: Certificate) -> Constr:
    K = CertificateKind
    kind = cert.kind
    if kind in (K.STAKE_REGISTRATION, K.STAKE_DEREGISTRATION):
        return constr(0 if kind is K.STAKE_REGISTRATION else 1, credential(cert.credential), NOTHING)
    if kind in (K.REG, K.UNREG):
        return constr(
            0 if kind is K.REG else 1,
            credential(cert.credential),
            just(PlutusInt(cert.deposit)),
        )
    if kind in (K.STAKE_DELEGATION, K.VOTE_DELEG, K.STAKE_VOTE_DELEG):
        return constr(2, credential(cert.credential), _delegatee(cert))
    if kind in (K.STAKE_REG_DELEG, K.VOTE_REG_DELEG, K.STAKE_VOTE_REG_DELEG):
        return constr(3, credential(cert.credential), _delegatee(cert), PlutusInt(cert.deposit))
    if kind is K.REG_DREP:
        return constr(4, credential(cert.credential), PlutusInt(cert.deposit))
    if kind is K.UPDATE_DREP:
        return constr(5, credential(cert.credential))
    if kind is K.UNREG_DREP:
        return constr(6, credential(cert.credential), PlutusInt(cert.deposit))
    if kind is K.POOL_REGISTRATION:
        return constr(7, PlutusBytes(cert.pool), PlutusBytes(cert.vrf_keyhash))
    if kind is K.POOL_RETIREMENT:
        return constr(8, PlutusBytes(cert.pool), PlutusInt(cert.epoch))
    if kind is K.AUTH_COMMITTEE_HOT:
        return constr(9, credential(cert.credential), credential(cert.hot_credential))
    if kind is K.RESIGN_COMMITTEE_COLD:
        return constr(10, credential(cert.credential))
    raise NotRepresentable(f"{kind.name} certificates are not supported")


def certificate_v1(cert: Certificate) -> Constr:
    K = CertificateKind
    kind = cert.kind
    if kind in (K.STAKE_REGISTRATION, K.STAKE_DEREGISTRATION):
        return constr(int(kind), staking_credential(cert.credential))
    if kind is K.STAKE_DELEGATION:
        return constr(2, staking_credential(cert.credential), PlutusBytes(cert.pool))
    if kind is K.POOL_REGISTRATION:
        return constr(3, PlutusBytes(cert.pool), PlutusBytes(cert.vrf_keyhash))
    if kind is K.POOL_RETIREMENT:
        return constr(4, PlutusBytes(cert.pool), PlutusInt(cert.epoch))
    if kind is K.GENESIS_DELEGATION:
        return constr(5)
    if kind is K.MOVE_INSTANTANEOUS_REWARDS:
        return constr(6)
    raise NotRepresentable(f"{kind.name} certificates are not supported")


# --- governance ----------------------------------------------------------


def voter(v: Voter) -> Constr:
    if v.kind is VoterKind.STAKE_POOL:
        return constr(2, PlutusBytes(v.hash))
    group = 0 if v.kind in (VoterKind.COMMITTEE_KEY, VoterKind.COMMITTEE_SCRIPT) else 1
    return constr(group, credential(v.credential))


def gov_action_id(action_id: GovActionId) -> Constr:
    return constr(0, PlutusBytes(action_id.transaction_id), PlutusInt(action_id.index))


def vote(v: Vote) -> Constr:
    return constr(int(v))


def protocol_parameter(raw: Any) -> PlutusData:
    """Generic conversion of a decoded protocol parameter value."""
    if isinstance(raw, bool):
        raise NotRepresentable(f"unexpected boolean parameter value {raw!r}")
    if isinstance(raw, int):
        return PlutusInt(raw)
    if isinstance(raw, Fraction):
        return plist([PlutusInt(raw.numerator), PlutusInt(raw.denominator)])
    if isinstance(raw, (bytes, bytearray)):
        return PlutusBytes(bytes(raw))
    if isinstance(raw, (list, tuple)):
        return plist(protocol_parameter(item) for item in raw)
    if isinstance(raw, Mapping):
        return pmap((protocol_parameter(k), protocol_parameter(v)) for k, v in raw.items())
    raise NotRepresentable(f"unexpected parameter value of type {type(raw).__name__}")


def _credential_map(entries: Iterable[tuple[Credential, int]]) -> PlutusMap:
    ordered = sorted(entries, key=lambda kv: kv[0].ledger_order)
    return pmap((credential(cred), PlutusInt(amount)) for cred, amount in ordered)


def governance_action(action: GovernanceAction) -> Constr:
    G = GovActionKind
    previous = maybe(None if action.previous is None else gov_action_id(action.previous))
    policy = maybe(None if action.policy_hash is None else PlutusBytes(action.policy_hash))
    if action.kind is G.PARAMETER_CHANGE:
        params = pmap(
            (PlutusInt(int(key)), protocol_parameter(val))
            for key, val in sorted((action.parameters or {}).items())
        )
        return constr(0, previous, params, policy)
    if action.kind is G.HARD_FORK_INITIATION:
        major, minor = action.protocol_version
        return constr(1, previous, constr(0, PlutusInt(major), PlutusInt(minor)))
    if action.kind is G.TREASURY_WITHDRAWALS:
        withdrawals = _credential_map(
            (account.credential, amount) for account, amount in (action.withdrawals or {}).items()
        )
        return constr(2, withdrawals, policy)
    if action.kind is G.NO_CONFIDENCE:
        return constr(3, previous)
    if action.kind is G.UPDATE_COMMITTEE:
        numerator, denominator = action.quorum
        return constr(
            4,
            previous,
            plist(credential(c) for c in action.removed_members),
            _credential_map((action.added_members or {}).items()),
            constr(0, PlutusInt(numerator), PlutusInt(denominator)),
        )
    if action.kind is G.NEW_CONSTITUTION:
        script = None if action.constitution_script is None else PlutusBytes(action.constitution_script)
        return constr(5, previous, constr(0, maybe(script)))
    return constr(6)


def proposal(procedure: ProposalProcedure) -> Constr:
    return constr(
        0,
        PlutusInt(procedure.deposit),
        credential(procedure.reward_account.credential),
        governance_action(procedure.action),
    )


def withdrawals_v3(entries: Iterable[tuple[StakeAddress, int]]) -> PlutusMap:
    return pmap((credential(account.credential), PlutusInt(amount)) for account, amount in entries)


def withdrawals_v1(entries: Iterable[tuple[StakeAddress, int]]) -> PlutusList:
    return plist(
        constr(0, staking_credential(account.credential), PlutusInt(amount))
        for account, amount in entries
    )
