"""
Cardano transaction parser: CBOR bytes to the ledger model.

Decodes a full transaction ([body, witness_set, is_valid?, auxiliary_data]) or
just the outputs of one (what the resolution service needs). The transaction
id and the witness datum hashes are computed over the original byte spans;
everything else is read from cbor2-decoded values with sets kept in order.

Purely structural: no ledger rule is checked beyond what decoding requires.
"""

from __future__ import annotations

from collections.abc import Mapping
from fractions import Fraction
from typing import Any

from cbor2 import CBORTag

from nawi.core.exceptions import DecodingError
from nawi.ledger import cbor
from nawi.ledger.models import (
    NO_DATUM,
    Address,
    ByronAddress,
    Certificate,
    CertificateKind,
    Credential,
    CredentialKind,
    Datum,
    DRep,
    DRepKind,
    ExUnits,
    GovActionId,
    GovActionKind,
    GovernanceAction,
    InputReference,
    Pointer,
    ProposalProcedure,
    Redeemer,
    RedeemerTag,
    ScriptLanguage,
    ScriptRef,
    ShelleyAddress,
    StakeAddress,
    Transaction,
    TransactionBody,
    TransactionOutput,
    Value,
    Vote,
    Voter,
    VoterKind,
    VotingProcedures,
    WitnessSet,
)
from nawi.nawi_logging import get_logger
from nawi.plutus.data import PlutusData, decode_plutus_data

logger = get_logger(__name__)

# Transaction body keys (Conway CDDL)
BODY_INPUTS = 0
BODY_OUTPUTS = 1
BODY_FEE = 2
BODY_TTL = 3
BODY_CERTIFICATES = 4
BODY_WITHDRAWALS = 5
BODY_VALIDITY_START = 8
BODY_MINT = 9
BODY_REQUIRED_SIGNERS = 14
BODY_REFERENCE_INPUTS = 18
BODY_VOTING_PROCEDURES = 19
BODY_PROPOSAL_PROCEDURES = 20
BODY_CURRENT_TREASURY = 21
BODY_DONATION = 22

# Witness set keys
WITNESS_PLUTUS_DATA = 4
WITNESS_REDEEMERS = 5

ENCODED_CBOR_TAG = 24
HASH_LENGTH = 28

_DECODE_ERRORS = (KeyError, IndexError, TypeError, ValueError, AttributeError)


def _credential(raw: Any) -> Credential:
    kind, credential_hash = raw
    return Credential(CredentialKind(kind), bytes(credential_hash))


def _read_natural(raw: bytes, pos: int) -> tuple[int, int]:
    """Variable-length natural used by pointer addresses (7 bits per byte, MSB = continue)."""
    value = 0
    while True:
        if pos >= len(raw):
            raise DecodingError("Truncated pointer address")
        byte = raw[pos]
        value = (value << 7) | (byte & 0x7F)
        pos += 1
        if not byte & 0x80:
            return value, pos


def parse_address(raw: bytes) -> Address:
    """Decode output address bytes (Shelley base/pointer/enterprise or Byron)."""
    raw = bytes(raw)
    if not raw:
        raise DecodingError("Empty address")
    header = raw[0]
    kind, network = header >> 4, header & 0x0F
    if kind == 8:
        return ByronAddress(raw)
    if kind > 7:
        raise DecodingError(f"Unsupported address type {kind} in transaction output")
    if len(raw) < 1 + HASH_LENGTH:
        raise DecodingError(f"Address too short: {len(raw)} byte(s)")
    payment = Credential(
        CredentialKind.SCRIPT if kind & 1 else CredentialKind.KEY,
        raw[1:1 + HASH_LENGTH],
    )
    rest = raw[1 + HASH_LENGTH:]
    delegation: Credential | Pointer | None
    if kind in (0, 1, 2, 3):
        if len(rest) != HASH_LENGTH:
            raise DecodingError("Base address must carry a 28-byte stake credential")
        delegation = Credential(CredentialKind.SCRIPT if kind in (2, 3) else CredentialKind.KEY, rest)
    elif kind in (4, 5):
        slot, pos = _read_natural(rest, 0)
        tx_index, pos = _read_natural(rest, pos)
        cert_index, _ = _read_natural(rest, pos)
        delegation = Pointer(slot, tx_index, cert_index)
    else:
        delegation = None
    return ShelleyAddress(network, payment, delegation)


def parse_stake_address(raw: bytes) -> StakeAddress:
    """Decode a reward account (header 0xE? for key, 0xF? for script)."""
    raw = bytes(raw)
    if len(raw) != 1 + HASH_LENGTH or raw[0] >> 4 not in (14, 15):
        raise DecodingError(f"Invalid reward account: {raw.hex()}")
    kind = CredentialKind.SCRIPT if raw[0] >> 4 == 15 else CredentialKind.KEY
    return StakeAddress(raw[0] & 0x0F, Credential(kind, raw[1:]))


def _multi_asset(raw: Mapping) -> dict[bytes, dict[bytes, int]]:
    return {
        bytes(policy): {bytes(name): int(qty) for name, qty in assets.items()}
        for policy, assets in raw.items()
    }


def _value(raw: Any) -> Value:
    if isinstance(raw, int):
        return Value(raw)
    coin, assets = raw
    return Value(int(coin), _multi_asset(assets))


def _datum_option(raw: Any) -> Datum:
    if raw is None:
        return NO_DATUM
    kind, payload = raw
    if kind == 0:
        return Datum.of_hash(bytes(payload))
    if kind == 1:
        if not isinstance(payload, CBORTag) or payload.tag != ENCODED_CBOR_TAG:
            raise DecodingError("Inline datum must be tag-24 encoded CBOR")
        return Datum.inline(decode_plutus_data(payload.value))
    raise DecodingError(f"Unknown datum option {kind}")


def _script_ref(raw: Any) -> ScriptRef | None:
    if raw is None:
        return None
    if not isinstance(raw, CBORTag) or raw.tag != ENCODED_CBOR_TAG:
        raise DecodingError("Reference script must be tag-24 encoded CBOR")
    inner = bytes(raw.value)
    spans = cbor.array_spans(inner)
    if len(spans) != 2:
        raise DecodingError("Reference script must be [language, script]")
    language = ScriptLanguage(cbor.loads(inner[slice(*spans[0])]))
    script_item = inner[slice(*spans[1])]
    if language is ScriptLanguage.NATIVE:
        script_bytes = script_item
    else:
        script_bytes = bytes(cbor.loads(script_item))
    return ScriptRef(language, cbor.blake2b_224(bytes([language]) + script_bytes))


def parse_output(raw: Any) -> TransactionOutput:
    """Decode one output: legacy array [address, value, ?datum_hash] or post-Alonzo map."""
    if isinstance(raw, Mapping):
        return TransactionOutput(
            address=parse_address(raw[0]),
            value=_value(raw[1]),
            datum=_datum_option(raw.get(2)),
            script=_script_ref(raw.get(3)),
        )
    datum = Datum.of_hash(bytes(raw[2])) if len(raw) > 2 else NO_DATUM
    return TransactionOutput(address=parse_address(raw[0]), value=_value(raw[1]), datum=datum)


def _input(raw: Any) -> InputReference:
    transaction_id, index = raw
    return InputReference(bytes(transaction_id), int(index))


def _drep(raw: Any) -> DRep:
    kind = DRepKind(raw[0])
    if kind in (DRepKind.KEY, DRepKind.SCRIPT):
        return DRep(kind, bytes(raw[1]))
    return DRep(kind)


def parse_certificate(raw: Any) -> Certificate:
    kind = CertificateKind(raw[0])
    K = CertificateKind
    if kind in (K.STAKE_REGISTRATION, K.STAKE_DEREGISTRATION, K.UPDATE_DREP, K.RESIGN_COMMITTEE_COLD):
        return Certificate(kind, credential=_credential(raw[1]))
    if kind is K.STAKE_DELEGATION:
        return Certificate(kind, credential=_credential(raw[1]), pool=bytes(raw[2]))
    if kind is K.POOL_REGISTRATION:
        return Certificate(kind, pool=bytes(raw[1]), vrf_keyhash=bytes(raw[2]))
    if kind is K.POOL_RETIREMENT:
        return Certificate(kind, pool=bytes(raw[1]), epoch=int(raw[2]))
    if kind in (K.GENESIS_DELEGATION, K.MOVE_INSTANTANEOUS_REWARDS):
        return Certificate(kind)
    if kind in (K.REG, K.UNREG, K.REG_DREP, K.UNREG_DREP):
        return Certificate(kind, credential=_credential(raw[1]), deposit=int(raw[2]))
    if kind is K.VOTE_DELEG:
        return Certificate(kind, credential=_credential(raw[1]), drep=_drep(raw[2]))
    if kind is K.STAKE_VOTE_DELEG:
        return Certificate(kind, credential=_credential(raw[1]), pool=bytes(raw[2]), drep=_drep(raw[3]))
    if kind is K.STAKE_REG_DELEG:
        return Certificate(kind, credential=_credential(raw[1]), pool=bytes(raw[2]), deposit=int(raw[3]))
    if kind is K.VOTE_REG_DELEG:
        return Certificate(kind, credential=_credential(raw[1]), drep=_drep(raw[2]), deposit=int(raw[3]))
    if kind is K.STAKE_VOTE_REG_DELEG:
        return Certificate(
            kind,
            credential=_credential(raw[1]),
            pool=bytes(raw[2]),
            drep=_drep(raw[3]),
            deposit=int(raw[4]),
        )
    # AUTH_COMMITTEE_HOT
    return Certificate(kind, credential=_credential(raw[1]), hot_credential=_credential(raw[2]))


def _gov_action_id(raw: Any) -> GovActionId | None:
    if raw is None:
        return None
    transaction_id, index = raw
    return GovActionId(bytes(transaction_id), int(index))


def _ratio(raw: Any) -> tuple[int, int]:
    # cbor2 decodes tag 30 into a Fraction
    if isinstance(raw, Fraction):
        return raw.numerator, raw.denominator
    if isinstance(raw, CBORTag):
        raw = raw.value
    numerator, denominator = raw
    return int(numerator), int(denominator)


def parse_governance_action(raw: Any) -> GovernanceAction:
    kind = GovActionKind(raw[0])
    G = GovActionKind
    if kind is G.PARAMETER_CHANGE:
        return GovernanceAction(
            kind,
            previous=_gov_action_id(raw[1]),
            parameters=dict(raw[2]),
            policy_hash=None if raw[3] is None else bytes(raw[3]),
        )
    if kind is G.HARD_FORK_INITIATION:
        major, minor = raw[2]
        return GovernanceAction(kind, previous=_gov_action_id(raw[1]), protocol_version=(int(major), int(minor)))
    if kind is G.TREASURY_WITHDRAWALS:
        return GovernanceAction(
            kind,
            withdrawals={parse_stake_address(k): int(v) for k, v in raw[1].items()},
            policy_hash=None if raw[2] is None else bytes(raw[2]),
        )
    if kind is G.NO_CONFIDENCE:
        return GovernanceAction(kind, previous=_gov_action_id(raw[1]))
    if kind is G.UPDATE_COMMITTEE:
        return GovernanceAction(
            kind,
            previous=_gov_action_id(raw[1]),
            removed_members=tuple(_credential(c) for c in raw[2]),
            added_members={_credential(c): int(epoch) for c, epoch in raw[3].items()},
            quorum=_ratio(raw[4]),
        )
    if kind is G.NEW_CONSTITUTION:
        _anchor, script_hash = raw[2]
        return GovernanceAction(
            kind,
            previous=_gov_action_id(raw[1]),
            constitution_script=None if script_hash is None else bytes(script_hash),
        )
    return GovernanceAction(kind)


def _voting_procedures(raw: Mapping) -> VotingProcedures:
    out: dict[Voter, dict[GovActionId, Vote]] = {}
    for voter_raw, votes in raw.items():
        voter = Voter(VoterKind(voter_raw[0]), bytes(voter_raw[1]))
        out[voter] = {
            _gov_action_id(action_id): Vote(procedure[0])
            for action_id, procedure in votes.items()
        }
    return out


def _proposal(raw: Any) -> ProposalProcedure:
    deposit, reward_account, action, _anchor = raw
    return ProposalProcedure(int(deposit), parse_stake_address(reward_account), parse_governance_action(action))


def parse_body(raw: Mapping) -> TransactionBody:
    def optional_int(key: int) -> int | None:
        value = raw.get(key)
        return None if value is None else int(value)

    return TransactionBody(
        inputs=tuple(_input(i) for i in raw[BODY_INPUTS]),
        outputs=tuple(parse_output(o) for o in raw[BODY_OUTPUTS]),
        fee=int(raw[BODY_FEE]),
        ttl=optional_int(BODY_TTL),
        certificates=tuple(parse_certificate(c) for c in raw.get(BODY_CERTIFICATES) or ()),
        withdrawals={
            parse_stake_address(k): int(v)
            for k, v in (raw.get(BODY_WITHDRAWALS) or {}).items()
        },
        validity_start=optional_int(BODY_VALIDITY_START),
        mint=_multi_asset(raw.get(BODY_MINT) or {}),
        required_signers=tuple(bytes(s) for s in raw.get(BODY_REQUIRED_SIGNERS) or ()),
        reference_inputs=tuple(_input(i) for i in raw.get(BODY_REFERENCE_INPUTS) or ()),
        voting_procedures=_voting_procedures(raw.get(BODY_VOTING_PROCEDURES) or {}),
        proposal_procedures=tuple(_proposal(p) for p in raw.get(BODY_PROPOSAL_PROCEDURES) or ()),
        current_treasury_value=optional_int(BODY_CURRENT_TREASURY),
        donation=optional_int(BODY_DONATION),
    )


def _redeemer(raw: bytes, tag: Any, index: Any, data_span: cbor.Span, ex_units_span: cbor.Span) -> Redeemer:
    mem, steps = cbor.loads(raw[slice(*ex_units_span)])
    return Redeemer(
        RedeemerTag(tag),
        int(index),
        decode_plutus_data(raw[slice(*data_span)]),
        ExUnits(int(mem), int(steps)),
    )


def parse_redeemers(raw: bytes, pos: int = 0) -> tuple[Redeemer, ...]:
    """
    Decode the redeemers item at pos in either encoding: legacy array of
    [tag, index, data, ex_units] or Conway map keyed by [tag, index].
    """
    out: list[Redeemer] = []
    major, _, _ = cbor.read_head(raw, pos)
    if major == cbor.MAJOR_MAP:
        for key_span, value_span in cbor.map_spans(raw, pos):
            tag, index = cbor.loads(raw[slice(*key_span)])
            data_span, ex_units_span = cbor.array_spans(raw, value_span[0])
            out.append(_redeemer(raw, tag, index, data_span, ex_units_span))
        return tuple(out)
    for start, _ in cbor.array_spans(raw, pos):
        tag_span, index_span, data_span, ex_units_span = cbor.array_spans(raw, start)
        tag, index = cbor.loads(raw[slice(*tag_span)]), cbor.loads(raw[slice(*index_span)])
        out.append(_redeemer(raw, tag, index, data_span, ex_units_span))
    return tuple(out)


def _witness_fields(raw: bytes, witness_span: cbor.Span) -> dict[int, cbor.Span]:
    return {
        cbor.loads(raw[slice(*key_span)]): value_span
        for key_span, value_span in cbor.map_spans(raw, witness_span[0])
    }


def _witness_datums(raw: bytes, datums_span: cbor.Span | None) -> dict[bytes, PlutusData]:
    """Witness datums keyed by the blake2b-256 hash of their encoded bytes."""
    if datums_span is None:
        return {}
    datums = {}
    for start, end in cbor.array_spans(raw, datums_span[0]):
        encoded = raw[start:end]
        datums[cbor.blake2b_256(encoded)] = decode_plutus_data(encoded)
    return datums


def _top_level_spans(raw: bytes) -> list[cbor.Span]:
    spans = cbor.array_spans(raw)
    if len(spans) not in (3, 4):
        raise DecodingError(
            f"Expected a transaction array of 3 or 4 elements, found {len(spans)}"
        )
    return spans


def decode_transaction(raw: bytes) -> Transaction:
    """
    Decode signed transaction bytes.

    Raises DecodingError with the failing part named when the bytes are not a
    post-Shelley transaction.
    """
    raw = bytes(raw)
    try:
        spans = _top_level_spans(raw)
        decoded = cbor.loads(raw)
        body = parse_body(decoded[0])
        witness = _witness_fields(raw, spans[1])
        redeemers = witness.get(WITNESS_REDEEMERS)
        witness_set = WitnessSet(
            redeemers=None if redeemers is None else parse_redeemers(raw, redeemers[0]),
            datums=_witness_datums(raw, witness.get(WITNESS_PLUTUS_DATA)),
        )
        is_valid = decoded[2] if len(decoded) == 4 else True
    except _DECODE_ERRORS as e:
        raise DecodingError(
            f"Failed to decode transaction. Ensure the CBOR data is a valid Cardano transaction: {e}"
        ) from e
    tx_id = cbor.blake2b_256(raw[slice(*spans[0])])
    logger.debug(
        "transaction_decoded",
        tx_id=tx_id.hex(),
        inputs=len(body.inputs),
        reference_inputs=len(body.reference_inputs),
        redeemers=len(witness_set.redeemers or ()),
    )
    return Transaction(id=tx_id, body=body, witness_set=witness_set, is_valid=bool(is_valid))


def decode_transaction_outputs(raw: bytes) -> tuple[TransactionOutput, ...]:
    """Decode only the outputs of a transaction (used when resolving input references)."""
    try:
        _top_level_spans(bytes(raw))
        decoded = cbor.loads(bytes(raw))
        return tuple(parse_output(o) for o in decoded[0][BODY_OUTPUTS])
    except _DECODE_ERRORS as e:
        raise DecodingError(f"Failed to decode transaction outputs: {e}") from e
