"""
Data models for the ledger pieces a script context is built from.

Immutable dataclasses mirroring the Conway-era CDDL closely enough for context
assembly: input references, outputs (address, value, datum, reference script),
redeemers, certificates, governance votes and proposals. Orderings that the
ledger defines (inputs, withdrawals, voters) are exposed as sort keys so the
context builder and the redeemer normalizer agree on every index.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Mapping, Union

from nawi.plutus.data import PlutusData


@dataclass(frozen=True, order=True)
class InputReference:
    """
    Reference to a transaction output: (source transaction id, output index).

    Ordered by transaction id then index, which is the ledger's input order.
    """

    transaction_id: bytes
    index: int

    def __str__(self) -> str:
        return f"{self.transaction_id.hex()}#{self.index}"


class CredentialKind(IntEnum):
    KEY = 0
    SCRIPT = 1


@dataclass(frozen=True)
class Credential:
    kind: CredentialKind
    hash: bytes

    @property
    def ledger_order(self) -> tuple[int, bytes]:
        """Ledger ordering: script credentials sort before key credentials."""
        return (0 if self.kind is CredentialKind.SCRIPT else 1, self.hash)


@dataclass(frozen=True)
class Pointer:
    slot: int
    tx_index: int
    cert_index: int


@dataclass(frozen=True)
class ShelleyAddress:
    network: int
    payment: Credential
    delegation: Credential | Pointer | None


@dataclass(frozen=True)
class ByronAddress:
    raw: bytes


Address = Union[ShelleyAddress, ByronAddress]


@dataclass(frozen=True)
class StakeAddress:
    """Reward account: network id plus the staking credential."""

    network: int
    credential: Credential

    @property
    def ledger_order(self) -> tuple[int, int, bytes]:
        return (self.network, *self.credential.ledger_order)


MultiAsset = Mapping[bytes, Mapping[bytes, int]]


@dataclass(frozen=True)
class Value:
    """Lovelace plus native assets keyed by policy id then asset name."""

    coin: int
    assets: MultiAsset = field(default_factory=dict)


class DatumKind(Enum):
    NONE = "none"
    HASH = "hash"
    INLINE = "inline"


@dataclass(frozen=True)
class Datum:
    """Datum attached to an output: absent, a hash only, or an inline value."""

    kind: DatumKind
    hash: bytes | None = None
    data: PlutusData | None = None

    @classmethod
    def of_hash(cls, datum_hash: bytes) -> "Datum":
        return cls(DatumKind.HASH, hash=datum_hash)

    @classmethod
    def inline(cls, data: PlutusData) -> "Datum":
        return cls(DatumKind.INLINE, data=data)


NO_DATUM = Datum(DatumKind.NONE)


class ScriptLanguage(IntEnum):
    """Script language; the value is also the hashing prefix byte."""

    NATIVE = 0
    PLUTUS_V1 = 1
    PLUTUS_V2 = 2
    PLUTUS_V3 = 3


@dataclass(frozen=True)
class ScriptRef:
    language: ScriptLanguage
    hash: bytes


@dataclass(frozen=True)
class TransactionOutput:
    address: Address
    value: Value
    datum: Datum = NO_DATUM
    script: ScriptRef | None = None


# An output as returned by the resolution service for an input reference
ResolvedOutput = TransactionOutput


class RedeemerTag(IntEnum):
    SPEND = 0
    MINT = 1
    CERT = 2
    REWARD = 3
    VOTE = 4
    PROPOSE = 5

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass(frozen=True)
class ExUnits:
    mem: int
    steps: int


@dataclass(frozen=True)
class Redeemer:
    tag: RedeemerTag
    index: int
    data: PlutusData
    ex_units: ExUnits

    @property
    def key(self) -> tuple[int, int]:
        return (int(self.tag), self.index)


class DRepKind(IntEnum):
    KEY = 0
    SCRIPT = 1
    ABSTAIN = 2
    NO_CONFIDENCE = 3


@dataclass(frozen=True)
class DRep:
    kind: DRepKind
    hash: bytes | None = None


class CertificateKind(IntEnum):
    """Certificate kinds, valued by their CBOR tag."""

    STAKE_REGISTRATION = 0
    STAKE_DEREGISTRATION = 1
    STAKE_DELEGATION = 2
    POOL_REGISTRATION = 3
    POOL_RETIREMENT = 4
    GENESIS_DELEGATION = 5
    MOVE_INSTANTANEOUS_REWARDS = 6
    REG = 7
    UNREG = 8
    VOTE_DELEG = 9
    STAKE_VOTE_DELEG = 10
    STAKE_REG_DELEG = 11
    VOTE_REG_DELEG = 12
    STAKE_VOTE_REG_DELEG = 13
    AUTH_COMMITTEE_HOT = 14
    RESIGN_COMMITTEE_COLD = 15
    REG_DREP = 16
    UNREG_DREP = 17
    UPDATE_DREP = 18


@dataclass(frozen=True)
class Certificate:
    """
    One certificate. Only the fields its kind carries are set.

    Committee certificates keep the cold credential in `credential` and the hot
    one in `hot_credential`; pool registration keeps the operator in `pool`.
    """

    kind: CertificateKind
    credential: Credential | None = None
    pool: bytes | None = None
    drep: DRep | None = None
    deposit: int | None = None
    vrf_keyhash: bytes | None = None
    epoch: int | None = None
    hot_credential: Credential | None = None


class VoterKind(IntEnum):
    COMMITTEE_KEY = 0
    COMMITTEE_SCRIPT = 1
    DREP_KEY = 2
    DREP_SCRIPT = 3
    STAKE_POOL = 4


@dataclass(frozen=True)
class Voter:
    kind: VoterKind
    hash: bytes

    @property
    def credential(self) -> Credential:
        is_script = self.kind in (VoterKind.COMMITTEE_SCRIPT, VoterKind.DREP_SCRIPT)
        return Credential(CredentialKind.SCRIPT if is_script else CredentialKind.KEY, self.hash)

    @property
    def ledger_order(self) -> tuple[int, int, bytes]:
        """Committee voters, then DReps, then stake pools; scripts before keys."""
        if self.kind is VoterKind.STAKE_POOL:
            return (2, 0, self.hash)
        group = 0 if self.kind in (VoterKind.COMMITTEE_KEY, VoterKind.COMMITTEE_SCRIPT) else 1
        return (group, *self.credential.ledger_order)


@dataclass(frozen=True, order=True)
class GovActionId:
    transaction_id: bytes
    index: int


class Vote(IntEnum):
    NO = 0
    YES = 1
    ABSTAIN = 2


class GovActionKind(IntEnum):
    PARAMETER_CHANGE = 0
    HARD_FORK_INITIATION = 1
    TREASURY_WITHDRAWALS = 2
    NO_CONFIDENCE = 3
    UPDATE_COMMITTEE = 4
    NEW_CONSTITUTION = 5
    INFO = 6


@dataclass(frozen=True)
class GovernanceAction:
    kind: GovActionKind
    previous: GovActionId | None = None
    parameters: Mapping[int, Any] | None = None
    policy_hash: bytes | None = None
    protocol_version: tuple[int, int] | None = None
    withdrawals: Mapping[StakeAddress, int] | None = None
    removed_members: tuple[Credential, ...] = ()
    added_members: Mapping[Credential, int] | None = None
    quorum: tuple[int, int] | None = None
    constitution_script: bytes | None = None


@dataclass(frozen=True)
class ProposalProcedure:
    deposit: int
    reward_account: StakeAddress
    action: GovernanceAction


VotingProcedures = Mapping[Voter, Mapping[GovActionId, Vote]]


@dataclass(frozen=True)
class TransactionBody:
    inputs: tuple[InputReference, ...]
    outputs: tuple[TransactionOutput, ...]
    fee: int
    ttl: int | None = None
    certificates: tuple[Certificate, ...] = ()
    withdrawals: Mapping[StakeAddress, int] = field(default_factory=dict)
    validity_start: int | None = None
    mint: MultiAsset = field(default_factory=dict)
    required_signers: tuple[bytes, ...] = ()
    reference_inputs: tuple[InputReference, ...] = ()
    voting_procedures: VotingProcedures = field(default_factory=dict)
    proposal_procedures: tuple[ProposalProcedure, ...] = ()
    current_treasury_value: int | None = None
    donation: int | None = None


@dataclass(frozen=True)
class WitnessSet:
    """Witness parts a context needs: redeemers (None when the field is absent) and datums by hash."""

    redeemers: tuple[Redeemer, ...] | None = None
    datums: Mapping[bytes, PlutusData] = field(default_factory=dict)


@dataclass(frozen=True)
class Transaction:
    id: bytes
    body: TransactionBody
    witness_set: WitnessSet
    is_valid: bool = True

    def declared_inputs(self) -> list[InputReference]:
        """Spent inputs followed by reference inputs, duplicates removed, encoded order kept."""
        return list(dict.fromkeys((*self.body.inputs, *self.body.reference_inputs)))

    def sorted_inputs(self) -> list[InputReference]:
        return sorted(self.body.inputs)

    def sorted_reference_inputs(self) -> list[InputReference]:
        return sorted(self.body.reference_inputs)

    def sorted_withdrawals(self) -> list[tuple[StakeAddress, int]]:
        return sorted(self.body.withdrawals.items(), key=lambda kv: kv[0].ledger_order)

    def sorted_mint_policies(self) -> list[bytes]:
        return sorted(self.body.mint)

    def sorted_voters(self) -> list[Voter]:
        return sorted(self.body.voting_procedures, key=lambda v: v.ledger_order)
