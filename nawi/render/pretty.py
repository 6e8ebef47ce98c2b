"""
Human-readable script context report.

Pure string building over an assembled ScriptContext: an indented tree of the
transaction info, the selected redeemer and the script info. Never raises on a
context the builder produced; items it cannot resolve are shown as
placeholders (e.g. "Invalid index 3").
"""

from __future__ import annotations

from datetime import datetime, timezone

from nawi.ledger.models import (
    Address,
    ByronAddress,
    Certificate,
    CertificateKind,
    Credential,
    CredentialKind,
    Datum,
    DatumKind,
    DRep,
    DRepKind,
    MultiAsset,
    Pointer,
    RedeemerTag,
    ScriptLanguage,
    ScriptRef,
    StakeAddress,
    TransactionOutput,
    Value,
    Voter,
    VoterKind,
)
from nawi.plutus.context import ResolvedInput, ScriptContext, ScriptPurpose, TxInfo, ValidityRange
from nawi.plutus.data import Constr, PlutusBytes, PlutusData, PlutusInt, PlutusList, PlutusMap
from nawi.plutus.datum import DatumResolutionKind

SEPARATOR = "=" * 80
UNBOUNDED = "unbounded"
TIME_FORMAT = "%Y-%m-%d %H:%M:%S %Z"

# Plutus integers that fit the CBOR major types 0/1; anything else is shown as a bignum.
_INT_MIN = -(2**64)
_INT_MAX = 2**64 - 1

_PURPOSE_NAMES = {
    RedeemerTag.SPEND: "Spend",
    RedeemerTag.MINT: "Mint",
    RedeemerTag.CERT: "Certificate",
    RedeemerTag.REWARD: "Reward",
    RedeemerTag.VOTE: "Voting",
    RedeemerTag.PROPOSE: "Proposing",
}

_SCRIPT_NAMES = {
    ScriptLanguage.NATIVE: "Native",
    ScriptLanguage.PLUTUS_V1: "PlutusV1",
    ScriptLanguage.PLUTUS_V2: "PlutusV2",
    ScriptLanguage.PLUTUS_V3: "PlutusV3",
}


def _indent(text: str, spaces: int) -> str:
    pad = " " * spaces
    return "\n".join(f"{pad}{line}" for line in text.splitlines())


# --- Plutus data ---------------------------------------------------------


def _is_simple(data: PlutusData) -> bool:
    if isinstance(data, (PlutusInt, PlutusBytes)):
        return True
    if isinstance(data, Constr):
        return not data.fields
    if isinstance(data, PlutusMap):
        return not data.pairs
    return not data.items


def _magnitude_hex(n: int) -> str:
    return n.to_bytes(max(1, (n.bit_length() + 7) // 8), "big").hex()


def format_plutus_data(data: PlutusData, indent: int = 0) -> str:
    """
    Render Plutus data as an indented tree.

    Containers stay on one line when they are empty or hold only simple
    values (ints, bytes, empty containers): a constructor with one simple
    field, a map with one simple pair, a list of at most three simple items.
    Everything else breaks one child per line, two spaces deeper.
    """
    pad = "  " * indent
    next_pad = "  " * (indent + 1)
    if isinstance(data, Constr):
        if not data.fields:
            return f"Constr({data.tag}, [])"
        if len(data.fields) == 1 and _is_simple(data.fields[0]):
            return f"Constr({data.tag}, [{format_plutus_data(data.fields[0])}])"
        fields = ",\n".join(f"{next_pad}{format_plutus_data(f, indent + 1)}" for f in data.fields)
        return f"Constr({data.tag}, [\n{fields}\n{pad}])"
    if isinstance(data, PlutusMap):
        if not data.pairs:
            return "Map({})"
        if len(data.pairs) == 1 and all(_is_simple(x) for x in data.pairs[0]):
            key, val = data.pairs[0]
            return f"Map({{ {format_plutus_data(key)} => {format_plutus_data(val)} }})"
        pairs = ",\n".join(
            f"{next_pad}{format_plutus_data(k, indent + 1)} =>\n{next_pad}{format_plutus_data(v, indent + 1)}"
            for k, v in data.pairs
        )
        return f"Map({{\n{pairs}\n{pad}}})"
    if isinstance(data, PlutusList):
        if not data.items:
            return "[]"
        if len(data.items) <= 3 and all(_is_simple(x) for x in data.items):
            return "[" + ", ".join(format_plutus_data(x) for x in data.items) + "]"
        items = ",\n".join(f"{next_pad}{format_plutus_data(x, indent + 1)}" for x in data.items)
        return f"[\n{items}\n{pad}]"
    if isinstance(data, PlutusInt):
        n = data.value
        if _INT_MIN <= n <= _INT_MAX:
            return f"Int({n})"
        if n > 0:
            return f"BigInt(+0x{_magnitude_hex(n)})"
        # tag 3 bignums carry -1 - n
        return f"BigUInt(-0x{_magnitude_hex(-1 - n)})"
    return f"Bytes(0x{data.value.hex()})"


# --- ledger entities -----------------------------------------------------


def format_asset_name(name: bytes) -> str:
    if not name:
        return "<empty>"
    try:
        return name.decode("utf-8").strip()
    except UnicodeDecodeError:
        return name.hex()


def format_credential(cred: Credential) -> str:
    label = "Key" if cred.kind is CredentialKind.KEY else "Script"
    return f"{label}({cred.hash.hex()})"


def _format_delegation(delegation: Credential | Pointer | None) -> str:
    if delegation is None:
        return "Null"
    if isinstance(delegation, Pointer):
        return f"Pointer({delegation.slot}, {delegation.tx_index}, {delegation.cert_index})"
    return format_credential(delegation)


def format_address(addr: Address) -> str:
    if isinstance(addr, ByronAddress):
        return "Byron(...)"
    return (
        f"Shelley {{ payment: {format_credential(addr.payment)}, "
        f"stake: {_format_delegation(addr.delegation)} }}"
    )


def format_stake_address(account: StakeAddress) -> str:
    if account.network == 1:
        network = "Mainnet"
    elif account.network == 0:
        network = "Testnet"
    else:
        return f"Network({account.network})"
    return f"{network} {{ {format_credential(account.credential)} }}"


def format_value(value: Value) -> str:
    lines = [f"ADA: {value.coin} lovelace"]
    if value.assets:
        lines.append(f"Assets: {len(value.assets)} policies")
        for policy, names in value.assets.items():
            lines.append(f"  Policy: {policy.hex()}")
            lines.extend(f"    {format_asset_name(n)}: {amount}" for n, amount in names.items())
    return "\n".join(lines)


def format_mint(mint: MultiAsset) -> str:
    if not mint:
        return "(none)"
    lines = [f"Policies: {len(mint)}"]
    for policy, names in mint.items():
        lines.append(f"  Policy: {policy.hex()}")
        minting = [(n, amt) for n, amt in names.items() if amt > 0]
        burning = [(n, amt) for n, amt in names.items() if amt < 0]
        if minting:
            lines.append("    Minting:")
            lines.extend(f"      {format_asset_name(n)}: +{amt}" for n, amt in minting)
        if burning:
            lines.append("    Burning:")
            lines.extend(f"      {format_asset_name(n)}: {amt}" for n, amt in burning)
    return "\n".join(lines)


def format_datum(datum: Datum) -> str:
    if datum.kind is DatumKind.HASH:
        return f"Hash({datum.hash.hex()})"
    if datum.kind is DatumKind.INLINE:
        return f"Inline({format_plutus_data(datum.data)})"
    return "None"


def format_script(script: ScriptRef | None) -> str:
    if script is None:
        return "None"
    return f"{_SCRIPT_NAMES[script.language]}({script.hash.hex()})"


def format_output(output: TransactionOutput) -> str:
    return (
        f"Address: {format_address(output.address)}\n"
        f"Value:\n{_indent(format_value(output.value), 2)}\n"
        f"Datum: {format_datum(output.datum)}\n"
        f"Script: {format_script(output.script)}"
    )


def format_drep(drep: DRep) -> str:
    if drep.kind is DRepKind.KEY:
        return f"Key({drep.hash.hex()})"
    if drep.kind is DRepKind.SCRIPT:
        return f"Script({drep.hash.hex()})"
    if drep.kind is DRepKind.ABSTAIN:
        return "Abstain"
    return "NoConfidence"


def format_certificate(cert: Certificate) -> str:
    """First line names the certificate; detail lines are indented two spaces."""
    K = CertificateKind
    kind = cert.kind
    if kind is K.STAKE_REGISTRATION:
        return f"StakeRegistration({format_credential(cert.credential)})"
    if kind is K.STAKE_DEREGISTRATION:
        return f"StakeDeregistration({format_credential(cert.credential)})"
    if kind is K.GENESIS_DELEGATION:
        return "GenesisDelegation"
    if kind is K.MOVE_INSTANTANEOUS_REWARDS:
        return "MoveInstantaneousRewards"
    if kind is K.POOL_REGISTRATION:
        return f"PoolRegistration\n  Operator: {cert.pool.hex()}\n  VRF Keyhash: {cert.vrf_keyhash.hex()}"
    if kind is K.POOL_RETIREMENT:
        return f"PoolRetirement\n  Pool: {cert.pool.hex()}\n  Epoch: {cert.epoch}"
    if kind is K.AUTH_COMMITTEE_HOT:
        return (
            f"AuthCommitteeHot\n  Cold: {format_credential(cert.credential)}\n"
            f"  Hot: {format_credential(cert.hot_credential)}"
        )
    if kind is K.RESIGN_COMMITTEE_COLD:
        return f"ResignCommitteeCold\n  Cold: {format_credential(cert.credential)}"

    names = {
        K.STAKE_DELEGATION: "StakeDelegation",
        K.REG: "Reg",
        K.UNREG: "UnReg",
        K.VOTE_DELEG: "VoteDeleg",
        K.STAKE_VOTE_DELEG: "StakeVoteDeleg",
        K.STAKE_REG_DELEG: "StakeRegDeleg",
        K.VOTE_REG_DELEG: "VoteRegDeleg",
        K.STAKE_VOTE_REG_DELEG: "StakeVoteRegDeleg",
        K.REG_DREP: "RegDRepCert",
        K.UNREG_DREP: "UnRegDRepCert",
        K.UPDATE_DREP: "UpdateDRepCert",
    }
    lines = [names[kind], f"  Credential: {format_credential(cert.credential)}"]
    if cert.pool is not None:
        lines.append(f"  Pool: {cert.pool.hex()}")
    if cert.drep is not None:
        lines.append(f"  DRep: {format_drep(cert.drep)}")
    if cert.deposit is not None:
        label = "Refund" if kind in (K.UNREG, K.UNREG_DREP) else "Deposit"
        lines.append(f"  {label}: {cert.deposit} lovelace")
    return "\n".join(lines)


def format_voter(voter: Voter) -> str:
    if voter.kind is VoterKind.STAKE_POOL:
        return f"StakePool({voter.hash.hex()})"
    role = "Committee" if voter.kind in (VoterKind.COMMITTEE_KEY, VoterKind.COMMITTEE_SCRIPT) else "DRep"
    return f"{role} {format_credential(voter.credential)}"


def format_time_ms(time_ms: int) -> str:
    try:
        return datetime.fromtimestamp(time_ms // 1000, tz=timezone.utc).strftime(TIME_FORMAT)
    except (OverflowError, OSError, ValueError):
        return f"Invalid timestamp: {time_ms} ms"


def format_validity_range(valid_range: ValidityRange) -> str:
    lower = UNBOUNDED if valid_range.lower_ms is None else format_time_ms(valid_range.lower_ms)
    upper = UNBOUNDED if valid_range.upper_ms is None else format_time_ms(valid_range.upper_ms)
    return f"Lower: {lower}\nUpper: {upper}"


def format_withdrawals(withdrawals: tuple[tuple[StakeAddress, int], ...]) -> str:
    if not withdrawals:
        return "(none)"
    return "\n".join(
        f"[{i}] {format_stake_address(account)}: {amount} lovelace"
        for i, (account, amount) in enumerate(withdrawals)
    )


def format_redeemer_table(info: TxInfo) -> str:
    blocks = []
    for i, (purpose, redeemer) in enumerate(info.redeemers):
        blocks.append(
            f"[{i}] {_PURPOSE_NAMES[purpose.tag]}\n"
            f"    Index: {redeemer.index}\n"
            f"    Data: {format_plutus_data(redeemer.data)}\n"
            f"    Ex Units: {redeemer.ex_units.steps} steps, {redeemer.ex_units.mem} mem"
        )
    return "\n\n".join(blocks)


def _format_resolved_inputs(inputs: tuple[ResolvedInput, ...]) -> list[str]:
    lines = []
    for i, resolved in enumerate(inputs):
        lines.append(f"    [{i}] {resolved.reference}")
        lines.append(_indent(format_output(resolved.output), 8))
    return lines


def format_tx_info(info: TxInfo) -> str:
    out = [f"  Transaction ID: {info.id.hex()}"]

    out.append(f"\n  Inputs: {len(info.inputs)} input(s)")
    out.extend(_format_resolved_inputs(info.inputs))

    if info.reference_inputs:
        out.append(f"\n  Reference Inputs: {len(info.reference_inputs)} input(s)")
        out.extend(_format_resolved_inputs(info.reference_inputs))

    out.append(f"\n  Outputs: {len(info.outputs)} output(s)")
    for i, output in enumerate(info.outputs):
        out.append(f"    [{i}]")
        out.append(_indent(format_output(output), 8))

    out.append(f"\n  Fee: {info.fee} lovelace")

    out.append("\n  Minted Assets:")
    out.append(_indent(format_mint(info.mint), 4))

    out.append(f"\n  Certificates: {len(info.certificates)} certificate(s)")
    for i, cert in enumerate(info.certificates):
        first, *rest = format_certificate(cert).splitlines()
        out.append(f"    [{i}] {first}")
        out.extend(f"        {line}" for line in rest)

    out.append(f"\n  Withdrawals: {len(info.withdrawals)} withdrawal(s)")
    out.append(_indent(format_withdrawals(info.withdrawals), 4))

    out.append("\n  Validity Range:")
    out.append(_indent(format_validity_range(info.valid_range), 4))

    out.append(f"\n  Required Signers: {len(info.signatories)} signer(s)")
    out.extend(f"    [{i}] {signer.hex()}" for i, signer in enumerate(info.signatories))

    out.append(f"\n  Redeemers: {len(info.redeemers)} redeemer(s)")
    if info.redeemers:
        out.append(_indent(format_redeemer_table(info), 4))

    return "\n".join(out) + "\n"


def format_script_info(ctx: ScriptContext) -> str:
    purpose: ScriptPurpose = ctx.purpose
    index = ctx.redeemer.index
    tag = ctx.redeemer.tag
    if tag is RedeemerTag.SPEND:
        target = f"Invalid index {index}" if purpose.target is None else str(purpose.target)
        lines = ["  Type: Spending", f"  Input: {target}"]
        if ctx.datum.kind is DatumResolutionKind.PRESENT:
            lines.append(f"  Datum: {format_plutus_data(ctx.datum.data, 1)}")
        elif ctx.datum.kind is DatumResolutionKind.ABSENT:
            lines.append("  Datum: None")
    elif tag is RedeemerTag.MINT:
        lines = ["  Type: Minting", f"  Policy Index: {index}"]
    elif tag is RedeemerTag.CERT:
        lines = ["  Type: Certificate", f"  Certificate Index: {index}"]
    elif tag is RedeemerTag.REWARD:
        lines = ["  Type: Withdrawal", f"  Withdrawal Index: {index}"]
    elif tag is RedeemerTag.VOTE:
        voter = f"Invalid index {index}" if purpose.target is None else format_voter(purpose.target)
        lines = ["  Type: Voting", f"  Voter: {voter}"]
    else:
        lines = ["  Type: Proposing", f"  Proposal Index: {index}"]
    return "\n".join(lines) + "\n"


def render_pretty(ctx: ScriptContext) -> str:
    """Full report: header, transaction info, selected redeemer, script info, footer."""
    return (
        f"\n{SEPARATOR}\n"
        f"Script Context (Plutus V{ctx.version.number})\n"
        f"{SEPARATOR}\n\n"
        f"Transaction Info:\n{format_tx_info(ctx.tx_info)}\n"
        f"Redeemer:\n"
        f"  Purpose: {ctx.redeemer.tag.label}\n"
        f"  Index: {ctx.redeemer.index}\n\n"
        f"Script Info:\n{format_script_info(ctx)}\n"
        f"{SEPARATOR}\n"
    )
