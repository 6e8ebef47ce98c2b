"""
nawi command line: rebuild the script context a Plutus validator receives for
one redeemer of a Cardano transaction.

Usage:
  nawi -t tx.cbor -r 0
  nawi -b 84a400... -r 1 -n preprod -p PlutusV1 -s 74000000 -o cbor

Exit status: 0 on success, 1 on any nawi error (one `error: ...` line on
stderr), 2 on invalid arguments.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from nawi.config import Network, Settings, get_settings, parse_network
from nawi.core.exceptions import InputError, NawiError
from nawi.ledger.models import Transaction
from nawi.ledger.parser import decode_transaction
from nawi.ledger.slots import slot_config_for
from nawi.nawi_logging import bind_transaction, configure_logging, get_logger
from nawi.plutus.context import PlutusVersion, ScriptContext, build_script_context
from nawi.plutus.redeemers import select_redeemer
from nawi.render import format_cbor_payload, render_cbor, render_pretty
from nawi.resolver import BlockfrostService, UtxoSet, resolve_utxos

logger = get_logger(__name__)

OUTPUT_PRETTY = "pretty"
OUTPUT_CBOR = "cbor"
OUTPUT_BOTH = "both"


def _network_arg(raw: str) -> Network:
    try:
        return parse_network(raw)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _version_arg(raw: str) -> PlutusVersion:
    try:
        return PlutusVersion.parse(raw)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _non_negative(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected a non-negative integer, got {raw!r}") from e
    if value < 0:
        raise argparse.ArgumentTypeError(f"expected a non-negative integer, got {raw!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nawi",
        description="Construct the Plutus script context for a redeemer of a Cardano transaction.",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("-t", "--tx-file", type=Path, metavar="FILE", help="File containing the raw transaction CBOR.")
    source.add_argument("-b", "--bytes", dest="hex_bytes", metavar="HEX", help="Transaction CBOR as a hex string.")
    parser.add_argument(
        "-r", "--redeemer", type=_non_negative, required=True, metavar="INDEX",
        help="Position of the redeemer in the transaction's normalized redeemer list.",
    )
    parser.add_argument(
        "-n", "--network", type=_network_arg, default=Network("mainnet"), metavar="NETWORK",
        help="mainnet | preprod | preview | testnet:<magic> (default: mainnet).",
    )
    parser.add_argument(
        "-p", "--plutus-version", type=_version_arg, default=PlutusVersion.V3, metavar="VERSION",
        help="PlutusV1 | PlutusV2 | PlutusV3 (default: PlutusV3).",
    )
    parser.add_argument(
        "-s", "--slot", type=_non_negative, default=None, metavar="SLOT",
        help="Current slot used as the time horizon for validity bounds (default: chain tip).",
    )
    parser.add_argument(
        "-o", "--output", choices=(OUTPUT_PRETTY, OUTPUT_CBOR, OUTPUT_BOTH), default=OUTPUT_BOTH,
        help="Output format (default: both).",
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="Log progress to stderr (-v info, -vv debug).",
    )
    return parser


def load_transaction_bytes(tx_file: Path | None, hex_bytes: str | None) -> bytes:
    """Raw transaction bytes from a file or a hex string; InputError when neither is usable."""
    if tx_file is not None and hex_bytes is not None:
        raise InputError("Provide either --tx-file or --bytes, not both")
    if tx_file is not None:
        try:
            return tx_file.read_bytes()
        except OSError as e:
            raise InputError(f"Failed to read transaction file: {tx_file}: {e.strerror or e}") from e
    if hex_bytes is not None:
        try:
            return bytes.fromhex(hex_bytes.strip())
        except ValueError as e:
            raise InputError(
                "Failed to decode hex string. Ensure it contains valid hexadecimal characters"
            ) from e
    raise InputError("No input provided. Use either --tx-file or --bytes")


async def resolve_chain_state(
    settings: Settings, tx: Transaction, slot: int | None
) -> tuple[UtxoSet, int]:
    """Resolve every declared input and, when no slot is given, fetch the tip slot."""
    async with BlockfrostService.from_settings(settings) as service:
        utxos = await resolve_utxos(service, tx.declared_inputs())
        if slot is None:
            slot = await service.latest_slot()
    return utxos, slot


def run(args: argparse.Namespace) -> ScriptContext:
    """Full pipeline: bytes, decode, resolve, select, assemble."""
    raw = load_transaction_bytes(args.tx_file, args.hex_bytes)
    tx = decode_transaction(raw)
    log = bind_transaction(tx.id.hex())
    log.info("transaction_loaded", network=str(args.network), version=args.plutus_version.value)

    settings = get_settings(args.network)
    utxos, slot = asyncio.run(resolve_chain_state(settings, tx, args.slot))

    redeemer = select_redeemer(tx, args.redeemer)
    slot_config = slot_config_for(args.network, settings.system_start_ms)
    return build_script_context(args.plutus_version, tx, utxos, redeemer, slot_config, slot)


def render(ctx: ScriptContext, output: str) -> str:
    parts = []
    if output in (OUTPUT_PRETTY, OUTPUT_BOTH):
        parts.append(render_pretty(ctx))
    if output in (OUTPUT_CBOR, OUTPUT_BOTH):
        parts.append(format_cbor_payload(render_cbor(ctx)))
    return "\n".join(parts)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        configure_logging("DEBUG" if args.verbose > 1 else "INFO")
    try:
        ctx = run(args)
    except NawiError as e:
        logger.debug("nawi_failed", error_type=type(e).__name__, error=str(e))
        print(f"error: {e}", file=sys.stderr)
        return 1
    print(render(ctx, args.output))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
