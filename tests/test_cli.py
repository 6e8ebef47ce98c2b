"""
Tests for the command line: argument handling, exit status and output modes.
Chain access is replaced by an in-memory resolver, or by httpx.MockTransport.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from builders import KEY_HASH, TX_A, TX_B, constr_data, encode_tx, enterprise_address, make_body
from nawi import cli
from nawi.config import Network, Settings
from nawi.core.exceptions import InputError
from nawi.ledger.models import InputReference
from nawi.ledger.parser import decode_transaction
from nawi.resolver import BlockfrostService, UtxoSet

SPENT = InputReference(TX_A, 1)
OTHER = InputReference(TX_B, 0)
TX_BYTES = encode_tx(
    make_body(inputs=[(TX_B, 0), (TX_A, 1)]),
    {5: {(0, 0): [constr_data(0, 7), [100, 200]]}},
)
TX_HEX = TX_BYTES.hex()


@pytest.fixture
def chain(monkeypatch, script_output_inline, key_output):
    """Replace settings and chain access; returns the slots each run asked for."""
    requested = []

    async def fake_resolve(settings, tx, slot):
        requested.append(slot)
        utxos = UtxoSet({SPENT: script_output_inline, OTHER: key_output})
        return utxos, 50_000_000 if slot is None else slot

    monkeypatch.setattr(cli, "get_settings", lambda network: Settings(network, "k", "http://bf.test"))
    monkeypatch.setattr(cli, "resolve_chain_state", fake_resolve)
    return requested


def test_both_outputs_by_default(chain, capsys):
    assert cli.main(["-b", TX_HEX, "-r", "0"]) == 0
    out = capsys.readouterr().out
    assert "Script Context (Plutus V3)" in out
    assert "\nCBOR-encoded script context:\nd8799f" in out
    assert out.index("Script Context") < out.index("CBOR-encoded")
    assert chain == [None]


def test_cbor_only(chain, capsys):
    assert cli.main(["-b", TX_HEX, "-r", "0", "-o", "cbor", "-s", "1234"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("CBOR-encoded script context:\n")
    assert "Script Context" not in out
    assert chain == [1234]


def test_pretty_from_file(chain, capsys, tmp_path):
    tx_file = tmp_path / "tx.cbor"
    tx_file.write_bytes(TX_BYTES)
    assert cli.main(["--tx-file", str(tx_file), "--redeemer", "0", "--output", "pretty"]) == 0
    out = capsys.readouterr().out
    assert "Type: Spending" in out
    assert "CBOR-encoded" not in out


@pytest.mark.parametrize(
    "argv, message",
    [
        (["-r", "0"], "error: No input provided. Use either --tx-file or --bytes"),
        (["-b", "zz", "-r", "0"], "error: Failed to decode hex string"),
        (["-b", "820102", "-r", "0"], "error: Expected a transaction array of 3 or 4 elements, found 2"),
        (["-b", TX_HEX, "-r", "5"], "error: Invalid redeemer index: requested 5, available 1"),
        (["-b", TX_HEX, "-r", "0", "-p", "PlutusV2"], "error: PlutusV2 is not yet implemented"),
        (["-b", TX_HEX, "-r", "0", "-p", "PlutusV1"], "error: Failed to construct PlutusV1 script context: inputs"),
        (["-t", "does-not-exist.cbor", "-r", "0"], "error: Failed to read transaction file"),
    ],
)
def test_errors_exit_one(chain, capsys, argv, message):
    assert cli.main(argv) == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert message in captured.err


def test_missing_key_is_reported(capsys):
    assert cli.main(["-b", TX_HEX, "-r", "0"]) == 1
    assert "BLOCKFROST_KEY" in capsys.readouterr().err


@pytest.mark.parametrize(
    "argv",
    [
        ["-b", TX_HEX],
        ["-b", TX_HEX, "-t", "tx.cbor", "-r", "0"],
        ["-b", TX_HEX, "-r", "-1"],
        ["-b", TX_HEX, "-r", "0", "-p", "PlutusV4"],
        ["-b", TX_HEX, "-r", "0", "-n", "sanchonet"],
        ["-b", TX_HEX, "-r", "0", "-o", "json"],
    ],
)
def test_bad_arguments_exit_two(argv):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv)
    assert excinfo.value.code == 2


def test_parser_defaults():
    args = cli.build_parser().parse_args(["-b", "00", "-r", "3"])
    assert args.network == Network("mainnet")
    assert args.plutus_version is cli.PlutusVersion.V3
    assert args.slot is None
    assert args.output == "both"
    assert args.redeemer == 3


def test_load_transaction_bytes(tmp_path):
    (tmp_path / "tx").write_bytes(b"\x01")
    assert cli.load_transaction_bytes(tmp_path / "tx", None) == b"\x01"
    assert cli.load_transaction_bytes(None, " 0a0b ") == b"\x0a\x0b"
    with pytest.raises(InputError, match="not both"):
        cli.load_transaction_bytes(tmp_path / "tx", "00")


def test_resolve_chain_state_uses_tip(monkeypatch):
    source = encode_tx(
        make_body(outputs=[{0: enterprise_address(KEY_HASH), 1: 1}, {0: enterprise_address(KEY_HASH), 1: 2}])
    ).hex()
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.url.path.endswith("/blocks/latest"):
            return httpx.Response(200, json={"slot": 77})
        return httpx.Response(200, json={"cbor": source})

    class MockedService(BlockfrostService):
        @classmethod
        def from_settings(cls, settings, **kwargs):
            return super().from_settings(settings, transport=httpx.MockTransport(handler))

    monkeypatch.setattr(cli, "BlockfrostService", MockedService)
    settings = Settings(Network("mainnet"), "k", "http://bf.test")
    tx = decode_transaction(TX_BYTES)

    utxos, slot = asyncio.run(cli.resolve_chain_state(settings, tx, None))
    assert slot == 77
    assert utxos[SPENT].value.coin == 2 and utxos[OTHER].value.coin == 1

    paths.clear()
    _, slot = asyncio.run(cli.resolve_chain_state(settings, tx, 5))
    assert slot == 5
    assert "/blocks/latest" not in paths


def test_unresolvable_input_aborts_before_assembly(monkeypatch, capsys):
    source = encode_tx(
        make_body(outputs=[{0: enterprise_address(KEY_HASH), 1: 1}, {0: enterprise_address(KEY_HASH), 1: 2}])
    ).hex()

    def handler(request: httpx.Request) -> httpx.Response:
        if TX_B.hex() in request.url.path:
            return httpx.Response(404, json={"status_code": 404, "error": "Not Found", "message": "missing"})
        return httpx.Response(200, json={"cbor": source})

    class MockedService(BlockfrostService):
        @classmethod
        def from_settings(cls, settings, **kwargs):
            return super().from_settings(settings, transport=httpx.MockTransport(handler))

    built = []
    monkeypatch.setenv("BLOCKFROST_KEY", "k")
    monkeypatch.setattr(cli, "BlockfrostService", MockedService)
    monkeypatch.setattr(cli, "build_script_context", lambda *args, **kwargs: built.append(args))

    assert cli.main(["-b", TX_HEX, "-r", "0", "-s", "100"]) == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert f"error: Failed to resolve UTxO {OTHER}: transaction {TX_B.hex()} not found" in captured.err
    assert built == []


@pytest.mark.parametrize("flag, level", [("-v", "INFO"), ("-vv", "DEBUG")])
def test_verbose_raises_log_level(chain, monkeypatch, flag, level):
    levels = []
    monkeypatch.setattr(cli, "configure_logging", levels.append)
    assert cli.main(["-b", TX_HEX, "-r", "0", "-o", "cbor", flag]) == 0
    assert levels == [level]
