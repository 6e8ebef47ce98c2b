"""
Pytest fixtures for nawi tests. Transactions are built as plain Python values
and encoded with cbor2 (see builders.py), so every test starts from real
transaction bytes.
"""

from __future__ import annotations

import pytest

from builders import (
    KEY_HASH,
    SCRIPT_HASH,
    FakeResolutionService,
    constr_data,
    enterprise_address,
    inline_datum,
)
from nawi.ledger.models import TransactionOutput
from nawi.ledger.parser import parse_output


@pytest.fixture
def key_output() -> TransactionOutput:
    """Plain 5 ada output to a key address, no datum."""
    return parse_output({0: enterprise_address(KEY_HASH), 1: 5_000_000})


@pytest.fixture
def script_output_inline() -> TransactionOutput:
    """Output at a script address carrying an inline datum Constr 0 [42]."""
    return parse_output(
        {
            0: enterprise_address(SCRIPT_HASH, script=True),
            1: 10_000_000,
            2: inline_datum(constr_data(0, 42)),
        }
    )


@pytest.fixture
def script_output_hash() -> TransactionOutput:
    """Output at a script address carrying only a datum hash."""
    return parse_output(
        {0: enterprise_address(SCRIPT_HASH, script=True), 1: 10_000_000, 2: [0, bytes([0xDD]) * 32]}
    )


@pytest.fixture
def fake_service() -> type[FakeResolutionService]:
    return FakeResolutionService


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Run each test from an empty directory so no .env or nawi.toml leaks in."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "BLOCKFROST_KEY",
        "BLOCKFROST_PROJECT_ID",
        "BLOCKFROST_URL",
        "NAWI_CONFIG",
        "NAWI_REQUEST_TIMEOUT_SEC",
        "NAWI_SYSTEM_START_MS",
    ):
        monkeypatch.delenv(name, raising=False)
    return tmp_path
