"""
Transaction builders and a fake output resolution service shared by the tests.
"""

from __future__ import annotations

import asyncio
from typing import Any

import cbor2
from cbor2 import CBORTag

from nawi.core.exceptions import TransactionNotFoundError
from nawi.ledger.models import InputReference, TransactionOutput

TX_A = bytes([0xAA]) * 32
TX_B = bytes([0xBB]) * 32
TX_C = bytes([0x11]) * 32

KEY_HASH = bytes([0x01]) * 28
SCRIPT_HASH = bytes([0x02]) * 28
STAKE_KEY_HASH = bytes([0x03]) * 28
POLICY_A = bytes([0x0A]) * 28
POLICY_B = bytes([0x0B]) * 28
POOL_HASH = bytes([0x0C]) * 28
SIGNER = bytes([0x0D]) * 28


def enterprise_address(credential_hash: bytes, script: bool = False, network: int = 1) -> bytes:
    return bytes([(0x70 if script else 0x60) | network]) + credential_hash


def base_address(payment: bytes, stake: bytes, network: int = 1) -> bytes:
    return bytes([0x00 | network]) + payment + stake


def reward_account(credential_hash: bytes, script: bool = False, network: int = 1) -> bytes:
    return bytes([(0xF0 if script else 0xE0) | network]) + credential_hash


def constr_data(tag: int, *fields: Any) -> CBORTag:
    return CBORTag(121 + tag, list(fields))


def inline_datum(value: Any) -> list:
    return [1, CBORTag(24, cbor2.dumps(value))]


def encode_tx(
    body: dict,
    witness: dict | None = None,
    is_valid: bool = True,
) -> bytes:
    return cbor2.dumps([body, witness or {}, is_valid, None])


def make_body(
    inputs: list[tuple[bytes, int]] | None = None,
    outputs: list | None = None,
    fee: int = 200_000,
    extra: dict[int, Any] | None = None,
) -> dict:
    """Transaction body map; `extra` adds optional fields by CDDL key."""
    body: dict[int, Any] = {
        0: [list(i) for i in (inputs if inputs is not None else [(TX_A, 0)])],
        1: outputs if outputs is not None else [{0: enterprise_address(KEY_HASH), 1: 2_000_000}],
        2: fee,
    }
    body.update(extra or {})
    return body


class FakeResolutionService:
    """In-memory output resolution service with optional per-reference failures and delays."""

    def __init__(
        self,
        outputs: dict[InputReference, TransactionOutput] | None = None,
        failures: dict[InputReference, Exception] | None = None,
        delays: dict[InputReference, float] | None = None,
    ) -> None:
        self.outputs = dict(outputs or {})
        self.failures = dict(failures or {})
        self.delays = dict(delays or {})
        self.calls: list[InputReference] = []
        self.cancelled: list[InputReference] = []

    async def fetch_output(self, reference: InputReference) -> TransactionOutput:
        self.calls.append(reference)
        try:
            await asyncio.sleep(self.delays.get(reference, 0))
        except asyncio.CancelledError:
            self.cancelled.append(reference)
            raise
        if reference in self.failures:
            raise self.failures[reference]
        if reference not in self.outputs:
            raise TransactionNotFoundError(reference)
        return self.outputs[reference]
