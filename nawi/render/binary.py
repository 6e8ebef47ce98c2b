"""
Canonical CBOR form of a script context: the exact bytes a validator is
applied to, plus their hex form for printing.
"""

from __future__ import annotations

from dataclasses import dataclass

from nawi.plutus.context import ScriptContext
from nawi.plutus.data import encode_plutus_data


@dataclass(frozen=True)
class CborPayload:
    data: bytes

    @property
    def hex(self) -> str:
        return self.data.hex()

    def __len__(self) -> int:
        return len(self.data)


def render_cbor(ctx: ScriptContext) -> CborPayload:
    return CborPayload(encode_plutus_data(ctx.to_plutus_data()))


def format_cbor_payload(payload: CborPayload) -> str:
    return f"CBOR-encoded script context:\n{payload.hex}\n\nLength: {len(payload)} bytes"
