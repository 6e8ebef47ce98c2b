"""
Output renderers for an assembled script context: a human-readable report and
the canonical CBOR payload. Both are pure and independent of each other.
"""

from nawi.render.binary import CborPayload, format_cbor_payload, render_cbor
from nawi.render.pretty import format_plutus_data, render_pretty

__all__ = [
    "CborPayload",
    "format_cbor_payload",
    "format_plutus_data",
    "render_cbor",
    "render_pretty",
]
