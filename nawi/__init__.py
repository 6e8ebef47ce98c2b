"""
nawi: Plutus script context reconstruction for Cardano transactions.

Rebuilds the exact script context a validator receives for one redeemer of a
signed transaction: resolves the spent and referenced UTxOs, normalizes the
redeemer table, assembles the version-specific context and renders it as a
readable report and as canonical CBOR.
"""

__version__ = "0.1.0"
