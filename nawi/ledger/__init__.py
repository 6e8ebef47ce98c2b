"""
Cardano ledger model and decoder.

Decodes signed transactions and transaction outputs from CBOR into the
immutable model the resolver, the redeemer normalizer and the script context
builder share. Submodules: cbor (span scanner, hashing), models, parser, slots.
"""
