"""
Plutus side of nawi: the data tree, redeemer normalization, datum
resolution and version-specific script context assembly.

Import submodules directly (nawi.plutus.context, nawi.plutus.data, ...);
the ledger model depends on nawi.plutus.data, so this package stays import-free.
"""
