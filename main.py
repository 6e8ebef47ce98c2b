"""
Entrypoint for running nawi from a source checkout: python main.py -t tx.cbor -r 0

Installed packages get the `nawi` console script instead.
"""

from nawi.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
