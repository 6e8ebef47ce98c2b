"""
Application-level exceptions.

Every failure in the pipeline is a NawiError subclass carrying the context
needed to diagnose it without re-running: the offending input reference,
the requested index and the available count, the Plutus version and the
context field. The CLI turns any NawiError into a one-line message and a
non-zero exit status.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nawi.ledger.models import InputReference


class NawiError(Exception):
    """Base class for every error nawi reports to the caller."""


class InputError(NawiError):
    """Transaction bytes could not be obtained (no input, conflicting sources, bad file or hex)."""


class ConfigError(NawiError):
    """Required configuration is missing or invalid."""


class DecodingError(NawiError):
    """CBOR bytes do not describe the expected ledger structure."""


class ResolutionError(NawiError):
    """Looking up the output an input reference points to failed."""

    def __init__(self, reference: InputReference, reason: str) -> None:
        self.reference = reference
        self.reason = reason
        super().__init__(f"Failed to resolve UTxO {reference}: {reason}")


class TransactionNotFoundError(ResolutionError):
    def __init__(self, reference: InputReference) -> None:
        super().__init__(
            reference,
            f"transaction {reference.transaction_id.hex()} not found",
        )


class OutputIndexOutOfRangeError(ResolutionError):
    def __init__(self, reference: InputReference, output_count: int) -> None:
        self.output_count = output_count
        super().__init__(
            reference,
            f"invalid output index {reference.index} for transaction "
            f"{reference.transaction_id.hex()}. Transaction has {output_count} output(s)",
        )


class ResolutionTransportError(ResolutionError):
    """Network, HTTP or API failure while talking to the resolution service."""


class ResolvedOutputDecodingError(ResolutionError, DecodingError):
    """The resolution service returned bytes that are not a decodable transaction."""


class MissingUtxoError(NawiError):
    """A declared input is not covered by the resolved UTxO set."""

    def __init__(self, reference: InputReference) -> None:
        self.reference = reference
        super().__init__(f"No resolved output for declared input {reference}")


class RedeemerError(NawiError):
    """The requested redeemer cannot be selected."""


class NoRedeemersError(RedeemerError):
    def __init__(self) -> None:
        super().__init__("Transaction contains no redeemers")


class RedeemerIndexError(RedeemerError):
    def __init__(self, requested: int, available: int) -> None:
        self.requested = requested
        self.available = available
        super().__init__(
            f"Invalid redeemer index: requested {requested}, available {available}"
        )


class DatumError(NawiError):
    """The spending datum for a Spend redeemer cannot be extracted."""


class SpendingInputIndexError(DatumError):
    def __init__(self, index: int, input_count: int) -> None:
        self.index = index
        self.input_count = input_count
        super().__init__(
            f"Invalid redeemer index {index} for spending input. "
            f"Transaction has {input_count} input(s)"
        )


class MissingSpendingUtxoError(DatumError):
    def __init__(self, reference: InputReference) -> None:
        self.reference = reference
        super().__init__(f"Missing UTxO for spending input {reference}")


class VersionNotImplementedError(NawiError):
    def __init__(self, version: str) -> None:
        self.version = version
        super().__init__(f"{version} is not yet implemented")


class AssemblyError(NawiError):
    """A field of the script context cannot be derived for the requested version."""

    def __init__(self, version: str, field: str, reason: str) -> None:
        self.version = version
        self.field = field
        self.reason = reason
        super().__init__(f"Failed to construct {version} script context: {field}: {reason}")


class ServiceError(NawiError):
    """A resolution-service call not tied to one input (e.g. fetching the chain tip) failed."""
